"""
Book request lifecycle.

    pending --> accepted --> completed
        |-----> declined
        `-----> cancelled

Every transition is one conditional UPDATE keyed on the expected prior
status, so of two concurrent writers exactly one sees ``pending``. Accepting
also flips the book's availability inside the same transaction; if that flip
loses, the whole step rolls back.

Notifications are sent after commit and never affect the outcome.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from bookswap.errors import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from bookswap.extensions import db
from bookswap.models import BookRequest
from bookswap.timeutil import utcnow
from . import catalog, notifications

Status = BookRequest.Status

MAX_MESSAGE_LENGTH = 500

DECISIONS = (Status.ACCEPTED, Status.DECLINED)


def _clean_message(value: str | None, field: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("invalid_field", f"{field} must be a string", field=field)
    value = value.strip()
    if len(value) > MAX_MESSAGE_LENGTH:
        raise ValidationError(
            "invalid_field",
            f"{field} cannot exceed {MAX_MESSAGE_LENGTH} characters",
            field=field,
            max_length=MAX_MESSAGE_LENGTH,
        )
    return value or None


def get_request(request_id: int) -> BookRequest:
    req = db.session.get(BookRequest, request_id)
    if req is None:
        raise NotFoundError("request_not_found", "Request not found")
    return req


def get_visible_request(request_id: int, user_id: int) -> BookRequest:
    req = get_request(request_id)
    if user_id not in (req.requester_id, req.owner_id):
        raise AuthorizationError("forbidden", "You are not authorized to view this request")
    return req


def _transition(
    req: BookRequest,
    *,
    expected: str,
    values: dict,
    reserve_book: bool = False,
) -> None:
    """Compare-and-set ``req.status`` from `expected`, optionally taking the book."""
    try:
        result = db.session.execute(
            update(BookRequest)
            .where(BookRequest.id == req.id, BookRequest.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            raise InvalidStateError(
                "invalid_state",
                "Request has already been processed",
                current=req.status,
                allowed=[expected],
            )

        if reserve_book and not catalog.set_unavailable(req.book_id):
            db.session.rollback()
            raise InvalidStateError("book_not_available", "This book is no longer available")

        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise

    # los valores escritos por UPDATE no pasan por el identity map
    db.session.refresh(req)


def _active_request(book_id: int, requester_id: int) -> BookRequest | None:
    return (
        BookRequest.query
        .filter(
            BookRequest.book_id == book_id,
            BookRequest.requester_id == requester_id,
            BookRequest.status != Status.CANCELLED,
        )
        .first()
    )


# ---------- CREATE ----------
def create_request(*, book_id: int, requester_id: int, message: str | None = None) -> BookRequest:
    message = _clean_message(message, "message")

    book = catalog.get_available(book_id)

    if book.owner_id == requester_id:
        db.session.rollback()
        raise InvalidStateError("cannot_request_own_book", "You cannot request your own book")

    existing = _active_request(book.id, requester_id)
    if existing:
        existing_id = existing.id
        db.session.rollback()
        raise ConflictError(
            "request_already_exists",
            "You have already requested this book",
            request_id=existing_id,
        )

    req = BookRequest(
        book_id=book.id,
        requester_id=requester_id,
        owner_id=book.owner_id,
        status=Status.PENDING,
        message=message,
        requested_at=utcnow(),
    )
    db.session.add(req)
    try:
        db.session.commit()
    except IntegrityError:
        # otro request concurrente ganó el índice único
        db.session.rollback()
        raise ConflictError("request_already_exists", "You have already requested this book")

    current_app.logger.info(
        "REQUEST CREATED: request_id=%s book_id=%s requester_id=%s owner_id=%s",
        req.id, req.book_id, req.requester_id, req.owner_id,
    )

    notifications.notify_new_request(
        req.owner.email,
        req.requester.name,
        req.book.title,
        req.message,
    )
    return req


# ---------- RESPOND (OWNER) ----------
def respond_to_request(
    *,
    request_id: int,
    acting_user_id: int,
    decision: str,
    response_message: str | None = None,
) -> BookRequest:
    if decision not in DECISIONS:
        raise ValidationError(
            "invalid_field",
            "Status must be one of: accepted, declined",
            field="status",
            allowed=list(DECISIONS),
        )
    response_message = _clean_message(response_message, "response_message")

    req = get_request(request_id)
    if req.owner_id != acting_user_id:
        raise AuthorizationError("forbidden", "You can only update requests for your own books")

    values = {"status": decision, "responded_at": utcnow()}
    if response_message:
        values["response_message"] = response_message

    _transition(
        req,
        expected=Status.PENDING,
        values=values,
        reserve_book=decision == Status.ACCEPTED,
    )

    current_app.logger.info(
        "REQUEST %s: request_id=%s book_id=%s owner_id=%s",
        decision.upper(), req.id, req.book_id, acting_user_id,
    )

    notify = notifications.notify_accepted if decision == Status.ACCEPTED else notifications.notify_declined
    notify(
        req.requester.email,
        req.requester.name,
        req.book.title,
        req.owner.name,
        req.response_message,
    )
    return req


# ---------- CANCEL (REQUESTER) ----------
def cancel_request(*, request_id: int, acting_user_id: int) -> BookRequest:
    req = get_request(request_id)
    if req.requester_id != acting_user_id:
        raise AuthorizationError("forbidden", "You can only cancel your own requests")

    # no toca la disponibilidad del libro
    _transition(
        req,
        expected=Status.PENDING,
        values={"status": Status.CANCELLED, "responded_at": utcnow()},
    )

    current_app.logger.info(
        "REQUEST CANCELLED: request_id=%s requester_id=%s", req.id, acting_user_id
    )
    return req


# ---------- COMPLETE (OWNER) ----------
def complete_request(*, request_id: int, acting_user_id: int) -> BookRequest:
    req = get_request(request_id)
    if req.owner_id != acting_user_id:
        raise AuthorizationError("forbidden", "You can only update requests for your own books")

    _transition(req, expected=Status.ACCEPTED, values={"status": Status.COMPLETED})

    current_app.logger.info(
        "REQUEST COMPLETED: request_id=%s owner_id=%s", req.id, acting_user_id
    )
    return req


# ---------- STATS ----------
def _count_by_status(column, user_id: int) -> dict[str, int]:
    counts = dict.fromkeys(Status.ALL, 0)
    rows = db.session.execute(
        select(BookRequest.status, func.count(BookRequest.id))
        .where(column == user_id)
        .group_by(BookRequest.status)
    ).all()
    for status, count in rows:
        counts[status] = count
    return counts


def request_stats(user_id: int) -> dict[str, dict[str, int]]:
    return {
        "sent": _count_by_status(BookRequest.requester_id, user_id),
        "received": _count_by_status(BookRequest.owner_id, user_id),
    }
