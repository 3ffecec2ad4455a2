from __future__ import annotations

from sqlalchemy import select, update

from bookswap.errors import NotFoundError, InvalidStateError
from bookswap.extensions import db
from bookswap.models import Book, BookRequest


# solicitudes que "bloquean" la disponibilidad manual del libro
_LOCKING_STATUSES = (
    BookRequest.Status.PENDING,
    BookRequest.Status.ACCEPTED,
    BookRequest.Status.COMPLETED,
)


def get_book(book_id: int, *, for_update: bool = False) -> Book:
    stmt = select(Book).where(Book.id == book_id, Book.deleted_at.is_(None))
    if for_update:
        stmt = stmt.with_for_update()
    book = db.session.execute(stmt).scalar()
    if book is None:
        raise NotFoundError("book_not_found", "Book not found")
    return book


def get_available(book_id: int) -> Book:
    """Live, available book, row-locked where the backend supports it."""
    book = get_book(book_id, for_update=True)
    if not book.is_available:
        raise InvalidStateError("book_not_available", "This book is no longer available")
    return book


def set_unavailable(book_id: int) -> bool:
    """
    Conditional flip is_available True -> False.

    Runs inside the caller's transaction and does not commit. Returns False
    when the book is gone or another request already took it.
    """
    result = db.session.execute(
        update(Book)
        .where(Book.id == book_id, Book.is_available.is_(True), Book.deleted_at.is_(None))
        .values(is_available=False)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def is_targeted(book_id: int) -> bool:
    return (
        db.session.query(BookRequest.id)
        .filter(BookRequest.book_id == book_id, BookRequest.status.in_(_LOCKING_STATUSES))
        .first()
        is not None
    )


def set_availability(book: Book, is_available: bool) -> None:
    if book.is_available == is_available:
        return
    if is_targeted(book.id):
        raise InvalidStateError(
            "availability_locked",
            "Availability is managed by the book's requests",
        )
    book.is_available = is_available
