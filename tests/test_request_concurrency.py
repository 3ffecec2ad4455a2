import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError

from bookswap.errors import ConflictError, InvalidStateError
from bookswap.extensions import db
from bookswap.models import Book, BookRequest
from bookswap.services import catalog
from bookswap.services import request_lifecycle as lifecycle
from bookswap.timeutil import utcnow
from tests.conftest import ensure_user, make_book

OWNER, REQUESTER, OTHER = 1, 2, 3


@pytest.fixture()
def book(app):
    ensure_user(REQUESTER)
    ensure_user(OTHER)
    return make_book(OWNER)


def test_second_respond_on_same_request_fails(book):
    req = lifecycle.create_request(book_id=book.id, requester_id=REQUESTER)

    lifecycle.respond_to_request(request_id=req.id, acting_user_id=OWNER, decision="accepted")

    with pytest.raises(InvalidStateError):
        lifecycle.respond_to_request(request_id=req.id, acting_user_id=OWNER, decision="declined")

    assert db.session.get(BookRequest, req.id).status == "accepted"
    assert db.session.get(Book, book.id).is_available is False


def test_transition_checks_stored_status_not_loaded_one(book):
    req = lifecycle.create_request(book_id=book.id, requester_id=REQUESTER)
    assert req.status == "pending"

    # another writer moved the row on; the loaded object still says pending
    db.session.execute(
        update(BookRequest)
        .where(BookRequest.id == req.id)
        .values(status="declined")
        .execution_options(synchronize_session=False)
    )
    assert req.status == "pending"

    with pytest.raises(InvalidStateError):
        lifecycle.respond_to_request(request_id=req.id, acting_user_id=OWNER, decision="accepted")

    assert db.session.get(Book, book.id).is_available is True


def test_only_one_request_can_take_the_book(book):
    first = lifecycle.create_request(book_id=book.id, requester_id=REQUESTER)
    second = lifecycle.create_request(book_id=book.id, requester_id=OTHER)

    lifecycle.respond_to_request(request_id=first.id, acting_user_id=OWNER, decision="accepted")

    with pytest.raises(InvalidStateError) as exc:
        lifecycle.respond_to_request(request_id=second.id, acting_user_id=OWNER, decision="accepted")
    assert exc.value.code == "book_not_available"

    # the status change of the losing accept was rolled back with it
    loser = db.session.get(BookRequest, second.id)
    assert loser.status == "pending"
    assert loser.responded_at is None

    # it can still be declined
    lifecycle.respond_to_request(request_id=second.id, acting_user_id=OWNER, decision="declined")
    assert loser.status == "declined"


def test_failed_book_update_leaves_both_rows_untouched(book, monkeypatch):
    req = lifecycle.create_request(book_id=book.id, requester_id=REQUESTER)

    def boom(book_id):
        raise OperationalError("UPDATE books", {}, Exception("disk I/O error"))

    monkeypatch.setattr(catalog, "set_unavailable", boom)

    with pytest.raises(OperationalError):
        lifecycle.respond_to_request(request_id=req.id, acting_user_id=OWNER, decision="accepted")

    stored = db.session.get(BookRequest, req.id)
    assert stored.status == "pending"
    assert stored.responded_at is None
    assert db.session.get(Book, book.id).is_available is True


def test_set_unavailable_only_flips_once(book):
    assert catalog.set_unavailable(book.id) is True
    assert catalog.set_unavailable(book.id) is False
    db.session.commit()
    assert db.session.get(Book, book.id).is_available is False


# ---------- duplicate creates past the pre-check ----------
def _skip_precheck(monkeypatch):
    monkeypatch.setattr(lifecycle, "_active_request", lambda book_id, requester_id: None)


def test_unique_index_rejects_concurrent_duplicate(book, monkeypatch):
    first = lifecycle.create_request(book_id=book.id, requester_id=REQUESTER)
    _skip_precheck(monkeypatch)

    with pytest.raises(ConflictError) as exc:
        lifecycle.create_request(book_id=book.id, requester_id=REQUESTER)
    assert exc.value.code == "request_already_exists"

    rows = BookRequest.query.filter_by(book_id=book.id, requester_id=REQUESTER).all()
    assert [r.id for r in rows] == [first.id]


def test_unique_index_allows_new_request_after_cancel(book, monkeypatch):
    first = lifecycle.create_request(book_id=book.id, requester_id=REQUESTER)
    lifecycle.cancel_request(request_id=first.id, acting_user_id=REQUESTER)
    _skip_precheck(monkeypatch)

    second = lifecycle.create_request(book_id=book.id, requester_id=REQUESTER)
    assert second.status == "pending"

    with pytest.raises(ConflictError):
        lifecycle.create_request(book_id=book.id, requester_id=REQUESTER)


def test_unique_index_covers_declined_rows(book):
    now = utcnow()
    db.session.add(BookRequest(
        book_id=book.id, requester_id=REQUESTER, owner_id=OWNER,
        status="declined", requested_at=now,
    ))
    db.session.commit()

    db.session.add(BookRequest(
        book_id=book.id, requester_id=REQUESTER, owner_id=OWNER,
        status="pending", requested_at=now,
    ))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()


# ---------- threads against a file database ----------
@pytest.fixture()
def file_app(tmp_path):
    from bookswap import create_app

    app = create_app(config_overrides={
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'race.db'}",
        "SQLALCHEMY_ENGINE_OPTIONS": {
            "connect_args": {"check_same_thread": False, "timeout": 30},
        },
        "SECRET_KEY": "test-secret",
        "MAIL_SUPPRESS_SEND": True,
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _race(app, *calls):
    """Run each call in its own thread and app context, released together."""
    barrier = threading.Barrier(len(calls))

    def run(call):
        with app.app_context():
            barrier.wait(timeout=10)
            try:
                call()
            except InvalidStateError as e:
                return e.code
            return "ok"

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        futures = [pool.submit(run, call) for call in calls]
        return [f.result(timeout=60) for f in futures]


def test_simultaneous_accepts_take_the_book_once(file_app):
    ensure_user(REQUESTER)
    ensure_user(OTHER)
    book_id = make_book(OWNER).id
    first = lifecycle.create_request(book_id=book_id, requester_id=REQUESTER).id
    second = lifecycle.create_request(book_id=book_id, requester_id=OTHER).id

    outcomes = _race(
        file_app,
        lambda: lifecycle.respond_to_request(request_id=first, acting_user_id=OWNER, decision="accepted"),
        lambda: lifecycle.respond_to_request(request_id=second, acting_user_id=OWNER, decision="accepted"),
    )

    assert sorted(outcomes) == ["book_not_available", "ok"]

    db.session.expire_all()
    statuses = sorted(db.session.get(BookRequest, rid).status for rid in (first, second))
    assert statuses == ["accepted", "pending"]
    assert db.session.get(Book, book_id).is_available is False


def test_simultaneous_responses_to_one_request(file_app):
    ensure_user(REQUESTER)
    book_id = make_book(OWNER).id
    req_id = lifecycle.create_request(book_id=book_id, requester_id=REQUESTER).id

    outcomes = _race(
        file_app,
        lambda: lifecycle.respond_to_request(request_id=req_id, acting_user_id=OWNER, decision="accepted"),
        lambda: lifecycle.respond_to_request(request_id=req_id, acting_user_id=OWNER, decision="declined"),
    )

    assert sorted(outcomes) == ["invalid_state", "ok"]

    db.session.expire_all()
    stored = db.session.get(BookRequest, req_id)
    assert stored.status in ("accepted", "declined")
    assert stored.responded_at is not None
    assert db.session.get(Book, book_id).is_available is (stored.status != "accepted")
