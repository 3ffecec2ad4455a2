import os
import sys

# Ensure project root is on PYTHONPATH
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
from sqlalchemy.pool import StaticPool

from bookswap.extensions import db
from bookswap.models import Book, User


@pytest.fixture()
def app(tmp_path):
    from bookswap import create_app

    config_overrides = {
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "SQLALCHEMY_ENGINE_OPTIONS": {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        },
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        "SECRET_KEY": "test-secret",
        "MAIL_SUPPRESS_SEND": True,
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
    }

    # ✅ IMPORTANT: pass overrides INTO create_app
    app = create_app(config_overrides=config_overrides)

    with app.app_context():
        db.drop_all()
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def outbox(app):
    return app.extensions["mail_outbox"]


def ensure_user(user_id: int, is_verified: bool = True, name: str | None = None):
    user = db.session.get(User, user_id)
    if user is None:
        user = User(
            id=user_id,
            email=f"user{user_id}@test.local",
            name=name or f"User {user_id}",
            is_verified=is_verified,
        )
        user.set_password("test1234")
        db.session.add(user)
        db.session.commit()
    else:
        user.is_verified = is_verified
        db.session.commit()
    return user


def login_session(client, user_id=1, is_verified=True):
    ensure_user(user_id, is_verified=is_verified)
    with client.session_transaction() as sess:
        sess["user_id"] = user_id


def make_book(owner_id: int, title: str = "Dune", **fields):
    ensure_user(owner_id)
    book = Book(
        title=title,
        author=fields.pop("author", "Frank Herbert"),
        condition=fields.pop("condition", "Good"),
        owner_id=owner_id,
        is_available=fields.pop("is_available", True),
        **fields,
    )
    db.session.add(book)
    db.session.commit()
    return book
