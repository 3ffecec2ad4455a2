import re

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import or_

from ...errors import AuthorizationError, ValidationError
from ...extensions import db
from ...models import Book
from ...models.book import CONDITIONS
from ...services import catalog, uploads
from ...timeutil import utcnow
from ..auth.decorators import login_required, current_user_id
from ..common import paginate, parse_bool

bp = Blueprint("books", __name__, url_prefix="/books")

ISBN_RE = re.compile(r"^(?:\d{10}|\d{13})$")

# campo -> longitud máxima
MAX_LENGTHS = {"title": 200, "author": 100, "description": 1000, "genre": 50}


def _payload() -> dict:
    # JSON o multipart/form-data (cuando viene imagen)
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def _clean_fields(data: dict, *, partial: bool) -> dict:
    fields = {}
    for name in ("title", "author", "condition", "description", "genre", "isbn"):
        if name not in data:
            continue
        value = str(data.get(name) or "").strip()
        fields[name] = value or None

    if not partial:
        missing = [f for f in ("title", "author", "condition") if not fields.get(f)]
        if missing:
            raise ValidationError("missing_fields", "Missing required fields", required=missing)
    else:
        for f in ("title", "author", "condition"):
            if f in fields and not fields[f]:
                raise ValidationError("invalid_field", f"{f} cannot be empty", field=f)

    for name, max_length in MAX_LENGTHS.items():
        if fields.get(name) and len(fields[name]) > max_length:
            raise ValidationError(
                "invalid_field",
                f"{name} cannot exceed {max_length} characters",
                field=name,
                max_length=max_length,
            )

    if fields.get("condition") and fields["condition"] not in CONDITIONS:
        raise ValidationError("invalid_field", "Invalid condition", field="condition", allowed=list(CONDITIONS))

    if fields.get("isbn") and not ISBN_RE.match(fields["isbn"]):
        raise ValidationError("invalid_field", "Please enter a valid ISBN (10 or 13 digits)", field="isbn")

    return fields


def _owned_book(book_id: int) -> Book:
    book = catalog.get_book(book_id)
    if book.owner_id != current_user_id():
        raise AuthorizationError("forbidden", "You can only modify your own books")
    return book


@bp.post("/")
@login_required
def create_book():
    fields = _clean_fields(_payload(), partial=False)

    book = Book(
        owner_id=current_user_id(),  # 🔐 viene de la sesión
        is_available=True,
        **fields,
    )

    image = request.files.get("image")
    if image and image.filename:
        book.image_ref = uploads.save_image(image)

    db.session.add(book)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        uploads.delete_image(book.image_ref)
        raise

    current_app.logger.info("Book created: book_id=%s owner_id=%s", book.id, book.owner_id)
    return jsonify(message="created", **book.to_dict()), 201


@bp.get("/")
@login_required
def list_books():
    q = Book.query.filter(Book.deleted_at.is_(None), Book.is_available.is_(True))

    search = (request.args.get("search") or "").strip()
    genre = (request.args.get("genre") or "").strip()
    condition = (request.args.get("condition") or "").strip()

    if search:
        like = f"%{search}%"
        q = q.filter(or_(
            Book.title.ilike(like),
            Book.author.ilike(like),
            Book.description.ilike(like),
        ))

    if genre:
        q = q.filter(Book.genre == genre)

    if condition:
        if condition not in CONDITIONS:
            raise ValidationError("invalid_field", "Invalid condition", field="condition", allowed=list(CONDITIONS))
        q = q.filter(Book.condition == condition)

    q = q.order_by(Book.created_at.desc(), Book.id.desc())
    return jsonify(paginate(q, Book.to_dict)), 200


@bp.get("/mine")
@login_required
def my_books():
    q = (
        Book.query
        .filter(Book.owner_id == current_user_id(), Book.deleted_at.is_(None))
        .order_by(Book.created_at.desc(), Book.id.desc())
    )
    return jsonify(paginate(q, Book.to_dict)), 200


@bp.get("/<int:book_id>")
@login_required
def get_book(book_id: int):
    return jsonify(catalog.get_book(book_id).to_dict()), 200


@bp.route("/<int:book_id>", methods=["PUT", "PATCH"])
@login_required
def update_book(book_id: int):
    book = _owned_book(book_id)
    data = _payload()
    fields = _clean_fields(data, partial=True)

    if "is_available" in data:
        try:
            is_available = parse_bool(data["is_available"])
        except ValueError:
            raise ValidationError("invalid_field", "is_available must be true/false", field="is_available")
        catalog.set_availability(book, is_available)

    for name, value in fields.items():
        setattr(book, name, value)

    old_image = None
    image = request.files.get("image")
    if image and image.filename:
        old_image = book.image_ref
        book.image_ref = uploads.save_image(image)

    db.session.commit()
    uploads.delete_image(old_image)

    current_app.logger.info("Book updated: book_id=%s owner_id=%s", book.id, book.owner_id)
    return jsonify(message="updated", **book.to_dict()), 200


@bp.delete("/<int:book_id>")
@login_required
def delete_book(book_id: int):
    book = _owned_book(book_id)

    # soft delete: las solicitudes conservan su libro
    book.deleted_at = utcnow()
    db.session.commit()

    current_app.logger.info("Book deleted: book_id=%s owner_id=%s", book.id, book.owner_id)
    return jsonify(message="deleted", id=book.id), 200
