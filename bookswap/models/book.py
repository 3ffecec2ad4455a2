from ..extensions import db
from ..timeutil import utcnow, isoformat


CONDITIONS = ("New", "Like New", "Good", "Fair", "Poor")


class Book(db.Model):
    __tablename__ = "books"

    id = db.Column(db.Integer, primary_key=True)

    title = db.Column(db.String(200), nullable=False, index=True)
    author = db.Column(db.String(100), nullable=False, index=True)
    condition = db.Column(db.String(20), nullable=False)
    genre = db.Column(db.String(50), index=True)
    isbn = db.Column(db.String(13))

    description = db.Column(db.Text)
    image_ref = db.Column(db.String(255))

    owner_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id"),
        nullable=False,
        index=True
    )

    is_available = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utcnow
    )

    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    # soft delete: las solicitudes siguen apuntando al libro
    deleted_at = db.Column(db.DateTime, nullable=True, index=True)

    # relación ORM
    owner = db.relationship("User", backref="books")

    def summary(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "condition": self.condition,
            "image": self.image_ref,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "condition": self.condition,
            "genre": self.genre,
            "isbn": self.isbn,
            "description": self.description,
            "image": self.image_ref,
            "is_available": self.is_available,
            "owner": self.owner.summary() if self.owner else None,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
