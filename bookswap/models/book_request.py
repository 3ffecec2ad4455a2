from sqlalchemy import text

from ..extensions import db
from ..timeutil import utcnow, isoformat


class BookRequest(db.Model):
    __tablename__ = "book_requests"

    class Status:
        PENDING = "pending"
        ACCEPTED = "accepted"
        DECLINED = "declined"
        CANCELLED = "cancelled"
        COMPLETED = "completed"

        ALL = (PENDING, ACCEPTED, DECLINED, CANCELLED, COMPLETED)

    id = db.Column(db.Integer, primary_key=True)

    book_id = db.Column(
        db.Integer,
        db.ForeignKey("books.id"),
        nullable=False,
        index=True
    )

    requester_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id"),
        nullable=False,
        index=True
    )

    # copiado del libro al crear la solicitud
    owner_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id"),
        nullable=False,
        index=True
    )

    status = db.Column(
        db.String(20),
        nullable=False,
        default=Status.PENDING,
        index=True
    )

    message = db.Column(db.String(500))
    response_message = db.Column(db.String(500))

    requested_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utcnow
    )

    # se fija una sola vez, al salir de pending
    responded_at = db.Column(db.DateTime, nullable=True)

    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    book = db.relationship("Book", backref="requests")
    requester = db.relationship("User", foreign_keys=[requester_id], backref="sent_requests")
    owner = db.relationship("User", foreign_keys=[owner_id], backref="received_requests")

    __table_args__ = (
        db.Index(
            "uq_book_requests_active_pair",
            "book_id",
            "requester_id",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "message": self.message,
            "response_message": self.response_message,
            "requested_at": isoformat(self.requested_at),
            "responded_at": isoformat(self.responded_at),
            "updated_at": isoformat(self.updated_at),
            "book": self.book.summary() if self.book else None,
            "requester": self.requester.summary() if self.requester else None,
            "owner": self.owner.summary() if self.owner else None,
        }
