"""Initial schema: users, books, book_requests

Revision ID: 4f1c2a9d7e3b
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "4f1c2a9d7e3b"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("otp_hash", sa.String(length=255), nullable=True),
        sa.Column("otp_expires_at", sa.DateTime(), nullable=True),
        sa.Column("otp_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.create_index("ix_users_email", ["email"], unique=True)

    op.create_table(
        "books",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("author", sa.String(length=100), nullable=False),
        sa.Column("condition", sa.String(length=20), nullable=False),
        sa.Column("genre", sa.String(length=50), nullable=True),
        sa.Column("isbn", sa.String(length=13), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_ref", sa.String(length=255), nullable=True),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("books", schema=None) as batch_op:
        batch_op.create_index("ix_books_title", ["title"], unique=False)
        batch_op.create_index("ix_books_author", ["author"], unique=False)
        batch_op.create_index("ix_books_genre", ["genre"], unique=False)
        batch_op.create_index("ix_books_owner_id", ["owner_id"], unique=False)
        batch_op.create_index("ix_books_is_available", ["is_available"], unique=False)
        batch_op.create_index("ix_books_deleted_at", ["deleted_at"], unique=False)

    op.create_table(
        "book_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("book_id", sa.Integer(), nullable=False),
        sa.Column("requester_id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("message", sa.String(length=500), nullable=True),
        sa.Column("response_message", sa.String(length=500), nullable=True),
        sa.Column("requested_at", sa.DateTime(), nullable=False),
        sa.Column("responded_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"]),
        sa.ForeignKeyConstraint(["requester_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("book_requests", schema=None) as batch_op:
        batch_op.create_index("ix_book_requests_book_id", ["book_id"], unique=False)
        batch_op.create_index("ix_book_requests_requester_id", ["requester_id"], unique=False)
        batch_op.create_index("ix_book_requests_owner_id", ["owner_id"], unique=False)
        batch_op.create_index("ix_book_requests_status", ["status"], unique=False)
        batch_op.create_index(
            "uq_book_requests_active_pair",
            ["book_id", "requester_id"],
            unique=True,
            sqlite_where=sa.text("status != 'cancelled'"),
            postgresql_where=sa.text("status != 'cancelled'"),
        )


def downgrade():
    with op.batch_alter_table("book_requests", schema=None) as batch_op:
        batch_op.drop_index("uq_book_requests_active_pair")
        batch_op.drop_index("ix_book_requests_status")
        batch_op.drop_index("ix_book_requests_owner_id")
        batch_op.drop_index("ix_book_requests_requester_id")
        batch_op.drop_index("ix_book_requests_book_id")
    op.drop_table("book_requests")

    with op.batch_alter_table("books", schema=None) as batch_op:
        batch_op.drop_index("ix_books_deleted_at")
        batch_op.drop_index("ix_books_is_available")
        batch_op.drop_index("ix_books_owner_id")
        batch_op.drop_index("ix_books_genre")
        batch_op.drop_index("ix_books_author")
        batch_op.drop_index("ix_books_title")
    op.drop_table("books")

    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.drop_index("ix_users_email")
    op.drop_table("users")
