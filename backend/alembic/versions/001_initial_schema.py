"""Initial schema: users, clubs, courts, bookings, holds, payment events.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "clubs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("province", sa.String(100), nullable=True),
        sa.Column("locality", sa.String(100), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("mp_access_token", sa.String(255), nullable=True),
        sa.Column("featured", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("featured_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_transaction_id", sa.String(100), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_clubs_id", "clubs", ["id"])
    op.create_index("ix_clubs_email", "clubs", ["email"], unique=True)
    # Featured sweep: WHERE featured AND featured_until < now()
    op.create_index("ix_clubs_featured_until", "clubs", ["featured", "featured_until"])

    op.create_table(
        "courts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sport", sa.String(40), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("open_time", sa.String(5), nullable=False),
        sa.Column("close_time", sa.String(5), nullable=False),
        sa.Column("enabled_days", sa.JSON(), nullable=False),
        sa.Column("club_email", sa.String(255), nullable=False),
        sa.Column("slot_minutes", sa.Integer(), nullable=False, server_default=sa.text("60")),
        sa.Column("night_from_hour", sa.Integer(), nullable=True),
        sa.Column("night_price", sa.Float(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("price > 0", name="check_court_price_positive"),
        sa.CheckConstraint("slot_minutes > 0", name="check_court_slot_minutes_positive"),
        sa.CheckConstraint(
            "night_from_hour IS NULL OR (night_from_hour >= 0 AND night_from_hour <= 23)",
            name="check_court_night_hour_range",
        ),
    )
    op.create_index("ix_courts_id", "courts", ["id"])
    op.create_index("ix_courts_club_email", "courts", ["club_email"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("sport", sa.String(40), nullable=False),
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("time", sa.String(5), nullable=False),
        sa.Column("club", sa.String(255), nullable=False),
        sa.Column("court_id", sa.String(36), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("reserved_by", sa.String(100), nullable=True),
        sa.Column("reserved_email", sa.String(255), nullable=True),
        sa.Column("reserved_phone", sa.String(50), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("paid", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("payment_id", sa.String(100), nullable=True),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        # One row per slot, occupied or not. Cancelling nulls the party fields
        # and keeps the row, so this constraint keeps guarding the slot.
        sa.UniqueConstraint("court_id", "date", "time", name="uq_booking_slot"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_club", "bookings", ["club"])
    op.create_index("ix_bookings_reserved_email", "bookings", ["reserved_email"])
    op.create_index("ix_bookings_payment_id", "bookings", ["payment_id"])
    op.create_index("ix_bookings_club_date", "bookings", ["club", "date"])

    op.create_table(
        "holds",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("court_id", sa.Integer(), sa.ForeignKey("courts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("time", sa.String(5), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("contact_email", sa.String(255), nullable=False),
        sa.Column("code", sa.String(6), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED', 'EXPIRED')",
            name="check_hold_status",
        ),
    )
    op.create_index("ix_holds_id", "holds", ["id"])
    op.create_index("ix_holds_contact_email", "holds", ["contact_email"])
    op.create_index("ix_holds_slot_status", "holds", ["court_id", "date", "time", "status"])
    op.create_index("ix_holds_status_expires", "holds", ["status", "expires_at"])

    op.create_table(
        "payment_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("payment_id", sa.String(100), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("payment_id", name="uq_payment_events_payment_id"),
    )


def downgrade() -> None:
    op.drop_table("payment_events")
    op.drop_table("holds")
    op.drop_table("bookings")
    op.drop_table("courts")
    op.drop_table("clubs")
    op.drop_table("users")
