"""
Booking model: the durable, slot-keyed reservation ("turno").

Key design decisions:
- Unique constraint on (court_id, date, time): at most one row per slot
- Occupancy is the reserving-party fields being non-null; cancelling nulls
  them instead of deleting, so the row keeps guarding the slot
- `court_id` is stored as a string, matching how slots are keyed
- `date`/`time` are canonical "YYYY-MM-DD" / "HH:MM" literals
"""

from sqlalchemy import Boolean, Column, Float, ForeignKey, Index, Integer, String, UniqueConstraint

from turnolibre.db.base import Base, TimestampMixin, UTCDateTime


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    sport = Column(String(40), nullable=False)
    date = Column(String(10), nullable=False)
    time = Column(String(5), nullable=False)
    club = Column(String(255), nullable=False, index=True)
    court_id = Column(String(36), nullable=False)
    price = Column(Float, nullable=False)

    # Reserving party; all null means the slot is vacant again
    reserved_by = Column(String(100), nullable=True)
    reserved_email = Column(String(255), nullable=True, index=True)
    reserved_phone = Column(String(50), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    paid = Column(Boolean, nullable=False, default=False)

    # Payment audit
    payment_id = Column(String(100), nullable=True, index=True)
    payment_method = Column(String(50), nullable=True)
    paid_at = Column(UTCDateTime(), nullable=True)

    __table_args__ = (
        UniqueConstraint("court_id", "date", "time", name="uq_booking_slot"),
        Index("ix_bookings_club_date", "club", "date"),
    )

    @property
    def is_occupied(self) -> bool:
        return self.reserved_by is not None or self.reserved_email is not None

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, court={self.court_id}, slot={self.date} {self.time}, "
            f"paid={self.paid})>"
        )
