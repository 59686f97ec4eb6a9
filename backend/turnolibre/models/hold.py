"""
Hold model: a provisional reservation protected by an emailed one-time code.

Key design decisions:
- Status moves PENDING -> CONFIRMED | CANCELLED | EXPIRED, never back
- The code is cleared on confirmation (single use)
- Slot exclusivity lives on the booking row; confirming a hold onto an
  occupied slot is refused when the hold is promoted
"""

import enum

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String

from turnolibre.db.base import Base, UTCDateTime


class HoldStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class Hold(Base):
    __tablename__ = "holds"

    id = Column(Integer, primary_key=True, index=True)
    court_id = Column(Integer, ForeignKey("courts.id", ondelete="CASCADE"), nullable=False)
    date = Column(String(10), nullable=False)
    time = Column(String(5), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    contact_email = Column(String(255), nullable=False, index=True)
    code = Column(String(6), nullable=True)
    expires_at = Column(UTCDateTime(), nullable=False)
    status = Column(String(20), nullable=False, default=HoldStatus.PENDING.value)
    created_at = Column(UTCDateTime(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED', 'EXPIRED')",
            name="check_hold_status",
        ),
        Index("ix_holds_slot_status", "court_id", "date", "time", "status"),
        # Sweeper query: pending holds ordered by expiry
        Index("ix_holds_status_expires", "status", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<Hold(id={self.id}, court={self.court_id}, slot={self.date} {self.time}, status={self.status})>"
