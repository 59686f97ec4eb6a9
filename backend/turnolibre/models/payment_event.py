"""
PaymentEvent: one row per processed payment id.

Inserted before any webhook side effect; its unique constraint is what
makes redelivered notifications no-ops.
"""

from sqlalchemy import Column, Integer, String

from turnolibre.db.base import Base, UTCDateTime


class PaymentEvent(Base):
    __tablename__ = "payment_events"

    id = Column(Integer, primary_key=True)
    payment_id = Column(String(100), unique=True, nullable=False)
    processed_at = Column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<PaymentEvent(payment_id={self.payment_id})>"
