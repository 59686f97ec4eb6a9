"""
Club model: the owner of courts and recipient of reservation payments.

Key design decisions:
- `email` is the club's contact identity; courts and bookings reference it
- `featured` + `featured_until` form a time-boxed promotion, cleared by the sweeper
- `mp_access_token` is the club's own payment-processor credential
"""

from sqlalchemy import Boolean, Column, Float, Index, Integer, String

from turnolibre.db.base import Base, TimestampMixin, UTCDateTime


class Club(Base, TimestampMixin):
    __tablename__ = "clubs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)
    province = Column(String(100), nullable=True)
    locality = Column(String(100), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    mp_access_token = Column(String(255), nullable=True)

    # Promotion
    featured = Column(Boolean, nullable=False, default=False)
    featured_until = Column(UTCDateTime(), nullable=True)
    last_transaction_id = Column(String(100), nullable=True)

    __table_args__ = (
        # Sweeper query: featured clubs past their expiry
        Index("ix_clubs_featured_until", "featured", "featured_until"),
    )

    def __repr__(self) -> str:
        return f"<Club(id={self.id}, email={self.email}, featured={self.featured})>"
