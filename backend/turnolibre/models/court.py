"""
Court model holding the weekly schedule configuration.

Key design decisions:
- Opening/closing times are kept as "HH:MM" strings, the same literal form slots use
- `enabled_days` stores weekday names as entered; comparison ignores case and accents
- Night pricing is inert unless both `night_from_hour` and a valid `night_price` are set
"""

from sqlalchemy import JSON, CheckConstraint, Column, Float, Integer, String

from turnolibre.db.base import Base, TimestampMixin

DEFAULT_SLOT_MINUTES = 60


class Court(Base, TimestampMixin):
    __tablename__ = "courts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    sport = Column(String(40), nullable=False)
    price = Column(Float, nullable=False)
    open_time = Column(String(5), nullable=False)
    close_time = Column(String(5), nullable=False)
    enabled_days = Column(JSON, nullable=False, default=list)
    club_email = Column(String(255), nullable=False, index=True)
    slot_minutes = Column(Integer, nullable=False, default=DEFAULT_SLOT_MINUTES)
    night_from_hour = Column(Integer, nullable=True)  # 0-23
    night_price = Column(Float, nullable=True)

    __table_args__ = (
        CheckConstraint("price > 0", name="check_court_price_positive"),
        CheckConstraint("slot_minutes > 0", name="check_court_slot_minutes_positive"),
        CheckConstraint(
            "night_from_hour IS NULL OR (night_from_hour >= 0 AND night_from_hour <= 23)",
            name="check_court_night_hour_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<Court(id={self.id}, name={self.name}, club={self.club_email})>"
