"""
Pytest fixtures for test database, client, collaborators and authentication.

Each test gets its own in-memory SQLite database. Email, payment
processor and clock are replaced with in-memory fakes.
"""

import os

# Settings are read once at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["REDIS_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["SLOT_CONFLICT_POLICY"] = "overwrite"
os.environ["MERCADOPAGO_ACCESS_TOKEN"] = "platform-token"
os.environ["BREVO_API_KEY"] = ""

from datetime import datetime
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from turnolibre.main import app
from turnolibre.db.base import Base
from turnolibre.db.session import get_db
from turnolibre.core.clock import FrozenClock, get_clock
from turnolibre.core.security import create_access_token
from turnolibre.models import Club, Court
from turnolibre.services.interfaces.notification import NotificationSender
from turnolibre.services.interfaces.payment_processor import (
    PaymentInfo,
    PaymentProcessor,
    PaymentProcessorError,
)
from turnolibre.services.strategy_factory import get_notification_sender, get_payment_processor

TEST_DATABASE_URL = "sqlite+aiosqlite://"

# Monday 2025-01-06, 09:00 in Buenos Aires
FROZEN_NOW = datetime(2025, 1, 6, 9, 0)


class FakeNotificationSender(NotificationSender):
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send(self, to_address, subject, html_body):
        if self.fail:
            raise RuntimeError("mail server down")
        self.sent.append({"to": to_address, "subject": subject, "html": html_body})
        return True


class FakePaymentProcessor(PaymentProcessor):
    def __init__(self):
        self.payments = {}
        self.checkouts = []
        self.fetches = []
        self.fail_fetch = False

    def add_payment(self, payment_id, status="approved", external_reference=None, method="credit_card"):
        self.payments[payment_id] = PaymentInfo(
            payment_id=payment_id,
            status=status,
            external_reference=external_reference,
            method=method,
        )

    async def create_checkout(self, access_token, items, external_reference, notification_url, back_urls=None):
        self.checkouts.append({
            "access_token": access_token,
            "items": items,
            "external_reference": external_reference,
            "notification_url": notification_url,
            "back_urls": back_urls,
        })
        return f"https://checkout.test/{external_reference}"

    async def fetch_payment(self, access_token, payment_id):
        self.fetches.append((access_token, payment_id))
        if self.fail_fetch:
            raise PaymentProcessorError("processor unavailable")
        return self.payments[payment_id]


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Let SQLAlchemy own BEGIN so savepoints behave as on PostgreSQL
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(FROZEN_NOW)


@pytest.fixture
def sender() -> FakeNotificationSender:
    return FakeNotificationSender()


@pytest.fixture
def processor() -> FakePaymentProcessor:
    return FakePaymentProcessor()


@pytest_asyncio.fixture(scope="function")
async def client(db_session, clock, sender, processor) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB and every external collaborator overridden."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notification_sender] = lambda: sender
    app.dependency_overrides[get_payment_processor] = lambda: processor

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def club(db_session: AsyncSession) -> Club:
    club = Club(
        name="Club Uno",
        email="club@example.com",
        province="Buenos Aires",
        locality="La Plata",
        latitude=-34.92,
        longitude=-57.95,
        mp_access_token="club-token",
    )
    db_session.add(club)
    await db_session.commit()
    await db_session.refresh(club)
    return club


@pytest_asyncio.fixture
async def cash_only_club(db_session: AsyncSession) -> Club:
    """A club that never configured online payments."""
    club = Club(name="Club Dos", email="dos@example.com", province="Cordoba", locality="Cordoba")
    db_session.add(club)
    await db_session.commit()
    await db_session.refresh(club)
    return club


@pytest_asyncio.fixture
async def court(db_session: AsyncSession, club: Club) -> Court:
    """Padel court, 08:00-12:00 in one-hour slots, Monday/Wednesday/Friday."""
    court = Court(
        name="Cancha 1",
        sport="padel",
        price=3000,
        open_time="08:00",
        close_time="12:00",
        enabled_days=["Lunes", "Miércoles", "viernes"],
        club_email=club.email,
        slot_minutes=60,
    )
    db_session.add(court)
    await db_session.commit()
    await db_session.refresh(court)
    return court


@pytest_asyncio.fixture
async def night_court(db_session: AsyncSession, club: Club) -> Court:
    """Open every day 18:00-22:00, night rate from 20:00."""
    court = Court(
        name="Cancha Nocturna",
        sport="futbol",
        price=3000,
        open_time="18:00",
        close_time="22:00",
        enabled_days=[],
        club_email=club.email,
        slot_minutes=60,
        night_from_hour=20,
        night_price=5000,
    )
    db_session.add(court)
    await db_session.commit()
    await db_session.refresh(court)
    return court


@pytest.fixture
def auth_headers(club: Club) -> dict:
    """Authorization headers for the club operator."""
    token = create_access_token(data={"email": club.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_club_headers() -> dict:
    token = create_access_token(data={"email": "intruder@example.com"})
    return {"Authorization": f"Bearer {token}"}
