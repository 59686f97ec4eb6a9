"""
Tests for payment webhook reconciliation and its idempotency guard.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from turnolibre.models import Booking, PaymentEvent
from turnolibre.services import booking_service
from turnolibre.services.payment_service import (
    PaymentTarget,
    WebhookOutcome,
    extract_payment_id,
    process_payment_notification,
)


async def make_booking(db_session, court) -> Booking:
    booking, _ = await booking_service.reserve_slot(
        db_session, sport="padel", date="2025-01-10", time="09:00", club=court.club_email,
        court_id=court.id, reserved_by="Ana", reserved_email="ana@example.com",
    )
    await db_session.commit()
    return booking


async def event_count(db_session) -> int:
    return (await db_session.execute(select(func.count(PaymentEvent.id)))).scalar_one()


@pytest.mark.asyncio
async def test_redelivered_payment_is_applied_once(client: AsyncClient, db_session, court, processor, clock):
    booking = await make_booking(db_session, court)
    processor.add_payment("abc", external_reference=str(booking.id))

    first = await client.post("/api/v1/payments/webhook?id=abc&club=club@example.com")
    assert first.status_code == 200
    assert first.json()["status"] == "applied"

    await db_session.refresh(booking)
    assert booking.paid is True
    assert booking.payment_id == "abc"
    assert booking.payment_method == "credit_card"
    paid_at = booking.paid_at

    clock.advance(hours=1)
    second = await client.post("/api/v1/payments/webhook", json={"type": "payment", "data": {"id": "abc"}})
    assert second.status_code == 200
    assert second.json()["status"] == "duplicate"

    await db_session.refresh(booking)
    assert booking.paid_at == paid_at
    assert len(processor.fetches) == 1
    assert await event_count(db_session) == 1


@pytest.mark.asyncio
async def test_booking_payment_uses_club_credential(db_session, court, processor, clock):
    booking = await make_booking(db_session, court)
    processor.add_payment("p-1", external_reference=str(booking.id))

    await process_payment_notification(
        db_session, processor, clock, "p-1", PaymentTarget.BOOKING, club_email=court.club_email
    )
    assert processor.fetches == [("club-token", "p-1")]


@pytest.mark.asyncio
async def test_without_club_the_platform_credential_is_used(db_session, court, processor, clock):
    booking = await make_booking(db_session, court)
    processor.add_payment("p-2", external_reference=str(booking.id))

    await process_payment_notification(db_session, processor, clock, "p-2", PaymentTarget.BOOKING)
    assert processor.fetches == [("platform-token", "p-2")]


@pytest.mark.asyncio
async def test_missing_payment_id_is_acknowledged(client: AsyncClient, db_session, processor):
    response = await client.post("/api/v1/payments/webhook")
    assert response.status_code == 200
    assert response.json()["status"] == "ignored"
    assert processor.fetches == []
    assert await event_count(db_session) == 0


@pytest.mark.asyncio
async def test_rejected_payment_changes_nothing(db_session, court, processor, clock):
    booking = await make_booking(db_session, court)
    processor.add_payment("p-3", status="rejected", external_reference=str(booking.id))

    outcome = await process_payment_notification(db_session, processor, clock, "p-3", PaymentTarget.BOOKING)
    assert outcome is WebhookOutcome.NOT_APPROVED

    await db_session.refresh(booking)
    assert booking.paid is False
    assert booking.reserved_by == "Ana"
    assert booking.payment_id is None


@pytest.mark.asyncio
async def test_payment_without_reference_is_ignored(db_session, court, processor, clock):
    processor.add_payment("p-4", external_reference=None)
    outcome = await process_payment_notification(db_session, processor, clock, "p-4", PaymentTarget.BOOKING)
    assert outcome is WebhookOutcome.IGNORED
    assert await event_count(db_session) == 1


@pytest.mark.asyncio
async def test_booking_found_by_stored_payment_id(db_session, court, processor, clock):
    booking = await make_booking(db_session, court)
    booking.payment_id = "p-5"
    await db_session.commit()
    processor.add_payment("p-5", external_reference="not-a-booking-id", method=None)

    outcome = await process_payment_notification(db_session, processor, clock, "p-5", PaymentTarget.BOOKING)
    assert outcome is WebhookOutcome.APPLIED

    await db_session.refresh(booking)
    assert booking.paid is True
    assert booking.payment_method == "mercadopago"


@pytest.mark.asyncio
async def test_already_paid_booking_keeps_its_audit_fields(db_session, court, processor, clock):
    booking = await make_booking(db_session, court)
    await booking_service.mark_paid(db_session, booking.id)
    await db_session.commit()
    processor.add_payment("p-6", external_reference=str(booking.id))

    outcome = await process_payment_notification(db_session, processor, clock, "p-6", PaymentTarget.BOOKING)
    assert outcome is WebhookOutcome.ALREADY_PAID

    await db_session.refresh(booking)
    assert booking.payment_id is None
    assert booking.paid_at is None


@pytest.mark.asyncio
async def test_processor_failure_returns_500_and_is_not_retried_twice(
    client: AsyncClient, db_session, court, processor
):
    booking = await make_booking(db_session, court)
    processor.add_payment("p-7", external_reference=str(booking.id))
    processor.fail_fetch = True

    response = await client.post("/api/v1/payments/webhook?id=p-7")
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error", "code": "InternalError"}
    assert await event_count(db_session) == 1

    processor.fail_fetch = False
    retry = await client.post("/api/v1/payments/webhook?id=p-7")
    assert retry.json()["status"] == "duplicate"

    await db_session.refresh(booking)
    assert booking.paid is False


@pytest.mark.asyncio
async def test_featured_payment_promotes_club(client: AsyncClient, db_session, club, processor, clock):
    processor.add_payment("f-1", external_reference=club.email)

    response = await client.post("/api/v1/payments/featured-webhook", json={"data": {"id": "f-1"}})
    assert response.status_code == 200
    assert response.json()["status"] == "applied"

    await db_session.refresh(club)
    assert club.featured is True
    assert club.last_transaction_id == "f-1"
    assert club.featured_until - clock.now() == timedelta(days=30)
    assert processor.fetches == [("platform-token", "f-1")]


@pytest.mark.asyncio
async def test_featured_payment_for_unknown_club(db_session, processor, clock):
    processor.add_payment("f-2", external_reference="ghost@example.com")
    outcome = await process_payment_notification(db_session, processor, clock, "f-2", PaymentTarget.CLUB)
    assert outcome is WebhookOutcome.TARGET_MISSING


@pytest.mark.asyncio
async def test_featured_webhook_tolerates_empty_body(client: AsyncClient, db_session, processor):
    response = await client.post(
        "/api/v1/payments/featured-webhook",
        content=b"",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "ignored"
    assert processor.fetches == []
    assert await event_count(db_session) == 0


@pytest.mark.parametrize(
    "query,body,expected",
    [
        ({"id": "123"}, None, "123"),
        ({"data.id": "456"}, None, "456"),
        ({}, {"data": {"id": 789}}, "789"),
        ({}, {"data": "oops"}, None),
        ({}, None, None),
        ({"id": "  "}, None, None),
    ],
)
def test_extract_payment_id(query, body, expected):
    assert extract_payment_id(query, body) == expected
