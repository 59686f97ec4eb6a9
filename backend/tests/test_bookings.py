"""
Tests for direct reservations, cancellation, operator actions and listings.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from turnolibre.core.exceptions import ConflictError, NotFoundError, ValidationError
from turnolibre.models import Booking, Club, Court, Hold, HoldStatus, User
from turnolibre.services import booking_service, hold_service
from turnolibre.services.interfaces.contention import RejectPolicy
from turnolibre.services.strategy_factory import get_contention_policy
from turnolibre.main import app


def reserve_payload(court, **overrides) -> dict:
    payload = {
        "sport": court.sport,
        "date": "2025-01-10",
        "time": "09:00",
        "club": court.club_email,
        "court_id": str(court.id),
        "reserved_by": "Ana",
        "reserved_email": "ana@example.com",
        "reserved_phone": "221-555-0101",
        "payment_method": "cash",
    }
    payload.update(overrides)
    return payload


async def slot_rows(db_session, court, date="2025-01-10", time="09:00") -> list[Booking]:
    result = await db_session.execute(
        select(Booking).where(Booking.court_id == str(court.id), Booking.date == date, Booking.time == time)
    )
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_cash_reservation(client: AsyncClient, court):
    response = await client.post("/api/v1/bookings", json=reserve_payload(court))
    assert response.status_code == 201
    data = response.json()
    assert data["checkout_url"] is None
    assert data["booking"]["reserved_by"] == "Ana"
    assert data["booking"]["paid"] is False
    assert data["booking"]["price"] == 3000


@pytest.mark.asyncio
async def test_client_price_is_ignored(client: AsyncClient, night_court):
    payload = reserve_payload(night_court, time="21:00", price=1)
    response = await client.post("/api/v1/bookings", json=payload)
    assert response.status_code == 201
    assert response.json()["booking"]["price"] == 5000


@pytest.mark.asyncio
async def test_same_slot_twice_keeps_one_row_with_second_party(client: AsyncClient, db_session, court):
    first = await client.post("/api/v1/bookings", json=reserve_payload(court))
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/bookings",
        json=reserve_payload(court, reserved_by="Bruno", reserved_email="bruno@example.com", reserved_phone=None),
    )
    assert second.status_code == 201
    assert second.json()["booking"]["id"] == first.json()["booking"]["id"]

    rows = await slot_rows(db_session, court)
    assert len(rows) == 1
    assert rows[0].reserved_by == "Bruno"
    assert rows[0].reserved_email == "bruno@example.com"


@pytest.mark.asyncio
async def test_reject_policy_refuses_occupied_slot(client: AsyncClient, court):
    app.dependency_overrides[get_contention_policy] = lambda: RejectPolicy()

    assert (await client.post("/api/v1/bookings", json=reserve_payload(court))).status_code == 201
    response = await client.post(
        "/api/v1/bookings",
        json=reserve_payload(court, reserved_by="Bruno", reserved_email="bruno@example.com"),
    )
    assert response.status_code == 409
    assert response.json()["code"] == "ConflictError"


@pytest.mark.asyncio
async def test_reject_policy_still_reclaims_cancelled_slot(db_session, court):
    booking, _ = await booking_service.reserve_slot(
        db_session, sport="padel", date="2025-01-10", time="09:00", club=court.club_email,
        court_id=court.id, reserved_by="Ana", reserved_email="ana@example.com",
    )
    await booking_service.cancel_booking(db_session, booking.id)

    again, reclaimed = await booking_service.reserve_slot(
        db_session, sport="padel", date="2025-01-10", time="09:00", club=court.club_email,
        court_id=court.id, reserved_by="Bruno", reserved_email="bruno@example.com", policy=RejectPolicy(),
    )
    assert reclaimed
    assert again.id == booking.id
    assert again.reserved_by == "Bruno"


@pytest.mark.asyncio
async def test_reclaim_resets_paid_flag(db_session, court):
    booking, _ = await booking_service.reserve_slot(
        db_session, sport="padel", date="2025-01-10", time="09:00", club=court.club_email,
        court_id=court.id, reserved_by="Ana", reserved_email="ana@example.com",
    )
    await booking_service.mark_paid(db_session, booking.id)

    again, _ = await booking_service.reserve_slot(
        db_session, sport="padel", date="2025-01-10", time="09:00", club=court.club_email,
        court_id=court.id, reserved_by="Bruno", reserved_email="bruno@example.com",
    )
    assert again.paid is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [{"date": "10/01/2025"}, {"time": "9:00"}, {"payment_method": "bitcoin"}, {"reserved_email": "not-an-email"}],
)
async def test_malformed_reservation_is_rejected(client: AsyncClient, court, overrides):
    response = await client.post("/api/v1/bookings", json=reserve_payload(court, **overrides))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_reserve_slot_validation(db_session, court):
    with pytest.raises(ValidationError):
        await booking_service.reserve_slot(
            db_session, sport="padel", date="2025-13-40", time="09:00", club=court.club_email,
            court_id=court.id, reserved_by="Ana", reserved_email="ana@example.com",
        )
    with pytest.raises(ValidationError):
        await booking_service.reserve_slot(
            db_session, sport="padel", date="2025-01-10", time="09:00", club=court.club_email,
            court_id=court.id, reserved_by=" ", reserved_email="ana@example.com",
        )


@pytest.mark.asyncio
async def test_non_positive_price_is_rejected(db_session, court):
    free = Court(
        id=court.id, name=court.name, sport="padel", price=0, open_time="08:00",
        close_time="12:00", enabled_days=[], club_email=court.club_email, slot_minutes=60,
    )
    with pytest.raises(ValidationError):
        await booking_service.reserve_slot(
            db_session, sport="padel", date="2025-01-10", time="09:00", club=court.club_email,
            court_id=court.id, reserved_by="Ana", reserved_email="ana@example.com", court=free,
        )


@pytest.mark.asyncio
async def test_unknown_court(client: AsyncClient, court):
    response = await client.post("/api/v1/bookings", json=reserve_payload(court, court_id="c1"))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_online_reservation_returns_checkout(client: AsyncClient, court, processor):
    response = await client.post("/api/v1/bookings", json=reserve_payload(court, payment_method="online"))
    assert response.status_code == 201
    data = response.json()
    booking_id = data["booking"]["id"]
    assert data["checkout_url"] == f"https://checkout.test/{booking_id}"

    checkout = processor.checkouts[0]
    assert checkout["access_token"] == "club-token"
    assert checkout["external_reference"] == str(booking_id)
    assert checkout["notification_url"].endswith("/api/v1/payments/webhook?club=club%40example.com")
    assert checkout["items"][0]["unit_price"] == 3000


@pytest.mark.asyncio
async def test_online_reservation_without_credential_writes_nothing(
    client: AsyncClient, db_session, cash_only_club
):
    court = Court(
        name="Cancha 2", sport="tenis", price=2000, open_time="08:00", close_time="12:00",
        enabled_days=[], club_email=cash_only_club.email,
    )
    db_session.add(court)
    await db_session.commit()

    response = await client.post("/api/v1/bookings", json=reserve_payload(court, payment_method="online"))
    assert response.status_code == 409
    assert await slot_rows(db_session, court) == []


@pytest.mark.asyncio
async def test_reserving_a_court_under_another_club_is_rejected(
    client: AsyncClient, db_session, court, processor
):
    db_session.add(Club(name="Club Tres", email="other@example.com", mp_access_token="other-token"))
    await db_session.commit()

    payload = reserve_payload(court, club="other@example.com", payment_method="online")
    response = await client.post("/api/v1/bookings", json=payload)
    assert response.status_code == 400
    assert response.json()["code"] == "ValidationError"
    assert processor.checkouts == []
    assert await slot_rows(db_session, court) == []

    legit = await client.post("/api/v1/bookings", json=reserve_payload(court))
    assert legit.status_code == 201


@pytest.mark.asyncio
async def test_reserving_with_the_wrong_sport_is_rejected(client: AsyncClient, db_session, court):
    response = await client.post("/api/v1/bookings", json=reserve_payload(court, sport="tenis"))
    assert response.status_code == 400
    assert await slot_rows(db_session, court) == []


@pytest.mark.asyncio
async def test_sport_and_club_spellings_land_on_the_same_row(client: AsyncClient, db_session, club, court):
    first = await client.post(
        "/api/v1/bookings", json=reserve_payload(court, sport="PADEL", club=club.name, reserved_by="Ana")
    )
    assert first.status_code == 201
    assert first.json()["booking"]["sport"] == "padel"
    assert first.json()["booking"]["club"] == club.email

    second = await client.post("/api/v1/bookings", json=reserve_payload(court, reserved_by="Bruno"))
    assert second.status_code == 201

    rows = await slot_rows(db_session, court)
    assert len(rows) == 1
    assert rows[0].reserved_by == "Bruno"

    view = (await client.get("/api/v1/slots", params={"date": "2025-01-10"})).json()["slots"]
    slot = next(s for s in view if s["date"] == "2025-01-10" and s["time"] == "09:00")
    assert slot["real_id"] == rows[0].id


@pytest.mark.asyncio
async def test_reclaim_rewrites_legacy_club_name(db_session, club, court):
    db_session.add(Booking(
        sport="padel", date="2025-01-10", time="09:00", club=club.name, court_id=str(court.id),
        price=3000, reserved_by=None, reserved_email=None,
    ))
    await db_session.commit()

    booking, reclaimed = await booking_service.reserve_slot(
        db_session, sport="padel", date="2025-01-10", time="09:00", club=club.email,
        court_id=court.id, reserved_by="Ana", reserved_email="ana@example.com",
    )
    assert reclaimed is True
    assert booking.club == club.email


@pytest.mark.asyncio
async def test_registered_user_is_linked(client: AsyncClient, db_session, court):
    user = User(email="ana@example.com", first_name="Ana", last_name="Gomez", phone="221-000")
    db_session.add(user)
    await db_session.commit()

    payload = reserve_payload(court, reserved_email="ANA@example.com", reserved_phone=None)
    response = await client.post("/api/v1/bookings", json=payload)
    booking = response.json()["booking"]
    assert booking["user_id"] == user.id
    assert booking["reserved_phone"] == "221-000"


@pytest.mark.asyncio
async def test_cancel_keeps_the_row(client: AsyncClient, db_session, court, auth_headers):
    booking_id = (await client.post("/api/v1/bookings", json=reserve_payload(court))).json()["booking"]["id"]

    response = await client.patch(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["reserved_by"] is None
    assert data["reserved_email"] is None
    assert data["paid"] is False
    assert data["price"] == 3000

    rows = await slot_rows(db_session, court)
    assert len(rows) == 1
    assert not rows[0].is_occupied


@pytest.mark.asyncio
async def test_operator_actions_require_token(client: AsyncClient, court):
    booking_id = (await client.post("/api/v1/bookings", json=reserve_payload(court))).json()["booking"]["id"]

    assert (await client.patch(f"/api/v1/bookings/{booking_id}/cancel")).status_code == 401
    assert (await client.patch(f"/api/v1/bookings/{booking_id}/mark-paid")).status_code == 401
    bad = {"Authorization": "Bearer not-a-jwt"}
    assert (await client.patch(f"/api/v1/bookings/{booking_id}/mark-paid", headers=bad)).status_code == 401


@pytest.mark.asyncio
async def test_other_club_cannot_touch_booking(client: AsyncClient, court, other_club_headers):
    booking_id = (await client.post("/api/v1/bookings", json=reserve_payload(court))).json()["booking"]["id"]

    response = await client.patch(f"/api/v1/bookings/{booking_id}/cancel", headers=other_club_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_mark_paid(client: AsyncClient, court, auth_headers):
    booking_id = (await client.post("/api/v1/bookings", json=reserve_payload(court))).json()["booking"]["id"]

    response = await client.patch(f"/api/v1/bookings/{booking_id}/mark-paid", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["paid"] is True


@pytest.mark.asyncio
async def test_slot_cache_is_cleared_after_writes_are_committed(
    client: AsyncClient, db_session, court, auth_headers, monkeypatch
):
    open_transaction = []

    async def record_invalidation():
        open_transaction.append(db_session.in_transaction())

    monkeypatch.setattr("turnolibre.api.routes.bookings.invalidate_slot_cache", record_invalidation)

    booking_id = (await client.post("/api/v1/bookings", json=reserve_payload(court))).json()["booking"]["id"]
    await client.patch(f"/api/v1/bookings/{booking_id}/mark-paid", headers=auth_headers)
    await client.patch(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers)

    assert open_transaction == [False, False, False]


@pytest.mark.asyncio
async def test_mark_paid_unknown_booking(db_session):
    with pytest.raises(NotFoundError):
        await booking_service.mark_paid(db_session, 999)


@pytest.mark.asyncio
async def test_payment_link_needs_club_credential(db_session, cash_only_club, processor):
    booking = Booking(
        sport="tenis", date="2025-01-10", time="10:00", club=cash_only_club.email,
        court_id="1", price=2000, reserved_by="Ana", reserved_email="ana@example.com",
    )
    db_session.add(booking)
    await db_session.commit()

    with pytest.raises(ConflictError):
        await booking_service.payment_link(db_session, processor, booking.id)
    assert processor.checkouts == []


@pytest.mark.asyncio
async def test_payment_link(client: AsyncClient, court, processor):
    booking_id = (await client.post("/api/v1/bookings", json=reserve_payload(court))).json()["booking"]["id"]

    response = await client.post(f"/api/v1/bookings/{booking_id}/payment-link")
    assert response.status_code == 200
    assert response.json()["checkout_url"] == f"https://checkout.test/{booking_id}"


@pytest.mark.asyncio
async def test_club_bookings_sorted_chronologically(client: AsyncClient, db_session, club, court, auth_headers):
    for date, time in (("2025-01-10", "11:00"), ("2025-01-08", "10:00"), ("2025-01-10", "08:00")):
        await booking_service.reserve_slot(
            db_session, sport="padel", date=date, time=time, club=club.email,
            court_id=court.id, reserved_by="Ana", reserved_email="ana@example.com",
        )
    # A row written before dates were normalized, keyed by the club's name
    db_session.add(Booking(
        sport="padel", date="09/01/2025", time="09:00", club=club.name, court_id=str(court.id),
        price=3000, reserved_by="Legacy", reserved_email="legacy@example.com",
    ))
    vacant, _ = await booking_service.reserve_slot(
        db_session, sport="padel", date="2025-01-06", time="08:00", club=club.email,
        court_id=court.id, reserved_by="Gone", reserved_email="gone@example.com",
    )
    await booking_service.cancel_booking(db_session, vacant.id)
    await db_session.commit()

    response = await client.get(f"/api/v1/bookings/club/{club.email}", headers=auth_headers)
    assert response.status_code == 200
    rows = response.json()
    assert [(r["date"], r["time"]) for r in rows] == [
        ("2025-01-08", "10:00"),
        ("09/01/2025", "09:00"),
        ("2025-01-10", "08:00"),
        ("2025-01-10", "11:00"),
    ]
    assert all(r["court_name"] == "Cancha 1" for r in rows)


@pytest.mark.asyncio
async def test_club_bookings_forbidden_for_other_club(client: AsyncClient, club, other_club_headers):
    response = await client.get(f"/api/v1/bookings/club/{club.email}", headers=other_club_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_user_reservations_lists_bookings_and_pending_holds(
    client: AsyncClient, db_session, court, sender, clock
):
    await client.post("/api/v1/bookings", json=reserve_payload(court))
    await hold_service.create_hold(
        db_session, sender, clock, court_id=court.id, date="2025-01-08", time="11:00", email="Ana@Example.com"
    )
    cancelled = await hold_service.create_hold(
        db_session, sender, clock, court_id=court.id, date="2025-01-08", time="10:00", email="ana@example.com"
    )
    await hold_service.cancel_hold(db_session, cancelled.id)
    await db_session.commit()

    response = await client.get("/api/v1/bookings/user/ana@example.com")
    assert response.status_code == 200
    rows = response.json()
    assert sorted(r["kind"] for r in rows) == ["CONFIRMED", "PENDING"]
    assert all(r["club_name"] == "Club Uno" for r in rows)

    pending = next(r for r in rows if r["kind"] == "PENDING")
    assert pending["time"] == "11:00"
    assert pending["expires_at"] is not None


@pytest.mark.asyncio
async def test_confirmed_hold_and_direct_reserve_share_the_slot_row(db_session, court, sender, clock):
    hold = await hold_service.create_hold(
        db_session, sender, clock, court_id=court.id, date="2025-01-10", time="09:00", email="ana@example.com"
    )
    await hold_service.confirm_hold(db_session, clock, hold.id, hold.code)
    await booking_service.reserve_slot(
        db_session, sport="padel", date="2025-01-10", time="09:00", club=court.club_email,
        court_id=court.id, reserved_by="Bruno", reserved_email="bruno@example.com",
    )
    await db_session.commit()

    rows = await slot_rows(db_session, court)
    assert len(rows) == 1
    assert rows[0].reserved_by == "Bruno"
    count = (await db_session.execute(
        select(func.count(Hold.id)).where(Hold.status == HoldStatus.CONFIRMED.value)
    )).scalar_one()
    assert count == 1
