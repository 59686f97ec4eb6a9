"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags contention   # Many players, one slot
  locust -f locustfile.py --tags throughput   # Weekly availability cache
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests

Expects a seeded club and court; override with env vars:
  LOAD_CLUB_EMAIL, LOAD_COURT_ID, LOAD_SPORT
"""

import os
import random
from datetime import date, timedelta

from locust import HttpUser, task, between, tag, events

CLUB_EMAIL = os.getenv("LOAD_CLUB_EMAIL", "club@example.com")
COURT_ID = os.getenv("LOAD_COURT_ID", "1")
SPORT = os.getenv("LOAD_SPORT", "padel")

# Every contention user targets this slot
CONTESTED_DATE = (date.today() + timedelta(days=7)).isoformat()
CONTESTED_TIME = "19:00"


def random_email():
    return f"load_{random.randint(10000, 99999)}@test.com"


def reserve_payload(slot_date=CONTESTED_DATE, slot_time=CONTESTED_TIME, **overrides):
    payload = {
        "sport": SPORT,
        "date": slot_date,
        "time": slot_time,
        "club": CLUB_EMAIL,
        "court_id": COURT_ID,
        "reserved_by": "Load Test",
        "reserved_email": random_email(),
        "payment_method": "cash",
    }
    payload.update(overrides)
    return payload


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Contested slot: court {COURT_ID} on {CONTESTED_DATE} {CONTESTED_TIME}")
    print("=" * 60)


class ContentionUser(HttpUser):
    """
    TEST 1: Contention - every user reserves the same slot

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM bookings WHERE court_id = '1' AND date = '...' AND time = '19:00';
    Should be exactly 1
    """
    wait_time = between(0, 0.1)

    @tag("contention")
    @task
    def reserve_same_slot(self):
        with self.client.post(
            "/api/v1/bookings",
            json=reserve_payload(),
            name="/api/v1/bookings [contested]",
            catch_response=True,
        ) as resp:
            # 201 under the overwrite policy, 409 under reject
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("contention")
    @task
    def hold_same_slot(self):
        with self.client.post(
            "/api/v1/holds",
            json={
                "court_id": int(COURT_ID),
                "date": CONTESTED_DATE,
                "time": CONTESTED_TIME,
                "email": random_email(),
            },
            catch_response=True,
        ) as resp:
            # Holds never conflict; only confirmation does
            if resp.status_code == 201:
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - availability cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again

    Compare avg response time, requests/sec and P95/P99 latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def week_availability(self):
        week = date.today() + timedelta(weeks=random.randint(0, 3))
        self.client.get(
            f"/api/v1/slots?date={week.isoformat()}",
            name="/api/v1/slots [cached]",
        )

    @tag("throughput", "read")
    @task(3)
    def club_courts(self):
        self.client.get(f"/api/v1/courts/club/{CLUB_EMAIL}", name="/api/v1/courts/club/{email}")

    @tag("throughput", "read")
    @task(2)
    def list_clubs(self):
        self.client.get("/api/v1/clubs")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_court(self):
        with self.client.post(
            "/api/v1/bookings",
            json=reserve_payload(court_id="999999"),
            catch_response=True,
        ) as resp:
            self._expect(resp, (404,))

    @tag("edge")
    @task
    def bad_date_format(self):
        with self.client.post(
            "/api/v1/bookings",
            json=reserve_payload(slot_date="31/12/2025"),
            catch_response=True,
        ) as resp:
            self._expect(resp, (400, 422))

    @tag("edge")
    @task
    def bad_slots_date(self):
        with self.client.get("/api/v1/slots?date=yesterday", catch_response=True) as resp:
            self._expect(resp, (400,))

    @tag("edge")
    @task
    def wrong_confirmation_code(self):
        with self.client.get("/api/v1/holds/999999/confirm/000000", catch_response=True) as resp:
            self._expect(resp, (400, 404, 409, 410))

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings",
            data="not json at all",
            headers={"Content-Type": "application/json"},
            catch_response=True,
        ) as resp:
            self._expect(resp, (400, 422))

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/courts",
            json={"name": "x", "sport": SPORT, "price": 1, "open_time": "08:00",
                  "close_time": "09:00", "club_email": CLUB_EMAIL},
            catch_response=True,
        ) as resp:
            self._expect(resp, (401,))

    @tag("edge")
    @task
    def replayed_webhook(self):
        with self.client.post(
            "/api/v1/payments/webhook",
            json={"type": "payment", "data": {"id": "load-replay"}},
            catch_response=True,
        ) as resp:
            # Only the first delivery can fail upstream; replays are duplicates
            self._expect(resp, (200, 500))


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing the week
      - Some reservations
      - Players checking their own list
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.email = random_email()

    @task(50)
    def browse_week(self):
        self.client.get(f"/api/v1/slots?club={CLUB_EMAIL}", name="/api/v1/slots?club")

    @task(10)
    def reserve_random_slot(self):
        slot_date = (date.today() + timedelta(days=random.randint(1, 14))).isoformat()
        slot_time = f"{random.randint(8, 22):02d}:00"
        self.client.post(
            "/api/v1/bookings",
            json=reserve_payload(slot_date, slot_time, reserved_email=self.email),
            name="/api/v1/bookings [random]",
        )

    @task(5)
    def my_reservations(self):
        self.client.get(f"/api/v1/bookings/user/{self.email}", name="/api/v1/bookings/user/{email}")
