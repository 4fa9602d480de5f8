"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Overbooking under contention
  locust -f locustfile.py --tags throughput   # Cached read paths
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests
"""

import random
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag

# Shared state
EVENT_IDS = []
CONCURRENCY_EVENT_ID = None
CONCURRENCY_SEATS = 10


def random_email():
    return f"load_{random.randint(100000, 999999)}@loadtest.io"


def future_date(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def register(client):
    """Create a throwaway user and return its id (None on failure)."""
    resp = client.post(
        "/api/v1/users/",
        json={"name": "Load Tester", "email": random_email()},
        name="/api/v1/users/",
    )
    if resp.status_code == 201:
        return resp.json()["id"]
    return None


def expect(resp, *codes):
    if resp.status_code in codes:
        resp.success()
    else:
        resp.failure(f"Expected {codes}, got {resp.status_code}")


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> 10 seats

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      GET /api/v1/events/{id}/availability  ->  booked_seats == 10, never more
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        global CONCURRENCY_EVENT_ID
        self.user_id = register(self.client)

        if not CONCURRENCY_EVENT_ID:
            resp = self.client.post(
                "/api/v1/events/",
                json={
                    "title": "Concurrency Test Event",
                    "description": f"{CONCURRENCY_SEATS} seats only",
                    "event_date": future_date(),
                    "total_seats": CONCURRENCY_SEATS,
                },
            )
            if resp.status_code == 201:
                CONCURRENCY_EVENT_ID = resp.json()["id"]

    @tag("concurrency")
    @task
    def book_limited_seats(self):
        """All users fight for the same seats."""
        if not CONCURRENCY_EVENT_ID or not self.user_id:
            return

        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": CONCURRENCY_EVENT_ID, "user_id": self.user_id, "seats_booked": 1},
            catch_response=True,
        ) as resp:
            # 409: sold out, expected
            expect(resp, 201, 409)


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice, once with a warm cache and once after FLUSHALL on the cache
    Redis, then compare avg response time and P95/P99 latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        resp = self.client.get("/api/v1/events/", name="/api/v1/events/ [cached]")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("throughput", "read")
    @task(3)
    def get_event_detail(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    @tag("throughput", "read")
    @task(5)
    def get_availability(self):
        if EVENT_IDS:
            self.client.get(
                f"/api/v1/events/{random.choice(EVENT_IDS)}/availability",
                name="/api/v1/events/{id}/availability",
            )

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

    def on_start(self):
        self.user_id = register(self.client) or 1

    def _book(self, body, *codes):
        with self.client.post("/api/v1/bookings/", json=body, catch_response=True) as resp:
            expect(resp, *codes)

    @tag("edge")
    @task
    def invalid_event_id(self):
        self._book({"event_id": 999999, "user_id": self.user_id, "seats_booked": 1}, 404)

    @tag("edge")
    @task
    def invalid_user_id(self):
        if EVENT_IDS:
            self._book({"event_id": random.choice(EVENT_IDS), "user_id": 999999, "seats_booked": 1}, 404, 409)

    @tag("edge")
    @task
    def negative_seats(self):
        self._book({"event_id": 1, "user_id": self.user_id, "seats_booked": -5}, 422)

    @tag("edge")
    @task
    def zero_seats(self):
        self._book({"event_id": 1, "user_id": self.user_id, "seats_booked": 0}, 422)

    @tag("edge")
    @task
    def huge_seats(self):
        self._book({"event_id": 1, "user_id": self.user_id, "seats_booked": 999999}, 400, 404, 409)

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/",
            data="not json at all",
            headers={"Content-Type": "application/json"},
            catch_response=True,
        ) as resp:
            expect(resp, 422)

    @tag("edge")
    @task
    def cancel_unknown_booking(self):
        with self.client.delete("/api/v1/bookings/999999", catch_response=True) as resp:
            expect(resp, 404)


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing
      - Some bookings and cancellations
      - Rare creates
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.user_id = register(self.client)
        self.booking_ids = []

    @task(50)
    def browse_events(self):
        resp = self.client.get("/api/v1/events/")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @task(20)
    def view_event(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    @task(10)
    def book_seats(self):
        if not (EVENT_IDS and self.user_id):
            return
        with self.client.post(
            "/api/v1/bookings/",
            json={
                "event_id": random.choice(EVENT_IDS),
                "user_id": self.user_id,
                "seats_booked": random.randint(1, 3),
            },
            catch_response=True,
        ) as resp:
            expect(resp, 201, 409)
            if resp.status_code == 201:
                self.booking_ids.append(resp.json()["id"])

    @task(3)
    def cancel_booking(self):
        if self.booking_ids:
            booking_id = self.booking_ids.pop(random.randrange(len(self.booking_ids)))
            self.client.delete(f"/api/v1/bookings/{booking_id}", name="/api/v1/bookings/{id}")

    @task(2)
    def read_notifications(self):
        self.client.get("/api/v1/notifications/", params={"read": "false"})

    @task(3)
    def create_event(self):
        resp = self.client.post(
            "/api/v1/events/",
            json={
                "title": f"Event {random.randint(1, 10000)}",
                "description": "Test event",
                "event_date": future_date(random.randint(1, 90)),
                "total_seats": random.randint(10, 500),
            },
        )
        if resp.status_code == 201:
            EVENT_IDS.append(resp.json()["id"])
