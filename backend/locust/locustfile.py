"""
Locust Load Test Suite for order placement

Seed an event with a small ticket type (and optionally a room with seats),
then point the scenarios at it:

  export LOCUST_EVENT_ID=1 LOCUST_TICKET_TYPE_ID=1 LOCUST_SEAT_IDS=1,2,3,4
  locust -f locustfile.py --tags oversell   # Everyone fights for the same stock
  locust -f locustfile.py --tags seats      # Everyone fights for the same seats
  locust -f locustfile.py --tags read       # Cached availability reads
  locust -f locustfile.py --tags edge       # Bad input
  locust -f locustfile.py                   # All tests

Tokens are minted locally with SECRET_KEY (same value as the API), since
issuing them belongs to the auth service.

After an oversell run, verify:
  SELECT quantity_sold, quantity_total FROM ticket_types WHERE id = X;
  SELECT COUNT(*) FROM tickets WHERE ticket_type_id = X;
Both counts must match and never exceed quantity_total.
"""

import os
import random
from datetime import datetime, timezone, timedelta

import jwt
from locust import HttpUser, task, between, tag

SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key-change-in-production")
EVENT_ID = int(os.getenv("LOCUST_EVENT_ID", "1"))
TICKET_TYPE_ID = int(os.getenv("LOCUST_TICKET_TYPE_ID", "1"))
SEAT_IDS = [int(s) for s in os.getenv("LOCUST_SEAT_IDS", "").split(",") if s]
USER_ID_RANGE = (1, int(os.getenv("LOCUST_USER_COUNT", "500")))


def make_headers(user_id: int) -> dict:
    token = jwt.encode(
        {"sub": str(user_id), "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        SECRET_KEY,
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


class BuyerBase(HttpUser):
    abstract = True

    def on_start(self):
        self.user_id = random.randint(*USER_ID_RANGE)
        self.headers = make_headers(self.user_id)

    def _order(self, payload: dict, name: str):
        with self.client.post(
            "/api/v1/orders/",
            json=payload,
            headers=self.headers,
            name=name,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code in (409, 503):
                resp.success()  # Expected: sold out, cap reached, seat taken, contention
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class OversellUser(BuyerBase):
    """
    TEST 1: Oversell - many buyers, one small ticket type

    Run: locust -f locustfile.py --tags oversell -u 200 -r 50 --run-time 30s
    """
    wait_time = between(0, 0.1)

    @tag("oversell")
    @task
    def buy_one(self):
        self._order(
            {"items": [{"ticket_type_id": TICKET_TYPE_ID, "quantity": random.randint(1, 2)}]},
            name="/api/v1/orders/ [oversell]",
        )


class SeatRaceUser(BuyerBase):
    """
    TEST 2: Seat race - every buyer wants the same few seats

    Run: locust -f locustfile.py --tags seats -u 100 -r 50 --run-time 30s

    After test, verify no seat has two live tickets:
      SELECT seat_id, COUNT(*) FROM tickets
       WHERE event_id = X AND status <> 'cancelled' AND seat_id IS NOT NULL
       GROUP BY seat_id HAVING COUNT(*) > 1;
    """
    wait_time = between(0, 0.2)

    @tag("seats")
    @task
    def buy_seat(self):
        if not SEAT_IDS:
            return
        self._order(
            {
                "items": [{"ticket_type_id": TICKET_TYPE_ID, "quantity": 1}],
                "seat_ids": [random.choice(SEAT_IDS)],
            },
            name="/api/v1/orders/ [seat]",
        )


class ReaderUser(HttpUser):
    """
    TEST 3: Availability reads while a sale is running

    Run twice (with and without Redis) and compare p95 latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("read")
    @task(10)
    def availability(self):
        self.client.get(
            f"/api/v1/events/{EVENT_ID}/availability",
            name="/api/v1/events/{id}/availability",
        )

    @tag("read")
    @task(3)
    def seat_map(self):
        self.client.get(f"/api/v1/events/{EVENT_ID}/seats", name="/api/v1/events/{id}/seats")

    @tag("read")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(BuyerBase):
    """
    TEST 4: Edge cases - Bad input handling

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, payload, expected: tuple, headers=None, name="/api/v1/orders/ [edge]"):
        with self.client.post(
            "/api/v1/orders/",
            json=payload,
            headers=self.headers if headers is None else headers,
            name=name,
            catch_response=True,
        ) as resp:
            if resp.status_code in expected:
                resp.success()
            else:
                resp.failure(f"Expected {expected}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_ticket_type(self):
        self._expect({"items": [{"ticket_type_id": 999999, "quantity": 1}]}, (404,))

    @tag("edge")
    @task
    def negative_quantity(self):
        self._expect({"items": [{"ticket_type_id": TICKET_TYPE_ID, "quantity": -5}]}, (422,))

    @tag("edge")
    @task
    def empty_order(self):
        self._expect({"items": []}, (422,))

    @tag("edge")
    @task
    def huge_quantity(self):
        self._expect({"items": [{"ticket_type_id": TICKET_TYPE_ID, "quantity": 999999}]}, (409, 422))

    @tag("edge")
    @task
    def missing_auth(self):
        self._expect({"items": [{"ticket_type_id": TICKET_TYPE_ID, "quantity": 1}]}, (401,), headers={})
