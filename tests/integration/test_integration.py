"""
Smoke tests against a running marketplace deployment.

Set MARKETPLACE_BASE_URL (e.g. http://localhost:8000) and load the demo data
with `python -m marketplace.seed` before running.
"""

import os
import time

import httpx
import pytest

BASE_URL = os.environ.get("MARKETPLACE_BASE_URL")
HEALTH_CHECK_RETRIES = 30
HEALTH_CHECK_DELAY = 2
DEMO_PASSWORD = "123456"

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not BASE_URL, reason="MARKETPLACE_BASE_URL not set"),
]


class TestMarketplaceSmoke:
    """End-to-end checks using the seeded demo accounts"""

    @classmethod
    def setup_class(cls):
        cls.client = httpx.Client(base_url=BASE_URL, timeout=30.0)
        cls.wait_for_service()
        cls.customer = cls.login("customer@example.com")
        cls.owner = cls.login("pizza@example.com")

    @classmethod
    def teardown_class(cls):
        cls.client.close()

    @classmethod
    def wait_for_service(cls):
        for attempt in range(HEALTH_CHECK_RETRIES):
            try:
                if cls.client.get("/health").status_code == 200:
                    return
            except httpx.HTTPError as e:
                print(f"Attempt {attempt + 1}/{HEALTH_CHECK_RETRIES}: {e}")
            time.sleep(HEALTH_CHECK_DELAY)
        raise RuntimeError("Service failed to start within timeout period")

    @classmethod
    def login(cls, email):
        response = cls.client.post("/auth/token", json={"email": email, "password": DEMO_PASSWORD})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    def test_health_endpoints(self):
        for endpoint in ("/health", "/health/live", "/health/ready"):
            response = self.client.get(endpoint)
            assert response.status_code in [200, 503]
            assert "status" in response.json()

    def test_catalog_lists_seeded_restaurants(self):
        response = self.client.get("/api/restaurants")
        assert response.status_code == 200
        slugs = {r["slug"] for r in response.json()}
        assert "bella-napoli-pizzeria" in slugs

    def test_order_round_trip(self):
        restaurant = self.client.get("/api/restaurants/bella-napoli-pizzeria").json()
        checkout = self.client.get(
            f"/api/checkout/data?restaurant_id={restaurant['id']}", headers=self.customer
        ).json()

        response = self.client.post(
            "/api/orders",
            json={
                "restaurant_id": restaurant["id"],
                "items": [{"product_id": restaurant["products"][0]["id"], "quantity": 1}],
                "delivery_type": "PICKUP",
                "payment_method_id": checkout["payment_methods"][0]["id"],
            },
            headers=self.customer,
        )
        assert response.status_code == 201
        order_id = response.json()["order_id"]

        polled = self.client.get("/api/restaurant/orders/new", headers=self.owner).json()
        assert polled["count"] >= 1

        response = self.client.post(f"/api/restaurant/orders/{order_id}/confirm", headers=self.owner)
        assert response.status_code == 200
        assert response.json()["order"]["status"] == "CONFIRMED"

    def test_error_handling(self):
        assert self.client.get("/api/orders").status_code == 401
        assert self.client.get("/api/admin/users", headers=self.customer).status_code == 403
        assert self.client.get("/api/restaurants/does-not-exist").status_code == 404

    def test_request_tracking(self):
        response = self.client.get("/api/categories")
        assert response.status_code == 200
        assert response.headers.get("X-Request-ID")
