"""Checkout load test scenarios.

A customer journey that places an order, reads it back, lists their
orders and cancels while the order is still pending. Stock is seeded
once per user through the staff product endpoint.
"""

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import cancel_reason, order_data, product_ids, stock_data, unique_user_id
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import CheckoutState

PRODUCTS = product_ids(20)
STAFF_HEADERS = {"X-User-Id": "staff-loadtest", "X-User-Role": "staff"}


class CheckoutJourney(SequentialTaskSet):
    """Place Order -> Get Order -> List Orders -> Cancel."""

    def on_start(self):
        self.state = CheckoutState(user_id=unique_user_id())
        self.headers = {"X-User-Id": self.state.user_id, "X-User-Role": "customer"}

    @task
    def place_order(self):
        with self.client.post(
            "/orders",
            json=order_data(PRODUCTS),
            headers=self.headers,
            catch_response=True,
            name="POST /orders",
        ) as resp:
            if resp.status_code == 201:
                body = resp.json()
                self.state.order_id = body["order_id"]
                self.state.grand_total = body["grand_total"]
                self.state.status = body["status"]
            else:
                resp.failure(f"Place order failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def get_order(self):
        with self.client.get(
            f"/orders/{self.state.order_id}",
            headers=self.headers,
            catch_response=True,
            name="GET /orders/{id}",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Get order failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def list_orders(self):
        with self.client.get(
            "/orders",
            headers=self.headers,
            catch_response=True,
            name="GET /orders",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"List orders failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def cancel_order(self):
        with self.client.post(
            f"/orders/{self.state.order_id}/cancel",
            json={"reason": cancel_reason()},
            headers=self.headers,
            catch_response=True,
            name="POST /orders/{id}/cancel",
        ) as resp:
            if resp.status_code == 200:
                self.state.status = resp.json()["status"]
            else:
                resp.failure(f"Cancel order failed: {resp.status_code} - {extract_error_detail(resp)}")
        self.interrupt()


class CheckoutUser(HttpUser):
    wait_time = between(0.5, 2)
    tasks = [CheckoutJourney]

    def on_start(self):
        for index, product_id in enumerate(PRODUCTS):
            self.client.put(
                f"/products/{product_id}/stock",
                json=stock_data(index),
                headers=STAFF_HEADERS,
                name="PUT /products/{id}/stock",
            )
