"""Faker-based data generators for Locust load test scenarios.

Payloads match the field names of the API's pydantic request schemas and
use postcodes the delivery estimator recognises.
"""

import random
import uuid

from faker import Faker

fake = Faker("en_IN")

METRO_PINCODES = ["110001", "400020", "560034", "600017", "700091", "500081"]
CATEGORIES = ["apparel", "books", "electronics", "home"]


def unique_user_id() -> str:
    return f"user-lt-{uuid.uuid4().hex[:10]}"


def product_ids(count: int) -> list[str]:
    return [f"lt-prod-{index:03d}" for index in range(count)]


def stock_data(index: int) -> dict:
    return {
        "name": fake.catch_phrase()[:60],
        "price": random.choice([19900, 49900, 99900, 149900]),
        "available": 1_000_000,
        "sku": f"LT-{index:04d}",
        "category": random.choice(CATEGORIES),
    }


def address_data() -> dict:
    return {
        "name": fake.name()[:100],
        "line1": fake.street_address()[:255],
        "city": fake.city()[:100],
        "state": fake.state()[:100],
        "postal_code": random.choice(METRO_PINCODES),
        "phone": f"9{random.randint(100000000, 999999999)}",
    }


def order_data(products: list[str]) -> dict:
    chosen = random.sample(products, k=random.randint(1, min(3, len(products))))
    return {
        "items": [{"product_id": pid, "quantity": random.randint(1, 3)} for pid in chosen],
        "shipping_address": address_data(),
        "gift_wrap": random.random() < 0.2,
    }


def cancel_reason() -> str:
    return random.choice(["Ordered by mistake", "Found a better price", "Delivery too slow"])
