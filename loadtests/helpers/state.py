"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance keeps its own state; nothing is shared across
users.
"""

from dataclasses import dataclass


@dataclass
class CheckoutState:
    """Tracks one simulated customer's order."""

    user_id: str
    order_id: str | None = None
    grand_total: int = 0
    status: str | None = None
