"""Who is performing an operation."""

from dataclasses import dataclass

STAFF_ROLES = frozenset({"admin", "staff"})


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: str = "customer"

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def label(self) -> str:
        return f"{self.role}:{self.user_id}"


SYSTEM = Actor(user_id="system", role="system")
