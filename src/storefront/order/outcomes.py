"""Typed results returned by the order orchestrator."""

from dataclasses import dataclass, field

from storefront.errors import StorefrontError
from storefront.gateway.port import PaymentIntent
from storefront.order.order import Order


@dataclass(frozen=True)
class OrderError:
    """A failure reported to the caller.

    ``code`` is stable and safe to branch on; ``message`` is for people.
    """

    code: str
    message: str
    reason: str | None = None
    retryable: bool = False
    http_status: int = 400
    details: dict = field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: StorefrontError) -> "OrderError":
        return cls(
            code=exc.code,
            message=exc.message,
            reason=exc.reason,
            retryable=exc.retryable,
            http_status=exc.http_status,
            details={key: value for key, value in exc.details.items() if key != "reason"},
        )

    @classmethod
    def validation(cls, messages: dict) -> "OrderError":
        text = "; ".join(f"{name}: {', '.join(str(m) for m in errors)}" for name, errors in messages.items())
        return cls(code="validation_error", message=text, details=dict(messages))

    @classmethod
    def unavailable(cls) -> "OrderError":
        return cls(
            code="temporarily_unavailable",
            message="The service is temporarily unavailable, please retry",
            retryable=True,
            http_status=503,
        )


@dataclass(frozen=True)
class OrderOutcome:
    success: bool
    order: Order | None = None
    events: tuple = ()
    error: OrderError | None = None
    payment_intent: PaymentIntent | None = None
    refund_id: str | None = None
    duplicate: bool = False

    @classmethod
    def ok(cls, order, events=(), **extra) -> "OrderOutcome":
        return cls(success=True, order=order, events=tuple(events), **extra)

    @classmethod
    def failed(cls, error: OrderError) -> "OrderOutcome":
        return cls(success=False, error=error)


@dataclass(frozen=True)
class BulkItemResult:
    order_id: str
    result: str  # updated | unchanged | failed
    error: OrderError | None = None


@dataclass(frozen=True)
class BulkOutcome:
    success: bool
    results: tuple = ()
    events: tuple = ()
    error: OrderError | None = None

    @classmethod
    def failed(cls, error: OrderError) -> "BulkOutcome":
        return cls(success=False, error=error)

    def count(self, result: str) -> int:
        return sum(1 for item in self.results if item.result == result)
