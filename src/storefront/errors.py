"""Business errors raised by the storefront core.

Each error carries a stable ``code`` that callers can branch on and an
``http_status`` used by the API layer. Bad input shape is reported with
``protean.exceptions.ValidationError`` instead.
"""


class StorefrontError(Exception):
    """Base class for all storefront business errors."""

    code = "storefront_error"
    http_status = 400
    retryable = False

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def reason(self) -> str | None:
        return self.details.get("reason")


class NotFoundError(StorefrontError):
    code = "not_found"
    http_status = 404

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind.capitalize()} {identifier} not found", kind=kind, identifier=identifier)


class InsufficientStockError(StorefrontError):
    code = "insufficient_stock"
    http_status = 409

    def __init__(self, product_id: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_id}: {available} available, {requested} requested",
            product_id=product_id,
            available=available,
            requested=requested,
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class CouponRejectedError(StorefrontError):
    code = "coupon_rejected"

    def __init__(self, reason: str, message: str):
        super().__init__(message, reason=reason)


class SignatureInvalidError(StorefrontError):
    code = "signature_invalid"


class PaymentNotCapturedError(StorefrontError):
    code = "payment_not_captured"


class AmountMismatchError(StorefrontError):
    code = "amount_mismatch"

    def __init__(self, expected: int, received: int, currency: str):
        super().__init__(
            f"Payment amount {received} does not match order total {expected} {currency}",
            expected=expected,
            received=received,
            currency=currency,
        )


class IllegalTransitionError(StorefrontError):
    code = "illegal_transition"
    http_status = 409

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot transition from {current} to {target}",
            current=current,
            target=target,
        )


class UnauthorizedError(StorefrontError):
    code = "forbidden"
    http_status = 403


class GatewayRejectedError(StorefrontError):
    """The upstream service answered but refused the request."""

    code = "upstream_rejected"
    http_status = 502


class UpstreamUnavailableError(StorefrontError):
    """Timeout, connection failure or 5xx from an upstream service."""

    code = "upstream_unavailable"
    http_status = 503
    retryable = True
