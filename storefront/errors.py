"""Exceptions raised by services and converted to responses at the API boundary."""
from typing import Optional


class StorefrontError(Exception):
    """Base error carrying a user-facing message and an HTTP status."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotConfiguredError(StorefrontError):
    """A required credential or endpoint is missing from settings."""


class UpstreamError(StorefrontError):
    """An external API answered with an error or could not be reached."""

    status_code = 502


class QuotaExceededError(UpstreamError):
    """The AI gateway refused the call for rate-limit or billing reasons."""

    RATE_LIMITED = "rate_limited"
    PAYMENT_REQUIRED = "payment_required"

    def __init__(self, kind: str, message: str):
        status = 429 if kind == self.RATE_LIMITED else 402
        super().__init__(message, status_code=status)
        self.kind = kind


class GenerationError(StorefrontError):
    """The generator answered but without the expected structured content."""


class ShopifyUserError(StorefrontError):
    """Shopify rejected a mutation with userErrors."""

    status_code = 422


class CartError(StorefrontError):
    """Cart operation failure."""


class CartNotFoundError(CartError):
    """The cart id is unknown or expired on the commerce backend."""

    status_code = 404

    def __init__(self, message: str = "Cart not found"):
        super().__init__(message)


class CartAPIError(CartError):
    """The cart proxy could not complete a request."""
