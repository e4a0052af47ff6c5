"""
Error taxonomy shared by the datastore, checkout and HTTP layers.

Every error carries the HTTP status the API answers with; the API turns any
StorefrontError into a ``{"error": message}`` payload.
"""

from __future__ import annotations

from typing import Optional


class StorefrontError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ---------------------------
# 400 - malformed or missing input
# ---------------------------


class ValidationError(StorefrontError):
    status_code = 400


class UnsupportedPaymentMethod(ValidationError):
    def __init__(self, method) -> None:
        super().__init__(
            f"Unsupported payment method: {method!r}. Only 'cod' is accepted."
        )
        self.method = method


class InvalidCartLine(ValidationError):
    pass


class MissingAddress(ValidationError):
    def __init__(self) -> None:
        super().__init__("Delivery address is required.")


class InvalidStatus(ValidationError):
    pass


# ---------------------------
# 401 / 403 - identity
# ---------------------------


class AuthenticationError(StorefrontError):
    status_code = 401


class UnauthenticatedOrIncompleteIdentity(AuthenticationError):
    def __init__(self, message: str = "Authentication required.") -> None:
        super().__init__(message)


class AuthorizationError(StorefrontError):
    status_code = 403

    def __init__(self, message: str = "Forbidden: Admin access required") -> None:
        super().__init__(message)


# ---------------------------
# 404 - unknown ids
# ---------------------------


class NotFoundError(StorefrontError):
    status_code = 404


class UnknownProduct(NotFoundError):
    def __init__(self, product_id: int) -> None:
        super().__init__(f"Product {product_id} not found.")
        self.product_id = product_id


class OrderNotFound(NotFoundError):
    def __init__(self, order_id: int) -> None:
        super().__init__("Order not found")
        self.order_id = order_id


class UserNotFound(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__("User not found")
        self.user_id = user_id


# ---------------------------
# stock conflicts, reported as 400 with detail
# ---------------------------


class ConflictError(StorefrontError):
    status_code = 400


class InsufficientStock(ConflictError):
    def __init__(
        self, product_id: int, name: Optional[str], available: int, requested: int
    ) -> None:
        label = name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label}: available={available}, requested={requested}"
        )
        self.product_id = product_id
        self.name = name
        self.available = available
        self.requested = requested


# ---------------------------
# 500 - server side
# ---------------------------


class TransientStoreError(StorefrontError):
    """Database busy or unavailable; the caller may retry."""

    status_code = 500


class InternalError(StorefrontError):
    status_code = 500

    def __init__(self, message: str = "Internal Server Error") -> None:
        super().__init__(message)
