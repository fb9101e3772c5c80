"""
Order service error taxonomy

Each error carries the HTTP status it is rendered with.
"""
from storefront.db.database import classify_db_error
from typing import Optional


class OrderServiceError(Exception):
    """Base class for errors surfaced to API callers"""
    status_code = 500
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OrderServiceError):
    """Malformed order request"""
    status_code = 400


class ProductNotFound(OrderServiceError):
    """A requested product is missing or inactive"""
    status_code = 400

    def __init__(self, message: str = "One or more products not found"):
        super().__init__(message)


class InsufficientStock(OrderServiceError):
    """Requested quantity exceeds available stock"""
    status_code = 400

    def __init__(self, product_id: int, product_name: Optional[str] = None):
        self.product_id = product_id
        self.product_name = product_name
        super().__init__(f"Insufficient stock for product: {product_name or product_id}")


class ConflictError(OrderServiceError):
    """Serialization failure or deadlock; safe to retry"""
    status_code = 409
    retryable = True


class LockTimeout(OrderServiceError):
    """Gave up waiting on a product row lock; safe to retry"""
    status_code = 503
    retryable = True


class OrderNotFound(OrderServiceError):
    status_code = 404

    def __init__(self, message: str = "Order not found"):
        super().__init__(message)


class InvalidStatusTransition(OrderServiceError):
    status_code = 409


class PermissionDenied(OrderServiceError):
    status_code = 403


class InternalError(OrderServiceError):
    status_code = 500


class NotificationError(Exception):
    """Outbound notification could not be delivered"""


def from_storage_error(error: Exception, failure_message: str) -> OrderServiceError:
    """Translate a storage failure into the retryable or internal error it represents"""
    kind = classify_db_error(error)
    if kind == "lock_timeout":
        return LockTimeout("Timed out waiting for a locked row, please retry")
    if kind == "conflict":
        return ConflictError("Concurrent update conflict, please retry")
    return InternalError(failure_message)
