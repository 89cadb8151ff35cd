"""
Custom domain exceptions for consistent error handling.

These exceptions are mapped to HTTP status codes by the exception handler
in main.py. Every error carries a `retryable` flag in its details so that
callers (buyers, the payment gateway) know whether repeating the request
can succeed.
"""
from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base class for all domain-specific errors."""
    retryable = False

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST, details: dict | None = None):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.details = {"retryable": self.retryable, **(details or {})}


class NotFoundError(DomainError):
    """Resource not found (404). Permanent unless a subclass says otherwise."""
    def __init__(self, resource_type: str, identifier: str, details: dict | None = None):
        message = f"{resource_type} not found: {identifier}"
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND, details=details)


class OrderNotVisibleError(NotFoundError):
    """
    A payment notification referenced an order that is not committed yet.

    Raised by the webhook reconciler when it races the checkout that created
    the order. The gateway must redeliver, so this is retryable.
    """
    retryable = True

    def __init__(self, external_reference: str):
        super().__init__("Order", external_reference, details={"transient": True})


class ValidationError(DomainError):
    """Validation error (400)."""
    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        if field:
            message = f"Validation error on {field}: {message}"
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class OutOfStockError(DomainError):
    """Not enough available stock to reserve a cart line (409)."""
    def __init__(self, product_id: int, requested: int, available: int | None = None):
        message = f"Product {product_id} is out of stock (requested {requested})"
        details = {"product_id": product_id, "requested": requested}
        if available is not None:
            details["available"] = available
        super().__init__(message, status_code=status.HTTP_409_CONFLICT, details=details)
        self.product_id = product_id


class GatewayError(DomainError):
    """Payment gateway call failed (502). The buyer may retry checkout."""
    retryable = True

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_502_BAD_GATEWAY, details=details)


class InvalidTransitionError(DomainError):
    """Order status change not allowed by the state graph (500)."""
    def __init__(self, external_reference: str, current: str, target: str):
        message = f"Order {external_reference} cannot move from {current} to {target}"
        super().__init__(
            message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"current": current, "target": target},
        )
        self.current = current
        self.target = target


class PersistenceError(DomainError):
    """Database unavailable or write failed (503)."""
    retryable = True

    def __init__(self, message: str = "Storage temporarily unavailable", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE, details=details)


class PermissionDeniedError(DomainError):
    """Permission denied (403)."""
    def __init__(self, message: str = "Permission denied", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN, details=details)


class UnauthorizedError(DomainError):
    """Unauthorized access (401)."""
    def __init__(self, message: str = "Unauthorized", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_401_UNAUTHORIZED, details=details)


class ConflictError(DomainError):
    """Resource conflict (409)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_409_CONFLICT, details=details)
