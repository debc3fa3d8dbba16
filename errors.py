"""
Error taxonomy for the storefront.

Every error carries a short human-readable message that is safe to show to
the customer. main.py maps each class to an HTTP status.
"""
from typing import Optional


class StorefrontError(Exception):
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(StorefrontError):
    status_code = 401
    default_message = "Please login to continue"


class Forbidden(StorefrontError):
    status_code = 403
    default_message = "Admins only"


class ValidationError(StorefrontError):
    status_code = 422
    default_message = "Invalid input"

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Invalid value for '{field}'")


class NotFound(StorefrontError):
    status_code = 404
    default_message = "Not found"


class EmptyCart(StorefrontError):
    status_code = 409
    default_message = "Cart is empty"


class StoreError(StorefrontError):
    status_code = 503
    default_message = "The store is unavailable, please try again"
