"""
Cart Errors

Exception taxonomy for the cart subsystem plus centralized error messages
to avoid string duplication across the facade, stores and API.
"""

# Validation errors
ERROR_INVALID_PRODUCT_ID = "Invalid product ID"
ERROR_INVALID_QUANTITY = "Invalid quantity: must be a whole number between 1 and 99"
ERROR_USER_ID_NOT_STRING = "Invalid user ID: must be a string"
ERROR_USER_ID_EMPTY = "Invalid user ID: cannot be empty"
ERROR_USER_ID_TOO_LONG = "Invalid user ID: cannot exceed 50 characters"

# Cart errors
ERROR_PRODUCT_NOT_IN_CART = "Product not found in cart"
ERROR_CART_STORAGE = "Failed to save cart to local storage"

# Remote API errors
ERROR_API_UNREACHABLE = "Cart API unreachable"
ERROR_API_TIMEOUT = "Cart API timed out"
ERROR_API_BAD_RESPONSE = "Cart API returned an unexpected response"


# Result error kinds reported in CartResult.error
KIND_VALIDATION = "validation"
KIND_NOT_FOUND = "not_found"
KIND_OPERATION_FAILED = "operation_failed"


class CartError(Exception):
    """Base class for cart subsystem errors."""

    kind = KIND_OPERATION_FAILED

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CartError):
    """Input rejected before any storage was touched."""

    kind = KIND_VALIDATION


class NotFoundError(CartError):
    """Operation targets a product that is not in the cart."""

    kind = KIND_NOT_FOUND


class TransientRemoteError(CartError):
    """Cart API call failed (network, timeout, HTTP status or body)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StorageError(CartError):
    """Local key-value store could not be read or written."""
