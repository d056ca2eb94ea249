# Utilities Module
from .validators import (
    GUEST_USER_ID,
    ValidationResult,
    resolve_user_id,
    validate_product_data,
    validate_product_id,
    validate_quantity,
    validate_user_id,
)

__all__ = [
    "GUEST_USER_ID",
    "ValidationResult",
    "resolve_user_id",
    "validate_product_data",
    "validate_product_id",
    "validate_quantity",
    "validate_user_id",
]
