"""Cart input validation (product payloads, quantities, user ids)."""
import math
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from lunchcart.errors import (
    ERROR_INVALID_QUANTITY,
    ERROR_USER_ID_EMPTY,
    ERROR_USER_ID_NOT_STRING,
    ERROR_USER_ID_TOO_LONG,
)

GUEST_USER_ID = "guest"

MAX_USER_ID_LENGTH = 50
MAX_PRODUCT_NAME_LENGTH = 100
MAX_PRICE = 999999
MIN_QUANTITY = 1
MAX_QUANTITY = 99

REQUIRED_PRODUCT_FIELDS = ("id", "name", "price")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation check; `value` holds the normalized input."""
    valid: bool
    value: Any = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.valid


def _invalid(message: str) -> ValidationResult:
    return ValidationResult(valid=False, message=message)


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a finite number from an int, float, Decimal or numeric string.

    Returns None for anything else (bools included).
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
    elif not isinstance(value, (int, float, Decimal)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _parse_integer(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, Decimal):
        try:
            return int(value) if value == value.to_integral_value() else None
        except (InvalidOperation, OverflowError):
            return None
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError:
            return None
    return None


def validate_user_id(user_id: Any) -> ValidationResult:
    """Check a user id is a non-empty string of at most 50 chars (trimmed)."""
    if not user_id or not isinstance(user_id, str):
        return _invalid(ERROR_USER_ID_NOT_STRING)
    trimmed = user_id.strip()
    if trimmed == "":
        return _invalid(ERROR_USER_ID_EMPTY)
    if len(trimmed) > MAX_USER_ID_LENGTH:
        return _invalid(ERROR_USER_ID_TOO_LONG)
    return ValidationResult(valid=True, value=trimmed)


def resolve_user_id(user_id: Any) -> str:
    """Validated user id, or the guest id when the input is invalid."""
    result = validate_user_id(user_id)
    return result.value if result.valid else GUEST_USER_ID


def validate_quantity(quantity: Any) -> ValidationResult:
    """Check a quantity is a whole number between 1 and 99."""
    parsed = _parse_integer(quantity)
    if parsed is None or parsed < MIN_QUANTITY or parsed > MAX_QUANTITY:
        return _invalid(ERROR_INVALID_QUANTITY)
    return ValidationResult(valid=True, value=parsed)


def validate_product_id(product_id: Any) -> bool:
    return isinstance(product_id, str) and product_id.strip() != ""


def validate_product_data(product: Any) -> ValidationResult:
    """
    Validate a product payload before it is added to a cart.

    Stops at the first violated rule and reports it; this is not the
    aggregating validator used by the catalog admin.

    Args:
        product: Mapping with at least id, name and price

    Returns:
        ValidationResult with a human-readable message
    """
    if not isinstance(product, Mapping):
        return _invalid("Invalid product data: product must be an object")

    for field in REQUIRED_PRODUCT_FIELDS:
        if product.get(field) is None:
            return _invalid(f"Invalid product data: missing required field '{field}'")

    if str(product["id"]).strip() == "":
        return _invalid("Invalid product data: id must be a non-empty string")

    name = str(product["name"]).strip()
    if name == "":
        return _invalid("Invalid product data: name must be a non-empty string")
    if len(name) > MAX_PRODUCT_NAME_LENGTH:
        return _invalid("Invalid product data: name must not exceed 100 characters")

    price = parse_number(product["price"])
    if price is None or price < 0 or price > MAX_PRICE:
        return _invalid(
            "Invalid product data: price must be a non-negative number and not exceed 999999"
        )

    image_url = product.get("image_url")
    if image_url and not isinstance(image_url, str):
        return _invalid("Invalid product data: image_url must be a string")

    if product.get("original_price") is not None:
        original_price = parse_number(product["original_price"])
        if original_price is None or original_price < 0 or original_price > MAX_PRICE:
            return _invalid("Invalid product data: original_price must be a non-negative number")

    if product.get("discount") is not None:
        discount = parse_number(product["discount"])
        if discount is None or discount < 0 or discount > 100:
            return _invalid("Invalid product data: discount must be a number between 0 and 100")

    return ValidationResult(valid=True, message="Product data is valid")
