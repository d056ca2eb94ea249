"""Local key-value store access for carts."""
import json
import math
from decimal import Decimal
from typing import List

from lunchcart.db import KeyValueStorage, StorageKeys
from lunchcart.errors import ERROR_CART_STORAGE, StorageError
from lunchcart.logging import get_logger, sanitize_id_for_logging
from .models import CartItem

logger = get_logger(__name__)


def _is_valid_entry(entry) -> bool:
    if not isinstance(entry, dict) or not isinstance(entry.get("id"), str):
        return False
    quantity = entry.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, (int, float, Decimal)):
        return False
    return math.isfinite(quantity) and quantity > 0


class LocalCartStore:
    """
    Per-user carts serialized as JSON lists under cart_{user_id}.

    Reads never fail on bad data: corrupt JSON or a non-list value is an
    empty cart, and malformed lines are dropped.
    """

    def __init__(self, storage: KeyValueStorage):
        self.storage = storage

    def get(self, user_id: str) -> List[CartItem]:
        key = StorageKeys.cart_key(user_id)
        raw = self.storage.get_item(key)
        if not raw:
            return []

        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Corrupted cart data for user {sanitize_id_for_logging(user_id)}: {e}")
            return []

        if not isinstance(data, list):
            logger.warning(
                f"Cart data for user {sanitize_id_for_logging(user_id)} is not a list, returning empty cart"
            )
            return []

        items: List[CartItem] = []
        for entry in data:
            if not _is_valid_entry(entry):
                logger.debug(f"Dropping malformed cart line for user {sanitize_id_for_logging(user_id)}")
                continue
            try:
                items.append(CartItem.from_dict(entry))
            except (KeyError, TypeError, ValueError, OverflowError) as e:
                logger.debug(f"Dropping unreadable cart line: {e}")
        return items

    def set(self, user_id: str, items: List[CartItem]) -> None:
        key = StorageKeys.cart_key(user_id)
        try:
            payload = json.dumps([item.to_dict() for item in items])
        except (TypeError, ValueError) as e:
            raise StorageError(f"{ERROR_CART_STORAGE}: {e}") from e
        self.storage.set_item(key, payload)

    def remove(self, user_id: str) -> None:
        self.storage.remove_item(StorageKeys.cart_key(user_id))
