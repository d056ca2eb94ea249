"""
Cart count synchronization for UI badges.

Listens to the manager's cart-changed events and to the local key-value
store, so a write made by another cart instance sharing the store (another
tab) also refreshes the count. Writes that only reach the cart API are not
seen by other instances until they run an operation themselves.
"""
from typing import Callable, Dict, List, Optional

from lunchcart.db import StorageEvent, StorageKeys
from lunchcart.logging import get_logger, sanitize_id_for_logging
from .models import CartChangedEvent, count_items
from .service import CartManager
from .storage import LocalCartStore

logger = get_logger(__name__)

# (user_id, count, visible); badges are hidden for an empty cart
CountIndicator = Callable[[str, int, bool], None]


class CartCountSynchronizer:
    """Keeps registered count indicators in step with cart changes."""

    def __init__(self, manager: CartManager, store: LocalCartStore):
        self.manager = manager
        self.store = store
        self.counts: Dict[str, int] = {}
        self._indicators: List[CountIndicator] = []
        self._unsubscribers: List[Callable[[], None]] = []

    @property
    def attached(self) -> bool:
        return bool(self._unsubscribers)

    def attach(self) -> None:
        if self.attached:
            return
        self._unsubscribers = [
            self.manager.on_cart_changed(self._on_cart_changed),
            self.store.storage.subscribe(self._on_storage_changed),
        ]

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def add_indicator(self, indicator: CountIndicator) -> None:
        self._indicators.append(indicator)

    def count_for(self, user_id: str) -> Optional[int]:
        return self.counts.get(user_id)

    async def refresh(self, user_id: str) -> int:
        """Pull the current count through the manager and push it out."""
        count = await self.manager.get_cart_item_count(user_id)
        self._publish(user_id, count)
        return count

    def _on_cart_changed(self, event: CartChangedEvent) -> None:
        self._publish(event.user_id, event.item_count)

    def _on_storage_changed(self, event: StorageEvent) -> None:
        if not StorageKeys.is_cart_key(event.key):
            return
        user_id = StorageKeys.user_from_cart_key(event.key)
        logger.debug(f"Cart data changed in shared storage for user {sanitize_id_for_logging(user_id)}")
        self._publish(user_id, count_items(self.store.get(user_id)))

    def _publish(self, user_id: str, count: int) -> None:
        self.counts[user_id] = count
        visible = count > 0
        for indicator in list(self._indicators):
            try:
                indicator(user_id, count, visible)
            except Exception:
                logger.exception("Cart count indicator failed to update")
