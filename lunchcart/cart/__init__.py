"""Cart package: models, local store, API client, manager facade."""
from .availability import AvailabilityMonitor, AvailabilityState
from .models import Cart, CartChangedEvent, CartItem, CartResult
from .remote import RemoteCartClient
from .service import CartManager, build_cart_manager, get_cart_manager
from .storage import LocalCartStore
from .sync import CartCountSynchronizer

__all__ = [
    "AvailabilityMonitor",
    "AvailabilityState",
    "Cart",
    "CartChangedEvent",
    "CartCountSynchronizer",
    "CartItem",
    "CartManager",
    "CartResult",
    "LocalCartStore",
    "RemoteCartClient",
    "build_cart_manager",
    "get_cart_manager",
]
