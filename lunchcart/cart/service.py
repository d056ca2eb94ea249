"""Cart manager: remote cart API with local storage fallback."""
import functools
from typing import Any, Awaitable, Callable, Dict, List, Optional

from lunchcart.config import CartSettings
from lunchcart.db import get_storage
from lunchcart.errors import (
    ERROR_INVALID_PRODUCT_ID,
    ERROR_PRODUCT_NOT_IN_CART,
    KIND_OPERATION_FAILED,
    CartError,
    NotFoundError,
    TransientRemoteError,
    ValidationError,
)
from lunchcart.logging import get_logger, sanitize_id_for_logging
from lunchcart.utils.validators import (
    GUEST_USER_ID,
    resolve_user_id,
    validate_product_data,
    validate_product_id,
    validate_quantity,
    validate_user_id,
)
from .availability import AvailabilityMonitor, AvailabilityState
from .models import Cart, CartChangedEvent, CartItem, CartResult, cart_total, count_items
from .remote import RemoteAck, RemoteCartClient
from .storage import LocalCartStore

logger = get_logger(__name__)

CartListener = Callable[[CartChangedEvent], None]

SUCCESS_MESSAGES = {
    "add": "Product added to cart successfully",
    "remove": "Product removed from cart successfully",
    "update": "Cart item quantity updated successfully",
    "clear": "Cart cleared successfully",
}


def _result_boundary(action: str):
    """Turn any error raised by a cart mutation into a failed CartResult."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs) -> CartResult:
            try:
                return await func(self, *args, **kwargs)
            except ValidationError as e:
                logger.info(f"Rejected cart request while {action}: {e.message}")
                return CartResult.failure(e.message, e.kind)
            except CartError as e:
                logger.warning(f"Cart operation failed while {action}: {e.message}")
                return CartResult.failure(e.message, e.kind)
            except Exception as e:
                logger.exception(f"Unexpected error while {action}")
                return CartResult.failure(
                    f"An error occurred while {action}: {str(e) or 'Unknown error'}",
                    KIND_OPERATION_FAILED,
                )
        return wrapper
    return decorator


class CartManager:
    """
    Cart facade used by pages.

    Each call goes to the cart API while it is available and to the local
    store otherwise. The first failed API call switches the manager to the
    local store for the rest of the session; the two stores are never merged.

    Features:
    - Uniform CartResult for every mutation, whichever store served it
    - Cart-changed notifications for count badges and other tabs
    - Optional periodic re-probe of the API (off by default)
    """

    def __init__(
        self,
        remote: RemoteCartClient,
        local: LocalCartStore,
        availability: Optional[AvailabilityState] = None,
        reprobe_interval: float = 0.0,
    ):
        self.remote = remote
        self.local = local
        self.availability = availability if availability is not None else AvailabilityState()
        self.monitor = AvailabilityMonitor(remote, self.availability)
        self.reprobe_interval = reprobe_interval
        self._listeners: List[CartListener] = []

    @property
    def is_remote_available(self) -> bool:
        return self.availability.available

    async def start(self) -> bool:
        """Probe the cart API once; start re-probing if configured."""
        available = await self.monitor.check()
        if self.reprobe_interval > 0:
            self.monitor.start(self.reprobe_interval)
        return available

    async def close(self) -> None:
        await self.monitor.stop()

    # ==================== NOTIFICATIONS ====================

    def on_cart_changed(self, callback: CartListener) -> Callable[[], None]:
        """Subscribe to cart-changed events. Returns an unsubscribe callable."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit_changed(self, user_id: str, item_count: int) -> None:
        event = CartChangedEvent(user_id=user_id, item_count=item_count)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Cart-changed listener failed")

    # ==================== HELPERS ====================

    def _switch_to_local(self, action: str, error: TransientRemoteError) -> None:
        self.availability.mark_unavailable(f"{action}: {error.message}")

    @staticmethod
    def _require_user_id(user_id: Any) -> str:
        result = validate_user_id(user_id)
        if not result.valid:
            raise ValidationError(result.message)
        return result.value

    @staticmethod
    def _require_quantity(quantity: Any) -> int:
        result = validate_quantity(quantity)
        if not result.valid:
            raise ValidationError(result.message)
        return result.value

    @staticmethod
    def _require_product_id(product_id: Any) -> str:
        if not validate_product_id(product_id):
            raise ValidationError(ERROR_INVALID_PRODUCT_ID)
        return product_id

    async def _mutate(
        self,
        action: str,
        user_id: str,
        remote_call: Callable[[], Awaitable[RemoteAck]],
        local_call: Callable[[], List[CartItem]],
        extra_fields: Callable[[List[CartItem]], Dict[str, Any]],
    ) -> CartResult:
        """Run a mutation remotely, or locally once the API is unavailable."""
        if self.availability.available:
            try:
                ack = await remote_call()
            except TransientRemoteError as e:
                self._switch_to_local(action, e)
            else:
                # Read back what the server now holds
                cart = await self.get_cart(user_id)
                item_count = await self.get_cart_item_count(user_id)
                self._emit_changed(user_id, item_count)
                return CartResult(
                    success=True,
                    message=ack.message or SUCCESS_MESSAGES[action],
                    cart=cart,
                    item_count=item_count,
                    **extra_fields(cart),
                )

        cart = local_call()
        item_count = count_items(cart)
        self._emit_changed(user_id, item_count)
        return CartResult(
            success=True,
            message=SUCCESS_MESSAGES[action],
            cart=cart,
            item_count=item_count,
            **extra_fields(cart),
        )

    # ==================== LOCAL STORE OPERATIONS ====================

    def _add_local(self, user_id: str, product: dict, quantity: int) -> List[CartItem]:
        cart = Cart(user_id=user_id, items=self.local.get(user_id))
        cart.add(product, quantity)
        self.local.set(user_id, cart.items)
        return cart.items

    def _remove_local(self, user_id: str, product_id: str) -> List[CartItem]:
        cart = Cart(user_id=user_id, items=self.local.get(user_id))
        if not cart.remove(product_id):
            raise NotFoundError(ERROR_PRODUCT_NOT_IN_CART)
        self.local.set(user_id, cart.items)
        return cart.items

    def _update_local(self, user_id: str, product_id: str, quantity: int) -> List[CartItem]:
        cart = Cart(user_id=user_id, items=self.local.get(user_id))
        if cart.set_quantity(product_id, quantity) is None:
            raise NotFoundError(ERROR_PRODUCT_NOT_IN_CART)
        self.local.set(user_id, cart.items)
        return cart.items

    def _clear_local(self, user_id: str) -> List[CartItem]:
        self.local.remove(user_id)
        return []

    # ==================== PUBLIC API ====================

    async def get_cart(self, user_id: str = GUEST_USER_ID) -> List[CartItem]:
        """Current cart lines. Never raises; an unreadable cart is empty."""
        user_id = resolve_user_id(user_id)

        if self.availability.available:
            try:
                return await self.remote.get_cart(user_id)
            except TransientRemoteError as e:
                self._switch_to_local("get_cart", e)

        try:
            return self.local.get(user_id)
        except Exception:
            logger.exception(f"Failed to read local cart for user {sanitize_id_for_logging(user_id)}")
            return []

    @_result_boundary("adding to cart")
    async def add_to_cart(
        self,
        product: dict,
        quantity: Any = 1,
        user_id: Any = GUEST_USER_ID,
    ) -> CartResult:
        """Add units of a product; an existing line accumulates quantity."""
        product_check = validate_product_data(product)
        if not product_check.valid:
            raise ValidationError(product_check.message)
        quantity = self._require_quantity(quantity)
        user_id = self._require_user_id(user_id)

        item = CartItem.from_product(product, quantity)
        return await self._mutate(
            "add",
            user_id,
            remote_call=lambda: self.remote.add_item(user_id, item),
            local_call=lambda: self._add_local(user_id, product, quantity),
            extra_fields=lambda cart: {"total_items": len(cart)},
        )

    @_result_boundary("removing from cart")
    async def remove_from_cart(self, product_id: Any, user_id: Any = GUEST_USER_ID) -> CartResult:
        product_id = self._require_product_id(product_id)
        user_id = self._require_user_id(user_id)

        return await self._mutate(
            "remove",
            user_id,
            remote_call=lambda: self.remote.remove_item(user_id, product_id),
            local_call=lambda: self._remove_local(user_id, product_id),
            extra_fields=lambda cart: {"remaining_items": len(cart)},
        )

    @_result_boundary("updating cart")
    async def update_cart_item_quantity(
        self,
        product_id: Any,
        quantity: Any,
        user_id: Any = GUEST_USER_ID,
    ) -> CartResult:
        """Set the absolute quantity of a line already in the cart."""
        product_id = self._require_product_id(product_id)
        quantity = self._require_quantity(quantity)
        user_id = self._require_user_id(user_id)

        return await self._mutate(
            "update",
            user_id,
            remote_call=lambda: self.remote.update_item(user_id, product_id, quantity),
            local_call=lambda: self._update_local(user_id, product_id, quantity),
            extra_fields=lambda cart: {"new_quantity": quantity},
        )

    @_result_boundary("clearing cart")
    async def clear_cart(self, user_id: Any = GUEST_USER_ID) -> CartResult:
        user_id = resolve_user_id(user_id)

        return await self._mutate(
            "clear",
            user_id,
            remote_call=lambda: self.remote.clear(user_id),
            local_call=lambda: self._clear_local(user_id),
            extra_fields=lambda cart: {},
        )

    async def calculate_cart_total(self, user_id: str = GUEST_USER_ID) -> float:
        """Cart total; the local fallback applies per-line discounts."""
        user_id = resolve_user_id(user_id)

        if self.availability.available:
            try:
                return await self.remote.get_total(user_id)
            except TransientRemoteError as e:
                self._switch_to_local("calculate_cart_total", e)

        try:
            return cart_total(self.local.get(user_id))
        except Exception:
            logger.exception("Fallback cart total calculation failed")
            return 0.0

    async def get_cart_item_count(self, user_id: str = GUEST_USER_ID) -> int:
        """Total number of units in the cart."""
        user_id = resolve_user_id(user_id)

        if self.availability.available:
            try:
                return await self.remote.get_count(user_id)
            except TransientRemoteError as e:
                self._switch_to_local("get_cart_item_count", e)

        try:
            return count_items(self.local.get(user_id))
        except Exception:
            logger.exception("Fallback cart item count failed")
            return 0


def build_cart_manager(settings: CartSettings) -> CartManager:
    """Wire a CartManager from settings."""
    return CartManager(
        remote=RemoteCartClient(settings.api_base_url, timeout=settings.api_timeout),
        local=LocalCartStore(get_storage(settings)),
        reprobe_interval=settings.reprobe_interval,
    )


# Singleton instance
_cart_manager: Optional[CartManager] = None


def get_cart_manager() -> CartManager:
    """Get CartManager singleton built from environment settings."""
    global _cart_manager
    if _cart_manager is None:
        _cart_manager = build_cart_manager(CartSettings.from_env())
    return _cart_manager
