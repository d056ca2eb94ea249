"""Cart models with Decimal-based pricing."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from lunchcart.money import apply_discount, multiply, round_money, to_decimal, to_float

DEFAULT_PRODUCT_NAME = "Unnamed Product"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class CartItem:
    """Single line of a cart."""
    id: str
    name: str
    price: Decimal
    quantity: int
    original_price: Optional[Decimal] = None
    discount: Decimal = Decimal("0")
    image_url: str = ""
    added_at: str = ""
    updated_at: str = ""

    def __post_init__(self):
        now = utc_now()
        if not self.added_at:
            self.added_at = now
        if not self.updated_at:
            self.updated_at = self.added_at
        # Normalize numeric fields
        self.price = to_decimal(self.price)
        self.original_price = (
            self.price if self.original_price is None else to_decimal(self.original_price)
        )
        self.discount = to_decimal(self.discount)
        self.quantity = int(self.quantity)

    @property
    def final_price(self) -> Decimal:
        """Unit price after discount."""
        return apply_discount(self.price, self.discount)

    @property
    def total_price(self) -> Decimal:
        """Price for all units, after discount."""
        return multiply(self.final_price, self.quantity)

    def touch(self) -> None:
        self.updated_at = utc_now()

    def to_dict(self) -> dict:
        """Convert to the dictionary persisted in local storage."""
        return {
            "id": self.id,
            "name": self.name,
            "price": str(self.price),
            "original_price": str(self.original_price),
            "discount": str(self.discount),
            "image_url": self.image_url,
            "quantity": self.quantity,
            "added_at": self.added_at,
            "updated_at": self.updated_at,
        }

    def to_api_product(self) -> dict:
        """Product payload expected by POST /api/cart/add."""
        return {
            "id": self.id,
            "name": self.name,
            "price": to_float(self.price),
            "original_price": to_float(self.original_price),
            "discount": to_float(self.discount),
            "image_url": self.image_url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        """Create from a persisted dictionary."""
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or DEFAULT_PRODUCT_NAME),
            price=to_decimal(data.get("price")),
            quantity=int(data["quantity"]),
            original_price=(
                to_decimal(data["original_price"])
                if data.get("original_price") is not None else None
            ),
            discount=to_decimal(data.get("discount")),
            image_url=str(data.get("image_url") or ""),
            added_at=data.get("added_at", ""),
            updated_at=data.get("updated_at", ""),
        )

    @classmethod
    def from_api_row(cls, row: dict) -> "CartItem":
        """Create from a cart API row (snake_case database columns)."""
        return cls(
            id=str(row["product_id"]),
            name=str(row.get("name") or DEFAULT_PRODUCT_NAME),
            price=to_decimal(row.get("price")),
            quantity=int(row["quantity"]),
            original_price=(
                to_decimal(row["original_price"])
                if row.get("original_price") is not None else None
            ),
            discount=to_decimal(row.get("discount")),
            image_url=str(row.get("image_url") or ""),
            added_at=str(row.get("added_at") or ""),
            updated_at=str(row.get("updated_at") or ""),
        )

    @classmethod
    def from_product(cls, product: Dict[str, Any], quantity: int) -> "CartItem":
        """Create a new cart line from a validated product payload."""
        price = to_decimal(product.get("price"))
        original_price = product.get("original_price")
        return cls(
            id=str(product["id"]).strip(),
            name=str(product.get("name") or DEFAULT_PRODUCT_NAME).strip(),
            price=price,
            quantity=quantity,
            original_price=price if original_price is None else to_decimal(original_price),
            discount=to_decimal(product.get("discount")),
            image_url=str(product.get("image_url") or ""),
        )


@dataclass
class Cart:
    """A user's cart: ordered lines, at most one per product id."""
    user_id: str
    items: List[CartItem] = field(default_factory=list)

    @property
    def item_count(self) -> int:
        """Total number of units in cart."""
        return sum(item.quantity for item in self.items)

    @property
    def total(self) -> Decimal:
        """Discount-aware total, rounded to cents."""
        return round_money(sum((item.total_price for item in self.items), Decimal("0")))

    def find(self, product_id: str) -> Optional[CartItem]:
        return next((item for item in self.items if item.id == product_id), None)

    def add(self, product: Dict[str, Any], quantity: int) -> CartItem:
        """Add units of a product, accumulating onto an existing line."""
        product_id = str(product["id"]).strip()
        existing_item = self.find(product_id)
        if existing_item:
            existing_item.quantity += quantity
            existing_item.touch()
            return existing_item

        item = CartItem.from_product(product, quantity)
        self.items.append(item)
        return item

    def remove(self, product_id: str) -> bool:
        """Drop a line. Returns False when the product is not in the cart."""
        item = self.find(product_id)
        if item is None:
            return False
        self.items.remove(item)
        return True

    def set_quantity(self, product_id: str, quantity: int) -> Optional[CartItem]:
        """Set an absolute quantity. Returns None when the product is not in the cart."""
        item = self.find(product_id)
        if item is None:
            return None
        item.quantity = quantity
        item.touch()
        return item

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "items": [item.to_dict() for item in self.items],
        }


def count_items(items: List[CartItem]) -> int:
    return sum(item.quantity for item in items)


def cart_total(items: List[CartItem]) -> float:
    """Discount-aware total of a list of lines as a float."""
    return to_float(Cart(user_id="", items=list(items)).total)


@dataclass(frozen=True)
class CartChangedEvent:
    """Emitted after every successful cart mutation."""
    user_id: str
    item_count: int


@dataclass
class CartResult:
    """
    Uniform result of a cart operation.

    `error` is one of the kinds in lunchcart.errors when success is False.
    Operation-specific fields stay None when they do not apply.
    """
    success: bool
    message: str
    error: Optional[str] = None
    cart: Optional[List[CartItem]] = None
    item_count: Optional[int] = None
    total_items: Optional[int] = None
    remaining_items: Optional[int] = None
    new_quantity: Optional[int] = None

    @classmethod
    def failure(cls, message: str, error: str) -> "CartResult":
        return cls(success=False, message=message, error=error)

    def to_dict(self) -> dict:
        """Serialize for JSON, omitting fields that do not apply."""
        data: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.error is not None:
            data["error"] = self.error
        if self.cart is not None:
            data["cart"] = [item.to_dict() for item in self.cart]
        for name in ("item_count", "total_items", "remaining_items", "new_quantity"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data
