"""In-memory cart table for the reference cart API."""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from lunchcart.cart.models import utc_now
from lunchcart.money import multiply, round_money, to_decimal, to_float
from .models import CartProduct


@dataclass
class CartRow:
    """One row of the cart table, unique per (user_id, product_id)."""
    user_id: str
    product_id: str
    name: str
    price: Decimal
    original_price: Decimal
    discount: Decimal
    image_url: str
    quantity: int
    added_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "product_id": self.product_id,
            "name": self.name,
            "price": to_float(self.price),
            "original_price": to_float(self.original_price),
            "discount": to_float(self.discount),
            "image_url": self.image_url,
            "quantity": self.quantity,
            "added_at": self.added_at,
            "updated_at": self.updated_at,
        }


class CartRepository:
    """Cart rows keyed by (user_id, product_id), in insertion order."""

    def __init__(self) -> None:
        self._rows: Dict[Tuple[str, str], CartRow] = {}

    def list_for_user(self, user_id: str) -> List[CartRow]:
        return [row for (owner, _), row in self._rows.items() if owner == user_id]

    def add(self, user_id: str, product: CartProduct, quantity: int) -> Optional[int]:
        """
        Insert a row, or add to the quantity of an existing one.

        Returns the new quantity when an existing row was updated, else None.
        """
        key = (user_id, product.id)
        row = self._rows.get(key)
        if row is not None:
            row.quantity += quantity
            row.updated_at = utc_now()
            return row.quantity

        price = to_decimal(product.price)
        self._rows[key] = CartRow(
            user_id=user_id,
            product_id=product.id,
            name=product.name,
            price=price,
            original_price=to_decimal(product.original_price) if product.original_price else price,
            discount=to_decimal(product.discount),
            image_url=product.image_url,
            quantity=quantity,
        )
        return None

    def remove(self, user_id: str, product_id: str) -> None:
        self._rows.pop((user_id, product_id), None)

    def update(self, user_id: str, product_id: str, quantity: int) -> None:
        row = self._rows.get((user_id, product_id))
        if row is not None:
            row.quantity = quantity
            row.updated_at = utc_now()

    def clear(self, user_id: str) -> None:
        for key in [key for key in self._rows if key[0] == user_id]:
            del self._rows[key]

    def total(self, user_id: str) -> Decimal:
        """SUM(price * quantity), without per-line discounts."""
        return round_money(sum(
            (multiply(row.price, row.quantity) for row in self.list_for_user(user_id)),
            Decimal("0"),
        ))

    def count(self, user_id: str) -> int:
        return sum(row.quantity for row in self.list_for_user(user_id))
