"""
Cart API Pydantic Models

Request bodies for the reference cart API.
"""
from pydantic import BaseModel, ConfigDict, Field


class CartProduct(BaseModel):
    id: str
    name: str
    price: float
    original_price: float | None = None
    discount: float = 0
    image_url: str = ""


class AddToCartRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product: CartProduct
    quantity: int
    user_id: str = Field(alias="userId")


class UpdateCartItemRequest(BaseModel):
    quantity: int
