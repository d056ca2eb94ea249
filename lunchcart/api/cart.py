"""
Cart API Router

Reference implementation of the cart REST API the cart manager talks to.
Each endpoint maps onto one repository call; failures are reported as
HTTP 500 with {success: false, message}.
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from lunchcart.logging import get_logger, sanitize_id_for_logging
from lunchcart.money import to_float
from .models import AddToCartRequest, UpdateCartItemRequest
from .repository import CartRepository

logger = get_logger(__name__)

router = APIRouter(prefix="/api/cart", tags=["cart"])


def get_repository(request: Request) -> CartRepository:
    return request.app.state.cart_repository


def _error(message: str) -> JSONResponse:
    return JSONResponse(status_code=500, content={"success": False, "message": message})


@router.post("/add")
async def add_to_cart(body: AddToCartRequest, repo: CartRepository = Depends(get_repository)):
    """Add a product; an existing line accumulates quantity."""
    try:
        new_quantity = repo.add(body.user_id, body.product, body.quantity)
    except Exception:
        logger.exception("Error adding to cart")
        return _error("Error adding to cart")

    if new_quantity is not None:
        return {"success": True, "message": "Cart item quantity updated", "newQuantity": new_quantity}
    return {"success": True, "message": "Product added to cart"}


@router.delete("/remove/{user_id}/{product_id}")
async def remove_from_cart(user_id: str, product_id: str, repo: CartRepository = Depends(get_repository)):
    try:
        repo.remove(user_id, product_id)
    except Exception:
        logger.exception("Error removing from cart")
        return _error("Error removing from cart")
    return {"success": True, "message": "Product removed from cart"}


@router.put("/update/{user_id}/{product_id}")
async def update_cart_item(
    user_id: str,
    product_id: str,
    body: UpdateCartItemRequest,
    repo: CartRepository = Depends(get_repository),
):
    try:
        repo.update(user_id, product_id, body.quantity)
    except Exception:
        logger.exception("Error updating cart item")
        return _error("Error updating cart item")
    return {"success": True, "message": "Cart item quantity updated"}


@router.delete("/clear/{user_id}")
async def clear_cart(user_id: str, repo: CartRepository = Depends(get_repository)):
    try:
        repo.clear(user_id)
    except Exception:
        logger.exception("Error clearing cart")
        return _error("Error clearing cart")
    logger.info(f"Cleared cart for user {sanitize_id_for_logging(user_id)}")
    return {"success": True, "message": "Cart cleared"}


@router.get("/total/{user_id}")
async def get_cart_total(user_id: str, repo: CartRepository = Depends(get_repository)):
    try:
        total = repo.total(user_id)
    except Exception:
        logger.exception("Error calculating cart total")
        return _error("Error calculating cart total")
    return {"success": True, "total": to_float(total)}


@router.get("/count/{user_id}")
async def get_cart_count(user_id: str, repo: CartRepository = Depends(get_repository)):
    try:
        count = repo.count(user_id)
    except Exception:
        logger.exception("Error getting cart count")
        return _error("Error getting cart count")
    return {"success": True, "count": count}


@router.api_route("/{user_id}", methods=["GET", "HEAD"])
async def get_cart(user_id: str, repo: CartRepository = Depends(get_repository)):
    """All cart rows for a user."""
    try:
        rows = repo.list_for_user(user_id)
    except Exception:
        logger.exception("Error getting cart")
        return _error("Error getting cart")
    return [row.to_dict() for row in rows]
