"""
lunchcart - shopping cart client for the Lunch Restaurant site

This package contains:
- cart: cart manager facade (cart API with local storage fallback)
- db: local key-value storage backends
- api: reference cart API (FastAPI) for development and tests
- utils: input validators

Note: Imports are lazy so importing a submodule does not pull in FastAPI.
"""

__all__ = [
    "CartManager",
    "get_cart_manager",
]


def __getattr__(name):
    """Lazy attribute access."""
    if name == "CartManager":
        from lunchcart.cart import CartManager
        return CartManager
    elif name == "get_cart_manager":
        from lunchcart.cart import get_cart_manager
        return get_cart_manager
    raise AttributeError(f"module 'lunchcart' has no attribute '{name}'")
