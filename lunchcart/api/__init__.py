"""Reference cart REST API."""
from .index import app, create_app
from .repository import CartRepository

__all__ = ["app", "create_app", "CartRepository"]
