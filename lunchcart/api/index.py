"""
Reference Cart API - FastAPI application

Serves the /api/cart endpoints from an in-memory repository. Used for local
development and as the remote side of integration tests.
"""
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .cart import router as cart_router
from .repository import CartRepository


def create_app(repository: Optional[CartRepository] = None) -> FastAPI:
    """Build the cart API app around a repository (a fresh one by default)."""
    app = FastAPI(title="Lunch Restaurant Cart API")

    # Pages are served from a different origin than the API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.cart_repository = repository if repository is not None else CartRepository()
    app.include_router(cart_router)

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()
