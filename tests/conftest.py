"""Pytest configuration and fixtures"""
import os
from typing import List

import httpx
import pytest

# Keep test runs independent from any local configuration
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.pop("CART_STORAGE_BACKEND", None)

from lunchcart.api import CartRepository, create_app
from lunchcart.cart import AvailabilityState, CartManager, LocalCartStore, RemoteCartClient
from lunchcart.db import MemoryStorage

API_BASE_URL = "http://testserver/api/cart"


class FlakyTransport(httpx.AsyncBaseTransport):
    """Forwards to another transport until switched down, then refuses connections."""

    def __init__(self, inner: httpx.AsyncBaseTransport):
        self.inner = inner
        self.down = False
        self.requests: List[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.down:
            raise httpx.ConnectError("Connection refused", request=request)
        return await self.inner.handle_async_request(request)


def refusing_transport() -> FlakyTransport:
    """Transport whose API is down from the start."""
    transport = FlakyTransport(httpx.MockTransport(lambda request: httpx.Response(500)))
    transport.down = True
    return transport


@pytest.fixture
def sample_product():
    """Sample product payload as sent by the menu page"""
    return {
        "id": "dish-101",
        "name": "Kung Pao Chicken",
        "price": 100.0,
        "original_price": 120.0,
        "discount": 25,
        "image_url": "https://lunch.example.com/img/kung-pao.jpg",
    }


@pytest.fixture
def second_product():
    return {
        "id": "dish-202",
        "name": "Hot and Sour Soup",
        "price": 30,
    }


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def local_store(memory_storage):
    return LocalCartStore(memory_storage)


@pytest.fixture
def cart_repository():
    return CartRepository()


@pytest.fixture
def api_transport(cart_repository):
    """ASGI transport serving the reference cart API"""
    return httpx.ASGITransport(app=create_app(cart_repository))


@pytest.fixture
def flaky_transport(api_transport):
    return FlakyTransport(api_transport)


@pytest.fixture
def remote_client(flaky_transport):
    return RemoteCartClient(API_BASE_URL, timeout=1.0, transport=flaky_transport)


@pytest.fixture
def manager(remote_client, local_store):
    """Cart manager talking to a working cart API"""
    return CartManager(remote=remote_client, local=local_store, availability=AvailabilityState())


@pytest.fixture
def offline_transport():
    return refusing_transport()


@pytest.fixture
def offline_manager(offline_transport, local_store):
    """Cart manager already switched to local storage"""
    remote = RemoteCartClient(API_BASE_URL, timeout=1.0, transport=offline_transport)
    return CartManager(remote=remote, local=local_store, availability=AvailabilityState(available=False))
