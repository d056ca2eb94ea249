"""
Cart API Client

Thin httpx wrapper around the cart REST API. Every failure (network,
timeout, HTTP status, unreadable body, `success: false`) is raised as
TransientRemoteError so the facade can fall back to local storage.
"""
from dataclasses import dataclass
from typing import Any, List, Optional
from urllib.parse import quote

import httpx

from lunchcart.errors import (
    ERROR_API_BAD_RESPONSE,
    ERROR_API_TIMEOUT,
    ERROR_API_UNREACHABLE,
    TransientRemoteError,
)
from lunchcart.logging import get_logger, sanitize_string_for_logging
from lunchcart.utils.validators import GUEST_USER_ID, parse_number
from .models import CartItem

logger = get_logger(__name__)


@dataclass
class RemoteAck:
    """Acknowledgement body of a cart API mutation."""
    message: str = ""


def _segment(value: str) -> str:
    return quote(value, safe="")


class RemoteCartClient:
    """Client for the /api/cart endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            async with self._client() as client:
                response = await client.request(method, url, json=json)
        except httpx.TimeoutException as e:
            raise TransientRemoteError(f"{ERROR_API_TIMEOUT}: {method} {path}") from e
        except httpx.HTTPError as e:
            raise TransientRemoteError(f"{ERROR_API_UNREACHABLE}: {e}") from e

        if not response.is_success:
            raise TransientRemoteError(
                f"Cart API error: {method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TransientRemoteError(ERROR_API_BAD_RESPONSE) from e

    def _ack(self, response: httpx.Response) -> dict:
        body = self._json(response)
        if not isinstance(body, dict):
            raise TransientRemoteError(ERROR_API_BAD_RESPONSE)
        if not body.get("success"):
            message = sanitize_string_for_logging(body.get("message"))
            raise TransientRemoteError(f"Cart API rejected request: {message}")
        return body

    async def probe(self, user_id: str = GUEST_USER_ID) -> bool:
        """Lightweight availability check (HEAD on a cart)."""
        try:
            await self._request("HEAD", f"/{_segment(user_id)}")
        except TransientRemoteError as e:
            logger.warning(f"Cart API probe failed: {e}")
            return False
        return True

    async def get_cart(self, user_id: str) -> List[CartItem]:
        response = await self._request("GET", f"/{_segment(user_id)}")
        rows = self._json(response)
        if not isinstance(rows, list):
            raise TransientRemoteError(ERROR_API_BAD_RESPONSE)
        try:
            return [CartItem.from_api_row(row) for row in rows]
        except (KeyError, TypeError, ValueError) as e:
            raise TransientRemoteError(f"{ERROR_API_BAD_RESPONSE}: {e}") from e

    async def add_item(self, user_id: str, item: CartItem) -> RemoteAck:
        """Upsert a line; the server adds to an existing quantity."""
        body = self._ack(await self._request(
            "POST",
            "/add",
            json={
                "product": item.to_api_product(),
                "quantity": item.quantity,
                "userId": user_id,
            },
        ))
        return RemoteAck(message=body.get("message", ""))

    async def remove_item(self, user_id: str, product_id: str) -> RemoteAck:
        body = self._ack(await self._request(
            "DELETE", f"/remove/{_segment(user_id)}/{_segment(product_id)}"
        ))
        return RemoteAck(message=body.get("message", ""))

    async def update_item(self, user_id: str, product_id: str, quantity: int) -> RemoteAck:
        body = self._ack(await self._request(
            "PUT",
            f"/update/{_segment(user_id)}/{_segment(product_id)}",
            json={"quantity": quantity},
        ))
        return RemoteAck(message=body.get("message", ""))

    async def clear(self, user_id: str) -> RemoteAck:
        body = self._ack(await self._request("DELETE", f"/clear/{_segment(user_id)}"))
        return RemoteAck(message=body.get("message", ""))

    async def get_total(self, user_id: str) -> float:
        body = self._ack(await self._request("GET", f"/total/{_segment(user_id)}"))
        total = parse_number(body.get("total") or 0)
        if total is None:
            raise TransientRemoteError(ERROR_API_BAD_RESPONSE)
        return total

    async def get_count(self, user_id: str) -> int:
        body = self._ack(await self._request("GET", f"/count/{_segment(user_id)}"))
        count = parse_number(body.get("count") or 0)
        if count is None:
            raise TransientRemoteError(ERROR_API_BAD_RESPONSE)
        return int(count)
