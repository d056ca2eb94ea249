"""Cart client configuration read from environment variables."""
import os
from dataclasses import dataclass

from lunchcart.logging import get_logger

logger = get_logger(__name__)

DEFAULT_API_BASE_URL = "http://localhost:3000/api/cart"
DEFAULT_API_TIMEOUT = 5.0
DEFAULT_STORAGE_PATH = ".lunchcart/storage.json"

STORAGE_BACKENDS = ("memory", "file", "redis")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default
    if value < 0:
        logger.warning(f"Ignoring negative {name}={raw!r}, using {default}")
        return default
    return value


@dataclass(frozen=True)
class CartSettings:
    """Settings for the cart facade and its collaborators."""
    api_base_url: str = DEFAULT_API_BASE_URL
    api_timeout: float = DEFAULT_API_TIMEOUT
    storage_backend: str = "memory"
    storage_path: str = DEFAULT_STORAGE_PATH
    reprobe_interval: float = 0.0
    redis_url: str = ""
    redis_token: str = ""

    @classmethod
    def from_env(cls) -> "CartSettings":
        """Build settings from CART_* / UPSTASH_* environment variables."""
        backend = os.environ.get("CART_STORAGE_BACKEND", "memory").strip().lower()
        if backend not in STORAGE_BACKENDS:
            logger.warning(f"Unknown CART_STORAGE_BACKEND={backend!r}, using memory")
            backend = "memory"

        return cls(
            api_base_url=os.environ.get("CART_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
            api_timeout=_env_float("CART_API_TIMEOUT", DEFAULT_API_TIMEOUT) or DEFAULT_API_TIMEOUT,
            storage_backend=backend,
            storage_path=os.environ.get("CART_STORAGE_PATH", DEFAULT_STORAGE_PATH),
            reprobe_interval=_env_float("CART_REPROBE_INTERVAL", 0.0),
            redis_url=os.environ.get("UPSTASH_REDIS_REST_URL", ""),
            redis_token=os.environ.get("UPSTASH_REDIS_REST_TOKEN", ""),
        )
