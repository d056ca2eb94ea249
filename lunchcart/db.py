"""
Storage Module - Local key-value backends for carts

Provides the persistent key-value store the local cart path writes to:
- MemoryStorage: process-local dict (tests, single-process sessions)
- FileStorage: JSON file on disk, survives restarts
- RedisStorage: Upstash Redis (sync client), shared between processes

Every backend notifies subscribers after a write so other cart instances
sharing the store can refresh (the storage-event analogue).
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from upstash_redis import Redis

from lunchcart.config import CartSettings
from lunchcart.errors import StorageError
from lunchcart.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StorageEvent:
    """A key changed in a key-value store."""
    key: str
    old_value: Optional[str]
    new_value: Optional[str]


StorageListener = Callable[[StorageEvent], None]


class StorageKeys:
    """Key prefixes for data kept in the local store."""

    CART = "cart_"  # cart_{user_id}

    @staticmethod
    def cart_key(user_id: str) -> str:
        return f"{StorageKeys.CART}{user_id}"

    @staticmethod
    def is_cart_key(key: Optional[str]) -> bool:
        return bool(key) and key.startswith(StorageKeys.CART)

    @staticmethod
    def user_from_cart_key(key: str) -> str:
        return key[len(StorageKeys.CART):]


class KeyValueStorage(ABC):
    """
    Base class for string key-value stores.

    Subclasses implement _read/_write/_delete/keys; change notification is
    handled here.
    """

    def __init__(self) -> None:
        self._listeners: List[StorageListener] = []

    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, key: str, old_value: Optional[str], new_value: Optional[str]) -> None:
        event = StorageEvent(key=key, old_value=old_value, new_value=new_value)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Storage listener failed for key {key}")

    def get_item(self, key: str) -> Optional[str]:
        return self._read(key)

    def set_item(self, key: str, value: str) -> None:
        old_value = self._read(key)
        self._write(key, value)
        self._notify(key, old_value, value)

    def remove_item(self, key: str) -> None:
        old_value = self._read(key)
        if old_value is None:
            return
        self._delete(key)
        self._notify(key, old_value, None)

    @abstractmethod
    def keys(self) -> List[str]:
        pass

    @abstractmethod
    def _read(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def _write(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def _delete(self, key: str) -> None:
        pass


class MemoryStorage(KeyValueStorage):
    """In-process store backed by a dict."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        super().__init__()
        self._data: Dict[str, str] = dict(initial or {})

    def keys(self) -> List[str]:
        return list(self._data)

    def _read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def _write(self, key: str, value: str) -> None:
        self._data[key] = value

    def _delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileStorage(KeyValueStorage):
    """
    Store persisted as one JSON object in a file.

    The file is re-read on every access so separate processes pointing at
    the same path see each other's writes. Writes replace the file atomically.
    """

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageError(f"Cannot read {self.path}: {e}") from e

        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupted storage file {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Storage file {self.path} does not hold an object, ignoring it")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _dump(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-", suffix=".json")
        except OSError as e:
            raise StorageError(f"Cannot write {self.path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            Path(tmp_path).unlink(missing_ok=True)
            raise StorageError(f"Cannot write {self.path}: {e}") from e

    def keys(self) -> List[str]:
        return list(self._load())

    def _read(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def _write(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def _delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)


class RedisStorage(KeyValueStorage):
    """
    Store backed by Upstash Redis (sync REST client).

    Listeners only see writes made through this process.
    """

    def __init__(self, client: Redis, prefix: str = "lunchcart:") -> None:
        super().__init__()
        self.client = client
        self.prefix = prefix

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def keys(self) -> List[str]:
        try:
            raw_keys = self.client.keys(f"{self.prefix}*")
        except Exception as e:
            raise StorageError(f"Redis keys failed: {e}") from e
        return [k[len(self.prefix):] for k in raw_keys]

    def _read(self, key: str) -> Optional[str]:
        try:
            value = self.client.get(self._full_key(key))
        except Exception as e:
            raise StorageError(f"Redis get failed: {e}") from e
        return value if value is None else str(value)

    def _write(self, key: str, value: str) -> None:
        try:
            self.client.set(self._full_key(key), value)
        except Exception as e:
            raise StorageError(f"Redis set failed: {e}") from e

    def _delete(self, key: str) -> None:
        try:
            self.client.delete(self._full_key(key))
        except Exception as e:
            raise StorageError(f"Redis delete failed: {e}") from e


def get_storage(settings: CartSettings) -> KeyValueStorage:
    """
    Build the key-value store selected by CART_STORAGE_BACKEND.

    The redis backend uses the standard Upstash env var names:
    - UPSTASH_REDIS_REST_URL
    - UPSTASH_REDIS_REST_TOKEN
    """
    if settings.storage_backend == "file":
        return FileStorage(settings.storage_path)

    if settings.storage_backend == "redis":
        if not settings.redis_url or not settings.redis_token:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        return RedisStorage(Redis(url=settings.redis_url, token=settings.redis_token))

    return MemoryStorage()
