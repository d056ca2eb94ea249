"""Cart API availability tracking."""
import asyncio
from typing import Optional

from lunchcart.logging import get_logger
from lunchcart.utils.validators import GUEST_USER_ID
from .remote import RemoteCartClient

logger = get_logger(__name__)


class AvailabilityState:
    """
    Whether the cart API should be tried.

    Starts available. Once marked unavailable it stays that way for the
    session; only an explicit probe (AvailabilityMonitor) can flip it back.
    """

    def __init__(self, available: bool = True):
        self._available = available
        self.last_failure: Optional[str] = None

    @property
    def available(self) -> bool:
        return self._available

    def mark_available(self) -> None:
        if not self._available:
            logger.info("Cart API available again, switching to remote cart")
        self._available = True
        self.last_failure = None

    def mark_unavailable(self, reason: str) -> None:
        if self._available:
            logger.warning(f"Cart API unavailable, falling back to local storage: {reason}")
        self._available = False
        self.last_failure = reason


class AvailabilityMonitor:
    """
    Probes the cart API and updates the shared AvailabilityState.

    check() is the one-shot probe done at startup. start(interval) adds
    periodic re-probing, which is off unless configured.
    """

    def __init__(self, client: RemoteCartClient, state: AvailabilityState):
        self.client = client
        self.state = state
        self._task: Optional[asyncio.Task] = None

    async def check(self) -> bool:
        if await self.client.probe(GUEST_USER_ID):
            self.state.mark_available()
            return True
        self.state.mark_unavailable("probe failed")
        return False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, interval: float) -> None:
        """Re-probe every `interval` seconds on the running event loop."""
        if interval <= 0:
            raise ValueError("interval must be positive")
        if self.running:
            return
        self._task = asyncio.create_task(self._run(interval))

    async def _run(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.check()
            except Exception:
                logger.exception("Cart API re-probe failed unexpectedly")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
