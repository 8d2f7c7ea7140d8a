import asyncio
import logging

from app.config import settings
from app.services.otp_ledger import ExpiringStore, otp_store

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Background task that periodically drops expired OTP and gate entries."""

    def __init__(self, store: ExpiringStore, interval_seconds: int, enabled: bool = True):
        self.store = store
        self.interval_seconds = max(interval_seconds, 1)
        self.enabled = enabled
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    async def start(self) -> None:
        if not self.enabled:
            logger.info("Expired code sweeping disabled by configuration.")
            return
        if self._task and not self._task.done():
            return
        logger.info("Sweeping expired codes every %s seconds", self.interval_seconds)
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop_event.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            self.sweep()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue

    def sweep(self) -> int:
        try:
            removed = self.store.purge_expired()
        except Exception:
            logger.exception("Failed to purge expired codes")
            return 0
        if removed:
            logger.debug("Purged %s expired code entries", removed)
        return removed


expiry_sweeper = ExpirySweeper(
    otp_store,
    interval_seconds=settings.OTP_SWEEP_INTERVAL_SECONDS,
    enabled=settings.OTP_SWEEP_AUTO_ENABLED,
)
