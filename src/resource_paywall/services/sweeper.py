"""Background task that expires abandoned payment sessions."""

import asyncio
import logging
from dataclasses import dataclass, field

from resource_paywall.services.payments import PaymentSessionService

_logger = logging.getLogger(__name__)


@dataclass
class ExpirySweeper:
    """Runs the expiry sweep on a fixed interval."""

    payment_service: PaymentSessionService
    interval_seconds: float = 60
    _task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)

    @property
    def enabled(self) -> bool:
        return self.interval_seconds > 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep_once(self) -> int:
        """Run a single sweep and return how many sessions expired."""
        try:
            expired = self.payment_service.sweep_expired()
        except Exception:
            _logger.exception("Payment session sweep failed")
            return 0
        return len(expired)

    async def run_forever(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.sweep_once()

    def start(self) -> None:
        """Start the sweep loop on the running event loop."""
        if not self.enabled or self.running:
            return
        self._task = asyncio.create_task(self.run_forever())
        _logger.info("Expiry sweeper started every %ss", self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
