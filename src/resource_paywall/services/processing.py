"""Simulated payment processor that settles sessions after a delay."""

import asyncio
import logging
from dataclasses import dataclass

from resource_paywall.domain.errors import PaywallError
from resource_paywall.domain.payments import PaymentResult, PaymentSession
from resource_paywall.services.payments import PaymentSessionService

_logger = logging.getLogger(__name__)


@dataclass
class SimulatedPaymentProcessor:
    """Stands in for a payment gateway by resolving sessions on a timer."""

    payment_service: PaymentSessionService
    delay_seconds: float = 3.0
    outcome: bool = True

    def start(self, session_id: str) -> PaymentSession:
        """Hand the session to the processor."""
        return self.payment_service.begin_processing(session_id)

    async def settle(self, session_id: str) -> PaymentResult | None:
        """Wait out the processing delay, then report the outcome."""
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)
        try:
            return self.payment_service.verify(session_id, self.outcome)
        except PaywallError as exc:
            _logger.warning(
                "Simulated settlement of %s rejected: %s: %s",
                session_id,
                exc.kind,
                exc.message,
            )
            return None
