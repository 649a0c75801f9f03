"""Domain models for payment sessions and entitlements."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from uuid import UUID

FREE_UNLOCK_SOURCE = "free_unlock"


class PaymentStatus(StrEnum):
    """Lifecycle states of a payment session."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {PaymentStatus.SUCCEEDED, PaymentStatus.FAILED, PaymentStatus.EXPIRED}
)
OPEN_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.PROCESSING})


@dataclass(frozen=True)
class PaymentSession:
    """Represents one time-bounded attempt to pay for a resource."""

    session_id: str
    user_id: UUID
    resource_id: UUID
    amount: Decimal
    currency: str
    status: PaymentStatus
    created_at: datetime
    expires_at: datetime
    completed_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        """Return true once the validity window has passed."""
        return now > self.expires_at


@dataclass(frozen=True)
class Entitlement:
    """Represents a durable grant of access to a resource for a user."""

    user_id: UUID
    resource_id: UUID
    granted_at: datetime
    source_session_id: str
    amount: Decimal | None = None

    @property
    def is_free(self) -> bool:
        return self.source_session_id == FREE_UNLOCK_SOURCE


@dataclass(frozen=True)
class PaymentResult:
    """Outcome of verifying a payment session."""

    session: PaymentSession
    entitlement: Entitlement | None = None

    @property
    def success(self) -> bool:
        return self.session.status is PaymentStatus.SUCCEEDED
