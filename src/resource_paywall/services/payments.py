"""Payment session state machine for unlocking paywalled resources."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import NoReturn, Protocol
from uuid import UUID, uuid4

from resource_paywall.domain.catalog import ResourceInfo
from resource_paywall.domain.errors import (
    AlreadyEntitledError,
    FreeUnlockDisabledError,
    InvalidTransitionError,
    NotFoundError,
    SessionAlreadyResolvedError,
    SessionExpiredError,
)
from resource_paywall.domain.payments import (
    FREE_UNLOCK_SOURCE,
    Entitlement,
    PaymentResult,
    PaymentSession,
    PaymentStatus,
)
from resource_paywall.services.access import ResourceCatalog, UserDirectory

_logger = logging.getLogger(__name__)


class PaymentSessionRepository(Protocol):
    """Persistence interface for payment sessions."""

    def create_session(self, session: PaymentSession) -> PaymentSession:
        """Persist a new session and return it."""

    def get_session(self, session_id: str) -> PaymentSession | None:
        """Return a session by id, if present."""

    def find_open_session(
        self, user_id: UUID, resource_id: UUID, now: datetime
    ) -> PaymentSession | None:
        """Return the newest unexpired PENDING or PROCESSING session, if any."""

    def compare_and_set_status(
        self,
        session_id: str,
        expected: PaymentStatus,
        target: PaymentStatus,
        completed_at: datetime | None = None,
        valid_at: datetime | None = None,
    ) -> PaymentSession | None:
        """Move a session to target only if it is still in expected.

        With ``valid_at`` the write is also refused once the session's
        ``expires_at`` is earlier than that instant.
        """

    def complete_with_entitlement(
        self, session_id: str, completed_at: datetime, entitlement: Entitlement
    ) -> tuple[PaymentSession, Entitlement] | None:
        """Atomically move PROCESSING to SUCCEEDED and grant the entitlement.

        Refused when the session expired before ``completed_at``.
        """

    def list_stale_sessions(self, now: datetime) -> list[PaymentSession]:
        """Return open sessions whose expiry is before now."""

    def list_sessions(
        self, status: PaymentStatus | None, limit: int
    ) -> list[PaymentSession]:
        """Return recent sessions, newest first."""


class EntitlementRepository(Protocol):
    """Persistence interface for resource entitlements."""

    def get_entitlement(self, user_id: UUID, resource_id: UUID) -> Entitlement | None:
        """Return the entitlement for the pair, if present."""

    def create_entitlement(self, entitlement: Entitlement) -> Entitlement:
        """Create the entitlement unless one exists and return the stored one."""

    def list_entitlements(self, user_id: UUID) -> list[Entitlement]:
        """Return a user's entitlements, newest first."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _new_session_id() -> str:
    return f"pay_{uuid4().hex}"


@dataclass
class PaymentSessionService:
    """Creates, advances and resolves payment sessions.

    Every transition is a compare-and-set against the stored status, so two
    callers racing on the same session cannot both win. The loser re-reads the
    session and gets the error that matches what the winner did.
    """

    session_repository: PaymentSessionRepository
    entitlement_repository: EntitlementRepository
    resource_catalog: ResourceCatalog
    user_directory: UserDirectory
    session_ttl: timedelta = timedelta(minutes=15)
    free_unlock_enabled: bool = False
    clock: Callable[[], datetime] = field(default=_utcnow)

    def create_session(self, user_id: UUID, resource_id: UUID) -> PaymentSession:
        """Open a PENDING session for unlocking a resource."""
        resource = self._require_resource(user_id, resource_id)
        if self._current_entitlement(user_id, resource_id) is not None:
            raise AlreadyEntitledError("Resource already unlocked")
        if not resource.is_locked:
            raise AlreadyEntitledError("Payment not required for this resource")

        now = self.clock()
        existing = self.session_repository.find_open_session(user_id, resource_id, now)
        if existing is not None:
            if existing.status is not PaymentStatus.PENDING:
                raise InvalidTransitionError(
                    "A payment for this resource is already processing"
                )
            _logger.info(
                "Reusing payment session %s for resource %s",
                existing.session_id,
                resource_id,
            )
            return existing

        session = self.session_repository.create_session(
            PaymentSession(
                session_id=_new_session_id(),
                user_id=user_id,
                resource_id=resource_id,
                amount=resource.price,
                currency=resource.currency,
                status=PaymentStatus.PENDING,
                created_at=now,
                expires_at=now + self.session_ttl,
            )
        )
        _logger.info(
            "Created payment session %s user=%s resource=%s amount=%s %s",
            session.session_id,
            user_id,
            resource_id,
            session.amount,
            session.currency,
        )
        return session

    def begin_processing(self, session_id: str) -> PaymentSession:
        """Hand a PENDING session over to the payment processor."""
        session = self.get_session(session_id)
        now = self.clock()
        self._guard_open(session, now)
        if session.status is not PaymentStatus.PENDING:
            raise InvalidTransitionError(
                f"Cannot begin processing a {session.status} session"
            )
        updated = self.session_repository.compare_and_set_status(
            session_id,
            PaymentStatus.PENDING,
            PaymentStatus.PROCESSING,
            valid_at=now,
        )
        if updated is None:
            self._raise_lost_race(
                session_id, PaymentStatus.PENDING, PaymentStatus.PROCESSING
            )
        _logger.info("Payment session %s is processing", session_id)
        return updated

    def verify(self, session_id: str, outcome: bool) -> PaymentResult:
        """Resolve a PROCESSING session with the processor's outcome."""
        session = self.get_session(session_id)
        now = self.clock()
        self._guard_open(session, now)
        if session.status is not PaymentStatus.PROCESSING:
            raise InvalidTransitionError(f"Cannot verify a {session.status} session")

        if not outcome:
            failed = self.session_repository.compare_and_set_status(
                session_id,
                PaymentStatus.PROCESSING,
                PaymentStatus.FAILED,
                completed_at=now,
                valid_at=now,
            )
            if failed is None:
                self._raise_lost_race(
                    session_id, PaymentStatus.PROCESSING, PaymentStatus.FAILED
                )
            _logger.info("Payment session %s failed verification", session_id)
            return PaymentResult(session=failed)

        completed = self.session_repository.complete_with_entitlement(
            session_id,
            completed_at=now,
            entitlement=Entitlement(
                user_id=session.user_id,
                resource_id=session.resource_id,
                granted_at=now,
                source_session_id=session.session_id,
                amount=session.amount,
            ),
        )
        if completed is None:
            self._raise_lost_race(
                session_id, PaymentStatus.PROCESSING, PaymentStatus.SUCCEEDED
            )
        succeeded, entitlement = completed
        _logger.info(
            "Payment session %s succeeded; resource %s unlocked for user %s",
            session_id,
            succeeded.resource_id,
            succeeded.user_id,
        )
        self._notify_unlocked(entitlement)
        return PaymentResult(session=succeeded, entitlement=entitlement)

    def grant_free_unlock(self, user_id: UUID, resource_id: UUID) -> Entitlement:
        """Grant an entitlement without payment (demo unlock)."""
        if not self.free_unlock_enabled:
            raise FreeUnlockDisabledError("Free unlock is disabled")
        resource = self._require_resource(user_id, resource_id)
        existing = self._current_entitlement(user_id, resource_id)
        if existing is not None:
            return existing
        if not resource.is_locked:
            raise AlreadyEntitledError("Payment not required for this resource")

        entitlement = self.entitlement_repository.create_entitlement(
            Entitlement(
                user_id=user_id,
                resource_id=resource_id,
                granted_at=self.clock(),
                source_session_id=FREE_UNLOCK_SOURCE,
            )
        )
        _logger.info(
            "Granted free unlock of resource %s to user %s", resource_id, user_id
        )
        self._notify_unlocked(entitlement)
        return entitlement

    def sweep_expired(self, now: datetime | None = None) -> list[PaymentSession]:
        """Force every stale open session into EXPIRED."""
        resolved_now = now or self.clock()
        expired: list[PaymentSession] = []
        for session in self.session_repository.list_stale_sessions(resolved_now):
            updated = self.session_repository.compare_and_set_status(
                session.session_id, session.status, PaymentStatus.EXPIRED
            )
            if updated is not None:
                expired.append(updated)
        if expired:
            _logger.info("Expired %s stale payment sessions", len(expired))
        return expired

    def get_session(self, session_id: str) -> PaymentSession:
        """Return a session by id without expiring it."""
        session = self.session_repository.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Payment session {session_id} not found")
        return session

    def list_sessions(
        self, status: PaymentStatus | None = None, limit: int = 20
    ) -> list[PaymentSession]:
        """Return recent sessions for admin views."""
        return self.session_repository.list_sessions(status, limit)

    def list_entitlements(self, user_id: UUID) -> list[Entitlement]:
        """Return the entitlements held by a user."""
        return self.entitlement_repository.list_entitlements(user_id)

    def _require_resource(self, user_id: UUID, resource_id: UUID) -> ResourceInfo:
        if self.user_directory.get_user(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")
        resource = self.resource_catalog.get_resource(resource_id)
        if resource is None:
            raise NotFoundError(f"Resource {resource_id} not found")
        return resource

    def _current_entitlement(
        self, user_id: UUID, resource_id: UUID
    ) -> Entitlement | None:
        """Return the stored entitlement; catalog-only grants count as entitled."""
        existing = self.entitlement_repository.get_entitlement(user_id, resource_id)
        if existing is not None:
            return existing
        if self.resource_catalog.is_entitled(user_id, resource_id):
            raise AlreadyEntitledError("Resource already unlocked")
        return None

    def _guard_open(self, session: PaymentSession, now: datetime) -> None:
        """Reject terminal sessions and force-expire stale ones."""
        if session.status.is_terminal:
            raise SessionAlreadyResolvedError(
                f"Payment session {session.session_id} is already {session.status}"
            )
        if session.is_expired(now):
            self._force_expire(session)

    def _force_expire(self, session: PaymentSession) -> NoReturn:
        expired = self.session_repository.compare_and_set_status(
            session.session_id, session.status, PaymentStatus.EXPIRED
        )
        if expired is None:
            self._raise_for_current(
                self.get_session(session.session_id), PaymentStatus.EXPIRED
            )
        _logger.info("Payment session %s expired", session.session_id)
        raise SessionExpiredError(f"Payment session {session.session_id} expired")

    def _raise_lost_race(
        self, session_id: str, expected: PaymentStatus, target: PaymentStatus
    ) -> NoReturn:
        """Explain a refused write by re-reading the session.

        A session still in ``expected`` was refused because it expired
        before the write committed.
        """
        current = self.get_session(session_id)
        if current.status is expected:
            self._force_expire(current)
        self._raise_for_current(current, target)

    def _raise_for_current(
        self, current: PaymentSession, target: PaymentStatus
    ) -> NoReturn:
        if current.status is PaymentStatus.EXPIRED:
            raise SessionExpiredError(f"Payment session {current.session_id} expired")
        if current.status.is_terminal:
            raise SessionAlreadyResolvedError(
                f"Payment session {current.session_id} is already {current.status}"
            )
        raise InvalidTransitionError(
            f"Cannot move a {current.status} session to {target}"
        )

    def _notify_unlocked(self, entitlement: Entitlement) -> None:
        try:
            self.resource_catalog.mark_unlocked(
                entitlement.user_id, entitlement.resource_id
            )
        except Exception:
            _logger.exception(
                "Failed to mark resource %s unlocked for user %s",
                entitlement.resource_id,
                entitlement.user_id,
            )
