"""Thread-safe in-memory store for payment sessions and entitlements."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from threading import Lock
from uuid import UUID

from resource_paywall.domain.payments import (
    OPEN_STATUSES,
    Entitlement,
    PaymentSession,
    PaymentStatus,
)
from resource_paywall.services.payments import (
    EntitlementRepository,
    PaymentSessionRepository,
)


@dataclass
class InMemoryPaymentStore(PaymentSessionRepository, EntitlementRepository):
    """Keeps sessions and entitlements in process memory behind one lock."""

    sessions: dict[str, PaymentSession] = field(default_factory=dict)
    entitlements: dict[tuple[UUID, UUID], Entitlement] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock, repr=False)

    def create_session(self, session: PaymentSession) -> PaymentSession:
        """Store a new session."""
        with self._lock:
            if session.session_id in self.sessions:
                raise RuntimeError(f"Duplicate session id {session.session_id}")
            self.sessions[session.session_id] = session
        return session

    def get_session(self, session_id: str) -> PaymentSession | None:
        """Return a session by id, if present."""
        with self._lock:
            return self.sessions.get(session_id)

    def find_open_session(
        self, user_id: UUID, resource_id: UUID, now: datetime
    ) -> PaymentSession | None:
        """Return the newest unexpired open session for the pair."""
        with self._lock:
            candidates = [
                session
                for session in self.sessions.values()
                if session.user_id == user_id
                and session.resource_id == resource_id
                and session.status in OPEN_STATUSES
                and session.expires_at > now
            ]
        if not candidates:
            return None
        return max(candidates, key=lambda session: session.created_at)

    def compare_and_set_status(
        self,
        session_id: str,
        expected: PaymentStatus,
        target: PaymentStatus,
        completed_at: datetime | None = None,
        valid_at: datetime | None = None,
    ) -> PaymentSession | None:
        """Move a session to target only if it is still in expected."""
        with self._lock:
            current = self.sessions.get(session_id)
            if current is None or current.status is not expected:
                return None
            if valid_at is not None and current.expires_at < valid_at:
                return None
            updated = replace(current, status=target, completed_at=completed_at)
            self.sessions[session_id] = updated
            return updated

    def complete_with_entitlement(
        self, session_id: str, completed_at: datetime, entitlement: Entitlement
    ) -> tuple[PaymentSession, Entitlement] | None:
        """Mark the session SUCCEEDED and grant the entitlement together."""
        with self._lock:
            current = self.sessions.get(session_id)
            if current is None or current.status is not PaymentStatus.PROCESSING:
                return None
            if current.expires_at < completed_at:
                return None
            updated = replace(
                current, status=PaymentStatus.SUCCEEDED, completed_at=completed_at
            )
            key = (entitlement.user_id, entitlement.resource_id)
            stored = self.entitlements.setdefault(key, entitlement)
            self.sessions[session_id] = updated
            return updated, stored

    def list_stale_sessions(self, now: datetime) -> list[PaymentSession]:
        """Return open sessions that expired before now."""
        with self._lock:
            return [
                session
                for session in self.sessions.values()
                if session.status in OPEN_STATUSES and session.expires_at < now
            ]

    def list_sessions(
        self, status: PaymentStatus | None, limit: int
    ) -> list[PaymentSession]:
        """Return recent sessions, newest first."""
        with self._lock:
            sessions = [
                session
                for session in self.sessions.values()
                if status is None or session.status is status
            ]
        sessions.sort(key=lambda session: session.created_at, reverse=True)
        return sessions[:limit]

    def get_entitlement(self, user_id: UUID, resource_id: UUID) -> Entitlement | None:
        """Return the entitlement for the pair, if present."""
        with self._lock:
            return self.entitlements.get((user_id, resource_id))

    def create_entitlement(self, entitlement: Entitlement) -> Entitlement:
        """Create the entitlement unless the pair already holds one."""
        with self._lock:
            key = (entitlement.user_id, entitlement.resource_id)
            return self.entitlements.setdefault(key, entitlement)

    def list_entitlements(self, user_id: UUID) -> list[Entitlement]:
        """Return a user's entitlements, newest first."""
        with self._lock:
            owned = [
                entitlement
                for entitlement in self.entitlements.values()
                if entitlement.user_id == user_id
            ]
        owned.sort(key=lambda entitlement: entitlement.granted_at, reverse=True)
        return owned
