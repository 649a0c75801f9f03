"""Supabase-backed payment session repository."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from supabase import Client

from resource_paywall.adapters.supabase_entitlement_repository import (
    entitlement_payload,
    parse_entitlement_row,
)
from resource_paywall.domain.payments import (
    OPEN_STATUSES,
    Entitlement,
    PaymentSession,
    PaymentStatus,
)
from resource_paywall.services.payments import PaymentSessionRepository

_COLUMNS = (
    "session_id, user_id, resource_id, amount, currency, status, "
    "created_at, expires_at, completed_at"
)


@dataclass
class SupabasePaymentSessionRepository(PaymentSessionRepository):
    """Supabase implementation for payment sessions.

    Status changes are conditional updates filtered on the expected status, so
    PostgREST only touches the row when nobody else moved it first.
    """

    client: Client

    def create_session(self, session: PaymentSession) -> PaymentSession:
        """Insert a session row and return it."""
        response = (
            self.client.table("payment_sessions")
            .insert(
                {
                    "session_id": session.session_id,
                    "user_id": str(session.user_id),
                    "resource_id": str(session.resource_id),
                    "amount": str(session.amount),
                    "currency": session.currency,
                    "status": session.status.value,
                    "created_at": session.created_at.isoformat(),
                    "expires_at": session.expires_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create payment session")
        return _parse_session_row(response.data[0])

    def get_session(self, session_id: str) -> PaymentSession | None:
        """Return a session by id, if present."""
        response = (
            self.client.table("payment_sessions")
            .select(_COLUMNS)
            .eq("session_id", session_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_session_row(response.data[0])

    def find_open_session(
        self, user_id: UUID, resource_id: UUID, now: datetime
    ) -> PaymentSession | None:
        """Return the newest unexpired open session for the pair."""
        response = (
            self.client.table("payment_sessions")
            .select(_COLUMNS)
            .eq("user_id", str(user_id))
            .eq("resource_id", str(resource_id))
            .in_("status", sorted(status.value for status in OPEN_STATUSES))
            .gt("expires_at", now.isoformat())
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_session_row(response.data[0])

    def compare_and_set_status(
        self,
        session_id: str,
        expected: PaymentStatus,
        target: PaymentStatus,
        completed_at: datetime | None = None,
        valid_at: datetime | None = None,
    ) -> PaymentSession | None:
        """Update the status only where it still equals expected."""
        payload: dict[str, object] = {"status": target.value}
        if completed_at is not None:
            payload["completed_at"] = completed_at.isoformat()
        query = (
            self.client.table("payment_sessions")
            .update(payload)
            .eq("session_id", session_id)
            .eq("status", expected.value)
        )
        if valid_at is not None:
            query = query.gte("expires_at", valid_at.isoformat())
        response = query.execute()
        if not response.data:
            return None
        return _parse_session_row(response.data[0])

    def complete_with_entitlement(
        self, session_id: str, completed_at: datetime, entitlement: Entitlement
    ) -> tuple[PaymentSession, Entitlement] | None:
        """Run the complete_payment_session function in one transaction."""
        response = self.client.rpc(
            "complete_payment_session",
            {
                "p_session_id": session_id,
                "p_completed_at": completed_at.isoformat(),
                "p_entitlement": entitlement_payload(entitlement),
            },
        ).execute()
        data = response.data
        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            return None
        return (
            _parse_session_row(data["session"]),
            parse_entitlement_row(data["entitlement"]),
        )

    def list_stale_sessions(self, now: datetime) -> list[PaymentSession]:
        """Return open sessions whose expiry is before now."""
        response = (
            self.client.table("payment_sessions")
            .select(_COLUMNS)
            .in_("status", sorted(status.value for status in OPEN_STATUSES))
            .lt("expires_at", now.isoformat())
            .execute()
        )
        return [_parse_session_row(row) for row in response.data or []]

    def list_sessions(
        self, status: PaymentStatus | None, limit: int
    ) -> list[PaymentSession]:
        """Return recent sessions, newest first."""
        query = self.client.table("payment_sessions").select(_COLUMNS)
        if status is not None:
            query = query.eq("status", status.value)
        response = query.order("created_at", desc=True).limit(limit).execute()
        return [_parse_session_row(row) for row in response.data or []]


def _parse_session_row(row: dict[str, object]) -> PaymentSession:
    completed_raw = row.get("completed_at")
    return PaymentSession(
        session_id=str(row["session_id"]),
        user_id=UUID(str(row["user_id"])),
        resource_id=UUID(str(row["resource_id"])),
        amount=Decimal(str(row["amount"])),
        currency=str(row["currency"]),
        status=PaymentStatus(row["status"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        expires_at=datetime.fromisoformat(str(row["expires_at"])),
        completed_at=(
            datetime.fromisoformat(completed_raw)
            if isinstance(completed_raw, str) and completed_raw
            else None
        ),
    )
