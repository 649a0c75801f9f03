"""Supabase-backed entitlement repository."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from supabase import Client

from resource_paywall.domain.payments import Entitlement
from resource_paywall.services.payments import EntitlementRepository

_COLUMNS = "user_id, resource_id, granted_at, source_session_id, amount"


@dataclass
class SupabaseEntitlementRepository(EntitlementRepository):
    """Supabase implementation for resource entitlements."""

    client: Client

    def get_entitlement(self, user_id: UUID, resource_id: UUID) -> Entitlement | None:
        """Return the entitlement for the pair, if present."""
        response = (
            self.client.table("resource_entitlements")
            .select(_COLUMNS)
            .eq("user_id", str(user_id))
            .eq("resource_id", str(resource_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return parse_entitlement_row(response.data[0])

    def create_entitlement(self, entitlement: Entitlement) -> Entitlement:
        """Insert the entitlement, leaving an existing row for the pair intact."""
        self.client.table("resource_entitlements").upsert(
            entitlement_payload(entitlement),
            on_conflict="user_id,resource_id",
            ignore_duplicates=True,
        ).execute()
        stored = self.get_entitlement(entitlement.user_id, entitlement.resource_id)
        if stored is None:
            raise RuntimeError("Failed to create entitlement")
        return stored

    def list_entitlements(self, user_id: UUID) -> list[Entitlement]:
        """Return a user's entitlements, newest first."""
        response = (
            self.client.table("resource_entitlements")
            .select(_COLUMNS)
            .eq("user_id", str(user_id))
            .order("granted_at", desc=True)
            .execute()
        )
        return [parse_entitlement_row(row) for row in response.data or []]


def entitlement_payload(entitlement: Entitlement) -> dict[str, object]:
    return {
        "user_id": str(entitlement.user_id),
        "resource_id": str(entitlement.resource_id),
        "granted_at": entitlement.granted_at.isoformat(),
        "source_session_id": entitlement.source_session_id,
        "amount": str(entitlement.amount) if entitlement.amount is not None else None,
    }


def parse_entitlement_row(row: dict[str, object]) -> Entitlement:
    amount = row.get("amount")
    return Entitlement(
        user_id=UUID(str(row["user_id"])),
        resource_id=UUID(str(row["resource_id"])),
        granted_at=datetime.fromisoformat(str(row["granted_at"])),
        source_session_id=str(row["source_session_id"]),
        amount=Decimal(str(amount)) if amount is not None else None,
    )
