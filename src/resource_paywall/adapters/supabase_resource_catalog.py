"""Supabase-backed resource catalog."""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from supabase import Client

from resource_paywall.domain.catalog import ResourceInfo
from resource_paywall.services.access import ResourceCatalog

DEFAULT_PRICE = Decimal("10.00")
DEFAULT_CURRENCY = "USD"


@dataclass
class SupabaseResourceCatalog(ResourceCatalog):
    """Reads resource lock state and records paid access."""

    client: Client

    def get_resource(self, resource_id: UUID) -> ResourceInfo | None:
        """Return resource metadata, if present."""
        response = (
            self.client.table("resources")
            .select("id, college_id, is_locked, price, currency")
            .eq("id", str(resource_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        price = row.get("price")
        return ResourceInfo(
            id=UUID(row["id"]),
            college_id=UUID(row["college_id"]),
            is_locked=bool(row.get("is_locked", True)),
            price=Decimal(str(price)) if price is not None else DEFAULT_PRICE,
            currency=row.get("currency") or DEFAULT_CURRENCY,
        )

    def is_entitled(self, user_id: UUID, resource_id: UUID) -> bool:
        """Return true when a paid access row exists for the pair."""
        response = (
            self.client.table("resource_access")
            .select("id")
            .eq("user_id", str(user_id))
            .eq("resource_id", str(resource_id))
            .eq("access_type", "PAID")
            .limit(1)
            .execute()
        )
        return bool(response.data)

    def mark_unlocked(self, user_id: UUID, resource_id: UUID) -> None:
        """Record paid access, keeping any existing row."""
        self.client.table("resource_access").upsert(
            {
                "user_id": str(user_id),
                "resource_id": str(resource_id),
                "access_type": "PAID",
                "unlocked_at": datetime.now(tz=UTC).isoformat(),
            },
            on_conflict="user_id,resource_id,access_type",
            ignore_duplicates=True,
        ).execute()
