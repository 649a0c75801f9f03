"""Supabase-backed user directory."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from resource_paywall.domain.catalog import UserInfo, UserRole
from resource_paywall.services.access import UserDirectory


@dataclass
class SupabaseUserDirectory(UserDirectory):
    """Reads user roles and college affiliation."""

    client: Client

    def get_user(self, user_id: UUID) -> UserInfo | None:
        """Return the user, if present."""
        response = (
            self.client.table("users")
            .select("id, role, college_id")
            .eq("id", str(user_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return UserInfo(
            id=UUID(row["id"]),
            role=UserRole(row.get("role") or UserRole.GENERAL_USER),
            college_id=UUID(row["college_id"]) if row.get("college_id") else None,
        )
