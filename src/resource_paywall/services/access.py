"""Resource access policy backed by the catalog and user directory."""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from resource_paywall.domain.catalog import (
    AccessDecision,
    ResourceInfo,
    UserInfo,
    UserRole,
)
from resource_paywall.domain.errors import (
    AccessDeniedError,
    AlreadyEntitledError,
    NotFoundError,
)

_NO_RESOURCE_ACCESS = {UserRole.GUEST, UserRole.GENERAL_USER}


class ResourceCatalog(Protocol):
    """Read access to resources plus the unlock notification hook."""

    def get_resource(self, resource_id: UUID) -> ResourceInfo | None:
        """Return resource metadata, if present."""

    def is_entitled(self, user_id: UUID, resource_id: UUID) -> bool:
        """Return true when the user already holds access to the resource."""

    def mark_unlocked(self, user_id: UUID, resource_id: UUID) -> None:
        """Record that the resource is now unlocked for the user."""


class UserDirectory(Protocol):
    """Read access to user identity and affiliation."""

    def get_user(self, user_id: UUID) -> UserInfo | None:
        """Return the user, if present."""


@dataclass
class AccessService:
    """Decides who may open or pay for a resource."""

    resource_catalog: ResourceCatalog
    user_directory: UserDirectory

    def describe_access(self, user_id: UUID, resource_id: UUID) -> AccessDecision:
        """Return the access terms for a user and resource."""
        user = self.user_directory.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        resource = self.resource_catalog.get_resource(resource_id)
        if resource is None:
            raise NotFoundError(f"Resource {resource_id} not found")

        if user.role in _NO_RESOURCE_ACCESS:
            return AccessDecision(
                can_access=False, requires_payment=False, is_unlocked=False
            )
        if user.role is UserRole.ADMIN or user.college_id == resource.college_id:
            return AccessDecision(
                can_access=True, requires_payment=False, is_unlocked=True
            )
        if not resource.is_locked:
            return AccessDecision(
                can_access=True, requires_payment=False, is_unlocked=True
            )
        return AccessDecision(
            can_access=True,
            requires_payment=True,
            is_unlocked=self.resource_catalog.is_entitled(user_id, resource_id),
        )

    def authorize_unlock(
        self, user_id: UUID, resource_id: UUID, allow_unlocked: bool = False
    ) -> AccessDecision:
        """Ensure the user may start an unlock for the resource.

        Free unlocks pass ``allow_unlocked`` so that repeating one returns the
        existing entitlement instead of an error.
        """
        decision = self.describe_access(user_id, resource_id)
        if not decision.can_access:
            raise AccessDeniedError("Resource access requires a college account")
        if not decision.requires_payment:
            raise AlreadyEntitledError("Payment not required for this resource")
        if decision.is_unlocked and not allow_unlocked:
            raise AlreadyEntitledError("Resource already unlocked")
        return decision
