"""Domain models for the resource catalog and user directory views."""

from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from uuid import UUID


class UserRole(StrEnum):
    """Forum roles relevant to resource access."""

    GUEST = "GUEST"
    GENERAL_USER = "GENERAL_USER"
    COLLEGE_USER = "COLLEGE_USER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class UserInfo:
    """Identity and affiliation of a forum user."""

    id: UUID
    role: UserRole
    college_id: UUID | None


@dataclass(frozen=True)
class ResourceInfo:
    """Lock state and price policy of a resource file."""

    id: UUID
    college_id: UUID
    is_locked: bool
    price: Decimal
    currency: str


@dataclass(frozen=True)
class AccessDecision:
    """Whether a user may open a resource and on which terms."""

    can_access: bool
    requires_payment: bool
    is_unlocked: bool
