"""Pydantic models for the HTTP API."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from resource_paywall.domain.catalog import AccessDecision
from resource_paywall.domain.payments import Entitlement, PaymentSession


class VerifyPaymentRequest(BaseModel):
    outcome: bool | None = None


class PaymentSessionOut(BaseModel):
    session_id: str
    user_id: UUID
    resource_id: UUID
    amount: Decimal
    currency: str
    status: str
    created_at: datetime
    expires_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_domain(cls, session: PaymentSession) -> "PaymentSessionOut":
        return cls(
            session_id=session.session_id,
            user_id=session.user_id,
            resource_id=session.resource_id,
            amount=session.amount,
            currency=session.currency,
            status=session.status.value,
            created_at=session.created_at,
            expires_at=session.expires_at,
            completed_at=session.completed_at,
        )


class EntitlementOut(BaseModel):
    user_id: UUID
    resource_id: UUID
    granted_at: datetime
    source_session_id: str
    amount: Decimal | None = None

    @classmethod
    def from_domain(cls, entitlement: Entitlement) -> "EntitlementOut":
        return cls(
            user_id=entitlement.user_id,
            resource_id=entitlement.resource_id,
            granted_at=entitlement.granted_at,
            source_session_id=entitlement.source_session_id,
            amount=entitlement.amount,
        )


class PaymentSessionEnvelope(BaseModel):
    payment_session: PaymentSessionOut


class PaymentResultEnvelope(BaseModel):
    success: bool
    payment_session: PaymentSessionOut
    entitlement: EntitlementOut | None = None


class EntitlementEnvelope(BaseModel):
    entitlement: EntitlementOut


class EntitlementListEnvelope(BaseModel):
    entitlements: list[EntitlementOut]


class AccessDecisionOut(BaseModel):
    can_access: bool
    requires_payment: bool
    is_unlocked: bool

    @classmethod
    def from_domain(cls, decision: AccessDecision) -> "AccessDecisionOut":
        return cls(
            can_access=decision.can_access,
            requires_payment=decision.requires_payment,
            is_unlocked=decision.is_unlocked,
        )
