"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import BackgroundTasks, FastAPI, Header, Request, status
from fastapi.responses import JSONResponse

from resource_paywall.api.admin import router as admin_router
from resource_paywall.api.schemas import (
    AccessDecisionOut,
    EntitlementEnvelope,
    EntitlementListEnvelope,
    EntitlementOut,
    PaymentResultEnvelope,
    PaymentSessionEnvelope,
    PaymentSessionOut,
    VerifyPaymentRequest,
)
from resource_paywall.app_logging import configure_logging
from resource_paywall.containers import AppContainer
from resource_paywall.domain.errors import (
    AccessDeniedError,
    AlreadyEntitledError,
    FreeUnlockDisabledError,
    InvalidTransitionError,
    NotFoundError,
    PaywallError,
    SessionAlreadyResolvedError,
    SessionExpiredError,
)
from resource_paywall.domain.payments import PaymentResult

_ERROR_STATUS: dict[type[PaywallError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AlreadyEntitledError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    SessionAlreadyResolvedError: status.HTTP_409_CONFLICT,
    SessionExpiredError: status.HTTP_410_GONE,
    AccessDeniedError: status.HTTP_403_FORBIDDEN,
    FreeUnlockDisabledError: status.HTTP_403_FORBIDDEN,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.container.expiry_sweeper.start()
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(PaywallError)
    async def paywall_error_handler(
        request: Request, exc: PaywallError
    ) -> JSONResponse:
        status_code = _ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
        logger.info(
            "%s %s rejected: %s: %s",
            request.method,
            request.url.path,
            exc.kind,
            exc.message,
        )
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.kind, "message": exc.message},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/resources/{resource_id}/access")
    async def resource_access(
        resource_id: UUID, request: Request, x_user_id: UUID = Header()
    ) -> AccessDecisionOut:
        """Describe whether the caller can open the resource."""
        state_container: AppContainer = request.app.state.container
        decision = state_container.access_service.describe_access(
            x_user_id, resource_id
        )
        return AccessDecisionOut.from_domain(decision)

    @app.post(
        "/resources/{resource_id}/payments", status_code=status.HTTP_201_CREATED
    )
    async def initiate_payment(
        resource_id: UUID, request: Request, x_user_id: UUID = Header()
    ) -> PaymentSessionEnvelope:
        """Open a payment session for a locked resource."""
        state_container: AppContainer = request.app.state.container
        state_container.access_service.authorize_unlock(x_user_id, resource_id)
        session = state_container.payment_service.create_session(
            x_user_id, resource_id
        )
        return PaymentSessionEnvelope(
            payment_session=PaymentSessionOut.from_domain(session)
        )

    @app.post(
        "/payments/{session_id}/process", status_code=status.HTTP_202_ACCEPTED
    )
    async def process_payment(
        session_id: str, request: Request, background_tasks: BackgroundTasks
    ) -> PaymentSessionEnvelope:
        """Hand the session to the simulated processor."""
        state_container: AppContainer = request.app.state.container
        processor = state_container.payment_processor
        session = processor.start(session_id)
        background_tasks.add_task(processor.settle, session_id)
        return PaymentSessionEnvelope(
            payment_session=PaymentSessionOut.from_domain(session)
        )

    @app.post("/payments/{session_id}/verify")
    async def verify_payment(
        session_id: str,
        request: Request,
        body: VerifyPaymentRequest | None = None,
    ) -> PaymentResultEnvelope:
        """Resolve a processing session with the processor's outcome."""
        state_container: AppContainer = request.app.state.container
        outcome = body.outcome if body is not None else None
        if outcome is None:
            outcome = state_container.payment_processor.outcome
        result = state_container.payment_service.verify(session_id, outcome)
        return _result_envelope(result)

    @app.get("/payments/{session_id}")
    async def get_payment(session_id: str, request: Request) -> PaymentSessionEnvelope:
        """Return a payment session."""
        state_container: AppContainer = request.app.state.container
        session = state_container.payment_service.get_session(session_id)
        return PaymentSessionEnvelope(
            payment_session=PaymentSessionOut.from_domain(session)
        )

    @app.post("/resources/{resource_id}/unlock")
    async def unlock_free(
        resource_id: UUID, request: Request, x_user_id: UUID = Header()
    ) -> EntitlementEnvelope:
        """Unlock a resource without payment when demo unlocks are enabled."""
        state_container: AppContainer = request.app.state.container
        state_container.access_service.authorize_unlock(
            x_user_id, resource_id, allow_unlocked=True
        )
        entitlement = state_container.payment_service.grant_free_unlock(
            x_user_id, resource_id
        )
        return EntitlementEnvelope(entitlement=EntitlementOut.from_domain(entitlement))

    @app.get("/entitlements")
    async def list_entitlements(
        request: Request, x_user_id: UUID = Header()
    ) -> EntitlementListEnvelope:
        """Return the caller's unlocked resources."""
        state_container: AppContainer = request.app.state.container
        entitlements = state_container.payment_service.list_entitlements(x_user_id)
        return EntitlementListEnvelope(
            entitlements=[EntitlementOut.from_domain(item) for item in entitlements]
        )

    return app


def _result_envelope(result: PaymentResult) -> PaymentResultEnvelope:
    return PaymentResultEnvelope(
        success=result.success,
        payment_session=PaymentSessionOut.from_domain(result.session),
        entitlement=(
            EntitlementOut.from_domain(result.entitlement)
            if result.entitlement
            else None
        ),
    )
