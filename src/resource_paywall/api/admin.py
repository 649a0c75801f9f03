"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status

from resource_paywall.api.schemas import PaymentSessionOut
from resource_paywall.domain.payments import PaymentStatus

if TYPE_CHECKING:
    from resource_paywall.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/sessions", dependencies=[Depends(require_admin)])
async def list_sessions(
    request: Request,
    status_filter: PaymentStatus | None = Query(default=None, alias="status"),
    limit: int = 20,
) -> dict[str, list[PaymentSessionOut]]:
    """Return recent payment sessions."""
    container: AppContainer = request.app.state.container
    sessions = container.payment_service.list_sessions(status_filter, limit)
    return {"sessions": [PaymentSessionOut.from_domain(item) for item in sessions]}


@router.post("/sweep", dependencies=[Depends(require_admin)])
async def sweep_expired(request: Request) -> dict[str, int]:
    """Expire stale payment sessions now."""
    container: AppContainer = request.app.state.container
    expired = container.payment_service.sweep_expired()
    return {"expired": len(expired)}
