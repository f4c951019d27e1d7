"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from snapnow.api.models import EarningOut

if TYPE_CHECKING:
    from snapnow.containers import AppContainer

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


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.post("/bookings/expire", dependencies=[Depends(require_admin)])
async def expire_overdue_bookings(request: Request) -> dict[str, int]:
    """Expire pending bookings past their response deadline.

    Meant to be called by a scheduler; safe to run repeatedly.
    """
    container: AppContainer = request.app.state.container
    expired = await container.booking_service.expire_overdue_bookings()
    return {"expired": expired}


@router.post("/earnings/{earning_id}/payout", dependencies=[Depends(require_admin)])
async def record_payout(earning_id: UUID, request: Request) -> EarningOut:
    """Mark a pending earning as paid out."""
    container: AppContainer = request.app.state.container
    return EarningOut.from_domain(container.earnings_service.record_payout(earning_id))
