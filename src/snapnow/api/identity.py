"""Caller identity resolved from request headers."""

from uuid import UUID

from fastapi import Header, HTTPException, Request, status

from snapnow.containers import AppContainer
from snapnow.domain.identity import Caller, Role


async def require_caller(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Caller:
    """Resolve the authenticated caller; 401 when headers are missing or bad."""
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    try:
        return Caller(user_id=UUID(x_user_id), role=Role(x_user_role))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED) from exc


def get_container(request: Request) -> AppContainer:
    return request.app.state.container
