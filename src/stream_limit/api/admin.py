"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, Field, NonNegativeInt

from stream_limit.domain.limits import (
    LimitTable,
    UserLimit,
    normalize_user_id,
    serialize_limit_table,
)

if TYPE_CHECKING:
    from stream_limit.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


class LimitsUpdate(BaseModel):
    """Replacement limit table and optional message settings."""

    limits: dict[str, NonNegativeInt] = Field(default_factory=dict)
    message_title: str | None = None
    message_text: str | None = None


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


def _limits_response(container: AppContainer) -> dict[str, object]:
    configuration = container.configuration_service.current
    return {
        "limits": dict(container.limit_table.table.entries),
        "message_title": configuration.message_title,
        "message_text": configuration.message_text,
    }


@router.get("/limits", dependencies=[Depends(require_admin)])
async def get_limits(request: Request) -> dict[str, object]:
    """Return the installed limit table and message settings."""
    container: AppContainer = request.app.state.container
    return _limits_response(container)


@router.put("/limits", dependencies=[Depends(require_admin)])
async def put_limits(update: LimitsUpdate, request: Request) -> dict[str, object]:
    """Replace the limit table and reload it."""
    container: AppContainer = request.app.state.container
    table = LimitTable.from_limits(
        [
            UserLimit(user_id=user_id, max_streams=value)
            for user_id, value in update.limits.items()
        ]
    )
    container.configuration_service.update(
        user_limits=serialize_limit_table(table),
        message_title=update.message_title,
        message_text=update.message_text,
    )
    return _limits_response(container)


@router.post("/limits/reload", dependencies=[Depends(require_admin)])
async def reload_limits(request: Request) -> dict[str, object]:
    """Re-read the configuration store."""
    container: AppContainer = request.app.state.container
    container.configuration_service.refresh()
    return _limits_response(container)


@router.get("/users/{user_id}/streams", dependencies=[Depends(require_admin)])
async def user_streams(user_id: str, request: Request) -> dict[str, object]:
    """Return a user's active stream count and limit."""
    container: AppContainer = request.app.state.container
    active = await container.stream_counter.count(user_id)
    return {
        "user_id": normalize_user_id(user_id),
        "active_streams": active,
        "max_streams": container.limit_table.lookup(user_id),
    }
