"""Betting window endpoints."""

from datetime import date, datetime

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from polla.api.dependencies import get_current_user, get_db, require_admin
from polla.models.domain import EventWindow
from polla.services import windows as window_service
from polla.services.errors import ValidationError
from polla.services.identity import CurrentUser

router = APIRouter(prefix="/api/windows", tags=["windows"])
logger = structlog.get_logger(__name__)


class WindowResponse(BaseModel):
    """Betting window in API responses."""

    id: str
    start_date: date
    end_date: date
    is_active: bool
    status: str
    min_odds: float | None = None
    max_odds: float | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class CurrentWindowResponse(BaseModel):
    ok: bool = True
    window: WindowResponse | None
    status: str


class WindowListResponse(BaseModel):
    ok: bool = True
    windows: list[WindowResponse]


class OpenWindowRequest(BaseModel):
    start_date: date
    end_date: date
    min_odds: float | None = None
    max_odds: float | None = None


class OkResponse(BaseModel):
    ok: bool = True


def to_response(window: EventWindow) -> WindowResponse:
    """Window with its display status in place of the stored one."""
    response = WindowResponse.model_validate(window)
    response.status = window_service.window_display_status(window)
    return response


@router.get("", response_model=CurrentWindowResponse | WindowListResponse)
async def get_windows(
    all_: str | None = Query(None, alias="all", description="1 to list every window"),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Current window, or every window with ``?all=1``.

    Non-admins only see open and finished windows in the list.
    """
    if all_ == "1":
        windows = await window_service.list_windows(db, include_aborted=user.is_admin)
        return WindowListResponse(windows=[to_response(w) for w in windows])

    window = await window_service.current_open_window(db)
    return CurrentWindowResponse(
        window=WindowResponse.model_validate(window) if window else None,
        status=window_service.window_display_status(window),
    )


@router.post("", response_model=OkResponse)
async def open_window(
    request: OpenWindowRequest,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> OkResponse:
    """Open a new window, deactivating the previous one."""
    await window_service.open_window(
        db,
        start_date=request.start_date,
        end_date=request.end_date,
        min_odds=request.min_odds,
        max_odds=request.max_odds,
    )
    await db.commit()
    return OkResponse()


@router.delete("", response_model=OkResponse)
async def abort_window(
    id: str | None = Query(None, description="Window ID"),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> OkResponse:
    """Abort a window. Finished windows cannot be aborted."""
    if not id:
        raise ValidationError("Falta id de fecha")

    await window_service.abort_window(db, id)
    await db.commit()
    logger.info("window_abort_requested", window_id=id, by=admin.email)
    return OkResponse()
