"""Bet submission, grading and listing endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from polla.api.dependencies import get_current_user, get_db, get_storage, require_admin
from polla.api.routes.windows import WindowResponse
from polla.models.domain import BetStatus
from polla.services import bets as bet_service
from polla.services import windows as window_service
from polla.services.identity import CurrentUser
from polla.services.storage import StorageClient

router = APIRouter(prefix="/api/bets", tags=["bets"])


class BetRequest(BaseModel):
    """Bet submission. Admins may also set status and target participant."""

    bet_link: str | None = None
    bet_image_url: str | None = None
    bet_image_data: str | None = None
    odds: float | None = None
    status: BetStatus | None = None
    participant_id: str | None = None
    window_id: str | None = None


class GradeRequest(BaseModel):
    window_id: str
    participant_id: str
    status: BetStatus


class BetResponse(BaseModel):
    id: str
    window_id: str
    participant_id: str
    bet_link: str | None = None
    bet_image_url: str | None = None
    odds: float | None = None
    status: str
    notes: str | None = None

    class Config:
        from_attributes = True


class BetWriteResponse(BaseModel):
    ok: bool = True
    bet: BetResponse | None = None


class WindowBetsResponse(BaseModel):
    ok: bool = True
    role: str | None = None
    window_id: str | None = None
    window: WindowResponse | None = None
    participants: list[dict[str, Any]]
    bets: list[dict[str, Any]]


@router.get("", response_model=WindowBetsResponse)
async def list_bets(
    window_id: str | None = Query(None, description="Window ID, defaults to the open one"),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
) -> WindowBetsResponse:
    """Participants and bets of a window, with signed image URLs."""
    if window_id:
        window = await window_service.get_window(db, window_id)
    else:
        window = await window_service.current_open_window(db)

    if window is None:
        return WindowBetsResponse(participants=[], bets=[])

    participants, bets = await bet_service.list_window_bets(db, window, storage)
    return WindowBetsResponse(
        role=user.role.value,
        window_id=window.id,
        window=WindowResponse.model_validate(window),
        participants=participants,
        bets=bets,
    )


@router.post("", response_model=BetWriteResponse)
async def submit_bet(
    request: BetRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
) -> BetWriteResponse:
    """Submit or replace a bet for the open window."""
    bet = await bet_service.submit_bet(
        db,
        user,
        bet_service.BetSubmission(**request.model_dump()),
        storage,
    )
    await db.commit()
    return BetWriteResponse(bet=BetResponse.model_validate(bet) if bet else None)


@router.post("/grade", response_model=BetWriteResponse)
async def grade_bet(
    request: GradeRequest,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> BetWriteResponse:
    """Grade a participant's bet (admin only)."""
    bet = await bet_service.grade_bet(
        db, admin, request.window_id, request.participant_id, request.status
    )
    await db.commit()
    return BetWriteResponse(bet=BetResponse.model_validate(bet) if bet else None)
