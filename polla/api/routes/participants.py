"""Participant registration endpoint."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from polla.api.dependencies import get_db, require_admin
from polla.services import participants as participant_service
from polla.services.identity import CurrentUser

router = APIRouter(prefix="/api/participants", tags=["participants"])


class ParticipantRequest(BaseModel):
    name: str | None = None
    email: str | None = None


class OkResponse(BaseModel):
    ok: bool = True


@router.post("", response_model=OkResponse)
async def create_participant(
    request: ParticipantRequest,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> OkResponse:
    """Register a participant and allow their email to sign in."""
    await participant_service.upsert_participant(db, request.name, request.email)
    await db.commit()
    return OkResponse()
