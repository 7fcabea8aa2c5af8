"""Session endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from polla.api.dependencies import get_current_user
from polla.services.identity import CurrentUser

router = APIRouter(prefix="/api/auth", tags=["auth"])


class MeResponse(BaseModel):
    ok: bool = True
    email: str
    role: str


@router.get("/me", response_model=MeResponse)
async def me(user: CurrentUser = Depends(get_current_user)) -> MeResponse:
    """Email and role of the signed-in caller."""
    return MeResponse(email=user.email, role=user.role.value)
