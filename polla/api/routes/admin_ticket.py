"""Cartilla upload endpoint: closes the open window."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from polla.api.dependencies import get_db, get_storage, require_admin
from polla.services.identity import CurrentUser
from polla.services.storage import StorageClient
from polla.services.tickets import submit_cartilla

router = APIRouter(prefix="/api/admin-ticket", tags=["admin"])


class CartillaRequest(BaseModel):
    image_data: str | None = None
    window_id: str | None = None


class CartillaResponse(BaseModel):
    ok: bool = True
    image_url: str


@router.post("", response_model=CartillaResponse)
async def upload_cartilla(
    request: CartillaRequest,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
) -> CartillaResponse:
    """
    Upload the final results image.

    Back-fills no_show bets and finishes the window.
    """
    path = await submit_cartilla(
        db, admin, request.image_data, storage, window_id=request.window_id
    )
    await db.commit()
    return CartillaResponse(image_url=path)
