"""Odds proxy endpoint."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from polla.api.dependencies import get_db, get_odds_client
from polla.services.odds.client import OddsApiClient
from polla.services.odds.service import get_odds

router = APIRouter(prefix="/api/odds", tags=["odds"])


@router.get("")
async def odds(
    sport: str | None = Query(None, description="The Odds API sport key"),
    min_odds: float | None = Query(None, alias="minOdds"),
    max_odds: float | None = Query(None, alias="maxOdds"),
    start_date: datetime | None = Query(None, description="Earliest commence time"),
    end_date: datetime | None = Query(None, description="Latest commence time"),
    db: AsyncSession = Depends(get_db),
    client: OddsApiClient = Depends(get_odds_client),
):
    """
    Best price per outcome for a sport's upcoming events.

    Served from a 10 minute cache per sport. Without a price band the open
    window's band applies, then 1.45 - 3.0. Without dates the next 7 days
    are covered.
    """
    result = await get_odds(
        db,
        client,
        sport=sport,
        start=start_date,
        end=end_date,
        min_odds=min_odds,
        max_odds=max_odds,
    )
    if not result.cached:
        await db.commit()

    return JSONResponse(result.to_dict(), headers={"Cache-Control": "no-store"})
