"""Odds payload cache backed by the ``odds_cache`` table.

Keyed by sport only: date and price filtering run in memory on the cached
payload, so one entry serves every query for that sport. Entries are
overwritten on refresh and never evicted.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from polla.models.base import upsert
from polla.models.domain import OddsCacheEntry

DEFAULT_TTL = timedelta(minutes=10)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OddsCache:
    """TTL check plus read/overwrite of the raw upstream payload per sport."""

    def __init__(self, session: AsyncSession, ttl: timedelta = DEFAULT_TTL):
        self.session = session
        self.ttl = ttl

    async def get(self, sport: str) -> OddsCacheEntry | None:
        result = await self.session.execute(
            select(OddsCacheEntry)
            .where(OddsCacheEntry.cache_key == sport)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def is_fresh(self, entry: OddsCacheEntry | None, now: datetime) -> bool:
        if entry is None:
            return False
        return now - _as_utc(entry.fetched_at) < self.ttl

    async def put(
        self, sport: str, payload: list[dict[str, Any]], fetched_at: datetime
    ) -> None:
        stmt = upsert(self.session, OddsCacheEntry).values(
            cache_key=sport,
            payload=payload,
            fetched_at=fetched_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["cache_key"],
            set_={"payload": payload, "fetched_at": fetched_at},
        )
        await self.session.execute(stmt)
