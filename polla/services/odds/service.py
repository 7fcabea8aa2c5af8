"""Odds lookup pipeline: cache, then fetch, then filter.

1. Read the cached payload for the sport; if younger than the TTL, use it.
2. Otherwise fetch from the provider and overwrite the cache entry.
3. Filter the payload by commence time, then aggregate best prices.

Concurrent stale reads may both hit the provider; the overwrite is
idempotent.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from polla.config import get_settings
from polla.services import windows as window_service
from polla.services.odds.aggregator import aggregate_best_prices, filter_events_by_date
from polla.services.odds.cache import OddsCache
from polla.services.odds.client import OddsApiClient

logger = structlog.get_logger(__name__)


@dataclass
class OddsResult:
    """Aggregated odds plus provenance."""

    cached: bool
    sport: str
    start_date: datetime
    end_date: datetime
    fetched_at: datetime
    odds: list[dict[str, Any]] = field(default_factory=list)
    raw_events: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": True,
            "cached": self.cached,
            "sport": self.sport,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "odds": self.odds,
            "raw_events": self.raw_events,
            "fetched_at": self.fetched_at.isoformat(),
        }


async def resolve_price_band(
    session: AsyncSession,
    min_odds: float | None,
    max_odds: float | None,
) -> tuple[float, float]:
    """
    Fill a missing price band bound.

    Falls back to the active window's band, then to the configured defaults.
    """
    if min_odds is not None and max_odds is not None:
        return min_odds, max_odds

    settings = get_settings()
    window = await window_service.current_open_window(session)
    if min_odds is None:
        min_odds = (
            window.min_odds
            if window is not None and window.min_odds is not None
            else settings.default_min_odds
        )
    if max_odds is None:
        max_odds = (
            window.max_odds
            if window is not None and window.max_odds is not None
            else settings.default_max_odds
        )
    return min_odds, max_odds


def resolve_date_range(
    start: datetime | None, end: datetime | None, now: datetime
) -> tuple[datetime, datetime]:
    settings = get_settings()
    start = start or now
    end = end or now + timedelta(days=settings.odds_lookahead_days)
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    if end.tzinfo is None:
        end = end.replace(tzinfo=timezone.utc)
    return start, end


async def get_odds(
    session: AsyncSession,
    client: OddsApiClient,
    sport: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    min_odds: float | None = None,
    max_odds: float | None = None,
    now: datetime | None = None,
) -> OddsResult:
    """
    Best in-band prices for a sport's events within a date range.

    Raises:
        UpstreamError: Provider call failed (status passed through)
        ConfigurationError: No provider API key
    """
    settings = get_settings()
    now = now or datetime.now(timezone.utc)
    sport = sport or settings.default_sport
    start, end = resolve_date_range(start, end, now)
    min_odds, max_odds = await resolve_price_band(session, min_odds, max_odds)

    cache = OddsCache(session, ttl=timedelta(seconds=settings.odds_cache_ttl_seconds))
    entry = await cache.get(sport)

    if cache.is_fresh(entry, now):
        logger.debug("odds_cache_hit", sport=sport, fetched_at=str(entry.fetched_at))
        payload = entry.payload or []
        fetched_at = entry.fetched_at
        cached = True
    else:
        logger.info("odds_cache_miss", sport=sport, stale=entry is not None)
        payload = await client.fetch_events(sport)
        fetched_at = now
        await cache.put(sport, payload, fetched_at)
        cached = False

    in_range = filter_events_by_date(payload, start, end)
    return OddsResult(
        cached=cached,
        sport=sport,
        start_date=start,
        end_date=end,
        fetched_at=fetched_at,
        odds=aggregate_best_prices(in_range, min_odds, max_odds),
        raw_events=in_range,
    )
