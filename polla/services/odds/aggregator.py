"""Odds aggregation.

Reduces raw provider events (The Odds API v4 shape) to the best price per
outcome within a price band:

    event -> bookmakers[] -> markets[] -> outcomes[{name, price}]

Every bookmaker is surveyed. For each outcome name the highest in-band
price wins; on equal prices the first one seen is kept.
"""

from datetime import datetime, timezone
from typing import Any


def parse_commence_time(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp ("Z" suffix allowed) as an aware datetime."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def filter_events_by_date(
    events: list[dict[str, Any]] | None,
    start: datetime,
    end: datetime,
) -> list[dict[str, Any]]:
    """Events whose commence time falls within [start, end]."""
    filtered = []
    for event in events or []:
        commence = parse_commence_time(event.get("commence_time"))
        if commence is not None and start <= commence <= end:
            filtered.append(event)
    return filtered


def best_prices_for_event(
    event: dict[str, Any], min_price: float, max_price: float
) -> list[dict[str, Any]]:
    """
    Best in-band price per outcome name, sorted by price descending.

    Returns:
        List of {"market", "name", "price"}
    """
    best_by_outcome: dict[str, dict[str, Any]] = {}

    for bookmaker in event.get("bookmakers") or []:
        for market in bookmaker.get("markets") or []:
            for outcome in market.get("outcomes") or []:
                price = outcome.get("price")
                if not isinstance(price, (int, float)):
                    continue
                if price < min_price or price > max_price:
                    continue

                name = outcome.get("name")
                existing = best_by_outcome.get(name)
                if existing is None or price > existing["price"]:
                    best_by_outcome[name] = {
                        "market": market.get("key"),
                        "name": name,
                        "price": price,
                    }

    # sorted() is stable, so ties keep first-seen order
    return sorted(best_by_outcome.values(), key=lambda o: o["price"], reverse=True)


def aggregate_best_prices(
    events: list[dict[str, Any]] | None,
    min_price: float,
    max_price: float,
) -> list[dict[str, Any]]:
    """
    Summarise events for display.

    Events left with no in-band outcome are dropped.
    """
    summaries = []
    for event in events or []:
        markets = best_prices_for_event(event, min_price, max_price)
        if not markets:
            continue
        summaries.append(
            {
                "id": event.get("id"),
                "sport": event.get("sport_key"),
                "commence": event.get("commence_time"),
                "home": event.get("home_team"),
                "away": event.get("away_team"),
                "markets": markets,
            }
        )
    return summaries
