"""Odds proxy: provider client, cache and best-price aggregation."""

from polla.services.odds.aggregator import aggregate_best_prices, filter_events_by_date
from polla.services.odds.cache import OddsCache
from polla.services.odds.client import OddsApiClient
from polla.services.odds.service import OddsResult, get_odds

__all__ = [
    "OddsApiClient",
    "OddsCache",
    "OddsResult",
    "aggregate_best_prices",
    "filter_events_by_date",
    "get_odds",
]
