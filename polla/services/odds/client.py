"""The Odds API client.

Fetches every bookmaker's decimal odds for a sport in one call. Errors are
not retried; the upstream status code is passed through to the caller.
"""

from typing import Any

import httpx
import structlog

from polla.config import get_settings
from polla.services.errors import ConfigurationError, UpstreamError

logger = structlog.get_logger(__name__)


class OddsApiClient:
    """Async client for The Odds API v4 ``/sports/{sport}/odds`` endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.odds_api_key
        self.base_url = (base_url or settings.odds_api_base_url).rstrip("/")
        self.regions = settings.odds_api_regions
        self.markets = settings.odds_api_markets
        self._http_client = http_client

    async def __aenter__(self) -> "OddsApiClient":
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch_events(self, sport: str) -> list[dict[str, Any]]:
        """
        Fetch upcoming events with odds for ``sport``.

        Raises:
            ConfigurationError: No API key configured
            UpstreamError: Non-2xx response (status passed through) or
                transport failure
        """
        if not self.api_key:
            raise ConfigurationError("Falta ODDS_API_KEY")

        url = f"{self.base_url}/sports/{sport}/odds/"
        params = {
            "regions": self.regions,
            "markets": self.markets,
            "oddsFormat": "decimal",
            "apiKey": self.api_key,
        }

        client = await self._get_client()
        try:
            response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            logger.error("odds_api_request_failed", sport=sport, error=str(e))
            raise UpstreamError("Odds API error") from e

        if response.is_error:
            logger.warning(
                "odds_api_error",
                sport=sport,
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise UpstreamError("Odds API error", status_code=response.status_code)

        logger.info(
            "odds_api_fetched",
            sport=sport,
            requests_remaining=response.headers.get("x-requests-remaining"),
        )
        return response.json() or []
