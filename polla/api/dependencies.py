"""FastAPI dependencies for Polla Partidos."""

from collections.abc import AsyncGenerator

import redis.asyncio as redis
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from polla.config import get_settings
from polla.models.base import async_session_factory
from polla.services import participants as participant_service
from polla.services.errors import AuthenticationError, AuthorizationError
from polla.services.identity import CurrentUser, decode_session_token
from polla.services.odds.client import OddsApiClient
from polla.services.rate_limiter import SlidingWindowRateLimiter
from polla.services.storage import StorageClient

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_redis() -> AsyncGenerator[redis.Redis, None]:
    """Get Redis client dependency."""
    settings = get_settings()
    client = redis.from_url(settings.redis_url)
    try:
        yield client
    finally:
        await client.aclose()


async def get_rate_limiter(
    redis_client: redis.Redis = Depends(get_redis),
) -> SlidingWindowRateLimiter:
    settings = get_settings()
    return SlidingWindowRateLimiter(
        redis_client,
        limit=settings.rate_limit_max_hits,
        window_seconds=settings.rate_limit_window_seconds,
    )


async def get_storage() -> AsyncGenerator[StorageClient, None]:
    """Get object storage client dependency."""
    async with StorageClient() as client:
        yield client


async def get_odds_client() -> AsyncGenerator[OddsApiClient, None]:
    """Get The Odds API client dependency."""
    async with OddsApiClient() as client:
        yield client


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """
    Resolve the caller from the session token.

    Emails missing from the allow-list are treated as unauthenticated.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("No autenticado")

    email = decode_session_token(credentials.credentials)
    if not await participant_service.is_allow_listed(db, email):
        raise AuthenticationError("No autenticado")

    role = await participant_service.get_user_role(db, email)
    return CurrentUser(email=email, role=role)


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise AuthorizationError("Solo admin")
    return user
