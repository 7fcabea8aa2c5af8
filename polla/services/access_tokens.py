"""Shareable access tokens."""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from polla.models.domain import AccessToken


async def is_valid_access_token(
    session: AsyncSession, token: str, now: datetime | None = None
) -> bool:
    """True if the token exists, is active, and has not expired."""
    now = now or datetime.now(timezone.utc)
    result = await session.execute(select(AccessToken).where(AccessToken.token == token))
    row = result.scalar_one_or_none()
    if row is None or not row.is_active:
        return False

    expires_at = row.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at >= now
