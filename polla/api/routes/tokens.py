"""Access-token validation endpoint."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from polla.api.dependencies import get_db, get_rate_limiter
from polla.services.access_tokens import is_valid_access_token
from polla.services.rate_limiter import SlidingWindowRateLimiter, get_client_ip

router = APIRouter(prefix="/api", tags=["tokens"])


async def read_token(request: Request) -> str | None:
    """The ``token`` string from a JSON body; anything else counts as missing."""
    try:
        payload = await request.json()
    except ValueError:
        return None
    token = payload.get("token") if isinstance(payload, dict) else None
    if not isinstance(token, str) or not token:
        return None
    return token


@router.post("/validate-token")
async def validate_token(
    request: Request,
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
    db: AsyncSession = Depends(get_db),
):
    """
    Check an access token.

    Rate limited per caller IP; rejected calls get 429 with Retry-After.
    The body is read after the hit is recorded, so malformed calls count too.
    """
    limit = await limiter.hit(f"validate:{get_client_ip(request)}")
    if not limit.allowed:
        return JSONResponse(
            {"ok": False, "error": "Rate limit"},
            status_code=429,
            headers={"Retry-After": str(limit.retry_after)},
        )

    token = await read_token(request)
    if token is None:
        return JSONResponse({"ok": False, "error": "Token requerido"}, status_code=400)

    if not await is_valid_access_token(db, token):
        return JSONResponse({"ok": False}, status_code=403)

    return {"ok": True}
