"""Caller identity.

The OAuth provider handles sign-in; the front end forwards the verified
email inside an HS256 session token signed with the shared secret.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from jwt.exceptions import InvalidTokenError

from polla.config import get_settings
from polla.models.domain import Role
from polla.services.errors import AuthenticationError

ALGORITHM = "HS256"


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller: verified email plus resolved role."""

    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def create_session_token(email: str, expires_minutes: int | None = None) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.session_token_ttl_minutes
    )
    payload = {"email": email.strip().lower(), "exp": expire}
    return jwt.encode(payload, settings.session_secret, algorithm=ALGORITHM)


def decode_session_token(token: str) -> str:
    """
    Verify a session token and return the lower-cased email it carries.

    Raises:
        AuthenticationError: Bad signature, expired, or no email claim
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.session_secret, algorithms=[ALGORITHM])
    except InvalidTokenError as e:
        raise AuthenticationError("No autenticado") from e

    email = payload.get("email")
    if not isinstance(email, str) or not email.strip():
        raise AuthenticationError("No autenticado")
    return email.strip().lower()
