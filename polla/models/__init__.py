"""Database models for Polla Partidos."""

from polla.models.base import Base, async_session_factory, engine, get_db, upsert
from polla.models.domain import (
    AccessToken,
    AdminTicket,
    Bet,
    BetStatus,
    EventWindow,
    OddsCacheEntry,
    Participant,
    Role,
    UserRole,
    WindowStatus,
)

__all__ = [
    # Base
    "Base",
    "engine",
    "async_session_factory",
    "get_db",
    "upsert",
    # Domain models
    "EventWindow",
    "Participant",
    "Bet",
    "UserRole",
    "AdminTicket",
    "OddsCacheEntry",
    "AccessToken",
    # Enums
    "WindowStatus",
    "BetStatus",
    "Role",
]
