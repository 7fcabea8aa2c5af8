"""Participants and the sign-in allow-list."""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from polla.models.base import upsert
from polla.models.domain import Participant, Role, UserRole, new_id
from polla.services.errors import ValidationError

logger = structlog.get_logger(__name__)


def normalize_email(email: str | None) -> str | None:
    if not email:
        return None
    return email.strip().lower() or None


async def get_user_role(session: AsyncSession, email: str | None) -> Role:
    """Role for an email. Anything that is not explicitly admin is a participant."""
    email = normalize_email(email)
    if not email:
        return Role.PARTICIPANT
    result = await session.execute(select(UserRole.role).where(UserRole.email == email))
    if result.scalar_one_or_none() == Role.ADMIN.value:
        return Role.ADMIN
    return Role.PARTICIPANT


async def is_allow_listed(session: AsyncSession, email: str | None) -> bool:
    """Only emails with a user_roles row may sign in."""
    email = normalize_email(email)
    if not email:
        return False
    result = await session.execute(select(UserRole.email).where(UserRole.email == email))
    return result.scalar_one_or_none() is not None


async def find_participant_by_email(
    session: AsyncSession, email: str | None
) -> Participant | None:
    email = normalize_email(email)
    if not email:
        return None
    result = await session.execute(select(Participant).where(Participant.email == email))
    return result.scalar_one_or_none()


async def list_participants(session: AsyncSession) -> list[Participant]:
    result = await session.execute(select(Participant).order_by(Participant.name.asc()))
    return list(result.scalars().all())


async def upsert_participant(session: AsyncSession, name: str | None, email: str | None) -> None:
    """
    Create or rename a participant and put their email on the allow-list.

    An existing admin keeps the admin role.

    Raises:
        ValidationError: Name or email missing
    """
    email = normalize_email(email)
    name = (name or "").strip()
    if not email or not name:
        raise ValidationError("Faltan nombre y correo")

    stmt = upsert(session, Participant).values(id=new_id(), email=email, name=name)
    stmt = stmt.on_conflict_do_update(index_elements=["email"], set_={"name": name})
    await session.execute(stmt)

    role = await get_user_role(session, email)
    stmt = upsert(session, UserRole).values(email=email, role=role.value)
    stmt = stmt.on_conflict_do_update(index_elements=["email"], set_={"role": role.value})
    await session.execute(stmt)

    logger.info("participant_upserted", email=email, role=role.value)
