"""Bet ledger: one bet per (window, participant).

Participants submit evidence (a link or a screenshot) for the open window;
the admin grades each bet. All writes are upserts on the
(window_id, participant_id) pair.
"""

import uuid
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from polla.models.base import upsert
from polla.models.domain import Bet, BetStatus, EventWindow, new_id
from polla.services import participants as participant_service
from polla.services import windows as window_service
from polla.services.errors import AuthorizationError, StorageError, ValidationError
from polla.services.identity import CurrentUser
from polla.services.storage import StorageClient, decode_image_or_raise

logger = structlog.get_logger(__name__)

# Status written for every non-admin submission
SUBMITTED_STATUS = BetStatus.IN_GAME


@dataclass
class BetSubmission:
    """Fields a caller may send when submitting or editing a bet."""

    bet_link: str | None = None
    bet_image_url: str | None = None
    bet_image_data: str | None = None
    odds: float | None = None
    status: BetStatus | None = None
    participant_id: str | None = None
    window_id: str | None = None

    @property
    def has_evidence(self) -> bool:
        return bool(self.bet_link or self.bet_image_url or self.bet_image_data)

    @property
    def has_status_update(self) -> bool:
        return self.status is not None


async def _resolve_window(
    session: AsyncSession, caller: CurrentUser, window_id: str | None
) -> EventWindow:
    if window_id and caller.is_admin:
        window = await window_service.get_window(session, window_id)
    else:
        window = await window_service.get_open_window(session, window_id)

    if window is None:
        raise ValidationError(
            "No se encontró la ventana" if caller.is_admin else "No hay ventana abierta"
        )
    return window


async def _resolve_participant_id(
    session: AsyncSession, caller: CurrentUser, target_participant_id: str | None
) -> str:
    """
    Participant whose row is written.

    Admins may name any participant. Everyone else writes their own row,
    and naming a different participant is rejected.
    """
    if target_participant_id and caller.is_admin:
        return target_participant_id

    me = await participant_service.find_participant_by_email(session, caller.email)
    if me is None:
        raise ValidationError("No estás registrado como participante")

    if target_participant_id and target_participant_id != me.id:
        logger.warning(
            "cross_participant_write_rejected",
            email=caller.email,
            target_participant_id=target_participant_id,
        )
        raise AuthorizationError("No puedes editar apuestas de otros")
    return me.id


async def get_bet(
    session: AsyncSession, window_id: str, participant_id: str
) -> Bet | None:
    result = await session.execute(
        select(Bet)
        .where(Bet.window_id == window_id, Bet.participant_id == participant_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def submit_bet(
    session: AsyncSession,
    caller: CurrentUser,
    submission: BetSubmission,
    storage: StorageClient,
) -> Bet:
    """
    Create or replace the caller's bet for a window.

    Raises:
        ValidationError: No evidence, no window, caller not registered,
            malformed image data
        AuthorizationError: Non-admin writing another participant's bet
        StorageError: Image upload failed
    """
    status_only = not submission.has_evidence
    if status_only and not (caller.is_admin and submission.has_status_update):
        raise ValidationError("Debes enviar imagen o link")

    window = await _resolve_window(session, caller, submission.window_id)
    participant_id = await _resolve_participant_id(
        session, caller, submission.participant_id
    )

    if caller.is_admin and submission.status is not None:
        status = BetStatus(submission.status)
    else:
        status = SUBMITTED_STATUS

    image_path = submission.bet_image_url or None
    if submission.bet_image_data:
        image = decode_image_or_raise(submission.bet_image_data)
        image_path = await storage.upload(
            f"bets/{window.id}/{participant_id}/{uuid.uuid4()}",
            image.content,
            image.mime,
        )

    if status_only:
        changes = {"status": status.value}
    else:
        changes = {
            "bet_link": submission.bet_link,
            "bet_image_url": image_path,
            "odds": submission.odds,
            "status": status.value,
        }

    stmt = upsert(session, Bet).values(
        id=new_id(),
        window_id=window.id,
        participant_id=participant_id,
        **changes,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["window_id", "participant_id"],
        set_=changes,
    )
    await session.execute(stmt)

    logger.info(
        "bet_submitted",
        window_id=window.id,
        participant_id=participant_id,
        status=status.value,
        by_admin=caller.is_admin,
        status_only=status_only,
    )
    return await get_bet(session, window.id, participant_id)


async def grade_bet(
    session: AsyncSession,
    caller: CurrentUser,
    window_id: str,
    participant_id: str,
    status: BetStatus,
) -> Bet:
    """
    Set the status of a participant's bet (admin only).

    Creates the row if the participant has no bet yet.
    """
    if not caller.is_admin:
        raise AuthorizationError("Solo admin")

    window = await window_service.get_window(session, window_id)
    if window is None:
        raise ValidationError("No se encontró la ventana")

    status = BetStatus(status)
    stmt = upsert(session, Bet).values(
        id=new_id(),
        window_id=window.id,
        participant_id=participant_id,
        status=status.value,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["window_id", "participant_id"],
        set_={"status": status.value},
    )
    await session.execute(stmt)

    logger.info(
        "bet_graded",
        window_id=window.id,
        participant_id=participant_id,
        status=status.value,
    )
    return await get_bet(session, window.id, participant_id)


async def list_window_bets(
    session: AsyncSession,
    window: EventWindow,
    storage: StorageClient,
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """
    Participants (by name) and the window's bets.

    Stored image paths are swapped for signed URLs; absolute http URLs are
    returned as-is, and a path that cannot be signed is returned unchanged.
    """
    participants = [
        {"id": p.id, "name": p.name, "email": p.email}
        for p in await participant_service.list_participants(session)
    ]

    result = await session.execute(select(Bet).where(Bet.window_id == window.id))
    bets = []
    for bet in result.scalars().all():
        image_url = bet.bet_image_url
        if image_url and not image_url.startswith("http"):
            try:
                image_url = await storage.create_signed_url(image_url)
            except StorageError:
                logger.debug("signed_url_fallback", bet_id=bet.id)
        bets.append(
            {
                "id": bet.id,
                "participant_id": bet.participant_id,
                "window_id": bet.window_id,
                "bet_link": bet.bet_link,
                "bet_image_url": image_url,
                "odds": bet.odds,
                "status": bet.status,
                "notes": bet.notes,
            }
        )

    return participants, bets
