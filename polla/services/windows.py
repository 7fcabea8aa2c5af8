"""Betting window lifecycle.

A window moves open -> finished (cartilla upload) or open -> aborted
(admin action). Both targets are terminal. Opening a new window
deactivates every other active window in the same transaction.
"""

import math
from datetime import date

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from polla.models.base import upsert
from polla.models.domain import (
    Bet,
    BetStatus,
    EventWindow,
    Participant,
    WindowStatus,
    new_id,
)
from polla.services.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

# Display status when there is no window at all
NO_WINDOW_STATUS = "sin_fecha"


def _normalize_price(value) -> float | None:
    """Keep only real numbers; anything else becomes NULL."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return float(value)


async def open_window(
    session: AsyncSession,
    start_date: date,
    end_date: date,
    min_odds: float | None = None,
    max_odds: float | None = None,
) -> EventWindow:
    """
    Open a new betting window.

    Deactivates all currently active windows, then inserts the new one as
    active with status=open. No check that start_date <= end_date.
    """
    await session.execute(
        update(EventWindow)
        .where(EventWindow.is_active == True)  # noqa: E712
        .values(is_active=False)
    )

    window = EventWindow(
        start_date=start_date,
        end_date=end_date,
        is_active=True,
        status=WindowStatus.OPEN.value,
        min_odds=_normalize_price(min_odds),
        max_odds=_normalize_price(max_odds),
    )
    session.add(window)
    await session.flush()

    logger.info(
        "window_opened",
        window_id=window.id,
        start_date=str(start_date),
        end_date=str(end_date),
        min_odds=window.min_odds,
        max_odds=window.max_odds,
    )
    return window


async def current_open_window(session: AsyncSession) -> EventWindow | None:
    """Most recently created active window, or None when nothing is open."""
    result = await session.execute(
        select(EventWindow)
        .where(EventWindow.is_active == True)  # noqa: E712
        .order_by(EventWindow.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_window(session: AsyncSession, window_id: str) -> EventWindow | None:
    result = await session.execute(
        select(EventWindow).where(EventWindow.id == window_id)
    )
    return result.scalar_one_or_none()


async def get_open_window(
    session: AsyncSession, window_id: str | None = None
) -> EventWindow | None:
    """The active window, optionally pinned to a specific id."""
    if window_id is None:
        return await current_open_window(session)
    window = await get_window(session, window_id)
    if window is None or not window.is_active:
        return None
    return window


async def list_windows(
    session: AsyncSession, include_aborted: bool = False
) -> list[EventWindow]:
    """All windows, newest first. Aborted ones only when requested."""
    query = select(EventWindow).order_by(EventWindow.created_at.desc())
    if not include_aborted:
        query = query.where(
            EventWindow.status.in_(
                [WindowStatus.OPEN.value, WindowStatus.FINISHED.value]
            )
        )
    result = await session.execute(query)
    return list(result.scalars().all())


def window_display_status(window: EventWindow | None) -> str:
    """
    Status shown to clients.

    An inactive window that was never marked terminal was superseded by a
    newer one, so it reads as aborted.
    """
    if window is None:
        return NO_WINDOW_STATUS
    if window.status == WindowStatus.FINISHED.value:
        return WindowStatus.FINISHED.value
    if window.status == WindowStatus.ABORTED.value:
        return WindowStatus.ABORTED.value
    if not window.is_active:
        return WindowStatus.ABORTED.value
    return WindowStatus.OPEN.value


async def backfill_no_shows(session: AsyncSession, window_id: str) -> int:
    """
    Record a no_show bet for every participant without a bet in the window.

    Existing bet rows are never touched (ON CONFLICT DO NOTHING). If the
    participant list cannot be read the back-fill is skipped; the read runs
    in a savepoint so the surrounding transaction stays usable.

    Returns:
        Number of participants that were missing a bet
    """
    try:
        async with session.begin_nested():
            result = await session.execute(select(Participant.id))
            participant_ids = list(result.scalars().all())
    except SQLAlchemyError as e:
        logger.warning("no_show_backfill_skipped", window_id=window_id, error=str(e))
        return 0

    result = await session.execute(
        select(Bet.participant_id).where(Bet.window_id == window_id)
    )
    has_bet = set(result.scalars().all())
    missing = [pid for pid in participant_ids if pid not in has_bet]
    if not missing:
        return 0

    stmt = upsert(session, Bet).values(
        [
            {
                "id": new_id(),
                "window_id": window_id,
                "participant_id": pid,
                "status": BetStatus.NO_SHOW.value,
            }
            for pid in missing
        ]
    )
    stmt = stmt.on_conflict_do_nothing(index_elements=["window_id", "participant_id"])
    await session.execute(stmt)

    logger.info("no_shows_backfilled", window_id=window_id, count=len(missing))
    return len(missing)


async def finish_window(session: AsyncSession, window: EventWindow) -> EventWindow:
    """
    Finish a window.

    Back-fills no_show bets for participants without a bet, then marks the
    window inactive and finished.
    """
    backfilled = await backfill_no_shows(session, window.id)

    window.is_active = False
    window.status = WindowStatus.FINISHED.value
    await session.flush()

    logger.info("window_finished", window_id=window.id, no_shows=backfilled)
    return window


async def abort_window(session: AsyncSession, window_id: str) -> EventWindow:
    """
    Abort a window.

    Raises:
        NotFoundError: Unknown window id
        ValidationError: Window already finished
    """
    window = await get_window(session, window_id)
    if window is None:
        raise NotFoundError("No se encontró la fecha")
    if window.status == WindowStatus.FINISHED.value:
        raise ValidationError("No se puede abortar una fecha finalizada")

    window.is_active = False
    window.status = WindowStatus.ABORTED.value
    await session.flush()

    logger.info("window_aborted", window_id=window.id)
    return window
