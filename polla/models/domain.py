"""Domain models for Polla Partidos.

One row per betting window, participant, bet and admin ticket, plus the
sign-in allow-list, the odds cache and the shareable access tokens.

The single-active-window rule and the one-bet-per-participant rule are
both backed by indexes here, so a racing writer fails instead of leaving
duplicate rows behind.
"""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from polla.models.base import Base, TimestampMixin


def new_id() -> str:
    return str(uuid.uuid4())


class WindowStatus(str, Enum):
    """Stored lifecycle status of a betting window."""

    OPEN = "open"
    FINISHED = "finished"
    ABORTED = "aborted"


class BetStatus(str, Enum):
    """Status of a participant's bet within a window."""

    PENDING = "pending"
    IN_GAME = "in_game"
    OK = "ok"
    NOK = "nok"
    NO_SHOW = "no_show"


class Role(str, Enum):
    ADMIN = "admin"
    PARTICIPANT = "participant"


class EventWindow(Base, TimestampMixin):
    """
    One betting period.

    Finished and aborted are terminal. At most one row is active; the
    partial unique index rejects a second active row.
    """

    __tablename__ = "event_windows"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=WindowStatus.OPEN.value, nullable=False
    )
    min_odds: Mapped[float | None] = mapped_column(
        Numeric(8, 3, asdecimal=False), nullable=True
    )
    max_odds: Mapped[float | None] = mapped_column(
        Numeric(8, 3, asdecimal=False), nullable=True
    )

    bets: Mapped[list["Bet"]] = relationship("Bet", back_populates="window")
    tickets: Mapped[list["AdminTicket"]] = relationship(
        "AdminTicket", back_populates="window"
    )

    __table_args__ = (
        Index(
            "uq_event_windows_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
        Index("idx_event_windows_created", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in (WindowStatus.FINISHED.value, WindowStatus.ABORTED.value)

    def __repr__(self) -> str:
        return f"<EventWindow {self.start_date}..{self.end_date} ({self.status})>"


class Participant(Base, TimestampMixin):
    """A player in the group. Email is the upsert key."""

    __tablename__ = "participants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)

    bets: Mapped[list["Bet"]] = relationship("Bet", back_populates="participant")

    def __repr__(self) -> str:
        return f"<Participant {self.name} <{self.email}>>"


class Bet(Base, TimestampMixin):
    """
    A participant's bet for one window.

    Exactly one row per (window, participant); writers upsert on that pair.
    """

    __tablename__ = "bets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    window_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("event_windows.id"), nullable=False
    )
    participant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("participants.id"), nullable=False
    )
    bet_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    bet_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    odds: Mapped[float | None] = mapped_column(
        Numeric(8, 3, asdecimal=False), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), default=BetStatus.PENDING.value, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    window: Mapped["EventWindow"] = relationship("EventWindow", back_populates="bets")
    participant: Mapped["Participant"] = relationship(
        "Participant", back_populates="bets"
    )

    __table_args__ = (
        UniqueConstraint("window_id", "participant_id", name="uq_bets_window_participant"),
    )

    def __repr__(self) -> str:
        return f"<Bet {self.participant_id} @ {self.window_id} ({self.status})>"


class UserRole(Base, TimestampMixin):
    """Sign-in allow-list. Any email without a row is denied."""

    __tablename__ = "user_roles"

    email: Mapped[str] = mapped_column(String(320), primary_key=True)
    role: Mapped[str] = mapped_column(
        String(20), default=Role.PARTICIPANT.value, nullable=False
    )


class AdminTicket(Base, TimestampMixin):
    """Final results image (cartilla) uploaded when a window is finished."""

    __tablename__ = "admin_tickets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    window_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("event_windows.id"), nullable=False
    )
    image_url: Mapped[str] = mapped_column(Text, nullable=False)

    window: Mapped["EventWindow"] = relationship(
        "EventWindow", back_populates="tickets"
    )


class OddsCacheEntry(Base):
    """Last raw upstream odds payload per sport. Overwritten, never evicted."""

    __tablename__ = "odds_cache"

    cache_key: Mapped[str] = mapped_column(String(100), primary_key=True)
    payload: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False
    )
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<OddsCacheEntry {self.cache_key} @ {self.fetched_at}>"


class AccessToken(Base, TimestampMixin):
    """Shareable access token checked by the validate-token endpoint."""

    __tablename__ = "access_tokens"

    token: Mapped[str] = mapped_column(String(128), primary_key=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
