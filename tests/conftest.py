"""Pytest configuration and fixtures for Polla Partidos tests."""

from datetime import date

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from polla.models import Base, Participant, Role, UserRole
from polla.services.identity import CurrentUser


class FakeStorage:
    """Records uploads and signs paths without touching the network."""

    def __init__(self):
        self.uploads: list[tuple[str, bytes, str]] = []

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        self.uploads.append((path, content, content_type))
        return path

    async def create_signed_url(self, path: str, expires_in: int | None = None) -> str:
        return f"https://storage.test/signed/{path}?token=abc"


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN on its own; emit it explicitly so SAVEPOINTs work
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def storage():
    return FakeStorage()


@pytest_asyncio.fixture
async def participants(session):
    """Three registered participants; Ana is also the admin."""
    rows = {
        "ana": Participant(name="Ana", email="ana@example.com"),
        "beto": Participant(name="Beto", email="beto@example.com"),
        "caro": Participant(name="Caro", email="caro@example.com"),
    }
    session.add_all(rows.values())
    session.add_all(
        [
            UserRole(email="ana@example.com", role=Role.ADMIN.value),
            UserRole(email="beto@example.com", role=Role.PARTICIPANT.value),
            UserRole(email="caro@example.com", role=Role.PARTICIPANT.value),
        ]
    )
    await session.flush()
    return rows


@pytest.fixture
def admin():
    return CurrentUser(email="ana@example.com", role=Role.ADMIN)


@pytest.fixture
def beto():
    return CurrentUser(email="beto@example.com", role=Role.PARTICIPANT)


@pytest.fixture
def window_dates():
    return date(2026, 10, 17), date(2026, 10, 19)


def make_event(event_id, commence_time, bookmakers, home="Real Madrid", away="Sevilla"):
    return {
        "id": event_id,
        "sport_key": "soccer_spain_la_liga",
        "commence_time": commence_time,
        "home_team": home,
        "away_team": away,
        "bookmakers": bookmakers,
    }


def make_bookmaker(key, outcomes, market="h2h"):
    return {
        "key": key,
        "title": key.title(),
        "markets": [
            {
                "key": market,
                "outcomes": [{"name": name, "price": price} for name, price in outcomes],
            }
        ],
    }


@pytest.fixture
def sample_events():
    """Two La Liga events as returned by The Odds API."""
    return [
        make_event(
            "evt-1",
            "2026-10-18T19:00:00Z",
            [
                make_bookmaker("pinnacle", [("Real Madrid", 1.8), ("Sevilla", 4.5), ("Draw", 3.9)]),
                make_bookmaker("betfair_ex_eu", [("Real Madrid", 2.1), ("Sevilla", 5.0), ("Draw", 2.9)]),
            ],
        ),
        make_event(
            "evt-2",
            "2026-10-30T19:00:00Z",
            [make_bookmaker("pinnacle", [("Girona", 2.4), ("Betis", 2.8), ("Draw", 3.2)])],
            home="Girona",
            away="Betis",
        ),
    ]
