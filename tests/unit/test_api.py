"""HTTP surface tests.

Dependencies are overridden so the routes run without PostgreSQL, Redis or
the odds provider; the services behind them have their own tests.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from polla.api import dependencies
from polla.api.routes import odds as odds_routes
from polla.api.routes import tokens as token_routes
from polla.main import app
from polla.models import Role
from polla.services.errors import UpstreamError
from polla.services.identity import CurrentUser
from polla.services.odds.service import OddsResult
from polla.services.rate_limiter import RateLimitResult

ADMIN = CurrentUser(email="ana@example.com", role=Role.ADMIN)
PARTICIPANT = CurrentUser(email="beto@example.com", role=Role.PARTICIPANT)


class StubLimiter:
    def __init__(self, result: RateLimitResult):
        self.result = result
        self.keys: list[str] = []

    async def hit(self, key: str) -> RateLimitResult:
        self.keys.append(key)
        return self.result


@pytest.fixture
def db():
    session = MagicMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    return session


@pytest.fixture
def client(db):
    async def override_get_db():
        yield db

    app.dependency_overrides[dependencies.get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def login(user: CurrentUser):
    app.dependency_overrides[dependencies.get_current_user] = lambda: user


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAuth:

    def test_missing_token_is_401(self, client):
        response = client.get("/api/windows")

        assert response.status_code == 401
        assert response.json() == {"ok": False, "error": "No autenticado"}

    def test_bad_token_is_401(self, client):
        response = client.get(
            "/api/windows", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401

    def test_me(self, client):
        login(PARTICIPANT)

        response = client.get("/api/auth/me")

        assert response.json() == {"ok": True, "email": "beto@example.com", "role": "participant"}


class TestWindows:

    def test_open_requires_admin(self, client):
        login(PARTICIPANT)

        response = client.post(
            "/api/windows", json={"start_date": "2026-10-17", "end_date": "2026-10-19"}
        )

        assert response.status_code == 403
        assert response.json() == {"ok": False, "error": "Solo admin"}

    def test_open_with_bad_body_is_400(self, client):
        login(ADMIN)

        response = client.post("/api/windows", json={"start_date": "not a date"})

        assert response.status_code == 400
        assert response.json()["ok"] is False

    def test_abort_without_id_is_400(self, client):
        login(ADMIN)

        response = client.delete("/api/windows")

        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Falta id de fecha"}

    def test_abort_requires_admin(self, client):
        login(PARTICIPANT)

        response = client.delete("/api/windows", params={"id": "w-1"})

        assert response.status_code == 403

    def test_database_failure_is_json_500(self, db):
        db.execute = AsyncMock(
            side_effect=OperationalError("UPDATE event_windows", {}, Exception("connection lost"))
        )

        async def override_get_db():
            yield db

        app.dependency_overrides[dependencies.get_db] = override_get_db
        login(ADMIN)
        try:
            client = TestClient(app, raise_server_exceptions=False)
            response = client.post(
                "/api/windows", json={"start_date": "2026-10-17", "end_date": "2026-10-19"}
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.headers["content-type"].startswith("application/json")
        assert response.json() == {"ok": False, "error": "Error de base de datos"}
        db.commit.assert_not_called()


class TestBets:

    def test_grade_requires_admin(self, client):
        login(PARTICIPANT)

        response = client.post(
            "/api/bets/grade",
            json={"window_id": "w-1", "participant_id": "p-1", "status": "ok"},
        )

        assert response.status_code == 403

    def test_grade_rejects_unknown_status(self, client):
        login(ADMIN)

        response = client.post(
            "/api/bets/grade",
            json={"window_id": "w-1", "participant_id": "p-1", "status": "won"},
        )

        assert response.status_code == 400

    def test_submission_without_evidence_is_400(self, client, db):
        login(PARTICIPANT)
        app.dependency_overrides[dependencies.get_storage] = lambda: None

        response = client.post("/api/bets", json={"odds": 2.1})

        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Debes enviar imagen o link"}
        db.commit.assert_not_called()


class TestAdminTicket:

    def test_requires_admin(self, client):
        login(PARTICIPANT)

        response = client.post("/api/admin-ticket", json={"image_data": "data:x;base64,AA=="})

        assert response.status_code == 403


class TestParticipants:

    def test_requires_admin(self, client):
        login(PARTICIPANT)

        response = client.post(
            "/api/participants", json={"name": "Dani", "email": "dani@example.com"}
        )

        assert response.status_code == 403

    def test_missing_fields_is_400(self, client):
        login(ADMIN)

        response = client.post("/api/participants", json={"name": "Dani"})

        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Faltan nombre y correo"}


class TestOdds:

    @pytest.fixture(autouse=True)
    def odds_client(self):
        app.dependency_overrides[dependencies.get_odds_client] = lambda: None

    def test_response_is_not_cacheable(self, client, monkeypatch):
        now = datetime(2026, 10, 17, tzinfo=timezone.utc)
        monkeypatch.setattr(
            odds_routes,
            "get_odds",
            AsyncMock(
                return_value=OddsResult(
                    cached=True,
                    sport="soccer_spain_la_liga",
                    start_date=now,
                    end_date=now,
                    fetched_at=now,
                )
            ),
        )

        response = client.get("/api/odds", params={"minOdds": 1.5, "maxOdds": 2.5})

        assert response.status_code == 200
        assert response.headers["cache-control"] == "no-store"
        assert response.json()["cached"] is True
        kwargs = odds_routes.get_odds.call_args.kwargs
        assert (kwargs["min_odds"], kwargs["max_odds"]) == (1.5, 2.5)

    def test_upstream_status_passes_through(self, client, monkeypatch):
        monkeypatch.setattr(
            odds_routes,
            "get_odds",
            AsyncMock(side_effect=UpstreamError("Odds API error", status_code=429)),
        )

        response = client.get("/api/odds")

        assert response.status_code == 429
        assert response.json() == {"ok": False, "error": "Odds API error"}


class TestValidateToken:

    def test_rate_limited(self, client):
        app.dependency_overrides[dependencies.get_rate_limiter] = lambda: StubLimiter(
            RateLimitResult(allowed=False, retry_after=17)
        )

        response = client.post("/api/validate-token", json={"token": "abc"})

        assert response.status_code == 429
        assert response.headers["retry-after"] == "17"
        assert response.json() == {"ok": False, "error": "Rate limit"}

    def test_limit_is_keyed_by_forwarded_ip(self, client, monkeypatch):
        limiter = StubLimiter(RateLimitResult(allowed=True))
        app.dependency_overrides[dependencies.get_rate_limiter] = lambda: limiter
        monkeypatch.setattr(token_routes, "is_valid_access_token", AsyncMock(return_value=True))

        client.post(
            "/api/validate-token",
            json={"token": "abc"},
            headers={"X-Forwarded-For": "203.0.113.5, 10.0.0.1"},
        )

        assert limiter.keys == ["validate:203.0.113.5"]

    def test_missing_token_is_400(self, client):
        app.dependency_overrides[dependencies.get_rate_limiter] = lambda: StubLimiter(
            RateLimitResult(allowed=True)
        )

        response = client.post("/api/validate-token", json={})

        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Token requerido"}

    @pytest.mark.parametrize("body", ['{"token": 123}', '["abc"]', "not json", ""])
    def test_malformed_body_still_counts_against_limit(self, client, body):
        limiter = StubLimiter(RateLimitResult(allowed=True))
        app.dependency_overrides[dependencies.get_rate_limiter] = lambda: limiter

        response = client.post(
            "/api/validate-token",
            content=body,
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Token requerido"}
        assert len(limiter.keys) == 1

    @pytest.mark.parametrize("valid, status_code, body", [
        (True, 200, {"ok": True}),
        (False, 403, {"ok": False}),
    ])
    def test_token_check(self, client, monkeypatch, valid, status_code, body):
        app.dependency_overrides[dependencies.get_rate_limiter] = lambda: StubLimiter(
            RateLimitResult(allowed=True)
        )
        monkeypatch.setattr(
            token_routes, "is_valid_access_token", AsyncMock(return_value=valid)
        )

        response = client.post("/api/validate-token", json={"token": "abc"})

        assert response.status_code == status_code
        assert response.json() == body
