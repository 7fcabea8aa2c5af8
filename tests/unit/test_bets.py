"""Unit tests for the bet ledger.

CRITICAL TESTS:
- A submission without a link or image is rejected (status-only admin updates excepted)
- Non-admins can only write their own row, always as in_game
- At most one bet row per (window, participant)
"""

import base64

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from polla.models import Bet, BetStatus, Role
from polla.services import bets as bet_service
from polla.services import windows as window_service
from polla.services.bets import BetSubmission
from polla.services.errors import AuthorizationError, StorageError, ValidationError
from polla.services.identity import CurrentUser

PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(b"\x89PNG fake").decode()


@pytest_asyncio.fixture
async def window(session, window_dates):
    return await window_service.open_window(session, *window_dates)


async def bet_count(session, window_id) -> int:
    result = await session.execute(
        select(func.count()).select_from(Bet).where(Bet.window_id == window_id)
    )
    return result.scalar_one()


class TestEvidenceRule:

    @pytest.mark.asyncio
    async def test_participant_without_evidence_rejected(
        self, session, participants, beto, storage, window
    ):
        with pytest.raises(ValidationError):
            await bet_service.submit_bet(session, beto, BetSubmission(odds=2.0), storage)

        assert await bet_count(session, window.id) == 0

    @pytest.mark.asyncio
    async def test_participant_status_without_evidence_rejected(
        self, session, participants, beto, storage, window
    ):
        submission = BetSubmission(status=BetStatus.OK)

        with pytest.raises(ValidationError):
            await bet_service.submit_bet(session, beto, submission, storage)

    @pytest.mark.asyncio
    async def test_admin_without_evidence_or_status_rejected(
        self, session, participants, admin, storage, window
    ):
        submission = BetSubmission(participant_id=participants["beto"].id)

        with pytest.raises(ValidationError):
            await bet_service.submit_bet(session, admin, submission, storage)

    @pytest.mark.asyncio
    async def test_admin_status_only_update_keeps_evidence(
        self, session, participants, admin, beto, storage, window
    ):
        await bet_service.submit_bet(
            session,
            beto,
            BetSubmission(bet_link="https://bets.example/42", odds=2.2),
            storage,
        )

        bet = await bet_service.submit_bet(
            session,
            admin,
            BetSubmission(participant_id=participants["beto"].id, status=BetStatus.OK),
            storage,
        )

        assert bet.status == BetStatus.OK.value
        assert bet.bet_link == "https://bets.example/42"
        assert bet.odds == 2.2


class TestParticipantSubmission:

    @pytest.mark.asyncio
    async def test_link_submission_is_in_game(
        self, session, participants, beto, storage, window
    ):
        bet = await bet_service.submit_bet(
            session, beto, BetSubmission(bet_link="https://bets.example/1"), storage
        )

        assert bet.participant_id == participants["beto"].id
        assert bet.window_id == window.id
        assert bet.status == BetStatus.IN_GAME.value

    @pytest.mark.asyncio
    async def test_requested_status_is_ignored(
        self, session, participants, beto, storage, window
    ):
        bet = await bet_service.submit_bet(
            session,
            beto,
            BetSubmission(bet_link="https://bets.example/1", status=BetStatus.OK),
            storage,
        )

        assert bet.status == BetStatus.IN_GAME.value

    @pytest.mark.asyncio
    async def test_cannot_write_other_participant(
        self, session, participants, beto, storage, window
    ):
        submission = BetSubmission(
            bet_link="https://bets.example/1", participant_id=participants["caro"].id
        )

        with pytest.raises(AuthorizationError):
            await bet_service.submit_bet(session, beto, submission, storage)

        assert await bet_count(session, window.id) == 0

    @pytest.mark.asyncio
    async def test_naming_own_participant_is_allowed(
        self, session, participants, beto, storage, window
    ):
        submission = BetSubmission(
            bet_link="https://bets.example/1", participant_id=participants["beto"].id
        )

        bet = await bet_service.submit_bet(session, beto, submission, storage)

        assert bet.participant_id == participants["beto"].id

    @pytest.mark.asyncio
    async def test_unregistered_caller_rejected(self, session, participants, storage, window):
        stranger = CurrentUser(email="nobody@example.com", role=Role.PARTICIPANT)

        with pytest.raises(ValidationError):
            await bet_service.submit_bet(
                session, stranger, BetSubmission(bet_link="https://x"), storage
            )

    @pytest.mark.asyncio
    async def test_no_open_window(self, session, participants, beto, storage):
        with pytest.raises(ValidationError):
            await bet_service.submit_bet(
                session, beto, BetSubmission(bet_link="https://x"), storage
            )

    @pytest.mark.asyncio
    async def test_cannot_target_closed_window(
        self, session, participants, beto, storage, window, window_dates
    ):
        await window_service.open_window(session, *window_dates)

        with pytest.raises(ValidationError):
            await bet_service.submit_bet(
                session,
                beto,
                BetSubmission(bet_link="https://x", window_id=window.id),
                storage,
            )

    @pytest.mark.asyncio
    async def test_resubmission_replaces_single_row(
        self, session, participants, beto, storage, window
    ):
        await bet_service.submit_bet(
            session, beto, BetSubmission(bet_link="https://bets.example/1"), storage
        )
        bet = await bet_service.submit_bet(
            session, beto, BetSubmission(bet_link="https://bets.example/2", odds=1.9), storage
        )

        assert await bet_count(session, window.id) == 1
        assert bet.bet_link == "https://bets.example/2"
        assert bet.odds == 1.9


class TestImageUpload:

    @pytest.mark.asyncio
    async def test_image_is_uploaded_under_window_and_participant(
        self, session, participants, beto, storage, window
    ):
        bet = await bet_service.submit_bet(
            session, beto, BetSubmission(bet_image_data=PNG_DATA_URL), storage
        )

        assert len(storage.uploads) == 1
        path, content, content_type = storage.uploads[0]
        assert path.startswith(f"bets/{window.id}/{participants['beto'].id}/")
        assert content == b"\x89PNG fake"
        assert content_type == "image/png"
        assert bet.bet_image_url == path

    @pytest.mark.asyncio
    async def test_malformed_image_rejected(
        self, session, participants, beto, storage, window
    ):
        with pytest.raises(ValidationError):
            await bet_service.submit_bet(
                session, beto, BetSubmission(bet_image_data="not-a-data-url"), storage
            )

        assert storage.uploads == []


class TestAdminSubmission:

    @pytest.mark.asyncio
    async def test_admin_status_is_kept(self, session, participants, admin, storage, window):
        bet = await bet_service.submit_bet(
            session,
            admin,
            BetSubmission(
                bet_link="https://bets.example/9",
                status=BetStatus.NOK,
                participant_id=participants["caro"].id,
            ),
            storage,
        )

        assert bet.participant_id == participants["caro"].id
        assert bet.status == BetStatus.NOK.value

    @pytest.mark.asyncio
    async def test_admin_can_target_closed_window(
        self, session, participants, admin, storage, window, window_dates
    ):
        await window_service.finish_window(session, window)

        bet = await bet_service.submit_bet(
            session,
            admin,
            BetSubmission(
                status=BetStatus.OK,
                participant_id=participants["caro"].id,
                window_id=window.id,
            ),
            storage,
        )

        assert bet.window_id == window.id
        assert bet.status == BetStatus.OK.value

    @pytest.mark.asyncio
    async def test_admin_unknown_window(self, session, participants, admin, storage):
        with pytest.raises(ValidationError):
            await bet_service.submit_bet(
                session,
                admin,
                BetSubmission(bet_link="https://x", window_id="missing"),
                storage,
            )


class TestGradeBet:

    @pytest.mark.asyncio
    async def test_non_admin_rejected(self, session, participants, beto, window):
        with pytest.raises(AuthorizationError):
            await bet_service.grade_bet(
                session, beto, window.id, participants["beto"].id, BetStatus.OK
            )

    @pytest.mark.asyncio
    async def test_grade_creates_row_when_missing(
        self, session, participants, admin, window
    ):
        bet = await bet_service.grade_bet(
            session, admin, window.id, participants["caro"].id, BetStatus.NOK
        )

        assert bet.status == BetStatus.NOK.value
        assert bet.bet_link is None

    @pytest.mark.asyncio
    async def test_grade_only_changes_status(
        self, session, participants, admin, beto, storage, window
    ):
        await bet_service.submit_bet(
            session, beto, BetSubmission(bet_link="https://bets.example/7"), storage
        )

        bet = await bet_service.grade_bet(
            session, admin, window.id, participants["beto"].id, "ok"
        )

        assert bet.status == BetStatus.OK.value
        assert bet.bet_link == "https://bets.example/7"
        assert await bet_count(session, window.id) == 1


class TestListWindowBets:

    @pytest.mark.asyncio
    async def test_signs_storage_paths_and_keeps_http_urls(
        self, session, participants, admin, beto, storage, window
    ):
        await bet_service.submit_bet(
            session, beto, BetSubmission(bet_image_data=PNG_DATA_URL), storage
        )
        await bet_service.submit_bet(
            session,
            admin,
            BetSubmission(
                bet_image_url="https://cdn.example/ticket.png",
                participant_id=participants["caro"].id,
            ),
            storage,
        )

        people, bets = await bet_service.list_window_bets(session, window, storage)

        assert [p["name"] for p in people] == ["Ana", "Beto", "Caro"]
        by_participant = {b["participant_id"]: b for b in bets}
        assert by_participant[participants["beto"].id]["bet_image_url"].startswith(
            "https://storage.test/signed/bets/"
        )
        assert (
            by_participant[participants["caro"].id]["bet_image_url"]
            == "https://cdn.example/ticket.png"
        )

    @pytest.mark.asyncio
    async def test_unsignable_path_returned_unchanged(
        self, session, participants, beto, storage, window
    ):
        class BrokenSigner:
            async def create_signed_url(self, path, expires_in=None):
                raise StorageError("down")

        session.add(
            Bet(
                window_id=window.id,
                participant_id=participants["beto"].id,
                bet_image_url="bets/raw/path.png",
                status=BetStatus.IN_GAME.value,
            )
        )
        await session.flush()

        _, bets = await bet_service.list_window_bets(session, window, BrokenSigner())

        assert bets[0]["bet_image_url"] == "bets/raw/path.png"
