import random
from datetime import timedelta

import pytest
from unittest.mock import patch

from ledgerapi.core.exceptions import (
    BetOutOfRangeError,
    GameNotActiveError,
    GameNotFoundError,
    InsufficientBalanceError,
    ValidationError,
)
from ledgerapi.models.game import Game, GameResult, GameSession, GameType, RiskLevel
from ledgerapi.models.points import PointTransaction, TransactionType
from ledgerapi.repositories.points_repository import PointsRepository
from ledgerapi.schemas.game import GameCreateRequest, GameUpdateRequest
from ledgerapi.services.game_service import GameService
from ledgerapi.utils.timezone_utils import utc_now


@pytest.fixture
def game_service(db):
    return GameService(db, rng=random.Random(42))


@pytest.fixture
def make_game(db):
    def _make(multipliers=None, rows=14, min_bet=1, max_bet=1000, is_active=True):
        game = Game(
            name="Plinko",
            description="",
            game_type=GameType.PLINKO.value,
            is_active=is_active,
            min_bet=min_bet,
            max_bet=max_bet,
            house_edge=2.5,
            settings={
                "rows": rows,
                "multipliers": multipliers
                or [0.2, 0.5, 1, 1.5, 2, 3, 5, 10, 5, 3, 2, 1.5, 1, 0.5, 0.2],
            },
        )
        db.add(game)
        db.commit()
        return game

    return _make


def _game_transactions(db, user_id):
    return (
        db.query(PointTransaction)
        .filter(
            PointTransaction.user_id == user_id,
            PointTransaction.type == TransactionType.PLINKO_GAME.value,
        )
        .order_by(PointTransaction.id)
        .all()
    )


class TestPlayPlinko:
    def test_low_multiplier_still_counts_as_win(self, db, game_service, make_user, make_game):
        # Arrange - 모든 슬롯 0.2 배
        user = make_user(redeemable=100)
        game = make_game(multipliers=[0.2] * 15)

        # Act
        result = game_service.play_plinko(game.id, user.id, 10, RiskLevel.MEDIUM)

        # Assert
        assert result.multiplier == 0.2
        assert result.win_amount == 2
        assert result.result == GameResult.WIN
        assert result.new_balance == 92
        amounts = [tx.amount for tx in _game_transactions(db, user.id)]
        assert amounts == [-10, 2]
        assert all(
            tx.reference_id == str(result.session.id) for tx in _game_transactions(db, user.id)
        )

    def test_zero_multiplier_is_loss_with_single_debit(self, db, game_service, make_user, make_game):
        user = make_user(redeemable=100)
        game = make_game(multipliers=[0] * 15)

        result = game_service.play_plinko(game.id, user.id, 10)

        assert result.result == GameResult.LOSE
        assert result.win_amount == 0
        transactions = _game_transactions(db, user.id)
        assert len(transactions) == 1
        assert transactions[0].amount == -10
        assert transactions[0].description == "Plinko game bet - medium risk"

    def test_win_writes_two_entries_sharing_session_reference(self, db, game_service, make_user, make_game):
        user = make_user(redeemable=100)
        game = make_game(multipliers=[2] * 15)

        result = game_service.play_plinko(game.id, user.id, 10)

        entries = PointsRepository(db).find_by_reference(
            str(result.session.id), reference_type="game_session"
        )
        assert [entry.amount for entry in entries] == [-10, 20]
        assert {entry.user_id for entry in entries} == {user.id}

    def test_session_records_path_and_slot(self, db, game_service, make_user, make_game):
        user = make_user(redeemable=100)
        game = make_game()

        result = game_service.play_plinko(game.id, user.id, 5, "high")

        session = db.get(GameSession, result.session.id)
        assert len(session.game_data["ball_path"]) == 14
        assert session.game_data["final_slot"] == result.final_slot
        assert session.game_data["risk_level"] == "high"
        assert 0 <= result.final_slot <= 14

    def test_stats_updated_after_play(self, db, game_service, make_user, make_game):
        user = make_user(redeemable=100)
        game = make_game(multipliers=[2] * 15)

        game_service.play_plinko(game.id, user.id, 10)

        db.expire_all()
        stored = db.get(Game, game.id)
        assert stored.total_played == 1
        assert stored.total_wagered == 10
        assert stored.total_won == 20

    def test_stats_failure_does_not_fail_play(self, db, game_service, make_user, make_game):
        user = make_user(redeemable=100)
        game = make_game(multipliers=[1] * 15)

        with patch.object(
            game_service.game_repo, "increment_stats", side_effect=RuntimeError("boom")
        ):
            result = game_service.play_plinko(game.id, user.id, 10)

        assert result.win_amount == 10
        db.expire_all()
        assert db.get(Game, game.id).total_played == 0
        assert db.get(type(user), user.id).redeemable_points == 100

    @pytest.mark.parametrize("bet", [0, 1001])
    def test_bet_out_of_range(self, game_service, make_user, make_game, bet):
        user = make_user(redeemable=5000)
        game = make_game()

        with pytest.raises(BetOutOfRangeError):
            game_service.play_plinko(game.id, user.id, bet)

    def test_insufficient_balance_leaves_no_session(self, db, game_service, make_user, make_game):
        user = make_user(redeemable=5)
        game = make_game()

        with pytest.raises(InsufficientBalanceError):
            game_service.play_plinko(game.id, user.id, 10)

        assert db.query(GameSession).count() == 0
        assert _game_transactions(db, user.id) == []

    def test_inactive_game(self, game_service, make_user, make_game):
        user = make_user(redeemable=100)
        game = make_game(is_active=False)

        with pytest.raises(GameNotActiveError):
            game_service.play_plinko(game.id, user.id, 10)

    def test_missing_game(self, game_service, make_user):
        user = make_user(redeemable=100)

        with pytest.raises(GameNotFoundError):
            game_service.play_plinko(404, user.id, 10)


class TestStatsAndLeaderboard:
    def test_user_stats(self, game_service, make_user, make_game):
        user = make_user(redeemable=1000)
        game = make_game(multipliers=[0] * 14 + [0])
        game_service.play_plinko(game.id, user.id, 10)
        game_service.play_plinko(game.id, user.id, 30)

        stats = game_service.get_user_game_stats(user.id, game_id=game.id)

        assert stats.total_sessions == 2
        assert stats.total_wagered == 40
        assert stats.total_won == 0
        assert stats.net_result == -40
        assert stats.win_rate == 0
        assert stats.average_bet == 20

    def test_leaderboard_ranks_winners(self, game_service, make_user, make_game):
        alice = make_user(redeemable=1000, username="alice")
        bob = make_user(redeemable=1000, username="bob")
        game = make_game(multipliers=[2] * 15)
        game_service.play_plinko(game.id, alice.id, 10)
        game_service.play_plinko(game.id, bob.id, 50)

        board = game_service.get_game_leaderboard(game.id, "all_time")

        assert [entry.username for entry in board.top_winners] == ["bob", "alice"]
        assert board.top_winners[0].value == 100
        assert board.biggest_wins[0].value == 100
        assert board.top_wagerers[0].value == 50

    def test_daily_leaderboard_excludes_old_sessions(self, game_service, make_user, make_game):
        user = make_user(redeemable=1000)
        game = make_game(multipliers=[2] * 15)
        game_service.play_plinko(game.id, user.id, 10)

        board = game_service.get_game_leaderboard(
            game.id, "daily", now=utc_now() + timedelta(days=2)
        )

        assert board.top_winners == []

    def test_invalid_period(self, game_service, make_game):
        game = make_game()

        with pytest.raises(ValidationError):
            game_service.get_game_leaderboard(game.id, "yearly")


class TestGameAdmin:
    def test_initialize_default_is_idempotent(self, game_service):
        first = game_service.initialize_default_plinko_game()
        second = game_service.initialize_default_plinko_game()

        assert first.id == second.id
        assert first.settings["rows"] == 14
        assert len(first.settings["multipliers"]) == 15
        assert (first.min_bet, first.max_bet) == (1, 1000)

    def test_create_game_rejects_inverted_bets(self, game_service):
        with pytest.raises(ValidationError):
            game_service.create_game(GameCreateRequest(name="Bad", min_bet=10, max_bet=5))

    def test_update_game(self, game_service, make_game):
        game = make_game()

        updated = game_service.update_game(game.id, GameUpdateRequest(is_active=False))

        assert updated.is_active is False
        assert game_service.list_active_games() == []
