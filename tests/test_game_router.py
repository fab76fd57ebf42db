from datetime import datetime, timezone
from unittest.mock import Mock

from ledgerapi.core.exceptions import BetOutOfRangeError
from ledgerapi.models.game import GameResult, GameType, RiskLevel
from ledgerapi.schemas.game import (
    GameLeaderboard,
    GameResponse,
    GameSessionResponse,
    LeaderboardEntry,
    PlinkoPlayResult,
)


def _game():
    return GameResponse(
        id=1,
        name="Plinko",
        game_type=GameType.PLINKO,
        is_active=True,
        min_bet=1,
        max_bet=1000,
        house_edge=2.5,
        settings={"rows": 14},
    )


class TestGameRoutes:
    """게임 라우터 테스트"""

    def test_list_games(self, app, client):
        service = Mock()
        service.list_active_games.return_value = [_game()]

        with app.container.services.game_service.override(service):
            response = client.get("/api/v1/games")

        assert response.status_code == 200
        assert response.json()[0]["game_type"] == "plinko"

    def test_play_plinko(self, app, client, login_as, mock_user):
        # Given
        login_as(mock_user)
        service = Mock()
        service.play_plinko.return_value = PlinkoPlayResult(
            session=GameSessionResponse(
                id=5,
                user_id=mock_user.id,
                game_id=1,
                game_type=GameType.PLINKO,
                bet_amount=10,
                result=GameResult.WIN,
                win_amount=30,
                multiplier=3.0,
                played_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            ),
            result=GameResult.WIN,
            win_amount=30,
            multiplier=3.0,
            ball_path=[1, 0, 1, 1],
            final_slot=3,
            new_balance=120,
        )

        # When
        with app.container.services.game_service.override(service):
            response = client.post(
                "/api/v1/games/plinko/play",
                json={"game_id": 1, "bet_amount": 10, "risk_level": "high"},
            )

        # Then
        assert response.status_code == 200
        assert response.json()["win_amount"] == 30
        service.play_plinko.assert_called_once_with(1, mock_user.id, 10, RiskLevel.HIGH)

    def test_bet_out_of_range(self, app, client, login_as, mock_user):
        login_as(mock_user)
        service = Mock()
        service.play_plinko.side_effect = BetOutOfRangeError(1, 1000)

        with app.container.services.game_service.override(service):
            response = client.post(
                "/api/v1/games/plinko/play", json={"game_id": 1, "bet_amount": 5000}
            )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Bet amount must be between 1 and 1000"

    def test_invalid_risk_level(self, client, login_as, mock_user):
        login_as(mock_user)

        response = client.post(
            "/api/v1/games/plinko/play",
            json={"game_id": 1, "bet_amount": 10, "risk_level": "extreme"},
        )

        assert response.status_code == 400

    def test_leaderboard(self, app, client):
        service = Mock()
        service.get_game_leaderboard.return_value = GameLeaderboard(
            game_id=1,
            period="weekly",
            top_winners=[LeaderboardEntry(user_id=2, username="bob", value=900)],
            top_wagerers=[],
            biggest_wins=[],
        )

        with app.container.services.game_service.override(service):
            response = client.get("/api/v1/games/1/leaderboard?period=weekly")

        assert response.status_code == 200
        assert response.json()["top_winners"][0]["username"] == "bob"

    def test_leaderboard_rejects_unknown_period(self, client):
        response = client.get("/api/v1/games/1/leaderboard?period=yearly")

        assert response.status_code == 400


class TestAdminGameRoutes:
    def test_initialize_default_plinko(self, app, client, login_as, mock_admin):
        login_as(mock_admin)
        service = Mock()
        service.initialize_default_plinko_game.return_value = _game()

        with app.container.services.game_service.override(service):
            response = client.post("/api/v1/games/admin/plinko/default")

        assert response.status_code == 200
        assert response.json()["name"] == "Plinko"

    def test_create_game_requires_admin(self, client, login_as, mock_user):
        login_as(mock_user)

        response = client.post(
            "/api/v1/games/admin", json={"name": "Plinko", "min_bet": 1, "max_bet": 10}
        )

        assert response.status_code == 403
