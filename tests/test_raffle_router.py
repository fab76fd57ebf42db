from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from ledgerapi.core.exceptions import InvalidStateError, RaffleCapacityError
from ledgerapi.models.raffle import RaffleStatus
from ledgerapi.schemas.raffle import (
    RaffleCancelResult,
    RaffleDrawResult,
    RaffleEntryResponse,
    RaffleEntryResult,
    RaffleResponse,
)

START = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _raffle(status=RaffleStatus.ACTIVE, **overrides):
    data = dict(
        id=1,
        title="Summer Giveaway",
        ticket_price=10,
        max_entries=100,
        status=status,
        start_date=START,
        end_date=START + timedelta(days=30),
    )
    data.update(overrides)
    return RaffleResponse(**data)


class TestRaffleRoutes:
    """래플 라우터 테스트"""

    def test_list_active_raffles(self, app, client):
        service = Mock()
        service.list_active_raffles.return_value = [_raffle()]

        with app.container.services.raffle_service.override(service):
            response = client.get("/api/v1/raffles/active")

        assert response.status_code == 200
        assert response.json()[0]["title"] == "Summer Giveaway"

    def test_purchase_entries(self, app, client, login_as, mock_user):
        # Given
        login_as(mock_user)
        service = Mock()
        service.purchase_entries.return_value = RaffleEntryResult(
            entry=RaffleEntryResponse(
                id=4,
                raffle_id=1,
                user_id=mock_user.id,
                ticket_numbers=[11, 12, 13],
                purchase_price=30,
                purchased_at=START,
            ),
            ticket_numbers=[11, 12, 13],
            total_cost=30,
            new_balance=70,
        )

        # When
        with app.container.services.raffle_service.override(service):
            response = client.post("/api/v1/raffles/1/entries", json={"number_of_entries": 3})

        # Then
        assert response.status_code == 200
        assert response.json()["ticket_numbers"] == [11, 12, 13]
        service.purchase_entries.assert_called_once_with(1, mock_user.id, 3)

    def test_purchase_beyond_capacity(self, app, client, login_as, mock_user):
        login_as(mock_user)
        service = Mock()
        service.purchase_entries.side_effect = RaffleCapacityError(1)

        with app.container.services.raffle_service.override(service):
            response = client.post("/api/v1/raffles/1/entries", json={"number_of_entries": 5})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["message"] == "Only 1 tickets remaining"
        assert error["details"] == {"remaining": 1}


class TestAdminRaffleRoutes:
    def test_admin_list_is_not_shadowed_by_raffle_id(self, app, client, login_as, mock_admin):
        login_as(mock_admin)
        service = Mock()
        service.list_raffles.return_value = [_raffle(status=RaffleStatus.DRAFT)]

        with app.container.services.raffle_service.override(service):
            response = client.get("/api/v1/raffles/admin?status=draft")

        assert response.status_code == 200
        service.list_raffles.assert_called_once_with(RaffleStatus.DRAFT)

    def test_create_raffle_validates_dates(self, client, login_as, mock_admin):
        login_as(mock_admin)

        response = client.post(
            "/api/v1/raffles/admin",
            json={
                "title": "Broken",
                "ticket_price": 10,
                "max_entries": 10,
                "start_date": "2024-06-02T00:00:00Z",
                "end_date": "2024-06-01T00:00:00Z",
            },
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_001"

    def test_create_raffle_mixed_timezone_dates(self, client, login_as, mock_admin):
        login_as(mock_admin)

        response = client.post(
            "/api/v1/raffles/admin",
            json={
                "title": "Mixed",
                "ticket_price": 10,
                "max_entries": 10,
                "start_date": "2024-06-02T00:00:00",
                "end_date": "2024-06-01T00:00:00+00:00",
            },
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_001"

    def test_draw_winner(self, app, client, login_as, mock_admin):
        login_as(mock_admin)
        service = Mock()
        service.draw_winner.return_value = RaffleDrawResult(
            raffle=_raffle(status=RaffleStatus.ENDED, winner_user_id=2, winner_ticket_number=15),
            winner_user_id=2,
            winner_ticket_number=15,
        )

        with app.container.services.raffle_service.override(service):
            response = client.post("/api/v1/raffles/admin/1/draw")

        assert response.status_code == 200
        assert response.json()["winner_ticket_number"] == 15

    def test_draw_before_end(self, app, client, login_as, mock_admin):
        login_as(mock_admin)
        service = Mock()
        service.draw_winner.side_effect = InvalidStateError("Raffle has not ended yet")

        with app.container.services.raffle_service.override(service):
            response = client.post("/api/v1/raffles/admin/1/draw")

        assert response.status_code == 409
        assert response.json()["error"]["message"] == "Raffle has not ended yet"

    def test_cancel_raffle(self, app, client, login_as, mock_admin):
        login_as(mock_admin)
        service = Mock()
        service.cancel_raffle.return_value = RaffleCancelResult(
            raffle=_raffle(status=RaffleStatus.CANCELLED),
            refunded_entries=2,
            refunded_points=40,
        )

        with app.container.services.raffle_service.override(service):
            response = client.post("/api/v1/raffles/admin/1/cancel")

        assert response.status_code == 200
        assert response.json()["refunded_points"] == 40
        service.cancel_raffle.assert_called_once_with(1, admin_id=mock_admin.id)

    def test_cancel_requires_admin(self, client, login_as, mock_user):
        login_as(mock_user)

        response = client.post("/api/v1/raffles/admin/1/cancel")

        assert response.status_code == 403
