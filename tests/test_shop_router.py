from datetime import datetime, timezone
from unittest.mock import Mock

from ledgerapi.core.exceptions import InsufficientStockError, ItemInactiveError
from ledgerapi.models.shop import ItemCategory, ItemType, LootboxRarity, PurchaseStatus
from ledgerapi.schemas.shop import (
    LootboxOpeningResponse,
    LootboxOpenResult,
    PurchaseResponse,
    PurchaseResult,
    ShopItemListResponse,
    ShopItemResponse,
)

CREATED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _item(item_id=1, price=100, category=ItemCategory.UTILITY, item_type=ItemType.DIGITAL):
    return ShopItemResponse(
        id=item_id,
        name="Golden Frame",
        price=price,
        stock=5,
        active=True,
        item_type=item_type,
        category=category,
        created_at=CREATED_AT,
    )


class TestShopRoutes:
    """상점 라우터 테스트"""

    def test_list_items_is_public(self, app, client):
        # Given
        service = Mock()
        service.list_items.return_value = ShopItemListResponse(
            items=[_item()], total_count=1, has_next=False
        )

        # When
        with app.container.services.shop_service.override(service):
            response = client.get("/api/v1/shop/items?category=cosmetic&in_stock=true")

        # Then
        assert response.status_code == 200
        assert response.json()["items"][0]["name"] == "Golden Frame"
        kwargs = service.list_items.call_args.kwargs
        assert kwargs["category"] == ItemCategory.COSMETIC
        assert kwargs["in_stock"] is True

    def test_purchase_item(self, app, client, login_as, mock_user):
        # Given
        login_as(mock_user)
        service = Mock()
        service.purchase_item.return_value = PurchaseResult(
            purchase=PurchaseResponse(
                id=7,
                user_id=mock_user.id,
                item_id=1,
                quantity=2,
                total_price=200,
                status=PurchaseStatus.COMPLETED,
                meta={"item_name": "Golden Frame", "unit_price": 100},
                created_at=CREATED_AT,
            ),
            transaction_id=31,
            new_balance=300,
        )

        # When
        with app.container.services.shop_service.override(service):
            response = client.post("/api/v1/shop/purchase", json={"item_id": 1, "quantity": 2})

        # Then
        assert response.status_code == 200
        data = response.json()
        assert data["purchase"]["status"] == "completed"
        assert data["purchase"]["metadata"]["unit_price"] == 100
        assert data["new_balance"] == 300
        service.purchase_item.assert_called_once_with(1, mock_user.id, 2)

    def test_purchase_insufficient_stock(self, app, client, login_as, mock_user):
        login_as(mock_user)
        service = Mock()
        service.purchase_item.side_effect = InsufficientStockError(3, 1)

        with app.container.services.shop_service.override(service):
            response = client.post("/api/v1/shop/purchase", json={"item_id": 1, "quantity": 3})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["message"] == "Insufficient stock"
        assert error["details"] == {"requested": 3, "available": 1}

    def test_purchase_inactive_item(self, app, client, login_as, mock_user):
        login_as(mock_user)
        service = Mock()
        service.purchase_item.side_effect = ItemInactiveError(1)

        with app.container.services.shop_service.override(service):
            response = client.post("/api/v1/shop/purchase", json={"item_id": 1})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "STATE_001"

    def test_purchase_rejects_zero_quantity(self, client, login_as, mock_user):
        login_as(mock_user)

        response = client.post("/api/v1/shop/purchase", json={"item_id": 1, "quantity": 0})

        assert response.status_code == 400

    def test_open_lootbox(self, app, client, login_as, mock_user):
        login_as(mock_user)
        service = Mock()
        service.open_lootbox.return_value = LootboxOpenResult(
            opening=LootboxOpeningResponse(
                id=3,
                user_id=mock_user.id,
                lootbox_id=10,
                purchase_id=7,
                won_item_id=2,
                won_quantity=1,
                opened_at=CREATED_AT,
            ),
            won_item=_item(item_id=2, price=50, item_type=ItemType.TOKEN),
            rarity=LootboxRarity.RARE,
            credited_points=50,
            new_balance=450,
        )

        with app.container.services.shop_service.override(service):
            response = client.post("/api/v1/shop/lootbox/open", json={"purchase_id": 7})

        assert response.status_code == 200
        assert response.json()["rarity"] == "rare"
        assert response.json()["credited_points"] == 50
        service.open_lootbox.assert_called_once_with(mock_user.id, 7)


class TestAdminShopRoutes:
    def test_create_item(self, app, client, login_as, mock_admin):
        login_as(mock_admin)
        service = Mock()
        service.create_item.return_value = _item()

        with app.container.services.shop_service.override(service):
            response = client.post(
                "/api/v1/shop/admin/items", json={"name": "Golden Frame", "price": 100, "stock": 5}
            )

        assert response.status_code == 200
        assert response.json()["id"] == 1

    def test_create_item_requires_admin(self, app, client, login_as, mock_user):
        login_as(mock_user)
        service = Mock()

        with app.container.services.shop_service.override(service):
            response = client.post(
                "/api/v1/shop/admin/items", json={"name": "Golden Frame", "price": 100}
            )

        assert response.status_code == 403
        service.create_item.assert_not_called()

    def test_delete_item_with_history_is_deactivated(self, app, client, login_as, mock_admin):
        login_as(mock_admin)
        service = Mock()
        service.delete_item.return_value = False

        with app.container.services.shop_service.override(service):
            response = client.delete("/api/v1/shop/admin/items/1")

        assert response.status_code == 200
        assert response.json() == {"success": True, "item_id": 1, "deleted": False}

    def test_lootbox_contents_require_entries(self, client, login_as, mock_admin):
        login_as(mock_admin)

        response = client.put("/api/v1/shop/admin/items/1/lootbox", json={"possible_items": []})

        assert response.status_code == 400
