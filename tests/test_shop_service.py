import pytest

from ledgerapi.core.exceptions import (
    InsufficientBalanceError,
    InsufficientStockError,
    InvalidStateError,
    ItemInactiveError,
    ItemNotFoundError,
    NotFoundError,
    OutOfRangeError,
    ValidationError,
)
from ledgerapi.models.points import PointTransaction, TransactionType
from ledgerapi.models.shop import (
    ItemCategory,
    ItemType,
    LootboxOpening,
    Purchase,
    PurchaseStatus,
    ShopItem,
)
from ledgerapi.schemas.shop import (
    LootboxContentsRequest,
    LootboxRewardEntry,
    ShopItemCreateRequest,
    ShopItemUpdateRequest,
)
from ledgerapi.services.shop_service import ShopService


@pytest.fixture
def shop_service(db, stub_rng):
    return ShopService(db, rng=stub_rng(uniform_value=0.0))


@pytest.fixture
def make_item(db):
    def _make(price=100, stock=5, active=True, item_type=ItemType.DIGITAL,
              category=ItemCategory.UTILITY, name="Badge"):
        item = ShopItem(
            name=name,
            description="",
            price=price,
            stock=stock,
            active=active,
            item_type=item_type.value,
            category=category.value,
            tags=[],
        )
        db.add(item)
        db.commit()
        return item

    return _make


def _purchase_transactions(db, user_id):
    return (
        db.query(PointTransaction)
        .filter(
            PointTransaction.user_id == user_id,
            PointTransaction.type == TransactionType.PURCHASE.value,
        )
        .all()
    )


class TestPurchaseItem:
    def test_happy_path(self, db, shop_service, make_user, make_item):
        # Arrange
        user = make_user(redeemable=250)
        item = make_item(price=100, stock=5)

        # Act
        result = shop_service.purchase_item(item.id, user.id, 2)

        # Assert
        db.expire_all()
        assert result.purchase.status == PurchaseStatus.COMPLETED
        assert result.purchase.total_price == 200
        assert result.new_balance == 50
        assert db.get(ShopItem, item.id).stock == 3
        transactions = _purchase_transactions(db, user.id)
        assert len(transactions) == 1
        assert transactions[0].amount == -200
        assert transactions[0].description == "Purchased 2x Badge"
        assert transactions[0].reference_id == str(result.purchase.id)
        assert transactions[0].meta["unit_price"] == 100

    def test_read_after_write(self, db, shop_service, make_user, make_item):
        user = make_user(redeemable=1000)
        item = make_item(price=37, stock=10)

        shop_service.purchase_item(item.id, user.id, 3)

        db.expire_all()
        assert db.get(ShopItem, item.id).stock == 10 - 3
        assert db.get(type(user), user.id).redeemable_points == 1000 - 111

    def test_insufficient_stock_leaves_state_unchanged(self, db, shop_service, make_user, make_item):
        # Arrange
        user = make_user(redeemable=250)
        item = make_item(price=100, stock=1)

        # Act / Assert
        with pytest.raises(InsufficientStockError) as exc_info:
            shop_service.purchase_item(item.id, user.id, 2)

        assert isinstance(exc_info.value, OutOfRangeError)
        db.expire_all()
        assert db.get(ShopItem, item.id).stock == 1
        assert db.get(type(user), user.id).redeemable_points == 250
        assert _purchase_transactions(db, user.id) == []
        assert db.query(Purchase).count() == 0

    def test_insufficient_balance_rolls_back_stock(self, db, shop_service, make_user, make_item):
        user = make_user(redeemable=150)
        item = make_item(price=100, stock=5)

        with pytest.raises(InsufficientBalanceError):
            shop_service.purchase_item(item.id, user.id, 2)

        db.expire_all()
        assert db.get(ShopItem, item.id).stock == 5
        assert db.query(Purchase).count() == 0
        assert db.get(type(user), user.id).redeemable_points == 150

    def test_inactive_item(self, shop_service, make_user, make_item):
        user = make_user(redeemable=500)
        item = make_item(active=False)

        with pytest.raises(ItemInactiveError):
            shop_service.purchase_item(item.id, user.id, 1)

    def test_missing_item(self, shop_service, make_user):
        user = make_user(redeemable=500)

        with pytest.raises(ItemNotFoundError):
            shop_service.purchase_item(12345, user.id, 1)

    @pytest.mark.parametrize("quantity", [0, 101])
    def test_quantity_out_of_range(self, shop_service, make_user, make_item, quantity):
        user = make_user(redeemable=500)
        item = make_item()

        with pytest.raises(OutOfRangeError):
            shop_service.purchase_item(item.id, user.id, quantity)

    def test_free_item_writes_no_transaction(self, db, shop_service, make_user, make_item):
        user = make_user()
        item = make_item(price=0, stock=2)

        result = shop_service.purchase_item(item.id, user.id, 1)

        assert result.transaction_id is None
        assert result.purchase.status == PurchaseStatus.COMPLETED
        assert _purchase_transactions(db, user.id) == []


class TestLootbox:
    @pytest.fixture
    def lootbox_setup(self, db, shop_service, make_user, make_item):
        user = make_user(redeemable=500)
        token = make_item(name="Token", price=0, stock=0, item_type=ItemType.TOKEN)
        badge = make_item(name="Rare Badge", price=0, stock=0)
        lootbox = make_item(name="Box", price=100, stock=10, category=ItemCategory.LOOTBOX)
        shop_service.set_lootbox_contents(
            lootbox.id,
            LootboxContentsRequest(
                possible_items=[
                    LootboxRewardEntry(item_id=token.id, quantity=50, weight=70),
                    LootboxRewardEntry(item_id=badge.id, quantity=1, weight=30, rarity="rare"),
                ]
            ),
        )
        purchase = shop_service.purchase_item(lootbox.id, user.id, 1).purchase
        return user, token, badge, lootbox, purchase

    def test_token_reward_credits_points(self, db, shop_service, lootbox_setup):
        # Arrange - uniform 0.0 은 첫 번째 항목(token)
        user, token, _, lootbox, purchase = lootbox_setup

        # Act
        result = shop_service.open_lootbox(user.id, purchase.id)

        # Assert
        assert result.won_item.id == token.id
        assert result.credited_points == 50
        assert result.new_balance == 500 - 100 + 50
        credits = (
            db.query(PointTransaction)
            .filter(PointTransaction.type == TransactionType.LOOTBOX_OPEN.value)
            .all()
        )
        assert len(credits) == 1
        assert credits[0].reference_id == str(result.opening.id)

    def test_non_token_reward_credits_nothing(self, db, stub_rng, lootbox_setup):
        user, _, badge, _, purchase = lootbox_setup
        service = ShopService(db, rng=stub_rng(uniform_value=99.0))

        result = service.open_lootbox(user.id, purchase.id)

        assert result.won_item.id == badge.id
        assert result.rarity.value == "rare"
        assert result.credited_points == 0
        assert result.new_balance == 400

    def test_fallback_to_last_entry_when_draw_overshoots(self, db, stub_rng, lootbox_setup):
        user, _, badge, _, purchase = lootbox_setup
        service = ShopService(db, rng=stub_rng(uniform_value=1000.0))

        result = service.open_lootbox(user.id, purchase.id)

        assert result.won_item.id == badge.id

    def test_cannot_open_twice(self, db, shop_service, lootbox_setup):
        user, _, _, _, purchase = lootbox_setup
        shop_service.open_lootbox(user.id, purchase.id)

        with pytest.raises(InvalidStateError):
            shop_service.open_lootbox(user.id, purchase.id)

        assert db.query(LootboxOpening).count() == 1

    def test_lootbox_bulk_purchase_rejected(self, db, shop_service, make_user, make_item):
        # 구매 1건은 1회만 개봉되므로 여러 개를 한 번에 살 수 없음
        user = make_user(redeemable=500)
        lootbox = make_item(name="Box", price=100, stock=10, category=ItemCategory.LOOTBOX)

        with pytest.raises(OutOfRangeError):
            shop_service.purchase_item(lootbox.id, user.id, 3)

        db.refresh(user)
        db.refresh(lootbox)
        assert user.redeemable_points == 500
        assert lootbox.stock == 10
        assert db.query(Purchase).count() == 0

    def test_each_lootbox_purchase_opens_once(self, db, shop_service, lootbox_setup):
        user, _, _, lootbox, first = lootbox_setup
        second = shop_service.purchase_item(lootbox.id, user.id, 1).purchase

        shop_service.open_lootbox(user.id, first.id)
        shop_service.open_lootbox(user.id, second.id)

        assert db.query(LootboxOpening).count() == 2

    def test_other_users_purchase_is_not_found(self, shop_service, make_user, lootbox_setup):
        _, _, _, _, purchase = lootbox_setup
        stranger = make_user()

        with pytest.raises(NotFoundError):
            shop_service.open_lootbox(stranger.id, purchase.id)

    def test_non_lootbox_purchase_rejected(self, shop_service, make_user, make_item):
        user = make_user(redeemable=100)
        item = make_item(price=10)
        purchase = shop_service.purchase_item(item.id, user.id, 1).purchase

        with pytest.raises(InvalidStateError):
            shop_service.open_lootbox(user.id, purchase.id)

    def test_contents_total_weight(self, lootbox_setup, db):
        from ledgerapi.models.shop import LootboxContent

        _, _, _, lootbox, _ = lootbox_setup
        contents = db.get(LootboxContent, lootbox.id)
        assert contents.total_weight == 100

    def test_contents_require_lootbox_category(self, shop_service, make_item):
        plain = make_item()
        other = make_item()

        with pytest.raises(ValidationError):
            shop_service.set_lootbox_contents(
                plain.id,
                LootboxContentsRequest(
                    possible_items=[LootboxRewardEntry(item_id=other.id, weight=1)]
                ),
            )


class TestItemAdmin:
    def test_create_update_and_list(self, shop_service):
        created = shop_service.create_item(
            ShopItemCreateRequest(name="Hat", price=30, stock=4, category=ItemCategory.COSMETIC)
        )
        shop_service.create_item(ShopItemCreateRequest(name="Hidden", price=1, active=False))

        updated = shop_service.update_item(created.id, ShopItemUpdateRequest(price=45, featured=True))
        listing = shop_service.list_items(category=ItemCategory.COSMETIC)

        assert updated.price == 45
        assert updated.featured is True
        assert updated.stock == 4
        assert listing.total_count == 1
        assert listing.items[0].name == "Hat"

    def test_list_filters(self, shop_service, make_item):
        make_item(name="Cheap Sticker", price=5, stock=0)
        make_item(name="Golden Frame", price=500, stock=3)

        assert shop_service.list_items(in_stock=True).total_count == 1
        assert shop_service.list_items(price_max=10).items[0].name == "Cheap Sticker"
        assert shop_service.list_items(query="golden").items[0].name == "Golden Frame"

    def test_delete_item_with_history_deactivates(self, db, shop_service, make_user, make_item):
        user = make_user(redeemable=100)
        item = make_item(price=10)
        shop_service.purchase_item(item.id, user.id, 1)

        deleted = shop_service.delete_item(item.id)

        assert deleted is False
        db.expire_all()
        assert db.get(ShopItem, item.id).active is False

    def test_delete_unused_item(self, db, shop_service, make_item):
        item = make_item()

        assert shop_service.delete_item(item.id) is True
        assert db.get(ShopItem, item.id) is None

    def test_update_missing_item(self, shop_service):
        with pytest.raises(ItemNotFoundError):
            shop_service.update_item(999, ShopItemUpdateRequest(price=1))
