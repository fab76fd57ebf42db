import random
from typing import List, Optional
from sqlalchemy.orm import Session

from ledgerapi.config import settings
from ledgerapi.database.session import atomic
from ledgerapi.repositories.shop_repository import ShopRepository
from ledgerapi.repositories.points_repository import PointsRepository
from ledgerapi.services.point_service import PointService
from ledgerapi.core.exceptions import (
    BaseAPIException,
    InsufficientStockError,
    InternalServerError,
    InvalidStateError,
    ItemInactiveError,
    ItemNotFoundError,
    NotFoundError,
    OutOfRangeError,
    UserNotFoundError,
    ValidationError,
)
from ledgerapi.models.points import PointType, TransactionType
from ledgerapi.models.shop import ItemCategory, ItemType, LootboxRarity, PurchaseStatus
from ledgerapi.schemas.shop import (
    LootboxContentsRequest,
    LootboxContentsResponse,
    LootboxOpeningResponse,
    LootboxOpenResult,
    PurchaseResponse,
    PurchaseResult,
    ShopItemCreateRequest,
    ShopItemListResponse,
    ShopItemResponse,
    ShopItemUpdateRequest,
)
from ledgerapi.utils.draws import get_rng, pick_weighted
import logging

logger = logging.getLogger(__name__)


class ShopService:
    """상점 구매 / 루트박스 개봉 / 아이템 관리 서비스"""

    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.db = db
        self.shop_repo = ShopRepository(db)
        self.points_repo = PointsRepository(db)
        self.point_service = PointService(db)
        self.rng = rng or get_rng()

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def list_items(
        self,
        category: Optional[ItemCategory] = None,
        item_type: Optional[ItemType] = None,
        featured: Optional[bool] = None,
        in_stock: Optional[bool] = None,
        price_min: Optional[int] = None,
        price_max: Optional[int] = None,
        query: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> ShopItemListResponse:
        """판매 중인 아이템 목록 (추천 > 정렬순서 > ID 순)"""
        items, total = self.shop_repo.search_items(
            category=category.value if category else None,
            item_type=item_type.value if item_type else None,
            featured=featured,
            in_stock=in_stock,
            price_min=price_min,
            price_max=price_max,
            query=query,
            limit=limit,
            offset=offset,
        )
        return ShopItemListResponse(
            items=items, total_count=total, has_next=offset + len(items) < total
        )

    def get_item(self, item_id: int) -> ShopItemResponse:
        item = self.shop_repo.get_by_id(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def get_purchase_history(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> List[PurchaseResponse]:
        return self.shop_repo.get_user_purchases(user_id, limit=limit, offset=offset)

    def get_lootbox_history(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> List[LootboxOpeningResponse]:
        return self.shop_repo.get_user_openings(user_id, limit=limit, offset=offset)

    # ------------------------------------------------------------------
    # 구매
    # ------------------------------------------------------------------

    def purchase_item(self, item_id: int, user_id: int, quantity: int = 1) -> PurchaseResult:
        """아이템 구매

        재고 차감, 구매 기록, redeemable 차감이 하나의 트랜잭션으로 처리됩니다.
        어느 단계든 실패하면 아무것도 기록되지 않습니다.

        Raises:
            OutOfRangeError: 수량이 1..MAX_PURCHASE_QUANTITY 범위 밖 (루트박스는 1개만)
            ItemNotFoundError / ItemInactiveError / InsufficientStockError
            InsufficientBalanceError: 잔액 부족 (차감 단계에서 발생)
        """
        if quantity < 1 or quantity > settings.MAX_PURCHASE_QUANTITY:
            raise OutOfRangeError(
                f"Quantity must be between 1 and {settings.MAX_PURCHASE_QUANTITY}",
                {"quantity": quantity},
            )

        try:
            with atomic(self.db):
                # 잠금 순서: 사용자 -> 아이템
                account = self.points_repo.lock_balance(user_id)
                if account is None:
                    raise UserNotFoundError(user_id)

                item = self.shop_repo.lock_item(item_id)
                if item is None:
                    raise ItemNotFoundError(item_id)
                if not item.active:
                    raise ItemInactiveError(item_id)
                # 루트박스는 구매 1건당 1회 개봉이므로 한 번에 1개만 구매 가능
                if item.category == ItemCategory.LOOTBOX.value and quantity != 1:
                    raise OutOfRangeError(
                        "Lootboxes must be purchased one at a time",
                        {"quantity": quantity},
                    )
                if item.stock < quantity:
                    raise InsufficientStockError(quantity, item.stock)

                total_price = item.price * quantity
                purchase = self.shop_repo.add_purchase(
                    user_id=user_id,
                    item_id=item.id,
                    quantity=quantity,
                    total_price=total_price,
                    status=PurchaseStatus.PENDING.value,
                )
                metadata = {
                    "item_id": item.id,
                    "item_name": item.name,
                    "quantity": quantity,
                    "unit_price": item.price,
                    "purchase_id": purchase.id,
                }
                purchase.meta = metadata

                item.stock = item.stock - quantity

                transaction_id = None
                if total_price > 0:
                    transaction = self.point_service.apply_balance_change(
                        user_id=user_id,
                        point_type=PointType.REDEEMABLE,
                        amount=-total_price,
                        transaction_type=TransactionType.PURCHASE,
                        description=f"Purchased {quantity}x {item.name}",
                        metadata=metadata,
                        reference_id=str(purchase.id),
                        reference_type="purchase",
                    )
                    transaction_id = transaction.id

                purchase.status = PurchaseStatus.COMPLETED.value
                self.db.flush()

                result = PurchaseResult(
                    purchase=PurchaseResponse.model_validate(purchase),
                    transaction_id=transaction_id,
                    new_balance=account.redeemable_points,
                )
        except BaseAPIException:
            raise
        except Exception as e:
            logger.error(
                f"Failed to purchase item {item_id} x{quantity} for user {user_id}: {str(e)}"
            )
            raise InternalServerError("Failed to process purchase")

        logger.info(
            f"User {user_id} purchased item {item_id} x{quantity} "
            f"(purchase {result.purchase.id}, total {result.purchase.total_price})"
        )
        return result

    def open_lootbox(self, user_id: int, purchase_id: int) -> LootboxOpenResult:
        """구매한 루트박스 개봉

        구매 1건당 1회만 개봉할 수 있습니다. 보상이 TOKEN 아이템이면
        수량만큼 redeemable 포인트를 같은 트랜잭션에서 적립합니다.
        """
        try:
            with atomic(self.db):
                account = self.points_repo.lock_balance(user_id)
                if account is None:
                    raise UserNotFoundError(user_id)

                purchase = self.shop_repo.lock_purchase(purchase_id)
                if purchase is None or purchase.user_id != user_id:
                    raise NotFoundError(
                        f"Purchase not found: {purchase_id}", {"purchase_id": purchase_id}
                    )
                if purchase.status != PurchaseStatus.COMPLETED.value:
                    raise InvalidStateError(
                        "Purchase is not completed", {"purchase_id": purchase_id}
                    )

                lootbox = self.shop_repo.get_model(purchase.item_id)
                if lootbox is None:
                    raise ItemNotFoundError(purchase.item_id)
                if lootbox.category != ItemCategory.LOOTBOX.value:
                    raise InvalidStateError(
                        "Purchased item is not a lootbox", {"item_id": lootbox.id}
                    )
                if self.shop_repo.get_opening_by_purchase(purchase_id) is not None:
                    raise InvalidStateError(
                        "Lootbox already opened", {"purchase_id": purchase_id}
                    )

                contents = self.shop_repo.get_lootbox_contents(lootbox.id)
                if contents is None or not contents.possible_items:
                    raise InvalidStateError(
                        "Lootbox has no contents configured", {"item_id": lootbox.id}
                    )

                reward = pick_weighted(
                    contents.possible_items, contents.total_weight, self.rng
                )
                won_item = self.shop_repo.get_model(reward["item_id"])
                if won_item is None:
                    raise ItemNotFoundError(reward["item_id"])
                won_quantity = int(reward.get("quantity", 1))

                opening = self.shop_repo.add_opening(
                    user_id=user_id,
                    lootbox_id=lootbox.id,
                    purchase_id=purchase_id,
                    won_item_id=won_item.id,
                    won_quantity=won_quantity,
                )

                credited = 0
                if won_item.item_type == ItemType.TOKEN.value:
                    credited = won_quantity
                    self.point_service.apply_balance_change(
                        user_id=user_id,
                        point_type=PointType.REDEEMABLE,
                        amount=credited,
                        transaction_type=TransactionType.LOOTBOX_OPEN,
                        description=f"Lootbox reward: {won_quantity}x {won_item.name}",
                        metadata={
                            "lootbox_id": lootbox.id,
                            "purchase_id": purchase_id,
                            "opening_id": opening.id,
                            "won_item_id": won_item.id,
                            "won_quantity": won_quantity,
                        },
                        reference_id=str(opening.id),
                        reference_type="lootbox_opening",
                    )

                result = LootboxOpenResult(
                    opening=LootboxOpeningResponse.model_validate(opening),
                    won_item=ShopItemResponse.model_validate(won_item),
                    rarity=LootboxRarity(reward.get("rarity", LootboxRarity.COMMON.value)),
                    credited_points=credited,
                    new_balance=account.redeemable_points,
                )
        except BaseAPIException:
            raise
        except Exception as e:
            logger.error(
                f"Failed to open lootbox purchase {purchase_id} for user {user_id}: {str(e)}"
            )
            raise InternalServerError("Failed to open lootbox")

        logger.info(
            f"User {user_id} opened lootbox purchase {purchase_id}: "
            f"{result.opening.won_quantity}x item {result.opening.won_item_id}"
        )
        return result

    # ------------------------------------------------------------------
    # 관리자
    # ------------------------------------------------------------------

    def create_item(self, request: ShopItemCreateRequest) -> ShopItemResponse:
        data = request.model_dump()
        data["item_type"] = request.item_type.value
        data["category"] = request.category.value
        with atomic(self.db):
            item = self.shop_repo.create(**data)
        logger.info(f"Created shop item {item.id} ({item.name})")
        return item

    def update_item(self, item_id: int, request: ShopItemUpdateRequest) -> ShopItemResponse:
        data = request.model_dump(exclude_unset=True)
        if request.item_type is not None:
            data["item_type"] = request.item_type.value
        if request.category is not None:
            data["category"] = request.category.value
        with atomic(self.db):
            item = self.shop_repo.update(item_id, **data)
            if item is None:
                raise ItemNotFoundError(item_id)
        logger.info(f"Updated shop item {item_id}: {sorted(data)}")
        return item

    def delete_item(self, item_id: int) -> bool:
        """아이템 삭제 - 구매 이력이 있으면 비활성화로 대체"""
        with atomic(self.db):
            item = self.shop_repo.lock_item(item_id)
            if item is None:
                raise ItemNotFoundError(item_id)
            if self.shop_repo.has_references(item_id):
                item.active = False
                self.db.flush()
                logger.info(f"Deactivated shop item {item_id} (has purchase history)")
                return False
            self.shop_repo.delete_lootbox_contents(item_id)
            self.shop_repo.delete(item_id)
        logger.info(f"Deleted shop item {item_id}")
        return True

    def set_lootbox_contents(
        self, item_id: int, request: LootboxContentsRequest
    ) -> LootboxContentsResponse:
        """루트박스 보상 테이블 교체 (total_weight 재계산)"""
        with atomic(self.db):
            lootbox = self.shop_repo.get_model(item_id)
            if lootbox is None:
                raise ItemNotFoundError(item_id)
            if lootbox.category != ItemCategory.LOOTBOX.value:
                raise ValidationError("Item is not a lootbox", {"item_id": item_id})
            for entry in request.possible_items:
                if entry.item_id == item_id:
                    raise ValidationError("Lootbox cannot contain itself")
                if self.shop_repo.get_model(entry.item_id) is None:
                    raise ItemNotFoundError(entry.item_id)

            contents = self.shop_repo.upsert_lootbox_contents(
                item_id, [entry.model_dump(mode="json") for entry in request.possible_items]
            )
        logger.info(
            f"Set lootbox contents for item {item_id}: "
            f"{len(request.possible_items)} entries, total weight {contents.total_weight}"
        )
        return contents
