from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import asc, desc, or_

from ledgerapi.models.shop import LootboxContent, LootboxOpening, Purchase, ShopItem
from ledgerapi.schemas.shop import (
    LootboxContentsResponse,
    LootboxOpeningResponse,
    PurchaseResponse,
    ShopItemResponse,
)
from ledgerapi.repositories.base import BaseRepository


class ShopRepository(BaseRepository[ShopItem, ShopItemResponse]):
    """상점 아이템 / 구매 / 루트박스 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(ShopItem, ShopItemResponse, db)

    # ------------------------------------------------------------------
    # 아이템
    # ------------------------------------------------------------------

    def search_items(
        self,
        category: Optional[str] = None,
        item_type: Optional[str] = None,
        featured: Optional[bool] = None,
        in_stock: Optional[bool] = None,
        price_min: Optional[int] = None,
        price_max: Optional[int] = None,
        query: Optional[str] = None,
        include_inactive: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[ShopItemResponse], int]:
        """필터 조건으로 아이템 검색 - (아이템 목록, 전체 수)"""
        q = self.db.query(ShopItem)
        if not include_inactive:
            q = q.filter(ShopItem.active.is_(True))
        if category:
            q = q.filter(ShopItem.category == category)
        if item_type:
            q = q.filter(ShopItem.item_type == item_type)
        if featured is not None:
            q = q.filter(ShopItem.featured.is_(featured))
        if in_stock:
            q = q.filter(ShopItem.stock > 0)
        if price_min is not None:
            q = q.filter(ShopItem.price >= price_min)
        if price_max is not None:
            q = q.filter(ShopItem.price <= price_max)
        if query:
            pattern = f"%{query}%"
            q = q.filter(
                or_(ShopItem.name.ilike(pattern), ShopItem.description.ilike(pattern))
            )

        total = q.count()
        rows = (
            q.order_by(desc(ShopItem.featured), asc(ShopItem.sort_order), asc(ShopItem.id))
            .offset(offset)
            .limit(limit)
            .all()
        )
        return self._to_schemas(rows), total

    def lock_item(self, item_id: int) -> Optional[ShopItem]:
        return self.get_model(item_id, for_update=True)

    # ------------------------------------------------------------------
    # 구매
    # ------------------------------------------------------------------

    def add_purchase(self, **kwargs) -> Purchase:
        purchase = Purchase(**kwargs)
        self.db.add(purchase)
        self.db.flush()
        return purchase

    def lock_purchase(self, purchase_id: int) -> Optional[Purchase]:
        return (
            self.db.query(Purchase)
            .filter(Purchase.id == purchase_id)
            .with_for_update()
            .first()
        )

    def get_user_purchases(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> List[PurchaseResponse]:
        rows = (
            self.db.query(Purchase)
            .filter(Purchase.user_id == user_id)
            .order_by(desc(Purchase.id))
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [PurchaseResponse.model_validate(row) for row in rows]

    # ------------------------------------------------------------------
    # 루트박스
    # ------------------------------------------------------------------

    def get_lootbox_contents(self, lootbox_item_id: int) -> Optional[LootboxContent]:
        return (
            self.db.query(LootboxContent)
            .filter(LootboxContent.lootbox_item_id == lootbox_item_id)
            .first()
        )

    def upsert_lootbox_contents(
        self, lootbox_item_id: int, possible_items: List[Dict[str, Any]]
    ) -> LootboxContentsResponse:
        total_weight = float(sum(entry["weight"] for entry in possible_items))
        contents = self.get_lootbox_contents(lootbox_item_id)
        if contents is None:
            contents = LootboxContent(lootbox_item_id=lootbox_item_id)
            self.db.add(contents)
        contents.possible_items = possible_items
        contents.total_weight = total_weight
        self.db.flush()
        return LootboxContentsResponse.model_validate(contents)

    def get_opening_by_purchase(self, purchase_id: int) -> Optional[LootboxOpening]:
        return (
            self.db.query(LootboxOpening)
            .filter(LootboxOpening.purchase_id == purchase_id)
            .first()
        )

    def add_opening(self, **kwargs) -> LootboxOpening:
        opening = LootboxOpening(**kwargs)
        self.db.add(opening)
        self.db.flush()
        return opening

    def get_user_openings(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> List[LootboxOpeningResponse]:
        rows = (
            self.db.query(LootboxOpening)
            .filter(LootboxOpening.user_id == user_id)
            .order_by(desc(LootboxOpening.id))
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [LootboxOpeningResponse.model_validate(row) for row in rows]

    def has_references(self, item_id: int) -> bool:
        """구매/개봉 이력에서 참조되는지 여부"""
        purchased = (
            self.db.query(Purchase.id).filter(Purchase.item_id == item_id).first()
        )
        if purchased is not None:
            return True
        won = (
            self.db.query(LootboxOpening.id)
            .filter(LootboxOpening.won_item_id == item_id)
            .first()
        )
        return won is not None

    def delete_lootbox_contents(self, lootbox_item_id: int) -> None:
        self.db.query(LootboxContent).filter(
            LootboxContent.lootbox_item_id == lootbox_item_id
        ).delete(synchronize_session=False)
        self.db.flush()
