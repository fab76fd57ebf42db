import enum
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledgerapi.models.base import BaseModel, BigIntPK, JSONType
from ledgerapi.utils.timezone_utils import utc_now


class ItemType(str, enum.Enum):
    DIGITAL = "digital"
    PHYSICAL = "physical"
    NFT = "nft"
    TOKEN = "token"  # 당첨 시 redeemable 포인트로 지급


class ItemCategory(str, enum.Enum):
    COLLECTIBLE = "collectible"
    UTILITY = "utility"
    COSMETIC = "cosmetic"
    ACCESS = "access"
    LOOTBOX = "lootbox"
    RAFFLE_TICKET = "raffle_ticket"


class PurchaseStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class LootboxRarity(str, enum.Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class ShopItem(BaseModel):
    __tablename__ = "shop_items"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # redeemable 포인트 기준 단가
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    # 남은 재고 (음수 불가, 구매 트랜잭션 안에서만 차감)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    item_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ItemType.DIGITAL.value
    )
    category: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ItemCategory.UTILITY.value
    )
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tags: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)


class Purchase(BaseModel):
    __tablename__ = "purchases"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("shop_items.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    total_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=PurchaseStatus.PENDING.value
    )
    meta: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        "metadata", JSONType, nullable=True
    )


class LootboxContent(BaseModel):
    """
    루트박스 보상 테이블

    possible_items: [{"item_id": int, "quantity": int, "weight": float, "rarity": str}, ...]
    total_weight: possible_items 의 weight 합 (저장 시 계산)
    """

    __tablename__ = "lootbox_contents"

    lootbox_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("shop_items.id"), primary_key=True
    )
    possible_items: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    total_weight: Mapped[float] = mapped_column(Float, nullable=False, default=0)


class LootboxOpening(BaseModel):
    __tablename__ = "lootbox_openings"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    lootbox_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("shop_items.id"), nullable=False
    )
    # 구매 1건당 개봉 1회
    purchase_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("purchases.id"), nullable=False, unique=True
    )
    won_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("shop_items.id"), nullable=False
    )
    won_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    opened_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
