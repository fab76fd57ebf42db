from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from ledgerapi.models.shop import ItemCategory, ItemType, LootboxRarity, PurchaseStatus


class ShopItemResponse(BaseModel):
    """상점 아이템"""

    id: int = Field(..., description="아이템 ID")
    name: str = Field(..., description="아이템명")
    description: str = Field("", description="설명")
    image: Optional[str] = Field(None, description="이미지 URL")
    price: int = Field(..., description="단가 (redeemable 포인트)")
    stock: int = Field(..., description="남은 재고")
    active: bool = Field(..., description="판매 여부")
    item_type: ItemType = Field(..., description="아이템 유형")
    category: ItemCategory = Field(..., description="카테고리")
    featured: bool = Field(False, description="추천 여부")
    sort_order: int = Field(0, description="정렬 순서")
    tags: List[str] = Field(default_factory=list, description="태그")
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ShopItemListResponse(BaseModel):
    items: List[ShopItemResponse]
    total_count: int
    has_next: bool


class ShopItemCreateRequest(BaseModel):
    """관리자 아이템 생성 요청"""

    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    image: Optional[str] = None
    price: int = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    active: bool = True
    item_type: ItemType = ItemType.DIGITAL
    category: ItemCategory = ItemCategory.UTILITY
    featured: bool = False
    sort_order: int = 0
    tags: List[str] = Field(default_factory=list)


class ShopItemUpdateRequest(BaseModel):
    """관리자 아이템 수정 요청 (전달된 필드만 반영)"""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    image: Optional[str] = None
    price: Optional[int] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    active: Optional[bool] = None
    item_type: Optional[ItemType] = None
    category: Optional[ItemCategory] = None
    featured: Optional[bool] = None
    sort_order: Optional[int] = None
    tags: Optional[List[str]] = None


class PurchaseRequest(BaseModel):
    """아이템 구매 요청"""

    item_id: int = Field(..., gt=0, description="구매할 아이템 ID")
    quantity: int = Field(1, ge=1, description="수량")


class PurchaseResponse(BaseModel):
    """구매 내역"""

    id: int
    user_id: int
    item_id: int
    quantity: int
    total_price: int
    status: PurchaseStatus
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="meta")
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        populate_by_name = True


class PurchaseResult(BaseModel):
    """구매 처리 결과"""

    purchase: PurchaseResponse
    transaction_id: Optional[int] = Field(None, description="차감 거래 ID (무료 아이템이면 None)")
    new_balance: int = Field(..., description="구매 후 사용 가능 포인트")


class LootboxRewardEntry(BaseModel):
    """루트박스 보상 후보"""

    item_id: int = Field(..., gt=0)
    quantity: int = Field(1, ge=1)
    weight: float = Field(..., gt=0)
    rarity: LootboxRarity = LootboxRarity.COMMON


class LootboxContentsRequest(BaseModel):
    possible_items: List[LootboxRewardEntry] = Field(..., min_length=1)


class LootboxContentsResponse(BaseModel):
    lootbox_item_id: int
    possible_items: List[LootboxRewardEntry]
    total_weight: float

    class Config:
        from_attributes = True


class LootboxOpenRequest(BaseModel):
    purchase_id: int = Field(..., gt=0, description="루트박스 구매 ID")


class LootboxOpeningResponse(BaseModel):
    """루트박스 개봉 기록"""

    id: int
    user_id: int
    lootbox_id: int
    purchase_id: int
    won_item_id: int
    won_quantity: int
    opened_at: datetime

    class Config:
        from_attributes = True


class LootboxOpenResult(BaseModel):
    opening: LootboxOpeningResponse
    won_item: ShopItemResponse
    rarity: LootboxRarity
    credited_points: int = Field(0, description="TOKEN 보상으로 적립된 포인트")
    new_balance: int = Field(..., description="개봉 후 사용 가능 포인트")
