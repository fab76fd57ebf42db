"""
상점 API 라우터

사용자용 엔드포인트:
- GET /shop/items: 판매 중인 아이템 목록
- GET /shop/items/{item_id}: 아이템 상세
- POST /shop/purchase: 아이템 구매
- POST /shop/lootbox/open: 구매한 루트박스 개봉
- GET /shop/purchases: 내 구매 내역
- GET /shop/lootbox/history: 내 루트박스 개봉 내역

관리자용 엔드포인트:
- POST /shop/admin/items: 아이템 생성
- PATCH /shop/admin/items/{item_id}: 아이템 수정
- DELETE /shop/admin/items/{item_id}: 아이템 삭제 (이력이 있으면 비활성화)
- PUT /shop/admin/items/{item_id}/lootbox: 루트박스 보상 테이블 설정
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Path
from dependency_injector.wiring import inject, Provide

from ledgerapi.core.auth_middleware import require_admin, get_current_active_user
from ledgerapi.schemas.user import User as UserSchema
from ledgerapi.services.shop_service import ShopService
from ledgerapi.containers import Container
from ledgerapi.models.shop import ItemCategory, ItemType
from ledgerapi.schemas.shop import (
    LootboxContentsRequest,
    LootboxContentsResponse,
    LootboxOpeningResponse,
    LootboxOpenRequest,
    LootboxOpenResult,
    PurchaseRequest,
    PurchaseResponse,
    PurchaseResult,
    ShopItemCreateRequest,
    ShopItemListResponse,
    ShopItemResponse,
    ShopItemUpdateRequest,
)

router = APIRouter(prefix="/shop", tags=["shop"])


@router.get("/items", response_model=ShopItemListResponse)
@inject
async def list_items(
    category: Optional[ItemCategory] = Query(None),
    item_type: Optional[ItemType] = Query(None),
    featured: Optional[bool] = Query(None),
    in_stock: Optional[bool] = Query(None),
    price_min: Optional[int] = Query(None, ge=0),
    price_max: Optional[int] = Query(None, ge=0),
    q: Optional[str] = Query(None, max_length=100, description="이름/설명 검색어"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    shop_service: ShopService = Depends(Provide[Container.services.shop_service]),
) -> ShopItemListResponse:
    return shop_service.list_items(
        category=category,
        item_type=item_type,
        featured=featured,
        in_stock=in_stock,
        price_min=price_min,
        price_max=price_max,
        query=q,
        limit=limit,
        offset=offset,
    )


@router.get("/items/{item_id}", response_model=ShopItemResponse)
@inject
async def get_item(
    item_id: int = Path(..., gt=0),
    shop_service: ShopService = Depends(Provide[Container.services.shop_service]),
) -> ShopItemResponse:
    return shop_service.get_item(item_id)


@router.post("/purchase", response_model=PurchaseResult)
@inject
async def purchase_item(
    request: PurchaseRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    shop_service: ShopService = Depends(Provide[Container.services.shop_service]),
) -> PurchaseResult:
    """
    아이템 구매 - 재고 차감과 포인트 차감이 함께 처리됨

    HTTP Status:
        200: 구매 완료
        400: 수량 범위 초과 / 재고 부족 / 잔액 부족
        404: 아이템 없음
        409: 판매 중지된 아이템
    """
    return shop_service.purchase_item(request.item_id, current_user.id, request.quantity)


@router.post("/lootbox/open", response_model=LootboxOpenResult)
@inject
async def open_lootbox(
    request: LootboxOpenRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    shop_service: ShopService = Depends(Provide[Container.services.shop_service]),
) -> LootboxOpenResult:
    return shop_service.open_lootbox(current_user.id, request.purchase_id)


@router.get("/purchases", response_model=List[PurchaseResponse])
@inject
async def get_my_purchases(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: UserSchema = Depends(get_current_active_user),
    shop_service: ShopService = Depends(Provide[Container.services.shop_service]),
) -> List[PurchaseResponse]:
    return shop_service.get_purchase_history(current_user.id, limit=limit, offset=offset)


@router.get("/lootbox/history", response_model=List[LootboxOpeningResponse])
@inject
async def get_my_lootbox_history(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: UserSchema = Depends(get_current_active_user),
    shop_service: ShopService = Depends(Provide[Container.services.shop_service]),
) -> List[LootboxOpeningResponse]:
    return shop_service.get_lootbox_history(current_user.id, limit=limit, offset=offset)


# ============================================================================
# 관리자 전용
# ============================================================================


@router.post("/admin/items", response_model=ShopItemResponse)
@inject
async def admin_create_item(
    request: ShopItemCreateRequest,
    current_user: UserSchema = Depends(require_admin),
    shop_service: ShopService = Depends(Provide[Container.services.shop_service]),
) -> ShopItemResponse:
    return shop_service.create_item(request)


@router.patch("/admin/items/{item_id}", response_model=ShopItemResponse)
@inject
async def admin_update_item(
    request: ShopItemUpdateRequest,
    item_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(require_admin),
    shop_service: ShopService = Depends(Provide[Container.services.shop_service]),
) -> ShopItemResponse:
    return shop_service.update_item(item_id, request)


@router.delete("/admin/items/{item_id}")
@inject
async def admin_delete_item(
    item_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(require_admin),
    shop_service: ShopService = Depends(Provide[Container.services.shop_service]),
) -> dict:
    deleted = shop_service.delete_item(item_id)
    return {"success": True, "item_id": item_id, "deleted": deleted}


@router.put("/admin/items/{item_id}/lootbox", response_model=LootboxContentsResponse)
@inject
async def admin_set_lootbox_contents(
    request: LootboxContentsRequest,
    item_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(require_admin),
    shop_service: ShopService = Depends(Provide[Container.services.shop_service]),
) -> LootboxContentsResponse:
    return shop_service.set_lootbox_contents(item_id, request)
