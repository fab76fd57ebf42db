"""
포인트 시스템 API 라우터

사용자용 엔드포인트:
- GET /points/balance: 내 포인트 잔액 조회
- GET /points/ledger: 내 포인트 거래 내역
- GET /points/integrity/my: 내 포인트 정합성 검증

관리자용 엔드포인트:
- POST /points/admin/adjust: 포인트 조정
- GET /points/admin/balance/{user_id}: 사용자 잔액 조회
- GET /points/admin/integrity/{user_id}: 사용자 정합성 검증

인증 및 권한:
- 모든 엔드포인트는 Bearer 토큰 인증 필요
- 관리자 엔드포인트는 role=admin 필요
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Path
from dependency_injector.wiring import inject, Provide

from ledgerapi.core.auth_middleware import require_admin, get_current_active_user
from ledgerapi.schemas.user import User as UserSchema
from ledgerapi.services.point_service import PointService
from ledgerapi.containers import Container
from ledgerapi.models.points import PointType
from ledgerapi.schemas.points import (
    AdminPointsAdjustmentRequest,
    PointsBalanceResponse,
    PointsIntegrityCheckResponse,
    PointsLedgerResponse,
    PointTransactionEntry,
)

router = APIRouter(prefix="/points", tags=["points"])


@router.get("/balance", response_model=PointsBalanceResponse)
@inject
async def get_my_balance(
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> PointsBalanceResponse:
    """내 포인트 잔액 조회 (redeemable / soul_bound / 누적 획득)"""
    return point_service.get_user_balance(current_user.id)


@router.get("/ledger", response_model=PointsLedgerResponse)
@inject
async def get_my_ledger(
    point_type: Optional[PointType] = Query(None, description="포인트 종류 필터"),
    limit: int = Query(50, ge=1, le=100, description="페이지 크기"),
    offset: int = Query(0, ge=0, description="오프셋"),
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> PointsLedgerResponse:
    """
    내 포인트 거래 내역 조회 - 최신순 페이징

    Query Parameters:
        point_type: redeemable | soul_bound (생략 시 전체)
        limit: 한 페이지에 조회할 항목 수 (1-100, 기본: 50)
        offset: 건너뛸 항목 수 (기본: 0)
    """
    return point_service.get_user_ledger(
        current_user.id, point_type=point_type, limit=limit, offset=offset
    )


@router.get("/integrity/my", response_model=PointsIntegrityCheckResponse)
@inject
async def verify_my_integrity(
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> PointsIntegrityCheckResponse:
    """내 잔액과 원장 합계 일치 여부"""
    return point_service.verify_user_integrity(current_user.id)


# ============================================================================
# 관리자 전용
# ============================================================================


@router.post("/admin/adjust", response_model=PointTransactionEntry)
@inject
async def admin_adjust_points(
    request: AdminPointsAdjustmentRequest,
    current_user: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> PointTransactionEntry:
    """관리자 포인트 조정 (양수: 지급, 음수: 회수)"""
    return point_service.admin_adjust_points(current_user.id, request)


@router.get("/admin/balance/{user_id}", response_model=PointsBalanceResponse)
@inject
async def admin_get_user_balance(
    user_id: int = Path(..., gt=0, description="사용자 ID"),
    current_user: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> PointsBalanceResponse:
    return point_service.get_user_balance(user_id)


@router.get("/admin/integrity/{user_id}", response_model=PointsIntegrityCheckResponse)
@inject
async def admin_verify_user_integrity(
    user_id: int = Path(..., gt=0, description="사용자 ID"),
    current_user: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> PointsIntegrityCheckResponse:
    return point_service.verify_user_integrity(user_id)
