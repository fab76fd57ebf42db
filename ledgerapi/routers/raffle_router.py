"""
래플 API 라우터

사용자용 엔드포인트:
- GET /raffles/active: 응모 가능한 래플 목록
- GET /raffles/{raffle_id}: 래플 상세
- GET /raffles/{raffle_id}/participants: 참가자 목록
- POST /raffles/{raffle_id}/entries: 티켓 구매
- GET /raffles/{raffle_id}/entries/me: 내 티켓

관리자용 엔드포인트:
- GET /raffles/admin: 상태별 래플 목록
- POST /raffles/admin: 래플 생성 (draft)
- POST /raffles/admin/{raffle_id}/start: 래플 시작
- POST /raffles/admin/{raffle_id}/draw: 당첨자 추첨
- POST /raffles/admin/{raffle_id}/cancel: 취소 및 환불 (재실행 가능)
- POST /raffles/admin/close-expired: 만료 래플 일괄 마감
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Path, Query
from dependency_injector.wiring import inject, Provide

from ledgerapi.core.auth_middleware import require_admin, get_current_active_user
from ledgerapi.schemas.user import User as UserSchema
from ledgerapi.services.raffle_service import RaffleService
from ledgerapi.containers import Container
from ledgerapi.models.raffle import RaffleStatus
from ledgerapi.schemas.raffle import (
    RaffleCancelResult,
    RaffleCloseSummary,
    RaffleCreateRequest,
    RaffleDrawResult,
    RaffleEntryRequest,
    RaffleEntryResponse,
    RaffleEntryResult,
    RaffleParticipant,
    RaffleResponse,
)

router = APIRouter(prefix="/raffles", tags=["raffles"])


@router.get("/active", response_model=List[RaffleResponse])
@inject
async def list_active_raffles(
    raffle_service: RaffleService = Depends(Provide[Container.services.raffle_service]),
) -> List[RaffleResponse]:
    return raffle_service.list_active_raffles()


# ============================================================================
# 관리자 전용 (/{raffle_id} 보다 먼저 등록)
# ============================================================================


@router.get("/admin", response_model=List[RaffleResponse])
@inject
async def admin_list_raffles(
    status: Optional[RaffleStatus] = Query(None),
    current_user: UserSchema = Depends(require_admin),
    raffle_service: RaffleService = Depends(Provide[Container.services.raffle_service]),
) -> List[RaffleResponse]:
    return raffle_service.list_raffles(status)


@router.post("/admin", response_model=RaffleResponse)
@inject
async def admin_create_raffle(
    request: RaffleCreateRequest,
    current_user: UserSchema = Depends(require_admin),
    raffle_service: RaffleService = Depends(Provide[Container.services.raffle_service]),
) -> RaffleResponse:
    return raffle_service.create_raffle(request, admin_id=current_user.id)


@router.post("/admin/close-expired", response_model=RaffleCloseSummary)
@inject
async def admin_close_expired(
    current_user: UserSchema = Depends(require_admin),
    raffle_service: RaffleService = Depends(Provide[Container.services.raffle_service]),
) -> RaffleCloseSummary:
    return raffle_service.close_expired_raffles()


@router.post("/admin/{raffle_id}/start", response_model=RaffleResponse)
@inject
async def admin_start_raffle(
    raffle_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(require_admin),
    raffle_service: RaffleService = Depends(Provide[Container.services.raffle_service]),
) -> RaffleResponse:
    return raffle_service.start_raffle(raffle_id)


@router.post("/admin/{raffle_id}/draw", response_model=RaffleDrawResult)
@inject
async def admin_draw_winner(
    raffle_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(require_admin),
    raffle_service: RaffleService = Depends(Provide[Container.services.raffle_service]),
) -> RaffleDrawResult:
    return raffle_service.draw_winner(raffle_id)


@router.post("/admin/{raffle_id}/cancel", response_model=RaffleCancelResult)
@inject
async def admin_cancel_raffle(
    raffle_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(require_admin),
    raffle_service: RaffleService = Depends(Provide[Container.services.raffle_service]),
) -> RaffleCancelResult:
    return raffle_service.cancel_raffle(raffle_id, admin_id=current_user.id)


# ============================================================================
# 사용자
# ============================================================================


@router.get("/{raffle_id}", response_model=RaffleResponse)
@inject
async def get_raffle(
    raffle_id: int = Path(..., gt=0),
    raffle_service: RaffleService = Depends(Provide[Container.services.raffle_service]),
) -> RaffleResponse:
    return raffle_service.get_raffle(raffle_id)


@router.get("/{raffle_id}/participants", response_model=List[RaffleParticipant])
@inject
async def get_participants(
    raffle_id: int = Path(..., gt=0),
    raffle_service: RaffleService = Depends(Provide[Container.services.raffle_service]),
) -> List[RaffleParticipant]:
    return raffle_service.get_participants(raffle_id)


@router.post("/{raffle_id}/entries", response_model=RaffleEntryResult)
@inject
async def purchase_entries(
    request: RaffleEntryRequest,
    raffle_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    raffle_service: RaffleService = Depends(Provide[Container.services.raffle_service]),
) -> RaffleEntryResult:
    """
    래플 티켓 구매 - 티켓 번호 배정과 포인트 차감이 함께 처리됨

    HTTP Status:
        200: 구매 완료
        400: 남은 티켓 부족 / 1인 한도 초과 / 잔액 부족
        404: 래플 없음
        409: 응모 기간이 아니거나 active 상태가 아님
    """
    return raffle_service.purchase_entries(
        raffle_id, current_user.id, request.number_of_entries
    )


@router.get("/{raffle_id}/entries/me", response_model=List[RaffleEntryResponse])
@inject
async def get_my_entries(
    raffle_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    raffle_service: RaffleService = Depends(Provide[Container.services.raffle_service]),
) -> List[RaffleEntryResponse]:
    return raffle_service.get_user_entries(raffle_id, current_user.id)
