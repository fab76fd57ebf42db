"""
게임 API 라우터

- GET /games: 활성 게임 목록
- POST /games/plinko/play: 플링코 플레이
- GET /games/history: 내 플레이 내역
- GET /games/{game_id}/stats: 내 게임 통계
- GET /games/{game_id}/leaderboard: 기간별 리더보드

관리자용:
- POST /games/admin: 게임 생성
- PATCH /games/admin/{game_id}: 게임 수정
- POST /games/admin/plinko/default: 기본 플링코 게임 생성
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Path
from dependency_injector.wiring import inject, Provide

from ledgerapi.core.auth_middleware import require_admin, get_current_active_user
from ledgerapi.schemas.user import User as UserSchema
from ledgerapi.services.game_service import GameService
from ledgerapi.containers import Container
from ledgerapi.schemas.game import (
    GameCreateRequest,
    GameLeaderboard,
    GameResponse,
    GameSessionResponse,
    GameUpdateRequest,
    PlinkoPlayRequest,
    PlinkoPlayResult,
    UserGameStats,
)

router = APIRouter(prefix="/games", tags=["games"])


@router.get("", response_model=List[GameResponse])
@inject
async def list_games(
    game_service: GameService = Depends(Provide[Container.services.game_service]),
) -> List[GameResponse]:
    return game_service.list_active_games()


@router.post("/plinko/play", response_model=PlinkoPlayResult)
@inject
async def play_plinko(
    request: PlinkoPlayRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    game_service: GameService = Depends(Provide[Container.services.game_service]),
) -> PlinkoPlayResult:
    """
    플링코 플레이 - 베팅 차감과 당첨금 지급이 함께 처리됨

    HTTP Status:
        200: 플레이 완료 (result = win | lose)
        400: 베팅 범위 초과 / 잔액 부족
        404: 게임 없음
        409: 비활성 게임
    """
    return game_service.play_plinko(
        request.game_id, current_user.id, request.bet_amount, request.risk_level
    )


@router.get("/history", response_model=List[GameSessionResponse])
@inject
async def get_my_history(
    game_id: Optional[int] = Query(None, gt=0),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: UserSchema = Depends(get_current_active_user),
    game_service: GameService = Depends(Provide[Container.services.game_service]),
) -> List[GameSessionResponse]:
    return game_service.get_user_game_history(
        current_user.id, game_id=game_id, limit=limit, offset=offset
    )


@router.get("/{game_id}/stats", response_model=UserGameStats)
@inject
async def get_my_stats(
    game_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    game_service: GameService = Depends(Provide[Container.services.game_service]),
) -> UserGameStats:
    return game_service.get_user_game_stats(current_user.id, game_id=game_id)


@router.get("/{game_id}/leaderboard", response_model=GameLeaderboard)
@inject
async def get_leaderboard(
    game_id: int = Path(..., gt=0),
    period: str = Query("all_time", pattern="^(daily|weekly|monthly|all_time)$"),
    game_service: GameService = Depends(Provide[Container.services.game_service]),
) -> GameLeaderboard:
    return game_service.get_game_leaderboard(game_id, period)


# ============================================================================
# 관리자 전용
# ============================================================================


@router.post("/admin", response_model=GameResponse)
@inject
async def admin_create_game(
    request: GameCreateRequest,
    current_user: UserSchema = Depends(require_admin),
    game_service: GameService = Depends(Provide[Container.services.game_service]),
) -> GameResponse:
    return game_service.create_game(request, created_by=str(current_user.id))


@router.patch("/admin/{game_id}", response_model=GameResponse)
@inject
async def admin_update_game(
    request: GameUpdateRequest,
    game_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(require_admin),
    game_service: GameService = Depends(Provide[Container.services.game_service]),
) -> GameResponse:
    return game_service.update_game(game_id, request)


@router.post("/admin/plinko/default", response_model=GameResponse)
@inject
async def admin_initialize_default_plinko(
    current_user: UserSchema = Depends(require_admin),
    game_service: GameService = Depends(Provide[Container.services.game_service]),
) -> GameResponse:
    return game_service.initialize_default_plinko_game()
