"""
보상 추첨 함수 모음

모든 함수는 random.Random 호환 rng 를 인자로 받는 순수 함수입니다.
테스트에서는 random.Random(seed) 또는 고정값을 돌려주는 stub 을 주입합니다.
"""

import logging
import math
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ledgerapi.config import settings
from ledgerapi.models.game import RiskLevel

logger = logging.getLogger(__name__)

# 누적 가중치 비교 시 부동소수점 오차 허용치
WEIGHT_EPSILON = 1e-9


@dataclass(frozen=True)
class PlinkoOutcome:
    ball_path: List[int]  # 0 = 왼쪽, 1 = 오른쪽
    final_slot: int
    multiplier: float


def get_rng() -> random.Random:
    """설정에 따라 기본 RNG 또는 SystemRandom 반환"""
    if settings.USE_SECURE_RNG:
        return random.SystemRandom()
    return random.Random()


def pick_weighted(
    entries: Sequence[Dict[str, Any]],
    total_weight: float,
    rng: random.Random,
) -> Dict[str, Any]:
    """가중치 추첨

    r = uniform(0, total_weight) 를 뽑고 누적 가중치가 r 이상이 되는 첫 항목을
    반환합니다. 오차로 어떤 항목에도 도달하지 못하면 마지막 항목을 반환합니다.
    """
    if not entries:
        raise ValueError("entries must not be empty")

    r = rng.uniform(0, total_weight)
    cumulative = 0.0
    for entry in entries:
        cumulative += float(entry["weight"])
        if r <= cumulative + WEIGHT_EPSILON:
            return entry

    logger.warning(
        f"Weighted draw fell through (r={r}, cumulative={cumulative}, "
        f"total_weight={total_weight}); using last entry"
    )
    return entries[-1]


def adjust_for_risk(multiplier: float, risk_level: RiskLevel) -> float:
    """low: 10 초과 배수 x0.7, high: 5 초과 배수 x1.3, medium: 그대로"""
    if risk_level == RiskLevel.LOW and multiplier > 10:
        return multiplier * 0.7
    if risk_level == RiskLevel.HIGH and multiplier > 5:
        return multiplier * 1.3
    return multiplier


def simulate_plinko(
    rows: int,
    multipliers: Sequence[float],
    risk_level: RiskLevel,
    rng: random.Random,
) -> PlinkoOutcome:
    """플링코 공 경로 시뮬레이션

    시작 위치 rows/2 에서 행마다 ±0.5 이동 후 floor 하여 슬롯을 결정합니다.
    """
    if not multipliers:
        raise ValueError("multipliers must not be empty")

    position = rows / 2
    path: List[int] = []
    for _ in range(rows):
        direction = 1 if rng.random() >= 0.5 else 0
        path.append(direction)
        position += 0.5 if direction else -0.5

    final_slot = max(0, min(len(multipliers) - 1, math.floor(position)))
    multiplier = adjust_for_risk(float(multipliers[final_slot]), risk_level)
    return PlinkoOutcome(
        ball_path=path,
        final_slot=final_slot,
        multiplier=round(multiplier, 2),
    )


def draw_ticket_number(total_tickets_sold: int, rng: random.Random) -> int:
    """1..total_tickets_sold 범위의 당첨 번호"""
    if total_tickets_sold <= 0:
        raise ValueError("no tickets sold")
    return rng.randint(1, total_tickets_sold)


def find_ticket_holder(entries: Sequence[Any], ticket_number: int) -> Optional[Any]:
    """당첨 번호를 보유한 엔트리를 선형 탐색 (first_ticket/last_ticket 구간)"""
    for entry in entries:
        if entry.first_ticket <= ticket_number <= entry.last_ticket:
            return entry
    return None


def pick_arena_winner(participants: Sequence[Any], rng: random.Random) -> Any:
    """참가자 목록에서 균등 추첨"""
    if not participants:
        raise ValueError("participants must not be empty")
    return participants[rng.randrange(len(participants))]
