"""파라미터 스냅샷

곡선 계산이 소비하는 읽기 전용 설정값. 비율/가중치/곡률은 SCALE 고정소수점,
기간은 초 단위, 금액은 토큰 단위 정수.
원장은 연산마다 provider를 한 번 호출해 새 스냅샷을 받는다.
"""

from dataclasses import dataclass
from typing import Callable

from lockstake.core.staking.fixed_point import SCALE

DAY_SECONDS = 24 * 60 * 60
WEEK_SECONDS = 7 * DAY_SECONDS
MONTH_SECONDS = 30 * DAY_SECONDS
YEAR_SECONDS = 365 * DAY_SECONDS


@dataclass(frozen=True)
class ParameterSnapshot:
    """APR/포인트/투표력 곡선 파라미터"""

    # APR window (표준 / 부스트 기간)
    base_apr: int = 20 * SCALE // 100
    max_apr: int = 49 * SCALE // 100
    base_apr_boost: int = 30 * SCALE // 100
    max_apr_boost: int = 69 * SCALE // 100

    # blend 가중치 (합 <= 1.0)
    w_lock: int = 7 * SCALE // 10
    w_size: int = 3 * SCALE // 10

    lock_curvature: int = 12 * SCALE // 10  # delta
    size_scale: int = 50_000  # S0, 토큰 단위

    voting_floor: int = SCALE // 4  # b
    voting_curvature: int = SCALE  # gamma

    points_max: int = SCALE  # Pmax, 보상 1단위당 최대 포인트
    points_decay: int = 5 * SCALE // 100  # k, 주당

    min_lock_months: int = 1
    max_lock_months: int = 48
    claim_interval: int = WEEK_SECONDS

    min_boost_stake: int = 100_000
    max_boost_stakers: int = 100
    boost_duration: int = 90 * DAY_SECONDS


ParameterProvider = Callable[[], ParameterSnapshot]


def static_parameters(snapshot: ParameterSnapshot) -> ParameterProvider:
    """고정 스냅샷을 돌려주는 provider (테스트/단일 설정용)"""
    return lambda: snapshot
