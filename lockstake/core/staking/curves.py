"""APR / 포인트 / 투표력 곡선

고정소수점 커널 위의 블렌딩 공식. 전부 순수 함수: 저장소/부수효과 없음.
"""

from typing import Tuple

from lockstake.core.staking import fixed_point as fp
from lockstake.core.staking.errors import CurveParameterError
from lockstake.core.staking.fixed_point import SCALE
from lockstake.core.staking.params import ParameterSnapshot

LOCK_CEILING_MONTHS = 48
SIZE_RATIO_CAP = 20 * SCALE


def lock_factor(lock_months: int, exponent: int) -> int:
    """잠금 기간 계수 (min(m, 48)/48)^exponent.

    lock_months == 0 이면 0. exponent > 0 에서 단조 비감소.
    """
    if lock_months <= 0:
        return 0
    months = min(lock_months, LOCK_CEILING_MONTHS)
    base = months * SCALE // LOCK_CEILING_MONTHS
    return fp.pow(base, exponent)


def size_factor(s: int, s0: int) -> int:
    """스테이크 규모 계수 1 - e^(-S/S0).

    S/S0 가 20.0에 닿으면 커널 정확 구간 밖이므로 SCALE - 1 ("사실상 1.0")로 포화.
    """
    if s == 0 or s0 == 0:
        return 0
    ratio = min(fp.div(s, s0), SIZE_RATIO_CAP)
    if ratio >= SIZE_RATIO_CAP:
        return SCALE - 1
    return fp.one_minus_exp_neg(s, s0)


def apr_blend(
    base_apr: int,
    max_apr: int,
    w_lock: int,
    w_size: int,
    f_lock: int,
    f_size: int,
) -> int:
    """baseAPR + (maxAPR - baseAPR)·B,  B = wLock·fLock + wSize·fSize"""
    if max_apr < base_apr:
        raise CurveParameterError(
            f"max_apr ({max_apr}) must not be below base_apr ({base_apr})"
        )
    if w_lock + w_size > SCALE:
        raise CurveParameterError(
            f"w_lock + w_size ({w_lock + w_size}) exceeds 1.0"
        )
    boost = (w_lock * f_lock + w_size * f_size) // SCALE
    return base_apr + (max_apr - base_apr) * boost // SCALE


def points_accrued(
    reward: int,
    weeks_elapsed: int,
    points_per_reward_unit: int,
    decay_rate: int,
) -> int:
    """보상에서 누적되는 인내 포인트.

    reward · Pmax · (1 - e^(-k·weeks)) / SCALE²
    나눗셈은 마지막에 한 번만 한다 (중간 나눗셈은 정밀도 손실).
    """
    if reward == 0 or weeks_elapsed == 0:
        return 0
    decay = SCALE - fp.exp_neg(decay_rate * weeks_elapsed)
    return reward * points_per_reward_unit * decay // (SCALE * SCALE)


def voting_power(principal: int, lock_months: int, floor: int, curvature: int) -> int:
    """principal · (floor + (1 - floor)·lockFactor) / SCALE"""
    if principal == 0:
        return 0
    weight = floor + (SCALE - floor) * lock_factor(lock_months, curvature) // SCALE
    return principal * weight // SCALE


def select_apr_window(
    now: int,
    program_start: int,
    boost_duration: int,
    is_boosted: bool,
    params: ParameterSnapshot,
) -> Tuple[int, int]:
    """현재 적용할 (baseAPR, maxAPR) 쌍.

    부스트 포지션이고 프로그램 시작 후 boost_duration 이내면 부스트 window.
    """
    if is_boosted and now < program_start + boost_duration:
        return params.base_apr_boost, params.max_apr_boost
    return params.base_apr, params.max_apr


def position_apr(
    lock_months: int,
    size_snapshot: int,
    is_boosted: bool,
    now: int,
    program_start: int,
    params: ParameterSnapshot,
) -> int:
    """포지션 하나의 현재 APR (정산/조회 공용)"""
    base_apr, max_apr = select_apr_window(
        now, program_start, params.boost_duration, is_boosted, params
    )
    return apr_blend(
        base_apr,
        max_apr,
        params.w_lock,
        params.w_size,
        lock_factor(lock_months, params.lock_curvature),
        size_factor(size_snapshot, params.size_scale),
    )
