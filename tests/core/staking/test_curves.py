"""APR / 포인트 / 투표력 곡선 테스트"""

import pytest

from lockstake.core.staking import curves
from lockstake.core.staking import fixed_point as fp
from lockstake.core.staking.errors import CurveParameterError
from lockstake.core.staking.fixed_point import SCALE
from lockstake.core.staking.params import DAY_SECONDS, ParameterSnapshot

PARAMS = ParameterSnapshot()
S0 = PARAMS.size_scale


class TestLockFactor:
    def test_zero_months(self):
        assert curves.lock_factor(0, PARAMS.lock_curvature) == 0

    def test_full_lock_is_one(self):
        assert curves.lock_factor(48, SCALE) == SCALE
        assert curves.lock_factor(48, PARAMS.lock_curvature) == SCALE

    def test_clamped_above_ceiling(self):
        delta = PARAMS.lock_curvature
        assert curves.lock_factor(60, delta) == curves.lock_factor(48, delta)

    @pytest.mark.parametrize(
        "delta", [SCALE // 2, SCALE, 12 * SCALE // 10, 2 * SCALE]
    )
    def test_monotonic_in_months(self, delta):
        """1..48개월 전체 구간에서 단조 비감소"""
        values = [curves.lock_factor(m, delta) for m in range(1, 49)]
        assert values == sorted(values)
        assert all(0 < v <= SCALE for v in values)

    def test_convex_curvature_penalizes_short_locks(self):
        """delta > 1 이면 짧은 잠금의 계수가 선형보다 작다"""
        linear = curves.lock_factor(12, SCALE)
        curved = curves.lock_factor(12, 2 * SCALE)
        assert curved < linear


class TestSizeFactor:
    def test_zero_inputs(self):
        assert curves.size_factor(0, S0) == 0
        assert curves.size_factor(1_000, 0) == 0

    def test_saturates_at_ratio_cap(self):
        assert curves.size_factor(20 * S0, S0) == SCALE - 1
        assert curves.size_factor(10**12, S0) == SCALE - 1

    def test_scenario_ordering(self):
        """S = S0 (비율 1) < S = 4·S0 (비율 4) < S = 20·S0 (포화)"""
        at_one = curves.size_factor(50_000, S0)
        at_four = curves.size_factor(200_000, S0)
        saturated = curves.size_factor(1_000_000, S0)
        assert at_one < at_four < saturated
        assert saturated == SCALE - 1

    def test_monotonic_in_stake(self):
        stakes = [
            1, 1_000, 10_000, 49_999, 50_000, 100_000,
            500_000, 999_999, 1_000_000, 5_000_000,
        ]
        values = [curves.size_factor(s, S0) for s in stakes]
        assert values == sorted(values)
        assert all(v < SCALE for v in values)


class TestAprBlend:
    def test_zero_factors_give_base(self):
        assert (
            curves.apr_blend(
                PARAMS.base_apr, PARAMS.max_apr, PARAMS.w_lock, PARAMS.w_size, 0, 0
            )
            == PARAMS.base_apr
        )

    def test_full_factors_give_max(self):
        assert (
            curves.apr_blend(
                PARAMS.base_apr,
                PARAMS.max_apr,
                PARAMS.w_lock,
                PARAMS.w_size,
                SCALE,
                SCALE,
            )
            == PARAMS.max_apr
        )

    def test_max_below_base_rejected(self):
        with pytest.raises(CurveParameterError):
            curves.apr_blend(PARAMS.max_apr, PARAMS.base_apr, 0, 0, 0, 0)

    def test_weights_above_one_rejected(self):
        with pytest.raises(CurveParameterError):
            curves.apr_blend(
                PARAMS.base_apr,
                PARAMS.max_apr,
                8 * SCALE // 10,
                3 * SCALE // 10,
                SCALE,
                SCALE,
            )

    def test_result_within_window(self):
        apr = curves.apr_blend(
            PARAMS.base_apr,
            PARAMS.max_apr,
            PARAMS.w_lock,
            PARAMS.w_size,
            curves.lock_factor(12, PARAMS.lock_curvature),
            curves.size_factor(1_000_000, S0),
        )
        assert PARAMS.base_apr < apr < PARAMS.max_apr


class TestPoints:
    def test_zero_reward_or_weeks(self):
        assert curves.points_accrued(0, 5, SCALE, PARAMS.points_decay) == 0
        assert curves.points_accrued(1_000, 0, SCALE, PARAMS.points_decay) == 0

    def test_matches_closed_form(self):
        reward = 1_000_000
        weeks = 10
        decay = SCALE - fp.exp_neg(PARAMS.points_decay * weeks)
        expected = reward * PARAMS.points_max * decay // (SCALE * SCALE)
        assert (
            curves.points_accrued(reward, weeks, PARAMS.points_max, PARAMS.points_decay)
            == expected
        )

    def test_monotonic_in_weeks_and_bounded(self):
        reward = 1_000_000
        values = [
            curves.points_accrued(reward, w, PARAMS.points_max, PARAMS.points_decay)
            for w in range(1, 60)
        ]
        assert values == sorted(values)
        assert values[-1] <= reward

    def test_long_wait_saturates(self):
        """k·weeks >= 60 이면 e^(-k·weeks) = 0 → 보상 × Pmax"""
        assert (
            curves.points_accrued(1_000, 2_000, PARAMS.points_max, PARAMS.points_decay)
            == 1_000
        )


class TestVotingPower:
    def test_zero_principal(self):
        assert curves.voting_power(0, 48, PARAMS.voting_floor, SCALE) == 0

    def test_full_lock_counts_fully(self):
        assert curves.voting_power(10_000, 48, PARAMS.voting_floor, SCALE) == 10_000

    def test_no_lock_gets_floor(self):
        assert (
            curves.voting_power(10_000, 0, PARAMS.voting_floor, SCALE)
            == 10_000 * PARAMS.voting_floor // SCALE
        )

    def test_monotonic_in_lock(self):
        values = [
            curves.voting_power(10_000, m, PARAMS.voting_floor, SCALE)
            for m in range(0, 49)
        ]
        assert values == sorted(values)


class TestAprWindow:
    START = 1_700_000_000

    def test_boosted_inside_window(self):
        now = self.START + 10 * DAY_SECONDS
        assert curves.select_apr_window(
            now, self.START, PARAMS.boost_duration, True, PARAMS
        ) == (PARAMS.base_apr_boost, PARAMS.max_apr_boost)

    def test_boosted_after_window(self):
        now = self.START + PARAMS.boost_duration
        assert curves.select_apr_window(
            now, self.START, PARAMS.boost_duration, True, PARAMS
        ) == (PARAMS.base_apr, PARAMS.max_apr)

    def test_not_boosted(self):
        assert curves.select_apr_window(
            self.START, self.START, PARAMS.boost_duration, False, PARAMS
        ) == (PARAMS.base_apr, PARAMS.max_apr)

    def test_position_apr_boost_premium(self):
        args = (12, 200_000)
        boosted = curves.position_apr(*args, True, self.START, self.START, PARAMS)
        standard = curves.position_apr(*args, False, self.START, self.START, PARAMS)
        assert boosted > standard
