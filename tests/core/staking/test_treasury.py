"""RewardsTreasury 테스트: 입금, notify, 회수, successor"""

import pytest

from lockstake.core.event_types import EventTypes
from lockstake.core.staking.errors import (
    InsufficientRewardsError,
    InvalidRecipientError,
    NotAuthorizedError,
    NotifyExceedsCustodyError,
    ZeroAmountError,
)
from lockstake.core.staking.models import ZERO_ADDRESS

T0 = 1_700_000_000


@pytest.fixture()
def core(make_core):
    c = make_core()
    c.custody.mint("treasury", 1_000_000)
    c.custody.mint("admin", 1_000_000)
    c.custody.mint("alice", 1_000_000)
    return c


class TestFund:
    def test_fund_moves_tokens_and_counts(self, core):
        total = core.treasury.fund("treasury", 10_000, T0)
        assert total == 10_000
        assert core.state.total_rewards_added == 10_000
        assert core.treasury.custody_balance() == 10_000
        assert core.custody.balance_of("treasury") == 990_000

    def test_admin_may_fund(self, core):
        assert core.treasury.fund("admin", 500, T0) == 500

    def test_unauthorized(self, core):
        with pytest.raises(NotAuthorizedError):
            core.treasury.fund("alice", 10_000, T0)
        assert core.state.total_rewards_added == 0

    def test_zero_amount(self, core):
        with pytest.raises(ZeroAmountError):
            core.treasury.fund("treasury", 0, T0)

    def test_event(self, core):
        received = []
        core.bus.subscribe(EventTypes.FUNDING_ADDED, received.append)
        core.treasury.fund("treasury", 10_000, T0)
        assert received[0].data["method"] == "fund"
        assert received[0].data["total_rewards_added"] == 10_000

    def test_not_blocked_by_pause(self, core):
        core.access.pause("admin")
        assert core.treasury.fund("treasury", 100, T0) == 100


class TestNotify:
    def test_notify_accounts_out_of_band_deposit(self, core):
        core.treasury.fund("treasury", 1_000, T0)
        core.ledger.open("alice", 10_000, 3, T0)
        core.custody.transfer("treasury", "lockstake", 500)

        assert core.treasury.notify("treasury", 500, T0) == 1_500

    def test_notify_cannot_overstate_custody(self, core):
        core.treasury.fund("treasury", 1_000, T0)
        core.ledger.open("alice", 10_000, 3, T0)
        core.custody.transfer("treasury", "lockstake", 500)

        with pytest.raises(NotifyExceedsCustodyError):
            core.treasury.notify("treasury", 501, T0)
        assert core.state.total_rewards_added == 1_000

    def test_notify_unauthorized(self, core):
        with pytest.raises(NotAuthorizedError):
            core.treasury.notify("alice", 1, T0)


class TestRecover:
    def test_recover_surplus(self, core):
        core.treasury.fund("treasury", 10_000, T0)
        total = core.treasury.recover("treasury", 4_000, "treasury", T0)
        assert total == 4_000
        assert core.state.total_rewards_recovered == 4_000
        assert core.custody.balance_of("treasury") == 994_000
        assert core.treasury.rewards_available() == 6_000

    def test_recover_bounded_by_custody_not_counters(self, core):
        """카운터상 잔여 보상이 더 커도 custody - totalStaked 를 넘을 수 없다"""
        core.treasury.fund("treasury", 10_000, T0)
        core.ledger.open("alice", 100_000, 3, T0)
        # custody에서 직접 빠져나간 토큰 (장부 밖 손실)
        core.custody.transfer("lockstake", "elsewhere", 4_000)

        assert core.treasury.rewards_remaining_accounted() == 10_000
        assert core.treasury.rewards_available() == 6_000
        with pytest.raises(InsufficientRewardsError):
            core.treasury.recover("treasury", 6_001, "treasury", T0)
        core.treasury.recover("treasury", 6_000, "treasury", T0)
        assert core.treasury.custody_balance() == core.state.total_staked

    @pytest.mark.parametrize("target", ["", ZERO_ADDRESS, "lockstake"])
    def test_invalid_target(self, core, target):
        core.treasury.fund("treasury", 10_000, T0)
        with pytest.raises(InvalidRecipientError):
            core.treasury.recover("treasury", 1_000, target, T0)

    def test_zero_amount(self, core):
        with pytest.raises(ZeroAmountError):
            core.treasury.recover("treasury", 0, "treasury", T0)

    def test_unauthorized(self, core):
        core.treasury.fund("treasury", 10_000, T0)
        with pytest.raises(NotAuthorizedError):
            core.treasury.recover("alice", 1_000, "alice", T0)


class TestStats:
    def test_counters_diverge_after_unnotified_deposit(self, core):
        core.treasury.fund("treasury", 1_000, T0)
        core.custody.transfer("treasury", "lockstake", 500)
        stats = core.treasury.stats()
        assert stats.rewards_available == 1_500
        assert stats.rewards_remaining_accounted == 1_000
        assert stats.custody_balance == 1_500
        assert stats.total_staked == 0


class TestSuccessor:
    def test_set_successor(self, core):
        received = []
        core.bus.subscribe(EventTypes.NEXT_SUCCESSOR_SET, received.append)
        core.treasury.set_successor("admin", "ledger-v2", T0)
        assert core.state.successor == "ledger-v2"
        assert received[0].data == {
            "caller": "admin",
            "previous": None,
            "successor": "ledger-v2",
        }

    def test_admin_only(self, core):
        with pytest.raises(NotAuthorizedError):
            core.treasury.set_successor("treasury", "ledger-v2", T0)

    @pytest.mark.parametrize("target", ["", ZERO_ADDRESS, "lockstake"])
    def test_invalid(self, core, target):
        with pytest.raises(InvalidRecipientError):
            core.treasury.set_successor("admin", target, T0)
        assert core.state.successor is None
