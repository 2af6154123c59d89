"""RewardsTreasury: 전역 보상 카운터

funded(added) / distributed / recovered 카운터와 유동성 불변식:
지급 가능한 보상은 max(0, custody 잔고 - totalStaked) 를 넘지 않는다.
카운터 기반 잔여량(rewards_remaining_accounted)은 out-of-band 입금 때문에
실제 잔고와 어긋날 수 있으며, 이는 허용된 동작이다.
"""

from lockstake.core.event_bus import EventBus, LedgerEvent
from lockstake.core.event_types import EventTypes
from lockstake.core.logging import get_logger
from lockstake.core.staking.access import AccessPolicy
from lockstake.core.staking.custody import TokenCustody
from lockstake.core.staking.errors import (
    InsufficientRewardsError,
    InvalidRecipientError,
    NotifyExceedsCustodyError,
    ZeroAmountError,
)
from lockstake.core.staking.guard import ReentrancyGuard, atomic_operation
from lockstake.core.staking.ledger import rewards_available
from lockstake.core.staking.models import ZERO_ADDRESS, LedgerState, RewardsStats

logger = get_logger(__name__)

SOURCE = "rewards_treasury"


class RewardsTreasury:
    """보상 입금(fund/notify), 잉여 회수(recover), successor 지정, 집계 조회"""

    def __init__(
        self,
        state: LedgerState,
        custody: TokenCustody,
        access: AccessPolicy,
        guard: ReentrancyGuard,
        event_bus: EventBus,
    ) -> None:
        self._state = state
        self._custody = custody
        self._access = access
        self._guard = guard
        self._bus = event_bus

    # ── 입금 ─────────────────────────────────────────────────

    def fund(self, caller: str, amount: int, now: int = 0) -> int:
        """treasury가 보상 토큰을 입금. 갱신된 total_rewards_added 반환."""
        with atomic_operation(self._guard, self._state):
            self._access.ensure_treasury(caller)
            if amount <= 0:
                raise ZeroAmountError("funding amount must be positive")
            self._custody.transfer_in(caller, amount)
            self._state.total_rewards_added += amount
            total = self._state.total_rewards_added

        logger.info(f"Rewards funded: {amount} by {caller} (total_added={total})")
        self._publish(
            EventTypes.FUNDING_ADDED,
            now,
            caller=caller,
            amount=amount,
            method="fund",
            total_rewards_added=total,
        )
        return total

    def notify(self, caller: str, amount: int, now: int = 0) -> int:
        """out-of-band로 도착한 보상을 장부에 반영.

        반영 후 장부상 잔고(totalStaked + 잔여 보상)가 실제 custody 잔고를
        넘으면 거부한다.
        """
        with atomic_operation(self._guard, self._state):
            self._access.ensure_treasury(caller)
            if amount <= 0:
                raise ZeroAmountError("notify amount must be positive")
            balance = self._custody.balance_of(self._custody.holder)
            accounted = (
                self._state.total_staked
                + self._state.total_rewards_added
                + amount
                - self._state.total_rewards_distributed
                - self._state.total_rewards_recovered
            )
            if accounted > balance:
                raise NotifyExceedsCustodyError(
                    f"accounted balance {accounted} would exceed custody {balance}"
                )
            self._state.total_rewards_added += amount
            total = self._state.total_rewards_added

        logger.info(f"Rewards notified: {amount} by {caller} (total_added={total})")
        self._publish(
            EventTypes.FUNDING_ADDED,
            now,
            caller=caller,
            amount=amount,
            method="notify",
            total_rewards_added=total,
        )
        return total

    # ── 회수 ─────────────────────────────────────────────────

    def recover(self, caller: str, amount: int, to: str, now: int = 0) -> int:
        """스테이킹 원금을 건드리지 않는 잉여분만 회수"""
        with atomic_operation(self._guard, self._state):
            self._access.ensure_treasury(caller)
            if amount <= 0:
                raise ZeroAmountError("recover amount must be positive")
            if not to or to in (ZERO_ADDRESS, self._custody.holder):
                raise InvalidRecipientError(f"invalid recovery target: {to!r}")
            available = rewards_available(self._custody, self._state)
            if amount > available:
                raise InsufficientRewardsError(
                    f"recover {amount} exceeds available surplus {available}"
                )
            self._state.total_rewards_recovered += amount
            total = self._state.total_rewards_recovered
            self._custody.transfer_out(to, amount)

        logger.info(f"Rewards recovered: {amount} → {to} by {caller}")
        self._publish(
            EventTypes.FUNDING_RECOVERED,
            now,
            caller=caller,
            amount=amount,
            to=to,
            total_rewards_recovered=total,
        )
        return total

    # ── successor ────────────────────────────────────────────

    def set_successor(self, caller: str, target: str, now: int = 0) -> None:
        """migrate 대상 주소 지정 (admin 전용)"""
        with atomic_operation(self._guard, self._state):
            self._access.ensure_admin(caller)
            if not target or target in (ZERO_ADDRESS, self._custody.holder):
                raise InvalidRecipientError(f"invalid successor: {target!r}")
            previous = self._state.successor
            self._state.successor = target

        logger.info(f"Successor set: {previous} → {target}")
        self._publish(
            EventTypes.NEXT_SUCCESSOR_SET,
            now,
            caller=caller,
            previous=previous,
            successor=target,
        )

    # ── 조회 ─────────────────────────────────────────────────

    def custody_balance(self) -> int:
        return self._custody.balance_of(self._custody.holder)

    def rewards_available(self) -> int:
        return rewards_available(self._custody, self._state)

    def rewards_remaining_accounted(self) -> int:
        """카운터 기준 잔여 보상 (실제 잔고와 어긋날 수 있는 보조 지표)"""
        return max(
            0,
            self._state.total_rewards_added
            - self._state.total_rewards_distributed
            - self._state.total_rewards_recovered,
        )

    def stats(self) -> RewardsStats:
        return RewardsStats(
            total_staked=self._state.total_staked,
            total_rewards_added=self._state.total_rewards_added,
            total_rewards_distributed=self._state.total_rewards_distributed,
            total_rewards_recovered=self._state.total_rewards_recovered,
            rewards_remaining_accounted=self.rewards_remaining_accounted(),
            rewards_available=self.rewards_available(),
            custody_balance=self.custody_balance(),
            boosted_owner_count=self._state.boosted_owner_count,
        )

    def _publish(self, event_type: str, now: int, **data) -> None:
        self._bus.emit(
            LedgerEvent(event_type=event_type, data=data, source=SOURCE, timestamp=now)
        )
