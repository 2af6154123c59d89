"""PositionLedger: 포지션 상태 기계

상태: Active (principal > 0) → Closed (레코드 삭제, 종착).
모든 변경 연산은 먼저 accrue로 경과 보상을 정산한 뒤 동작한다. 그래서 요율이
바뀌어도 이미 지난 시간은 재평가되지 않는다.

보상 필드(accrued_rewards, last_claim, points_checkpoint)는 외부 이체 호출
전에 읽고 비운다. 이체 중 재진입한 호출은 이미 정산된 상태를 보게 된다.
"""

import copy
from typing import List

from lockstake.core.event_bus import EventBus, LedgerEvent
from lockstake.core.event_types import EventTypes
from lockstake.core.logging import get_logger
from lockstake.core.staking import curves
from lockstake.core.staking.access import AccessPolicy
from lockstake.core.staking.custody import TokenCustody
from lockstake.core.staking.errors import (
    ClaimTooEarlyError,
    InsufficientRewardsError,
    LockDurationError,
    LockExtensionError,
    NoRewardsError,
    NoSuccessorError,
    PositionLockedError,
    PositionNotFoundError,
    ZeroAmountError,
)
from lockstake.core.staking.fixed_point import SCALE
from lockstake.core.staking.guard import ReentrancyGuard, atomic_operation
from lockstake.core.staking.models import (
    LedgerState,
    OwnerAccount,
    PendingRewards,
    Position,
    Settlement,
)
from lockstake.core.staking.params import (
    WEEK_SECONDS,
    YEAR_SECONDS,
    ParameterProvider,
    ParameterSnapshot,
)

logger = get_logger(__name__)

SOURCE = "position_ledger"


class PositionLedger:
    """포지션 생성/증액/연장/claim/compound/close/migrate

    LedgerState, custody, 가드는 RewardsTreasury와 공유한다.
    """

    def __init__(
        self,
        state: LedgerState,
        custody: TokenCustody,
        parameters: ParameterProvider,
        access: AccessPolicy,
        guard: ReentrancyGuard,
        event_bus: EventBus,
    ) -> None:
        self._state = state
        self._custody = custody
        self._parameters = parameters
        self._access = access
        self._guard = guard
        self._bus = event_bus

    @property
    def state(self) -> LedgerState:
        return self._state

    # ── 생성 ─────────────────────────────────────────────────

    def open(self, owner: str, amount: int, lock_months: int, now: int) -> Position:
        """신규 포지션: 검증 → 입금 → 레코드 생성 → 부스트 판정 → totalStaked 증가"""
        with atomic_operation(self._guard, self._state):
            self._access.ensure_active()
            params = self._parameters()
            if amount <= 0:
                raise ZeroAmountError("stake amount must be positive")
            if not params.min_lock_months <= lock_months <= params.max_lock_months:
                raise LockDurationError(
                    f"lock_months {lock_months} outside "
                    f"[{params.min_lock_months}, {params.max_lock_months}]"
                )

            self._custody.transfer_in(owner, amount)

            account = self._state.account(owner)
            position = Position(
                position_id=account.mint_position_id(),
                owner=owner,
                principal=amount,
                lock_start=now,
                lock_months=lock_months,
                last_claim=now,
                last_settled=now,
                size_snapshot=amount,
                points_checkpoint=now,
            )
            self._state.positions[position.key] = position
            account.position_ids.append(position.position_id)
            account.total_principal += amount
            self._state.total_staked += amount

            self._try_enroll_boost(account, position, now, params)
            result = copy.copy(position)

        logger.info(
            f"Position opened: {owner}#{result.position_id} "
            f"amount={amount}, lock_months={lock_months}, boosted={result.is_boosted}"
        )
        self._publish(
            EventTypes.POSITION_OPENED,
            now,
            owner=owner,
            position_id=result.position_id,
            amount=amount,
            lock_months=lock_months,
            unlock_time=result.unlock_time,
            is_boosted=result.is_boosted,
        )
        return result

    # ── 증액 / 연장 ──────────────────────────────────────────

    def top_up(self, owner: str, position_id: int, amount: int, now: int) -> Position:
        """정산 → 입금 → principal/sizeSnapshot 증가 → 부스트 재판정"""
        with atomic_operation(self._guard, self._state):
            self._access.ensure_active()
            params = self._parameters()
            if amount <= 0:
                raise ZeroAmountError("top-up amount must be positive")
            position = self._get(owner, position_id)
            self._accrue(position, now, params)

            self._custody.transfer_in(owner, amount)

            account = self._state.accounts[owner]
            position.principal += amount
            position.size_snapshot += amount
            account.total_principal += amount
            self._state.total_staked += amount

            self._try_enroll_boost(account, position, now, params)
            result = copy.copy(position)

        logger.info(
            f"Stake increased: {owner}#{position_id} amount={amount}, "
            f"principal={result.principal}"
        )
        self._publish(
            EventTypes.STAKE_INCREASED,
            now,
            owner=owner,
            position_id=position_id,
            amount=amount,
            principal=result.principal,
            is_boosted=result.is_boosted,
        )
        return result

    def extend_lock(
        self, owner: str, position_id: int, new_lock_months: int, now: int
    ) -> Position:
        """잠금 기간 연장. 현재보다 엄격히 크고 상한 이하여야 한다."""
        with atomic_operation(self._guard, self._state):
            self._access.ensure_active()
            params = self._parameters()
            position = self._get(owner, position_id)
            if new_lock_months > params.max_lock_months:
                raise LockDurationError(
                    f"lock_months {new_lock_months} exceeds {params.max_lock_months}"
                )
            if new_lock_months <= position.lock_months:
                raise LockExtensionError(
                    f"lock_months must increase beyond {position.lock_months}"
                )
            self._accrue(position, now, params)
            old_months = position.lock_months
            position.lock_months = new_lock_months
            result = copy.copy(position)

        logger.info(
            f"Lock extended: {owner}#{position_id} {old_months}→{new_lock_months} months"
        )
        self._publish(
            EventTypes.LOCK_EXTENDED,
            now,
            owner=owner,
            position_id=position_id,
            old_lock_months=old_months,
            new_lock_months=new_lock_months,
            unlock_time=result.unlock_time,
        )
        return result

    # ── 보상 ─────────────────────────────────────────────────

    def claim(self, owner: str, position_id: int, now: int) -> Settlement:
        """claim 간격 경과 후 누적 보상 지급 + 포인트 적립"""
        with atomic_operation(self._guard, self._state):
            self._access.ensure_active()
            params = self._parameters()
            position = self._get(owner, position_id)
            self._require_claim_interval(position, now, params)
            self._accrue(position, now, params)
            self._require_rewards_liquidity(position.accrued_rewards)

            reward, points_added = self._settle_claim(position, now, params)
            self._state.total_rewards_distributed += reward
            settlement = Settlement(
                owner=owner,
                position_id=position_id,
                reward=reward,
                points_added=points_added,
                points=position.points,
                recipient=owner,
            )
            # 보상 필드는 이미 0, 이체는 마지막
            if reward > 0:
                self._custody.transfer_out(owner, reward)

        logger.info(
            f"Rewards claimed: {owner}#{position_id} reward={reward}, "
            f"points+={points_added}"
        )
        self._publish(
            EventTypes.REWARDS_CLAIMED,
            now,
            owner=owner,
            position_id=position_id,
            reward=reward,
            points_added=points_added,
            points=settlement.points,
        )
        return settlement

    def compound(self, owner: str, position_id: int, now: int) -> Settlement:
        """claim과 같은 정산, 단 보상을 지급하지 않고 principal에 더한다"""
        with atomic_operation(self._guard, self._state):
            self._access.ensure_active()
            params = self._parameters()
            position = self._get(owner, position_id)
            self._require_claim_interval(position, now, params)
            self._accrue(position, now, params)
            if position.accrued_rewards == 0:
                raise NoRewardsError(f"nothing to compound on {owner}#{position_id}")
            self._require_rewards_liquidity(position.accrued_rewards)

            reward, points_added = self._settle_claim(position, now, params)
            position.principal += reward
            position.size_snapshot += reward
            self._state.accounts[owner].total_principal += reward
            self._state.total_staked += reward
            self._state.total_rewards_distributed += reward
            settlement = Settlement(
                owner=owner,
                position_id=position_id,
                reward=reward,
                points_added=points_added,
                points=position.points,
            )
            principal = position.principal

        logger.info(
            f"Rewards compounded: {owner}#{position_id} reward={reward}, "
            f"principal={principal}"
        )
        self._publish(
            EventTypes.REWARDS_COMPOUNDED,
            now,
            owner=owner,
            position_id=position_id,
            reward=reward,
            principal=principal,
            points_added=points_added,
            points=settlement.points,
        )
        return settlement

    # ── 종료 ─────────────────────────────────────────────────

    def close(self, owner: str, position_id: int, now: int) -> Settlement:
        """unstake: 잠금 해제 후 원금 (+ claim 간격 경과 시 보상) 한 번에 지급"""
        with atomic_operation(self._guard, self._state):
            self._access.ensure_active()
            params = self._parameters()
            position = self._get(owner, position_id)
            self._require_unlocked(position, now)
            self._accrue(position, now, params)

            reward = 0
            points_added = 0
            forfeited = 0
            interval_elapsed = now >= position.last_claim + params.claim_interval
            available = rewards_available(self._custody, self._state)
            if interval_elapsed and position.accrued_rewards <= available:
                reward, points_added = self._settle_claim(position, now, params)
                self._state.total_rewards_distributed += reward
            elif position.accrued_rewards > 0:
                # 보상을 못 주더라도 원금 반환은 막지 않는다
                forfeited = position.accrued_rewards
                if interval_elapsed:
                    logger.warning(
                        f"Reward pool short on close, reward forfeited: "
                        f"{owner}#{position_id} amount={forfeited}, "
                        f"available={available}"
                    )
                else:
                    logger.info(
                        f"Unclaimed rewards forfeited on close: {owner}#{position_id} "
                        f"amount={forfeited}"
                    )

            principal = position.principal
            points = position.points
            self._remove(position)
            self._custody.transfer_out(owner, principal + reward)

        logger.info(
            f"Position closed: {owner}#{position_id} principal={principal}, "
            f"reward={reward}"
        )
        if reward > 0:
            self._publish(
                EventTypes.REWARDS_CLAIMED,
                now,
                owner=owner,
                position_id=position_id,
                reward=reward,
                points_added=points_added,
                points=points,
            )
        self._publish(
            EventTypes.POSITION_CLOSED,
            now,
            owner=owner,
            position_id=position_id,
            principal=principal,
            reward=reward,
            forfeited=forfeited,
            points=points,
        )
        return Settlement(
            owner=owner,
            position_id=position_id,
            reward=reward,
            points_added=points_added,
            points=points,
            principal_paid=principal,
            recipient=owner,
        )

    def migrate(self, owner: str, position_id: int, now: int) -> Settlement:
        """잠금 해제된 포지션의 원금 + 보상을 successor 주소로 한 번에 이전.

        예상 포인트는 이벤트/결과 보고용이며 따로 지급하지 않는다.
        """
        with atomic_operation(self._guard, self._state):
            self._access.ensure_active()
            params = self._parameters()
            target = self._state.successor
            if not target:
                raise NoSuccessorError("no successor ledger configured")
            position = self._get(owner, position_id)
            self._require_unlocked(position, now)
            self._accrue(position, now, params)

            reward = position.accrued_rewards
            self._require_rewards_liquidity(reward)
            points_added = curves.points_accrued(
                reward,
                (now - position.points_checkpoint) // WEEK_SECONDS,
                params.points_max,
                params.points_decay,
            )
            projected_points = position.points + points_added
            principal = position.principal

            position.accrued_rewards = 0
            self._state.total_rewards_distributed += reward
            self._remove(position)
            self._custody.transfer_out(target, principal + reward)

        logger.info(
            f"Position migrated: {owner}#{position_id} → {target} "
            f"principal={principal}, reward={reward}"
        )
        self._publish(
            EventTypes.POSITION_MIGRATED,
            now,
            owner=owner,
            position_id=position_id,
            target=target,
            principal=principal,
            reward=reward,
            projected_points=projected_points,
        )
        return Settlement(
            owner=owner,
            position_id=position_id,
            reward=reward,
            points_added=points_added,
            points=projected_points,
            principal_paid=principal,
            recipient=target,
        )

    # ── 조회 ─────────────────────────────────────────────────

    def get_position(self, owner: str, position_id: int) -> Position:
        """포지션 스냅샷 (복사본)"""
        return copy.copy(self._get(owner, position_id))

    def list_position_ids(self, owner: str) -> List[int]:
        account = self._state.accounts.get(owner)
        return list(account.position_ids) if account else []

    def positions_of(self, owner: str) -> List[Position]:
        return [self.get_position(owner, pid) for pid in self.list_position_ids(owner)]

    def owner_total_principal(self, owner: str) -> int:
        account = self._state.accounts.get(owner)
        return account.total_principal if account else 0

    def pending_rewards(self, owner: str, position_id: int, now: int) -> PendingRewards:
        """지금 claim하면 받을 보상과 그때의 포인트 합계"""
        params = self._parameters()
        position = self._get(owner, position_id)
        reward = position.accrued_rewards + self._preview_accrual(position, now, params)
        weeks = max(0, now - position.points_checkpoint) // WEEK_SECONDS
        projected = position.points + curves.points_accrued(
            reward, weeks, params.points_max, params.points_decay
        )
        return PendingRewards(reward=reward, projected_points=projected)

    def current_apr(self, owner: str, position_id: int, now: int) -> int:
        position = self._get(owner, position_id)
        return self._apr(position, now, self._parameters())

    def is_claimable(self, owner: str, position_id: int, now: int) -> bool:
        position = self._get(owner, position_id)
        return now >= position.last_claim + self._parameters().claim_interval

    def is_unlocked(self, owner: str, position_id: int, now: int) -> bool:
        return now >= self._get(owner, position_id).unlock_time

    def voting_power(self, owner: str, position_id: int) -> int:
        params = self._parameters()
        position = self._get(owner, position_id)
        return curves.voting_power(
            position.principal,
            position.lock_months,
            params.voting_floor,
            params.voting_curvature,
        )

    def owner_voting_power(self, owner: str) -> int:
        return sum(
            self.voting_power(owner, pid) for pid in self.list_position_ids(owner)
        )

    # ── 내부: 정산 ───────────────────────────────────────────

    def _apr(self, position: Position, now: int, params: ParameterSnapshot) -> int:
        return curves.position_apr(
            position.lock_months,
            position.size_snapshot,
            position.is_boosted,
            now,
            self._state.program_start,
            params,
        )

    def _preview_accrual(
        self, position: Position, now: int, params: ParameterSnapshot
    ) -> int:
        """last_settled 이후 경과분의 단리 보상 (상태 변경 없음)"""
        elapsed = now - position.last_settled
        if elapsed <= 0:
            return 0
        apr = self._apr(position, now, params)
        return position.principal * apr * elapsed // (SCALE * YEAR_SECONDS)

    def _accrue(self, position: Position, now: int, params: ParameterSnapshot) -> int:
        """경과 보상을 accrued_rewards에 접어 넣고 체크포인트를 now로 옮긴다"""
        if now <= position.last_settled:
            return 0
        reward = self._preview_accrual(position, now, params)
        position.accrued_rewards += reward
        position.last_settled = now
        return reward

    def _settle_claim(
        self, position: Position, now: int, params: ParameterSnapshot
    ) -> tuple[int, int]:
        """보상 읽기 + 포인트 적립 + 보상 필드 초기화. (reward, points_added)"""
        reward = position.accrued_rewards
        weeks = (now - position.points_checkpoint) // WEEK_SECONDS
        points_added = curves.points_accrued(
            reward, weeks, params.points_max, params.points_decay
        )
        position.points += points_added
        position.accrued_rewards = 0
        position.last_claim = now
        position.points_checkpoint = now
        return reward, points_added

    # ── 내부: 부스트 코호트 ──────────────────────────────────

    def _try_enroll_boost(
        self,
        account: OwnerAccount,
        position: Position,
        now: int,
        params: ParameterSnapshot,
    ) -> bool:
        """부스트 코호트 편입. 한 번 부스트된 포지션은 그대로 유지된다.

        코호트 슬롯은 소유자 단위: 같은 소유자의 두 번째 부스트 포지션은
        슬롯을 더 쓰지 않는다.
        """
        if position.is_boosted:
            return False
        if now >= self._state.program_start + params.boost_duration:
            return False
        if position.principal < params.min_boost_stake:
            return False
        if (
            not account.has_boosted
            and self._state.boosted_owner_count >= params.max_boost_stakers
        ):
            return False

        position.is_boosted = True
        if not account.has_boosted:
            account.has_boosted = True
            self._state.boosted_owner_count += 1
        logger.info(
            f"Boost granted: {position.owner}#{position.position_id} "
            f"(cohort={self._state.boosted_owner_count}/{params.max_boost_stakers})"
        )
        return True

    # ── 내부 헬퍼 ────────────────────────────────────────────

    def _get(self, owner: str, position_id: int) -> Position:
        position = self._state.positions.get((owner, position_id))
        if position is None:
            raise PositionNotFoundError(owner, position_id)
        return position

    def _remove(self, position: Position) -> None:
        """Closed 전이: 레코드 삭제 + 소유자 목록 압축 + totalStaked 감소"""
        account = self._state.accounts[position.owner]
        del self._state.positions[position.key]
        account.remove_position_id(position.position_id)
        account.total_principal -= position.principal
        self._state.total_staked -= position.principal

    def _require_claim_interval(
        self, position: Position, now: int, params: ParameterSnapshot
    ) -> None:
        ready_at = position.last_claim + params.claim_interval
        if now < ready_at:
            raise ClaimTooEarlyError(
                f"{position.owner}#{position.position_id} claimable at {ready_at}"
            )

    def _require_unlocked(self, position: Position, now: int) -> None:
        if now < position.unlock_time:
            raise PositionLockedError(
                f"{position.owner}#{position.position_id} locked until "
                f"{position.unlock_time}"
            )

    def _require_rewards_liquidity(self, reward: int) -> None:
        """지급 보상은 custody 잔고 - totalStaked 를 넘을 수 없다"""
        available = rewards_available(self._custody, self._state)
        if reward > available:
            raise InsufficientRewardsError(
                f"reward {reward} exceeds available rewards {available}"
            )

    def _publish(self, event_type: str, now: int, **data) -> None:
        self._bus.emit(
            LedgerEvent(event_type=event_type, data=data, source=SOURCE, timestamp=now)
        )


def rewards_available(custody: TokenCustody, state: LedgerState) -> int:
    """max(0, custody 잔고 - totalStaked): 지급 가능한 보상의 상한"""
    return max(0, custody.balance_of(custody.holder) - state.total_staked)

