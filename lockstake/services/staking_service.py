"""Staking Service: Core 원장과 DB를 연결

Service → Core, Service → DB 허용.
- 연산마다 시계(now)와 새 파라미터 스냅샷을 Core에 공급
- 성공한 연산의 결과 상태를 DB에 write-through
- EventBus로 발행된 원장 이벤트를 감사 로그 테이블에 기록
- 소유자 단위 일괄 처리 (포지션별 실패는 건너뛰고 계속)
"""

import functools
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set, TypeVar

from sqlalchemy.orm import Session

from lockstake.config import Settings
from lockstake.core.event_bus import EventBus, LedgerEvent
from lockstake.core.event_types import EventTypes
from lockstake.core.logging import get_logger
from lockstake.core.staking.access import AccessPolicy
from lockstake.core.staking.custody import TokenCustody
from lockstake.core.staking.errors import StakingError
from lockstake.core.staking.fixed_point import to_fixed
from lockstake.core.staking.guard import ReentrancyGuard
from lockstake.core.staking.ledger import PositionLedger
from lockstake.core.staking.models import (
    LedgerState,
    OwnerAccount,
    PendingRewards,
    Position,
    RewardsStats,
    Settlement,
)
from lockstake.core.staking.params import ParameterProvider, ParameterSnapshot
from lockstake.core.staking.treasury import RewardsTreasury
from lockstake.db.models import (
    LedgerEventModel,
    LedgerTotalsModel,
    OwnerAccountModel,
    PositionModel,
)

logger = get_logger(__name__)

Clock = Callable[[], int]

TOTALS_ROW_ID = 1


def system_clock() -> int:
    return int(time.time())


F = TypeVar("F", bound=Callable[..., Any])


def serialized(method: F) -> F:
    """서비스 락 안에서 실행 (스레드풀 라우트의 동시 호출을 순서대로 처리)"""

    @functools.wraps(method)
    def wrapper(self: "StakingService", *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


def build_parameter_snapshot(settings: Settings) -> ParameterSnapshot:
    """Settings → ParameterSnapshot (비율/가중치는 고정소수점으로 변환)"""
    return ParameterSnapshot(
        base_apr=to_fixed(settings.BASE_APR),
        max_apr=to_fixed(settings.MAX_APR),
        base_apr_boost=to_fixed(settings.BASE_APR_BOOST_PHASE),
        max_apr_boost=to_fixed(settings.MAX_APR_BOOST_PHASE),
        w_lock=to_fixed(settings.W_LOCK),
        w_size=to_fixed(settings.W_SIZE),
        lock_curvature=to_fixed(settings.LOCK_CURVATURE),
        size_scale=settings.SIZE_SCALE,
        voting_floor=to_fixed(settings.VOTING_FLOOR),
        voting_curvature=to_fixed(settings.VOTING_CURVATURE),
        points_max=to_fixed(settings.POINTS_MAX),
        points_decay=to_fixed(settings.POINTS_DECAY),
        min_lock_months=settings.MIN_LOCK_MONTHS,
        max_lock_months=settings.MAX_LOCK_MONTHS,
        claim_interval=settings.CLAIM_INTERVAL,
        min_boost_stake=settings.MIN_BOOST_STAKE,
        max_boost_stakers=settings.MAX_BOOST_STAKERS,
        boost_duration=settings.BOOST_DURATION,
    )


@dataclass
class BatchResult:
    """일괄 처리 결과: 성공한 정산과 실패한 포지션의 오류 코드"""

    owner: str
    succeeded: List[Settlement] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)

    @property
    def total_reward(self) -> int:
        return sum(s.reward for s in self.succeeded)


class StakingService:
    """포지션 연산, 금고 연산, 조회, 영속화, 일괄 처리"""

    def __init__(
        self,
        db: Session,
        event_bus: EventBus,
        custody: TokenCustody,
        access: AccessPolicy,
        parameters: ParameterProvider,
        clock: Optional[Clock] = None,
        program_start: Optional[int] = None,
    ) -> None:
        self._db = db
        self._bus = event_bus
        self._custody = custody
        self._access = access
        self._clock = clock or system_clock
        # 같은 스레드의 재진입은 통과시켜 ReentrancyGuard가 거부하게 한다
        self._lock = threading.RLock()
        self._dirty_owners: Set[str] = set()

        state = self.load_state()
        if state is None:
            start = program_start if program_start else self._clock()
            state = LedgerState(program_start=start)
            self._sync_totals(state)
            self._db.commit()
            logger.info(f"Ledger initialized: program_start={start}")
        else:
            logger.info(
                f"Ledger loaded: {len(state.positions)} positions, "
                f"total_staked={state.total_staked}"
            )
        self._state = state

        guard = ReentrancyGuard()
        self.ledger = PositionLedger(
            state, custody, parameters, access, guard, event_bus
        )
        self.treasury = RewardsTreasury(state, custody, access, guard, event_bus)
        event_bus.subscribe_all(list(EventTypes.ALL), self._record_event)

    @property
    def state(self) -> LedgerState:
        return self._state

    @property
    def paused(self) -> bool:
        return self._access.paused

    def now(self) -> int:
        return self._clock()

    # ── 포지션 연산 ──────────────────────────────────────────

    @serialized
    def open_position(self, owner: str, amount: int, lock_months: int) -> Position:
        position = self.ledger.open(owner, amount, lock_months, self.now())
        self._persist(owner)
        return position

    @serialized
    def top_up(self, owner: str, position_id: int, amount: int) -> Position:
        position = self.ledger.top_up(owner, position_id, amount, self.now())
        self._persist(owner)
        return position

    @serialized
    def extend_lock(self, owner: str, position_id: int, lock_months: int) -> Position:
        position = self.ledger.extend_lock(owner, position_id, lock_months, self.now())
        self._persist(owner)
        return position

    @serialized
    def claim(self, owner: str, position_id: int) -> Settlement:
        settlement = self.ledger.claim(owner, position_id, self.now())
        self._persist(owner)
        return settlement

    @serialized
    def compound(self, owner: str, position_id: int) -> Settlement:
        settlement = self.ledger.compound(owner, position_id, self.now())
        self._persist(owner)
        return settlement

    @serialized
    def close(self, owner: str, position_id: int) -> Settlement:
        settlement = self.ledger.close(owner, position_id, self.now())
        self._persist(owner)
        return settlement

    @serialized
    def migrate(self, owner: str, position_id: int) -> Settlement:
        settlement = self.ledger.migrate(owner, position_id, self.now())
        self._persist(owner)
        return settlement

    # ── 일괄 처리 ────────────────────────────────────────────

    @serialized
    def claim_all(self, owner: str) -> BatchResult:
        """소유자의 모든 포지션 claim. 개별 실패는 기록만 하고 계속."""
        return self._run_batch(owner, self.ledger.claim, "claim")

    @serialized
    def compound_all(self, owner: str) -> BatchResult:
        return self._run_batch(owner, self.ledger.compound, "compound")

    def _run_batch(
        self,
        owner: str,
        operation: Callable[[str, int, int], Settlement],
        label: str,
    ) -> BatchResult:
        result = BatchResult(owner=owner)
        now = self.now()
        for position_id in self.ledger.list_position_ids(owner):
            try:
                result.succeeded.append(operation(owner, position_id, now))
            except StakingError as e:
                result.failed[position_id] = e.code
                logger.warning(
                    f"Batch {label} skipped {owner}#{position_id}: {e.code} ({e.message})"
                )
        self._persist(owner)
        logger.info(
            f"Batch {label}: {owner} ok={len(result.succeeded)}, "
            f"failed={len(result.failed)}, reward={result.total_reward}"
        )
        return result

    # ── 금고 연산 ────────────────────────────────────────────

    @serialized
    def fund(self, caller: str, amount: int) -> int:
        total = self.treasury.fund(caller, amount, self.now())
        self._persist()
        return total

    @serialized
    def notify(self, caller: str, amount: int) -> int:
        total = self.treasury.notify(caller, amount, self.now())
        self._persist()
        return total

    @serialized
    def recover(self, caller: str, amount: int, to: str) -> int:
        total = self.treasury.recover(caller, amount, to, self.now())
        self._persist()
        return total

    @serialized
    def set_successor(self, caller: str, target: str) -> None:
        self.treasury.set_successor(caller, target, self.now())
        self._persist()

    @serialized
    def pause(self, caller: str) -> None:
        self._access.pause(caller)

    @serialized
    def unpause(self, caller: str) -> None:
        self._access.unpause(caller)

    # ── 조회 ─────────────────────────────────────────────────

    @serialized
    def get_position(self, owner: str, position_id: int) -> Position:
        return self.ledger.get_position(owner, position_id)

    @serialized
    def list_positions(self, owner: str) -> List[Position]:
        return self.ledger.positions_of(owner)

    @serialized
    def pending_rewards(self, owner: str, position_id: int) -> PendingRewards:
        return self.ledger.pending_rewards(owner, position_id, self.now())

    @serialized
    def current_apr(self, owner: str, position_id: int) -> int:
        return self.ledger.current_apr(owner, position_id, self.now())

    @serialized
    def is_claimable(self, owner: str, position_id: int) -> bool:
        return self.ledger.is_claimable(owner, position_id, self.now())

    @serialized
    def is_unlocked(self, owner: str, position_id: int) -> bool:
        return self.ledger.is_unlocked(owner, position_id, self.now())

    @serialized
    def voting_power(self, owner: str, position_id: int) -> int:
        return self.ledger.voting_power(owner, position_id)

    @serialized
    def owner_summary(self, owner: str) -> Dict[str, Any]:
        """소유자 대시보드 집계 (Core 공식 재사용, 상태 변경 없음)"""
        now = self.now()
        ids = self.ledger.list_position_ids(owner)
        pending = [self.ledger.pending_rewards(owner, pid, now) for pid in ids]
        return {
            "owner": owner,
            "position_ids": ids,
            "total_principal": self.ledger.owner_total_principal(owner),
            "pending_rewards": sum(p.reward for p in pending),
            "projected_points": sum(p.projected_points for p in pending),
            "voting_power": self.ledger.owner_voting_power(owner),
            "custody_balance": self._custody.balance_of(owner),
        }

    @serialized
    def stats(self) -> RewardsStats:
        return self.treasury.stats()

    @serialized
    def events_for(self, owner: str, limit: int = 100) -> List[LedgerEventModel]:
        """감사 로그 조회 (최근 순)"""
        return (
            self._db.query(LedgerEventModel)
            .filter(LedgerEventModel.owner == owner)
            .order_by(LedgerEventModel.id.desc())
            .limit(limit)
            .all()
        )

    # ── 감사 로그 ────────────────────────────────────────────

    def _record_event(self, event: LedgerEvent) -> None:
        """EventBus 핸들러: 이벤트를 감사 로그 테이블에 추가 (commit은 _persist)"""
        self._db.add(
            LedgerEventModel(
                event_type=event.event_type,
                source=event.source,
                owner=event.data.get("owner"),
                position_id=event.data.get("position_id"),
                timestamp=event.timestamp,
                data=dict(event.data),
                created_at=datetime.now(timezone.utc),
            )
        )

    # ── 영속화 ───────────────────────────────────────────────

    def load_state(self) -> Optional[LedgerState]:
        """DB 행 → LedgerState. 원장 행이 없으면 None."""
        totals = self._db.get(LedgerTotalsModel, TOTALS_ROW_ID)
        if totals is None:
            return None

        state = LedgerState(
            program_start=totals.program_start,
            total_staked=int(totals.total_staked),
            total_rewards_added=int(totals.total_rewards_added),
            total_rewards_distributed=int(totals.total_rewards_distributed),
            total_rewards_recovered=int(totals.total_rewards_recovered),
            boosted_owner_count=totals.boosted_owner_count,
            successor=totals.successor,
        )
        for row in self._db.query(OwnerAccountModel).all():
            state.accounts[row.owner] = OwnerAccount(
                owner=row.owner,
                position_ids=list(row.position_ids or []),
                total_principal=int(row.total_principal),
                next_position_id=row.next_position_id,
                has_boosted=row.has_boosted,
            )
        for row in self._db.query(PositionModel).all():
            position = self._position_from_orm(row)
            state.positions[position.key] = position
        state.check_invariants()
        return state

    def _persist(self, owner: Optional[str] = None) -> None:
        """연산 결과 write-through. 실패 시 DB 롤백 후 재발생.

        메모리 상태와 custody가 기준이다. commit이 실패해도 이미 끝난 연산은
        되돌리지 않으며, 해당 소유자의 행은 다음 성공한 쓰기에서 재동기화된다.
        """
        owners = set(self._dirty_owners)
        if owner is not None:
            owners.add(owner)
        try:
            for name in sorted(owners):
                self._sync_owner(name)
            self._sync_totals(self._state)
            self._db.commit()
        except Exception:
            self._db.rollback()
            self._dirty_owners = owners
            logger.exception(f"Ledger persistence failed (owner={owner})")
            raise
        self._dirty_owners.clear()

    def _sync_totals(self, state: LedgerState) -> None:
        row = self._db.get(LedgerTotalsModel, TOTALS_ROW_ID)
        if row is None:
            row = LedgerTotalsModel(id=TOTALS_ROW_ID, program_start=state.program_start)
            self._db.add(row)
        row.total_staked = str(state.total_staked)
        row.total_rewards_added = str(state.total_rewards_added)
        row.total_rewards_distributed = str(state.total_rewards_distributed)
        row.total_rewards_recovered = str(state.total_rewards_recovered)
        row.boosted_owner_count = state.boosted_owner_count
        row.successor = state.successor
        row.updated_at = datetime.now(timezone.utc)

    def _sync_owner(self, owner: str) -> None:
        account = self._state.accounts.get(owner)
        if account is None:
            return

        account_row = self._db.get(OwnerAccountModel, owner)
        if account_row is None:
            account_row = OwnerAccountModel(owner=owner)
            self._db.add(account_row)
        account_row.position_ids = list(account.position_ids)
        account_row.total_principal = str(account.total_principal)
        account_row.next_position_id = account.next_position_id
        account_row.has_boosted = account.has_boosted

        rows = {
            row.position_id: row
            for row in self._db.query(PositionModel)
            .filter(PositionModel.owner == owner)
            .all()
        }
        live = set(account.position_ids)
        for position_id, row in rows.items():
            if position_id not in live:
                self._db.delete(row)
        for position_id in account.position_ids:
            position = self._state.positions[(owner, position_id)]
            row = rows.get(position_id)
            if row is None:
                row = PositionModel(owner=owner, position_id=position_id)
                self._db.add(row)
            self._position_to_orm(position, row)

    # ── ORM ↔ Core 변환 ─────────────────────────────────────

    @staticmethod
    def _position_from_orm(row: PositionModel) -> Position:
        """ORM → Core Position"""
        return Position(
            position_id=row.position_id,
            owner=row.owner,
            principal=int(row.principal),
            lock_start=row.lock_start,
            lock_months=row.lock_months,
            last_claim=row.last_claim,
            last_settled=row.last_settled,
            size_snapshot=int(row.size_snapshot),
            points_checkpoint=row.points_checkpoint,
            accrued_rewards=int(row.accrued_rewards),
            points=int(row.points),
            is_boosted=row.is_boosted,
        )

    @staticmethod
    def _position_to_orm(position: Position, row: PositionModel) -> None:
        """Core → ORM (행 갱신)"""
        row.principal = str(position.principal)
        row.lock_start = position.lock_start
        row.lock_months = position.lock_months
        row.last_claim = position.last_claim
        row.last_settled = position.last_settled
        row.size_snapshot = str(position.size_snapshot)
        row.accrued_rewards = str(position.accrued_rewards)
        row.points = str(position.points)
        row.points_checkpoint = position.points_checkpoint
        row.is_boosted = position.is_boosted
