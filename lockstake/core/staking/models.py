"""스테이킹 원장 도메인 모델

DB 무관 순수 데이터 클래스.
"""

import copy
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from lockstake.core.staking.params import MONTH_SECONDS

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

PositionKey = Tuple[str, int]  # (owner, position_id)


@dataclass
class Position:
    """잠금 포지션 하나 (Active 상태에서만 존재, Closed = 삭제)"""

    position_id: int
    owner: str
    principal: int
    lock_start: int
    lock_months: int
    last_claim: int
    last_settled: int  # 정산 체크포인트: accrue가 여기서부터 경과 시간을 잰다
    size_snapshot: int
    points_checkpoint: int

    accrued_rewards: int = 0
    points: int = 0
    is_boosted: bool = False

    @property
    def key(self) -> PositionKey:
        return (self.owner, self.position_id)

    @property
    def unlock_time(self) -> int:
        return self.lock_start + self.lock_months * MONTH_SECONDS


@dataclass
class OwnerAccount:
    """소유자별 포지션 목록, 원금 합계, id 발급 카운터"""

    owner: str
    position_ids: List[int] = field(default_factory=list)
    total_principal: int = 0
    next_position_id: int = 0  # 재사용하지 않는다
    has_boosted: bool = False

    def mint_position_id(self) -> int:
        position_id = self.next_position_id
        self.next_position_id += 1
        return position_id

    def remove_position_id(self, position_id: int) -> None:
        """선형 탐색 후 마지막 원소와 교체하고 줄인다 (O(n))"""
        ids = self.position_ids
        for index, current in enumerate(ids):
            if current == position_id:
                ids[index] = ids[-1]
                ids.pop()
                return


@dataclass
class LedgerState:
    """전역 원장 상태.

    시스템 초기화 시 한 번 만들어지고, 원장/금고 연산을 통해서만 변경된다.
    """

    program_start: int
    total_staked: int = 0
    total_rewards_added: int = 0
    total_rewards_distributed: int = 0
    total_rewards_recovered: int = 0
    boosted_owner_count: int = 0
    successor: Optional[str] = None

    accounts: Dict[str, OwnerAccount] = field(default_factory=dict)
    positions: Dict[PositionKey, Position] = field(default_factory=dict)

    def account(self, owner: str) -> OwnerAccount:
        """소유자 계정 조회, 없으면 생성"""
        acct = self.accounts.get(owner)
        if acct is None:
            acct = OwnerAccount(owner=owner)
            self.accounts[owner] = acct
        return acct

    def snapshot(self) -> "LedgerState":
        return copy.deepcopy(self)

    def restore(self, saved: "LedgerState") -> None:
        vars(self).update(vars(saved))

    def check_invariants(self) -> None:
        """total_staked == 소유자 합계 == 활성 포지션 원금 합계"""
        owner_sum = sum(a.total_principal for a in self.accounts.values())
        position_sum = sum(p.principal for p in self.positions.values())
        if not (self.total_staked == owner_sum == position_sum):
            raise AssertionError(
                f"total_staked={self.total_staked} owners={owner_sum} "
                f"positions={position_sum}"
            )
        for key, position in self.positions.items():
            if position.principal <= 0:
                raise AssertionError(f"Non-positive principal in live position {key}")
            if position.position_id not in self.accounts[position.owner].position_ids:
                raise AssertionError(f"Position {key} missing from owner id list")


@dataclass(frozen=True)
class Settlement:
    """claim / compound / close / migrate 결과"""

    owner: str
    position_id: int
    reward: int
    points_added: int
    points: int
    principal_paid: int = 0
    recipient: Optional[str] = None


@dataclass(frozen=True)
class PendingRewards:
    """조회 결과: 미지급 보상 + 지금 claim 시 예상 포인트"""

    reward: int
    projected_points: int


@dataclass(frozen=True)
class RewardsStats:
    """금고 집계"""

    total_staked: int
    total_rewards_added: int
    total_rewards_distributed: int
    total_rewards_recovered: int
    rewards_remaining_accounted: int
    rewards_available: int
    custody_balance: int
    boosted_owner_count: int
