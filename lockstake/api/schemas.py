"""API request/response schemas."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from lockstake.core.staking.models import (
    PendingRewards,
    Position,
    RewardsStats,
    Settlement,
)


# === Request Schemas ===


class OpenPositionRequest(BaseModel):
    """포지션 생성 요청"""

    owner: str = Field(..., min_length=1, max_length=100, description="소유자 주소")
    amount: int = Field(..., description="스테이크 금액 (토큰 단위)")
    lock_months: int = Field(..., description="잠금 기간 (개월)")


class TopUpRequest(BaseModel):
    """포지션 증액 요청"""

    amount: int = Field(..., description="추가 금액 (토큰 단위)")


class ExtendLockRequest(BaseModel):
    """잠금 연장 요청"""

    lock_months: int = Field(..., description="새 잠금 기간 (현재보다 커야 함)")


class CallerRequest(BaseModel):
    """권한이 필요한 요청의 호출자"""

    caller: str = Field(..., min_length=1)


class TreasuryAmountRequest(CallerRequest):
    """fund / notify 요청"""

    amount: int


class RecoverRequest(CallerRequest):
    """잉여 보상 회수 요청"""

    amount: int
    to: str


class SuccessorRequest(CallerRequest):
    """successor 주소 지정 요청"""

    target: str


class MintRequest(BaseModel):
    """개발용 토큰 faucet 요청"""

    holder: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)


# === Response Schemas ===


class PositionInfo(BaseModel):
    """포지션 스냅샷"""

    owner: str
    position_id: int
    principal: int
    lock_start: int
    lock_months: int
    unlock_time: int
    last_claim: int
    size_snapshot: int
    accrued_rewards: int
    points: int
    points_checkpoint: int
    is_boosted: bool

    @classmethod
    def from_position(cls, position: Position) -> "PositionInfo":
        return cls(
            owner=position.owner,
            position_id=position.position_id,
            principal=position.principal,
            lock_start=position.lock_start,
            lock_months=position.lock_months,
            unlock_time=position.unlock_time,
            last_claim=position.last_claim,
            size_snapshot=position.size_snapshot,
            accrued_rewards=position.accrued_rewards,
            points=position.points,
            points_checkpoint=position.points_checkpoint,
            is_boosted=position.is_boosted,
        )


class PositionStatusResponse(BaseModel):
    """포지션 + 현재 시점 조회값"""

    position: PositionInfo
    pending_reward: int
    projected_points: int
    current_apr: int
    claimable: bool
    unlocked: bool
    voting_power: int


class SettlementResponse(BaseModel):
    """claim / compound / close / migrate 결과"""

    owner: str
    position_id: int
    reward: int
    points_added: int
    points: int
    principal_paid: int = 0
    recipient: Optional[str] = None

    @classmethod
    def from_settlement(cls, settlement: Settlement) -> "SettlementResponse":
        return cls(
            owner=settlement.owner,
            position_id=settlement.position_id,
            reward=settlement.reward,
            points_added=settlement.points_added,
            points=settlement.points,
            principal_paid=settlement.principal_paid,
            recipient=settlement.recipient,
        )


class PendingRewardsResponse(BaseModel):
    reward: int
    projected_points: int

    @classmethod
    def from_pending(cls, pending: PendingRewards) -> "PendingRewardsResponse":
        return cls(reward=pending.reward, projected_points=pending.projected_points)


class BatchResponse(BaseModel):
    """일괄 처리 결과"""

    owner: str
    succeeded: list[SettlementResponse] = []
    failed: dict[int, str] = {}
    total_reward: int = 0


class OwnerSummaryResponse(BaseModel):
    """소유자 집계"""

    owner: str
    position_ids: list[int] = []
    total_principal: int
    pending_rewards: int
    projected_points: int
    voting_power: int
    custody_balance: int


class StatsResponse(BaseModel):
    """금고 집계"""

    total_staked: int
    total_rewards_added: int
    total_rewards_distributed: int
    total_rewards_recovered: int
    rewards_remaining_accounted: int
    rewards_available: int
    custody_balance: int
    boosted_owner_count: int
    paused: bool = False
    successor: Optional[str] = None

    @classmethod
    def from_stats(
        cls, stats: RewardsStats, paused: bool, successor: Optional[str]
    ) -> "StatsResponse":
        return cls(
            total_staked=stats.total_staked,
            total_rewards_added=stats.total_rewards_added,
            total_rewards_distributed=stats.total_rewards_distributed,
            total_rewards_recovered=stats.total_rewards_recovered,
            rewards_remaining_accounted=stats.rewards_remaining_accounted,
            rewards_available=stats.rewards_available,
            custody_balance=stats.custody_balance,
            boosted_owner_count=stats.boosted_owner_count,
            paused=paused,
            successor=successor,
        )


class TreasuryResponse(BaseModel):
    """금고 연산 결과"""

    success: bool
    action: str
    total: Optional[int] = None


class LedgerEventInfo(BaseModel):
    """감사 로그 항목"""

    event_type: str
    source: str
    position_id: Optional[int] = None
    timestamp: int
    data: dict[str, Any] = {}
