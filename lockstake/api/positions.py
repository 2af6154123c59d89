"""Position and owner API endpoints."""

from fastapi import APIRouter, Depends

from lockstake.api.dependencies import get_staking_service, to_http_exception
from lockstake.api.schemas import (
    BatchResponse,
    ExtendLockRequest,
    LedgerEventInfo,
    OpenPositionRequest,
    OwnerSummaryResponse,
    PendingRewardsResponse,
    PositionInfo,
    PositionStatusResponse,
    SettlementResponse,
    TopUpRequest,
)
from lockstake.core.logging import get_logger
from lockstake.core.staking.errors import StakingError
from lockstake.services.staking_service import BatchResult, StakingService

logger = get_logger(__name__)

router = APIRouter(tags=["positions"])


def _batch_response(result: BatchResult) -> BatchResponse:
    return BatchResponse(
        owner=result.owner,
        succeeded=[SettlementResponse.from_settlement(s) for s in result.succeeded],
        failed=result.failed,
        total_reward=result.total_reward,
    )


# ── 포지션 연산 ──────────────────────────────────────────────


@router.post("/positions", response_model=PositionInfo)
def open_position(
    request: OpenPositionRequest,
    service: StakingService = Depends(get_staking_service),
) -> PositionInfo:
    """
    포지션 생성

    amount를 custody로 가져와 lock_months 동안 잠근다.
    """
    try:
        position = service.open_position(
            request.owner, request.amount, request.lock_months
        )
    except StakingError as e:
        raise to_http_exception(e) from e
    return PositionInfo.from_position(position)


@router.post("/positions/{owner}/{position_id}/top-up", response_model=PositionInfo)
def top_up(
    owner: str,
    position_id: int,
    request: TopUpRequest,
    service: StakingService = Depends(get_staking_service),
) -> PositionInfo:
    """포지션 증액"""
    try:
        position = service.top_up(owner, position_id, request.amount)
    except StakingError as e:
        raise to_http_exception(e) from e
    return PositionInfo.from_position(position)


@router.post("/positions/{owner}/{position_id}/extend", response_model=PositionInfo)
def extend_lock(
    owner: str,
    position_id: int,
    request: ExtendLockRequest,
    service: StakingService = Depends(get_staking_service),
) -> PositionInfo:
    """잠금 기간 연장"""
    try:
        position = service.extend_lock(owner, position_id, request.lock_months)
    except StakingError as e:
        raise to_http_exception(e) from e
    return PositionInfo.from_position(position)


@router.post(
    "/positions/{owner}/{position_id}/claim", response_model=SettlementResponse
)
def claim(
    owner: str,
    position_id: int,
    service: StakingService = Depends(get_staking_service),
) -> SettlementResponse:
    """누적 보상 claim"""
    try:
        settlement = service.claim(owner, position_id)
    except StakingError as e:
        raise to_http_exception(e) from e
    return SettlementResponse.from_settlement(settlement)


@router.post(
    "/positions/{owner}/{position_id}/compound", response_model=SettlementResponse
)
def compound(
    owner: str,
    position_id: int,
    service: StakingService = Depends(get_staking_service),
) -> SettlementResponse:
    """누적 보상 재스테이크"""
    try:
        settlement = service.compound(owner, position_id)
    except StakingError as e:
        raise to_http_exception(e) from e
    return SettlementResponse.from_settlement(settlement)


@router.post(
    "/positions/{owner}/{position_id}/close", response_model=SettlementResponse
)
def close(
    owner: str,
    position_id: int,
    service: StakingService = Depends(get_staking_service),
) -> SettlementResponse:
    """잠금 해제된 포지션 종료 (unstake)"""
    try:
        settlement = service.close(owner, position_id)
    except StakingError as e:
        raise to_http_exception(e) from e
    return SettlementResponse.from_settlement(settlement)


@router.post(
    "/positions/{owner}/{position_id}/migrate", response_model=SettlementResponse
)
def migrate(
    owner: str,
    position_id: int,
    service: StakingService = Depends(get_staking_service),
) -> SettlementResponse:
    """잠금 해제된 포지션을 successor로 이전"""
    try:
        settlement = service.migrate(owner, position_id)
    except StakingError as e:
        raise to_http_exception(e) from e
    return SettlementResponse.from_settlement(settlement)


# ── 포지션 조회 ──────────────────────────────────────────────


@router.get("/positions/{owner}/{position_id}", response_model=PositionStatusResponse)
def get_position(
    owner: str,
    position_id: int,
    service: StakingService = Depends(get_staking_service),
) -> PositionStatusResponse:
    """포지션 스냅샷 + 현재 시점 보상/APR/상태"""
    try:
        position = service.get_position(owner, position_id)
        pending = service.pending_rewards(owner, position_id)
        return PositionStatusResponse(
            position=PositionInfo.from_position(position),
            pending_reward=pending.reward,
            projected_points=pending.projected_points,
            current_apr=service.current_apr(owner, position_id),
            claimable=service.is_claimable(owner, position_id),
            unlocked=service.is_unlocked(owner, position_id),
            voting_power=service.voting_power(owner, position_id),
        )
    except StakingError as e:
        raise to_http_exception(e) from e


@router.get(
    "/positions/{owner}/{position_id}/pending", response_model=PendingRewardsResponse
)
def pending_rewards(
    owner: str,
    position_id: int,
    service: StakingService = Depends(get_staking_service),
) -> PendingRewardsResponse:
    """미지급 보상 + 예상 포인트"""
    try:
        pending = service.pending_rewards(owner, position_id)
    except StakingError as e:
        raise to_http_exception(e) from e
    return PendingRewardsResponse.from_pending(pending)


# ── 소유자 단위 ──────────────────────────────────────────────


@router.get("/owners/{owner}", response_model=OwnerSummaryResponse)
def owner_summary(
    owner: str,
    service: StakingService = Depends(get_staking_service),
) -> OwnerSummaryResponse:
    """소유자 집계: 원금 합계, 미지급 보상, 투표력"""
    return OwnerSummaryResponse(**service.owner_summary(owner))


@router.get("/owners/{owner}/positions", response_model=list[PositionInfo])
def list_positions(
    owner: str,
    service: StakingService = Depends(get_staking_service),
) -> list[PositionInfo]:
    """소유자의 활성 포지션 목록"""
    return [PositionInfo.from_position(p) for p in service.list_positions(owner)]


@router.get("/owners/{owner}/events", response_model=list[LedgerEventInfo])
def owner_events(
    owner: str,
    limit: int = 100,
    service: StakingService = Depends(get_staking_service),
) -> list[LedgerEventInfo]:
    """감사 로그 (최근 순)"""
    return [
        LedgerEventInfo(
            event_type=row.event_type,
            source=row.source,
            position_id=row.position_id,
            timestamp=row.timestamp,
            data=row.data,
        )
        for row in service.events_for(owner, limit=limit)
    ]


@router.post("/owners/{owner}/claim-all", response_model=BatchResponse)
def claim_all(
    owner: str,
    service: StakingService = Depends(get_staking_service),
) -> BatchResponse:
    """모든 포지션 claim (개별 실패는 건너뜀)"""
    result = service.claim_all(owner)
    logger.info("claim-all: %s ok=%d", owner, len(result.succeeded))
    return _batch_response(result)


@router.post("/owners/{owner}/compound-all", response_model=BatchResponse)
def compound_all(
    owner: str,
    service: StakingService = Depends(get_staking_service),
) -> BatchResponse:
    """모든 포지션 compound (개별 실패는 건너뜀)"""
    return _batch_response(service.compound_all(owner))
