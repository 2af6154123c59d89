"""Treasury and custody API endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from lockstake.api.dependencies import (
    get_custody,
    get_staking_service,
    to_http_exception,
)
from lockstake.api.schemas import (
    CallerRequest,
    MintRequest,
    RecoverRequest,
    StatsResponse,
    SuccessorRequest,
    TreasuryAmountRequest,
    TreasuryResponse,
)
from lockstake.config import settings
from lockstake.core.logging import get_logger
from lockstake.core.staking.custody import InMemoryCustody
from lockstake.core.staking.errors import StakingError
from lockstake.services.staking_service import StakingService

logger = get_logger(__name__)

router = APIRouter(prefix="/treasury", tags=["treasury"])
custody_router = APIRouter(prefix="/custody", tags=["custody"])


@router.get("/stats", response_model=StatsResponse)
def stats(service: StakingService = Depends(get_staking_service)) -> StatsResponse:
    """금고 집계: 카운터, 지급 가능 보상, custody 잔고"""
    return StatsResponse.from_stats(
        service.stats(), paused=service.paused, successor=service.state.successor
    )


@router.post("/fund", response_model=TreasuryResponse)
def fund(
    request: TreasuryAmountRequest,
    service: StakingService = Depends(get_staking_service),
) -> TreasuryResponse:
    """보상 입금 (treasury 전용)"""
    try:
        total = service.fund(request.caller, request.amount)
    except StakingError as e:
        raise to_http_exception(e) from e
    return TreasuryResponse(success=True, action="fund", total=total)


@router.post("/notify", response_model=TreasuryResponse)
def notify(
    request: TreasuryAmountRequest,
    service: StakingService = Depends(get_staking_service),
) -> TreasuryResponse:
    """out-of-band 입금 반영 (treasury 전용)"""
    try:
        total = service.notify(request.caller, request.amount)
    except StakingError as e:
        raise to_http_exception(e) from e
    return TreasuryResponse(success=True, action="notify", total=total)


@router.post("/recover", response_model=TreasuryResponse)
def recover(
    request: RecoverRequest,
    service: StakingService = Depends(get_staking_service),
) -> TreasuryResponse:
    """잉여 보상 회수 (treasury 전용)"""
    try:
        total = service.recover(request.caller, request.amount, request.to)
    except StakingError as e:
        raise to_http_exception(e) from e
    return TreasuryResponse(success=True, action="recover", total=total)


@router.post("/successor", response_model=TreasuryResponse)
def set_successor(
    request: SuccessorRequest,
    service: StakingService = Depends(get_staking_service),
) -> TreasuryResponse:
    """migrate 대상 지정 (admin 전용)"""
    try:
        service.set_successor(request.caller, request.target)
    except StakingError as e:
        raise to_http_exception(e) from e
    return TreasuryResponse(success=True, action="set_successor")


@router.post("/pause", response_model=TreasuryResponse)
def pause(
    request: CallerRequest,
    service: StakingService = Depends(get_staking_service),
) -> TreasuryResponse:
    """사용자 연산 일시정지 (admin 전용)"""
    try:
        service.pause(request.caller)
    except StakingError as e:
        raise to_http_exception(e) from e
    return TreasuryResponse(success=True, action="pause")


@router.post("/unpause", response_model=TreasuryResponse)
def unpause(
    request: CallerRequest,
    service: StakingService = Depends(get_staking_service),
) -> TreasuryResponse:
    """일시정지 해제 (admin 전용)"""
    try:
        service.unpause(request.caller)
    except StakingError as e:
        raise to_http_exception(e) from e
    return TreasuryResponse(success=True, action="unpause")


# ── 개발용 custody ───────────────────────────────────────────


@custody_router.get("/{holder}/balance")
def balance(
    holder: str, custody: InMemoryCustody = Depends(get_custody)
) -> dict[str, int]:
    """custody 장부상 잔고"""
    return {"balance": custody.balance_of(holder)}


@custody_router.post("/mint")
def mint(
    request: MintRequest, custody: InMemoryCustody = Depends(get_custody)
) -> dict[str, int]:
    """개발용 토큰 faucet (DEBUG 모드 전용)"""
    if not settings.DEBUG:
        raise HTTPException(status_code=403, detail="Faucet disabled outside DEBUG")
    custody.mint(request.holder, request.amount)
    logger.info("Faucet: minted %d to %s", request.amount, request.holder)
    return {"balance": custody.balance_of(request.holder)}
