"""Shared API dependencies and error mapping."""

from fastapi import HTTPException, Request

from lockstake.core.staking.custody import InMemoryCustody
from lockstake.core.staking.errors import (
    AccountingError,
    AuthorizationError,
    LedgerStateError,
    PositionNotFoundError,
    StakingError,
    TimingError,
    ValidationError,
)
from lockstake.services.staking_service import StakingService

# 구체 클래스가 먼저 와야 한다 (PositionNotFoundError ⊂ ValidationError)
_STATUS_BY_ERROR = (
    (PositionNotFoundError, 404),
    (ValidationError, 400),
    (TimingError, 409),
    (LedgerStateError, 409),
    (AccountingError, 422),
    (AuthorizationError, 403),
)


def get_staking_service(request: Request) -> StakingService:
    """StakingService 인스턴스 반환 (의존성 주입)"""
    service: StakingService = request.app.state.staking_service
    return service


def get_custody(request: Request) -> InMemoryCustody:
    """개발용 custody 인스턴스 반환 (의존성 주입)"""
    custody: InMemoryCustody = request.app.state.custody
    return custody


def to_http_exception(error: StakingError) -> HTTPException:
    """원장 오류 → HTTPException (오류 family 단위 상태 코드)"""
    status_code = 400
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            status_code = code
            break
    return HTTPException(
        status_code=status_code,
        detail={"error": error.code, "detail": error.message},
    )
