"""스테이킹 원장 오류 분류

모든 오류는 호출자에게 그대로 전달되며, 연산 전체를 중단시킨다 (부분 반영 없음).
API 계층은 family(ValidationError, TimingError, ...) 단위로 HTTP 상태 코드를 매핑한다.
"""


class StakingError(Exception):
    """원장 오류 루트. code는 API 응답에 실리는 고정 식별자."""

    code = "staking_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


# ── Validation ───────────────────────────────────────────────


class ValidationError(StakingError):
    code = "validation_error"


class ZeroAmountError(ValidationError):
    code = "zero_amount"


class LockDurationError(ValidationError):
    code = "lock_duration_out_of_bounds"


class LockExtensionError(ValidationError):
    code = "lock_extension_not_increasing"


class PositionNotFoundError(ValidationError):
    code = "position_not_found"

    def __init__(self, owner: str, position_id: int) -> None:
        super().__init__(f"Position not found: {owner}#{position_id}")
        self.owner = owner
        self.position_id = position_id


class InvalidRecipientError(ValidationError):
    code = "invalid_recipient"


class CurveParameterError(ValidationError):
    """APR 곡선 파라미터 조합 오류 (maxAPR < baseAPR, 가중치 합 > 1.0)"""

    code = "invalid_curve_parameters"


# ── Timing ───────────────────────────────────────────────────


class TimingError(StakingError):
    code = "timing_error"


class ClaimTooEarlyError(TimingError):
    code = "claim_interval_not_elapsed"


class PositionLockedError(TimingError):
    code = "position_locked"


# ── State ────────────────────────────────────────────────────


class LedgerStateError(StakingError):
    code = "state_error"


class NoRewardsError(LedgerStateError):
    code = "no_rewards"


class NoSuccessorError(LedgerStateError):
    code = "no_successor"


class ReentrancyError(LedgerStateError):
    code = "reentrant_call"


# ── Accounting ───────────────────────────────────────────────


class AccountingError(StakingError):
    code = "accounting_error"


class InsufficientRewardsError(AccountingError):
    code = "insufficient_rewards"


class NotifyExceedsCustodyError(AccountingError):
    code = "notify_exceeds_custody"


class InsufficientBalanceError(AccountingError):
    code = "insufficient_balance"


# ── Authorization ────────────────────────────────────────────


class AuthorizationError(StakingError):
    code = "authorization_error"


class NotAuthorizedError(AuthorizationError):
    code = "not_authorized"


class PausedError(AuthorizationError):
    code = "paused"
