"""스테이킹 Core 패키지: 공개 API"""

from lockstake.core.staking.access import AccessPolicy
from lockstake.core.staking.curves import (
    apr_blend,
    lock_factor,
    points_accrued,
    position_apr,
    select_apr_window,
    size_factor,
    voting_power,
)
from lockstake.core.staking.custody import InMemoryCustody, TokenCustody
from lockstake.core.staking.fixed_point import SCALE
from lockstake.core.staking.guard import ReentrancyGuard, atomic_operation
from lockstake.core.staking.ledger import PositionLedger, rewards_available
from lockstake.core.staking.models import (
    ZERO_ADDRESS,
    LedgerState,
    OwnerAccount,
    PendingRewards,
    Position,
    RewardsStats,
    Settlement,
)
from lockstake.core.staking.params import ParameterSnapshot, static_parameters
from lockstake.core.staking.treasury import RewardsTreasury

__all__ = [
    "AccessPolicy",
    "apr_blend",
    "lock_factor",
    "points_accrued",
    "position_apr",
    "select_apr_window",
    "size_factor",
    "voting_power",
    "InMemoryCustody",
    "TokenCustody",
    "SCALE",
    "ReentrancyGuard",
    "atomic_operation",
    "PositionLedger",
    "rewards_available",
    "ZERO_ADDRESS",
    "LedgerState",
    "OwnerAccount",
    "PendingRewards",
    "Position",
    "RewardsStats",
    "Settlement",
    "ParameterSnapshot",
    "static_parameters",
    "RewardsTreasury",
]
