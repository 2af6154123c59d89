"""접근 제어 / 일시정지 게이트

Core 로직 실행 전에 호출을 허용하거나 거부한다.
역할: admin (일시정지, successor 지정), treasury (보상 입금/회수).
"""

from typing import Optional

from lockstake.core.logging import get_logger
from lockstake.core.staking.errors import NotAuthorizedError, PausedError

logger = get_logger(__name__)


class AccessPolicy:
    """역할 기반 권한 + 전역 일시정지 플래그"""

    def __init__(self, admin: str, treasury: str, paused: bool = False) -> None:
        self.admin = admin
        self.treasury = treasury
        self._paused = paused

    @property
    def paused(self) -> bool:
        return self._paused

    def ensure_active(self) -> None:
        if self._paused:
            raise PausedError("ledger is paused")

    def ensure_admin(self, caller: Optional[str]) -> None:
        if caller != self.admin:
            raise NotAuthorizedError(f"{caller} is not the admin")

    def ensure_treasury(self, caller: Optional[str]) -> None:
        if caller not in (self.treasury, self.admin):
            raise NotAuthorizedError(f"{caller} is not the treasury")

    def pause(self, caller: str) -> None:
        self.ensure_admin(caller)
        self._paused = True
        logger.warning(f"Ledger paused by {caller}")

    def unpause(self, caller: str) -> None:
        self.ensure_admin(caller)
        self._paused = False
        logger.info(f"Ledger unpaused by {caller}")
