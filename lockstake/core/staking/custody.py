"""토큰 보관(custody) 인터페이스

원장은 가치 이동을 이 인터페이스로만 요청한다. 모든 금액은 principal과 같은
토큰 단위 정수.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Callable, Dict, List

from lockstake.core.logging import get_logger
from lockstake.core.staking.errors import InsufficientBalanceError, ZeroAmountError

logger = get_logger(__name__)

TransferHook = Callable[[str, int], None]


class TokenCustody(ABC):
    """Abstract base class for token custody.

    `holder` is the address the ledger's own funds are held under.
    """

    @property
    @abstractmethod
    def holder(self) -> str:
        """Return the custody account address of the ledger."""
        ...

    @abstractmethod
    def transfer_in(self, sender: str, amount: int) -> None:
        """Pull `amount` from `sender` into the ledger's custody."""
        ...

    @abstractmethod
    def transfer_out(self, recipient: str, amount: int) -> None:
        """Push `amount` from the ledger's custody to `recipient`."""
        ...

    @abstractmethod
    def balance_of(self, holder: str) -> int:
        """Return the balance held by `holder`."""
        ...


class InMemoryCustody(TokenCustody):
    """프로세스 내 토큰 장부 (개발/테스트용)

    on_transfer_out 훅은 외부 토큰 컨트랙트의 수신 콜백을 흉내낸다.
    훅은 잔고 이동 직후, transfer_out 반환 전에 호출된다.
    훅이 예외를 던지면 이체는 없던 일이 된다 (토큰 컨트랙트의 revert).
    """

    def __init__(self, holder: str = "lockstake") -> None:
        self._holder = holder
        self._balances: Dict[str, int] = defaultdict(int)
        self.on_transfer_out: List[TransferHook] = []

    @property
    def holder(self) -> str:
        return self._holder

    def mint(self, account: str, amount: int) -> None:
        """외부 채널로 토큰 생성 (faucet / 테스트 셋업)"""
        if amount <= 0:
            raise ZeroAmountError("mint amount must be positive")
        self._balances[account] += amount
        logger.debug(f"Minted {amount} to {account}")

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """원장을 거치지 않는 직접 이체 (out-of-band 입금 재현용)"""
        self._move(sender, recipient, amount)

    def transfer_in(self, sender: str, amount: int) -> None:
        self._move(sender, self._holder, amount)

    def transfer_out(self, recipient: str, amount: int) -> None:
        """수신 훅이 실패하면 이체 전체를 되돌린 뒤 예외를 다시 던진다."""
        saved = dict(self._balances)
        self._move(self._holder, recipient, amount)
        try:
            for hook in list(self.on_transfer_out):
                hook(recipient, amount)
        except Exception:
            self._balances = defaultdict(int, saved)
            logger.warning(f"Transfer of {amount} to {recipient} reverted by receiver")
            raise

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        if amount <= 0:
            raise ZeroAmountError("transfer amount must be positive")
        balance = self._balances.get(sender, 0)
        if balance < amount:
            raise InsufficientBalanceError(
                f"{sender} holds {balance}, cannot transfer {amount}"
            )
        self._balances[sender] = balance - amount
        self._balances[recipient] += amount
