"""재진입 방지 가드와 원자적 연산 범위

외부 토큰 이체 호출이 유일한 재진입 지점이다. 상태를 변경하는 모든 공개 진입점은
atomic_operation 안에서 실행된다:
1. 가드 획득 (이미 잡혀 있으면 ReentrancyError)
2. 원장 상태 스냅샷
3. 예외 시 스냅샷 복원 후 재발생
4. 모든 종료 경로에서 가드 해제

가드는 대기하지 않는다. 다른 스레드의 호출 직렬화는 상위 서비스 계층의 몫이다.
"""

import threading
from contextlib import contextmanager
from typing import Iterator

from lockstake.core.staking.errors import ReentrancyError
from lockstake.core.staking.models import LedgerState


class ReentrancyGuard:
    """호출 단위 상호 배제 플래그 (확인과 설정이 한 번에 일어난다)"""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @property
    def entered(self) -> bool:
        return self._lock.locked()

    def acquire(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise ReentrancyError("reentrant call rejected")

    def release(self) -> None:
        self._lock.release()


@contextmanager
def atomic_operation(guard: ReentrancyGuard, state: LedgerState) -> Iterator[None]:
    guard.acquire()
    try:
        saved = state.snapshot()
        try:
            yield
        except BaseException:
            state.restore(saved)
            raise
    finally:
        guard.release()
