"""EventBus - 원장 이벤트 발행/구독 인프라

규칙:
- Core 원장은 감사/인덱싱 소비자를 직접 import하지 않는다
- 이벤트는 owner, position_id, 금액만 전달한다 (무거운 객체 금지)
- 핸들러 안에서 다시 발행되는 이벤트는 최대 MAX_DEPTH 단계까지만 전파
- 핸들러 예외는 로그만 남기고 원장 연산을 실패시키지 않는다
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Any
from collections import defaultdict

from lockstake.core.logging import get_logger

logger = get_logger(__name__)

MAX_DEPTH = 5  # 한 연산 내 이벤트 전파 최대 깊이


@dataclass
class LedgerEvent:
    """이벤트 데이터 컨테이너

    Args:
        event_type: 이벤트 유형 (예: "position_opened", "rewards_claimed")
        data: 이벤트 데이터 (owner, position_id, 금액 위주)
        source: 발행한 컴포넌트 이름 ("position_ledger", "rewards_treasury")
        timestamp: 이벤트가 발생한 원장 시각 (초)
    """

    event_type: str
    data: Dict[str, Any]
    source: str
    timestamp: int = 0

    # 내부 추적용 (외부에서 설정하지 않음)
    _depth: int = field(default=0, repr=False)


# 핸들러 타입: LedgerEvent를 받는 callable
EventHandler = Callable[[LedgerEvent], None]


class EventBus:
    """동기식 이벤트 버스

    사용 패턴:
        bus = EventBus()
        bus.subscribe("rewards_claimed", audit_log.record)
        bus.emit(LedgerEvent(event_type="rewards_claimed", data={...}, source="position_ledger"))
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._current_depth: int = 0

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """이벤트 구독 등록"""
        self._handlers[event_type].append(handler)
        logger.debug(f"EventBus 구독: {event_type} → {handler.__qualname__}")

    def subscribe_all(self, event_types: List[str], handler: EventHandler) -> None:
        """여러 이벤트 유형에 같은 핸들러 등록"""
        for event_type in event_types:
            self.subscribe(event_type, handler)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """이벤트 구독 해제"""
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(
                    f"EventBus 구독 해제: {event_type} → {handler.__qualname__}"
                )
            except ValueError:
                logger.warning(f"핸들러 미등록: {event_type} → {handler.__qualname__}")

    def emit(self, event: LedgerEvent) -> None:
        """이벤트 발행. 등록된 핸들러를 동기 호출.

        전파 깊이 MAX_DEPTH 초과 시 무시.
        """
        if self._current_depth >= MAX_DEPTH:
            logger.warning(
                f"EventBus 전파 깊이 초과 ({MAX_DEPTH}): "
                f"{event.source}:{event.event_type} 무시됨"
            )
            return

        event._depth = self._current_depth

        handlers = list(self._handlers.get(event.event_type, []))
        if not handlers:
            logger.debug(f"EventBus: {event.event_type} 구독자 없음")
            return

        logger.debug(
            f"EventBus 전파: {event.event_type} (source={event.source}, "
            f"depth={self._current_depth}, handlers={len(handlers)})"
        )

        self._current_depth += 1
        try:
            for handler in handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        f"EventBus 핸들러 에러: {handler.__qualname__} "
                        f"(event={event.event_type})"
                    )
        finally:
            self._current_depth -= 1

    def clear(self) -> None:
        """모든 구독 해제 (테스트용)"""
        self._handlers.clear()
        self._current_depth = 0

    @property
    def handler_count(self) -> int:
        """등록된 총 핸들러 수"""
        return sum(len(h) for h in self._handlers.values())
