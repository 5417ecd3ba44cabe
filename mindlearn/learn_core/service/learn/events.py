from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

RESULT_ADDED = "learn_result/add"

Subscriber = Callable[..., Any]


class ResultEventPublisher(ABC):
    """학습 이벤트 발행 포트."""

    @abstractmethod
    def publish(self, event: str, *args: Any) -> None:
        """
        @param event 이벤트 이름.
        @param args 이벤트 인자.
        @returns None
        """
        raise NotImplementedError


class InMemoryEventBus(ResultEventPublisher):
    """프로세스 내 이벤트 버스. 구독자 오류는 기록만 하고 전파하지 않는다."""

    def __init__(self) -> None:
        """
        @returns None
        """
        self._subscribers: Dict[str, List[Subscriber]] = {}
        self.published: List[Tuple[str, Tuple[Any, ...]]] = []

    def subscribe(self, event: str, handler: Subscriber) -> Callable[[], None]:
        """
        @param event 구독할 이벤트 이름.
        @param handler 이벤트 인자를 받는 콜백.
        @returns 구독 해제 함수.
        """
        self._subscribers.setdefault(event, []).append(handler)

        def dispose() -> None:
            handlers = self._subscribers.get(event, [])
            if handler in handlers:
                handlers.remove(handler)

        return dispose

    def publish(self, event: str, *args: Any) -> None:
        self.published.append((event, args))
        for handler in list(self._subscribers.get(event, [])):
            try:
                handler(*args)
            except Exception:
                logger.exception("Event subscriber failed: event=%s", event)
