from __future__ import annotations

import asyncio
import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable


class KeyedLock:
    """
    키별 락. 이벤트 루프에 묶이지 않아 요청마다 다른 루프에서 실행되는
    코루틴 사이에서도 같은 키를 직렬화한다. 대기자가 없으면 락을 정리한다.
    """

    def __init__(self, poll_interval: float = 0.005) -> None:
        """
        @param poll_interval 락이 잠겨 있을 때 다시 시도하기까지 양보하는 시간(초).
        @returns None
        """
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._holders: Dict[Hashable, int] = {}
        self._poll_interval = poll_interval

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """
        @param key 직렬화할 자원 키.
        @returns 락을 보유한 동안 유지되는 컨텍스트.
        """
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1
        acquired = False
        try:
            # 스레드를 막지 않도록 비차단 시도 후 루프에 양보한다
            while not lock.acquire(blocking=False):
                await asyncio.sleep(self._poll_interval)
            acquired = True
            yield
        finally:
            if acquired:
                lock.release()
            with self._guard:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    del self._holders[key]
                    self._locks.pop(key, None)

    def active_keys(self) -> int:
        """
        @returns 현재 보유 또는 대기 중인 키 개수.
        """
        with self._guard:
            return len(self._locks)
