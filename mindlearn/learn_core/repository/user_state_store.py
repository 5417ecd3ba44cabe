from __future__ import annotations

import copy
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from mindlearn.learn_core.common.errors import StateConflictError
from mindlearn.learn_core.domain.user_learn_state import UserLearnState


class UserStateStore(ABC):
    """(domain, user)별 학습 상태 저장소 인터페이스."""

    @abstractmethod
    async def get_user_state(self, domain_id: str, user_id: str) -> UserLearnState:
        """
        @param domain_id 도메인 ID.
        @param user_id 사용자 ID.
        @returns 학습 상태 (없으면 기본값으로 생성).
        """
        raise NotImplementedError

    @abstractmethod
    async def set_user_state(
        self,
        domain_id: str,
        user_id: str,
        patch: Dict[str, Any],
        expected_revision: Optional[int] = None,
    ) -> UserLearnState:
        """
        얕은 병합 upsert. expected_revision이 주어지면 저장된 revision과 같을 때만 쓴다.

        @param domain_id 도메인 ID.
        @param user_id 사용자 ID.
        @param patch 병합할 필드.
        @param expected_revision 기대 revision (None이면 비교하지 않음).
        @returns 갱신된 상태.
        @raises StateConflictError revision이 다르면 발생.
        """
        raise NotImplementedError


class InMemoryUserStateStore(UserStateStore):
    """스레드 안전한 인메모리 상태 저장소."""

    def __init__(self) -> None:
        """
        @returns None
        """
        self._lock = threading.Lock()
        self._store: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.writes = 0
        self.conflicts = 0

    async def get_user_state(self, domain_id: str, user_id: str) -> UserLearnState:
        with self._lock:
            raw = self._store.setdefault((domain_id, user_id), UserLearnState().to_dict())
            return UserLearnState.from_dict(copy.deepcopy(raw))

    async def set_user_state(
        self,
        domain_id: str,
        user_id: str,
        patch: Dict[str, Any],
        expected_revision: Optional[int] = None,
    ) -> UserLearnState:
        with self._lock:
            current = self._store.get((domain_id, user_id)) or UserLearnState().to_dict()
            revision = current.get("revision", 0)
            if expected_revision is not None and revision != expected_revision:
                self.conflicts += 1
                raise StateConflictError(
                    f"Expected revision {expected_revision}, found {revision} for {domain_id}/{user_id}"
                )
            merged = {**current, **copy.deepcopy(patch), "revision": revision + 1}
            self._store[(domain_id, user_id)] = merged
            self.writes += 1
            return UserLearnState.from_dict(copy.deepcopy(merged))
