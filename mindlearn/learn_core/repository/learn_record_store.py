from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

from mindlearn.learn_core.domain.learn_result import ConsumptionStats, LearnProgress, LearnResult

STAT_COUNTERS = ("nodes", "cards", "problems", "practices", "total_time")


class LearnRecordStore(ABC):
    """통과 기록, 결과 로그, 일일 소비 통계 저장소 인터페이스."""

    @abstractmethod
    async def get_passed_card_ids(self, domain_id: str, user_id: str) -> Set[str]:
        """
        @param domain_id 도메인 ID.
        @param user_id 사용자 ID.
        @returns 통과한 카드 ID 집합.
        """
        raise NotImplementedError

    @abstractmethod
    async def set_card_passed(
        self,
        domain_id: str,
        user_id: str,
        card_id: str,
        node_id: Optional[str],
        passed_at: datetime,
    ) -> LearnProgress:
        """
        @param domain_id 도메인 ID.
        @param user_id 사용자 ID.
        @param card_id 통과한 카드 ID.
        @param node_id 카드의 노드 ID.
        @param passed_at 통과 시각.
        @returns 저장된 진행 기록 (재통과 시 최초 통과 시각 유지).
        """
        raise NotImplementedError

    @abstractmethod
    async def add_result(self, result: LearnResult) -> str:
        """
        @param result 추가할 결과.
        @returns 결과 ID.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_results(
        self,
        domain_id: str,
        user_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[LearnResult]:
        """
        @param domain_id 도메인 ID.
        @param user_id 사용자 ID.
        @param since 시작 시각 (포함).
        @param until 종료 시각 (미포함).
        @returns 생성 순서의 결과 리스트.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_result_by_id(self, domain_id: str, user_id: str, result_id: str) -> Optional[LearnResult]:
        """
        @param domain_id 도메인 ID.
        @param user_id 사용자 ID.
        @param result_id 결과 ID.
        @returns 결과 또는 None.
        """
        raise NotImplementedError

    @abstractmethod
    async def inc_consumption_stats(
        self,
        domain_id: str,
        user_id: str,
        date: str,
        increments: Dict[str, float],
        at: datetime,
    ) -> ConsumptionStats:
        """
        @param domain_id 도메인 ID.
        @param user_id 사용자 ID.
        @param date UTC 날짜 문자열 (YYYY-MM-DD).
        @param increments 카운터별 증가량.
        @param at 갱신 시각.
        @returns 갱신된 일일 통계.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_consumption_stats(self, domain_id: str, user_id: str, date: str) -> Optional[ConsumptionStats]:
        """
        @param domain_id 도메인 ID.
        @param user_id 사용자 ID.
        @param date UTC 날짜 문자열.
        @returns 일일 통계 또는 None.
        """
        raise NotImplementedError


class InMemoryLearnRecordStore(LearnRecordStore):
    """인메모리 학습 기록 저장소."""

    def __init__(self) -> None:
        """
        @returns None
        """
        self._lock = threading.Lock()
        self._progress: Dict[Tuple[str, str, str], LearnProgress] = {}
        self._results: List[LearnResult] = []
        self._stats: Dict[Tuple[str, str, str], ConsumptionStats] = {}

    async def get_passed_card_ids(self, domain_id: str, user_id: str) -> Set[str]:
        with self._lock:
            return {
                progress.card_id
                for (domain, user, _card), progress in self._progress.items()
                if domain == domain_id and user == user_id and progress.passed
            }

    async def set_card_passed(
        self,
        domain_id: str,
        user_id: str,
        card_id: str,
        node_id: Optional[str],
        passed_at: datetime,
    ) -> LearnProgress:
        key = (domain_id, user_id, card_id)
        with self._lock:
            existing = self._progress.get(key)
            if existing is not None and existing.passed:
                return existing
            progress = LearnProgress(
                domain_id=domain_id,
                user_id=user_id,
                card_id=card_id,
                node_id=node_id,
                passed=True,
                passed_at=passed_at,
            )
            self._progress[key] = progress
            return progress

    async def add_result(self, result: LearnResult) -> str:
        with self._lock:
            self._results.append(result)
        return result.result_id

    async def get_results(
        self,
        domain_id: str,
        user_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[LearnResult]:
        with self._lock:
            results = [r for r in self._results if r.domain_id == domain_id and r.user_id == user_id]
        if since is not None:
            results = [r for r in results if r.created_at >= since]
        if until is not None:
            results = [r for r in results if r.created_at < until]
        return results

    async def get_result_by_id(self, domain_id: str, user_id: str, result_id: str) -> Optional[LearnResult]:
        with self._lock:
            for result in self._results:
                if result.result_id == result_id and result.domain_id == domain_id and result.user_id == user_id:
                    return result
        return None

    async def inc_consumption_stats(
        self,
        domain_id: str,
        user_id: str,
        date: str,
        increments: Dict[str, float],
        at: datetime,
    ) -> ConsumptionStats:
        key = (domain_id, user_id, date)
        with self._lock:
            stats = self._stats.get(key) or ConsumptionStats(domain_id=domain_id, user_id=user_id, date=date)
            changes = {
                name: getattr(stats, name) + amount
                for name, amount in increments.items()
                if name in STAT_COUNTERS
            }
            stats = replace(stats, update_at=at, **changes)
            self._stats[key] = stats
            return stats

    async def get_consumption_stats(self, domain_id: str, user_id: str, date: str) -> Optional[ConsumptionStats]:
        with self._lock:
            return self._stats.get((domain_id, user_id, date))
