from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from mindlearn.learn_core.domain.dag_doc import DAGBuildResult, DAGDoc


def build_dag_doc(
    domain_id: str,
    base_id: str,
    branch: str,
    payload: DAGBuildResult,
    version: int,
    update_at: datetime,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    빌드 결과를 저장용 문서로 만듭니다. extra 키는 마지막에 덮어씁니다.

    @param {str} domain_id - 도메인 ID.
    @param {str} base_id - 베이스 ID.
    @param {str} branch - 브랜치 이름.
    @param {DAGBuildResult} payload - 빌더 출력.
    @param {int} version - 원본 베이스 버전.
    @param {datetime} update_at - 빌드 시각.
    @param {Optional[Dict[str, Any]]} extra - 함께 저장할 추가 필드.
    @returns {Dict[str, Any]} 저장용 JSON 문서.
    """
    raw = DAGDoc(
        domain_id=domain_id,
        base_id=base_id,
        branch=branch,
        sections=payload.sections,
        dag=payload.dag,
        version=version,
        update_at=update_at,
    ).to_dict()
    raw.update(extra or {})
    return raw


class DAGStore(ABC):
    """(domain, base, branch) 키의 DAG 캐시 저장소 인터페이스."""

    @abstractmethod
    async def get_dag(self, domain_id: str, base_id: str, branch: str) -> Optional[DAGDoc]:
        """
        @param domain_id 도메인 ID.
        @param base_id 베이스 ID.
        @param branch 브랜치 이름.
        @returns 캐시된 DAG 문서 또는 None.
        """
        raise NotImplementedError

    @abstractmethod
    async def set_dag(
        self,
        domain_id: str,
        base_id: str,
        branch: str,
        payload: DAGBuildResult,
        version: int,
        update_at: datetime,
        extra: Optional[Dict[str, Any]] = None,
    ) -> DAGDoc:
        """
        sections/dag/version/updateAt(+extra)를 한 번에 교체하는 upsert.

        @param domain_id 도메인 ID.
        @param base_id 베이스 ID.
        @param branch 브랜치 이름.
        @param payload 빌더 출력.
        @param version 원본 베이스 버전.
        @param update_at 빌드 시각.
        @param extra 함께 저장할 추가 필드 (예: dagSchemaVersion).
        @returns 저장된 DAG 문서.
        """
        raise NotImplementedError


class InMemoryDAGStore(DAGStore):
    """인메모리 DAG 캐시. 문서는 JSON 딕셔너리로 보관한다."""

    def __init__(self) -> None:
        """
        @returns None
        """
        self._store: Dict[Tuple[str, str, str], Dict[str, Any]] = {}
        self.hits = 0
        self.misses = 0
        self.writes = 0

    def put_raw(self, domain_id: str, base_id: str, branch: str, raw: Dict[str, Any]) -> None:
        """
        @param domain_id 도메인 ID.
        @param base_id 베이스 ID.
        @param branch 브랜치 이름.
        @param raw 그대로 저장할 문서 (마이그레이션 이전 데이터 등).
        @returns None
        """
        self._store[(domain_id, base_id, branch)] = copy.deepcopy(raw)

    async def get_dag(self, domain_id: str, base_id: str, branch: str) -> Optional[DAGDoc]:
        raw = self._store.get((domain_id, base_id, branch))
        if raw is None:
            self.misses += 1
            return None
        self.hits += 1
        return DAGDoc.from_dict(copy.deepcopy(raw))

    async def set_dag(
        self,
        domain_id: str,
        base_id: str,
        branch: str,
        payload: DAGBuildResult,
        version: int,
        update_at: datetime,
        extra: Optional[Dict[str, Any]] = None,
    ) -> DAGDoc:
        raw = build_dag_doc(domain_id, base_id, branch, payload, version, update_at, extra)
        self._store[(domain_id, base_id, branch)] = raw
        self.writes += 1
        return DAGDoc.from_dict(copy.deepcopy(raw))

    def size(self) -> int:
        """
        @returns 저장된 DAG 문서 개수.
        """
        return len(self._store)
