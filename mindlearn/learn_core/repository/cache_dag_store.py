from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from django.core.cache import BaseCache, caches

from mindlearn.learn_core.domain.dag_doc import DAGBuildResult, DAGDoc
from mindlearn.learn_core.repository.dag_store import DAGStore, build_dag_doc

CACHE_KEY_PREFIX = "learn_dag"


class DjangoCacheDAGStore(DAGStore):
    """Django 캐시 프레임워크(locmem/Redis) 기반 DAG 저장소."""

    def __init__(self, cache: Optional[BaseCache] = None, timeout: Optional[int] = None) -> None:
        """
        @param cache 사용할 캐시 (기본 caches["default"]).
        @param timeout 만료 시간(초). None이면 만료 없음.
        @returns None
        """
        self._cache = cache if cache is not None else caches["default"]
        self._timeout = timeout

    @staticmethod
    def cache_key(domain_id: str, base_id: str, branch: str) -> str:
        """
        @param domain_id 도메인 ID.
        @param base_id 베이스 ID.
        @param branch 브랜치 이름.
        @returns 캐시 키 문자열.
        """
        return f"{CACHE_KEY_PREFIX}:{domain_id}:{base_id}:{branch}"

    async def get_dag(self, domain_id: str, base_id: str, branch: str) -> Optional[DAGDoc]:
        raw = await self._cache.aget(self.cache_key(domain_id, base_id, branch))
        if raw is None:
            return None
        return DAGDoc.from_dict(raw)

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
        await self._cache.aset(self.cache_key(domain_id, base_id, branch), raw, timeout=self._timeout)
        return DAGDoc.from_dict(raw)
