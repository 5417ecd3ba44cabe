from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from mindlearn.learn_core.common.keyed_lock import KeyedLock
from mindlearn.learn_core.config.learn_settings import LearnSettings, learn_settings
from mindlearn.learn_core.domain.content_base import ContentBase, resolve_branch_graph
from mindlearn.learn_core.domain.dag_doc import DAGDoc
from mindlearn.learn_core.repository.content_store import ContentStore
from mindlearn.learn_core.repository.dag_store import DAGStore
from mindlearn.learn_core.service.learn.dag_builder import Translate, build_dag

logger = logging.getLogger(__name__)

# 카드 요약 형식이 바뀔 때마다 올린다.
DAG_SCHEMA_VERSION = 2

STALE_MISSING = "missing"
STALE_OUTDATED = "outdated"
STALE_EMPTY_PAYLOAD = "empty_payload"
STALE_EMPTY_SECTIONS = "empty_sections"
STALE_CARD_SCHEMA = "card_schema"
STALE_SCHEMA_VERSION = "schema_version"


def stale_reason(
    cached: Optional[DAGDoc],
    source_version: int,
    source_node_count: int,
    schema_version: int = DAG_SCHEMA_VERSION,
) -> Optional[str]:
    """
    캐시된 DAG를 다시 빌드해야 하는 이유를 반환합니다.

    @param {Optional[DAGDoc]} cached - 캐시된 문서.
    @param {int} source_version - 원본 베이스 버전(ms).
    @param {int} source_node_count - 원본 브랜치 노드 수.
    @param {int} schema_version - 현재 DAG 스키마 버전.
    @returns {Optional[str]} 낡음 사유 또는 None (사용 가능).
    """
    if cached is None:
        return STALE_MISSING
    if cached.version < source_version:
        return STALE_OUTDATED
    if source_node_count > 0:
        if not cached.sections and not cached.dag:
            return STALE_EMPTY_PAYLOAD
        if not cached.sections:
            return STALE_EMPTY_SECTIONS
    if any(not card.has_problem_metadata for card in cached.iter_cards()):
        return STALE_CARD_SCHEMA
    if schema_version > cached.dag_schema_version:
        return STALE_SCHEMA_VERSION
    return None


class DAGCacheService:
    """DAG 캐시 조회 + 낡은 경우 단일 재빌드."""

    def __init__(
        self,
        dag_store: DAGStore,
        content_store: ContentStore,
        settings: Optional[LearnSettings] = None,
        schema_version: int = DAG_SCHEMA_VERSION,
        clock: Optional[Callable[[], datetime]] = None,
        locks: Optional[KeyedLock] = None,
    ) -> None:
        """
        @param {DAGStore} dag_store - DAG 캐시 저장소.
        @param {ContentStore} content_store - 카드 조회용 콘텐츠 저장소.
        @param {Optional[LearnSettings]} settings - 엔진 설정.
        @param {int} schema_version - 현재 DAG 스키마 버전.
        @param {Optional[Callable[[], datetime]]} clock - 현재 시각 함수.
        @param {Optional[KeyedLock]} locks - 재빌드 단일화 락. 여러 서비스가 공유하면 요청 사이에서도 한 번만 빌드된다.
        @returns {None} 서비스를 초기화합니다.
        """
        self._dag_store = dag_store
        self._content_store = content_store
        self._settings = settings or learn_settings
        self._schema_version = schema_version
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._locks = locks or KeyedLock()
        self.rebuilds = 0

    async def get_dag(self, base: ContentBase, branch: str, translate: Optional[Translate] = None) -> DAGDoc:
        """
        캐시를 반환하거나, 낡았으면 다시 빌드해 저장합니다.

        @param {ContentBase} base - 콘텐츠 베이스.
        @param {str} branch - 브랜치 이름.
        @param {Optional[Translate]} translate - 제목 대체 문구 번역 함수.
        @returns {DAGDoc} 사용 가능한 DAG 문서.
        """
        graph = resolve_branch_graph(base, branch)
        domain_id, base_id = base.domain_id, base.base_id
        cached = await self._dag_store.get_dag(domain_id, base_id, branch)
        reason = stale_reason(cached, base.version, len(graph.nodes), self._schema_version)
        if reason is None:
            return cached
        async with self._locks.hold((domain_id, base_id, branch)):
            # 대기 중에 다른 요청이 이미 재빌드했을 수 있다
            cached = await self._dag_store.get_dag(domain_id, base_id, branch)
            reason = stale_reason(cached, base.version, len(graph.nodes), self._schema_version)
            if reason is None:
                return cached
            logger.info(
                "Rebuilding learn DAG domain=%s base=%s branch=%s reason=%s",
                domain_id,
                base_id,
                branch,
                reason,
            )

            async def card_lookup(node_id: str):
                return await self._content_store.get_cards_by_node_id(domain_id, base_id, node_id)

            result = await build_dag(
                graph.nodes,
                graph.edges,
                card_lookup,
                translate=translate,
                rollup_section_cards=self._settings.SECTION_CARD_ROLLUP,
            )
            self.rebuilds += 1
            return await self._dag_store.set_dag(
                domain_id,
                base_id,
                branch,
                result,
                version=base.version,
                update_at=self._clock(),
                extra={"dagSchemaVersion": self._schema_version},
            )
