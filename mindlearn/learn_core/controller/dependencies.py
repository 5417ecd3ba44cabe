"""
학습 API가 공유하는 저장소 인스턴스.

콘텐츠는 데모 데이터로 채워지며, DAG 저장소는 `LEARN_DAG_STORE` 설정에 따라
인메모리 또는 Django 캐시를 사용한다.
"""

from __future__ import annotations

from typing import Optional

from mindlearn.learn_core.common.keyed_lock import KeyedLock
from mindlearn.learn_core.config.learn_settings import learn_settings
from mindlearn.learn_core.repository.content_store import InMemoryContentStore
from mindlearn.learn_core.repository.dag_store import DAGStore, InMemoryDAGStore
from mindlearn.learn_core.repository.learn_record_store import InMemoryLearnRecordStore
from mindlearn.learn_core.repository.mock_data import seed_demo_content
from mindlearn.learn_core.repository.user_state_store import InMemoryUserStateStore
from mindlearn.learn_core.service.learn.dag_cache import DAGCacheService
from mindlearn.learn_core.service.learn.events import InMemoryEventBus
from mindlearn.learn_core.service.learn.progression import LearnProgressionService

content_store = InMemoryContentStore()
seed_demo_content(content_store)
state_store = InMemoryUserStateStore()
record_store = InMemoryLearnRecordStore()
event_bus = InMemoryEventBus()
# 요청마다 엔진을 새로 만들어도 같은 사용자와 같은 DAG 재빌드는 프로세스 안에서 직렬화된다
user_locks = KeyedLock()
dag_locks = KeyedLock()

_dag_store: Optional[DAGStore] = None


def get_dag_store() -> DAGStore:
    """
    @returns 설정에 맞는 DAG 저장소 (최초 호출 시 생성).
    """
    global _dag_store
    if _dag_store is None:
        if learn_settings.DAG_STORE == "cache":
            from mindlearn.learn_core.repository.cache_dag_store import DjangoCacheDAGStore

            _dag_store = DjangoCacheDAGStore(timeout=learn_settings.DAG_CACHE_TIMEOUT)
        else:
            _dag_store = InMemoryDAGStore()
    return _dag_store


def get_learn_service() -> LearnProgressionService:
    """
    요청마다 새 엔진을 만들되 저장소와 키별 락은 프로세스 전역 인스턴스를 공유한다.

    @returns 공유 저장소를 사용하는 학습 진행 엔진.
    """
    return LearnProgressionService(
        content_store,
        state_store,
        record_store,
        dag_cache=DAGCacheService(get_dag_store(), content_store, settings=learn_settings, locks=dag_locks),
        publisher=event_bus,
        settings=learn_settings,
        user_locks=user_locks,
    )
