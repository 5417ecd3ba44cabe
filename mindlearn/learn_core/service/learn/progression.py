from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, TypeVar

from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from mindlearn.learn_core.common.errors import NotFoundError, StateConflictError, ValidationError
from mindlearn.learn_core.common.keyed_lock import KeyedLock
from mindlearn.learn_core.config.learn_settings import LearnSettings, learn_settings
from mindlearn.learn_core.domain.card import Card
from mindlearn.learn_core.domain.content_base import MAIN_BRANCH, ContentBase
from mindlearn.learn_core.domain.dag_doc import DAGDoc
from mindlearn.learn_core.domain.dag_node import DAGNode
from mindlearn.learn_core.domain.learn_result import LearnResult
from mindlearn.learn_core.domain.user_learn_state import (
    LESSON_MODE_NODE,
    LESSON_MODE_TODAY,
    LESSON_MODES,
    UserLearnState,
    state_patch,
)
from mindlearn.learn_core.repository.content_store import ContentStore, new_object_id
from mindlearn.learn_core.repository.dag_store import InMemoryDAGStore
from mindlearn.learn_core.repository.learn_record_store import LearnRecordStore
from mindlearn.learn_core.repository.user_state_store import UserStateStore
from mindlearn.learn_core.service.analytics.learning_stats import LearningStatsService, utc_date_key
from mindlearn.learn_core.service.learn.dag_builder import Translate, identity_translate
from mindlearn.learn_core.service.learn.dag_cache import DAGCacheService
from mindlearn.learn_core.service.learn.events import RESULT_ADDED, InMemoryEventBus, ResultEventPublisher
from mindlearn.learn_core.service.learn.schemas import PassSubmission, SectionOrderUpdate
from mindlearn.learn_core.service.learn.section_view import (
    FlatCard,
    annotate_nodes,
    apply_user_section_order,
    collect_subtree,
    find_node,
    first_open_card,
    flatten_cards,
    section_walk,
)
from mindlearn.learn_core.service.learn.state_machine import (
    BranchSelected,
    DailyGoalSet,
    LearnEvent,
    LessonCursorMoved,
    LessonFinished,
    ReviewDequeued,
    ReviewQueued,
    SectionOrderSaved,
    SectionSelected,
    advance,
)

logger = logging.getLogger(__name__)

CARD_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")
SCORE_PER_ANSWER = 5

NEXT_LESSON = "lesson"
NEXT_RESULT = "lesson_result"
NEXT_LEARN = "learn"
NEXT_NODE_RESULT = "node_result"

T = TypeVar("T")


@dataclass
class LearnContext:
    """한 요청 동안 사용하는 베이스/DAG/사용자 상태 묶음."""

    base: ContentBase
    branch: str
    dag_doc: DAGDoc
    sections: List[DAGNode]
    state: UserLearnState


@dataclass
class LessonTarget:
    """이번에 풀 카드와 그 카드를 고른 커서 정보."""

    card: Card
    node_id: Optional[str]
    base_id: str
    branch: str
    mode: Optional[str] = None
    lesson_node_id: Optional[str] = None
    position: int = 0
    total: int = 1
    from_review: bool = False


def validate_card_id(card_id: Any) -> str:
    """
    @param {Any} card_id - 요청으로 받은 카드 ID.
    @returns {str} 검증된 카드 ID.
    @raises ValidationError 24자리 16진수가 아니면 발생.
    """
    if not isinstance(card_id, str) or not CARD_ID_PATTERN.match(card_id):
        raise ValidationError("Invalid card ID format")
    return card_id


def card_payload(card: Card) -> Dict[str, Any]:
    """
    @param {Card} card - 응답에 담을 카드.
    @returns {Dict[str, Any]} 카드 본문과 문제 목록을 담은 응답 딕셔너리.
    """
    return {
        "card_id": card.card_id,
        "node_id": card.node_id,
        "title": card.title,
        "order": card.order,
        "content": card.content,
        "problem_count": card.problem_count,
        "problems": list(card.problems),
    }


def problem_stats(card: Card, answer_history: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    카드 문제별 시도 횟수, 소요 시간, 정답 여부를 집계합니다.

    @param {Card} card - 결과의 카드.
    @param {List[Dict[str, Any]]} answer_history - 저장된 응답 기록.
    @returns {List[Dict[str, Any]]} 문제 순서의 통계 목록.
    """
    stats: List[Dict[str, Any]] = []
    for index, problem in enumerate(card.problems):
        problem_id = str(problem.get("pid") or problem.get("id") or index)
        answers = [answer for answer in answer_history if str(answer.get("problemId")) == problem_id]
        stats.append(
            {
                "problem_id": problem_id,
                "attempts": max((answer.get("attempts") or 1 for answer in answers), default=1),
                "time_spent": sum(answer.get("timeSpent") or 0 for answer in answers),
                "correct": any(answer.get("correct") for answer in answers),
            }
        )
    return stats


def result_summary(result: LearnResult) -> Dict[str, Any]:
    """
    @param {LearnResult} result - 저장된 학습 결과.
    @returns {Dict[str, Any]} 점수와 소요 시간 위주의 결과 요약.
    """
    return {
        "result_id": result.result_id,
        "card_id": result.card_id,
        "node_id": result.node_id,
        "score": result.score,
        "total_time": result.total_time,
        "created_at": result.created_at.isoformat(),
    }


def _index_of(sections: List[DAGNode], section_id: str) -> int:
    for index, section in enumerate(sections):
        if section.node_id == section_id:
            return index
    return -1


class LearnProgressionService:
    """섹션 선택, 레슨 카드 선택, 통과 처리를 담당하는 학습 진행 엔진."""

    def __init__(
        self,
        content_store: ContentStore,
        state_store: UserStateStore,
        record_store: LearnRecordStore,
        dag_cache: Optional[DAGCacheService] = None,
        publisher: Optional[ResultEventPublisher] = None,
        settings: Optional[LearnSettings] = None,
        translate: Optional[Translate] = None,
        clock: Optional[Callable[[], datetime]] = None,
        user_locks: Optional[KeyedLock] = None,
    ) -> None:
        """
        @param {ContentStore} content_store - 콘텐츠 베이스/카드 저장소.
        @param {UserStateStore} state_store - 사용자 학습 상태 저장소.
        @param {LearnRecordStore} record_store - 통과/결과/통계 저장소.
        @param {Optional[DAGCacheService]} dag_cache - DAG 캐시 서비스 (기본 인메모리).
        @param {Optional[ResultEventPublisher]} publisher - 결과 이벤트 발행기.
        @param {Optional[LearnSettings]} settings - 엔진 설정.
        @param {Optional[Translate]} translate - 제목 대체 문구 번역 함수.
        @param {Optional[Callable[[], datetime]]} clock - 현재 시각 함수.
        @param {Optional[KeyedLock]} user_locks - 사용자별 직렬화 락. 여러 엔진이 공유하면 요청 사이에서도 직렬화된다.
        @returns {None} 엔진을 초기화합니다.
        """
        self._settings = settings or learn_settings
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._content_store = content_store
        self._state_store = state_store
        self._record_store = record_store
        self._dag_cache = dag_cache or DAGCacheService(
            InMemoryDAGStore(),
            content_store,
            settings=self._settings,
            clock=self._clock,
        )
        self._publisher = publisher or InMemoryEventBus()
        self._translate = translate or identity_translate
        self._stats = LearningStatsService(record_store, clock=self._clock)
        self._user_locks = user_locks or KeyedLock()

    # ------------------------------------------------------------------
    # 상태 저장
    # ------------------------------------------------------------------
    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._settings.STATE_MAX_RETRIES),
            wait=wait_exponential(
                multiplier=self._settings.STATE_RETRY_MIN_WAIT,
                min=self._settings.STATE_RETRY_MIN_WAIT,
                max=self._settings.STATE_RETRY_MAX_WAIT,
            ),
            retry=retry_if_exception_type(StateConflictError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def _retry_on_conflict(self, operation: Callable[[], Awaitable[T]]) -> T:
        result = None
        async for attempt in self._retrying():
            with attempt:
                result = await operation()
        return result

    async def _serialized(self, domain_id: str, user_id: str, operation: Callable[[], Awaitable[T]]) -> T:
        async with self._user_locks.hold((domain_id, user_id)):
            return await self._retry_on_conflict(operation)

    async def _commit(self, domain_id: str, user_id: str, state: UserLearnState, *events: LearnEvent) -> UserLearnState:
        updated = state
        for event in events:
            updated = advance(updated, event)
        patch = state_patch(state, updated)
        if not patch:
            return state
        return await self._state_store.set_user_state(domain_id, user_id, patch, expected_revision=state.revision)

    # ------------------------------------------------------------------
    # 컨텍스트 / 섹션 선택
    # ------------------------------------------------------------------
    async def _load_base(self, domain_id: str) -> ContentBase:
        base = await self._content_store.get_base_by_domain(domain_id)
        if base is None:
            raise NotFoundError("Base not found for this domain")
        return base

    def _active_branch(self, base: ContentBase, state: UserLearnState) -> str:
        branch = state.learn_branch or self._settings.DEFAULT_BRANCH
        return branch if branch in base.available_branches() else MAIN_BRANCH

    async def _load_context(self, domain_id: str, user_id: str) -> LearnContext:
        base = await self._load_base(domain_id)
        state = await self._state_store.get_user_state(domain_id, user_id)
        branch = self._active_branch(base, state)
        dag_doc = await self._dag_cache.get_dag(base, branch, translate=self._translate)
        return LearnContext(
            base=base,
            branch=branch,
            dag_doc=dag_doc,
            sections=apply_user_section_order(dag_doc.sections, state.learn_section_order),
            state=state,
        )

    def _select_section(
        self,
        context: LearnContext,
        section_index: Optional[int] = None,
        section_id: Optional[str] = None,
    ) -> Tuple[Optional[int], bool]:
        """
        명시 인덱스 > 명시 ID > 저장된 인덱스 > 저장된 ID > 0 순으로 섹션을 고릅니다.

        @param {LearnContext} context - 요청 컨텍스트.
        @param {Optional[int]} section_index - 요청한 섹션 인덱스.
        @param {Optional[str]} section_id - 요청한 섹션 ID.
        @returns {Tuple[Optional[int], bool]} (섹션 인덱스 또는 None, 저장 필요 여부).
        """
        sections = context.sections
        if section_index is not None:
            if not 0 <= section_index < len(sections):
                raise ValidationError(f"Section index out of range: {section_index}")
            return section_index, True
        if section_id:
            index = _index_of(sections, section_id)
            if index < 0:
                raise NotFoundError("Section not found")
            return index, True
        state = context.state
        if state.current_section_index is not None and 0 <= state.current_section_index < len(sections):
            return state.current_section_index, False
        if state.current_section_id:
            index = _index_of(sections, state.current_section_id)
            if index >= 0:
                return index, False
        if sections:
            return 0, True
        return None, False

    async def _resolve_section(
        self,
        domain_id: str,
        user_id: str,
        context: LearnContext,
        section_index: Optional[int] = None,
        section_id: Optional[str] = None,
    ) -> Optional[int]:
        index, persist = self._select_section(context, section_index, section_id)
        if index is not None and persist:
            context.state = await self._commit(
                domain_id,
                user_id,
                context.state,
                SectionSelected(index, context.sections[index].node_id, len(context.sections)),
            )
        return index

    async def _load_selected(
        self,
        domain_id: str,
        user_id: str,
        section_index: Optional[int] = None,
        section_id: Optional[str] = None,
    ) -> Tuple[LearnContext, Optional[int]]:
        """
        컨텍스트를 읽고 섹션을 고릅니다. 명시 선택과 첫 기본값은 상태에 저장됩니다.

        @param {str} domain_id - 도메인 ID.
        @param {str} user_id - 사용자 ID.
        @param {Optional[int]} section_index - 요청한 섹션 인덱스.
        @param {Optional[str]} section_id - 요청한 섹션 ID.
        @returns {Tuple[LearnContext, Optional[int]]} 컨텍스트와 선택된 섹션 인덱스.
        """

        async def operation() -> Tuple[LearnContext, Optional[int]]:
            context = await self._load_context(domain_id, user_id)
            index = await self._resolve_section(domain_id, user_id, context, section_index, section_id)
            return context, index

        return await self._serialized(domain_id, user_id, operation)

    def _section_nodes(self, context: LearnContext, index: int) -> List[DAGNode]:
        return section_walk(
            context.sections[index],
            context.dag_doc.dag,
            include_section_cards=not self._settings.SECTION_CARD_ROLLUP,
        )

    def _node_walk(self, context: LearnContext, node: DAGNode) -> List[DAGNode]:
        if _index_of(context.sections, node.node_id) >= 0:
            return section_walk(node, context.dag_doc.dag, include_section_cards=not self._settings.SECTION_CARD_ROLLUP)
        return [node, *collect_subtree(node.node_id, context.dag_doc.dag)]

    async def _fetch_card(self, domain_id: str, card_id: str) -> Card:
        card = await self._content_store.get_card_by_id(domain_id, card_id)
        if card is None:
            raise NotFoundError("Card not found")
        return card

    # ------------------------------------------------------------------
    # 화면 데이터
    # ------------------------------------------------------------------
    async def get_learn_home(
        self,
        domain_id: str,
        user_id: str,
        section_index: Optional[int] = None,
        section_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        현재 섹션의 하위 DAG와 카드별 통과/잠금 상태, 다음 카드, 학습 통계를 반환합니다.

        @param {str} domain_id - 도메인 ID.
        @param {str} user_id - 사용자 ID.
        @param {Optional[int]} section_index - 선택할 섹션 인덱스.
        @param {Optional[str]} section_id - 선택할 섹션 ID.
        @returns {Dict[str, Any]} 학습 홈 페이로드.
        """
        context, index = await self._load_selected(domain_id, user_id, section_index, section_id)
        passed = await self._record_store.get_passed_card_ids(domain_id, user_id)
        nodes = self._section_nodes(context, index) if index is not None else []
        flat = flatten_cards(nodes)
        next_card = first_open_card(flat, passed)
        section = context.sections[index] if index is not None else None
        stats = await self._stats.summarize(domain_id, user_id, daily_goal=context.state.daily_goal)
        return {
            "domain_id": domain_id,
            "base_id": context.base.base_id,
            "branch": context.branch,
            "sections": [
                {"node_id": item.node_id, "title": item.title, "order": item.order} for item in context.sections
            ],
            "current_section_index": index,
            "current_section_id": section.node_id if section else None,
            "current_section_title": section.title if section else None,
            "dag": annotate_nodes(nodes, passed),
            "current_progress": sum(1 for item in flat if item.card_id in passed),
            "total_cards": len(flat),
            "next_card": {"node_id": next_card.node_id, "card_id": next_card.card_id} if next_card else None,
            "learn_progress_position": context.state.learn_progress_position,
            "learn_progress_total": context.state.learn_progress_total,
            "daily_goal": stats["daily_goal"],
            "today_completed": stats["today_completed"],
            "consecutive_days": stats["consecutive_days"],
            "total_checkin_days": stats["total_checkin_days"],
            "goal_met": stats["goal_met"],
        }

    async def get_sections(self, domain_id: str, user_id: str) -> Dict[str, Any]:
        """
        @param {str} domain_id - 도메인 ID.
        @param {str} user_id - 사용자 ID.
        @returns {Dict[str, Any]} 사용자 순서의 섹션 요약, 전체 DAG, 현재 섹션.
        """
        context, index = await self._load_selected(domain_id, user_id)
        passed = await self._record_store.get_passed_card_ids(domain_id, user_id)
        summaries = []
        for position, section in enumerate(context.sections):
            flat = flatten_cards(self._section_nodes(context, position))
            summaries.append(
                {
                    "node_id": section.node_id,
                    "title": section.title,
                    "order": section.order,
                    "total_cards": len(flat),
                    "passed_cards": sum(1 for item in flat if item.card_id in passed),
                }
            )
        return {
            "domain_id": domain_id,
            "branch": context.branch,
            "sections": summaries,
            "dag": [
                {
                    "node_id": node.node_id,
                    "title": node.title,
                    "require_nids": list(node.require_nids),
                    "order": node.order,
                    "card_count": len(node.cards),
                }
                for node in context.dag_doc.dag
            ],
            "section_order": list(context.state.learn_section_order),
            "current_section_index": index,
            "current_section_id": context.sections[index].node_id if index is not None else None,
        }

    async def get_stats(self, domain_id: str, user_id: str) -> Dict[str, object]:
        """
        연속 학습일과 오늘 목표 달성 여부를 요약합니다.

        @param {str} domain_id - 도메인 ID.
        @param {str} user_id - 사용자 ID.
        @returns {Dict[str, object]} 일일 목표를 포함한 학습 통계.
        """
        state = await self._state_store.get_user_state(domain_id, user_id)
        return await self._stats.summarize(domain_id, user_id, daily_goal=state.daily_goal)

    # ------------------------------------------------------------------
    # 설정 변경
    # ------------------------------------------------------------------
    async def save_section_order(self, domain_id: str, user_id: str, update: SectionOrderUpdate) -> Dict[str, Any]:
        """
        섹션 순서를 그대로 저장하고, 인덱스가 주어지면 재정렬된 목록 기준으로 현재 섹션도 바꿉니다.

        @param {str} domain_id - 도메인 ID.
        @param {str} user_id - 사용자 ID.
        @param {SectionOrderUpdate} update - 섹션 순서와 선택 인덱스.
        @returns {Dict[str, Any]} 저장된 순서와 현재 섹션.
        """

        async def operation() -> UserLearnState:
            context = await self._load_context(domain_id, user_id)
            ordered = apply_user_section_order(context.dag_doc.sections, update.section_order)
            events: List[LearnEvent] = [SectionOrderSaved(tuple(update.section_order))]
            if update.current_section_index is not None:
                if update.current_section_index >= len(ordered):
                    raise ValidationError(f"Section index out of range: {update.current_section_index}")
                index = update.current_section_index
                events.append(SectionSelected(index, ordered[index].node_id, len(ordered)))
            return await self._commit(domain_id, user_id, context.state, *events)

        state = await self._serialized(domain_id, user_id, operation)
        return {
            "success": True,
            "section_order": list(state.learn_section_order),
            "current_section_index": state.current_section_index,
            "current_section_id": state.current_section_id,
        }

    async def set_learn_branch(self, domain_id: str, user_id: str, branch: str) -> Dict[str, Any]:
        """
        학습 브랜치를 바꾸고 섹션과 레슨 커서를 초기화합니다.

        @param {str} domain_id - 도메인 ID.
        @param {str} user_id - 사용자 ID.
        @param {str} branch - 선택할 브랜치 이름.
        @returns {Dict[str, Any]} 선택된 브랜치와 사용 가능한 브랜치 목록.
        @raises ValidationError 베이스에 없는 브랜치면 발생.
        """
        base = await self._load_base(domain_id)
        if branch not in base.available_branches():
            raise ValidationError("Invalid branch")

        async def operation() -> UserLearnState:
            state = await self._state_store.get_user_state(domain_id, user_id)
            return await self._commit(domain_id, user_id, state, BranchSelected(branch))

        state = await self._serialized(domain_id, user_id, operation)
        return {"success": True, "branch": state.learn_branch, "branches": base.available_branches()}

    async def set_daily_goal(self, domain_id: str, user_id: str, goal: int) -> Dict[str, Any]:
        """
        @param {str} domain_id - 도메인 ID.
        @param {str} user_id - 사용자 ID.
        @param {int} goal - 하루 목표 카드 수.
        @returns {Dict[str, Any]} 저장된 일일 목표.
        @raises ValidationError 0 이상 상한 이하의 정수가 아니면 발생.
        """
        limit = self._settings.DAILY_GOAL_MAX
        if isinstance(goal, bool) or not isinstance(goal, int) or not 0 <= goal <= limit:
            raise ValidationError(f"Daily goal must be an integer between 0 and {limit}")

        async def operation() -> UserLearnState:
            state = await self._state_store.get_user_state(domain_id, user_id)
            return await self._commit(domain_id, user_id, state, DailyGoalSet(goal))

        state = await self._serialized(domain_id, user_id, operation)
        return {"success": True, "daily_goal": state.daily_goal}

    async def mark_no_impression(self, domain_id: str, user_id: str, card_id: str) -> Dict[str, Any]:
        """
        기억나지 않는 카드를 복습 대기열 뒤에 추가합니다 (이미 있으면 그대로).

        @param {str} domain_id - 도메인 ID.
        @param {str} user_id - 사용자 ID.
        @param {str} card_id - 카드 ID.
        @returns {Dict[str, Any]} 갱신된 복습 대기열.
        """
        validate_card_id(card_id)
        await self._fetch_card(domain_id, card_id)

        async def operation() -> UserLearnState:
            state = await self._state_store.get_user_state(domain_id, user_id)
            return await self._commit(domain_id, user_id, state, ReviewQueued(card_id))

        state = await self._serialized(domain_id, user_id, operation)
        return {"success": True, "review_queue": list(state.review_queue)}

    # ------------------------------------------------------------------
    # 레슨
    # ------------------------------------------------------------------
    async def _alone_target(self, domain_id: str, user_id: str, card_id: str) -> LessonTarget:
        validate_card_id(card_id)
        card = await self._fetch_card(domain_id, card_id)
        if not card.problems:
            raise NotFoundError("Card has no practice questions")
        base = await self._load_base(domain_id)
        state = await self._state_store.get_user_state(domain_id, user_id)
        branch = self._active_branch(base, state)
        if base.find_node(card.node_id, branch) is None:
            raise NotFoundError("Node not found")
        return LessonTarget(card=card, node_id=card.node_id, base_id=base.base_id, branch=branch)

    async def _resolve_target(
        self,
        domain_id: str,
        user_id: str,
        mode: Optional[str],
        node_id: Optional[str],
    ) -> Optional[LessonTarget]:
        context = await self._load_context(domain_id, user_id)
        if mode == LESSON_MODE_NODE:
            return await self._node_target(domain_id, user_id, context, node_id)
        index = await self._resolve_section(domain_id, user_id, context)
        if index is None:
            return None
        passed = await self._record_store.get_passed_card_ids(domain_id, user_id)
        flat = flatten_cards(self._section_nodes(context, index))
        if mode == LESSON_MODE_TODAY:
            return await self._today_target(domain_id, user_id, context, flat, passed)
        for position, item in enumerate(flat):
            if item.practicable and item.card_id not in passed:
                return LessonTarget(
                    card=await self._fetch_card(domain_id, item.card_id),
                    node_id=item.node_id,
                    base_id=context.base.base_id,
                    branch=context.branch,
                    position=position,
                    total=len(flat),
                )
        return None

    async def _today_target(
        self,
        domain_id: str,
        user_id: str,
        context: LearnContext,
        flat: List[FlatCard],
        passed: Set[str],
    ) -> Optional[LessonTarget]:
        queue = [item for item in flat if item.practicable]
        if not queue:
            return None
        state = context.state
        if state.lesson_mode == LESSON_MODE_TODAY:
            cursor = state.lesson_card_index
        else:
            cursor = next((i for i, item in enumerate(queue) if item.card_id not in passed), 0)
        if cursor >= len(queue):
            return None
        context.state = await self._commit(
            domain_id, user_id, state, LessonCursorMoved(LESSON_MODE_TODAY, None, cursor)
        )
        item = queue[cursor]
        return LessonTarget(
            card=await self._fetch_card(domain_id, item.card_id),
            node_id=item.node_id,
            base_id=context.base.base_id,
            branch=context.branch,
            mode=LESSON_MODE_TODAY,
            position=cursor,
            total=len(queue),
        )

    async def _node_target(
        self,
        domain_id: str,
        user_id: str,
        context: LearnContext,
        node_id: Optional[str],
    ) -> Optional[LessonTarget]:
        state = context.state
        continuing = state.lesson_mode == LESSON_MODE_NODE and (not node_id or node_id == state.lesson_node_id)
        target_node_id = node_id or (state.lesson_node_id if continuing else None)
        if not target_node_id:
            raise ValidationError("nodeId is required for node lessons")
        node = find_node(target_node_id, context.sections, context.dag_doc.dag)
        if node is None:
            raise NotFoundError("Node not found")
        queue = [item for item in flatten_cards(self._node_walk(context, node)) if item.practicable]
        cursor = state.lesson_card_index if continuing else 0
        if cursor < len(queue):
            item = queue[cursor]
            card = await self._fetch_card(domain_id, item.card_id)
            card_node_id, from_review = item.node_id, False
        elif state.review_queue:
            card = await self._fetch_card(domain_id, state.review_queue[0])
            card_node_id, from_review = card.node_id, True
        else:
            return None
        context.state = await self._commit(
            domain_id, user_id, state, LessonCursorMoved(LESSON_MODE_NODE, node.node_id, cursor)
        )
        return LessonTarget(
            card=card,
            node_id=card_node_id,
            base_id=context.base.base_id,
            branch=context.branch,
            mode=LESSON_MODE_NODE,
            lesson_node_id=node.node_id,
            position=cursor,
            total=len(queue),
            from_review=from_review,
        )

    async def _target_for(
        self,
        domain_id: str,
        user_id: str,
        card_id: Optional[str],
        mode: Optional[str],
        node_id: Optional[str],
    ) -> LessonTarget:
        if mode is not None and mode not in LESSON_MODES:
            raise ValidationError(f"Invalid lesson mode: {mode}")
        if card_id is not None:
            validate_card_id(card_id)
        if card_id is not None and mode is None:
            return await self._alone_target(domain_id, user_id, card_id)
        target = await self._retry_on_conflict(lambda: self._resolve_target(domain_id, user_id, mode, node_id))
        if target is None:
            raise NotFoundError("No available card to practice")
        if card_id is not None and target.card.card_id != card_id:
            raise ValidationError("Card is not the current lesson card")
        return target

    async def get_lesson(
        self,
        domain_id: str,
        user_id: str,
        card_id: Optional[str] = None,
        mode: Optional[str] = None,
        node_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        풀 카드를 고릅니다. card_id만 주면 단독 연습, mode가 없으면 현재 섹션의
        첫 미통과 카드, today/node 모드는 저장된 커서를 따릅니다.

        @param {str} domain_id - 도메인 ID.
        @param {str} user_id - 사용자 ID.
        @param {Optional[str]} card_id - 단독 연습할 카드 ID.
        @param {Optional[str]} mode - 레슨 모드 (today | node).
        @param {Optional[str]} node_id - node 모드의 기준 노드 ID.
        @returns {Dict[str, Any]} 카드, 노드, 노드 카드 목록, 커서 위치.
        """
        async with self._user_locks.hold((domain_id, user_id)):
            target = await self._target_for(domain_id, user_id, card_id, mode, node_id)
        base = await self._load_base(domain_id)
        node = base.find_node(target.node_id, target.branch) if target.node_id else None
        node_cards = (
            await self._content_store.get_cards_by_node_id(domain_id, target.base_id, target.node_id)
            if target.node_id
            else []
        )
        current_index = next(
            (index for index, card in enumerate(node_cards) if card.card_id == target.card.card_id),
            0,
        )
        return {
            "card": card_payload(target.card),
            "node_id": target.node_id,
            "node_title": node.text if node else None,
            "node_cards": [{"card_id": card.card_id, "title": card.title} for card in node_cards],
            "current_index": current_index,
            "mode": target.mode,
            "lesson_node_id": target.lesson_node_id,
            "position": target.position,
            "total": target.total,
            "from_review": target.from_review,
        }

    # ------------------------------------------------------------------
    # 통과 처리
    # ------------------------------------------------------------------
    async def post_pass(
        self,
        domain_id: str,
        user_id: str,
        submission: PassSubmission,
        card_id: Optional[str] = None,
        mode: Optional[str] = None,
        node_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        카드 통과를 기록하고 커서를 다음 위치로 옮깁니다.

        통과 기록 upsert, 결과 추가, 일일 통계 증가, `learn_result/add` 발행을
        순서대로 수행한 뒤 모드별로 다음 행선지를 정합니다.

        @param {str} domain_id - 도메인 ID.
        @param {str} user_id - 사용자 ID.
        @param {PassSubmission} submission - 응답 기록과 총 소요 시간.
        @param {Optional[str]} card_id - 통과한 카드 ID.
        @param {Optional[str]} mode - 레슨 모드 (today | node).
        @param {Optional[str]} node_id - node 모드의 기준 노드 ID.
        @returns {Dict[str, Any]} 결과 ID, 점수, 다음 행선지.
        """
        async with self._user_locks.hold((domain_id, user_id)):
            target = await self._target_for(domain_id, user_id, card_id, mode, node_id)
            result = await self._record_pass(domain_id, user_id, target, submission)
            outcome = await self._retry_on_conflict(lambda: self._advance_after_pass(domain_id, user_id, target))
        logger.info(
            "Card passed domain=%s user=%s card=%s mode=%s next=%s",
            domain_id,
            user_id,
            target.card.card_id,
            target.mode,
            outcome["next"],
        )
        return {
            "success": True,
            "result_id": result.result_id,
            "card_id": result.card_id,
            "node_id": result.node_id,
            "score": result.score,
            **outcome,
        }

    async def _record_pass(
        self,
        domain_id: str,
        user_id: str,
        target: LessonTarget,
        submission: PassSubmission,
    ) -> LearnResult:
        now = self._clock()
        card = target.card
        await self._record_store.set_card_passed(domain_id, user_id, card.card_id, target.node_id, passed_at=now)
        history = [answer.model_dump(by_alias=True, exclude_none=True) for answer in submission.answer_history]
        result = LearnResult(
            result_id=new_object_id(),
            domain_id=domain_id,
            user_id=user_id,
            card_id=card.card_id,
            node_id=target.node_id,
            answer_history=history,
            total_time=submission.total_time,
            score=len(history) * SCORE_PER_ANSWER,
            created_at=now,
        )
        await self._record_store.add_result(result)
        increments: Dict[str, float] = {
            "nodes": 1 if target.node_id else 0,
            "cards": 1,
            "problems": submission.distinct_problem_count(),
            "practices": 1,
        }
        if submission.total_time > 0:
            increments["total_time"] = submission.total_time
        await self._record_store.inc_consumption_stats(domain_id, user_id, utc_date_key(now), increments, at=now)
        self._publisher.publish(RESULT_ADDED, domain_id)
        return result

    async def _advance_after_pass(self, domain_id: str, user_id: str, target: LessonTarget) -> Dict[str, Any]:
        context = await self._load_context(domain_id, user_id)
        if target.mode == LESSON_MODE_TODAY:
            cursor = target.position + 1
            if cursor < target.total:
                state = await self._commit(
                    domain_id, user_id, context.state, LessonCursorMoved(LESSON_MODE_TODAY, None, cursor)
                )
                return self._outcome(NEXT_LESSON, state)
            state = await self._commit(domain_id, user_id, context.state, LessonFinished())
            return self._outcome(NEXT_RESULT, state)
        if target.mode == LESSON_MODE_NODE:
            events: List[LearnEvent] = []
            if target.from_review:
                events.append(ReviewDequeued(target.card.card_id))
                cursor = target.position
            else:
                cursor = target.position + 1
            events.append(LessonCursorMoved(LESSON_MODE_NODE, target.lesson_node_id, cursor))
            preview = context.state
            for event in events:
                preview = advance(preview, event)
            if cursor < target.total or preview.review_queue:
                state = await self._commit(domain_id, user_id, context.state, *events)
                return self._outcome(NEXT_LESSON, state, node_id=target.lesson_node_id)
            state = await self._commit(domain_id, user_id, context.state, *events, LessonFinished())
            return self._outcome(NEXT_NODE_RESULT, state, node_id=target.lesson_node_id)
        return await self._advance_section(domain_id, user_id, context)

    async def _advance_section(self, domain_id: str, user_id: str, context: LearnContext) -> Dict[str, Any]:
        index, _ = self._select_section(context)
        if index is None:
            return self._outcome(NEXT_RESULT, context.state)
        passed = await self._record_store.get_passed_card_ids(domain_id, user_id)
        flat = flatten_cards(self._section_nodes(context, index))
        has_next = index + 1 < len(context.sections)
        has_practice = any(item.practicable for item in flat)
        # 0번 섹션은 연습할 카드가 있었을 때만 넘어간다
        if first_open_card(flat, passed) is None and has_next and (index > 0 or has_practice):
            next_index = index + 1
            state = await self._commit(
                domain_id,
                user_id,
                context.state,
                SectionSelected(next_index, context.sections[next_index].node_id, len(context.sections)),
            )
            logger.info("Section advanced domain=%s user=%s index=%s->%s", domain_id, user_id, index, next_index)
            return self._outcome(NEXT_LEARN, state, section_advanced=True)
        return self._outcome(NEXT_RESULT, context.state)

    @staticmethod
    def _outcome(
        next_step: str,
        state: UserLearnState,
        node_id: Optional[str] = None,
        section_advanced: bool = False,
    ) -> Dict[str, Any]:
        return {
            "next": next_step,
            "next_node_id": node_id,
            "section_advanced": section_advanced,
            "current_section_index": state.current_section_index,
            "current_section_id": state.current_section_id,
        }

    # ------------------------------------------------------------------
    # 결과
    # ------------------------------------------------------------------
    async def get_result(self, domain_id: str, user_id: str, result_id: str) -> Dict[str, Any]:
        """
        @param {str} domain_id - 도메인 ID.
        @param {str} user_id - 사용자 ID.
        @param {str} result_id - 결과 ID.
        @returns {Dict[str, Any]} 카드, 노드, 문제별 통계를 포함한 결과.
        """
        result = await self._record_store.get_result_by_id(domain_id, user_id, result_id)
        if result is None:
            raise NotFoundError("Result not found")
        card = await self._fetch_card(domain_id, result.card_id)
        base = await self._load_base(domain_id)
        state = await self._state_store.get_user_state(domain_id, user_id)
        node = base.find_node(result.node_id, self._active_branch(base, state)) if result.node_id else None
        if node is None:
            raise NotFoundError("Node not found")
        return {
            **result_summary(result),
            "card": card_payload(card),
            "node_title": node.text,
            "answer_count": len(result.answer_history),
            "problem_stats": problem_stats(card, result.answer_history),
        }

    async def get_node_result(self, domain_id: str, user_id: str, node_id: str) -> Dict[str, Any]:
        """
        @param {str} domain_id - 도메인 ID.
        @param {str} user_id - 사용자 ID.
        @param {str} node_id - 기준 노드 ID.
        @returns {Dict[str, Any]} 노드 하위 카드의 통과 수, 연습 횟수, 총 시간, 결과 목록.
        """
        context = await self._load_context(domain_id, user_id)
        node = find_node(node_id, context.sections, context.dag_doc.dag)
        if node is None:
            raise NotFoundError("Node not found")
        card_ids = list(dict.fromkeys(item.card_id for item in flatten_cards(self._node_walk(context, node))))
        wanted = set(card_ids)
        passed = await self._record_store.get_passed_card_ids(domain_id, user_id)
        results = [
            result for result in await self._record_store.get_results(domain_id, user_id) if result.card_id in wanted
        ]
        return {
            "node_id": node.node_id,
            "title": node.title,
            "total_cards": len(card_ids),
            "passed_cards": sum(1 for card_id in card_ids if card_id in passed),
            "practices": len(results),
            "total_time": sum(result.total_time for result in results),
            "results": [result_summary(result) for result in results],
        }
