"""
사용자 학습 상태 전이.

모든 상태 변경은 `advance(state, event)`를 거친다. 반환값은 새 상태이며
입력 상태는 바뀌지 않는다. 저장은 호출 측이 `state_patch`로 계산한 차이만
CAS로 기록한다.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Tuple, Union

from mindlearn.learn_core.domain.user_learn_state import LESSON_MODE_TODAY, UserLearnState


@dataclass(frozen=True)
class SectionSelected:
    index: int
    section_id: str
    total: int


@dataclass(frozen=True)
class SectionOrderSaved:
    order: Tuple[str, ...]


@dataclass(frozen=True)
class LessonCursorMoved:
    mode: str
    node_id: Optional[str]
    card_index: int


@dataclass(frozen=True)
class LessonFinished:
    pass


@dataclass(frozen=True)
class ReviewQueued:
    card_id: str


@dataclass(frozen=True)
class ReviewDequeued:
    card_id: str


@dataclass(frozen=True)
class DailyGoalSet:
    goal: int


@dataclass(frozen=True)
class BranchSelected:
    branch: str


LearnEvent = Union[
    SectionSelected,
    SectionOrderSaved,
    LessonCursorMoved,
    LessonFinished,
    ReviewQueued,
    ReviewDequeued,
    DailyGoalSet,
    BranchSelected,
]


def advance(state: UserLearnState, event: LearnEvent) -> UserLearnState:
    """
    @param {UserLearnState} state - 현재 상태.
    @param {LearnEvent} event - 적용할 이벤트.
    @returns {UserLearnState} 새 상태.
    @raises TypeError 알 수 없는 이벤트면 발생.
    """
    if isinstance(event, SectionSelected):
        selected = replace(
            state,
            current_section_index=event.index,
            current_section_id=event.section_id,
            learn_progress_position=max(0, event.index),
            learn_progress_total=event.total,
        )
        moved = (state.current_section_index, state.current_section_id) != (event.index, event.section_id)
        if moved and state.lesson_mode == LESSON_MODE_TODAY:
            # 오늘 학습 커서는 섹션 큐 안의 위치라 섹션이 바뀌면 처음부터 다시 센다
            return replace(selected, lesson_mode=None, lesson_node_id=None, lesson_card_index=0)
        return selected
    if isinstance(event, SectionOrderSaved):
        return replace(state, learn_section_order=list(event.order))
    if isinstance(event, LessonCursorMoved):
        return replace(
            state,
            lesson_mode=event.mode,
            lesson_node_id=event.node_id,
            lesson_card_index=max(0, event.card_index),
        )
    if isinstance(event, LessonFinished):
        return replace(state, lesson_mode=None, lesson_node_id=None, lesson_card_index=0)
    if isinstance(event, ReviewQueued):
        if event.card_id in state.review_queue:
            return state
        return replace(state, review_queue=[*state.review_queue, event.card_id])
    if isinstance(event, ReviewDequeued):
        return replace(state, review_queue=[card_id for card_id in state.review_queue if card_id != event.card_id])
    if isinstance(event, DailyGoalSet):
        return replace(state, daily_goal=event.goal)
    if isinstance(event, BranchSelected):
        # 브랜치마다 섹션 목록이 달라 커서를 초기화한다
        return replace(
            state,
            learn_branch=event.branch,
            current_section_index=None,
            current_section_id=None,
            lesson_mode=None,
            lesson_node_id=None,
            lesson_card_index=0,
        )
    raise TypeError(f"Unknown learn event: {event!r}")
