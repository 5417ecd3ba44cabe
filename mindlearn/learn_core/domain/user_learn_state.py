from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional

LESSON_MODE_TODAY = "today"
LESSON_MODE_NODE = "node"
LESSON_MODES = (LESSON_MODE_TODAY, LESSON_MODE_NODE)


@dataclass
class UserLearnState:
    """(domain_id, user_id)별 학습 진행 상태. revision은 CAS 비교에 사용한다."""

    current_section_index: Optional[int] = None
    current_section_id: Optional[str] = None
    learn_section_order: List[str] = field(default_factory=list)
    daily_goal: int = 0
    lesson_mode: Optional[str] = None
    lesson_node_id: Optional[str] = None
    lesson_card_index: int = 0
    review_queue: List[str] = field(default_factory=list)
    learn_progress_position: int = 0
    learn_progress_total: int = 0
    learn_branch: Optional[str] = None
    revision: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "UserLearnState":
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in raw.items() if key in known})


def state_patch(before: UserLearnState, after: UserLearnState) -> Dict[str, Any]:
    """
    두 상태의 차이를 얕은 병합용 패치로 변환합니다.

    @param {UserLearnState} before - 변경 전 상태.
    @param {UserLearnState} after - 변경 후 상태.
    @returns {Dict[str, Any]} 변경된 필드만 담은 패치 (revision 제외).
    """
    patch: Dict[str, Any] = {}
    for item in fields(UserLearnState):
        if item.name == "revision":
            continue
        value = getattr(after, item.name)
        if getattr(before, item.name) != value:
            patch[item.name] = value
    return patch
