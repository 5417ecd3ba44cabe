from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class Card:
    """노드에 연결된 학습 카드 (연습 문제 포함)."""

    card_id: str
    node_id: str
    title: str = ""
    order: int = 0
    problems: List[Dict[str, Any]] = field(default_factory=list)
    content: str = ""

    @property
    def problem_count(self) -> int:
        return len(self.problems)
