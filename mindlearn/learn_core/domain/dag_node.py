from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional


@dataclass
class CardRef:
    """DAG 캐시에 저장되는 카드 요약."""

    card_id: str
    title: str
    order: int = 0
    problem_count: Optional[int] = None
    problems: Optional[List[Dict[str, Any]]] = None

    def to_dict(self) -> Dict[str, Any]:
        """
        @returns 캐시 저장용 JSON 딕셔너리.
        """
        payload: Dict[str, Any] = {"cardId": self.card_id, "title": self.title, "order": self.order}
        if self.problem_count is not None:
            payload["problemCount"] = self.problem_count
        if self.problems is not None:
            payload["problems"] = self.problems
        return payload

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "CardRef":
        """
        @param raw 캐시에서 읽은 카드 딕셔너리.
        @returns CardRef 객체 (구 스키마는 problem_count가 None).
        """
        return cls(
            card_id=str(raw["cardId"]),
            title=raw.get("title") or "",
            order=raw.get("order") or 0,
            problem_count=raw.get("problemCount"),
            problems=raw.get("problems"),
        )

    @property
    def has_problem_metadata(self) -> bool:
        return self.problem_count is not None or self.problems is not None

    @property
    def practicable(self) -> bool:
        if self.problem_count is not None:
            return self.problem_count > 0
        return bool(self.problems)


@dataclass
class DAGNode:
    """학습 DAG 노드. require_nids의 마지막 원소가 직계 부모이다."""

    node_id: str
    title: str
    require_nids: List[str] = field(default_factory=list)
    cards: List[CardRef] = field(default_factory=list)
    order: int = 0

    @property
    def parent_id(self) -> Optional[str]:
        return self.require_nids[-1] if self.require_nids else None

    def with_order(self, order: int) -> "DAGNode":
        """
        @param order 새로 부여할 순서 값.
        @returns order만 바뀐 복사본.
        """
        return replace(self, require_nids=list(self.require_nids), cards=list(self.cards), order=order)

    def to_dict(self) -> Dict[str, Any]:
        """
        @returns 캐시 저장용 JSON 딕셔너리.
        """
        return {
            "_id": self.node_id,
            "title": self.title,
            "requireNids": list(self.require_nids),
            "cards": [card.to_dict() for card in self.cards],
            "order": self.order,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "DAGNode":
        """
        @param raw 캐시에서 읽은 노드 딕셔너리.
        @returns DAGNode 객체.
        """
        return cls(
            node_id=str(raw["_id"]),
            title=raw.get("title") or "",
            require_nids=list(raw.get("requireNids") or []),
            cards=[CardRef.from_dict(card) for card in raw.get("cards") or []],
            order=raw.get("order") or 0,
        )
