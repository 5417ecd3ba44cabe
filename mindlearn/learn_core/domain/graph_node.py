from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class GraphNode:
    """마인드맵 그래프의 개별 주제 노드."""

    node_id: str
    text: str = ""
    level: Optional[int] = None
    order: Optional[int] = None
    parent_id: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "GraphNode":
        """
        @param raw `id/text/level/order/parentId` 키를 가진 원본 노드.
        @returns GraphNode 객체.
        """
        return cls(
            node_id=str(raw["id"]),
            text=raw.get("text") or "",
            level=raw.get("level"),
            order=raw.get("order"),
            parent_id=raw.get("parentId"),
        )
