from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class GraphEdge:
    """그래프 엣지 정의 (source가 target의 부모)."""

    edge_id: str
    source: str
    target: str

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "GraphEdge":
        """
        @param raw `id/source/target` 키를 가진 원본 엣지.
        @returns GraphEdge 객체.
        """
        source = str(raw["source"])
        target = str(raw["target"])
        return cls(edge_id=str(raw.get("id") or f"{source}-{target}"), source=source, target=target)
