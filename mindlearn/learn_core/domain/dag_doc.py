from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List

from mindlearn.learn_core.domain.dag_node import CardRef, DAGNode


@dataclass
class DAGBuildResult:
    """DAG 빌더 출력."""

    sections: List[DAGNode] = field(default_factory=list)
    dag: List[DAGNode] = field(default_factory=list)


@dataclass
class DAGDoc:
    """(domain_id, base_id, branch) 단위로 캐시되는 학습 DAG."""

    domain_id: str
    base_id: str
    branch: str
    sections: List[DAGNode]
    dag: List[DAGNode]
    version: int
    update_at: datetime
    dag_schema_version: int = 0

    def iter_cards(self) -> Iterator[CardRef]:
        """
        @returns 섹션과 DAG 전체의 카드 이터레이터.
        """
        for node in [*self.sections, *self.dag]:
            yield from node.cards

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domainId": self.domain_id,
            "baseDocId": self.base_id,
            "branch": self.branch,
            "sections": [node.to_dict() for node in self.sections],
            "dag": [node.to_dict() for node in self.dag],
            "version": self.version,
            "updateAt": self.update_at.isoformat(),
            "dagSchemaVersion": self.dag_schema_version,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "DAGDoc":
        update_at = raw.get("updateAt")
        if isinstance(update_at, str):
            update_at = datetime.fromisoformat(update_at)
        return cls(
            domain_id=raw["domainId"],
            base_id=str(raw["baseDocId"]),
            branch=raw["branch"],
            sections=[DAGNode.from_dict(node) for node in raw.get("sections") or []],
            dag=[DAGNode.from_dict(node) for node in raw.get("dag") or []],
            version=raw.get("version") or 0,
            update_at=update_at,
            dag_schema_version=raw.get("dagSchemaVersion") or 0,
        )
