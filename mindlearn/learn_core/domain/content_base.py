from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from mindlearn.learn_core.domain.graph_edge import GraphEdge
from mindlearn.learn_core.domain.graph_node import GraphNode

MAIN_BRANCH = "main"


@dataclass
class BranchGraph:
    """브랜치별 노드/엣지 묶음."""

    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)


@dataclass
class ContentBase:
    """도메인당 하나씩 존재하는 학습 콘텐츠 그래프(베이스) 문서."""

    base_id: str
    domain_id: str
    title: str
    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)
    branch_data: Dict[str, BranchGraph] = field(default_factory=dict)
    branches: List[str] = field(default_factory=lambda: [MAIN_BRANCH])
    update_at: Optional[datetime] = None

    @property
    def version(self) -> int:
        """
        @returns 마지막 수정 시각(ms). 캐시 버전 비교에 사용한다.
        """
        if not self.update_at:
            return 0
        return int(self.update_at.timestamp() * 1000)

    def available_branches(self) -> List[str]:
        """
        @returns main을 항상 맨 앞에 포함한 브랜치 목록.
        """
        branches = list(self.branches or [])
        if MAIN_BRANCH not in branches:
            branches.insert(0, MAIN_BRANCH)
        return branches

    def find_node(self, node_id: str, branch: str = MAIN_BRANCH) -> Optional[GraphNode]:
        """
        @param node_id 찾을 노드 ID.
        @param branch 조회 브랜치.
        @returns 노드 또는 None.
        """
        for node in resolve_branch_graph(self, branch).nodes:
            if node.node_id == node_id:
                return node
        return None


def resolve_branch_graph(base: ContentBase, branch: Optional[str]) -> BranchGraph:
    """
    브랜치 데이터를 우선 사용하고, main 브랜치는 최상위 노드/엣지로 대체합니다.

    @param {ContentBase} base - 콘텐츠 베이스.
    @param {Optional[str]} branch - 브랜치 이름 (없으면 main).
    @returns {BranchGraph} 해당 브랜치의 노드/엣지.
    """
    branch_name = branch or MAIN_BRANCH
    if branch_name in base.branch_data:
        return base.branch_data[branch_name]
    if branch_name == MAIN_BRANCH:
        return BranchGraph(nodes=list(base.nodes), edges=list(base.edges))
    return BranchGraph()
