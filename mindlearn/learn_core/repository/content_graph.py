from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Set, Tuple

import networkx as nx

from mindlearn.learn_core.common.errors import GraphCycleError
from mindlearn.learn_core.domain.graph_edge import GraphEdge
from mindlearn.learn_core.domain.graph_node import GraphNode


class ContentGraph:
    """DAG 빌드용 콘텐츠 그래프. 엣지와 parentId 링크를 합쳐 한 번만 인덱싱한다."""

    def __init__(self, nodes: Iterable[GraphNode], edges: Iterable[GraphEdge]) -> None:
        """
        @param nodes 브랜치의 노드 목록 (입력 순서 유지).
        @param edges 브랜치의 엣지 목록.
        @returns None
        """
        self._graph = nx.DiGraph()
        self._nodes: Dict[str, GraphNode] = {}
        self._children: Dict[str, List[str]] = {}
        self._parents: Dict[str, str] = {}
        self._links: Set[Tuple[str, str]] = set()
        node_list = list(nodes)
        for node in node_list:
            self._nodes[node.node_id] = node
            self._graph.add_node(node.node_id, node=node)
        for edge in edges:
            self._link(edge.source, edge.target)
        for node in node_list:
            if node.parent_id:
                self._link(node.parent_id, node.node_id)

    def _link(self, source: str, target: str) -> None:
        if (source, target) in self._links:
            return
        self._links.add((source, target))
        self._children.setdefault(source, []).append(target)
        self._parents[target] = source
        self._graph.add_edge(source, target)

    @property
    def nodes(self) -> List[GraphNode]:
        """
        @returns 입력 순서대로의 노드 리스트.
        """
        return list(self._nodes.values())

    @property
    def edge_count(self) -> int:
        """
        @returns 중복 제거 후 링크 개수.
        """
        return len(self._links)

    def get(self, node_id: str) -> Optional[GraphNode]:
        """
        @param node_id 노드 ID.
        @returns 노드 또는 None (엣지에만 등장하는 ID).
        """
        return self._nodes.get(node_id)

    def children(self, node_id: str) -> List[str]:
        """
        @param node_id 부모 노드 ID.
        @returns 링크가 추가된 순서의 자식 ID 리스트.
        """
        return list(self._children.get(node_id, []))

    def roots(self) -> List[GraphNode]:
        """
        level == 0 이거나 부모가 없는 노드. 없으면 첫 번째 노드 하나.

        @returns 루트 노드 리스트.
        """
        roots = [
            node
            for node in self._nodes.values()
            if node.level == 0 or node.node_id not in self._parents
        ]
        if not roots and self._nodes:
            return [next(iter(self._nodes.values()))]
        return roots

    def ensure_acyclic(self) -> None:
        """
        @returns None
        @raises GraphCycleError 방향 순환이 있으면 발생.
        """
        if nx.is_directed_acyclic_graph(self._graph):
            return
        cycle = nx.find_cycle(self._graph)
        path = " -> ".join(str(source) for source, _target in cycle)
        raise GraphCycleError(f"Content graph contains a cycle: {path}")
