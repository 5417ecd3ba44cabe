from __future__ import annotations

import logging
from itertools import count
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple

from mindlearn.learn_core.domain.card import Card
from mindlearn.learn_core.domain.dag_doc import DAGBuildResult
from mindlearn.learn_core.domain.dag_node import CardRef, DAGNode
from mindlearn.learn_core.domain.graph_edge import GraphEdge
from mindlearn.learn_core.domain.graph_node import GraphNode
from mindlearn.learn_core.repository.content_graph import ContentGraph

logger = logging.getLogger(__name__)

UNNAMED_CARD = "Unnamed Card"
UNNAMED_NODE = "Unnamed Node"

CardLookup = Callable[[str], Awaitable[List[Card]]]
Translate = Callable[[str], str]


def identity_translate(text: str) -> str:
    return text


async def build_dag(
    nodes: Iterable[GraphNode],
    edges: Iterable[GraphEdge],
    card_lookup: CardLookup,
    translate: Optional[Translate] = None,
    rollup_section_cards: bool = False,
) -> DAGBuildResult:
    """
    콘텐츠 그래프를 섹션 + 하위 DAG 노드 목록으로 펼칩니다.

    루트(level 0 또는 부모 없음)의 직계 자식이 섹션이 되고, 그 아래 노드는
    require_nids에 조상 체인을 담아 dag에 들어갑니다. 여러 부모를 가진 노드는
    처음 방문한 위치에만 배치됩니다.

    @param {Iterable[GraphNode]} nodes - 브랜치 노드 목록.
    @param {Iterable[GraphEdge]} edges - 브랜치 엣지 목록.
    @param {CardLookup} card_lookup - 노드 ID로 카드를 조회하는 코루틴 함수.
    @param {Optional[Translate]} translate - 제목 대체 문구 번역 함수.
    @param {bool} rollup_section_cards - 섹션 카드에 하위 트리 카드를 모두 포함할지 여부.
    @returns {DAGBuildResult} order 기준으로 정렬된 sections/dag.
    @raises GraphCycleError 그래프에 방향 순환이 있으면 발생.
    """
    graph = ContentGraph(nodes, edges)
    graph.ensure_acyclic()
    builder = _DAGBuilder(graph, card_lookup, translate or identity_translate, rollup_section_cards)
    result = await builder.build()
    logger.debug(
        "DAG built: nodes=%s links=%s sections=%s dag=%s",
        len(graph.nodes),
        graph.edge_count,
        len(result.sections),
        len(result.dag),
    )
    return result


class _DAGBuilder:
    def __init__(
        self,
        graph: ContentGraph,
        card_lookup: CardLookup,
        translate: Translate,
        rollup_section_cards: bool,
    ) -> None:
        self._graph = graph
        self._card_lookup = card_lookup
        self._translate = translate
        self._rollup = rollup_section_cards
        self._order_counter = count(1)
        self._visited: Set[str] = set()
        self._card_cache: Dict[str, List[CardRef]] = {}
        self._sections: List[DAGNode] = []
        self._dag: List[DAGNode] = []

    async def build(self) -> DAGBuildResult:
        roots = self._graph.roots()
        for root in roots:
            if root.node_id in self._visited:
                continue
            self._visited.add(root.node_id)
            child_ids = self._graph.children(root.node_id)
            if child_ids:
                for child_id in child_ids:
                    await self._walk_section(child_id, root.node_id)
            else:
                await self._promote_flat_root(root, roots)
        sections = sorted(self._sections, key=lambda node: node.order)
        dag = sorted(self._dag, key=lambda node: node.order)
        return DAGBuildResult(sections=sections, dag=dag)

    async def _walk_section(self, section_id: str, root_id: str) -> None:
        stack: List[Tuple[str, List[str], bool]] = [(section_id, [root_id], True)]
        while stack:
            node_id, chain, is_section = stack.pop()
            node = self._graph.get(node_id)
            if node is None or node_id in self._visited:
                continue
            self._visited.add(node_id)
            if is_section and self._rollup:
                cards = await self._subtree_cards(node_id)
            else:
                cards = await self._own_cards(node_id)
            dag_node = DAGNode(
                node_id=node_id,
                title=node.text or self._translate(UNNAMED_NODE),
                require_nids=chain,
                cards=cards,
                order=self._next_order(node),
            )
            if is_section:
                self._sections.append(dag_node)
            else:
                self._dag.append(dag_node)
            child_chain = [*chain, node_id]
            # 역순으로 쌓아 자식 순서대로 꺼낸다 (전위 순회)
            for child_id in reversed(self._graph.children(node_id)):
                stack.append((child_id, child_chain, False))

    async def _promote_flat_root(self, root: GraphNode, roots: List[GraphNode]) -> None:
        siblings = [
            node
            for node in roots
            if node.node_id not in self._visited and not self._graph.children(node.node_id)
        ]
        if siblings:
            # 자식 없는 루트끼리는 서로를 섹션으로 올리므로 자신도 섹션이 된다
            for node in [root, *siblings]:
                self._visited.add(node.node_id)
                await self._add_flat_section(node)
            return
        if await self._own_cards(root.node_id):
            await self._add_flat_section(root)

    async def _add_flat_section(self, node: GraphNode) -> None:
        if any(section.node_id == node.node_id for section in self._sections):
            return
        self._sections.append(
            DAGNode(
                node_id=node.node_id,
                title=node.text or self._translate(UNNAMED_NODE),
                require_nids=[],
                cards=await self._own_cards(node.node_id),
                order=self._next_order(node),
            )
        )

    async def _own_cards(self, node_id: str) -> List[CardRef]:
        cached = self._card_cache.get(node_id)
        if cached is not None:
            return list(cached)
        cards = await self._card_lookup(node_id)
        refs = [self._card_ref(card) for card in cards]
        refs.sort(key=lambda ref: ref.order)
        self._card_cache[node_id] = refs
        return list(refs)

    async def _subtree_cards(self, node_id: str) -> List[CardRef]:
        """
        @param node_id 섹션 노드 ID.
        @returns 전위 순회 순서로 모은 하위 트리 카드. 노드 안에서만 카드 order로 정렬한다.
        """
        collected: List[CardRef] = []
        seen: Set[str] = set()
        stack = [node_id]
        while stack:
            current = stack.pop()
            if current in seen or self._graph.get(current) is None:
                continue
            seen.add(current)
            collected.extend(await self._own_cards(current))
            stack.extend(reversed(self._graph.children(current)))
        return collected

    def _card_ref(self, card: Card) -> CardRef:
        return CardRef(
            card_id=card.card_id,
            title=card.title or self._translate(UNNAMED_CARD),
            order=card.order or 0,
            problem_count=card.problem_count,
        )

    def _next_order(self, node: GraphNode) -> int:
        if node.order is not None:
            return node.order
        return next(self._order_counter)
