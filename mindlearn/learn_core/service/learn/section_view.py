from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from mindlearn.learn_core.domain.dag_node import CardRef, DAGNode


@dataclass(frozen=True)
class FlatCard:
    """섹션 트리를 순회 순서로 펼친 카드 한 장."""

    node_id: str
    card: CardRef
    node_index: int
    card_index: int

    @property
    def card_id(self) -> str:
        return self.card.card_id

    @property
    def practicable(self) -> bool:
        return self.card.practicable


def apply_user_section_order(sections: Sequence[DAGNode], order: Optional[Iterable[str]]) -> List[DAGNode]:
    """
    사용자 섹션 순서를 적용합니다. 모르는 ID는 건너뛰고 중복은 유지합니다.

    @param {Sequence[DAGNode]} sections - 빌더가 만든 섹션 목록.
    @param {Optional[Iterable[str]]} order - 사용자가 저장한 섹션 ID 순서.
    @returns {List[DAGNode]} order가 위치값으로 바뀐 섹션 복사본 목록.
    """
    order = list(order or [])
    if not order:
        return list(sections)
    by_id = {section.node_id: section for section in sections}
    ordered: List[DAGNode] = []
    for section_id in order:
        section = by_id.get(section_id)
        if section is None:
            continue
        ordered.append(section.with_order(len(ordered)))
    return ordered


def children_index(dag: Sequence[DAGNode]) -> Dict[str, List[DAGNode]]:
    """
    @param dag DAG 노드 목록.
    @returns 직계 부모 ID → 자식 노드 목록 (dag 순서 유지).
    """
    index: Dict[str, List[DAGNode]] = {}
    for node in dag:
        if node.parent_id:
            index.setdefault(node.parent_id, []).append(node)
    return index


def collect_subtree(root_id: str, dag: Sequence[DAGNode]) -> List[DAGNode]:
    """
    require_nids 마지막 원소로 연결된 하위 노드를 전위 순서로 모읍니다 (루트 제외).

    @param {str} root_id - 기준 노드 ID.
    @param {Sequence[DAGNode]} dag - DAG 노드 목록.
    @returns {List[DAGNode]} 하위 노드 목록.
    """
    index = children_index(dag)
    collected: List[DAGNode] = []
    seen: Set[str] = {root_id}
    stack = list(reversed(index.get(root_id, [])))
    while stack:
        node = stack.pop()
        if node.node_id in seen:
            continue
        seen.add(node.node_id)
        collected.append(node)
        stack.extend(reversed(index.get(node.node_id, [])))
    return collected


def section_walk(section: DAGNode, dag: Sequence[DAGNode], include_section_cards: bool = True) -> List[DAGNode]:
    """
    섹션 자신과 하위 노드를 학습 순서로 나열합니다.

    섹션 카드가 하위 트리 합산본이면 중복을 피하려고 섹션 자신은 뺍니다.

    @param {DAGNode} section - 섹션 노드.
    @param {Sequence[DAGNode]} dag - DAG 노드 목록.
    @param {bool} include_section_cards - 섹션 자신의 카드를 포함할지 여부.
    @returns {List[DAGNode]} 순회 순서의 노드 목록.
    """
    nodes = collect_subtree(section.node_id, dag)
    if include_section_cards and section.cards:
        return [section, *nodes]
    return nodes


def find_node(node_id: str, sections: Sequence[DAGNode], dag: Sequence[DAGNode]) -> Optional[DAGNode]:
    for node in [*sections, *dag]:
        if node.node_id == node_id:
            return node
    return None


def flatten_cards(nodes: Sequence[DAGNode]) -> List[FlatCard]:
    """
    @param nodes 순회 순서의 노드 목록.
    @returns 노드 순서, 노드 내 카드 순서대로 펼친 카드 목록.
    """
    return [
        FlatCard(node_id=node.node_id, card=card, node_index=node_index, card_index=card_index)
        for node_index, node in enumerate(nodes)
        for card_index, card in enumerate(node.cards)
    ]


def compute_unlocks(flat: Sequence[FlatCard], passed_ids: Set[str]) -> List[bool]:
    """
    첫 카드는 항상 열려 있고, 이후 카드는 바로 앞 카드를 통과해야 열립니다.

    @param {Sequence[FlatCard]} flat - 펼친 카드 목록.
    @param {Set[str]} passed_ids - 통과한 카드 ID 집합.
    @returns {List[bool]} 위치별 잠금 해제 여부.
    """
    return [index == 0 or flat[index - 1].card_id in passed_ids for index in range(len(flat))]


def first_open_card(flat: Sequence[FlatCard], passed_ids: Set[str]) -> Optional[FlatCard]:
    """
    @param flat 펼친 카드 목록.
    @param passed_ids 통과한 카드 ID 집합.
    @returns 문제가 있고 아직 통과하지 않은 첫 카드 또는 None.
    """
    for item in flat:
        if item.practicable and item.card_id not in passed_ids:
            return item
    return None


def annotate_nodes(nodes: Sequence[DAGNode], passed_ids: Set[str]) -> List[Dict[str, Any]]:
    """
    @param nodes 순회 순서의 노드 목록.
    @param passed_ids 통과한 카드 ID 집합.
    @returns 카드별 passed/unlocked 플래그가 붙은 노드 페이로드.
    """
    unlocks = compute_unlocks(flatten_cards(nodes), passed_ids)
    position = 0
    payload: List[Dict[str, Any]] = []
    for node in nodes:
        cards = []
        for card in node.cards:
            cards.append(
                {
                    "card_id": card.card_id,
                    "title": card.title,
                    "order": card.order,
                    "problem_count": card.problem_count if card.problem_count is not None else len(card.problems or []),
                    "passed": card.card_id in passed_ids,
                    "unlocked": unlocks[position],
                }
            )
            position += 1
        payload.append(
            {
                "node_id": node.node_id,
                "title": node.title,
                "require_nids": list(node.require_nids),
                "order": node.order,
                "cards": cards,
            }
        )
    return payload
