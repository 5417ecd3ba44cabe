import unittest
from typing import Dict, List

from mindlearn.learn_core.common.errors import GraphCycleError
from mindlearn.learn_core.domain.card import Card
from mindlearn.learn_core.domain.graph_edge import GraphEdge
from mindlearn.learn_core.domain.graph_node import GraphNode
from mindlearn.learn_core.service.learn.dag_builder import build_dag


def _node(node_id: str, level=None, order=None, parent_id=None, text=None) -> GraphNode:
    return GraphNode(node_id=node_id, text=node_id.upper() if text is None else text, level=level, order=order, parent_id=parent_id)


def _edge(source: str, target: str) -> GraphEdge:
    return GraphEdge(edge_id=f"{source}-{target}", source=source, target=target)


def _card(card_id: str, node_id: str, order: int = 0, problems: int = 1, title: str = "card") -> Card:
    return Card(
        card_id=card_id,
        node_id=node_id,
        title=title,
        order=order,
        problems=[{"pid": f"p{i}"} for i in range(problems)],
    )


class _Lookup:
    def __init__(self, cards: Dict[str, List[Card]]) -> None:
        self.cards = cards
        self.calls: List[str] = []

    async def __call__(self, node_id: str) -> List[Card]:
        self.calls.append(node_id)
        return list(self.cards.get(node_id, []))


class DAGBuilderTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.nodes = [
            _node("r", level=0),
            _node("a", level=1),
            _node("b", level=1),
            _node("a1", level=2),
            _node("a1x", level=3),
        ]
        self.edges = [_edge("r", "a"), _edge("r", "b"), _edge("a", "a1"), _edge("a1", "a1x")]
        self.lookup = _Lookup(
            {
                "a1": [_card("c1", "a1", order=2), _card("c2", "a1", order=1)],
                "b": [_card("c3", "b", order=1, problems=0)],
            }
        )

    async def test_root_children_become_sections(self) -> None:
        """
        루트의 직계 자식이 섹션이 되고 하위 노드는 조상 체인을 가지는지 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        result = await build_dag(self.nodes, self.edges, self.lookup)

        self.assertEqual([s.node_id for s in result.sections], ["a", "b"])
        self.assertEqual([s.require_nids for s in result.sections], [["r"], ["r"]])
        self.assertEqual([n.node_id for n in result.dag], ["a1", "a1x"])
        self.assertEqual(result.dag[0].require_nids, ["r", "a"])
        self.assertEqual(result.dag[1].require_nids, ["r", "a", "a1"])
        self.assertEqual([s.order for s in result.sections], [1, 4])
        self.assertEqual([n.order for n in result.dag], [2, 3])

    async def test_cards_sorted_by_order_with_problem_count(self) -> None:
        result = await build_dag(self.nodes, self.edges, self.lookup)

        a1 = result.dag[0]
        self.assertEqual([c.card_id for c in a1.cards], ["c2", "c1"])
        self.assertEqual(a1.cards[0].problem_count, 1)
        self.assertEqual(result.sections[1].cards[0].problem_count, 0)
        self.assertFalse(result.sections[1].cards[0].practicable)

    async def test_section_cards_are_own_cards_by_default(self) -> None:
        result = await build_dag(self.nodes, self.edges, self.lookup)
        self.assertEqual(result.sections[0].cards, [])

    async def test_rollup_flag_collects_subtree_cards(self) -> None:
        result = await build_dag(self.nodes, self.edges, self.lookup, rollup_section_cards=True)
        self.assertEqual([c.card_id for c in result.sections[0].cards], ["c2", "c1"])

    async def test_card_lookups_follow_traversal_order(self) -> None:
        await build_dag(self.nodes, self.edges, self.lookup)
        self.assertEqual(self.lookup.calls, ["a", "a1", "a1x", "b"])

    async def test_parent_id_links_merge_with_edges(self) -> None:
        nodes = [
            _node("r", level=0),
            _node("a", level=1, parent_id="r"),
            _node("a1", level=2, parent_id="a"),
        ]
        edges = [_edge("r", "a")]
        result = await build_dag(nodes, edges, _Lookup({}))

        self.assertEqual([s.node_id for s in result.sections], ["a"])
        self.assertEqual([n.node_id for n in result.dag], ["a1"])

    async def test_dangling_child_is_skipped(self) -> None:
        edges = [*self.edges, _edge("a", "ghost")]
        result = await build_dag(self.nodes, edges, self.lookup)
        self.assertNotIn("ghost", [n.node_id for n in result.dag])

    async def test_shared_child_placed_once(self) -> None:
        nodes = [_node("r", level=0), _node("a"), _node("b"), _node("x")]
        edges = [_edge("r", "a"), _edge("r", "b"), _edge("a", "x"), _edge("b", "x")]
        result = await build_dag(nodes, edges, _Lookup({}))

        self.assertEqual([n.node_id for n in result.dag], ["x"])
        self.assertEqual(result.dag[0].require_nids, ["r", "a"])

    async def test_cycle_raises(self) -> None:
        nodes = [_node("r", level=0), _node("a"), _node("b")]
        edges = [_edge("r", "a"), _edge("a", "b"), _edge("b", "a")]
        with self.assertRaises(GraphCycleError):
            await build_dag(nodes, edges, _Lookup({}))

    async def test_childless_root_promotes_siblings(self) -> None:
        nodes = [_node("p", level=0), _node("q"), _node("s")]
        result = await build_dag(nodes, [], _Lookup({}))

        self.assertEqual([s.node_id for s in result.sections], ["p", "q", "s"])
        self.assertTrue(all(s.require_nids == [] for s in result.sections))
        self.assertEqual(result.dag, [])

    async def test_every_childless_root_keeps_its_cards(self) -> None:
        """
        자식 없는 루트가 여럿이면 각 루트가 자기 카드를 가진 섹션이 되는지 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        lookup = _Lookup({"x": [_card("cx", "x")], "y": [_card("cy", "y")]})
        result = await build_dag([_node("x", level=0), _node("y", level=0)], [], lookup)

        self.assertEqual([s.node_id for s in result.sections], ["x", "y"])
        self.assertEqual([[c.card_id for c in s.cards] for s in result.sections], [["cx"], ["cy"]])
        self.assertEqual(len({s.node_id for s in result.sections}), len(result.sections))

    async def test_rebuild_is_idempotent(self) -> None:
        first = await build_dag(self.nodes, self.edges, self.lookup)
        second = await build_dag(self.nodes, self.edges, self.lookup)

        def shape(result):
            return [
                (node.node_id, node.order, list(node.require_nids), [c.card_id for c in node.cards])
                for node in [*result.sections, *result.dag]
            ]

        self.assertEqual(shape(first), shape(second))

    async def test_rollup_keeps_traversal_order_across_nodes(self) -> None:
        self.lookup.cards["a"] = [_card("ca", "a", order=9)]
        result = await build_dag(self.nodes, self.edges, self.lookup, rollup_section_cards=True)
        self.assertEqual([c.card_id for c in result.sections[0].cards], ["ca", "c2", "c1"])

    async def test_single_root_with_cards_is_its_own_section(self) -> None:
        lookup = _Lookup({"solo": [_card("c1", "solo")]})
        result = await build_dag([_node("solo", level=0)], [], lookup)
        self.assertEqual([s.node_id for s in result.sections], ["solo"])

    async def test_single_root_without_cards_yields_nothing(self) -> None:
        result = await build_dag([_node("solo", level=0)], [], _Lookup({}))
        self.assertEqual(result.sections, [])
        self.assertEqual(result.dag, [])

    async def test_explicit_order_wins(self) -> None:
        nodes = [_node("r", level=0), _node("a", order=5), _node("b", order=2)]
        edges = [_edge("r", "a"), _edge("r", "b")]
        result = await build_dag(nodes, edges, _Lookup({}))
        self.assertEqual([s.node_id for s in result.sections], ["b", "a"])

    async def test_placeholder_titles_are_translated(self) -> None:
        nodes = [_node("r", level=0), _node("a", text="")]
        lookup = _Lookup({"a": [_card("c1", "a", title="")]})
        result = await build_dag(nodes, [_edge("r", "a")], lookup, translate=lambda text: f"ko:{text}")

        self.assertEqual(result.sections[0].title, "ko:Unnamed Node")
        self.assertEqual(result.sections[0].cards[0].title, "ko:Unnamed Card")

    async def test_first_node_is_root_when_every_node_has_parent(self) -> None:
        nodes = [_node("a", parent_id="outside"), _node("b", parent_id="a")]
        result = await build_dag(nodes, [], _Lookup({}))
        self.assertEqual([s.node_id for s in result.sections], ["b"])
        self.assertEqual(result.sections[0].require_nids, ["a"])


if __name__ == "__main__":
    unittest.main()
