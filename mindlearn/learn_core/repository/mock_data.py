from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from mindlearn.learn_core.domain.card import Card
from mindlearn.learn_core.domain.content_base import ContentBase
from mindlearn.learn_core.domain.graph_edge import GraphEdge
from mindlearn.learn_core.domain.graph_node import GraphNode
from mindlearn.learn_core.repository.content_store import InMemoryContentStore

DEMO_DOMAIN_ID = "demo"
DEMO_BASE_ID = "64b7f0c2a1d3e4f5a6b7c8d9"

DEMO_NODES: List[Dict[str, Any]] = [
    {"id": "python", "text": "파이썬 입문", "level": 0},
    {"id": "syntax", "text": "기본 문법", "level": 1, "order": 1},
    {"id": "variables", "text": "변수와 자료형", "level": 2},
    {"id": "loops", "text": "반복문", "level": 2},
    {"id": "collections", "text": "컬렉션", "level": 1, "order": 2},
    {"id": "lists", "text": "리스트", "level": 2, "parentId": "collections"},
    {"id": "dicts", "text": "딕셔너리", "level": 2, "parentId": "collections"},
]

DEMO_EDGES: List[Dict[str, Any]] = [
    {"id": "e1", "source": "python", "target": "syntax"},
    {"id": "e2", "source": "python", "target": "collections"},
    {"id": "e3", "source": "syntax", "target": "variables"},
    {"id": "e4", "source": "syntax", "target": "loops"},
]


def _problem(problem_id: str, question: str, answer: str) -> Dict[str, Any]:
    return {"pid": problem_id, "type": "single", "question": question, "answer": answer}


DEMO_CARDS: List[Card] = [
    Card(
        card_id="64b7f0c2a1d3e4f5a6b7c901",
        node_id="variables",
        title="변수 선언",
        order=1,
        problems=[_problem("p1", "x = 3 일 때 type(x)는?", "int")],
    ),
    Card(
        card_id="64b7f0c2a1d3e4f5a6b7c902",
        node_id="variables",
        title="문자열",
        order=2,
        problems=[
            _problem("p1", "'a' * 3 의 결과는?", "aaa"),
            _problem("p2", "len('abc')는?", "3"),
        ],
    ),
    Card(
        card_id="64b7f0c2a1d3e4f5a6b7c903",
        node_id="loops",
        title="for 문",
        order=1,
        problems=[_problem("p1", "range(3)이 만드는 값의 개수는?", "3")],
    ),
    Card(
        card_id="64b7f0c2a1d3e4f5a6b7c904",
        node_id="lists",
        title="리스트 읽을거리",
        order=1,
        content="리스트는 순서가 있는 변경 가능한 시퀀스입니다.",
    ),
    Card(
        card_id="64b7f0c2a1d3e4f5a6b7c905",
        node_id="lists",
        title="리스트 슬라이싱",
        order=2,
        problems=[_problem("p1", "[1, 2, 3][1:] 의 결과는?", "[2, 3]")],
    ),
    Card(
        card_id="64b7f0c2a1d3e4f5a6b7c906",
        node_id="dicts",
        title="딕셔너리 조회",
        order=1,
        problems=[_problem("p1", "{'a': 1}.get('b', 0) 의 결과는?", "0")],
    ),
]


def build_demo_base() -> ContentBase:
    """
    @returns 데모 도메인의 콘텐츠 베이스.
    """
    return ContentBase(
        base_id=DEMO_BASE_ID,
        domain_id=DEMO_DOMAIN_ID,
        title="파이썬 입문",
        nodes=[GraphNode.from_dict(raw) for raw in DEMO_NODES],
        edges=[GraphEdge.from_dict(raw) for raw in DEMO_EDGES],
        update_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def seed_demo_content(store: InMemoryContentStore) -> ContentBase:
    """
    @param store 데모 데이터를 채울 콘텐츠 저장소.
    @returns 저장된 데모 베이스.
    """
    base = store.put_base(build_demo_base())
    for card in DEMO_CARDS:
        store.add_card(DEMO_DOMAIN_ID, base.base_id, card)
    return base
