from mindlearn.learn_core.domain.card import Card
from mindlearn.learn_core.domain.content_base import MAIN_BRANCH, BranchGraph, ContentBase, resolve_branch_graph
from mindlearn.learn_core.domain.dag_doc import DAGBuildResult, DAGDoc
from mindlearn.learn_core.domain.dag_node import CardRef, DAGNode
from mindlearn.learn_core.domain.graph_edge import GraphEdge
from mindlearn.learn_core.domain.graph_node import GraphNode
from mindlearn.learn_core.domain.learn_result import ConsumptionStats, LearnProgress, LearnResult
from mindlearn.learn_core.domain.user_learn_state import (
    LESSON_MODE_NODE,
    LESSON_MODE_TODAY,
    LESSON_MODES,
    UserLearnState,
    state_patch,
)

__all__ = [
    "BranchGraph",
    "Card",
    "CardRef",
    "ConsumptionStats",
    "ContentBase",
    "DAGBuildResult",
    "DAGDoc",
    "DAGNode",
    "GraphEdge",
    "GraphNode",
    "LESSON_MODES",
    "LESSON_MODE_NODE",
    "LESSON_MODE_TODAY",
    "LearnProgress",
    "LearnResult",
    "MAIN_BRANCH",
    "UserLearnState",
    "resolve_branch_graph",
    "state_patch",
]
