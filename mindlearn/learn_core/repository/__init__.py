from mindlearn.learn_core.repository.content_graph import ContentGraph
from mindlearn.learn_core.repository.content_store import ContentStore, InMemoryContentStore, new_object_id
from mindlearn.learn_core.repository.dag_store import DAGStore, InMemoryDAGStore, build_dag_doc
from mindlearn.learn_core.repository.learn_record_store import InMemoryLearnRecordStore, LearnRecordStore
from mindlearn.learn_core.repository.user_state_store import InMemoryUserStateStore, UserStateStore

__all__ = [
    "ContentGraph",
    "ContentStore",
    "DAGStore",
    "InMemoryContentStore",
    "InMemoryDAGStore",
    "InMemoryLearnRecordStore",
    "InMemoryUserStateStore",
    "LearnRecordStore",
    "UserStateStore",
    "build_dag_doc",
    "new_object_id",
]
