from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class LearnResult:
    """카드 연습 1회 결과 (추가 전용 로그)."""

    result_id: str
    domain_id: str
    user_id: str
    card_id: str
    node_id: Optional[str]
    answer_history: List[Dict[str, Any]]
    total_time: float
    score: int
    created_at: datetime


@dataclass
class LearnProgress:
    """카드 통과 여부. 한 번 통과하면 계속 통과 상태를 유지한다."""

    domain_id: str
    user_id: str
    card_id: str
    node_id: Optional[str]
    passed: bool = True
    passed_at: Optional[datetime] = None


@dataclass
class ConsumptionStats:
    """일자별 학습 소비량 카운터."""

    domain_id: str
    user_id: str
    date: str
    nodes: int = 0
    cards: int = 0
    problems: int = 0
    practices: int = 0
    total_time: float = 0.0
    update_at: Optional[datetime] = None
