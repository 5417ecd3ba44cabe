"""
학습 API 입력 모델.

요청 본문은 camelCase 키(`answerHistory`, `timeSpent` 등)로 들어오며,
snake_case 필드 이름도 함께 허용한다.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AnswerRecord(BaseModel):
    """문제 1회 응답 기록."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    problem_id: Optional[str] = Field(default=None, alias="problemId")
    time_spent: float = Field(default=0.0, ge=0, alias="timeSpent")
    attempts: Optional[int] = Field(default=None, ge=1)
    correct: bool = False


class PassSubmission(BaseModel):
    """카드 통과 제출 본문."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    answer_history: List[AnswerRecord] = Field(default_factory=list, alias="answerHistory")
    total_time: float = Field(default=0.0, ge=0, alias="totalTime", description="카드 풀이 총 소요 시간(ms)")

    def distinct_problem_count(self) -> int:
        return len({answer.problem_id for answer in self.answer_history if answer.problem_id})


class DailyGoalUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    daily_goal: int = Field(..., ge=0, alias="dailyGoal")


class SectionOrderUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    section_order: List[str] = Field(default_factory=list, alias="sectionOrder")
    current_section_index: Optional[int] = Field(default=None, ge=0, alias="currentLearnSectionIndex")


class BranchUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    branch: str = Field(..., min_length=1)


class NoImpression(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    card_id: str = Field(..., alias="cardId")


class LessonPassRequest(PassSubmission):
    """통과 제출 + 레슨 커서 지정."""

    card_id: Optional[str] = Field(default=None, alias="cardId")
    mode: Optional[str] = None
    node_id: Optional[str] = Field(default=None, alias="nodeId")
