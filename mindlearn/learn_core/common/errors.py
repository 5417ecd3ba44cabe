from __future__ import annotations

from typing import Optional


class LearnError(Exception):
    """학습 엔진 오류의 기본 클래스. status_code는 HTTP 응답 코드로 그대로 쓴다."""

    status_code = 500
    default_message = "LearnError"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NotFoundError(LearnError):
    """베이스/섹션/카드/노드/결과를 찾을 수 없음."""

    status_code = 404
    default_message = "Not found"


class ValidationError(LearnError, ValueError):
    """입력값 검증 실패. 상태 변경 전에 발생한다."""

    status_code = 400
    default_message = "Validation failed"


class StateConflictError(LearnError):
    """사용자 상태 revision 불일치 (동시 갱신)."""

    status_code = 409
    default_message = "User learn state was modified concurrently"


class GraphCycleError(LearnError):
    """콘텐츠 그래프에 순환이 있어 DAG를 만들 수 없음."""

    status_code = 422
    default_message = "Content graph contains a cycle"
