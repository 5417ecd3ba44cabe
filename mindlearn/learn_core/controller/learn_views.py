from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from asgiref.sync import async_to_sync
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, OpenApiTypes, extend_schema
from rest_framework.response import Response
from rest_framework.views import APIView

from mindlearn.learn_core.common.errors import ValidationError
from mindlearn.learn_core.common.validation import parse_model
from mindlearn.learn_core.config.learn_settings import learn_settings
from mindlearn.learn_core.controller import dependencies
from mindlearn.learn_core.controller.serializers import (
    BranchResultSerializer,
    DailyGoalResultSerializer,
    ErrorSerializer,
    HealthCheckSerializer,
    LearnHomeSerializer,
    LearningStatsSerializer,
    LearnSectionsSerializer,
    LessonResultSerializer,
    LessonSerializer,
    NodeResultSerializer,
    PassOutcomeSerializer,
    ReviewQueueSerializer,
    SectionOrderResultSerializer,
)
from mindlearn.learn_core.service.learn.schemas import (
    BranchUpdate,
    DailyGoalUpdate,
    LessonPassRequest,
    NoImpression,
    SectionOrderUpdate,
)

USER_PARAM = OpenApiParameter("user_id", OpenApiTypes.STR, required=True, description="사용자 ID")
ERROR_RESPONSES = {400: ErrorSerializer, 404: ErrorSerializer, 409: ErrorSerializer}


def _serialize(serializer_class, payload, many: bool = False) -> Response:
    """
    @param serializer_class 사용할 DRF Serializer 클래스.
    @param payload 응답 데이터.
    @param many 리스트 여부.
    @returns 직렬화된 DRF Response.
    """
    serializer = serializer_class(payload, many=many)
    return Response(serializer.data)


def _user_id(request) -> str:
    user_id = request.GET.get("user_id")
    if not user_id and isinstance(request.data, dict):
        user_id = request.data.get("user_id") or request.data.get("userId")
    if not user_id:
        raise ValidationError("user_id is required")
    return str(user_id)


def _int_param(request, name: str) -> Optional[int]:
    raw = request.GET.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be an integer") from exc


class LearnHomeAPIView(APIView):
    """학습 홈: 현재 섹션 DAG, 카드 잠금 상태, 다음 카드, 학습 통계."""

    @extend_schema(
        parameters=[
            USER_PARAM,
            OpenApiParameter("section_index", OpenApiTypes.INT, required=False, description="선택할 섹션 인덱스"),
            OpenApiParameter("section_id", OpenApiTypes.STR, required=False, description="선택할 섹션 ID"),
        ],
        responses={200: LearnHomeSerializer, **ERROR_RESPONSES},
    )
    def get(self, request, domain_id: str) -> Response:
        """
        @param request DRF 요청 객체 (user_id/section_index/section_id 사용).
        @param domain_id 도메인 ID.
        @returns 학습 홈 JSON.
        """
        service = dependencies.get_learn_service()
        payload = async_to_sync(service.get_learn_home)(
            domain_id,
            _user_id(request),
            section_index=_int_param(request, "section_index"),
            section_id=request.GET.get("section_id") or None,
        )
        return _serialize(LearnHomeSerializer, payload)


class LearnSectionsAPIView(APIView):
    """섹션 목록과 전체 DAG."""

    @extend_schema(parameters=[USER_PARAM], responses={200: LearnSectionsSerializer, **ERROR_RESPONSES})
    def get(self, request, domain_id: str) -> Response:
        service = dependencies.get_learn_service()
        payload = async_to_sync(service.get_sections)(domain_id, _user_id(request))
        return _serialize(LearnSectionsSerializer, payload)


class LearnSectionEditAPIView(APIView):
    """사용자 섹션 순서 저장."""

    @extend_schema(
        parameters=[USER_PARAM],
        request=OpenApiTypes.OBJECT,
        responses={200: SectionOrderResultSerializer, **ERROR_RESPONSES},
        examples=[
            OpenApiExample(
                "section-order",
                value={"sectionOrder": ["collections", "syntax"], "currentLearnSectionIndex": 0},
                request_only=True,
            )
        ],
    )
    def post(self, request, domain_id: str) -> Response:
        """
        @param request DRF 요청 객체 (sectionOrder/currentLearnSectionIndex 본문).
        @param domain_id 도메인 ID.
        @returns 저장된 섹션 순서 JSON.
        """
        update = parse_model(SectionOrderUpdate, request.data)
        service = dependencies.get_learn_service()
        payload = async_to_sync(service.save_section_order)(domain_id, _user_id(request), update)
        return _serialize(SectionOrderResultSerializer, payload)


class LearnBranchAPIView(APIView):
    """학습 브랜치 선택."""

    @extend_schema(
        parameters=[USER_PARAM],
        request=OpenApiTypes.OBJECT,
        responses={200: BranchResultSerializer, **ERROR_RESPONSES},
    )
    def post(self, request, domain_id: str) -> Response:
        update = parse_model(BranchUpdate, request.data)
        service = dependencies.get_learn_service()
        payload = async_to_sync(service.set_learn_branch)(domain_id, _user_id(request), update.branch)
        return _serialize(BranchResultSerializer, payload)


class LessonAPIView(APIView):
    """다음 레슨 카드 조회 (단독 연습 / today / node 모드)."""

    @extend_schema(
        parameters=[
            USER_PARAM,
            OpenApiParameter("card_id", OpenApiTypes.STR, required=False, description="단독 연습 카드 ID (24자리 hex)"),
            OpenApiParameter(
                "mode",
                OpenApiTypes.STR,
                required=False,
                description="레슨 모드",
                enum=["today", "node"],
            ),
            OpenApiParameter("node_id", OpenApiTypes.STR, required=False, description="node 모드 기준 노드 ID"),
        ],
        responses={200: LessonSerializer, **ERROR_RESPONSES},
    )
    def get(self, request, domain_id: str) -> Response:
        """
        @param request DRF 요청 객체 (user_id/card_id/mode/node_id 사용).
        @param domain_id 도메인 ID.
        @returns 레슨 카드 JSON.
        """
        service = dependencies.get_learn_service()
        payload = async_to_sync(service.get_lesson)(
            domain_id,
            _user_id(request),
            card_id=request.GET.get("card_id") or None,
            mode=request.GET.get("mode") or None,
            node_id=request.GET.get("node_id") or None,
        )
        return _serialize(LessonSerializer, payload)


class LessonPassAPIView(APIView):
    """카드 통과 제출."""

    @extend_schema(
        parameters=[USER_PARAM],
        request=OpenApiTypes.OBJECT,
        responses={200: PassOutcomeSerializer, **ERROR_RESPONSES},
        examples=[
            OpenApiExample(
                "pass",
                value={
                    "answerHistory": [{"problemId": "p1", "timeSpent": 3200, "attempts": 1, "correct": True}],
                    "totalTime": 3200,
                    "cardId": "64b7f0c2a1d3e4f5a6b7c901",
                },
                request_only=True,
            )
        ],
    )
    def post(self, request, domain_id: str) -> Response:
        """
        @param request DRF 요청 객체 (answerHistory/totalTime/cardId/mode/nodeId 본문).
        @param domain_id 도메인 ID.
        @returns 결과 ID와 다음 행선지 JSON.
        """
        submission = parse_model(LessonPassRequest, request.data)
        service = dependencies.get_learn_service()
        payload = async_to_sync(service.post_pass)(
            domain_id,
            _user_id(request),
            submission,
            card_id=submission.card_id,
            mode=submission.mode,
            node_id=submission.node_id,
        )
        return _serialize(PassOutcomeSerializer, payload)


class LessonResultAPIView(APIView):
    """레슨 결과 상세."""

    @extend_schema(parameters=[USER_PARAM], responses={200: LessonResultSerializer, **ERROR_RESPONSES})
    def get(self, request, domain_id: str, result_id: str) -> Response:
        service = dependencies.get_learn_service()
        payload = async_to_sync(service.get_result)(domain_id, _user_id(request), result_id)
        return _serialize(LessonResultSerializer, payload)


class NodeResultAPIView(APIView):
    """노드 하위 카드 결과 집계."""

    @extend_schema(parameters=[USER_PARAM], responses={200: NodeResultSerializer, **ERROR_RESPONSES})
    def get(self, request, domain_id: str, node_id: str) -> Response:
        service = dependencies.get_learn_service()
        payload = async_to_sync(service.get_node_result)(domain_id, _user_id(request), node_id)
        return _serialize(NodeResultSerializer, payload)


class LessonNoImpressionAPIView(APIView):
    """기억나지 않는 카드를 복습 대기열에 추가."""

    @extend_schema(
        parameters=[USER_PARAM],
        request=OpenApiTypes.OBJECT,
        responses={200: ReviewQueueSerializer, **ERROR_RESPONSES},
    )
    def post(self, request, domain_id: str) -> Response:
        body = parse_model(NoImpression, request.data)
        service = dependencies.get_learn_service()
        payload = async_to_sync(service.mark_no_impression)(domain_id, _user_id(request), body.card_id)
        return _serialize(ReviewQueueSerializer, payload)


class DailyGoalAPIView(APIView):
    """일일 목표 조회(통계 포함)와 변경."""

    @extend_schema(parameters=[USER_PARAM], responses={200: LearningStatsSerializer, **ERROR_RESPONSES})
    def get(self, request, domain_id: str) -> Response:
        service = dependencies.get_learn_service()
        payload = async_to_sync(service.get_stats)(domain_id, _user_id(request))
        return _serialize(LearningStatsSerializer, payload)

    @extend_schema(
        parameters=[USER_PARAM],
        request=OpenApiTypes.OBJECT,
        responses={200: DailyGoalResultSerializer, **ERROR_RESPONSES},
    )
    def post(self, request, domain_id: str) -> Response:
        """
        @param request DRF 요청 객체 (dailyGoal 본문).
        @param domain_id 도메인 ID.
        @returns 저장된 일일 목표 JSON.
        """
        update = parse_model(DailyGoalUpdate, request.data)
        service = dependencies.get_learn_service()
        payload = async_to_sync(service.set_daily_goal)(domain_id, _user_id(request), update.daily_goal)
        return _serialize(DailyGoalResultSerializer, payload)


class HealthCheckAPIView(APIView):
    """API 헬스체크 엔드포인트."""

    @extend_schema(summary="헬스체크", responses={200: HealthCheckSerializer})
    def get(self, request) -> Response:
        payload = {
            "status": "ok",
            "version": "1.0.0",
            "dag_store": learn_settings.DAG_STORE,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        return _serialize(HealthCheckSerializer, payload)
