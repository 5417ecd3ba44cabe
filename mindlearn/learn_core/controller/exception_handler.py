from __future__ import annotations

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from mindlearn.learn_core.common.errors import LearnError

logger = logging.getLogger(__name__)


def learn_exception_handler(exc, context):
    """
    학습 엔진 오류를 `{"error", "message"}` JSON으로 바꾸고 나머지는 DRF 기본 처리기에 넘깁니다.

    @param {Exception} exc - 발생한 예외.
    @param {dict} context - DRF 예외 처리 컨텍스트.
    @returns {Optional[Response]} 오류 응답 또는 None.
    """
    if isinstance(exc, LearnError):
        if exc.status_code >= 500:
            logger.error("Learn request failed: %s", exc.message)
        else:
            logger.info("Learn request rejected: %s %s", type(exc).__name__, exc.message)
        return Response({"error": type(exc).__name__, "message": exc.message}, status=exc.status_code)
    return exception_handler(exc, context)
