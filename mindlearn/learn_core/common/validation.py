from __future__ import annotations

from typing import Any, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from mindlearn.learn_core.common.errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_model(model_cls: Type[ModelT], payload: Any) -> ModelT:
    """
    pydantic 모델 검증 실패를 학습 엔진 ValidationError로 바꿉니다.

    @param {Type[ModelT]} model_cls - 검증할 pydantic 모델 클래스.
    @param {Any} payload - 요청 본문 등 원본 데이터.
    @returns {ModelT} 검증된 모델 인스턴스.
    """
    if payload is None:
        payload = {}
    try:
        return model_cls.model_validate(payload)
    except PydanticValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        detail = first.get("msg", "invalid payload")
        message = f"{location}: {detail}" if location else detail
        raise ValidationError(message) from exc
