"""
학습 엔진 설정 모듈.

`pydantic-settings`로 `LEARN_` 접두사 환경변수를 읽어 엔진 동작을 조정합니다.
Django 설정과 분리되어 있어 서비스 계층은 Django 없이도 동작합니다.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LearnSettings(BaseSettings):
    """학습 DAG/진행 엔진 설정."""

    DEFAULT_BRANCH: str = "main"
    SECTION_CARD_ROLLUP: bool = Field(
        default=False,
        description="섹션 카드 목록에 하위 트리 카드를 모두 포함할지 여부",
    )

    # 사용자 상태 CAS 재시도
    STATE_MAX_RETRIES: int = Field(default=3, ge=1)
    STATE_RETRY_MIN_WAIT: float = Field(default=0.05, ge=0)
    STATE_RETRY_MAX_WAIT: float = Field(default=1.0, ge=0)

    DAILY_GOAL_MAX: int = Field(default=500, ge=1)

    # DAG 캐시 저장소
    DAG_STORE: Literal["memory", "cache"] = "memory"
    DAG_CACHE_TIMEOUT: Optional[int] = None

    model_config = SettingsConfigDict(
        env_prefix="LEARN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )


learn_settings = LearnSettings()
