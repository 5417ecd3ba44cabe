"""
=============================================================================
MindLearn Server - Django 설정 모듈 (Settings Module)
=============================================================================

이 모듈은 Django 프로젝트의 전체 설정을 관리합니다.
`pydantic-settings`를 활용하여 환경변수를 타입 안전하게 로드하고 검증합니다.
학습 엔진 자체의 동작 설정(`LEARN_*`)은 `learn_core/config/learn_settings.py`에 있습니다.

주요 환경변수:
    - `DJANGO_SECRET_KEY`: 보안 서명용 비밀키
    - `DJANGO_DEBUG`: 디버그 모드 활성화 여부 (운영 환경에서는 반드시 False)
    - `REDIS_URL`: 설정 시 DAG 캐시를 Redis에 저장
    - `LEARN_DAG_STORE`: `memory` 또는 `cache`
=============================================================================
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# -----------------------------------------------------------------------------
# 1. 환경변수 스키마 정의 (Pydantic Settings)
# -----------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent


class EnvSettings(BaseSettings):
    """
    환경변수 로딩 및 검증을 위한 Pydantic 모델.
    모든 환경변수는 이 클래스를 통해 접근해야 합니다.
    """

    # Django 핵심 설정
    DJANGO_SECRET_KEY: SecretStr = Field(
        default="django-insecure-dev-only-do-not-use-in-production",
        description="Django 시크릿 키",
    )
    DJANGO_DEBUG: bool = Field(default=False, description="디버그 모드")
    DJANGO_ALLOWED_HOSTS: List[str] = Field(
        default=["localhost", "127.0.0.1", "0.0.0.0", "testserver"],
        description="허용 호스트 목록",
    )

    # 데이터베이스 설정 (세션/인증 앱용)
    DATABASE_ENGINE: str = "django.db.backends.sqlite3"
    DATABASE_NAME: str = str(BASE_DIR / "db.sqlite3")
    DATABASE_USER: str = ""
    DATABASE_PASSWORD: str = ""
    DATABASE_HOST: str = ""
    DATABASE_PORT: str = ""
    DATABASE_CONN_MAX_AGE: int = 60

    # 캐시 (Redis) 설정
    REDIS_URL: str = ""
    CACHE_TIMEOUT: int = 300
    CACHE_MAX_ENTRIES: int = 1000

    # CORS 설정
    CORS_ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        description="CORS 허용 오리진",
    )

    # 보안 설정 (Prod)
    SECURE_SSL_REDIRECT: bool = False
    SECURE_HSTS_SECONDS: int = 31536000

    # 로깅
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )


# 설정 로드 (싱글톤)
try:
    env = EnvSettings()
except Exception as e:
    print("=================================================================")
    print(" [CRITICAL] 환경변수 설정 로드 실패")
    print(" .env 파일 또는 환경변수를 확인해주세요.")
    print(f" Error: {e}")
    print("=================================================================")
    sys.exit(1)


# -----------------------------------------------------------------------------
# 2. Django 설정 매핑
# -----------------------------------------------------------------------------
SECRET_KEY = env.DJANGO_SECRET_KEY.get_secret_value()
DEBUG = env.DJANGO_DEBUG
ALLOWED_HOSTS = env.DJANGO_ALLOWED_HOSTS

# -----------------------------------------------------------------------------
# 애플리케이션 정의
# -----------------------------------------------------------------------------
INSTALLED_APPS = [
    # Django 기본 앱
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # 서드파티 앱
    "rest_framework",
    "drf_spectacular",
    "corsheaders",

    # 프로젝트 앱
    "mindlearn.learn_core",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "mindlearn.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

WSGI_APPLICATION = "mindlearn.wsgi.application"
ASGI_APPLICATION = "mindlearn.asgi.application"

# -----------------------------------------------------------------------------
# 데이터베이스 설정
# -----------------------------------------------------------------------------
DATABASES = {
    "default": {
        "ENGINE": env.DATABASE_ENGINE,
        "NAME": env.DATABASE_NAME,
        "USER": env.DATABASE_USER,
        "PASSWORD": env.DATABASE_PASSWORD,
        "HOST": env.DATABASE_HOST,
        "PORT": env.DATABASE_PORT,
        "CONN_MAX_AGE": env.DATABASE_CONN_MAX_AGE,
    }
}

# -----------------------------------------------------------------------------
# 국제화 및 시간대 (연속 학습일은 UTC 기준으로 계산)
# -----------------------------------------------------------------------------
LANGUAGE_CODE = "ko-kr"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# -----------------------------------------------------------------------------
# 정적 파일 (Static Files)
# -----------------------------------------------------------------------------
STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -----------------------------------------------------------------------------
# CORS 설정
# -----------------------------------------------------------------------------
CORS_ALLOW_ALL_ORIGINS = DEBUG
CORS_ALLOWED_ORIGINS = env.CORS_ALLOWED_ORIGINS
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_METHODS = ["GET", "OPTIONS", "POST"]

# -----------------------------------------------------------------------------
# Django REST Framework
# -----------------------------------------------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "UNICODE_JSON": True,
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
        "rest_framework.parsers.FormParser",
    ],
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ] + (["rest_framework.renderers.BrowsableAPIRenderer"] if DEBUG else []),
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "UNAUTHENTICATED_USER": None,
    "EXCEPTION_HANDLER": "mindlearn.learn_core.controller.exception_handler.learn_exception_handler",
}

# -----------------------------------------------------------------------------
# OpenAPI (Swagger) 설정
# -----------------------------------------------------------------------------
SPECTACULAR_SETTINGS = {
    "TITLE": "MindLearn API",
    "DESCRIPTION": "학습 DAG 및 진행 엔진 REST API 문서 (Generated by drf-spectacular)",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "COMPONENT_SPLIT_REQUEST": True,
}

# -----------------------------------------------------------------------------
# 로깅 (Logging)
# -----------------------------------------------------------------------------
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "[{asctime}] {levelname} {name} {module}:{lineno} - {message}",
            "style": "{",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "simple": {
            "format": "[{asctime}] {levelname} {message}",
            "style": "{",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "json": {
            "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "level": "DEBUG",
            "class": "logging.StreamHandler",
            "formatter": "verbose" if DEBUG else "simple",
            "stream": sys.stdout,
        },
    },
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "mindlearn.learn_core": {"handlers": ["console"], "level": env.LOG_LEVEL, "propagate": False},
        "": {"handlers": ["console"], "level": env.LOG_LEVEL},
    },
}

if env.LOG_TO_FILE:
    (BASE_DIR / "logs").mkdir(exist_ok=True)
    LOGGING["handlers"]["file"] = {
        "level": "INFO",
        "class": "logging.handlers.RotatingFileHandler",
        "filename": BASE_DIR / "logs" / "mindlearn.log",
        "maxBytes": 10 * 1024 * 1024,
        "backupCount": 5,
        "formatter": "json",
    }
    LOGGING["loggers"]["mindlearn.learn_core"]["handlers"].append("file")

# -----------------------------------------------------------------------------
# 캐시 설정 (LEARN_DAG_STORE=cache 일 때 DAG 문서 저장소)
# -----------------------------------------------------------------------------
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "mindlearn-dag",
        "TIMEOUT": env.CACHE_TIMEOUT,
        "OPTIONS": {"MAX_ENTRIES": env.CACHE_MAX_ENTRIES},
    }
}

if env.REDIS_URL:
    CACHES["default"] = {
        "BACKEND": "django_redis.cache.RedisCache",
        "LOCATION": env.REDIS_URL,
        "TIMEOUT": env.CACHE_TIMEOUT,
        "OPTIONS": {"CLIENT_CLASS": "django_redis.client.DefaultClient"},
    }

# -----------------------------------------------------------------------------
# 운영 환경 보안 설정
# -----------------------------------------------------------------------------
if not DEBUG:
    SECURE_SSL_REDIRECT = env.SECURE_SSL_REDIRECT
    SECURE_HSTS_SECONDS = env.SECURE_HSTS_SECONDS
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_CONTENT_TYPE_NOSNIFF = True
    SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
