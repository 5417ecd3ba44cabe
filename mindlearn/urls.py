from django.urls import path

from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView, SpectacularSwaggerView

from mindlearn.learn_core.controller.learn_views import (
    DailyGoalAPIView,
    HealthCheckAPIView,
    LearnBranchAPIView,
    LearnHomeAPIView,
    LearnSectionEditAPIView,
    LearnSectionsAPIView,
    LessonAPIView,
    LessonNoImpressionAPIView,
    LessonPassAPIView,
    LessonResultAPIView,
    NodeResultAPIView,
)

API_PREFIXES = ("api",)

urlpatterns = []
for prefix in API_PREFIXES:
    # OpenAPI 스키마 및 문서
    urlpatterns.extend(
        [
            path(f"{prefix}/schema/", SpectacularAPIView.as_view(), name=f"schema-{prefix}"),
            path(
                f"{prefix}/docs/",
                SpectacularSwaggerView.as_view(url_name=f"schema-{prefix}"),
                name=f"swagger-ui-{prefix}",
            ),
            path(
                f"{prefix}/redoc/",
                SpectacularRedocView.as_view(url_name=f"schema-{prefix}"),
                name=f"redoc-{prefix}",
            ),
        ]
    )

    # 헬스체크 API
    urlpatterns.append(path(f"{prefix}/health/", HealthCheckAPIView.as_view(), name=f"health-check-{prefix}"))

    learn = f"{prefix}/d/<str:domain_id>/learn"

    # 학습 홈 / 섹션
    urlpatterns.append(path(learn, LearnHomeAPIView.as_view(), name=f"learn-home-{prefix}"))
    urlpatterns.append(path(f"{learn}/sections", LearnSectionsAPIView.as_view(), name=f"learn-sections-{prefix}"))
    urlpatterns.append(path(f"{learn}/sections/edit", LearnSectionEditAPIView.as_view()))
    urlpatterns.append(path(f"{learn}/branch", LearnBranchAPIView.as_view()))
    urlpatterns.append(path(f"{learn}/daily-goal", DailyGoalAPIView.as_view()))

    # 레슨
    urlpatterns.append(path(f"{learn}/lesson", LessonAPIView.as_view(), name=f"learn-lesson-{prefix}"))
    urlpatterns.append(path(f"{learn}/lesson/pass", LessonPassAPIView.as_view()))
    urlpatterns.append(path(f"{learn}/lesson/no-impression", LessonNoImpressionAPIView.as_view()))
    urlpatterns.append(path(f"{learn}/lesson/result/<str:result_id>", LessonResultAPIView.as_view()))
    urlpatterns.append(path(f"{learn}/node/<str:node_id>/result", NodeResultAPIView.as_view()))
