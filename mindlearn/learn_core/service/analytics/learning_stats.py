from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, Optional, Set

from mindlearn.learn_core.domain.learn_result import LearnResult
from mindlearn.learn_core.repository.learn_record_store import LearnRecordStore

DATE_FORMAT = "%Y-%m-%d"


def utc_date_key(moment: datetime) -> str:
    """
    @param {datetime} moment - 기준 시각 (naive면 UTC로 간주).
    @returns {str} UTC 기준 YYYY-MM-DD 문자열.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(DATE_FORMAT)


def practice_dates(results: Iterable[LearnResult]) -> Set[str]:
    """
    @param {Iterable[LearnResult]} results - 학습 결과 목록.
    @returns {Set[str]} 연습한 UTC 날짜 집합.
    """
    return {utc_date_key(result.created_at) for result in results}


def consecutive_days(dates: Set[str], today: date) -> int:
    """
    오늘부터 거꾸로 하루씩 확인하며 첫 공백에서 멈춥니다. 오늘 기록이 없으면 0입니다.

    @param {Set[str]} dates - 연습한 UTC 날짜 집합.
    @param {date} today - 기준 날짜 (UTC).
    @returns {int} 연속 학습 일수.
    """
    streak = 0
    cursor = today
    while cursor.strftime(DATE_FORMAT) in dates:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


class LearningStatsService:
    """연속 학습일/일일 목표 통계 서비스."""

    def __init__(self, record_store: LearnRecordStore, clock: Optional[Callable[[], datetime]] = None) -> None:
        """
        @param {LearnRecordStore} record_store - 학습 기록 저장소.
        @param {Optional[Callable[[], datetime]]} clock - 현재 시각 함수.
        @returns {None} 서비스를 초기화합니다.
        """
        self._record_store = record_store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def summarize(self, domain_id: str, user_id: str, daily_goal: int = 0) -> Dict[str, object]:
        """
        사용자 학습 통계를 요약합니다.

        @param {str} domain_id - 도메인 ID.
        @param {str} user_id - 사용자 ID.
        @param {int} daily_goal - 일일 목표 연습 수.
        @returns {Dict[str, object]} 연속일, 누적 출석일, 오늘 완료 수, 목표 달성 여부, 오늘 소비 통계.
        """
        now = self._clock()
        today_key = utc_date_key(now)
        today = datetime.strptime(today_key, DATE_FORMAT).date()
        results = await self._record_store.get_results(domain_id, user_id)
        dates = practice_dates(results)
        today_completed = sum(1 for result in results if utc_date_key(result.created_at) == today_key)
        consumption = await self._record_store.get_consumption_stats(domain_id, user_id, today_key)
        return {
            "date": today_key,
            "consecutive_days": consecutive_days(dates, today),
            "total_checkin_days": len(dates),
            "today_completed": today_completed,
            "daily_goal": daily_goal,
            "goal_met": daily_goal > 0 and today_completed >= daily_goal,
            "today_consumption": {
                "nodes": consumption.nodes if consumption else 0,
                "cards": consumption.cards if consumption else 0,
                "problems": consumption.problems if consumption else 0,
                "practices": consumption.practices if consumption else 0,
                "total_time": consumption.total_time if consumption else 0.0,
            },
        }
