import unittest
from datetime import date, datetime, timedelta, timezone

from mindlearn.learn_core.domain.learn_result import LearnResult
from mindlearn.learn_core.repository.learn_record_store import InMemoryLearnRecordStore
from mindlearn.learn_core.service.analytics.learning_stats import (
    LearningStatsService,
    consecutive_days,
    practice_dates,
    utc_date_key,
)

NOW = datetime(2024, 5, 10, 12, tzinfo=timezone.utc)


def _result(result_id: str, created_at: datetime) -> LearnResult:
    return LearnResult(
        result_id=result_id,
        domain_id="d1",
        user_id="u1",
        card_id="c1",
        node_id="n1",
        answer_history=[],
        total_time=0,
        score=0,
        created_at=created_at,
    )


class StreakTests(unittest.TestCase):
    def test_streak_stops_at_first_gap(self) -> None:
        """
        오늘부터 거꾸로 세다가 첫 공백에서 멈추는지 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        dates = {"2024-05-10", "2024-05-09", "2024-05-08", "2024-05-06"}
        self.assertEqual(consecutive_days(dates, date(2024, 5, 10)), 3)

    def test_no_practice_today_means_zero(self) -> None:
        self.assertEqual(consecutive_days({"2024-05-09", "2024-05-08"}, date(2024, 5, 10)), 0)

    def test_dates_use_utc(self) -> None:
        seoul = timezone(timedelta(hours=9))
        moment = datetime(2024, 5, 11, 2, tzinfo=seoul)
        self.assertEqual(utc_date_key(moment), "2024-05-10")
        self.assertEqual(utc_date_key(datetime(2024, 5, 10, 23, 59)), "2024-05-10")
        self.assertEqual(practice_dates([_result("r1", moment), _result("r2", NOW)]), {"2024-05-10"})


class LearningStatsServiceTests(unittest.IsolatedAsyncioTestCase):
    async def test_summary(self) -> None:
        store = InMemoryLearnRecordStore()
        for index, created_at in enumerate([NOW, NOW - timedelta(hours=1), NOW - timedelta(days=1), NOW - timedelta(days=3)]):
            await store.add_result(_result(f"r{index}", created_at))
        await store.inc_consumption_stats("d1", "u1", "2024-05-10", {"cards": 2, "practices": 2}, NOW)

        summary = await LearningStatsService(store, clock=lambda: NOW).summarize("d1", "u1", daily_goal=2)

        self.assertEqual(summary["consecutive_days"], 2)
        self.assertEqual(summary["total_checkin_days"], 3)
        self.assertEqual(summary["today_completed"], 2)
        self.assertTrue(summary["goal_met"])
        self.assertEqual(summary["today_consumption"]["cards"], 2)

    async def test_goal_zero_is_never_met(self) -> None:
        summary = await LearningStatsService(InMemoryLearnRecordStore(), clock=lambda: NOW).summarize("d1", "u1")
        self.assertFalse(summary["goal_met"])
        self.assertEqual(summary["consecutive_days"], 0)
        self.assertEqual(summary["today_consumption"]["practices"], 0)


if __name__ == "__main__":
    unittest.main()
