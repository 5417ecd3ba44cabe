import unittest
from datetime import datetime, timezone

from mindlearn.learn_core.common.errors import NotFoundError, StateConflictError, ValidationError
from mindlearn.learn_core.config.learn_settings import LearnSettings
from mindlearn.learn_core.domain.card import Card
from mindlearn.learn_core.domain.content_base import BranchGraph, ContentBase
from mindlearn.learn_core.domain.graph_node import GraphNode
from mindlearn.learn_core.repository.content_store import InMemoryContentStore
from mindlearn.learn_core.repository.learn_record_store import InMemoryLearnRecordStore
from mindlearn.learn_core.repository.mock_data import DEMO_DOMAIN_ID, seed_demo_content
from mindlearn.learn_core.repository.user_state_store import InMemoryUserStateStore
from mindlearn.learn_core.service.learn.events import RESULT_ADDED, InMemoryEventBus
from mindlearn.learn_core.service.learn.progression import LearnProgressionService
from mindlearn.learn_core.service.learn.schemas import PassSubmission, SectionOrderUpdate

NOW = datetime(2024, 5, 10, 9, tzinfo=timezone.utc)
FAST_RETRY = {"STATE_RETRY_MIN_WAIT": 0, "STATE_RETRY_MAX_WAIT": 0}

VARIABLES_1 = "64b7f0c2a1d3e4f5a6b7c901"
VARIABLES_2 = "64b7f0c2a1d3e4f5a6b7c902"
LOOPS_1 = "64b7f0c2a1d3e4f5a6b7c903"
LISTS_READING = "64b7f0c2a1d3e4f5a6b7c904"
LISTS_1 = "64b7f0c2a1d3e4f5a6b7c905"

CARD_A = "a" * 24
CARD_B = "b" * 24


def _submission(*answers, total_time: float = 1000) -> PassSubmission:
    history = list(answers) or [{"problemId": "p1", "timeSpent": 1000, "correct": True}]
    return PassSubmission.model_validate({"answerHistory": history, "totalTime": total_time})


class FlakyStateStore(InMemoryUserStateStore):
    """지정한 횟수만큼 동시 갱신 충돌을 흉내 내는 상태 저장소."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures

    async def set_user_state(self, domain_id, user_id, patch, expected_revision=None):
        if self.failures > 0:
            self.failures -= 1
            raise StateConflictError("simulated concurrent write")
        return await super().set_user_state(domain_id, user_id, patch, expected_revision=expected_revision)


class ProgressionTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.content = InMemoryContentStore()
        seed_demo_content(self.content)
        self.states = InMemoryUserStateStore()
        self.records = InMemoryLearnRecordStore()
        self.bus = InMemoryEventBus()
        self.service = self._service(self.states)

    def _service(self, states, **settings) -> LearnProgressionService:
        return LearnProgressionService(
            self.content,
            states,
            self.records,
            publisher=self.bus,
            settings=LearnSettings(**{**FAST_RETRY, **settings}),
            clock=lambda: NOW,
        )

    async def _pass(self, user_id: str = "u1", **kwargs):
        return await self.service.post_pass(DEMO_DOMAIN_ID, user_id, _submission(), **kwargs)


class LearnHomeTests(ProgressionTestCase):
    async def test_first_visit_selects_and_persists_section_zero(self) -> None:
        """
        첫 방문 시 0번 섹션을 고르고 진행 위치와 함께 저장하는지 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        home = await self.service.get_learn_home(DEMO_DOMAIN_ID, "u1")

        self.assertEqual(home["current_section_index"], 0)
        self.assertEqual(home["current_section_id"], "syntax")
        self.assertEqual([section["node_id"] for section in home["sections"]], ["syntax", "collections"])
        self.assertEqual(home["total_cards"], 3)
        self.assertEqual(home["current_progress"], 0)
        self.assertEqual(home["next_card"], {"node_id": "variables", "card_id": VARIABLES_1})
        self.assertEqual([node["node_id"] for node in home["dag"]], ["variables", "loops"])
        unlocked = [card["unlocked"] for node in home["dag"] for card in node["cards"]]
        self.assertEqual(unlocked, [True, False, False])

        state = await self.states.get_user_state(DEMO_DOMAIN_ID, "u1")
        self.assertEqual((state.current_section_index, state.current_section_id), (0, "syntax"))
        self.assertEqual((state.learn_progress_position, state.learn_progress_total), (0, 2))

    async def test_saved_section_is_read_without_writing(self) -> None:
        await self.service.get_learn_home(DEMO_DOMAIN_ID, "u1", section_id="collections")
        writes = self.states.writes

        home = await self.service.get_learn_home(DEMO_DOMAIN_ID, "u1")

        self.assertEqual(home["current_section_id"], "collections")
        self.assertEqual(home["next_card"]["card_id"], LISTS_1)
        self.assertEqual(self.states.writes, writes)

    async def test_explicit_selection_errors(self) -> None:
        with self.assertRaises(ValidationError):
            await self.service.get_learn_home(DEMO_DOMAIN_ID, "u1", section_index=5)
        with self.assertRaises(NotFoundError):
            await self.service.get_learn_home(DEMO_DOMAIN_ID, "u1", section_id="nope")

    async def test_unknown_domain(self) -> None:
        with self.assertRaises(NotFoundError):
            await self.service.get_learn_home("nope", "u1")

    async def test_sections_overview(self) -> None:
        await self._pass(card_id=VARIABLES_1)

        overview = await self.service.get_sections(DEMO_DOMAIN_ID, "u1")

        summaries = {section["node_id"]: section for section in overview["sections"]}
        self.assertEqual(summaries["syntax"]["total_cards"], 3)
        self.assertEqual(summaries["syntax"]["passed_cards"], 1)
        self.assertEqual(summaries["collections"]["total_cards"], 3)
        self.assertEqual([node["node_id"] for node in overview["dag"]][:2], ["variables", "loops"])
        self.assertEqual(len(overview["dag"]), 4)
        self.assertEqual(overview["current_section_index"], 0)

    async def test_sections_overview_persists_first_section(self) -> None:
        overview = await self.service.get_sections(DEMO_DOMAIN_ID, "u2")

        self.assertEqual(overview["current_section_index"], 0)
        state = await self.states.get_user_state(DEMO_DOMAIN_ID, "u2")
        self.assertEqual((state.current_section_index, state.current_section_id), (0, "syntax"))
        self.assertEqual(state.learn_progress_total, 2)


class PostPassTests(ProgressionTestCase):
    async def test_passing_every_card_advances_section(self) -> None:
        """
        섹션의 마지막 카드를 통과하면 다음 섹션으로 넘어가는지 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        first = await self._pass()
        self.assertEqual(first["card_id"], VARIABLES_1)
        self.assertEqual(first["score"], 5)
        self.assertEqual(first["next"], "lesson_result")
        self.assertFalse(first["section_advanced"])

        second = await self._pass()
        self.assertEqual(second["card_id"], VARIABLES_2)

        last = await self._pass()
        self.assertEqual(last["card_id"], LOOPS_1)
        self.assertEqual(last["next"], "learn")
        self.assertTrue(last["section_advanced"])
        self.assertEqual((last["current_section_index"], last["current_section_id"]), (1, "collections"))

        state = await self.states.get_user_state(DEMO_DOMAIN_ID, "u1")
        self.assertEqual(state.learn_progress_position, 1)
        home = await self.service.get_learn_home(DEMO_DOMAIN_ID, "u1")
        self.assertEqual(home["next_card"]["card_id"], LISTS_1)
        self.assertEqual(home["today_completed"], 3)
        self.assertEqual(home["consecutive_days"], 1)

    async def test_pass_records_progress_result_stats_and_event(self) -> None:
        outcome = await self._pass(card_id=VARIABLES_1)

        self.assertEqual(await self.records.get_passed_card_ids(DEMO_DOMAIN_ID, "u1"), {VARIABLES_1})
        result = await self.records.get_result_by_id(DEMO_DOMAIN_ID, "u1", outcome["result_id"])
        self.assertEqual(result.node_id, "variables")
        self.assertEqual(result.created_at, NOW)
        stats = await self.records.get_consumption_stats(DEMO_DOMAIN_ID, "u1", "2024-05-10")
        self.assertEqual((stats.nodes, stats.cards, stats.problems, stats.practices), (1, 1, 1, 1))
        self.assertEqual(stats.total_time, 1000)
        self.assertEqual(self.bus.published, [(RESULT_ADDED, (DEMO_DOMAIN_ID,))])

    async def test_passing_twice_keeps_first_pass(self) -> None:
        await self._pass(card_id=VARIABLES_1)
        await self._pass(card_id=VARIABLES_1)

        results = await self.records.get_results(DEMO_DOMAIN_ID, "u1")
        self.assertEqual(len(results), 2)
        self.assertEqual(await self.records.get_passed_card_ids(DEMO_DOMAIN_ID, "u1"), {VARIABLES_1})

    async def test_invalid_submission_mode(self) -> None:
        with self.assertRaises(ValidationError):
            await self._pass(mode="weekly")
        self.assertEqual(await self.records.get_results(DEMO_DOMAIN_ID, "u1"), [])


class SectionZeroGuardTests(unittest.IsolatedAsyncioTestCase):
    async def test_section_zero_without_practice_does_not_advance(self) -> None:
        """
        0번 섹션에 연습 카드가 없으면 통과 후에도 다음 섹션으로 넘어가지 않습니다.

        @returns {None} 테스트만 수행합니다.
        """
        content = InMemoryContentStore()
        content.put_base(
            ContentBase(
                base_id="b1",
                domain_id="d1",
                title="guard",
                nodes=[
                    GraphNode("r", "R", level=0),
                    GraphNode("a", "A", level=1, order=1, parent_id="r"),
                    GraphNode("b", "B", level=1, order=2, parent_id="r"),
                ],
                update_at=NOW,
            )
        )
        content.add_card("d1", "b1", Card(CARD_A, "a", title="reading"))
        content.add_card("d1", "b1", Card(CARD_B, "b", title="quiz", problems=[{"pid": "p1"}]))
        states = InMemoryUserStateStore()
        service = LearnProgressionService(
            content, states, InMemoryLearnRecordStore(), settings=LearnSettings(**FAST_RETRY), clock=lambda: NOW
        )

        outcome = await service.post_pass("d1", "u1", _submission(), card_id=CARD_B)

        self.assertEqual(outcome["next"], "lesson_result")
        self.assertFalse(outcome["section_advanced"])
        self.assertIsNone((await states.get_user_state("d1", "u1")).current_section_index)


class AlonePracticeTests(ProgressionTestCase):
    async def test_alone_lesson(self) -> None:
        lesson = await self.service.get_lesson(DEMO_DOMAIN_ID, "u1", card_id=LISTS_1)

        self.assertEqual(lesson["card"]["card_id"], LISTS_1)
        self.assertEqual(lesson["node_id"], "lists")
        self.assertEqual(lesson["node_title"], "리스트")
        self.assertEqual([card["card_id"] for card in lesson["node_cards"]], [LISTS_READING, LISTS_1])
        self.assertEqual(lesson["current_index"], 1)
        self.assertIsNone(lesson["mode"])

    async def test_alone_validation(self) -> None:
        """
        단독 연습 카드 ID 형식, 존재 여부, 문제 유무, 브랜치 소속을 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        self.content.add_card(DEMO_DOMAIN_ID, "other", Card(CARD_B, "ghost", problems=[{"pid": "p1"}]))

        with self.assertRaises(ValidationError):
            await self.service.get_lesson(DEMO_DOMAIN_ID, "u1", card_id="not-a-card")
        with self.assertRaises(NotFoundError):
            await self.service.get_lesson(DEMO_DOMAIN_ID, "u1", card_id=CARD_A)
        with self.assertRaises(NotFoundError):
            await self.service.get_lesson(DEMO_DOMAIN_ID, "u1", card_id=LISTS_READING)
        with self.assertRaises(NotFoundError):
            await self.service.get_lesson(DEMO_DOMAIN_ID, "u1", card_id=CARD_B)


class TodayModeTests(ProgressionTestCase):
    async def test_today_cursor_walks_section_queue(self) -> None:
        lesson = await self.service.get_lesson(DEMO_DOMAIN_ID, "u1", mode="today")
        self.assertEqual((lesson["card"]["card_id"], lesson["position"], lesson["total"]), (VARIABLES_1, 0, 3))

        self.assertEqual((await self._pass(mode="today"))["next"], "lesson")
        lesson = await self.service.get_lesson(DEMO_DOMAIN_ID, "u1", mode="today")
        self.assertEqual((lesson["card"]["card_id"], lesson["position"]), (VARIABLES_2, 1))

        await self._pass(mode="today")
        finished = await self._pass(mode="today")

        self.assertEqual(finished["card_id"], LOOPS_1)
        self.assertEqual(finished["next"], "lesson_result")
        state = await self.states.get_user_state(DEMO_DOMAIN_ID, "u1")
        self.assertIsNone(state.lesson_mode)
        self.assertEqual(state.lesson_card_index, 0)

    async def test_switching_section_restarts_today_cursor(self) -> None:
        await self._pass(mode="today")
        await self._pass(mode="today")

        await self.service.get_learn_home(DEMO_DOMAIN_ID, "u1", section_index=1)
        lesson = await self.service.get_lesson(DEMO_DOMAIN_ID, "u1", mode="today")

        self.assertEqual((lesson["card"]["card_id"], lesson["position"], lesson["total"]), (LISTS_1, 0, 2))

    async def test_card_must_match_cursor(self) -> None:
        await self._pass(mode="today")

        with self.assertRaises(ValidationError):
            await self._pass(mode="today", card_id=LOOPS_1)
        self.assertEqual(await self.records.get_passed_card_ids(DEMO_DOMAIN_ID, "u1"), {VARIABLES_1})


class NodeModeTests(ProgressionTestCase):
    async def test_node_lesson_then_review_queue(self) -> None:
        """
        노드 카드를 모두 푼 뒤 복습 대기열을 FIFO로 소비하고 노드 결과로 끝나는지 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        queued = await self.service.mark_no_impression(DEMO_DOMAIN_ID, "u1", LISTS_1)
        self.assertEqual(queued["review_queue"], [LISTS_1])
        again = await self.service.mark_no_impression(DEMO_DOMAIN_ID, "u1", LISTS_1)
        self.assertEqual(again["review_queue"], [LISTS_1])

        lesson = await self.service.get_lesson(DEMO_DOMAIN_ID, "u1", mode="node", node_id="variables")
        self.assertEqual((lesson["card"]["card_id"], lesson["total"]), (VARIABLES_1, 2))

        first = await self._pass(mode="node", node_id="variables")
        self.assertEqual((first["next"], first["next_node_id"]), ("lesson", "variables"))
        second = await self._pass(mode="node")
        self.assertEqual(second["card_id"], VARIABLES_2)
        self.assertEqual(second["next"], "lesson")

        review = await self.service.get_lesson(DEMO_DOMAIN_ID, "u1", mode="node")
        self.assertTrue(review["from_review"])
        self.assertEqual((review["card"]["card_id"], review["node_id"]), (LISTS_1, "lists"))

        last = await self._pass(mode="node")
        self.assertEqual(last["card_id"], LISTS_1)
        self.assertEqual((last["next"], last["next_node_id"]), ("node_result", "variables"))
        state = await self.states.get_user_state(DEMO_DOMAIN_ID, "u1")
        self.assertEqual(state.review_queue, [])
        self.assertIsNone(state.lesson_mode)

    async def test_node_id_required_and_known(self) -> None:
        with self.assertRaises(ValidationError):
            await self.service.get_lesson(DEMO_DOMAIN_ID, "u1", mode="node")
        with self.assertRaises(NotFoundError):
            await self.service.get_lesson(DEMO_DOMAIN_ID, "u1", mode="node", node_id="nope")

    async def test_unknown_review_card(self) -> None:
        with self.assertRaises(NotFoundError):
            await self.service.mark_no_impression(DEMO_DOMAIN_ID, "u1", CARD_A)


class ResultTests(ProgressionTestCase):
    async def test_problem_stats(self) -> None:
        answers = [
            {"problemId": "p1", "timeSpent": 1000, "attempts": 2, "correct": False},
            {"problemId": "p1", "timeSpent": 500, "attempts": 3, "correct": True},
        ]
        outcome = await self.service.post_pass(
            DEMO_DOMAIN_ID, "u1", _submission(*answers, total_time=1500), card_id=VARIABLES_2
        )
        self.assertEqual(outcome["score"], 10)

        result = await self.service.get_result(DEMO_DOMAIN_ID, "u1", outcome["result_id"])

        self.assertEqual(result["node_title"], "변수와 자료형")
        self.assertEqual(result["answer_count"], 2)
        p1, p2 = result["problem_stats"]
        self.assertEqual((p1["problem_id"], p1["attempts"], p1["time_spent"], p1["correct"]), ("p1", 3, 1500, True))
        self.assertEqual((p2["problem_id"], p2["attempts"], p2["time_spent"], p2["correct"]), ("p2", 1, 0, False))

        stats = await self.records.get_consumption_stats(DEMO_DOMAIN_ID, "u1", "2024-05-10")
        self.assertEqual(stats.problems, 1)

    async def test_missing_result(self) -> None:
        with self.assertRaises(NotFoundError):
            await self.service.get_result(DEMO_DOMAIN_ID, "u1", "nope")

    async def test_node_result(self) -> None:
        await self._pass(card_id=VARIABLES_1)
        await self._pass(card_id=LOOPS_1)

        summary = await self.service.get_node_result(DEMO_DOMAIN_ID, "u1", "syntax")

        self.assertEqual(summary["total_cards"], 3)
        self.assertEqual(summary["passed_cards"], 2)
        self.assertEqual(summary["practices"], 2)
        self.assertEqual(summary["total_time"], 2000)
        with self.assertRaises(NotFoundError):
            await self.service.get_node_result(DEMO_DOMAIN_ID, "u1", "nope")


class UserSettingsTests(ProgressionTestCase):
    async def test_daily_goal(self) -> None:
        self.assertEqual((await self.service.set_daily_goal(DEMO_DOMAIN_ID, "u1", 10))["daily_goal"], 10)
        for invalid in (-1, 501, True):
            with self.assertRaises(ValidationError):
                await self.service.set_daily_goal(DEMO_DOMAIN_ID, "u1", invalid)

        stats = await self.service.get_stats(DEMO_DOMAIN_ID, "u1")
        self.assertEqual(stats["daily_goal"], 10)
        self.assertFalse(stats["goal_met"])

    async def test_section_order(self) -> None:
        """
        사용자 섹션 순서를 저장하면 홈의 섹션 순서와 현재 섹션이 바뀌는지 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        saved = await self.service.save_section_order(
            DEMO_DOMAIN_ID,
            "u1",
            SectionOrderUpdate(sectionOrder=["collections", "syntax"], currentLearnSectionIndex=0),
        )
        self.assertEqual(saved["section_order"], ["collections", "syntax"])
        self.assertEqual(saved["current_section_id"], "collections")

        home = await self.service.get_learn_home(DEMO_DOMAIN_ID, "u1")
        self.assertEqual([section["node_id"] for section in home["sections"]], ["collections", "syntax"])
        self.assertEqual(home["next_card"]["card_id"], LISTS_1)

        with self.assertRaises(ValidationError):
            await self.service.save_section_order(
                DEMO_DOMAIN_ID, "u1", SectionOrderUpdate(sectionOrder=["syntax"], currentLearnSectionIndex=1)
            )

    async def test_branch_selection_resets_cursor(self) -> None:
        self.content.put_base(
            ContentBase(
                base_id="b1",
                domain_id="d1",
                title="branches",
                nodes=[GraphNode("r", "R", level=0), GraphNode("m", "M", level=1, parent_id="r")],
                branch_data={
                    "dev": BranchGraph(
                        nodes=[GraphNode("r", "R", level=0), GraphNode("x", "X", level=1, parent_id="r")]
                    )
                },
                branches=["main", "dev"],
                update_at=NOW,
            )
        )
        self.content.add_card("d1", "b1", Card(CARD_A, "x", problems=[{"pid": "p1"}]))
        await self.service.get_learn_home("d1", "u1")

        selected = await self.service.set_learn_branch("d1", "u1", "dev")
        self.assertEqual(selected["branches"], ["main", "dev"])
        state = await self.states.get_user_state("d1", "u1")
        self.assertEqual(state.learn_branch, "dev")
        self.assertIsNone(state.current_section_index)

        home = await self.service.get_learn_home("d1", "u1")
        self.assertEqual(home["branch"], "dev")
        self.assertEqual(home["current_section_id"], "x")
        self.assertEqual(home["next_card"]["card_id"], CARD_A)

        with self.assertRaises(ValidationError):
            await self.service.set_learn_branch("d1", "u1", "nope")


class ConcurrencyTests(ProgressionTestCase):
    async def test_conflict_is_retried(self) -> None:
        states = FlakyStateStore(failures=1)
        service = self._service(states)

        with self.assertLogs("mindlearn.learn_core.service.learn.progression", level="WARNING"):
            home = await service.get_learn_home(DEMO_DOMAIN_ID, "u1")

        self.assertEqual(home["current_section_id"], "syntax")
        self.assertEqual((await states.get_user_state(DEMO_DOMAIN_ID, "u1")).current_section_index, 0)

    async def test_conflict_gives_up_after_max_retries(self) -> None:
        service = self._service(FlakyStateStore(failures=10), STATE_MAX_RETRIES=2)

        with self.assertRaises(StateConflictError):
            await service.set_daily_goal(DEMO_DOMAIN_ID, "u1", 3)


if __name__ == "__main__":
    unittest.main()
