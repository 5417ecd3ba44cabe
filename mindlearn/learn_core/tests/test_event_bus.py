import unittest

from mindlearn.learn_core.service.learn.events import RESULT_ADDED, InMemoryEventBus


class EventBusTests(unittest.TestCase):
    def test_publish_reaches_subscribers(self) -> None:
        bus = InMemoryEventBus()
        received = []
        bus.subscribe(RESULT_ADDED, received.append)

        bus.publish(RESULT_ADDED, "d1")

        self.assertEqual(received, ["d1"])
        self.assertEqual(bus.published, [(RESULT_ADDED, ("d1",))])

    def test_failing_subscriber_is_logged_not_raised(self) -> None:
        """
        구독자 오류가 발행자에게 전파되지 않고 로그로 남는지 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        bus = InMemoryEventBus()
        received = []

        def broken(domain_id: str) -> None:
            raise RuntimeError("ranking refresh failed")

        bus.subscribe(RESULT_ADDED, broken)
        bus.subscribe(RESULT_ADDED, received.append)

        with self.assertLogs("mindlearn.learn_core.service.learn.events", level="ERROR"):
            bus.publish(RESULT_ADDED, "d1")
        self.assertEqual(received, ["d1"])

    def test_dispose_unsubscribes(self) -> None:
        bus = InMemoryEventBus()
        received = []
        dispose = bus.subscribe(RESULT_ADDED, received.append)
        dispose()
        bus.publish(RESULT_ADDED, "d1")
        self.assertEqual(received, [])


if __name__ == "__main__":
    unittest.main()
