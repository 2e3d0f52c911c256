"""
Tests for the pipeline event log.
"""

from patchway.core.events import EventLog
from patchway.models.events import EventType


class TestEventLog:
    """Tests for EventLog class."""

    def test_append_and_history(self, events):
        events.append(EventType.GOAL_ENQUEUED, thread_id="t1")
        events.append(EventType.GOAL_PLANNED, thread_id="t1", task_ids=["a"])

        history = events.history()
        assert [e.type for e in history] == [EventType.GOAL_ENQUEUED, EventType.GOAL_PLANNED]
        assert history[1].data["task_ids"] == ["a"]

    def test_filter_and_limit(self, events):
        for i in range(5):
            events.append(EventType.TASK_ENQUEUED, task_id=str(i))
        events.append(EventType.TASK_FAILED, task_id="x")

        assert len(events.history(EventType.TASK_ENQUEUED)) == 5
        assert [e.data["task_id"] for e in events.history(limit=2)] == ["4", "x"]
        assert events.history(limit=0) == []

    def test_bounded_history(self):
        events = EventLog(max_history=3)
        for i in range(5):
            events.append(EventType.TASK_ENQUEUED, task_id=str(i))
        assert [e.data["task_id"] for e in events.history()] == ["2", "3", "4"]

    def test_subscribe_and_unsubscribe(self, events):
        received = []
        unsubscribe = events.subscribe(received.append)

        events.append(EventType.MUTATIONS_APPLIED, patch_id="p1")
        unsubscribe()
        events.append(EventType.MUTATIONS_APPLIED, patch_id="p2")

        assert [e.data["patch_id"] for e in received] == ["p1"]

    def test_failing_subscriber_is_isolated(self, events):
        received = []

        def broken(event):
            raise RuntimeError("subscriber bug")

        events.subscribe(broken)
        events.subscribe(received.append)

        event = events.append(EventType.PATCH_APPROVED, patch_id="p1")

        assert received == [event]
        assert events.history() == [event]

    def test_clear(self, events):
        events.append(EventType.GOAL_ENQUEUED)
        events.clear()
        assert events.history() == []

    def test_summary_omits_ops(self, events):
        event = events.append(EventType.MUTATIONS_APPLIED, patch_id="p1", ops=[{"type": "add_edge"}])
        summary = event.to_summary()
        assert summary.startswith("[mutations_applied]")
        assert "patch_id=p1" in summary
        assert "add_edge" not in summary
