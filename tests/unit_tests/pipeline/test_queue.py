import pytest

from tierlog.exceptions import PipelineConfigurationError, QueueConfigurationError
from tierlog.pipeline.queue import EntryQueue
from tierlog.pipeline.types import LogEntry, LogLevel, LogType


def _entry(message: str) -> LogEntry:
    return LogEntry(level=LogLevel.INFO, message=message, log_type=LogType.REQUEST)


def _messages(entries) -> list[str]:
    return [entry.message for entry in entries]


class TestEntryQueue:
    def test_enqueue_returns_size_and_keeps_order(self):
        queue = EntryQueue(capacity=10)
        assert queue.enqueue(_entry("A")) == 1
        assert queue.enqueue(_entry("B")) == 2
        assert queue.enqueue(_entry("C")) == 3

        assert queue.size == len(queue) == 3
        assert queue.peek().message == "A"
        assert _messages(queue) == ["A", "B", "C"]

    def test_drain_all_is_atomic(self):
        queue = EntryQueue(capacity=10)
        for message in "ABC":
            queue.enqueue(_entry(message))

        drained = queue.drain_all()

        assert _messages(drained) == ["A", "B", "C"]
        assert queue.is_empty()
        assert queue.drain_all() == []

    def test_full_queue_drops_new_entries(self):
        queue = EntryQueue(capacity=2)
        queue.enqueue(_entry("A"))
        queue.enqueue(_entry("B"))

        assert queue.enqueue(_entry("C")) == 2
        assert queue.dropped == 1
        assert _messages(queue) == ["A", "B"]

    def test_requeue_puts_failed_batch_in_front(self):
        queue = EntryQueue(capacity=10)
        for message in "ABC":
            queue.enqueue(_entry(message))
        batch = queue.drain_all()
        queue.enqueue(_entry("D"))  # arrived while the push was in flight

        assert queue.requeue(batch) == 0
        assert _messages(queue) == ["A", "B", "C", "D"]

    def test_requeue_keeps_oldest_up_to_capacity(self):
        queue = EntryQueue(capacity=3)
        batch = [_entry(message) for message in "ABCDE"]

        discarded = queue.requeue(batch)

        assert discarded == 2
        assert queue.dropped == 2
        assert _messages(queue) == ["A", "B", "C"]

    @pytest.mark.parametrize("capacity", [0, -1])
    def test_non_positive_capacity_rejected(self, capacity):
        with pytest.raises(QueueConfigurationError) as exc_info:
            EntryQueue(capacity=capacity)
        assert isinstance(exc_info.value, PipelineConfigurationError)
        assert exc_info.value.details == {"capacity": capacity}
