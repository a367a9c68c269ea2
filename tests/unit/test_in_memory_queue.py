"""
Unit tests for the in-memory queue.

This module tests the delivery semantics the consumers rely on: visibility
windows, receipt handles, receive counting, redrive and retention.
"""

import pytest

from service.dal import QueueHandler
from service.dal.in_memory_queue import MAX_MESSAGE_SIZE_BYTES, InMemoryQueue
from service.handlers.utils.errors import EnqueueRejectedError, InvalidReceiptHandleError, QueueError


class TestSendMessage:
    """Test cases for enqueueing."""

    def test_send_stores_body_verbatim(self, channel_queue, message_attributes):
        """Test that the delivered body is byte-identical to the enqueued one."""
        body = '{"message": "hello world", "nested": {"ünïcode": [1, 2]}}'

        message_id = channel_queue.send_message(body, message_attributes)
        [delivery] = channel_queue.receive_messages()

        assert delivery.message_id == message_id
        assert delivery.body == body
        assert delivery.attributes == message_attributes
        assert delivery.receive_count == 1

    def test_non_json_body_accepted(self, channel_queue, message_attributes):
        """Test that the queue does not validate the payload."""
        channel_queue.send_message("not json at all", message_attributes)

        assert channel_queue.approximate_number_of_messages() == 1

    def test_empty_body_rejected(self, channel_queue, message_attributes):
        with pytest.raises(EnqueueRejectedError) as exc_info:
            channel_queue.send_message("", message_attributes)

        assert exc_info.value.error_code == "ENQUEUE_REJECTED"
        assert channel_queue.approximate_number_of_messages() == 0

    def test_oversized_body_rejected(self, channel_queue, message_attributes):
        with pytest.raises(EnqueueRejectedError):
            channel_queue.send_message("x" * (MAX_MESSAGE_SIZE_BYTES + 1), message_attributes)

    def test_satisfies_queue_handler_protocol(self, channel_queue):
        assert isinstance(channel_queue, QueueHandler)
        assert channel_queue.health_check()["status"] == "healthy"


class TestVisibility:
    """Test cases for visibility windows and receipt handles."""

    def test_received_message_is_hidden(self, channel_queue, message_attributes):
        channel_queue.send_message("a", message_attributes)

        assert len(channel_queue.receive_messages()) == 1
        assert channel_queue.receive_messages() == []
        assert channel_queue.approximate_number_of_messages_not_visible() == 1

    def test_message_reappears_after_visibility_timeout(self, channel_queue, message_attributes, clock):
        """Test redelivery keeps the message id and issues a new receipt handle."""
        channel_queue.send_message("a", message_attributes)
        [first] = channel_queue.receive_messages()

        clock.advance(59)
        assert channel_queue.receive_messages() == []

        clock.advance(1)
        [second] = channel_queue.receive_messages()

        assert second.message_id == first.message_id
        assert second.receipt_handle != first.receipt_handle
        assert second.receive_count == 2
        assert second.first_received_at == first.first_received_at

    def test_delete_acknowledges_message(self, channel_queue, message_attributes, clock):
        channel_queue.send_message("a", message_attributes)
        [delivery] = channel_queue.receive_messages()

        channel_queue.delete_message(delivery.receipt_handle)
        clock.advance(120)

        assert channel_queue.receive_messages() == []
        assert channel_queue.approximate_number_of_messages_not_visible() == 0

    def test_stale_receipt_handle_rejected(self, channel_queue, message_attributes, clock):
        """Test that only the latest delivery may acknowledge a message."""
        channel_queue.send_message("a", message_attributes)
        [first] = channel_queue.receive_messages()
        clock.advance(60)
        channel_queue.receive_messages()

        with pytest.raises(InvalidReceiptHandleError):
            channel_queue.delete_message(first.receipt_handle)

    def test_change_visibility_to_zero_makes_message_visible(self, channel_queue, message_attributes):
        channel_queue.send_message("a", message_attributes)
        [delivery] = channel_queue.receive_messages()

        channel_queue.change_message_visibility(delivery.receipt_handle, 0)

        [redelivery] = channel_queue.receive_messages()
        assert redelivery.message_id == delivery.message_id

    def test_change_visibility_requires_in_flight_message(self, channel_queue, message_attributes, clock):
        channel_queue.send_message("a", message_attributes)
        [delivery] = channel_queue.receive_messages()
        clock.advance(60)

        with pytest.raises(QueueError) as exc_info:
            channel_queue.change_message_visibility(delivery.receipt_handle, 10)

        assert exc_info.value.error_code == "MESSAGE_NOT_INFLIGHT"

    def test_receive_honors_max_messages(self, channel_queue, message_attributes):
        for index in range(15):
            channel_queue.send_message(f"m{index}", message_attributes)

        assert len(channel_queue.receive_messages(max_messages=10)) == 10
        assert len(channel_queue.receive_messages(max_messages=10)) == 5

    @pytest.mark.parametrize("max_messages", [0, 11])
    def test_receive_rejects_invalid_batch_size(self, channel_queue, max_messages):
        with pytest.raises(QueueError):
            channel_queue.receive_messages(max_messages=max_messages)


class TestRedrive:
    """Test cases for dead-letter redrive."""

    def _deliver(self, queue, clock, times):
        deliveries = []
        for _ in range(times):
            deliveries.extend(queue.receive_messages())
            clock.advance(60)
        return deliveries

    def test_message_dead_lettered_after_max_receive_count(self, channel_queue, message_attributes, clock):
        """Test that the fourth receive attempt relocates the message instead."""
        message_id = channel_queue.send_message("poison", message_attributes)

        deliveries = self._deliver(channel_queue, clock, 3)
        assert [d.receive_count for d in deliveries] == [1, 2, 3]

        assert channel_queue.receive_messages() == []

        [entry] = channel_queue.dead_letter_queue.dead_letters()
        assert entry.message.message_id == message_id
        assert entry.message.body == "poison"
        assert entry.receive_count == 3
        assert entry.source_queue == "sample-lambda-1-queue"

    def test_success_on_last_attempt_prevents_dead_letter(self, channel_queue, message_attributes, clock):
        channel_queue.send_message("flaky", message_attributes)
        self._deliver(channel_queue, clock, 2)

        [third] = channel_queue.receive_messages()
        channel_queue.delete_message(third.receipt_handle)
        clock.advance(60)

        assert channel_queue.receive_messages() == []
        assert channel_queue.dead_letter_queue.dead_letters() == []

    def test_dead_letter_queue_can_be_drained(self, channel_queue, message_attributes, clock):
        channel_queue.send_message("poison", message_attributes)
        self._deliver(channel_queue, clock, 3)
        channel_queue.receive_messages()

        [delivery] = channel_queue.dead_letter_queue.receive_messages()
        assert delivery.body == "poison"
        assert delivery.attributes.request_id == "test-request-id-123"

    def test_dead_letter_settings_must_be_paired(self):
        with pytest.raises(QueueError):
            InMemoryQueue("q", max_receive_count=3)


class TestRetention:
    """Test cases for retention expiry."""

    def test_message_expires_after_retention_period(self, channel_queue, message_attributes, clock, topology):
        channel_queue.send_message("old", message_attributes)

        clock.advance(topology.retention_period_seconds)

        assert channel_queue.receive_messages() == []
        assert channel_queue.approximate_number_of_messages() == 0

    def test_dead_letter_retention_counts_from_original_enqueue(self, clock, message_attributes):
        """Test that relocation does not restart the retention clock."""
        dead_letter_queue = InMemoryQueue("dlq", retention_period_seconds=1000, clock=clock)
        queue = InMemoryQueue(
            "q",
            visibility_timeout_seconds=10,
            dead_letter_queue=dead_letter_queue,
            max_receive_count=1,
            clock=clock,
        )
        queue.send_message("poison", message_attributes)
        queue.receive_messages()
        clock.advance(500)
        queue.receive_messages()
        assert len(dead_letter_queue.dead_letters()) == 1

        clock.advance(500)

        assert dead_letter_queue.dead_letters() == []


class TestMaintenance:
    """Test cases for queue maintenance operations."""

    def test_purge_removes_everything(self, channel_queue, message_attributes):
        channel_queue.send_message("a", message_attributes)
        channel_queue.send_message("b", message_attributes)
        channel_queue.receive_messages()

        channel_queue.purge()

        assert channel_queue.approximate_number_of_messages() == 0
        assert channel_queue.approximate_number_of_messages_not_visible() == 0
