"""
Tests for live event fan-out and log capture.
"""

import pytest
import structlog

from mint_harness.events import EventBroadcaster, format_sse
from mint_harness.logs import capture_logs, configure_logging


def test_format_sse():
    assert format_sse("notification", {"a": 1}) == 'event: notification\ndata: {"a": 1}\n\n'


class TestEventBroadcaster:
    def test_publish_reaches_every_listener(self):
        events = EventBroadcaster()
        _, first = events.connect()
        _, second = events.connect()

        reached = events.publish("notification", {"id": "n1"})

        assert reached == 2
        assert first.get_nowait() == second.get_nowait() == format_sse("notification", {"id": "n1"})

    def test_disconnect_removes_listener(self):
        events = EventBroadcaster()
        listener_id, queue = events.connect()

        events.disconnect(listener_id)
        events.disconnect(listener_id)

        assert events.listener_count == 0
        assert events.publish("notification", {}) == 0
        assert queue.empty()

    @pytest.mark.asyncio
    async def test_stream_sends_connected_then_events(self):
        events = EventBroadcaster()
        stream = events.stream()

        first = await stream.__anext__()
        assert first.startswith("event: connected\n")
        assert events.listener_count == 1

        events.publish("notification", {"payload": {"notificationType": "payouts"}})
        second = await stream.__anext__()
        assert second == format_sse("notification", {"payload": {"notificationType": "payouts"}})

        await stream.aclose()
        assert events.listener_count == 0


class TestCaptureLogs:
    def test_collects_lines_with_level_prefixes(self):
        configure_logging()
        logger = structlog.get_logger()

        with capture_logs() as lines:
            logger.info("balance_checked", currency="USD")
            logger.warning("auto_transfer_failed")
            logger.error("operation_failed", error="boom")
        logger.info("outside_capture")

        assert lines == [
            "balance_checked currency=USD",
            "[WARN] auto_transfer_failed",
            "[ERR] operation_failed error=boom",
        ]

    def test_captures_are_isolated(self):
        configure_logging()
        logger = structlog.get_logger()

        with capture_logs() as outer:
            logger.info("first")
            with capture_logs() as inner:
                logger.info("second")
            logger.info("third")

        assert outer == ["first", "third"]
        assert inner == ["second"]
