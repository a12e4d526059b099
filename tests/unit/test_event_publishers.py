import json
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import structlog
from structlog.testing import capture_logs

from aquabill.application.events import SYSTEM_ALERT, publish_event, system_alert
from aquabill.infrastructure import logging_config
from aquabill.infrastructure.event_publishers import InMemoryBroadcaster, LoggingPublisher
from aquabill.infrastructure.logging_config import LOG_FILE_NAME, close_log_file, setup_logging


class TestPublishEvent:
    def test_payload_made_json_safe(self):
        publisher = MagicMock()
        publish_event(
            publisher,
            "invoice_created",
            {"total": Decimal("47.50"), "fecha": date(2026, 4, 30), "rangos": [Decimal("1")]},
        )
        _, payload = publisher.publish.call_args.args
        assert payload["total"] == "47.50"
        assert payload["fecha"] == "2026-04-30"
        assert payload["rangos"] == ["1"]
        json.dumps(payload)

    def test_adds_timestamp(self):
        publisher = MagicMock()
        publish_event(publisher, "x", {})
        assert "timestamp" in publisher.publish.call_args.args[1]

    def test_none_publisher_is_noop(self):
        publish_event(None, "x", {"a": 1})

    def test_failure_logged_not_raised(self):
        publisher = MagicMock()
        publisher.publish.side_effect = RuntimeError("down")
        with capture_logs() as logs:
            publish_event(publisher, "payment_received", {})
        assert logs[0]["event"] == "notification_failed"
        assert logs[0]["event_type"] == "payment_received"

    def test_system_alert_shape(self):
        publisher = MagicMock()
        system_alert(publisher, "hola", "warning", {"k": 1})
        event_type, payload = publisher.publish.call_args.args
        assert event_type == SYSTEM_ALERT
        assert payload["mensaje"] == "hola"
        assert payload["nivel"] == "warning"
        assert payload["datos"] == {"k": 1}


class TestLoggingPublisher:
    def test_logs_event(self):
        with capture_logs() as logs:
            LoggingPublisher().publish("reading_recorded", {"id": 1})
        assert logs == [
            {
                "event": "event_published",
                "event_type": "reading_recorded",
                "payload": {"id": 1},
                "log_level": "info",
            }
        ]


class TestInMemoryBroadcaster:
    def test_fan_out(self):
        broadcaster = InMemoryBroadcaster()
        q1 = broadcaster.subscribe()
        q2 = broadcaster.subscribe()

        broadcaster.publish("invoice_created", {"factura_id": 1})

        expected = {"type": "invoice_created", "data": {"factura_id": 1}}
        assert q1.get_nowait() == expected
        assert q2.get_nowait() == expected

    def test_unsubscribe(self):
        broadcaster = InMemoryBroadcaster()
        q = broadcaster.subscribe()
        broadcaster.unsubscribe(q)
        broadcaster.publish("x", {})
        assert q.empty()
        assert broadcaster.subscriber_count == 0

    def test_unsubscribe_unknown_is_noop(self):
        broadcaster = InMemoryBroadcaster()
        broadcaster.unsubscribe(InMemoryBroadcaster().subscribe())
        assert broadcaster.subscriber_count == 0

    def test_full_queue_dropped(self):
        broadcaster = InMemoryBroadcaster(max_queue_size=1)
        slow = broadcaster.subscribe()
        fast = broadcaster.subscribe()

        broadcaster.publish("a", {})
        fast.get_nowait()
        broadcaster.publish("b", {})

        assert broadcaster.subscriber_count == 1
        assert fast.get_nowait()["type"] == "b"
        assert slow.get_nowait()["type"] == "a"


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def _reset(self):
        yield
        close_log_file()
        structlog.reset_defaults()

    def test_json_file_output(self, tmp_path):
        log_dir = tmp_path / "logs"
        setup_logging("INFO", log_dir)

        structlog.get_logger().info("invoice_created", invoice_id=7)

        lines = (log_dir / LOG_FILE_NAME).read_text(encoding="utf-8").splitlines()
        record = json.loads(lines[-1])
        assert record["event"] == "invoice_created"
        assert record["invoice_id"] == 7
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_level_filters(self, tmp_path):
        log_dir = tmp_path / "logs"
        setup_logging("WARNING", log_dir)

        structlog.get_logger().info("hidden")
        structlog.get_logger().warning("shown")

        content = (log_dir / LOG_FILE_NAME).read_text(encoding="utf-8")
        assert "hidden" not in content
        assert "shown" in content

    def test_reconfigure_closes_previous_file(self, tmp_path):
        setup_logging("INFO", tmp_path / "a")
        first = logging_config._log_file

        setup_logging("INFO", tmp_path / "b")

        assert first.closed
        assert not logging_config._log_file.closed

    def test_close_log_file(self, tmp_path):
        setup_logging("INFO", tmp_path / "logs")
        handle = logging_config._log_file

        close_log_file()
        close_log_file()

        assert handle.closed
        assert logging_config._log_file is None
