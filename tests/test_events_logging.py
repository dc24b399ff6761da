"""Tests for the audit log and logging helpers."""

from __future__ import annotations

import json
import logging
from decimal import Decimal

from utils.events import EventLog
from utils.logging_config import LogContext, StructuredFormatter, get_logger


def test_event_log_records_and_rolls_back() -> None:
    events = EventLog()
    events.emit("LimitsSet", timestamp=10, low=Decimal("1"), mid=Decimal("2"), high=Decimal("3"))
    state = events.snapshot()
    events.emit("PoolStarted", timestamp=11, pool="pool-2406")

    assert [event.name for event in events] == ["LimitsSet", "PoolStarted"]
    assert events.named("PoolStarted")[0].params == {"pool": "pool-2406"}

    events.restore(state)

    assert len(events) == 1
    assert events.to_payload() == [
        {
            "name": "LimitsSet",
            "timestamp": 10,
            "params": {"low": "1", "mid": "2", "high": "3"},
        }
    ]


def test_structured_formatter_includes_context_fields() -> None:
    formatter = StructuredFormatter()
    logger = logging.getLogger("rollover.test")

    with LogContext(scenario="example", step=3):
        record = logger.makeRecord(
            logger.name,
            logging.INFO,
            __file__,
            1,
            "Applied %s",
            ("start_pool",),
            None,
            extra={"event": "PoolStarted"},
        )

    payload = json.loads(formatter.format(record))
    assert payload["message"] == "Applied start_pool"
    assert payload["logger"] == "rollover.test"
    assert payload["scenario"] == "example"
    assert payload["step"] == 3
    assert payload["event"] == "PoolStarted"


def test_get_logger_merges_context_with_extra() -> None:
    adapter = get_logger("rollover.test", scenario="example")

    msg, kwargs = adapter.process("hello", {"extra": {"step": 1}})

    assert msg == "hello"
    assert kwargs["extra"] == {"scenario": "example", "step": 1}
