"""Tests for audit logging of resilience events."""

import asyncio
import logging

import pytest

from signlink.core.observability import (
    MAX_DETAIL_MESSAGE_LENGTH,
    AuditEvent,
    AuditEventType,
    audit_log,
    get_audit_logger,
    truncate_message,
)
from signlink.core.resilience import (
    OperationTimeoutError,
    RetryConfig,
    RetryExhaustedError,
    TimeoutConfig,
    with_retry,
    with_timeout,
)


async def _no_sleep(seconds: float) -> None:
    return None


def _audit_records(caplog):
    return [r.audit for r in caplog.records if r.name == "signlink.audit"]


class TestAuditLog:
    """Tests for audit_log and AuditEvent."""

    def test_known_event(self, caplog):
        with caplog.at_level(logging.INFO, logger="signlink.audit"):
            audit_log("probe_result", is_running=True)

        records = _audit_records(caplog)
        assert records[0]["event_type"] == "probe_result"
        assert records[0]["details"] == {"is_running": True}
        assert records[0]["timestamp"]

    def test_unknown_event_maps_to_other(self, caplog):
        with caplog.at_level(logging.INFO, logger="signlink.audit"):
            audit_log("something_new", value=1)

        record = _audit_records(caplog)[0]
        assert record["event_type"] == AuditEventType.OTHER.value
        assert record["details"]["original_event_type"] == "something_new"

    def test_event_to_dict(self):
        event = AuditEvent(event_type=AuditEventType.RETRY_ATTEMPT, details={"attempt": 1})
        data = event.to_dict()
        assert data["event_type"] == "retry_attempt"
        assert data["details"] == {"attempt": 1}

    def test_global_logger(self):
        assert get_audit_logger() is get_audit_logger()

    def test_truncate_message(self):
        long_error = ValueError("x" * 500)
        assert len(truncate_message(long_error)) == MAX_DETAIL_MESSAGE_LENGTH
        assert truncate_message("short") == "short"


class TestResilienceAuditing:
    """The resilience layer reports its decisions through audit events."""

    @pytest.mark.asyncio
    async def test_retry_events(self, caplog):
        async def down():
            raise ConnectionError("connection refused")

        with caplog.at_level(logging.INFO, logger="signlink.audit"):
            with pytest.raises(RetryExhaustedError):
                await with_retry(down, RetryConfig(max_retries=2), sleep_func=_no_sleep)

        events = [r["event_type"] for r in _audit_records(caplog)]
        assert events == ["retry_attempt", "retry_attempt", "retry_exhausted"]
        first = _audit_records(caplog)[0]["details"]
        assert first["attempt"] == 1
        assert first["max_attempts"] == 3
        assert first["error_type"] == "transient"

    @pytest.mark.asyncio
    async def test_timeout_event(self, caplog):
        release = asyncio.Event()

        async def stuck():
            await release.wait()

        with caplog.at_level(logging.INFO, logger="signlink.audit"):
            with pytest.raises(OperationTimeoutError):
                await with_timeout(stuck, TimeoutConfig(timeout_ms=10))

        details = _audit_records(caplog)[0]["details"]
        assert details["timeout_ms"] == 10
        assert details["cancelled"] is False
        release.set()
        await asyncio.sleep(0)
