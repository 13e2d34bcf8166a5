"""Tests for Usage Telemetry."""

import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

from billing_tools import (
    LoggingUsageSink,
    PostgresUsageSink,
    TelemetryError,
    UsageRecord,
    UsageRecorder,
    UsageStatus,
)
from billing_tools.usage_sink import estimate_tokens

from conftest import FailingSink, RecordingSink


@pytest.fixture
def record():
    return UsageRecord(
        user_id="user-1",
        session_id="chat-1",
        tool="listInvoices",
        request_tokens=10,
        response_tokens=90,
        status=UsageStatus.TRUNCATED,
        reason="Response optimized due to size limits",
        limit_requested=500,
        limit_applied=50,
    )


class TestEstimateTokens:
    """Test cases for estimate_tokens."""

    def test_string(self):
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_none(self):
        assert estimate_tokens(None) == 0

    def test_object_uses_compact_json(self):
        # {"a":1} is 7 bytes
        assert estimate_tokens({"a": 1}) == 2

    def test_multibyte(self):
        # 'é' is two UTF-8 bytes
        assert estimate_tokens("éé") == 1


class TestUsageRecord:
    """Test cases for UsageRecord."""

    def test_total_tokens(self, record):
        assert record.total_tokens == 100

    def test_created_at_is_utc_aware(self, record):
        assert record.created_at.tzinfo is not None
        assert record.created_at.utcoffset() == timedelta(0)

    def test_negative_tokens_rejected(self):
        with pytest.raises(ValueError):
            UsageRecord(tool="t", request_tokens=-1)


class TestUsageRecorder:
    """Test cases for UsageRecorder."""

    @pytest.mark.asyncio
    async def test_records_reach_sink(self, record):
        sink = RecordingSink()
        recorder = UsageRecorder(sink)

        recorder.record(record)
        await recorder.drain()

        assert sink.records == [record]

    @pytest.mark.asyncio
    async def test_sink_failure_swallowed(self, record):
        """Test a failing sink never raises into the caller."""
        sink = FailingSink()
        recorder = UsageRecorder(sink)

        recorder.record(record)
        await recorder.drain()

        assert sink.calls == 1

    def test_no_event_loop(self, record):
        """Test recording outside a loop is dropped without raising."""
        sink = RecordingSink()

        UsageRecorder(sink).record(record)

        assert sink.records == []

    @pytest.mark.asyncio
    async def test_default_sink_is_noop(self, record):
        recorder = UsageRecorder()

        recorder.record(record)
        await recorder.close()

    @pytest.mark.asyncio
    async def test_logging_sink(self, record):
        await LoggingUsageSink().log_usage(record)


class TestPostgresUsageSink:
    """Test cases for PostgresUsageSink."""

    @pytest.fixture
    def pool(self):
        conn = MagicMock()
        conn.execute = AsyncMock()
        acquire = MagicMock()
        acquire.__aenter__ = AsyncMock(return_value=conn)
        acquire.__aexit__ = AsyncMock(return_value=False)
        pool = MagicMock()
        pool.acquire.return_value = acquire
        pool.conn = conn
        return pool

    @pytest.mark.asyncio
    async def test_initialize_creates_table(self, pool):
        sink = PostgresUsageSink()

        await sink.initialize(pool)

        sql = pool.conn.execute.call_args[0][0]
        assert "CREATE TABLE IF NOT EXISTS mcp_token_usage" in sql

    @pytest.mark.asyncio
    async def test_insert(self, pool, record):
        sink = PostgresUsageSink(pool)

        await sink.log_usage(record)

        args = pool.conn.execute.call_args[0]
        assert "INSERT INTO mcp_token_usage" in args[0]
        assert args[1:8] == ("user-1", "chat-1", "listInvoices", 10, 90, 100, "truncated")
        assert args[9:11] == ("500", "50")

    @pytest.mark.asyncio
    async def test_without_pool(self, record):
        with pytest.raises(TelemetryError):
            await PostgresUsageSink().log_usage(record)
