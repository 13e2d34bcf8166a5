"""Usage Telemetry - Best-effort recording of token usage per invocation.

Sinks are injected into the orchestrator; the recorder persists records in
the background and never lets a telemetry failure reach the caller.
"""

import asyncio
import json
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Optional, Set

import asyncpg

from .errors import TelemetryError
from .types import UsageRecord

logger = logging.getLogger(__name__)


def estimate_tokens(payload: Any) -> int:
    """Estimate tokens as ceil(serialized UTF-8 byte length / 4)."""
    if payload is None:
        return 0
    text = payload if isinstance(payload, str) else json.dumps(payload, default=str, separators=(",", ":"))
    return math.ceil(len(text.encode("utf-8")) / 4)


# =============================================================================
# Sinks
# =============================================================================

class UsageSink(ABC):
    """Capability that persists usage records."""

    @abstractmethod
    async def log_usage(self, record: UsageRecord) -> None:
        """Persist one record. May raise; the recorder handles failures."""
        pass

    async def close(self) -> None:
        """Release resources held by the sink."""
        return None


class NoOpUsageSink(UsageSink):
    """Sink used when telemetry is disabled."""

    async def log_usage(self, record: UsageRecord) -> None:
        return None


class LoggingUsageSink(UsageSink):
    """Sink that writes records to the application log."""

    async def log_usage(self, record: UsageRecord) -> None:
        logger.info(
            f"Token usage: tool={record.tool} user={record.user_id} status={record.status.value} "
            f"request={record.request_tokens} response={record.response_tokens} total={record.total_tokens}"
            + (f" reason={record.reason}" if record.reason else "")
        )


class PostgresUsageSink(UsageSink):
    """
    Sink persisting usage records to PostgreSQL.

    Stores one row per invocation in ``mcp_token_usage`` for cost
    analytics and limit tuning.
    """

    def __init__(self, pool: Optional[asyncpg.Pool] = None):
        self.pool = pool
        self._initialized = False

    async def initialize(self, pool: asyncpg.Pool) -> None:
        """Initialize with database pool and create table if needed."""
        self.pool = pool
        await self._ensure_table()
        self._initialized = True
        logger.info("Usage telemetry sink initialized")

    async def _ensure_table(self) -> None:
        """Create usage table if it doesn't exist."""
        if not self.pool:
            return

        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS mcp_token_usage (
                    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                    user_id VARCHAR(255) NOT NULL,
                    chat_id VARCHAR(255),
                    tool VARCHAR(255) NOT NULL,
                    request_tokens INTEGER NOT NULL,
                    response_tokens INTEGER NOT NULL,
                    total_tokens INTEGER NOT NULL,
                    status VARCHAR(20) NOT NULL,
                    reason TEXT,
                    limit_requested TEXT,
                    limit_applied TEXT,
                    created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
                );

                CREATE INDEX IF NOT EXISTS idx_token_usage_user ON mcp_token_usage(user_id);
                CREATE INDEX IF NOT EXISTS idx_token_usage_tool ON mcp_token_usage(tool);
                CREATE INDEX IF NOT EXISTS idx_token_usage_created ON mcp_token_usage(created_at);
            """)
            logger.debug("Usage table ensured")

    async def log_usage(self, record: UsageRecord) -> None:
        if not self.pool:
            raise TelemetryError("Usage telemetry pool not initialized", tool_name=record.tool)

        async with self.pool.acquire() as conn:
            await conn.execute("""
                INSERT INTO mcp_token_usage (
                    user_id, chat_id, tool, request_tokens, response_tokens,
                    total_tokens, status, reason, limit_requested, limit_applied,
                    created_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            """,
                record.user_id,
                record.session_id,
                record.tool,
                record.request_tokens,
                record.response_tokens,
                record.total_tokens,
                record.status.value,
                record.reason,
                None if record.limit_requested is None else str(record.limit_requested),
                None if record.limit_applied is None else str(record.limit_applied),
                record.created_at,
            )


# =============================================================================
# Recorder
# =============================================================================

class UsageRecorder:
    """Fire-and-forget front for a UsageSink."""

    def __init__(self, sink: Optional[UsageSink] = None):
        self.sink = sink or NoOpUsageSink()
        self._pending: Set[asyncio.Task] = set()

    def record(self, record: UsageRecord) -> None:
        """Schedule persistence of a record without waiting for it."""
        try:
            task = asyncio.get_running_loop().create_task(self._persist(record))
        except RuntimeError:
            logger.error(f"[{record.tool}] Failed to log token usage: no running event loop")
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for outstanding writes (used on shutdown and in tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def close(self) -> None:
        await self.drain()
        await self.sink.close()

    async def _persist(self, record: UsageRecord) -> None:
        try:
            await self.sink.log_usage(record)
        except Exception as e:
            error = e if isinstance(e, TelemetryError) else TelemetryError(
                f"Failed to persist usage record: {e}", tool_name=record.tool
            )
            logger.error(f"[{record.tool}] Failed to log token usage: {error}")
