"""System Tool Adapter - Built-in tools answered without calling the API."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .base import BaseToolAdapter
from ..types import PreparedRequest, ToolSpec

logger = logging.getLogger(__name__)


class SystemToolAdapter(BaseToolAdapter):
    """
    Adapter for local system tools.

    Supports:
    - getCurrentDateTime: current date/time so the agent can resolve
      relative dates ("this month") before querying the API
    """

    SUPPORTED_TOOLS = [
        "getCurrentDateTime",
    ]

    requires_credentials = False

    def __init__(self, clock=None):
        super().__init__()
        self.name = "system"
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def execute(
        self,
        spec: ToolSpec,
        request: Optional[PreparedRequest],
    ) -> Any:
        if spec.name == "getCurrentDateTime":
            return self._current_datetime()
        raise ValueError(f"Unknown system tool: {spec.name}")

    def supports_tool(self, tool_name: str) -> bool:
        return tool_name in self.SUPPORTED_TOOLS

    def _current_datetime(self) -> Dict[str, Any]:
        now = self._clock()
        utc = now.astimezone(timezone.utc)
        local = now.astimezone()
        return {
            "currentDate": utc.strftime("%Y-%m-%d"),
            "currentDateTime": utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z",
            "timestamp": int(utc.timestamp() * 1000),
            "timezone": local.tzname(),
            "humanReadable": local.strftime("%m/%d/%Y, %I:%M:%S %p"),
        }
