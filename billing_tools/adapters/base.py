"""Base Tool Adapter - Abstract interface for tool executors.

All adapters must implement this interface to support
the execution orchestrator's invocation flow.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
import logging

from ..types import PreparedRequest, ToolSpec

logger = logging.getLogger(__name__)


class BaseToolAdapter(ABC):
    """
    Abstract base class for tool adapters.

    Adapters perform the actual call for a prepared invocation.

    Responsibilities:
    - Issue the request
    - Classify transport vs application failures
    - Decode the response payload

    Constraints:
    - No business logic
    - No credential decisions (handled by Credential Resolver)
    - No limit decisions (handled by Limit Enforcer)
    """

    # Adapters that never leave the process do not need credentials
    requires_credentials: bool = True

    def __init__(self):
        self.name: str = "base"
        self._initialized: bool = False
        self._available: bool = False

    async def initialize(self) -> None:
        """
        Initialize the adapter.

        Override this to perform async initialization
        (HTTP client setup, etc).
        """
        self._initialized = True
        self._available = True
        logger.info(f"Adapter {self.name} initialized")

    @abstractmethod
    async def execute(
        self,
        spec: ToolSpec,
        request: Optional[PreparedRequest],
    ) -> Any:
        """
        Execute a tool call.

        Args:
            spec: Tool being invoked
            request: Prepared request (None for adapters without credentials)

        Returns:
            Decoded result (JSON value or raw text)
        """
        pass

    @abstractmethod
    def supports_tool(self, tool_name: str) -> bool:
        """
        Check if this adapter supports a specific tool.

        Args:
            tool_name: Name of the tool to check

        Returns:
            True if this adapter can execute the tool
        """
        pass

    def is_available(self) -> bool:
        """Check if adapter is available."""
        return self._available

    def is_initialized(self) -> bool:
        """Check if adapter is initialized."""
        return self._initialized

    async def shutdown(self) -> None:
        """
        Graceful shutdown of the adapter.

        Override to clean up resources, close connections, etc.
        """
        self._initialized = False
        self._available = False
        logger.info(f"Adapter {self.name} shut down")
