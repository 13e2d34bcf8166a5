"""Tool Registry - Central catalog of billing API tools.

The registry is the source of truth for all callable tools. It is built
once from the declarative catalog, compiles every tool's argument
validator at registration time, and is read-only afterwards.
Tools not in the registry cannot be invoked.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .schema_compiler import CompiledSchema, compile_schema
from .types import ApprovalPolicy, ApprovalPredicate, ServerInfo, ToolSpec

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Catalog of tool specifications and their compiled validators.

    Responsibilities:
    - Load tool specs from the configuration document
    - Compile per-tool argument validators once
    - Attach conditional approval predicates
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self._tools: Dict[str, ToolSpec] = {}
        self._schemas: Dict[str, CompiledSchema] = {}
        self.server: ServerInfo = ServerInfo()
        self._loaded: bool = False

    async def load(self) -> None:
        """Load tool definitions from the catalog file."""
        if self._loaded:
            return
        if not self.config_path:
            raise ValueError("No tool catalog path configured")

        with open(self.config_path, "r") as f:
            document = yaml.safe_load(f) or {}

        self.load_document(document)
        logger.info(f"Tool registry loaded from {self.config_path}: {len(self._tools)} tools")

    def load_document(self, document: Dict[str, Any]) -> None:
        """
        Register every tool of a parsed catalog document.

        Args:
            document: Mapping with a ``server`` block and a ``tools`` list

        Raises:
            ValueError: If a tool is declared twice
        """
        self.server = ServerInfo.model_validate(document.get("server") or {})
        for entry in document.get("tools") or []:
            self.register_tool(ToolSpec.model_validate(entry))
        self._loaded = True

    def register_tool(self, tool: ToolSpec) -> None:
        """
        Register a tool and compile its validator.

        Args:
            tool: Tool specification to register

        Raises:
            ValueError: If tool with same name already exists
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")

        self._tools[tool.name] = tool
        self._schemas[tool.name] = compile_schema(tool)
        logger.info(f"Registering tool: {tool.name}")

    def set_approval_predicate(self, tool_name: str, predicate: ApprovalPredicate) -> None:
        """
        Make a tool's approval conditional on its arguments.

        Args:
            tool_name: Name of the tool
            predicate: Called with the domain arguments; True requires approval

        Raises:
            KeyError: If tool doesn't exist
        """
        tool = self._tools.get(tool_name)
        if not tool:
            raise KeyError(f"Tool '{tool_name}' not found in registry")

        updated = tool.model_copy(update={"needs_approval": ApprovalPolicy.conditional_on(predicate)})
        self._tools[tool_name] = updated
        self._schemas[tool_name] = compile_schema(updated)
        logger.info(f"Attached conditional approval to tool: {tool_name}")

    def get_tool(self, tool_name: str) -> Optional[ToolSpec]:
        """Get a tool spec by name, or None if not found."""
        return self._tools.get(tool_name)

    def get_schema(self, tool_name: str) -> Optional[CompiledSchema]:
        """Get the compiled validator of a tool, or None if not found."""
        return self._schemas.get(tool_name)

    def list_tools(self) -> List[ToolSpec]:
        """List all registered tools in catalog order."""
        return list(self._tools.values())

    def list_schemas(self) -> List[CompiledSchema]:
        return list(self._schemas.values())

    def validate_tool_exists(self, tool_name: str) -> bool:
        """Check if a tool exists in the registry."""
        return tool_name in self._tools

    @property
    def base_url(self) -> Optional[str]:
        """Base URL declared by the catalog's server block, if any."""
        return self.server.base_url

    @property
    def tool_count(self) -> int:
        """Get total number of registered tools."""
        return len(self._tools)

    @property
    def is_loaded(self) -> bool:
        """Check if the catalog has been loaded."""
        return self._loaded


# Singleton instance
_registry: Optional[ToolRegistry] = None


async def get_tool_registry() -> ToolRegistry:
    """Get or create the tool registry singleton."""
    global _registry
    if _registry is None:
        from config import get_settings

        settings = get_settings()
        config_path = Path(settings.tools_config_path)
        if not config_path.is_absolute():
            config_path = Path(__file__).parent.parent / config_path
        registry = ToolRegistry(str(config_path))
        await registry.load()
        _registry = registry
    return _registry
