"""Tests for Tool Registry."""

import pytest
from billing_tools import (
    ApprovalKind,
    ToolRegistry,
    ToolSpec,
)

from conftest import CATALOG_PATH


class TestToolRegistry:
    """Test cases for ToolRegistry."""

    def test_load_document(self, registry):
        """Test tools and server info are registered from a document."""
        assert registry.is_loaded
        assert registry.tool_count == 4
        assert registry.base_url == "https://api.example.com"
        assert registry.server.name == "test-server"

    def test_catalog_order_preserved(self, registry):
        names = [tool.name for tool in registry.list_tools()]

        assert names == ["listCustomers", "getCustomer", "createCustomer", "getCurrentDateTime"]

    def test_get_tool(self, registry):
        tool = registry.get_tool("getCustomer")

        assert tool is not None
        assert tool.request_template.url == "/customers/{customer_id}"
        assert tool.get_argument("customer_id").required

    def test_get_nonexistent_tool(self, registry):
        assert registry.get_tool("nonexistent") is None
        assert registry.get_schema("nonexistent") is None
        assert not registry.validate_tool_exists("nonexistent")

    def test_schema_compiled_at_registration(self, registry):
        schema = registry.get_schema("listCustomers")

        assert schema is not None
        assert schema.validate({}).arguments == {"limit": 20}

    def test_approval_flags(self, registry):
        assert registry.get_tool("createCustomer").needs_approval.kind == ApprovalKind.ALWAYS
        assert registry.get_tool("listCustomers").needs_approval.kind == ApprovalKind.NEVER

    def test_duplicate_registration(self, registry):
        with pytest.raises(ValueError):
            registry.register_tool(ToolSpec(name="listCustomers"))

    def test_set_approval_predicate(self, registry):
        registry.set_approval_predicate("listCustomers", lambda args: args.get("limit", 0) > 50)

        policy = registry.get_tool("listCustomers").needs_approval
        assert policy.kind == ApprovalKind.CONDITIONAL
        assert policy.requires_approval({"limit": 80})
        assert not policy.requires_approval({"limit": 10})

    def test_set_approval_predicate_unknown_tool(self, registry):
        with pytest.raises(KeyError):
            registry.set_approval_predicate("nonexistent", lambda args: True)

    @pytest.mark.asyncio
    async def test_load_requires_path(self):
        with pytest.raises(ValueError):
            await ToolRegistry().load()


class TestShippedCatalog:
    """Test cases for the catalog file shipped with the server."""

    @pytest.mark.asyncio
    async def test_loads(self):
        reg = ToolRegistry(str(CATALOG_PATH))
        await reg.load()

        assert reg.tool_count > 0
        assert reg.base_url == "https://api.zenskar.com"

    @pytest.mark.asyncio
    async def test_contains_core_tools(self):
        reg = ToolRegistry(str(CATALOG_PATH))
        await reg.load()

        for name in ("listCustomers", "createRawMetric", "ingestRawMetricEvent",
                     "extractContractFromRaw", "getCurrentDateTime"):
            assert reg.validate_tool_exists(name)

    @pytest.mark.asyncio
    async def test_load_is_idempotent(self):
        reg = ToolRegistry(str(CATALOG_PATH))
        await reg.load()
        count = reg.tool_count
        await reg.load()

        assert reg.tool_count == count
