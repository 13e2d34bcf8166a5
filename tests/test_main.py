"""Tests for the HTTP surface."""

import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

import database as database_module
import main
from billing_tools import LoggingUsageSink
from config import Settings
from database import Database
from main import app


@pytest.fixture
def client():
    return TestClient(app)


class TestHttpSurface:
    """Test cases for the FastAPI routes."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["tools"] > 0

    def test_list_tools(self, client):
        response = client.get("/tools")

        assert response.status_code == 200
        tools = {tool["name"]: tool for tool in response.json()["tools"]}
        assert "listCustomers" in tools
        assert tools["createCustomer"]["needsApproval"] is True
        assert tools["listCustomers"]["needsApproval"] is False
        assert "__userContext" not in tools["listCustomers"]["parameters"]["properties"]

    def test_unknown_tool(self, client):
        response = client.post("/tools/dropDatabase", json={})

        assert response.status_code == 404

    def test_invoke_system_tool(self, client):
        response = client.post("/tools/getCurrentDateTime", json={})

        assert response.status_code == 200
        body = response.json()
        assert body["isError"] is False
        assert body["approvalRequired"] is False
        assert "currentDate" in body["content"][0]["text"]

    def test_invoke_approval_required(self, client):
        response = client.post("/tools/deleteCustomer", json={
            "customer_id": "c1",
            "__userContext": {"organization": "org-1", "authorization": "key-1"},
        })

        body = response.json()
        assert body["approvalRequired"] is True
        assert body["approvalRequest"]["toolName"] == "deleteCustomer"


class TestCreateUsageSink:
    """Test cases for telemetry sink selection at startup."""

    @pytest.fixture
    def database(self, monkeypatch):
        db = Database()
        monkeypatch.setattr(main, "get_database", lambda: db)
        return db

    def use_settings(self, monkeypatch, **overrides):
        settings = Settings(_env_file=None, **overrides)
        monkeypatch.setattr(main, "get_settings", lambda: settings)
        monkeypatch.setattr(database_module, "get_settings", lambda: settings)

    @pytest.mark.asyncio
    async def test_disabled(self, monkeypatch):
        self.use_settings(monkeypatch, usage_telemetry_enabled=False)

        assert await main.create_usage_sink() is None

    @pytest.mark.asyncio
    async def test_no_database_logs_usage(self, monkeypatch):
        self.use_settings(monkeypatch, database_url=None)

        assert isinstance(await main.create_usage_sink(), LoggingUsageSink)

    @pytest.mark.asyncio
    async def test_unreachable_database_falls_back(self, monkeypatch, database):
        """Test startup survives a telemetry database that refuses connections."""
        self.use_settings(monkeypatch, database_url="postgresql://u:p@127.0.0.1:1/none")
        monkeypatch.setattr(
            database_module.asyncpg,
            "create_pool",
            AsyncMock(side_effect=ConnectionRefusedError(111, "Connect call failed")),
        )

        sink = await main.create_usage_sink()

        assert isinstance(sink, LoggingUsageSink)
        assert not database.is_connected

    @pytest.mark.asyncio
    async def test_table_setup_failure_falls_back(self, monkeypatch, database):
        self.use_settings(monkeypatch, database_url="postgresql://u:p@db/usage")
        pool = MagicMock()
        pool.close = AsyncMock()
        pool.acquire.side_effect = RuntimeError("permission denied")
        monkeypatch.setattr(database_module.asyncpg, "create_pool", AsyncMock(return_value=pool))

        sink = await main.create_usage_sink()

        assert isinstance(sink, LoggingUsageSink)
        pool.close.assert_awaited_once()
        assert not database.is_connected
