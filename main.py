from fastapi import FastAPI, HTTPException, Body
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
import logging

from config import get_settings
from database import get_database
from models import InvokeResponse, ToolDescriptor, ToolListResponse
from billing_tools import (
    ApprovalKind,
    LoggingUsageSink,
    PostgresUsageSink,
    ToolSchemaGenerator,
    UsageSink,
    get_execution_orchestrator,
    get_tool_registry,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def create_usage_sink() -> Optional[UsageSink]:
    """Pick the telemetry sink from settings."""
    settings = get_settings()
    if not settings.usage_telemetry_enabled:
        return None
    if not settings.database_url:
        return LoggingUsageSink()

    db = get_database()
    try:
        await db.connect()
        sink = PostgresUsageSink()
        await sink.initialize(db.pool)
    except Exception as e:
        logger.error(f"Usage database unavailable, logging usage instead: {e}")
        await db.disconnect()
        return LoggingUsageSink()
    return sink


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Zenskar billing tool server...")
    await get_tool_registry()
    orchestrator = await get_execution_orchestrator(usage_sink=await create_usage_sink())

    yield

    # Shutdown
    logger.info("Shutting down...")
    await orchestrator.shutdown()
    db = get_database()
    if db.is_connected:
        await db.disconnect()


app = FastAPI(
    title="Zenskar Billing Tool Server",
    description="Catalog-driven tool execution against the Zenskar billing API",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    registry = await get_tool_registry()
    return {"status": "ok", "service": registry.server.name, "tools": registry.tool_count}


@app.get("/tools", response_model=ToolListResponse, response_model_by_alias=True)
async def list_tools():
    """List the tool catalog with argument schemas."""
    registry = await get_tool_registry()
    tools = []
    for compiled in registry.list_schemas():
        schema = ToolSchemaGenerator.generate_schema(compiled)
        tools.append(ToolDescriptor(
            name=schema["name"],
            description=schema["description"],
            parameters=schema["parameters"],
            needs_approval=compiled.spec.needs_approval.kind != ApprovalKind.NEVER,
        ))
    return ToolListResponse(server=registry.server.name, tools=tools)


@app.post("/tools/{tool_name}", response_model=InvokeResponse, response_model_by_alias=True)
async def invoke_tool(tool_name: str, arguments: Optional[Dict[str, Any]] = Body(default=None)):
    """
    Invoke a catalog tool.

    The body is the tool's argument object; the optional ``__userContext``
    key carries caller identity, credentials and approval decisions.
    Errors are reported in the result payload, not as HTTP errors.
    """
    registry = await get_tool_registry()
    if not registry.validate_tool_exists(tool_name):
        raise HTTPException(status_code=404, detail=f"Unknown tool: {tool_name}")

    logger.info(f"Received invocation for tool: {tool_name}")
    orchestrator = await get_execution_orchestrator()
    result = await orchestrator.invoke(tool_name, arguments)
    return InvokeResponse.from_result(result)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
