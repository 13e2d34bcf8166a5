"""Billing Tools - Catalog-driven tool execution against the Zenskar billing API.

This package provides:
- Tool Registry: Declarative catalog of API-backed tools
- Schema Compiler: Per-tool argument validators
- Credential Resolver: Layered tenant identity and auth lookup
- Approval Gate: Deferral of sensitive tools to a human decision
- Limit Enforcer: Per-tool bounds on request size
- Request Builder: URL, query, header and body construction
- Response Processor: Bounded text results
- Usage Telemetry: Best-effort token usage records
- Execution Orchestrator: The invocation pipeline
"""

from .types import (
    # Enums
    ArgumentType,
    ArgumentPosition,
    ApprovalKind,
    ApprovalState,
    UsageStatus,
    FeedbackSeverity,
    # Tool Definition
    ToolArgument,
    RequestTemplate,
    ResponseTemplate,
    ApprovalConfig,
    ApprovalPolicy,
    ToolSpec,
    ServerInfo,
    # Context
    ApprovalDecision,
    InvocationContext,
    # Approval
    ApprovalField,
    ApprovalRequest,
    ApprovalOutcome,
    # Limits
    LimitRule,
    LimitPolicy,
    LimitAdjustment,
    LimitCheckResult,
    TokenUsageFeedback,
    # Telemetry
    UsageRecord,
    # Requests and results
    ResolvedCredentials,
    PreparedRequest,
    TextContent,
    InvocationResult,
)

from .errors import (
    ToolExecutionError,
    UnknownToolError,
    ArgumentValidationError,
    AuthError,
    LimitValidationError,
    NetworkError,
    ApiError,
    TelemetryError,
)

from .schema_compiler import CompiledSchema, ValidatedArguments, compile_schema, CONTEXT_KEY
from .tool_registry import ToolRegistry, get_tool_registry
from .credential_resolver import (
    CredentialResolver,
    CredentialSource,
    ContextCredentialSource,
    HeaderCredentialSource,
    EnvironmentCredentialSource,
)
from .approval_gate import ApprovalGate
from .limit_enforcer import (
    LimitEnforcer,
    LimitPolicyProvider,
    NoOpLimitPolicyProvider,
    StaticLimitPolicyProvider,
)
from .request_builder import RequestBuilder
from .response_processor import ResponseProcessor
from .usage_sink import (
    UsageSink,
    NoOpUsageSink,
    LoggingUsageSink,
    PostgresUsageSink,
    UsageRecorder,
)
from .execution_orchestrator import ExecutionOrchestrator, get_execution_orchestrator

# Adapters
from .adapters import (
    BaseToolAdapter,
    HttpToolAdapter,
    SystemToolAdapter,
)

from .schema_generator import ToolSchemaGenerator

__all__ = [
    # Enums
    "ArgumentType",
    "ArgumentPosition",
    "ApprovalKind",
    "ApprovalState",
    "UsageStatus",
    "FeedbackSeverity",
    # Tool Definition
    "ToolArgument",
    "RequestTemplate",
    "ResponseTemplate",
    "ApprovalConfig",
    "ApprovalPolicy",
    "ToolSpec",
    "ServerInfo",
    # Context
    "ApprovalDecision",
    "InvocationContext",
    # Approval
    "ApprovalField",
    "ApprovalRequest",
    "ApprovalOutcome",
    # Limits
    "LimitRule",
    "LimitPolicy",
    "LimitAdjustment",
    "LimitCheckResult",
    "TokenUsageFeedback",
    # Telemetry
    "UsageRecord",
    # Requests and results
    "ResolvedCredentials",
    "PreparedRequest",
    "TextContent",
    "InvocationResult",
    # Errors
    "ToolExecutionError",
    "UnknownToolError",
    "ArgumentValidationError",
    "AuthError",
    "LimitValidationError",
    "NetworkError",
    "ApiError",
    "TelemetryError",
    # Core Components
    "CompiledSchema",
    "ValidatedArguments",
    "compile_schema",
    "CONTEXT_KEY",
    "ToolRegistry",
    "get_tool_registry",
    "CredentialResolver",
    "CredentialSource",
    "ContextCredentialSource",
    "HeaderCredentialSource",
    "EnvironmentCredentialSource",
    "ApprovalGate",
    "LimitEnforcer",
    "LimitPolicyProvider",
    "NoOpLimitPolicyProvider",
    "StaticLimitPolicyProvider",
    "RequestBuilder",
    "ResponseProcessor",
    "UsageSink",
    "NoOpUsageSink",
    "LoggingUsageSink",
    "PostgresUsageSink",
    "UsageRecorder",
    "ExecutionOrchestrator",
    "get_execution_orchestrator",
    # Adapters
    "BaseToolAdapter",
    "HttpToolAdapter",
    "SystemToolAdapter",
    # Utilities
    "ToolSchemaGenerator",
]
