"""Execution Orchestrator - Coordinates one tool invocation end to end.

The main entry point of the billing tool gateway. Every invocation flows
through schema validation, credential resolution, the approval gate, limit
enforcement, request building, execution, response processing and usage
telemetry, with early exits at the approval gate and the limit enforcer.
"""

import logging
import time
from typing import Optional, Dict, List, Any

from .adapters.base import BaseToolAdapter
from .adapters.http import HttpToolAdapter
from .adapters.system import SystemToolAdapter
from .approval_gate import ApprovalGate
from .credential_resolver import CredentialResolver
from .errors import ToolExecutionError, UnknownToolError
from .limit_enforcer import (
    PAGE_SIZE_FIELDS,
    LimitEnforcer,
    StaticLimitPolicyProvider,
    remediation_message,
)
from .request_builder import DEFAULT_BASE_URL, RequestBuilder
from .response_processor import (
    RESPONSE_SUMMARY_NOTICE,
    ResponseProcessor,
    create_approval_result,
    create_blocked_result,
    create_error_result,
    create_text_result,
    error_message,
)
from .tool_registry import ToolRegistry, get_tool_registry
from .types import (
    ApprovalState,
    FeedbackSeverity,
    InvocationContext,
    InvocationResult,
    UsageRecord,
    UsageStatus,
)
from .usage_sink import LoggingUsageSink, UsageRecorder, UsageSink, estimate_tokens

logger = logging.getLogger(__name__)


class ExecutionOrchestrator:
    """
    Runs the tool invocation pipeline.

    Collaborators are injected; missing ones fall back to defaults
    (context/header credential chain, no limits, no telemetry).

    Principles:
    - No request without a resolved organization and credential
    - No network call for approval artifacts or blocked requests
    - Telemetry never affects the caller's result
    - Caller input is never mutated
    """

    def __init__(
        self,
        registry: ToolRegistry,
        credential_resolver: Optional[CredentialResolver] = None,
        limit_enforcer: Optional[LimitEnforcer] = None,
        approval_gate: Optional[ApprovalGate] = None,
        request_builder: Optional[RequestBuilder] = None,
        response_processor: Optional[ResponseProcessor] = None,
        usage_recorder: Optional[UsageRecorder] = None,
        adapters: Optional[List[BaseToolAdapter]] = None,
    ):
        self._registry = registry
        self._credentials = credential_resolver or CredentialResolver()
        self._limits = limit_enforcer or LimitEnforcer()
        self._approval = approval_gate or ApprovalGate()
        self._builder = request_builder or RequestBuilder(base_url=registry.base_url or DEFAULT_BASE_URL)
        self._processor = response_processor or ResponseProcessor()
        self._usage = usage_recorder or UsageRecorder()
        # Checked in order; the HTTP adapter accepts every tool
        self._adapters: List[BaseToolAdapter] = adapters or [SystemToolAdapter(), HttpToolAdapter()]
        self._initialized: bool = False

    async def initialize(self) -> None:
        """Initialize all adapters."""
        logger.info("Initializing Execution Orchestrator...")
        for adapter in self._adapters:
            if not adapter.is_initialized():
                await adapter.initialize()
        self._initialized = True
        logger.info(f"Execution Orchestrator ready with {self._registry.tool_count} tools")

    async def shutdown(self) -> None:
        """Flush telemetry and release adapters."""
        await self._usage.close()
        for adapter in self._adapters:
            await adapter.shutdown()
        self._initialized = False

    async def invoke(self, tool_name: str, arguments: Optional[Dict[str, Any]] = None) -> InvocationResult:
        """
        Invoke one tool.

        Args:
            tool_name: Name of the catalog tool
            arguments: Raw arguments, including the optional ``__userContext``

        Returns:
            InvocationResult carrying the response text, an approval
            artifact, or an error payload
        """
        if not self._initialized:
            await self.initialize()

        started = time.time()
        usage = _UsageTracker(tool_name)

        try:
            spec = self._registry.get_tool(tool_name)
            schema = self._registry.get_schema(tool_name)
            if spec is None or schema is None:
                raise UnknownToolError(f"Unknown tool: {tool_name}", tool_name=tool_name)

            logger.debug(f"[{tool_name}] Tool execution started")

            # 1. Validate arguments and split out the internal context
            validated = schema.validate(arguments)
            context = validated.context
            usage.bind(context)

            # 2. Resolve tenant identity and credentials
            adapter = self._adapter_for(tool_name)
            credentials = None
            if adapter.requires_credentials:
                credentials = self._credentials.resolve(tool_name, context)

            # 3. Approval gate
            outcome = self._approval.evaluate(spec, validated.arguments, context, schema)
            if outcome.state == ApprovalState.AWAITING_DECISION:
                return create_approval_result(outcome.request)
            if outcome.state == ApprovalState.APPROVED:
                logger.info(f"[{tool_name}] Tool was approved, executing actual API call")

            arguments_in = outcome.arguments
            usage.request_tokens = estimate_tokens(arguments_in)

            # 4. Limits
            limits = self._limits.validate(tool_name, arguments_in)
            if not limits.valid:
                message = remediation_message(tool_name, limits)
                logger.error(f"[{tool_name}] Tool execution blocked due to limits: {limits.errors}")
                usage.limit_requested = _page_size(arguments_in)
                self._record(usage.finish(UsageStatus.BLOCKED, message, "; ".join(limits.errors)))
                return create_blocked_result(message)

            adjusted = limits.adjusted_args
            if limits.adjustments:
                usage.limit_requested = limits.adjustments[0].requested
                usage.limit_applied = limits.adjustments[0].applied

            feedback = self._limits.assess(tool_name, adjusted)
            logger.info(
                f"[{tool_name}] Token usage assessment: {feedback.message} "
                f"(severity={feedback.severity.value})"
            )

            # 5. Build and execute
            request = None
            if credentials is not None:
                request = self._builder.build(spec, adjusted, credentials, context)
            raw_result = await adapter.execute(spec, request)

            # 6. Post-process
            processed = self._processor.process(raw_result, tool_name)
            text = processed.text
            status, reason = UsageStatus.SUCCESS, None
            if limits.warnings or feedback.severity == FeedbackSeverity.WARNING:
                status, reason = UsageStatus.TRUNCATED, "Response optimized due to size limits"
                text += RESPONSE_SUMMARY_NOTICE
            elif processed.truncated:
                status, reason = UsageStatus.TRUNCATED, "Response truncated due to length"

            logger.info(f"[{tool_name}] Tool execution completed in {int((time.time() - started) * 1000)}ms")
            self._record(usage.finish(status, text, reason))
            return create_text_result(text)

        except ToolExecutionError as e:
            logger.error(f"[{tool_name}] Tool execution failed after {int((time.time() - started) * 1000)}ms: {e}")
            return self._fail(tool_name, e, usage)
        except Exception as e:
            logger.exception(f"[{tool_name}] Tool execution failed after {int((time.time() - started) * 1000)}ms: {e}")
            return self._fail(tool_name, e, usage)

    def _fail(self, tool_name: str, error: Exception, usage: "_UsageTracker") -> InvocationResult:
        self._record(usage.finish(
            UsageStatus.BLOCKED,
            error_message(tool_name, error),
            f"Execution failed: {error}",
        ))
        return create_error_result(tool_name, error)

    def _adapter_for(self, tool_name: str) -> BaseToolAdapter:
        for adapter in self._adapters:
            if adapter.supports_tool(tool_name):
                return adapter
        raise UnknownToolError(f"No adapter for tool: {tool_name}", tool_name=tool_name)

    def _record(self, record: UsageRecord) -> None:
        self._usage.record(record)

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def is_initialized(self) -> bool:
        """Check if orchestrator is initialized."""
        return self._initialized


class _UsageTracker:
    """Accumulates the fields of a UsageRecord during one invocation."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        self.user_id = "unknown"
        self.session_id: Optional[str] = None
        self.request_tokens = 0
        self.limit_requested: Any = None
        self.limit_applied: Any = None

    def bind(self, context: Optional[InvocationContext]) -> None:
        if context is not None:
            self.user_id = context.user_id or "unknown"
            self.session_id = context.chat_id

    def finish(self, status: UsageStatus, response_text: str, reason: Optional[str]) -> UsageRecord:
        return UsageRecord(
            user_id=self.user_id,
            session_id=self.session_id,
            tool=self.tool_name,
            request_tokens=self.request_tokens,
            response_tokens=estimate_tokens(response_text),
            status=status,
            reason=reason,
            limit_requested=self.limit_requested,
            limit_applied=self.limit_applied,
        )


def _page_size(arguments: Dict[str, Any]) -> Any:
    return next((arguments[f] for f in PAGE_SIZE_FIELDS if arguments.get(f) is not None), None)


# Singleton instance
_orchestrator: Optional[ExecutionOrchestrator] = None


async def get_execution_orchestrator(usage_sink: Optional[UsageSink] = None) -> ExecutionOrchestrator:
    """Get or create the execution orchestrator singleton."""
    global _orchestrator
    if _orchestrator is None:
        from config import get_settings

        settings = get_settings()
        registry = await get_tool_registry()

        if usage_sink is None:
            usage_sink = LoggingUsageSink() if settings.usage_telemetry_enabled else None

        _orchestrator = ExecutionOrchestrator(
            registry=registry,
            credential_resolver=CredentialResolver.from_settings(settings),
            limit_enforcer=LimitEnforcer(StaticLimitPolicyProvider()),
            request_builder=RequestBuilder.from_settings(settings, base_url=registry.base_url),
            response_processor=ResponseProcessor(settings.max_response_length),
            usage_recorder=UsageRecorder(usage_sink),
        )
        await _orchestrator.initialize()
    return _orchestrator
