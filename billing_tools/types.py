"""Billing tool gateway types and data models.

This module defines all Pydantic models for the tool invocation pipeline:
- Tool specifications loaded from the catalog
- Per-call invocation context and approval decisions
- Approval artifacts, limit policies and usage records
- Prepared requests and invocation results
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Dict, List, Any, Callable
from enum import Enum
from datetime import datetime, timezone


# =============================================================================
# Enums
# =============================================================================

class ArgumentType(str, Enum):
    """Declared type of a tool argument."""
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


class ArgumentPosition(str, Enum):
    """Where an argument lands in the outbound request."""
    PATH = "path"
    QUERY = "query"
    BODY = "body"


class ApprovalKind(str, Enum):
    """Variant tag for approval policies."""
    ALWAYS = "always"
    NEVER = "never"
    CONDITIONAL = "conditional"


class ApprovalState(str, Enum):
    """Approval gate state for a single invocation."""
    NOT_REQUIRED = "not_required"
    AWAITING_DECISION = "awaiting_decision"
    APPROVED = "approved"


class UsageStatus(str, Enum):
    """Outcome recorded for an invocation."""
    SUCCESS = "success"
    TRUNCATED = "truncated"
    BLOCKED = "blocked"


class FeedbackSeverity(str, Enum):
    """Severity of a token usage assessment."""
    INFO = "info"
    WARNING = "warning"


# =============================================================================
# Tool Specification Models
# =============================================================================

class ToolArgument(BaseModel):
    """A single declared argument of a tool."""
    model_config = ConfigDict(frozen=True)

    name: str
    type: ArgumentType = ArgumentType.STRING
    position: Optional[ArgumentPosition] = None
    required: bool = False
    default: Any = None
    description: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _unknown_type_is_string(cls, value: Any) -> Any:
        # Catalog entries generated from OpenAPI occasionally carry types we
        # do not model; those validate as strings.
        if isinstance(value, str) and value not in ArgumentType._value2member_map_:
            return ArgumentType.STRING
        return value

    @property
    def has_default(self) -> bool:
        return self.default is not None


class RequestTemplate(BaseModel):
    """Endpoint description for a tool."""
    model_config = ConfigDict(frozen=True)

    url: str = "/"
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @field_validator("headers", mode="before")
    @classmethod
    def _headers_from_pairs(cls, value: Any) -> Any:
        # Headers may be given as a list of {key, value} pairs
        if isinstance(value, list):
            return {str(h["key"]): str(h["value"]) for h in value}
        return value or {}


class ResponseTemplate(BaseModel):
    """Optional post-processing instructions for a tool response."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    prepend_body: Optional[str] = Field(default=None, alias="prependBody")


class ApprovalConfig(BaseModel):
    """Presentation settings for the approval dialog."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    warning_text: Optional[str] = Field(default=None, alias="warningText")
    confirm_text: str = Field(default="Approve", alias="confirmText")
    cancel_text: str = Field(default="Cancel", alias="cancelText")
    sensitive_fields: List[str] = Field(default_factory=list, alias="sensitiveFields")


class ApprovalPolicy(BaseModel):
    """Tagged variant: Always | Never | ConditionalOn(predicate).

    The catalog can only express the static variants; conditional policies
    are attached in code through ``ToolRegistry.set_approval_predicate``.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: ApprovalKind = ApprovalKind.NEVER
    predicate: Optional[Callable[[Dict[str, Any]], bool]] = None

    @classmethod
    def always(cls) -> "ApprovalPolicy":
        return cls(kind=ApprovalKind.ALWAYS)

    @classmethod
    def never(cls) -> "ApprovalPolicy":
        return cls(kind=ApprovalKind.NEVER)

    @classmethod
    def conditional_on(cls, predicate: Callable[[Dict[str, Any]], bool]) -> "ApprovalPolicy":
        return cls(kind=ApprovalKind.CONDITIONAL, predicate=predicate)

    def requires_approval(self, arguments: Dict[str, Any]) -> bool:
        """Evaluate the policy against the current arguments."""
        if self.kind == ApprovalKind.ALWAYS:
            return True
        if self.kind == ApprovalKind.CONDITIONAL and self.predicate is not None:
            return bool(self.predicate(dict(arguments)))
        return False


class ToolSpec(BaseModel):
    """Definition of a callable billing API operation.

    Built once from the catalog and read-only for the process lifetime.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, arbitrary_types_allowed=True)

    name: str
    description: str = ""
    args: List[ToolArgument] = Field(default_factory=list)
    request_template: RequestTemplate = Field(default_factory=RequestTemplate, alias="requestTemplate")
    response_template: Optional[ResponseTemplate] = Field(default=None, alias="responseTemplate")
    needs_approval: ApprovalPolicy = Field(default_factory=ApprovalPolicy.never, alias="needsApproval")
    approval_config: Optional[ApprovalConfig] = Field(default=None, alias="approvalConfig")

    @field_validator("needs_approval", mode="before")
    @classmethod
    def _approval_from_flag(cls, value: Any) -> Any:
        if value is None or value is False:
            return ApprovalPolicy.never()
        if value is True:
            return ApprovalPolicy.always()
        if callable(value) and not isinstance(value, ApprovalPolicy):
            return ApprovalPolicy.conditional_on(value)
        return value

    def get_argument(self, name: str) -> Optional[ToolArgument]:
        for arg in self.args:
            if arg.name == name:
                return arg
        return None

    def argument_names(self, position: ArgumentPosition) -> List[str]:
        return [arg.name for arg in self.args if arg.position == position]


class ServerInfo(BaseModel):
    """The ``server`` block of the catalog document."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = "zenskar-api-server"
    base_url: Optional[str] = Field(default=None, alias="baseUrl")


# =============================================================================
# Invocation Context
# =============================================================================

class ApprovalDecision(BaseModel):
    """Decision supplied by a human reviewer on resubmission."""
    model_config = ConfigDict(populate_by_name=True)

    approved: bool
    modified_arguments: Optional[Dict[str, Any]] = Field(default=None, alias="modifiedArguments")
    original_arguments: Optional[Dict[str, Any]] = Field(default=None, alias="originalArguments")
    tool_name: Optional[str] = Field(default=None, alias="toolName")


class InvocationContext(BaseModel):
    """Internal per-call context carried in the ``__userContext`` argument.

    Never forwarded to the remote API as a domain argument.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: Optional[str] = Field(default=None, alias="userId")
    chat_id: Optional[str] = Field(default=None, alias="chatId")
    organization: Optional[str] = None
    authorization: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    headers: Dict[str, str] = Field(default_factory=dict)
    approval: Optional[ApprovalDecision] = None

    @property
    def is_approved(self) -> bool:
        return self.approval is not None and self.approval.approved is True


# =============================================================================
# Approval Models
# =============================================================================

class ApprovalField(BaseModel):
    """Form field descriptor rendered by the approval UI."""
    name: str
    label: str
    type: str
    required: bool = False
    value: Any = None
    sensitive: bool = False


class ApprovalRequest(BaseModel):
    """Artifact returned instead of executing a tool awaiting approval."""
    model_config = ConfigDict(populate_by_name=True)

    type: str = "approval_required"
    tool_name: str = Field(alias="toolName")
    tool_description: str = Field(alias="toolDescription")
    arguments: Dict[str, Any] = Field(default_factory=dict)
    approval_config: ApprovalConfig = Field(alias="approvalConfig")
    fields: List[ApprovalField] = Field(default_factory=list)


class ApprovalOutcome(BaseModel):
    """Result of running the approval gate for one invocation."""
    state: ApprovalState
    arguments: Dict[str, Any] = Field(default_factory=dict)
    request: Optional[ApprovalRequest] = None


# =============================================================================
# Limit Models
# =============================================================================

class LimitRule(BaseModel):
    """Numeric bound on a single argument."""
    field: str
    maximum: Optional[float] = None
    minimum: Optional[float] = None
    clamp: bool = True


class LimitPolicy(BaseModel):
    """Per-tool collection of limit rules."""
    tool_name: str
    rules: List[LimitRule] = Field(default_factory=list)
    tokens_per_item: int = 150


class LimitAdjustment(BaseModel):
    """A clamped value, recorded as requested vs applied."""
    field: str
    requested: Any
    applied: Any


class LimitCheckResult(BaseModel):
    """Result of limit enforcement."""
    valid: bool
    adjusted_args: Dict[str, Any] = Field(default_factory=dict)
    adjustments: List[LimitAdjustment] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class TokenUsageFeedback(BaseModel):
    """Estimated response cost for an argument set."""
    message: str
    severity: FeedbackSeverity = FeedbackSeverity.INFO
    estimated_tokens: int = 0
    suggestions: List[str] = Field(default_factory=list)


# =============================================================================
# Usage Telemetry
# =============================================================================

class UsageRecord(BaseModel):
    """Token usage and outcome of one invocation."""
    user_id: str = "unknown"
    session_id: Optional[str] = None
    tool: str
    request_tokens: int = Field(default=0, ge=0)
    response_tokens: int = Field(default=0, ge=0)
    status: UsageStatus = UsageStatus.SUCCESS
    reason: Optional[str] = None
    limit_requested: Optional[Any] = None
    limit_applied: Optional[Any] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_tokens(self) -> int:
        return self.request_tokens + self.response_tokens


# =============================================================================
# Request / Result Models
# =============================================================================

class ResolvedCredentials(BaseModel):
    """Tenant identity and auth headers for one call."""
    organization: str
    headers: Dict[str, str] = Field(default_factory=dict)
    organization_source: str
    credential_source: str


class PreparedRequest(BaseModel):
    """Fully assembled outbound HTTP request."""
    url: str
    method: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None


class TextContent(BaseModel):
    """A single text block returned to the host."""
    type: str = "text"
    text: str


class InvocationResult(BaseModel):
    """Structured result handed back across the invocation boundary."""
    content: List[TextContent] = Field(default_factory=list)
    is_error: bool = False
    is_approval_required: bool = False
    approval_request: Optional[ApprovalRequest] = None

    @property
    def text(self) -> str:
        return "\n".join(block.text for block in self.content)


ArgumentMap = Dict[str, Any]
ApprovalPredicate = Callable[[ArgumentMap], bool]
