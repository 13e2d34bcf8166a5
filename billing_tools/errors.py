"""Error taxonomy for the tool invocation pipeline.

Every exception carries a stable ``code`` so the orchestrator can turn it
into a caller-visible payload without parsing messages.
"""

from typing import Any, Dict, List, Optional


class ToolExecutionError(Exception):
    """Base class for all pipeline failures."""

    code = "TOOL_EXECUTION_ERROR"

    def __init__(self, message: str, tool_name: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.tool_name = tool_name
        self.details: Dict[str, Any] = details or {}

    def as_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.tool_name:
            d["tool"] = self.tool_name
        if self.details:
            d["details"] = self.details
        return d

    def __str__(self) -> str:
        return self.message


class UnknownToolError(ToolExecutionError):
    """Requested tool is not in the catalog."""

    code = "UNKNOWN_TOOL"


class ArgumentValidationError(ToolExecutionError):
    """Raw call arguments do not match the compiled schema."""

    code = "INVALID_ARGUMENTS"

    def __init__(self, message: str, tool_name: Optional[str] = None, fields: Optional[List[str]] = None):
        super().__init__(message, tool_name, {"fields": fields or []})
        self.fields = fields or []


class AuthError(ToolExecutionError):
    """No organization id or no credential could be resolved."""

    code = "AUTH_REQUIRED"


class LimitValidationError(ToolExecutionError):
    """A limit was violated and no clamp is defined for the field."""

    code = "LIMIT_EXCEEDED"

    def __init__(self, message: str, tool_name: Optional[str] = None, errors: Optional[List[str]] = None):
        super().__init__(message, tool_name, {"errors": errors or []})
        self.errors = errors or []


class NetworkError(ToolExecutionError):
    """Transport-level failure (connection refused, timeout, DNS...)."""

    code = "NETWORK_ERROR"

    def __init__(self, message: str, tool_name: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message, tool_name)
        self.cause = cause


class ApiError(ToolExecutionError):
    """The billing API answered with a non-2xx status."""

    code = "API_ERROR"

    def __init__(self, status_code: int, body: str, tool_name: Optional[str] = None, reason: str = ""):
        message = f"API request failed: {status_code} {reason}".rstrip() + f"\nResponse: {body}"
        super().__init__(message, tool_name, {"status_code": status_code})
        self.status_code = status_code
        self.body = body


class TelemetryError(ToolExecutionError):
    """Usage telemetry could not be persisted. Never surfaced to callers."""

    code = "TELEMETRY_ERROR"
