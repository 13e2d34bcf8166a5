"""Response Processor - Unified response formatting.

Converts API payloads and pipeline outcomes into the text results handed
back to the agent host. Oversized payloads are truncated with an explicit
marker; no summarization is attempted.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from .errors import ToolExecutionError
from .types import ApprovalRequest, InvocationResult, TextContent

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESPONSE_LENGTH = 50000
TRUNCATION_MARKER = "\n\n[Response truncated due to length]"

RESPONSE_SUMMARY_NOTICE = (
    "\n\n---\n**📋 Response Summary:**\n"
    "Your request returned a large amount of data, so I've shown you a summary with the most relevant information. "
    "If you need more specific details, try asking for:\n\n"
    "• Specific items by ID or name\n"
    "• Data from a particular time period\n"
    "• Filtered results based on status or category\n\n"
    "This helps ensure faster and more focused results."
)

ERROR_HINTS = (
    "\n\nThis might be due to:\n"
    "- Invalid parameters\n"
    "- API rate limiting\n"
    "- Network connectivity issues\n"
    "- Authentication problems (check your organization ID and credentials)\n"
    "- Token usage limits exceeded\n\n"
    "Please check the parameters and try again with smaller limits if needed."
)


@dataclass(frozen=True)
class ProcessedResponse:
    """Serialized response text and whether it was cut."""
    text: str
    truncated: bool = False


class ResponseProcessor:
    """
    Serialize and bound tool responses.

    Output Format:
    - strings pass through as-is
    - anything else is rendered as indented JSON
    - text longer than ``max_response_length`` is cut and marked
    """

    def __init__(self, max_response_length: int = DEFAULT_MAX_RESPONSE_LENGTH):
        self.max_response_length = max_response_length

    def process(self, result: Any, tool_name: str = "") -> ProcessedResponse:
        """
        Convert a raw result to bounded text.

        Args:
            result: Decoded API result (JSON value or text)
            tool_name: Tool that produced it (for logging)

        Returns:
            ProcessedResponse with the text and a truncation flag
        """
        text = result if isinstance(result, str) else json.dumps(result, indent=2, default=str)

        if len(text) > self.max_response_length:
            logger.info(
                f"[{tool_name}] Truncating response from {len(text)} to {self.max_response_length} chars"
            )
            return ProcessedResponse(
                text=text[:self.max_response_length] + TRUNCATION_MARKER,
                truncated=True,
            )

        return ProcessedResponse(text=text)


# =============================================================================
# Invocation results
# =============================================================================

def create_text_result(text: str) -> InvocationResult:
    """Successful result carrying a text payload."""
    return InvocationResult(content=[TextContent(text=text)])


def error_message(tool_name: str, error: Any) -> str:
    """Caller-visible error text with generic remediation hints."""
    detail = error.message if isinstance(error, ToolExecutionError) else str(error)
    return f"Error executing {tool_name}: {detail}{ERROR_HINTS}"


def create_error_result(tool_name: str, error: Any) -> InvocationResult:
    """Error result for failures surfaced to the caller."""
    return InvocationResult(
        content=[TextContent(text=error_message(tool_name, error))],
        is_error=True,
    )


def create_blocked_result(message: str) -> InvocationResult:
    """Blocked result for limit violations: guidance, not a stack trace."""
    return InvocationResult(content=[TextContent(text=message)], is_error=True)


def create_approval_result(request: ApprovalRequest) -> InvocationResult:
    """Result carrying an approval artifact instead of an API response."""
    return InvocationResult(
        content=[TextContent(text=json.dumps(request.model_dump(by_alias=True, mode="json"), indent=2))],
        is_approval_required=True,
        approval_request=request,
    )
