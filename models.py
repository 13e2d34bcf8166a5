from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any, List

from billing_tools.types import ApprovalRequest, InvocationResult, TextContent


class ToolDescriptor(BaseModel):
    """A tool as advertised to agent hosts."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str
    parameters: Dict[str, Any]
    needs_approval: bool = Field(default=False, alias="needsApproval")


class ToolListResponse(BaseModel):
    """Response listing the tool catalog."""
    server: str
    tools: List[ToolDescriptor] = []


class InvokeResponse(BaseModel):
    """Result of one tool invocation in wire form."""
    model_config = ConfigDict(populate_by_name=True)

    content: List[TextContent] = []
    is_error: bool = Field(default=False, alias="isError")
    approval_required: bool = Field(default=False, alias="approvalRequired")
    approval_request: Optional[ApprovalRequest] = Field(default=None, alias="approvalRequest")

    @classmethod
    def from_result(cls, result: InvocationResult) -> "InvokeResponse":
        return cls(
            content=result.content,
            is_error=result.is_error,
            approval_required=result.is_approval_required,
            approval_request=result.approval_request,
        )
