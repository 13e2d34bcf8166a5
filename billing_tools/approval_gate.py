"""Approval Gate - Human-in-the-loop deferral of sensitive tools.

Approval is realized as two separate invocations coordinated by the caller:
the first returns an ApprovalRequest and performs no network call, the
second carries the reviewer's decision in the internal context.
"""

import logging
from typing import Optional, Dict, Any

from .schema_compiler import CompiledSchema
from .types import (
    ApprovalConfig,
    ApprovalField,
    ApprovalKind,
    ApprovalOutcome,
    ApprovalRequest,
    ApprovalState,
    ArgumentType,
    InvocationContext,
    ToolSpec,
)

logger = logging.getLogger(__name__)

FIELD_TYPES: Dict[ArgumentType, str] = {
    ArgumentType.STRING: "text",
    ArgumentType.NUMBER: "number",
    ArgumentType.INTEGER: "number",
    ArgumentType.BOOLEAN: "checkbox",
}


class ApprovalGate:
    """
    State machine deciding whether an invocation may proceed.

    States:
    - NOT_REQUIRED: tool has no approval policy, or the policy is false
    - AWAITING_DECISION: policy is true and no affirmative decision exists
    - APPROVED: the context carries ``approval.approved is True``

    Terminal states (executed / cancelled) are reached by the caller's
    next invocation, never within one call.
    """

    def evaluate(
        self,
        spec: ToolSpec,
        arguments: Dict[str, Any],
        context: Optional[InvocationContext],
        schema: Optional[CompiledSchema] = None,
    ) -> ApprovalOutcome:
        """
        Run the gate for one invocation.

        Args:
            spec: Tool being invoked
            arguments: Validated domain arguments (context excluded)
            context: Internal context of the call
            schema: Compiled schema used to re-validate reviewer edits

        Returns:
            ApprovalOutcome with the state, the arguments to continue with,
            and the approval request when awaiting a decision
        """
        policy = spec.needs_approval
        if policy.kind == ApprovalKind.NEVER:
            return ApprovalOutcome(state=ApprovalState.NOT_REQUIRED, arguments=dict(arguments))

        if self._has_affirmative_decision(spec, context):
            return self._approved(spec, arguments, context, schema)

        if policy.requires_approval(arguments):
            logger.info(f"[{spec.name}] Tool requires approval, generating approval request")
            return ApprovalOutcome(
                state=ApprovalState.AWAITING_DECISION,
                arguments=dict(arguments),
                request=self.build_request(spec, arguments),
            )

        return ApprovalOutcome(state=ApprovalState.NOT_REQUIRED, arguments=dict(arguments))

    def build_request(self, spec: ToolSpec, arguments: Dict[str, Any]) -> ApprovalRequest:
        """Generate the approval artifact with per-field form descriptors."""
        config = spec.approval_config or self.default_config(spec)
        sensitive = set(config.sensitive_fields)

        fields = [
            ApprovalField(
                name=arg.name,
                label=arg.description or arg.name,
                type=FIELD_TYPES.get(arg.type, "text"),
                required=arg.required,
                value=arguments.get(arg.name),
                sensitive=arg.name in sensitive,
            )
            for arg in spec.args
        ]

        return ApprovalRequest(
            tool_name=spec.name,
            tool_description=spec.description,
            arguments=dict(arguments),
            approval_config=config,
            fields=fields,
        )

    @staticmethod
    def default_config(spec: ToolSpec) -> ApprovalConfig:
        return ApprovalConfig(
            title=f"Approve {spec.name}",
            description=f"This action requires your approval: {spec.description}",
            warning_text="Please review the parameters carefully before proceeding.",
        )

    def _has_affirmative_decision(self, spec: ToolSpec, context: Optional[InvocationContext]) -> bool:
        if context is None or not context.is_approved:
            return False
        decided_for = context.approval.tool_name
        if decided_for and decided_for != spec.name:
            logger.warning(
                f"[{spec.name}] Ignoring approval issued for a different tool: {decided_for}"
            )
            return False
        return True

    def _approved(
        self,
        spec: ToolSpec,
        arguments: Dict[str, Any],
        context: InvocationContext,
        schema: Optional[CompiledSchema],
    ) -> ApprovalOutcome:
        modified = context.approval.modified_arguments
        if modified is None:
            logger.info(f"[{spec.name}] Tool was approved, executing with original arguments")
            return ApprovalOutcome(state=ApprovalState.APPROVED, arguments=dict(arguments))

        # Reviewer edits replace the whole argument set; the context stays
        # with the invocation and is not part of the replacement.
        replacement = {k: v for k, v in modified.items() if not k.startswith("__")}
        if schema is not None:
            replacement = schema.validate(replacement).arguments

        logger.info(f"[{spec.name}] Using user-modified arguments: {replacement}")
        return ApprovalOutcome(state=ApprovalState.APPROVED, arguments=replacement)
