"""Limit Enforcer - Per-tool bounds on argument values.

Caps response size and cost before any request is sent. Values inside the
policy pass through unchanged; values outside are clamped when the rule
allows it and rejected otherwise.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Dict, List, Any

from .types import (
    FeedbackSeverity,
    LimitAdjustment,
    LimitCheckResult,
    LimitPolicy,
    LimitRule,
    TokenUsageFeedback,
)

logger = logging.getLogger(__name__)

# Argument names that select a page size
PAGE_SIZE_FIELDS = ("limit", "page_size")


# =============================================================================
# Policy Providers
# =============================================================================

class LimitPolicyProvider(ABC):
    """Capability that supplies the limit policy for a tool."""

    @abstractmethod
    def get_policy(self, tool_name: str) -> Optional[LimitPolicy]:
        """Return the policy for a tool, or None when unbounded."""
        pass


class NoOpLimitPolicyProvider(LimitPolicyProvider):
    """Provider used when no limits are configured: every tool is unbounded."""

    def get_policy(self, tool_name: str) -> Optional[LimitPolicy]:
        return None


class StaticLimitPolicyProvider(LimitPolicyProvider):
    """
    In-memory limit policies.

    Tools without an explicit policy get ``DEFAULT_RULES`` (page size
    clamped to 100).
    """

    DEFAULT_RULES: List[LimitRule] = [
        LimitRule(field="limit", maximum=100, minimum=1, clamp=True),
        LimitRule(field="page_size", maximum=100, minimum=1, clamp=True),
    ]

    DEFAULT_POLICIES: Dict[str, LimitPolicy] = {
        "listCustomers": LimitPolicy(
            tool_name="listCustomers",
            rules=[LimitRule(field="limit", maximum=100, minimum=1, clamp=False)],
            tokens_per_item=250,
        ),
        "listInvoices": LimitPolicy(
            tool_name="listInvoices",
            rules=[LimitRule(field="limit", maximum=50, minimum=1, clamp=True)],
            tokens_per_item=400,
        ),
        "listContracts": LimitPolicy(
            tool_name="listContracts",
            rules=[LimitRule(field="limit", maximum=50, minimum=1, clamp=True)],
            tokens_per_item=500,
        ),
        "listProducts": LimitPolicy(
            tool_name="listProducts",
            rules=[LimitRule(field="limit", maximum=100, minimum=1, clamp=True)],
            tokens_per_item=150,
        ),
    }

    def __init__(self, policies: Optional[Dict[str, LimitPolicy]] = None, apply_defaults: bool = True):
        self._policies: Dict[str, LimitPolicy] = dict(self.DEFAULT_POLICIES)
        if policies:
            self._policies.update(policies)
        self._apply_defaults = apply_defaults

    def set_policy(self, policy: LimitPolicy) -> None:
        """Set a custom policy for a tool."""
        self._policies[policy.tool_name] = policy
        logger.info(f"Set custom limit policy for {policy.tool_name}: {policy}")

    def get_policy(self, tool_name: str) -> Optional[LimitPolicy]:
        policy = self._policies.get(tool_name)
        if policy is None and self._apply_defaults:
            return LimitPolicy(tool_name=tool_name, rules=list(self.DEFAULT_RULES))
        return policy


# =============================================================================
# Enforcer
# =============================================================================

class LimitEnforcer:
    """
    Validate and clamp tool arguments against limit policies.

    Pure: never mutates its input and has no side effects. Running it on
    its own adjusted output performs no further adjustment.
    """

    # Estimated response size above which a warning is raised
    WARNING_TOKEN_THRESHOLD = 20000

    def __init__(self, provider: Optional[LimitPolicyProvider] = None):
        self._provider = provider or NoOpLimitPolicyProvider()

    def validate(self, tool_name: str, arguments: Dict[str, Any]) -> LimitCheckResult:
        """
        Check arguments against the tool's policy.

        Args:
            tool_name: Tool being invoked
            arguments: Validated domain arguments

        Returns:
            LimitCheckResult with adjusted arguments, warnings and errors
        """
        adjusted = dict(arguments)
        policy = self._provider.get_policy(tool_name)
        if policy is None:
            return LimitCheckResult(valid=True, adjusted_args=adjusted)

        adjustments: List[LimitAdjustment] = []
        warnings: List[str] = []
        errors: List[str] = []
        suggestions: List[str] = []

        for rule in policy.rules:
            value = adjusted.get(rule.field)
            if not _is_number(value):
                continue

            bound = None
            if rule.maximum is not None and value > rule.maximum:
                bound, direction = rule.maximum, "maximum"
            elif rule.minimum is not None and value < rule.minimum:
                bound, direction = rule.minimum, "minimum"
            if bound is None:
                continue

            bound_value = _like(value, bound)
            if rule.clamp:
                adjusted[rule.field] = bound_value
                adjustments.append(LimitAdjustment(field=rule.field, requested=value, applied=bound_value))
                warnings.append(
                    f"{rule.field} adjusted from {value} to {bound_value} ({direction} allowed for {tool_name})"
                )
            else:
                errors.append(
                    f"{rule.field}={value} is outside the {direction} of {bound_value} allowed for {tool_name}"
                )
                if direction == "maximum":
                    suggestions.append(f"Try {rule.field}={bound_value} or fewer")
                else:
                    suggestions.append(f"Try {rule.field}={bound_value} or more")

        if warnings:
            logger.info(f"[{tool_name}] Limits adjusted: {warnings}")
        if errors:
            logger.warning(f"[{tool_name}] Limits violated: {errors}")

        return LimitCheckResult(
            valid=not errors,
            adjusted_args=adjusted if not errors else dict(arguments),
            adjustments=adjustments,
            warnings=warnings,
            errors=errors,
            suggestions=suggestions,
        )

    def assess(self, tool_name: str, arguments: Dict[str, Any]) -> TokenUsageFeedback:
        """
        Estimate the token cost of the response for an argument set.

        Args:
            tool_name: Tool being invoked
            arguments: Arguments after limit enforcement

        Returns:
            TokenUsageFeedback with severity and suggestions
        """
        policy = self._provider.get_policy(tool_name)
        page_size = next(
            (arguments[f] for f in PAGE_SIZE_FIELDS if _is_number(arguments.get(f))),
            None,
        )
        if policy is None or page_size is None:
            return TokenUsageFeedback(message=f"No size estimate available for {tool_name}")

        estimated = int(page_size * policy.tokens_per_item)
        if estimated > self.WARNING_TOKEN_THRESHOLD:
            return TokenUsageFeedback(
                message=f"Estimated response of ~{estimated} tokens for {page_size} items",
                severity=FeedbackSeverity.WARNING,
                estimated_tokens=estimated,
                suggestions=[
                    "Request fewer items per page",
                    "Filter by date range, status or customer",
                    "Fetch specific records by ID",
                ],
            )
        return TokenUsageFeedback(
            message=f"Estimated response of ~{estimated} tokens for {page_size} items",
            estimated_tokens=estimated,
        )


def remediation_message(tool_name: str, result: LimitCheckResult) -> str:
    """Human-readable guidance returned when a request is blocked by limits."""
    lines = [
        "I'm sorry, but this request is too large to process efficiently. "
        "To get better results, please try:",
        "",
    ]
    for suggestion in result.suggestions:
        lines.append(f"• {suggestion}")
    lines.extend([
        "• Using smaller numbers when asking for lists (try 10-20 items instead of larger amounts)",
        "• Being more specific with your search criteria",
        "• Breaking your request into smaller parts",
        "",
        "For example, instead of asking for all customers, try asking for "
        "\"customers created this month\" or \"customers from a specific region.\"",
    ])
    if result.errors:
        lines.extend(["", f"Details ({tool_name}): " + "; ".join(result.errors)])
    return "\n".join(lines)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _like(value: Any, bound: float) -> Any:
    # Keep integer arguments integral after clamping
    if isinstance(value, int) and float(bound).is_integer():
        return int(bound)
    return bound
