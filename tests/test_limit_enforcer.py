"""Tests for Limit Enforcer."""

import pytest
from billing_tools import (
    FeedbackSeverity,
    LimitEnforcer,
    LimitPolicy,
    LimitRule,
    NoOpLimitPolicyProvider,
    StaticLimitPolicyProvider,
)
from billing_tools.limit_enforcer import remediation_message


@pytest.fixture
def enforcer():
    """Enforcer with the built-in policies."""
    return LimitEnforcer(StaticLimitPolicyProvider())


class TestValidate:
    """Test cases for LimitEnforcer.validate."""

    def test_within_limits_unchanged(self, enforcer):
        """Test values inside the policy pass through."""
        result = enforcer.validate("listInvoices", {"limit": 10, "customer_id": "c1"})

        assert result.valid
        assert result.adjusted_args == {"limit": 10, "customer_id": "c1"}
        assert result.adjustments == []
        assert result.warnings == []

    def test_clamped_to_maximum(self, enforcer):
        """Test an oversized limit is clamped when the rule allows it."""
        result = enforcer.validate("listInvoices", {"limit": 500})

        assert result.valid
        assert result.adjusted_args["limit"] == 50
        assert isinstance(result.adjusted_args["limit"], int)
        assert result.adjustments[0].requested == 500
        assert result.adjustments[0].applied == 50
        assert len(result.warnings) == 1

    def test_clamped_to_minimum(self, enforcer):
        """Test a too-small limit is raised to the minimum."""
        result = enforcer.validate("listProducts", {"limit": 0})

        assert result.valid
        assert result.adjusted_args["limit"] == 1

    def test_rejected_without_clamp(self, enforcer):
        """Test listCustomers rejects oversized pages instead of clamping."""
        args = {"limit": 500}
        result = enforcer.validate("listCustomers", args)

        assert not result.valid
        assert result.errors
        assert "Try limit=100 or fewer" in result.suggestions
        assert result.adjusted_args == {"limit": 500}

    def test_input_not_mutated(self, enforcer):
        """Test the caller's dict is left untouched."""
        args = {"limit": 500}
        enforcer.validate("listInvoices", args)

        assert args == {"limit": 500}

    def test_idempotent(self, enforcer):
        """Test re-validating adjusted output changes nothing."""
        first = enforcer.validate("listContracts", {"limit": 999})
        second = enforcer.validate("listContracts", first.adjusted_args)

        assert second.adjusted_args == first.adjusted_args
        assert second.adjustments == []

    def test_default_rules_for_unlisted_tool(self, enforcer):
        """Test tools without a policy still have page size bounded."""
        result = enforcer.validate("listPlans", {"page_size": 1000})

        assert result.adjusted_args["page_size"] == 100

    def test_non_numeric_ignored(self, enforcer):
        """Test non-numeric values are not judged."""
        result = enforcer.validate("listInvoices", {"limit": True})

        assert result.valid
        assert result.adjusted_args == {"limit": True}

    def test_no_policy(self):
        """Test a no-op provider leaves everything unbounded."""
        result = LimitEnforcer(NoOpLimitPolicyProvider()).validate("listCustomers", {"limit": 10000})

        assert result.valid
        assert result.adjusted_args == {"limit": 10000}

    def test_custom_policy(self):
        """Test custom policies override the defaults."""
        provider = StaticLimitPolicyProvider()
        provider.set_policy(LimitPolicy(
            tool_name="listCustomers",
            rules=[LimitRule(field="limit", maximum=10, clamp=True)],
        ))

        result = LimitEnforcer(provider).validate("listCustomers", {"limit": 50})

        assert result.valid
        assert result.adjusted_args["limit"] == 10


class TestAssess:
    """Test cases for LimitEnforcer.assess."""

    def test_small_page_is_info(self, enforcer):
        feedback = enforcer.assess("listInvoices", {"limit": 10})

        assert feedback.severity == FeedbackSeverity.INFO
        assert feedback.estimated_tokens == 4000

    def test_large_page_is_warning(self, enforcer):
        feedback = enforcer.assess("listContracts", {"limit": 50})

        assert feedback.severity == FeedbackSeverity.WARNING
        assert feedback.estimated_tokens == 25000
        assert feedback.suggestions

    def test_without_page_size(self, enforcer):
        feedback = enforcer.assess("getCustomer", {"customer_id": "c1"})

        assert feedback.severity == FeedbackSeverity.INFO
        assert feedback.estimated_tokens == 0


class TestRemediationMessage:
    """Test cases for the blocked-request guidance text."""

    def test_contains_suggestions(self, enforcer):
        result = enforcer.validate("listCustomers", {"limit": 500})

        message = remediation_message("listCustomers", result)

        assert message.startswith("I'm sorry, but this request is too large")
        assert "• Try limit=100 or fewer" in message
        assert "listCustomers" in message
