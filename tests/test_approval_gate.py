"""Tests for Approval Gate."""

import pytest
from billing_tools import (
    ApprovalGate,
    ApprovalPolicy,
    ApprovalState,
    ArgumentValidationError,
    InvocationContext,
    ToolArgument,
    ToolSpec,
    compile_schema,
)


@pytest.fixture
def gate():
    return ApprovalGate()


@pytest.fixture
def create_spec():
    """Tool that always requires approval."""
    return ToolSpec(
        name="createCustomer",
        description="Create a customer",
        args=[
            ToolArgument(name="customer_name", type="string", position="body", required=True, description="Name"),
            ToolArgument(name="email", type="string", position="body", required=True),
            ToolArgument(name="credit", type="number", position="body"),
            ToolArgument(name="active", type="boolean", position="body"),
        ],
        needs_approval=True,
        approval_config={"title": "Create customer", "sensitiveFields": ["email"]},
    )


@pytest.fixture
def arguments():
    return {"customer_name": "Acme", "email": "billing@acme.test"}


class TestApprovalGate:
    """Test cases for ApprovalGate.evaluate."""

    def test_not_required_without_policy(self, gate, arguments):
        """Test tools without approval proceed immediately."""
        spec = ToolSpec(name="listCustomers")

        outcome = gate.evaluate(spec, arguments, None)

        assert outcome.state == ApprovalState.NOT_REQUIRED
        assert outcome.request is None

    def test_awaiting_decision(self, gate, create_spec, arguments):
        """Test a first call returns an approval request."""
        outcome = gate.evaluate(create_spec, arguments, None)

        assert outcome.state == ApprovalState.AWAITING_DECISION
        request = outcome.request
        assert request.type == "approval_required"
        assert request.tool_name == "createCustomer"
        assert request.arguments == arguments
        assert request.approval_config.title == "Create customer"

    def test_request_fields(self, gate, create_spec, arguments):
        """Test form fields mirror the argument descriptors."""
        request = gate.evaluate(create_spec, arguments, None).request
        fields = {f.name: f for f in request.fields}

        assert fields["customer_name"].label == "Name"
        assert fields["customer_name"].type == "text"
        assert fields["customer_name"].required
        assert fields["customer_name"].value == "Acme"
        assert fields["email"].sensitive
        assert fields["credit"].type == "number"
        assert fields["active"].type == "checkbox"

    def test_request_serializes_with_wire_names(self, gate, create_spec, arguments):
        """Test the artifact uses camelCase keys on the wire."""
        request = gate.evaluate(create_spec, arguments, None).request
        data = request.model_dump(by_alias=True, mode="json")

        assert data["toolName"] == "createCustomer"
        assert "approvalConfig" in data
        assert data["approvalConfig"]["sensitiveFields"] == ["email"]

    def test_default_config(self, gate, arguments):
        """Test a default dialog is generated when none is configured."""
        spec = ToolSpec(name="deleteCustomer", description="Delete a customer", needs_approval=True)

        request = gate.evaluate(spec, arguments, None).request

        assert request.approval_config.title == "Approve deleteCustomer"
        assert "Delete a customer" in request.approval_config.description

    def test_approved_with_original_arguments(self, gate, create_spec, arguments):
        """Test an approval without edits continues with the same arguments."""
        context = InvocationContext(approval={"approved": True})

        outcome = gate.evaluate(create_spec, arguments, context)

        assert outcome.state == ApprovalState.APPROVED
        assert outcome.arguments == arguments

    def test_rejected_decision_awaits_again(self, gate, create_spec, arguments):
        """Test approved=False never executes."""
        context = InvocationContext(approval={"approved": False})

        outcome = gate.evaluate(create_spec, arguments, context)

        assert outcome.state == ApprovalState.AWAITING_DECISION

    def test_modified_arguments_replace(self, gate, create_spec, arguments):
        """Test reviewer edits replace the whole argument set."""
        context = InvocationContext(approval={
            "approved": True,
            "modifiedArguments": {"customer_name": "Acme Ltd", "email": "ap@acme.test"},
        })

        outcome = gate.evaluate(create_spec, arguments, context)

        assert outcome.arguments == {"customer_name": "Acme Ltd", "email": "ap@acme.test"}
        assert arguments == {"customer_name": "Acme", "email": "billing@acme.test"}

    def test_modified_arguments_revalidated(self, gate, create_spec, arguments):
        """Test edited arguments must satisfy the schema."""
        context = InvocationContext(approval={
            "approved": True,
            "modifiedArguments": {"customer_name": "Acme"},
        })

        with pytest.raises(ArgumentValidationError):
            gate.evaluate(create_spec, arguments, context, compile_schema(create_spec))

    def test_modified_arguments_drop_internal_keys(self, gate, create_spec, arguments):
        """Test the internal context is not part of the replacement."""
        context = InvocationContext(approval={
            "approved": True,
            "modifiedArguments": {"customer_name": "A", "email": "e", "__userContext": {"userId": "x"}},
        })

        outcome = gate.evaluate(create_spec, arguments, context)

        assert "__userContext" not in outcome.arguments

    def test_approval_for_other_tool_ignored(self, gate, create_spec, arguments):
        """Test a decision issued for another tool does not approve this one."""
        context = InvocationContext(approval={"approved": True, "toolName": "deleteCustomer"})

        outcome = gate.evaluate(create_spec, arguments, context)

        assert outcome.state == ApprovalState.AWAITING_DECISION


class TestConditionalApproval:
    """Test cases for argument-dependent approval."""

    @pytest.fixture
    def conditional_spec(self):
        return ToolSpec(
            name="issueCredit",
            args=[ToolArgument(name="amount", type="number", position="body")],
            needs_approval=ApprovalPolicy.conditional_on(lambda args: args.get("amount", 0) > 1000),
        )

    def test_predicate_false(self, gate, conditional_spec):
        outcome = gate.evaluate(conditional_spec, {"amount": 10}, None)

        assert outcome.state == ApprovalState.NOT_REQUIRED

    def test_predicate_true(self, gate, conditional_spec):
        outcome = gate.evaluate(conditional_spec, {"amount": 5000}, None)

        assert outcome.state == ApprovalState.AWAITING_DECISION

    def test_callable_converted_to_policy(self):
        spec = ToolSpec(name="t", needs_approval=lambda args: True)

        assert spec.needs_approval.requires_approval({})
