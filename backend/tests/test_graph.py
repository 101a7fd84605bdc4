"""Tests for workflow graph parsing and validation."""

import pytest

from core.constants import ConditionOperator, StepKind
from core.exceptions import DefinitionError
from tests.graphs import approval_definition, expense_definition
from workflow.graph import (
    ApprovalStep,
    NotificationStep,
    WorkflowDefinition,
    parse_connection,
    parse_step,
)


@pytest.mark.unit
class TestParsing:
    """Raw JSON into step variants and connections."""

    def test_step_variants_carry_their_fields(self):
        step = parse_step({"id": "n1", "type": "notification", "label": "Tell PM",
                           "assignee": "pm@example.com", "action": "slack", "description": "FYI"})
        assert isinstance(step, NotificationStep)
        assert step.kind == StepKind.NOTIFICATION
        assert (step.assignee, step.action, step.description) == ("pm@example.com", "slack", "FYI")

    def test_kind_key_is_accepted(self):
        step = parse_step({"id": "a1", "kind": "approval", "assignee": "boss@example.com"})
        assert isinstance(step, ApprovalStep)
        assert step.assignee == "boss@example.com"

    def test_blank_optional_fields_become_none(self):
        step = parse_step({"id": "n1", "type": "notification", "assignee": "  ", "action": ""})
        assert step.assignee is None
        assert step.action is None

    @pytest.mark.parametrize("raw", [
        {"type": "start"},
        {"id": "x", "type": "http_request"},
        "not-a-step",
    ])
    def test_bad_steps_raise(self, raw):
        with pytest.raises(DefinitionError):
            parse_step(raw)

    def test_guard_needs_field_operator_and_value(self):
        conn = parse_connection({"source": "a", "target": "b", "condition_field": "amount",
                                 "condition_operator": "greater_than"})
        assert conn.guard is None
        assert not conn.is_guarded

        conn = parse_connection({"source": "a", "target": "b", "condition_field": "amount",
                                 "condition_operator": "greater_than", "condition_value": 100})
        assert conn.guard.operator == ConditionOperator.GREATER_THAN
        assert conn.guard.value == "100"

    def test_unknown_operator_raises(self):
        with pytest.raises(DefinitionError):
            parse_connection({"source": "a", "target": "b", "condition_field": "x",
                              "condition_operator": "matches", "condition_value": "y"})

    def test_builder_key_names(self):
        data = approval_definition()
        definition = WorkflowDefinition.from_dict(
            "wf-1",
            {"workflow_steps": data["steps"], "workflow_connections": data["connections"]},
        )
        assert [s.id for s in definition.steps] == ["start", "approve", "notify-rejected", "end"]
        assert len(definition.connections) == 4

    def test_to_dict_is_stable(self):
        definition = WorkflowDefinition.from_dict("wf-1", expense_definition())
        again = WorkflowDefinition.from_dict("wf-1", definition.to_dict())
        assert again == definition


@pytest.mark.unit
class TestLookup:

    def test_outgoing_keeps_authoring_order(self):
        definition = WorkflowDefinition.from_dict("wf-1", expense_definition())
        assert [c.target for c in definition.outgoing("check")] == ["approve", "notify"]
        assert definition.outgoing("end") == []

    def test_get_unknown_step_raises(self):
        definition = WorkflowDefinition.from_dict("wf-1", expense_definition())
        with pytest.raises(DefinitionError):
            definition.get_step("nope")

    def test_start_step(self):
        definition = WorkflowDefinition.from_dict("wf-1", expense_definition())
        assert definition.start_step.id == "start"


@pytest.mark.unit
class TestValidation:
    """Structural checks run before an execution is created."""

    def _validate(self, data):
        WorkflowDefinition.from_dict("wf-1", data).validate()

    def test_valid_definitions_pass(self):
        self._validate(approval_definition())
        self._validate(expense_definition())

    def test_empty_definition(self):
        with pytest.raises(DefinitionError, match="no steps"):
            self._validate({"steps": [], "connections": []})

    def test_missing_start(self):
        data = expense_definition()
        data["steps"][0]["type"] = "notification"
        with pytest.raises(DefinitionError, match="exactly one start step"):
            self._validate(data)

    def test_two_starts(self):
        data = expense_definition()
        data["steps"].append({"id": "start-2", "type": "start"})
        data["connections"].append({"source": "start-2", "target": "end"})
        with pytest.raises(DefinitionError, match="exactly one start step"):
            self._validate(data)

    def test_duplicate_step_ids(self):
        data = expense_definition()
        data["steps"].append({"id": "check", "type": "end"})
        with pytest.raises(DefinitionError, match="Duplicate step id"):
            self._validate(data)

    def test_dangling_connection(self):
        data = expense_definition()
        data["connections"].append({"source": "notify", "target": "ghost"})
        with pytest.raises(DefinitionError, match="unknown step: ghost"):
            self._validate(data)

    def test_dead_end(self):
        data = expense_definition()
        data["connections"] = [c for c in data["connections"] if c["source"] != "approve"]
        with pytest.raises(DefinitionError, match="no outgoing connection"):
            self._validate(data)

    def test_cycle_without_condition_rejected(self):
        data = {
            "steps": [
                {"id": "start", "type": "start"},
                {"id": "a", "type": "notification"},
                {"id": "b", "type": "approval"},
                {"id": "end", "type": "end"},
            ],
            "connections": [
                {"source": "start", "target": "a"},
                {"source": "a", "target": "b"},
                {"source": "b", "target": "a"},
                {"source": "b", "target": "end"},
            ],
        }
        with pytest.raises(DefinitionError, match="cycle"):
            self._validate(data)

    def test_cycle_through_condition_allowed(self):
        data = {
            "steps": [
                {"id": "start", "type": "start"},
                {"id": "check", "type": "condition"},
                {"id": "fix", "type": "approval"},
                {"id": "end", "type": "end"},
            ],
            "connections": [
                {"source": "start", "target": "check"},
                {"source": "check", "target": "end", "condition_field": "decision",
                 "condition_operator": "equals", "condition_value": "approved"},
                {"source": "check", "target": "fix"},
                {"source": "fix", "target": "check"},
            ],
        }
        self._validate(data)
