"""Workflow graph model — steps, guarded connections and validation.

A workflow definition is stored as JSON on the ``workflows`` row:

{
    "steps": [
        {"id": "1", "type": "start", "label": "Submitted"},
        {"id": "2", "type": "notification", "label": "Notify PM",
         "assignee": "pm@example.com", "action": "email"},
        {"id": "3", "type": "condition", "label": "High risk?"},
        {"id": "4", "type": "approval", "label": "Safety sign-off",
         "assignee": "safety@example.com"},
        {"id": "5", "type": "end", "label": "Done"}
    ],
    "connections": [
        {"source": "1", "target": "2"},
        {"source": "2", "target": "3"},
        {"source": "3", "target": "4", "condition_field": "risk",
         "condition_operator": "equals", "condition_value": "high"},
        {"source": "3", "target": "5"},
        {"source": "4", "target": "5"}
    ]
}

The builder UI's key names ``workflow_steps`` / ``workflow_connections``
are accepted too. Each step kind parses into its own frozen dataclass so
processors only see the fields that kind carries.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from core.constants import ConditionOperator, StepKind
from core.exceptions import DefinitionError


# ─── Steps ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class StartStep:
    id: str
    label: str = ""
    kind: StepKind = field(default=StepKind.START, init=False)


@dataclass(frozen=True)
class NotificationStep:
    id: str
    label: str = ""
    assignee: Optional[str] = None
    action: Optional[str] = None  # channel: email, slack, webhook, in_app, both
    description: Optional[str] = None
    kind: StepKind = field(default=StepKind.NOTIFICATION, init=False)


@dataclass(frozen=True)
class ApprovalStep:
    id: str
    label: str = ""
    assignee: Optional[str] = None
    description: Optional[str] = None
    kind: StepKind = field(default=StepKind.APPROVAL, init=False)


@dataclass(frozen=True)
class ConditionStep:
    id: str
    label: str = ""
    description: Optional[str] = None
    kind: StepKind = field(default=StepKind.CONDITION, init=False)


@dataclass(frozen=True)
class EndStep:
    id: str
    label: str = ""
    kind: StepKind = field(default=StepKind.END, init=False)


Step = Union[StartStep, NotificationStep, ApprovalStep, ConditionStep, EndStep]


# ─── Connections ───────────────────────────────────────────────

@dataclass(frozen=True)
class Guard:
    """Condition on a connection: ``field operator value``."""

    field: str
    operator: ConditionOperator
    value: str


@dataclass(frozen=True)
class Connection:
    source: str
    target: str
    guard: Optional[Guard] = None
    label: Optional[str] = None

    @property
    def is_guarded(self) -> bool:
        return self.guard is not None


# ─── Parsing ───────────────────────────────────────────────────

def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_step(data: dict) -> Step:
    """Build the step variant for one raw step dict."""
    if not isinstance(data, dict):
        raise DefinitionError(f"Step must be an object, got {type(data).__name__}")

    step_id = _opt_str(data.get("id"))
    if step_id is None:
        raise DefinitionError("Step is missing an id")

    raw_kind = data.get("type", data.get("kind"))
    try:
        kind = StepKind(raw_kind)
    except ValueError:
        raise DefinitionError(f"Step '{step_id}' has unknown type: {raw_kind!r}")

    label = str(data.get("label") or "")
    if kind == StepKind.START:
        return StartStep(id=step_id, label=label)
    if kind == StepKind.END:
        return EndStep(id=step_id, label=label)
    if kind == StepKind.CONDITION:
        return ConditionStep(id=step_id, label=label, description=_opt_str(data.get("description")))
    if kind == StepKind.APPROVAL:
        return ApprovalStep(
            id=step_id,
            label=label,
            assignee=_opt_str(data.get("assignee")),
            description=_opt_str(data.get("description")),
        )
    return NotificationStep(
        id=step_id,
        label=label,
        assignee=_opt_str(data.get("assignee")),
        action=_opt_str(data.get("action")),
        description=_opt_str(data.get("description")),
    )


def parse_connection(data: dict) -> Connection:
    """Build a Connection; a guard exists only if field, operator and value are all set."""
    if not isinstance(data, dict):
        raise DefinitionError(f"Connection must be an object, got {type(data).__name__}")

    source = _opt_str(data.get("source"))
    target = _opt_str(data.get("target"))
    if source is None or target is None:
        raise DefinitionError("Connection requires both source and target")

    guard_field = _opt_str(data.get("condition_field"))
    guard_op = _opt_str(data.get("condition_operator"))
    guard_value = data.get("condition_value")
    guard = None
    if guard_field and guard_op and guard_value not in (None, ""):
        try:
            operator = ConditionOperator(guard_op)
        except ValueError:
            raise DefinitionError(
                f"Connection {source} -> {target} has unknown operator: {guard_op!r}"
            )
        guard = Guard(field=guard_field, operator=operator, value=str(guard_value))

    return Connection(source=source, target=target, guard=guard, label=_opt_str(data.get("label")))


# ─── Definition ────────────────────────────────────────────────

@dataclass(frozen=True)
class WorkflowDefinition:
    """Read-only step graph of one workflow."""

    id: str
    steps: tuple[Step, ...]
    connections: tuple[Connection, ...]

    @classmethod
    def from_dict(cls, workflow_id: str, data: Optional[dict]) -> "WorkflowDefinition":
        """Parse a stored definition. Raises DefinitionError on malformed input."""
        data = data or {}
        raw_steps = data.get("steps", data.get("workflow_steps")) or []
        raw_connections = data.get("connections", data.get("workflow_connections")) or []
        if not isinstance(raw_steps, list) or not isinstance(raw_connections, list):
            raise DefinitionError("Definition steps and connections must be lists")
        return cls(
            id=workflow_id,
            steps=tuple(parse_step(s) for s in raw_steps),
            connections=tuple(parse_connection(c) for c in raw_connections),
        )

    def to_dict(self) -> dict:
        """Serialize back to the stored JSON shape."""
        steps = []
        for step in self.steps:
            raw = {"id": step.id, "type": step.kind.value, "label": step.label}
            for attr in ("assignee", "action", "description"):
                value = getattr(step, attr, None)
                if value is not None:
                    raw[attr] = value
            steps.append(raw)

        connections = []
        for conn in self.connections:
            raw = {"source": conn.source, "target": conn.target}
            if conn.guard:
                raw.update(
                    condition_field=conn.guard.field,
                    condition_operator=conn.guard.operator.value,
                    condition_value=conn.guard.value,
                )
            if conn.label:
                raw["label"] = conn.label
            connections.append(raw)

        return {"steps": steps, "connections": connections}

    # ─── Lookup ────────────────────────────────────────────

    def get_step(self, step_id: str) -> Step:
        for step in self.steps:
            if step.id == step_id:
                return step
        raise DefinitionError(f"Step not found in workflow {self.id}: {step_id}")

    def outgoing(self, step_id: str) -> list[Connection]:
        """Outgoing connections of a step, in authoring order."""
        return [c for c in self.connections if c.source == step_id]

    @property
    def start_step(self) -> StartStep:
        starts = [s for s in self.steps if s.kind == StepKind.START]
        if len(starts) != 1:
            raise DefinitionError(
                f"Workflow {self.id} must have exactly one start step, found {len(starts)}"
            )
        return starts[0]

    # ─── Validation ────────────────────────────────────────

    def validate(self) -> None:
        """Check structural invariants; raise DefinitionError on the first violation."""
        if not self.steps:
            raise DefinitionError(f"Workflow {self.id} has no steps")

        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise DefinitionError(f"Duplicate step id: {step.id}")
            seen.add(step.id)

        self.start_step  # noqa: B018 raises unless exactly one start step

        for conn in self.connections:
            for endpoint in (conn.source, conn.target):
                if endpoint not in seen:
                    raise DefinitionError(
                        f"Connection {conn.source} -> {conn.target} references unknown step: {endpoint}"
                    )

        sources = {c.source for c in self.connections}
        for step in self.steps:
            if step.kind != StepKind.END and step.id not in sources:
                raise DefinitionError(
                    f"Step '{step.label or step.id}' ({step.kind.value}) has no outgoing connection"
                )

        self._check_unguarded_cycles()

    def _check_unguarded_cycles(self) -> None:
        """Reject cycles that never pass through a condition step.

        Such a loop can never be left, so it is rejected up front. Loops
        through a condition step are allowed and bounded at run time.
        """
        condition_ids = {s.id for s in self.steps if s.kind == StepKind.CONDITION}
        graph: dict[str, list[str]] = {}
        for conn in self.connections:
            if conn.source in condition_ids or conn.target in condition_ids:
                continue
            graph.setdefault(conn.source, []).append(conn.target)

        white, grey, black = 0, 1, 2
        color = {s.id: white for s in self.steps}
        for root in color:
            if color[root] != white:
                continue
            color[root] = grey
            stack = [(root, iter(graph.get(root, [])))]
            while stack:
                node, children = stack[-1]
                child = next(children, None)
                if child is None:
                    color[node] = black
                    stack.pop()
                elif color[child] == grey:
                    raise DefinitionError(
                        f"Workflow {self.id} has a cycle without a condition step through: {child}"
                    )
                elif color[child] == white:
                    color[child] = grey
                    stack.append((child, iter(graph.get(child, []))))
