"""Constants and enums for the workflow engine."""

from enum import Enum


class StepKind(str, Enum):
    """Kind of a node in a workflow graph."""

    START = "start"
    NOTIFICATION = "notification"
    APPROVAL = "approval"
    CONDITION = "condition"
    END = "end"


class ConditionOperator(str, Enum):
    """Comparison operator of a connection guard."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"


class ExecutionStatus(str, Enum):
    """Workflow execution status.

    Waiting for an approval is RUNNING with a pending Approval row.
    """

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ApprovalStatus(str, Enum):
    """Approval lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class ApprovalDecision(str, Enum):
    """Decisions accepted by the resume entry point."""

    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationStatus(str, Enum):
    """Delivery status of a notification row."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class ExecutionBackend(str, Enum):
    """Where freshly triggered executions are run."""

    INPROCESS = "inprocess"
    CELERY = "celery"
