"""Step processors — one handler per step kind.

A processor consumes the current step and the execution context and
returns what the driver loop should do next: Advance to a step, or
Suspend until an external decision arrives. End steps have no processor;
the loop completes the execution itself.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Union

import structlog

from app.config import Settings
from core.constants import StepKind
from core.exceptions import DefinitionError, DispatchError, StoreError
from notifications.manager import NotificationDispatcher
from workflow.conditions import select_connection
from workflow.graph import ApprovalStep, ConditionStep, NotificationStep, Step, WorkflowDefinition
from workflow.store import ExecutionStore

logger = structlog.get_logger(__name__)


# ─── Outcomes ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Advance:
    next_step_id: str


@dataclass(frozen=True)
class Suspend:
    approval_id: str


StepOutcome = Union[Advance, Suspend]


@dataclass
class StepRun:
    """What a processor gets to see of the execution it works for."""

    execution_id: str
    definition: WorkflowDefinition
    context: dict

    @property
    def trigger(self) -> dict:
        return self.context.get("trigger") or {}


def follow_first(definition: WorkflowDefinition, step: Step) -> Advance:
    """Advance along the first outgoing connection of a non-branching step."""
    outgoing = definition.outgoing(step.id)
    if not outgoing:
        raise DefinitionError(f"Step '{step.label or step.id}' has no outgoing connection")
    return Advance(outgoing[0].target)


def _pretty(data: dict) -> str:
    return json.dumps(data, indent=2, sort_keys=True, default=str)


# ─── Processors ────────────────────────────────────────────────

class BaseStepProcessor(ABC):
    """Shared collaborators for all processors."""

    kind: StepKind

    def __init__(
        self,
        store: ExecutionStore,
        dispatcher: NotificationDispatcher,
        settings: Settings,
        clock: Callable[[], datetime],
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.settings = settings
        self.clock = clock

    @abstractmethod
    async def process(self, step: Step, run: StepRun) -> StepOutcome:
        ...

    async def _dispatch(self, recipient: str, subject: str, body: str, channel: str) -> None:
        """Single send attempt.

        Raises:
            DispatchError: the dispatcher reported a failure or raised
        """
        try:
            result = await self.dispatcher.send(recipient, subject, body, channel=channel)
        except Exception as e:
            logger.error("dispatcher_raised", channel=channel, error=str(e), exc_info=True)
            raise DispatchError(str(e) or type(e).__name__) from e
        if not result.success:
            raise DispatchError(result.error or "Notification dispatch failed")


class StartProcessor(BaseStepProcessor):
    kind = StepKind.START

    async def process(self, step: Step, run: StepRun) -> StepOutcome:
        return follow_first(run.definition, step)


class NotificationProcessor(BaseStepProcessor):
    """Log a notification row, send it once, record sent/failed, move on."""

    kind = StepKind.NOTIFICATION

    async def process(self, step: NotificationStep, run: StepRun) -> StepOutcome:
        channel = step.action or "email"
        recipient = step.assignee or self.settings.DEFAULT_NOTIFICATION_RECIPIENT
        subject = f"Workflow Notification: {step.label}"
        body = self.render_body(step, run)

        notification = await self.store.create_notification(
            execution_id=run.execution_id,
            step_id=step.id,
            channel=channel,
            recipient=recipient,
            subject=subject,
            message=body,
        )

        try:
            await self._dispatch(recipient, subject, body, channel)
        except DispatchError as e:
            await self.store.mark_notification_failed(notification.id, e.message)
            logger.warning("notification_step_dispatch_failed", step_id=step.id, error=e.message)
        else:
            await self.store.mark_notification_sent(notification.id, self.clock())

        return follow_first(run.definition, step)

    @staticmethod
    def render_body(step: NotificationStep, run: StepRun) -> str:
        intro = step.description or f'Workflow step "{step.label}" has been triggered.'
        return f"{intro}\n\nForm Data:\n{_pretty(run.trigger)}"


class ApprovalProcessor(BaseStepProcessor):
    """Open a pending approval, alert the assignee, and suspend."""

    kind = StepKind.APPROVAL

    async def process(self, step: ApprovalStep, run: StepRun) -> StepOutcome:
        now = self.clock()
        approval = await self.store.create_approval(
            execution_id=run.execution_id,
            step_id=step.id,
            assignee=step.assignee,
            expires_at=now + timedelta(days=self.settings.APPROVAL_EXPIRY_DAYS),
        )

        recipient = step.assignee or self.settings.DEFAULT_NOTIFICATION_RECIPIENT
        try:
            await self._dispatch(
                recipient,
                f"Approval Required: {step.label}",
                self.render_body(step, run, approval.id),
                "email",
            )
        except DispatchError as e:
            logger.warning("approval_alert_failed", approval_id=approval.id, error=e.message)
        else:
            try:
                await self.store.mark_approval_notified(approval.id, self.clock())
            except StoreError as e:
                logger.warning("approval_notified_stamp_failed", approval_id=approval.id, error=e.message)

        return Suspend(approval.id)

    def render_body(self, step: ApprovalStep, run: StepRun, approval_id: str) -> str:
        description = step.description or "Please review and approve this workflow step."
        link = f"{self.settings.APP_BASE_URL.rstrip('/')}/approvals/{approval_id}"
        return (
            f"Approval Required\n\n"
            f"Step: {step.label}\n"
            f"Description: {description}\n\n"
            f"Form Data to Review:\n{_pretty(run.trigger)}\n\n"
            f"Review & Approve: {link}\n\n"
            f"This approval expires in {self.settings.APPROVAL_EXPIRY_DAYS} days."
        )


class ConditionProcessor(BaseStepProcessor):
    """Pure branching on the guards of the outgoing connections."""

    kind = StepKind.CONDITION

    async def process(self, step: ConditionStep, run: StepRun) -> StepOutcome:
        connection = select_connection(
            run.definition.outgoing(step.id), run.context, fall_back_to_first=True
        )
        if connection is None:
            raise DefinitionError(f"Condition step '{step.label or step.id}' has no outgoing connections")
        logger.debug(
            "condition_branch_selected",
            step_id=step.id,
            target=connection.target,
            guarded=connection.is_guarded,
        )
        return Advance(connection.target)


PROCESSOR_CLASSES: tuple[type[BaseStepProcessor], ...] = (
    StartProcessor,
    NotificationProcessor,
    ApprovalProcessor,
    ConditionProcessor,
)


def build_processors(
    store: ExecutionStore,
    dispatcher: NotificationDispatcher,
    settings: Settings,
    clock: Callable[[], datetime],
) -> dict[StepKind, BaseStepProcessor]:
    """Instantiate one processor per step kind."""
    return {cls.kind: cls(store, dispatcher, settings, clock) for cls in PROCESSOR_CLASSES}
