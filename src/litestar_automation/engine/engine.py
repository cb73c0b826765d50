"""Workflow engine.

The engine turns a :class:`TriggerEvent` into workflow instances: it scans
the registry snapshot, pre-filters on the trigger config, evaluates the
condition tree and runs each matched definition's actions in order inside
its own asyncio task. Delays are ``asyncio.sleep`` calls in that task, so
other events and instances keep being serviced while an instance waits.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from litestar_automation.core.context import ExecutionContext
from litestar_automation.core.models import ActionLogEntry, WorkflowInstanceData
from litestar_automation.core.types import InstanceStatus, TriggerType
from litestar_automation.engine.evaluator import ConditionEvaluator
from litestar_automation.exceptions import WorkflowInstanceNotFoundError
from litestar_automation.log import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from litestar_automation.core.definition import WorkflowDefinition
    from litestar_automation.core.events import TriggerEvent
    from litestar_automation.core.protocols import WorkflowInstanceStore
    from litestar_automation.engine.executor import ActionExecutor
    from litestar_automation.engine.registry import WorkflowRegistry

__all__ = ["TRIGGER_CONFIG_KEYS", "WorkflowEngine", "matches_trigger_config"]

logger = get_logger(__name__)

TRIGGER_CONFIG_KEYS: dict[TriggerType, dict[str, str]] = {
    TriggerType.TICKET_CREATED: {"priority": "priority", "client_id": "client_id"},
    TriggerType.TICKET_STATUS_CHANGED: {"to_status": "new_status", "from_status": "old_status"},
    TriggerType.TICKET_ASSIGNED: {"assigned_to": "assigned_to"},
    TriggerType.TICKET_PRIORITY_CHANGED: {"priority": "new_priority"},
    TriggerType.SLA_BREACH: {"breach_type": "breach_type"},
    TriggerType.SLA_WARNING: {"breach_type": "breach_type"},
}
"""Per trigger type, trigger-config keys mapped to the payload keys they filter on."""


def matches_trigger_config(trigger_config: Mapping[str, Any], event: TriggerEvent) -> bool:
    """Apply the trigger-type specific pre-filter.

    Only keys that are known for the event's trigger type and set to a
    non-empty value in ``trigger_config`` are checked; each must equal the
    corresponding payload value. Other config keys are ignored.

    Args:
        trigger_config: The definition's trigger config.
        event: The incoming event.

    Returns:
        Whether the event passes the pre-filter.
    """
    for config_key, payload_key in TRIGGER_CONFIG_KEYS.get(event.trigger_type, {}).items():
        expected = trigger_config.get(config_key)
        if expected in (None, ""):
            continue
        actual = event.payload.get(payload_key)
        if actual is None or str(actual) != str(expected):
            return False
    return True


class WorkflowEngine:
    """Matches trigger events to workflow definitions and runs them.

    Attributes:
        registry: Source of active definitions.
        executor: Runs individual actions.
        instances: Store for workflow instances.
        evaluator: Condition evaluator.
        _running: Map of instance IDs to their running asyncio tasks.

    Example:
        >>> engine = WorkflowEngine(registry, executor, InMemoryInstanceStore())
        >>> instance_ids = await engine.process_event(
        ...     TriggerEvent.ticket_created(ticket_id="42", priority="critical")
        ... )
    """

    def __init__(
        self,
        registry: WorkflowRegistry,
        executor: ActionExecutor,
        instances: WorkflowInstanceStore,
        evaluator: ConditionEvaluator | None = None,
    ) -> None:
        """Initialize the workflow engine.

        Args:
            registry: The workflow registry.
            executor: The action executor.
            instances: Persistence for workflow instances.
            evaluator: Optional condition evaluator.
        """
        self.registry = registry
        self.executor = executor
        self.instances = instances
        self.evaluator = evaluator or ConditionEvaluator()
        self._running: dict[UUID, asyncio.Task[None]] = {}

    def matches(self, definition: WorkflowDefinition, event: TriggerEvent) -> bool:
        """Return whether ``definition`` should run for ``event``."""
        if definition.trigger_type != event.trigger_type:
            return False
        if not matches_trigger_config(definition.trigger_config, event):
            return False
        return self.evaluator.evaluate(definition.conditions, event.payload)

    async def process_event(self, event: TriggerEvent, *, wait: bool = True) -> list[UUID]:
        """Run every workflow matching ``event``.

        Definitions are scanned in execution order. Each match creates one
        instance, executed in its own task. A definition's errors are
        confined to its own instance. A definition whose conditions raise is
        treated as not matching; one that matched but whose instance could
        not be stored still honours ``stop_on_first_match``.

        Args:
            event: The trigger event.
            wait: Await the created instances before returning. When False the
                instances keep running in the background.

        Returns:
            IDs of the instances created for this event, in creation order.
            Redelivering an event creates no new instances.
        """
        created: list[UUID] = []
        tasks: list[asyncio.Task[None]] = []
        log_extra = {"event_id": event.event_id, "trigger_type": str(event.trigger_type)}

        for definition in self.registry.snapshot():
            try:
                matched = self.matches(definition, event)
            except Exception:
                logger.exception("Workflow matching failed", extra={**log_extra, "workflow_id": definition.id})
                continue
            if not matched:
                continue

            # A matched definition claims the event even when its instance cannot be started.
            try:
                instance = self._new_instance(definition, event)
                if not await self.instances.create(instance):
                    logger.info(
                        "Skipping duplicate event delivery",
                        extra={**log_extra, "workflow_id": definition.id},
                    )
                else:
                    created.append(instance.id)
                    tasks.append(self._start(definition, instance, event))
            except Exception:
                logger.exception("Workflow start failed", extra={**log_extra, "workflow_id": definition.id})

            if definition.stop_on_first_match:
                break

        logger.info("Event processed", extra={**log_extra, "instances": len(created)})
        if wait and tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        return created

    def _new_instance(self, definition: WorkflowDefinition, event: TriggerEvent) -> WorkflowInstanceData:
        return WorkflowInstanceData(
            id=uuid4(),
            workflow_id=definition.id,
            workflow_name=definition.name,
            trigger_event_id=event.event_id,
            trigger_type=event.trigger_type,
            status=InstanceStatus.RUNNING,
            started_at=datetime.now(timezone.utc),
            total_actions=definition.total_actions,
        )

    def _start(
        self,
        definition: WorkflowDefinition,
        instance: WorkflowInstanceData,
        event: TriggerEvent,
    ) -> asyncio.Task[None]:
        task = asyncio.create_task(self._run_instance(definition, instance, event))
        self._running[instance.id] = task
        task.add_done_callback(lambda _: self._running.pop(instance.id, None))
        return task

    async def _run_instance(
        self,
        definition: WorkflowDefinition,
        instance: WorkflowInstanceData,
        event: TriggerEvent,
    ) -> None:
        log_extra = {"workflow_id": definition.id, "instance_id": instance.id, "event_id": event.event_id}
        try:
            await self.execute_workflow(definition, instance, event)
        except asyncio.CancelledError:
            instance.finish(InstanceStatus.CANCELLED, "Cancelled")
            await self.instances.update(instance)
            logger.info("Workflow instance cancelled", extra=log_extra)
            raise
        except Exception as exc:
            logger.exception("Workflow instance failed", extra=log_extra)
            instance.finish(InstanceStatus.FAILED, str(exc))
            await self.instances.update(instance)

    async def execute_workflow(
        self,
        definition: WorkflowDefinition,
        instance: WorkflowInstanceData,
        event: TriggerEvent,
    ) -> WorkflowInstanceData:
        """Execute the actions of ``definition`` for ``instance`` in order.

        Progress (``actions_completed`` and the execution log) is persisted
        after every action. An action failing with ``stop_on_failure`` ends
        the instance as failed; an action requesting a halt ends it as
        completed.

        Args:
            definition: The matched definition.
            instance: The instance created for this run.
            event: The triggering event.

        Returns:
            The instance in its terminal state.
        """
        context = ExecutionContext(
            instance_id=instance.id,
            workflow_id=definition.id,
            event_id=event.event_id,
            payload=event.payload,
            variables=instance.variables,
        )
        log_extra = {"workflow_id": definition.id, "instance_id": instance.id}

        for index, action in enumerate(definition.actions):
            if action.delay_seconds:
                await asyncio.sleep(action.delay_seconds)

            if action.condition is not None and not self.evaluator.evaluate(
                action.condition, {**event.payload, **context.variables}
            ):
                instance.record(
                    ActionLogEntry(
                        action_index=index,
                        action_name=action.name,
                        action_type=str(action.action_type),
                        success=True,
                        skipped=True,
                        executed_at=datetime.now(timezone.utc),
                    )
                )
                await self.instances.update(instance)
                continue

            result = await self.executor.execute(action, context)
            instance.record(
                ActionLogEntry(
                    action_index=index,
                    action_name=action.name,
                    action_type=str(action.action_type),
                    success=result.success,
                    error=result.error,
                    output=result.output,
                    retry_attempts=result.retry_attempts,
                    duration_ms=result.duration_ms,
                    executed_at=datetime.now(timezone.utc),
                )
            )

            if not result.success:
                logger.warning("Action failed", extra={**log_extra, "action_name": action.name, "error": result.error})
                if action.stop_on_failure:
                    instance.finish(InstanceStatus.FAILED, f"Action '{action.name}' failed: {result.error}")
                    await self.instances.update(instance)
                    return instance

            await self.instances.update(instance)
            if result.halt:
                break

        instance.finish(InstanceStatus.COMPLETED)
        await self.instances.update(instance)
        logger.info("Workflow instance completed", extra=log_extra)
        return instance

    async def cancel_instance(self, instance_id: UUID) -> bool:
        """Cancel a running instance; its execution log is kept.

        Returns:
            False when the instance is not running.
        """
        task = self._running.get(instance_id)
        if task is None or task.done():
            return False
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        # A task cancelled before its first step never reaches _run_instance's handler.
        instance = await self.instances.get(instance_id)
        if instance is not None and not instance.is_terminal:
            instance.finish(InstanceStatus.CANCELLED, "Cancelled")
            await self.instances.update(instance)
        return True

    async def wait_for(self, instance_id: UUID) -> WorkflowInstanceData:
        """Wait until ``instance_id`` stops running and return it.

        Raises:
            WorkflowInstanceNotFoundError: If the instance does not exist.
        """
        task = self._running.get(instance_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return await self.get_instance(instance_id)

    async def get_instance(self, instance_id: UUID) -> WorkflowInstanceData:
        """Return an instance.

        Raises:
            WorkflowInstanceNotFoundError: If the instance does not exist.
        """
        instance = await self.instances.get(instance_id)
        if instance is None:
            raise WorkflowInstanceNotFoundError(instance_id)
        return instance

    async def get_execution_history(
        self,
        workflow_id: UUID | None = None,
        limit: int = 50,
    ) -> Sequence[WorkflowInstanceData]:
        """Return recent instances, newest first, optionally for one workflow."""
        return await self.instances.list(workflow_id, limit)

    def get_running_instances(self) -> list[UUID]:
        """Return the IDs of instances whose task is still running."""
        return [instance_id for instance_id, task in self._running.items() if not task.done()]

    async def shutdown(self) -> None:
        """Cancel every running instance and wait for the tasks to settle.

        Every instance that was still running is stored as cancelled.
        """
        running = list(self._running.items())
        for _, task in running:
            task.cancel()
        if not running:
            return
        await asyncio.gather(*(task for _, task in running), return_exceptions=True)
        for instance_id, _ in running:
            instance = await self.instances.get(instance_id)
            if instance is not None and not instance.is_terminal:
                instance.finish(InstanceStatus.CANCELLED, "Cancelled")
                await self.instances.update(instance)
