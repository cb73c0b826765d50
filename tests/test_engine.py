"""Tests for the workflow engine."""

from __future__ import annotations

import asyncio
from typing import Any
from uuid import uuid4

import pytest
from helpers import RecordingBroadcaster, ScriptedHandler

from litestar_automation.core.definition import WorkflowDefinition, escalate_critical_workflow
from litestar_automation.core.events import TriggerEvent
from litestar_automation.core.models import Ticket, WorkflowInstanceData
from litestar_automation.core.types import InstanceStatus
from litestar_automation.engine.engine import WorkflowEngine, matches_trigger_config
from litestar_automation.engine.registry import WorkflowRegistry
from litestar_automation.exceptions import WorkflowInstanceNotFoundError
from litestar_automation.memory import InMemoryInstanceStore, InMemoryTicketStore


def _step(step: str, **options: Any) -> dict[str, Any]:
    parameters = {"step": step}
    if options.pop("fail", False):
        parameters["fail"] = True
    return {"name": step.upper(), "action_type": "call_api", "parameters": parameters, **options}


def _workflow(*actions: dict[str, Any], trigger_type: str = "ticket_created", **overrides: Any) -> WorkflowDefinition:
    data: dict[str, Any] = {"name": "Workflow", "trigger_type": trigger_type, "actions": list(actions)}
    data.update(overrides)
    return WorkflowDefinition.from_dict(data)


def _created(priority: str = "high", **extra: Any) -> TriggerEvent:
    return TriggerEvent.ticket_created(ticket_id="1001", priority=priority, client_id="acme", **extra)


class _UnavailableInstanceStore(InMemoryInstanceStore):
    def __init__(self) -> None:
        super().__init__()
        self.attempts: list[str] = []

    async def create(self, instance: WorkflowInstanceData) -> bool:
        self.attempts.append(instance.workflow_name)
        msg = "instance table unavailable"
        raise RuntimeError(msg)


@pytest.mark.unit
class TestMatchesTriggerConfig:
    """Tests for the trigger config pre-filter."""

    def test_empty_config_matches(self) -> None:
        """Test that no config means no filtering."""
        assert matches_trigger_config({}, _created()) is True

    def test_priority_filter(self) -> None:
        """Test the ticket_created priority filter."""
        assert matches_trigger_config({"priority": "critical"}, _created("critical")) is True
        assert matches_trigger_config({"priority": "critical"}, _created("low")) is False

    def test_status_filter(self) -> None:
        """Test the status change filters map onto payload keys."""
        event = TriggerEvent.ticket_status_changed(ticket_id="1", old_status="open", new_status="resolved")

        assert matches_trigger_config({"to_status": "resolved"}, event) is True
        assert matches_trigger_config({"to_status": "resolved", "from_status": "new"}, event) is False

    def test_empty_and_unknown_keys_ignored(self) -> None:
        """Test that blank values and keys unrelated to the trigger type are ignored."""
        assert matches_trigger_config({"priority": "", "to_status": "closed"}, _created()) is True


@pytest.mark.unit
@pytest.mark.asyncio
class TestWorkflowEngineMatching:
    """Tests for matching events to definitions."""

    async def test_no_definitions(self, engine: WorkflowEngine) -> None:
        """Test that an event without listeners creates nothing."""
        assert await engine.process_event(_created()) == []

    async def test_trigger_type_must_match(
        self,
        engine: WorkflowEngine,
        registry: WorkflowRegistry,
        scripted: ScriptedHandler,
    ) -> None:
        """Test that definitions for other triggers are not run."""
        registry.load([_workflow(_step("a"), trigger_type="sla_breach")])

        assert await engine.process_event(_created()) == []
        assert scripted.calls == []

    async def test_or_conditions_on_priority(self, engine: WorkflowEngine, registry: WorkflowRegistry) -> None:
        """Test that an OR group matches critical and high but not low."""
        registry.load(
            [
                _workflow(
                    _step("page"),
                    conditions={
                        "logic": "OR",
                        "conditions": [
                            {"field": "priority", "operator": "equals", "value": "critical"},
                            {"field": "priority", "operator": "equals", "value": "high"},
                        ],
                    },
                )
            ]
        )

        assert len(await engine.process_event(_created("critical"))) == 1
        assert len(await engine.process_event(_created("high"))) == 1
        assert await engine.process_event(_created("low")) == []

    async def test_trigger_config_prefilter(self, engine: WorkflowEngine, registry: WorkflowRegistry) -> None:
        """Test that trigger_config restricts matches before conditions run."""
        registry.load([_workflow(_step("a"), trigger_config={"priority": "critical"})])

        assert await engine.process_event(_created("high")) == []
        assert len(await engine.process_event(_created("critical"))) == 1

    async def test_matches_in_execution_order(
        self,
        engine: WorkflowEngine,
        registry: WorkflowRegistry,
        scripted: ScriptedHandler,
    ) -> None:
        """Test that instances are created in execution order."""
        registry.load(
            [
                _workflow(_step("second"), name="Second", execution_order=20),
                _workflow(_step("first"), name="First", execution_order=10),
            ]
        )

        ids = await engine.process_event(_created())

        names = [(await engine.get_instance(instance_id)).workflow_name for instance_id in ids]
        assert names == ["First", "Second"]
        assert sorted(scripted.steps) == ["first", "second"]

    async def test_stop_on_first_match(self, engine: WorkflowEngine, registry: WorkflowRegistry) -> None:
        """Test that a matching definition with stop_on_first_match ends the scan."""
        registry.load(
            [
                _workflow(
                    _step("skipped"),
                    name="Not matching",
                    execution_order=1,
                    stop_on_first_match=True,
                    trigger_config={"priority": "low"},
                ),
                _workflow(_step("a"), name="Exclusive", execution_order=2, stop_on_first_match=True),
                _workflow(_step("b"), name="Never", execution_order=3),
            ]
        )

        ids = await engine.process_event(_created())

        assert len(ids) == 1
        assert (await engine.get_instance(ids[0])).workflow_name == "Exclusive"

    async def test_redelivered_event_is_ignored(
        self,
        engine: WorkflowEngine,
        registry: WorkflowRegistry,
        scripted: ScriptedHandler,
    ) -> None:
        """Test that processing the same event twice creates one instance per definition."""
        registry.load([_workflow(_step("a"))])
        event = _created()

        first = await engine.process_event(event)
        second = await engine.process_event(event)

        assert len(first) == 1
        assert second == []
        assert scripted.steps == ["a"]

    async def test_failed_start_still_stops_matching(self, registry: WorkflowRegistry, executor: Any) -> None:
        """Test that a matched stop_on_first_match definition claims the event even when it cannot start."""
        store = _UnavailableInstanceStore()
        engine = WorkflowEngine(registry, executor, store)
        registry.load(
            [
                _workflow(_step("a"), name="Exclusive", execution_order=1, stop_on_first_match=True),
                _workflow(_step("b"), name="Never", execution_order=2),
            ]
        )

        ids = await engine.process_event(_created())

        assert ids == []
        assert store.attempts == ["Exclusive"]

    async def test_matching_error_is_not_a_match(
        self,
        engine: WorkflowEngine,
        registry: WorkflowRegistry,
        scripted: ScriptedHandler,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that a definition whose matching raises is skipped and the scan continues."""
        registry.load(
            [
                _workflow(_step("broken"), name="Broken", execution_order=1, stop_on_first_match=True),
                _workflow(_step("ok"), name="Fallback", execution_order=2),
            ]
        )
        matches = engine.matches

        def flaky_matches(definition: WorkflowDefinition, event: TriggerEvent) -> bool:
            if definition.name == "Broken":
                msg = "bad condition tree"
                raise ValueError(msg)
            return matches(definition, event)

        monkeypatch.setattr(engine, "matches", flaky_matches)

        ids = await engine.process_event(_created())

        assert len(ids) == 1
        assert scripted.steps == ["ok"]


@pytest.mark.unit
@pytest.mark.asyncio
class TestWorkflowEngineExecution:
    """Tests for running workflow instances."""

    async def test_actions_run_in_order(
        self,
        engine: WorkflowEngine,
        registry: WorkflowRegistry,
        scripted: ScriptedHandler,
    ) -> None:
        """Test a successful three action workflow."""
        registry.load([_workflow(_step("a"), _step("b"), _step("c"))])

        [instance_id] = await engine.process_event(_created())

        instance = await engine.get_instance(instance_id)
        assert instance.status is InstanceStatus.COMPLETED
        assert instance.total_actions == 3
        assert instance.actions_completed == 3
        assert [entry.action_name for entry in instance.execution_log] == ["A", "B", "C"]
        assert instance.completed_at is not None
        assert scripted.steps == ["a", "b", "c"]

    async def test_stop_on_failure(
        self,
        engine: WorkflowEngine,
        registry: WorkflowRegistry,
        scripted: ScriptedHandler,
    ) -> None:
        """Test that a failing stop_on_failure action fails the instance."""
        registry.load([_workflow(_step("a"), _step("b", fail=True, stop_on_failure=True), _step("c"))])

        [instance_id] = await engine.process_event(_created())

        instance = await engine.get_instance(instance_id)
        assert instance.status is InstanceStatus.FAILED
        assert instance.error_message == "Action 'B' failed: step b exploded"
        assert instance.actions_completed == 2
        assert [entry.success for entry in instance.execution_log] == [True, False]
        assert scripted.steps == ["a", "b"]

    async def test_failure_without_stop_continues(
        self,
        engine: WorkflowEngine,
        registry: WorkflowRegistry,
        scripted: ScriptedHandler,
    ) -> None:
        """Test that other failures are logged and the run continues."""
        registry.load([_workflow(_step("a"), _step("b", fail=True), _step("c"))])

        [instance_id] = await engine.process_event(_created())

        instance = await engine.get_instance(instance_id)
        assert instance.status is InstanceStatus.COMPLETED
        assert instance.execution_log[1].error == "step b exploded"
        assert scripted.steps == ["a", "b", "c"]

    async def test_unsupported_action_type(self, registry: WorkflowRegistry, instance_store: Any) -> None:
        """Test that an action without a handler fails but does not crash the run."""
        from litestar_automation.engine.executor import ActionExecutor

        engine = WorkflowEngine(registry, ActionExecutor(), instance_store)
        registry.load([_workflow({"name": "Mail", "action_type": "send_email", "parameters": {"subject": "x"}})])

        [instance_id] = await engine.process_event(_created())

        instance = await engine.get_instance(instance_id)
        assert instance.status is InstanceStatus.COMPLETED
        assert instance.execution_log[0].error == "No handler registered for action type 'send_email'"

    async def test_retries_are_logged(self, engine: WorkflowEngine, registry: WorkflowRegistry) -> None:
        """Test that retry attempts appear in the execution log."""
        registry.load([_workflow(_step("a", fail=True, retry_count=2, retry_delay_seconds=0))])

        [instance_id] = await engine.process_event(_created())

        entry = (await engine.get_instance(instance_id)).execution_log[0]
        assert entry.success is False
        assert entry.retry_attempts == 2

    async def test_guard_condition_skips_action(
        self,
        engine: WorkflowEngine,
        registry: WorkflowRegistry,
        scripted: ScriptedHandler,
    ) -> None:
        """Test that a false action guard skips the action and still counts it."""
        guard = {"conditions": [{"field": "priority", "operator": "equals", "value": "critical"}]}
        registry.load([_workflow(_step("a", condition=guard), _step("b"))])

        [instance_id] = await engine.process_event(_created("high"))

        instance = await engine.get_instance(instance_id)
        assert instance.actions_completed == 2
        assert instance.execution_log[0].skipped is True
        assert instance.execution_log[0].success is True
        assert scripted.steps == ["b"]

    async def test_stop_workflow_halts(
        self,
        engine: WorkflowEngine,
        registry: WorkflowRegistry,
        scripted: ScriptedHandler,
    ) -> None:
        """Test that stop_workflow completes the instance early."""
        registry.load([_workflow({"name": "Stop", "action_type": "stop_workflow"}, _step("never"))])

        [instance_id] = await engine.process_event(_created())

        instance = await engine.get_instance(instance_id)
        assert instance.status is InstanceStatus.COMPLETED
        assert instance.actions_completed == 1
        assert scripted.calls == []

    async def test_variables_flow_between_actions(
        self,
        engine: WorkflowEngine,
        registry: WorkflowRegistry,
        scripted: ScriptedHandler,
    ) -> None:
        """Test that variables set by one action are visible to later templates and guards."""
        guard = {"conditions": [{"field": "owner", "operator": "equals", "value": "manager-1"}]}
        registry.load(
            [
                _workflow(
                    {"name": "Owner", "action_type": "set_variable", "parameters": {"name": "owner", "value": "manager-1"}},
                    _step("{{owner}}", condition=guard),
                )
            ]
        )

        [instance_id] = await engine.process_event(_created())

        assert scripted.steps == ["manager-1"]
        assert (await engine.get_instance(instance_id)).variables == {"owner": "manager-1"}

    async def test_one_failing_workflow_does_not_affect_another(
        self,
        engine: WorkflowEngine,
        registry: WorkflowRegistry,
    ) -> None:
        """Test that instances of the same event are isolated."""
        registry.load(
            [
                _workflow(_step("x", fail=True, stop_on_failure=True), name="Broken", execution_order=1),
                _workflow(_step("y"), name="Healthy", execution_order=2),
            ]
        )

        broken_id, healthy_id = await engine.process_event(_created())

        assert (await engine.get_instance(broken_id)).status is InstanceStatus.FAILED
        assert (await engine.get_instance(healthy_id)).status is InstanceStatus.COMPLETED

    async def test_escalate_critical_preset(
        self,
        engine: WorkflowEngine,
        registry: WorkflowRegistry,
        ticket_store: InMemoryTicketStore,
        broadcaster: RecordingBroadcaster,
    ) -> None:
        """Test the critical escalation preset against a real ticket."""
        ticket_store.add_ticket(Ticket(id="2002", subject="Server down", priority="critical"))
        registry.load([escalate_critical_workflow("manager-1")])

        [instance_id] = await engine.process_event(TriggerEvent.ticket_created(ticket_id="2002", priority="critical"))

        instance = await engine.get_instance(instance_id)
        assert instance.status is InstanceStatus.COMPLETED
        assert ticket_store.tickets["2002"].assigned_to == "manager-1"
        assert ticket_store.tickets["2002"].escalated is True
        [notification] = broadcaster.of_type("notification")
        assert notification["data"]["message"] == "Critical ticket 2002 was escalated to you"

    async def test_missing_ticket_fails_stop_on_failure_action(
        self,
        engine: WorkflowEngine,
        registry: WorkflowRegistry,
    ) -> None:
        """Test that an action on an unknown ticket fails the instance when required."""
        registry.load([escalate_critical_workflow("manager-1")])

        [instance_id] = await engine.process_event(TriggerEvent.ticket_created(ticket_id="404", priority="critical"))

        instance = await engine.get_instance(instance_id)
        assert instance.status is InstanceStatus.FAILED
        assert instance.error_message == "Action 'Escalate' failed: Ticket '404' not found"


@pytest.mark.unit
@pytest.mark.asyncio
class TestWorkflowEngineLifecycle:
    """Tests for background instances, cancellation and history."""

    async def test_delay_does_not_block_other_events(
        self,
        engine: WorkflowEngine,
        registry: WorkflowRegistry,
        scripted: ScriptedHandler,
    ) -> None:
        """Test that a delayed instance waits without holding up other work."""
        registry.load(
            [
                _workflow(_step("slow", delay_seconds=30), name="Slow", trigger_type="manual"),
                _workflow(_step("fast"), name="Fast"),
            ]
        )

        [slow_id] = await engine.process_event(TriggerEvent.manual({"ticket_id": "1001"}), wait=False)
        [fast_id] = await engine.process_event(_created())

        assert (await engine.get_instance(fast_id)).status is InstanceStatus.COMPLETED
        assert slow_id in engine.get_running_instances()
        assert scripted.steps == ["fast"]

        assert await engine.cancel_instance(slow_id) is True
        slow = await engine.get_instance(slow_id)
        assert slow.status is InstanceStatus.CANCELLED
        assert slow.error_message == "Cancelled"
        assert slow_id not in engine.get_running_instances()

    async def test_cancel_keeps_execution_log(
        self,
        engine: WorkflowEngine,
        registry: WorkflowRegistry,
    ) -> None:
        """Test that cancelling mid-run keeps the completed actions."""
        registry.load([_workflow(_step("a"), {"name": "Wait", "action_type": "wait", "parameters": {"seconds": 30}})])

        [instance_id] = await engine.process_event(_created(), wait=False)
        for _ in range(5):
            await asyncio.sleep(0)
        await engine.cancel_instance(instance_id)

        instance = await engine.get_instance(instance_id)
        assert instance.status is InstanceStatus.CANCELLED
        assert [entry.action_name for entry in instance.execution_log] == ["A"]

    async def test_cancel_unknown_instance(self, engine: WorkflowEngine) -> None:
        """Test that cancelling an instance that is not running returns False."""
        assert await engine.cancel_instance(uuid4()) is False

    async def test_wait_for(self, engine: WorkflowEngine, registry: WorkflowRegistry) -> None:
        """Test waiting for a background instance."""
        registry.load([_workflow(_step("a"))])

        [instance_id] = await engine.process_event(_created(), wait=False)
        instance = await engine.wait_for(instance_id)

        assert instance.status is InstanceStatus.COMPLETED

    async def test_get_unknown_instance(self, engine: WorkflowEngine) -> None:
        """Test that an unknown instance id raises."""
        with pytest.raises(WorkflowInstanceNotFoundError):
            await engine.get_instance(uuid4())

    async def test_execution_history(self, engine: WorkflowEngine, registry: WorkflowRegistry) -> None:
        """Test that history is newest first and can be filtered by workflow."""
        first = _workflow(_step("a"), name="First")
        second = _workflow(_step("b"), name="Second")
        registry.load([first, second])

        ids = await engine.process_event(_created())
        await asyncio.sleep(0.001)
        ids += await engine.process_event(_created())

        history = await engine.get_execution_history()
        assert {instance.id for instance in history[:2]} == set(ids[2:])
        assert history[0].started_at >= history[-1].started_at
        assert len(history) == 4
        assert [instance.workflow_name for instance in await engine.get_execution_history(first.id)] == [
            "First",
            "First",
        ]
        assert len(await engine.get_execution_history(limit=1)) == 1

    async def test_shutdown_cancels_running(self, engine: WorkflowEngine, registry: WorkflowRegistry) -> None:
        """Test that shutdown cancels background instances."""
        registry.load([_workflow(_step("a", delay_seconds=30))])

        await engine.process_event(_created(), wait=False)
        await asyncio.sleep(0)
        await engine.shutdown()

        assert engine.get_running_instances() == []

    async def test_shutdown_before_first_step(self, engine: WorkflowEngine, registry: WorkflowRegistry) -> None:
        """Test that an instance cancelled before it ran any action is stored as cancelled."""
        registry.load([_workflow(_step("a"))])

        [instance_id] = await engine.process_event(_created(), wait=False)
        await engine.shutdown()

        instance = await engine.get_instance(instance_id)
        assert instance.status == InstanceStatus.CANCELLED
        assert instance.actions_completed == 0
