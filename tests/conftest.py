"""Pytest configuration and fixtures for litestar-automation tests."""

from __future__ import annotations

import pytest
from helpers import T0, RecordingBroadcaster, RecordingSender, ScriptedHandler

from litestar_automation.actions import default_handlers
from litestar_automation.core.models import Ticket
from litestar_automation.engine.engine import WorkflowEngine
from litestar_automation.engine.executor import ActionExecutor
from litestar_automation.engine.registry import WorkflowRegistry
from litestar_automation.memory import (
    InMemoryDefinitionStore,
    InMemoryInstanceStore,
    InMemoryTicketStore,
    InMemoryUserDirectory,
)
from litestar_automation.sla.checker import SlaChecker
from litestar_automation.sla.models import SlaPolicy, SlaRule


@pytest.fixture
def sender() -> RecordingSender:
    """Notification sender recording every message."""
    return RecordingSender()


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    """Broadcaster recording every message."""
    return RecordingBroadcaster()


@pytest.fixture
def directory() -> InMemoryUserDirectory:
    """User directory with a technician and an escalation manager."""
    return InMemoryUserDirectory({"tech-1": "tech1@msp.example", "manager-1": "manager@msp.example"})


@pytest.fixture
def sla_policy() -> SlaPolicy:
    """Default policy with one rule per priority."""
    return SlaPolicy(
        name="Standard",
        is_default=True,
        rules=[
            SlaRule(
                priority="critical",
                response_time_minutes=15,
                resolution_time_hours=4,
                escalation_time_minutes=60,
                escalation_target="manager-1",
                breach_notification_emails=["leads@msp.example"],
            ),
            SlaRule(
                priority="high",
                response_time_minutes=60,
                resolution_time_hours=8,
                breach_notification_emails=["leads@msp.example"],
            ),
            SlaRule(
                priority="medium",
                response_time_minutes=240,
                resolution_time_hours=24,
                breach_notification_emails=["leads@msp.example", "desk@msp.example"],
            ),
            SlaRule(priority="low", response_time_minutes=480, resolution_time_hours=72),
        ],
    )


@pytest.fixture
def ticket_store(sla_policy: SlaPolicy) -> InMemoryTicketStore:
    """In-memory ticket and SLA store holding the default policy."""
    store = InMemoryTicketStore()
    store.add_policy(sla_policy)
    return store


@pytest.fixture
def ticket(ticket_store: InMemoryTicketStore) -> Ticket:
    """A new medium priority ticket opened at T0."""
    return ticket_store.add_ticket(
        Ticket(
            id="1001",
            subject="Printer offline",
            priority="medium",
            client_id="acme",
            client_name="Acme Corp",
            assigned_to="tech-1",
            created_at=T0,
        )
    )


@pytest.fixture
def instance_store() -> InMemoryInstanceStore:
    """Empty in-memory instance store."""
    return InMemoryInstanceStore()


@pytest.fixture
def definition_store() -> InMemoryDefinitionStore:
    """Empty in-memory definition store."""
    return InMemoryDefinitionStore()


@pytest.fixture
def registry(definition_store: InMemoryDefinitionStore) -> WorkflowRegistry:
    """Registry backed by the in-memory definition store."""
    return WorkflowRegistry(definition_store)


@pytest.fixture
def scripted() -> ScriptedHandler:
    """Parameter driven handler registered for ``call_api``."""
    return ScriptedHandler()


@pytest.fixture
def executor(
    ticket_store: InMemoryTicketStore,
    sender: RecordingSender,
    broadcaster: RecordingBroadcaster,
    directory: InMemoryUserDirectory,
    scripted: ScriptedHandler,
) -> ActionExecutor:
    """Executor with the built-in handlers and the scripted ``call_api`` handler."""
    executor = ActionExecutor(
        default_handlers(
            tickets=ticket_store,
            sla_store=ticket_store,
            sender=sender,
            broadcaster=broadcaster,
            directory=directory,
        )
    )
    executor.register(scripted)
    return executor


@pytest.fixture
def engine(
    registry: WorkflowRegistry,
    executor: ActionExecutor,
    instance_store: InMemoryInstanceStore,
) -> WorkflowEngine:
    """Workflow engine over the in-memory stores."""
    return WorkflowEngine(registry, executor, instance_store)


@pytest.fixture
def checker(
    ticket_store: InMemoryTicketStore,
    sender: RecordingSender,
    broadcaster: RecordingBroadcaster,
    directory: InMemoryUserDirectory,
) -> SlaChecker:
    """SLA checker over the in-memory store, clocked at T0."""
    return SlaChecker(
        ticket_store,
        sender=sender,
        broadcaster=broadcaster,
        directory=directory,
        clock=lambda: T0,
    )
