"""Tests for the AutomationPlugin integration with Litestar.

These tests verify that the plugin correctly integrates with Litestar
applications and provides dependency injection for the automation components.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import pytest
from helpers import track
from litestar import Litestar, get, post
from litestar.channels import ChannelsPlugin
from litestar.channels.backends.memory import MemoryChannelsBackend
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED
from litestar.testing import create_test_client

from litestar_automation import (
    AutomationPlugin,
    AutomationPluginConfig,
    TriggerEvent,
    WorkflowEngine,
    WorkflowRegistry,
    WorkflowValidationError,
)
from litestar_automation.core.models import Ticket
from litestar_automation.integrations import ChannelsBroadcaster
from litestar_automation.memory import InMemoryTicketStore
from litestar_automation.sla.checker import SlaChecker
from litestar_automation.sla.models import SlaPolicy

# =============================================================================
# Test Fixtures - Workflows and Routes
# =============================================================================

CRITICAL_PAGE = {
    "name": "Page on-call for critical tickets",
    "trigger_type": "ticket_created",
    "trigger_config": {"priority": "critical"},
    "actions": [
        {"name": "Flag", "action_type": "set_variable", "parameters": {"name": "paged", "value": True}},
    ],
}

DISABLED = {
    "name": "Disabled rule",
    "trigger_type": "ticket_created",
    "is_active": False,
    "actions": [
        {"name": "Flag", "action_type": "set_variable", "parameters": {"name": "disabled", "value": True}},
    ],
}


@post("/tickets/{ticket_id:str}/created")
async def ticket_created(ticket_id: str, priority: str, workflow_engine: WorkflowEngine) -> list[dict[str, Any]]:
    """Feed a ticket_created event into the engine and report the instances."""
    instance_ids = await workflow_engine.process_event(
        TriggerEvent.ticket_created(ticket_id=ticket_id, priority=priority)
    )
    instances = [await workflow_engine.get_instance(instance_id) for instance_id in instance_ids]
    return [
        {"workflow": instance.workflow_name, "status": str(instance.status), "variables": instance.variables}
        for instance in instances
    ]


@get("/workflows")
async def list_workflows(workflow_registry: WorkflowRegistry) -> list[str]:
    """List the names of the loaded workflows."""
    return [definition.name for definition in workflow_registry.snapshot()]


@post("/sla/check")
async def check_sla(sla_checker: SlaChecker) -> dict[str, Any]:
    """Run an SLA check on demand."""
    return (await sla_checker.run_sla_check()).to_dict()


# =============================================================================
# Plugin Tests
# =============================================================================


@pytest.mark.unit
class TestAutomationPluginInit:
    """Tests for plugin construction and initialization."""

    def test_default_config(self) -> None:
        """Test the default configuration values."""
        config = AutomationPluginConfig()

        assert config.enable_scheduler is True
        assert config.sla_check_interval_seconds == 60
        assert config.dependency_key_engine == "workflow_engine"
        assert config.dependency_key_registry == "workflow_registry"
        assert config.dependency_key_sla_checker == "sla_checker"

    def test_properties_before_init(self) -> None:
        """Test that components are unavailable before app init."""
        plugin = AutomationPlugin()

        for name in ("registry", "engine", "checker"):
            with pytest.raises(RuntimeError, match="has not been initialized"):
                getattr(plugin, name)
        assert plugin.scheduler is None

    def test_components_after_init(self) -> None:
        """Test that app init builds the engine, checker and scheduler."""
        plugin = AutomationPlugin()
        Litestar(plugins=[plugin])

        assert isinstance(plugin.engine, WorkflowEngine)
        assert plugin.engine.registry is plugin.registry
        assert plugin.checker.engine is plugin.engine
        assert plugin.scheduler is not None
        assert plugin.scheduler.interval_seconds == 60

    def test_default_stores_are_shared(self) -> None:
        """Test that ticket actions and the checker see the same store."""
        plugin = AutomationPlugin(AutomationPluginConfig(enable_scheduler=False))
        Litestar(plugins=[plugin])

        assert isinstance(plugin.checker.sla_store, InMemoryTicketStore)
        assert plugin.scheduler is None

    def test_channels_plugin_is_detected(self) -> None:
        """Test that a registered ChannelsPlugin becomes the broadcaster."""
        channels = ChannelsPlugin(backend=MemoryChannelsBackend(), channels=["sla"])
        plugin = AutomationPlugin(AutomationPluginConfig(enable_scheduler=False))
        Litestar(plugins=[channels, plugin])

        broadcaster = plugin.checker.broadcaster
        assert isinstance(broadcaster, ChannelsBroadcaster)
        assert broadcaster.channels is channels
        assert broadcaster.default_channel == "sla"

    async def test_seeded_dicts_without_id(self) -> None:
        """Test that seeded workflow dicts are validated and given ids at init."""
        plugin = AutomationPlugin(AutomationPluginConfig(workflows=[CRITICAL_PAGE], enable_scheduler=False))
        Litestar(plugins=[plugin])

        [record] = await plugin.registry.store.list_active()

        assert UUID(record["id"])
        assert record["name"] == "Page on-call for critical tickets"
        assert "id" not in CRITICAL_PAGE

    def test_invalid_seeded_dict_fails_init(self) -> None:
        """Test that an invalid seeded workflow is rejected when the app is built."""
        plugin = AutomationPlugin(AutomationPluginConfig(workflows=[{"name": "Broken"}], enable_scheduler=False))

        with pytest.raises(WorkflowValidationError, match="actions"):
            Litestar(plugins=[plugin])


@pytest.mark.unit
class TestAutomationPluginApp:
    """Tests for the plugin inside a running application."""

    def test_lifespan_loads_workflows(self) -> None:
        """Test that seeded active workflows are loaded on startup."""
        plugin = AutomationPlugin(AutomationPluginConfig(workflows=[CRITICAL_PAGE, DISABLED], enable_scheduler=False))

        with create_test_client(route_handlers=[list_workflows], plugins=[plugin]) as client:
            response = client.get("/workflows")

        assert response.status_code == HTTP_200_OK
        assert response.json() == ["Page on-call for critical tickets"]

    def test_engine_injection(self) -> None:
        """Test running workflows from a route through the injected engine."""
        plugin = AutomationPlugin(AutomationPluginConfig(workflows=[CRITICAL_PAGE], enable_scheduler=False))

        with create_test_client(route_handlers=[ticket_created], plugins=[plugin]) as client:
            critical = client.post("/tickets/1001/created", params={"priority": "critical"})
            low = client.post("/tickets/1002/created", params={"priority": "low"})

        assert critical.status_code == HTTP_201_CREATED
        assert critical.json() == [
            {
                "workflow": "Page on-call for critical tickets",
                "status": "completed",
                "variables": {"paged": True},
            }
        ]
        assert low.json() == []

    def test_sla_checker_injection(self, sla_policy: SlaPolicy) -> None:
        """Test an on-demand SLA check over a configured store."""
        store = InMemoryTicketStore()
        store.add_policy(sla_policy)
        ticket = store.add_ticket(
            Ticket(
                id="1001",
                subject="Printer offline",
                priority="medium",
                created_at=datetime.now(timezone.utc) - timedelta(hours=5),
            )
        )
        track(store, sla_policy, ticket)
        plugin = AutomationPlugin(
            AutomationPluginConfig(ticket_store=store, sla_store=store, enable_scheduler=False)
        )

        with create_test_client(route_handlers=[check_sla], plugins=[plugin]) as client:
            response = client.post("/sla/check")

        assert response.status_code == HTTP_201_CREATED
        assert response.json()["breaches_detected"] == 1
        assert store.trackings["1001"].response_breached is True

    def test_scheduler_runs_with_app(self) -> None:
        """Test that the scheduler is started and stopped with the app."""
        plugin = AutomationPlugin(AutomationPluginConfig(sla_check_interval_seconds=3600))

        with create_test_client(route_handlers=[list_workflows], plugins=[plugin]):
            assert plugin.scheduler is not None
            assert plugin.scheduler.is_running is True

        assert plugin.scheduler.is_running is False
