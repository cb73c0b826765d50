"""Minimal example of litestar-automation integration.

This example wires the AutomationPlugin into a small helpdesk API: tickets
are opened through a REST endpoint, SLA tracking starts immediately and a
workflow pages the on-call manager for critical tickets.

Run with:
    cd examples/minimal
    litestar run

Or:
    uvicorn app:app --reload
"""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from litestar import Controller, Litestar, get, post

from litestar_automation import (
    AutomationPlugin,
    AutomationPluginConfig,
    SlaChecker,
    SlaPolicy,
    SlaRule,
    Ticket,
    TriggerEvent,
    WorkflowEngine,
    WorkflowRegistry,
)
from litestar_automation.memory import InMemoryTicketStore, InMemoryUserDirectory

# =============================================================================
# Stores and Policies
# =============================================================================

store = InMemoryTicketStore()
store.add_policy(
    SlaPolicy(
        name="Standard",
        is_default=True,
        rules=[
            SlaRule(
                priority="critical",
                response_time_minutes=15,
                resolution_time_hours=4,
                escalation_time_minutes=60,
                escalation_target="manager",
            ),
            SlaRule(priority="high", response_time_minutes=60, resolution_time_hours=8),
            SlaRule(priority="medium", response_time_minutes=240, resolution_time_hours=24),
            SlaRule(priority="low", response_time_minutes=480, resolution_time_hours=72),
        ],
    )
)

# =============================================================================
# Workflow Definitions
# =============================================================================

PAGE_ON_CRITICAL = {
    "name": "Page manager on critical tickets",
    "trigger_type": "ticket_created",
    "trigger_config": {"priority": "critical"},
    "actions": [
        {"name": "Assign to manager", "action_type": "assign_ticket", "parameters": {"user_id": "manager"}},
        {"name": "Tag", "action_type": "add_ticket_tag", "parameters": {"tag": "paged"}},
        {
            "name": "Note",
            "action_type": "add_ticket_comment",
            "parameters": {"comment": "Paged the on-call manager for {{priority}} ticket {{ticket_id}}"},
        },
    ],
}

# =============================================================================
# API Controller
# =============================================================================


class TicketController(Controller):
    """REST API for tickets and their automation."""

    path = "/tickets"
    tags = ["Tickets"]

    @post("/")
    async def open_ticket(
        self,
        data: dict[str, Any],
        workflow_engine: WorkflowEngine,
        sla_checker: SlaChecker,
    ) -> dict[str, Any]:
        """Open a ticket, start its SLA clock and run matching workflows."""
        ticket = store.add_ticket(
            Ticket(id=str(uuid4()), subject=data["subject"], priority=data.get("priority", "medium"))
        )
        tracking = await sla_checker.start_tracking(ticket)
        instance_ids = await workflow_engine.process_event(
            TriggerEvent.ticket_created(ticket_id=ticket.id, priority=ticket.priority)
        )
        return {
            "ticket_id": ticket.id,
            "response_due_at": tracking.response_due_at.isoformat(),
            "resolution_due_at": tracking.resolution_due_at.isoformat(),
            "instances": [str(instance_id) for instance_id in instance_ids],
        }

    @get("/{ticket_id:str}")
    async def get_ticket(self, ticket_id: str) -> dict[str, Any]:
        """Get a ticket as the automation left it."""
        ticket = await store.get_ticket(ticket_id)
        if ticket is None:
            return {}
        return {
            "ticket_id": ticket.id,
            "priority": ticket.priority,
            "assigned_to": ticket.assigned_to,
            "tags": ticket.tags,
            "comments": [comment.body for comment in store.comments.get(ticket.id, [])],
        }


@get("/workflows")
async def list_workflows(workflow_registry: WorkflowRegistry) -> list[dict[str, Any]]:
    """List the loaded workflows."""
    return [
        {"id": str(definition.id), "name": definition.name, "trigger_type": str(definition.trigger_type)}
        for definition in workflow_registry.snapshot()
    ]


@get("/instances/{instance_id:uuid}")
async def get_instance(instance_id: UUID, workflow_engine: WorkflowEngine) -> dict[str, Any]:
    """Get a workflow instance and its execution log."""
    instance = await workflow_engine.get_instance(instance_id)
    return {
        "instance_id": str(instance.id),
        "workflow_name": instance.workflow_name,
        "status": str(instance.status),
        "actions_completed": instance.actions_completed,
        "total_actions": instance.total_actions,
    }


@post("/sla/check")
async def run_sla_check(sla_checker: SlaChecker) -> dict[str, Any]:
    """Run an SLA check now instead of waiting for the scheduler."""
    return (await sla_checker.run_sla_check()).to_dict()


# =============================================================================
# Application
# =============================================================================

plugin_config = AutomationPluginConfig(
    ticket_store=store,
    sla_store=store,
    directory=InMemoryUserDirectory({"manager": "manager@msp.example"}),
    workflows=[PAGE_ON_CRITICAL],
    sla_check_interval_seconds=60,
)

app = Litestar(
    route_handlers=[TicketController, list_workflows, get_instance, run_sla_check],
    plugins=[AutomationPlugin(config=plugin_config)],
    debug=True,
)


@get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


app.register(health_check)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
