"""Database persistence layer for litestar-automation.

This module provides SQLAlchemy models, repositories and protocol
implementations for persisting workflow definitions, workflow instances,
tickets and SLA tracking.
"""

from __future__ import annotations

from litestar_automation.db.models import (
    SlaPolicyModel,
    SlaRuleModel,
    TicketCommentModel,
    TicketModel,
    TicketSlaTrackingModel,
    WorkflowDefinitionModel,
    WorkflowInstanceModel,
)
from litestar_automation.db.repositories import (
    SlaPolicyRepository,
    TicketCommentRepository,
    TicketRepository,
    TicketSlaTrackingRepository,
    WorkflowDefinitionRepository,
    WorkflowInstanceRepository,
)
from litestar_automation.db.stores import SQLAlchemyDefinitionStore, SQLAlchemyInstanceStore, SQLAlchemyTicketStore

__all__ = [
    "SQLAlchemyDefinitionStore",
    "SQLAlchemyInstanceStore",
    "SQLAlchemyTicketStore",
    "SlaPolicyModel",
    "SlaPolicyRepository",
    "SlaRuleModel",
    "TicketCommentModel",
    "TicketCommentRepository",
    "TicketModel",
    "TicketRepository",
    "TicketSlaTrackingModel",
    "TicketSlaTrackingRepository",
    "WorkflowDefinitionModel",
    "WorkflowDefinitionRepository",
    "WorkflowInstanceModel",
    "WorkflowInstanceRepository",
]
