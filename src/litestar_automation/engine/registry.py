"""Workflow registry holding the active definitions.

The registry owns one immutable snapshot (a tuple ordered by
``execution_order``) that readers take without locking. Writers never
mutate the snapshot: create, update and delete go to the definition store
and are followed by a full reload that swaps in a new tuple.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from litestar_automation.core.definition import WorkflowDefinition
from litestar_automation.exceptions import WorkflowNotFoundError, WorkflowValidationError
from litestar_automation.log import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from litestar_automation.core.protocols import WorkflowDefinitionStore
    from litestar_automation.core.types import TriggerType

__all__ = ["WorkflowRegistry"]

logger = get_logger(__name__)


def _ordered(definitions: Iterable[WorkflowDefinition]) -> tuple[WorkflowDefinition, ...]:
    return tuple(sorted(definitions, key=lambda definition: definition.execution_order))


class WorkflowRegistry:
    """Cache of active workflow definitions.

    Attributes:
        store: Optional definition store backing :meth:`reload` and the CRUD methods.
        load_errors: Validation errors of stored definitions skipped by the
            last reload, keyed by definition id or name.
        _snapshot: The current immutable list of definitions.
    """

    def __init__(self, store: WorkflowDefinitionStore | None = None) -> None:
        """Initialize an empty registry.

        Args:
            store: Optional definition store.
        """
        self.store = store
        self.load_errors: dict[str, list[str]] = {}
        self._snapshot: tuple[WorkflowDefinition, ...] = ()
        self._reload_lock = asyncio.Lock()

    def snapshot(self) -> tuple[WorkflowDefinition, ...]:
        """Return the current definitions in execution order."""
        return self._snapshot

    def for_trigger(self, trigger_type: TriggerType) -> tuple[WorkflowDefinition, ...]:
        """Return the definitions listening for ``trigger_type``, in execution order."""
        return tuple(definition for definition in self._snapshot if definition.trigger_type == trigger_type)

    def get(self, workflow_id: UUID) -> WorkflowDefinition:
        """Return a loaded definition.

        Raises:
            WorkflowNotFoundError: If no active definition has this id.
        """
        for definition in self._snapshot:
            if definition.id == workflow_id:
                return definition
        raise WorkflowNotFoundError(workflow_id)

    def load(self, definitions: Iterable[WorkflowDefinition | dict[str, Any]]) -> int:
        """Replace the snapshot with ``definitions``.

        Raw records are parsed; invalid records and inactive definitions are
        skipped, and parse errors are kept in :attr:`load_errors`.

        Args:
            definitions: Parsed definitions or raw JSON records.

        Returns:
            The number of definitions loaded.
        """
        loaded: list[WorkflowDefinition] = []
        errors: dict[str, list[str]] = {}
        for item in definitions:
            if isinstance(item, WorkflowDefinition):
                definition = item
            else:
                try:
                    definition = WorkflowDefinition.from_dict(item)
                except WorkflowValidationError as exc:
                    key = str(item.get("id") or item.get("name") or "<unnamed>") if isinstance(item, dict) else "<invalid>"
                    errors[key] = exc.errors
                    logger.error("Skipping invalid workflow definition", extra={"workflow_id": key, "errors": exc.errors})
                    continue
            if definition.is_active:
                loaded.append(definition)

        self._snapshot = _ordered(loaded)
        self.load_errors = errors
        return len(self._snapshot)

    async def reload(self) -> int:
        """Reload the snapshot from the store.

        Returns:
            The number of definitions loaded.

        Raises:
            RuntimeError: If the registry has no store.
        """
        if self.store is None:
            msg = "WorkflowRegistry has no definition store to reload from"
            raise RuntimeError(msg)
        async with self._reload_lock:
            records = await self.store.list_active()
            count = self.load(records)
        logger.info("Workflow definitions reloaded", extra={"loaded": count, "invalid": len(self.load_errors)})
        return count

    async def create_workflow(self, data: dict[str, Any]) -> WorkflowDefinition:
        """Validate, store and load a new definition.

        Raises:
            WorkflowValidationError: If ``data`` is not a valid definition.
        """
        definition = WorkflowDefinition.from_dict(data)
        await self._require_store().create(definition.to_dict())
        await self.reload()
        return definition

    async def update_workflow(self, workflow_id: UUID, data: dict[str, Any]) -> WorkflowDefinition:
        """Validate and replace a stored definition, then reload.

        Raises:
            WorkflowValidationError: If ``data`` is not a valid definition.
            WorkflowNotFoundError: If the definition does not exist.
        """
        definition = WorkflowDefinition.from_dict({**data, "id": workflow_id})
        updated = await self._require_store().update(workflow_id, definition.to_dict())
        if updated is None:
            raise WorkflowNotFoundError(workflow_id)
        await self.reload()
        return definition

    async def delete_workflow(self, workflow_id: UUID) -> None:
        """Delete a stored definition, then reload.

        Raises:
            WorkflowNotFoundError: If the definition does not exist.
        """
        if not await self._require_store().delete(workflow_id):
            raise WorkflowNotFoundError(workflow_id)
        await self.reload()

    def _require_store(self) -> WorkflowDefinitionStore:
        if self.store is None:
            msg = "WorkflowRegistry has no definition store"
            raise RuntimeError(msg)
        return self.store
