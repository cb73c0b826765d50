"""Flow control actions."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from litestar_automation.actions.base import BaseAction
from litestar_automation.core.context import ActionResult
from litestar_automation.core.types import ActionType

if TYPE_CHECKING:
    from litestar_automation.core.context import ExecutionContext

__all__ = ["StopWorkflowAction", "WaitAction"]


class WaitAction(BaseAction):
    """Suspend the instance for ``seconds`` without blocking the event loop."""

    action_type = ActionType.WAIT

    async def execute(self, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        seconds = parameters.get("seconds", 0)
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or seconds < 0:
            return ActionResult.failure(f"Invalid wait duration {seconds!r}")
        await asyncio.sleep(seconds)
        return ActionResult.ok({"waited_seconds": seconds})


class StopWorkflowAction(BaseAction):
    """End the instance successfully; remaining actions do not run."""

    action_type = ActionType.STOP_WORKFLOW

    async def execute(self, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        return ActionResult.ok({"reason": parameters.get("reason")}, halt=True)
