"""Actions that read and write instance variables."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from litestar_automation.actions.base import BaseAction
from litestar_automation.core.context import ActionResult
from litestar_automation.core.types import ActionType

if TYPE_CHECKING:
    from litestar_automation.core.context import ExecutionContext

__all__ = ["CopyVariableAction", "IncrementVariableAction", "SetVariableAction"]


class SetVariableAction(BaseAction):
    """Set variable ``name`` to ``value``."""

    action_type = ActionType.SET_VARIABLE

    async def execute(self, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        if missing := self.require(parameters, "name"):
            return missing
        name = str(parameters["name"])
        context.variables[name] = parameters.get("value")
        return ActionResult.ok({name: context.variables[name]})


class IncrementVariableAction(BaseAction):
    """Add ``by`` (default 1) to numeric variable ``name``; missing counts as 0."""

    action_type = ActionType.INCREMENT_VARIABLE

    async def execute(self, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        if missing := self.require(parameters, "name"):
            return missing
        name = str(parameters["name"])
        current = context.variables.get(name, 0)
        step = parameters.get("by", 1)
        if isinstance(current, bool) or not isinstance(current, (int, float)):
            return ActionResult.failure(f"Variable '{name}' is not numeric")
        if isinstance(step, bool) or not isinstance(step, (int, float)):
            return ActionResult.failure(f"Increment {step!r} is not numeric")
        context.variables[name] = current + step
        return ActionResult.ok({name: context.variables[name]})


class CopyVariableAction(BaseAction):
    """Copy the value at ``source`` (payload first, then variables) into ``target``."""

    action_type = ActionType.COPY_VARIABLE

    async def execute(self, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        if missing := self.require(parameters, "source", "target"):
            return missing
        target = str(parameters["target"])
        context.variables[target] = context.resolve(str(parameters["source"]))
        return ActionResult.ok({target: context.variables[target]})
