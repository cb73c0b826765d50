"""Action execution with templating, retries and timing.

The executor is the single place where an action's handler is called. It
never raises: whatever the handler does, the caller gets an
:class:`~litestar_automation.core.context.ActionResult`.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from litestar_automation.core.context import ActionResult
from litestar_automation.log import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from litestar_automation.core.context import ExecutionContext
    from litestar_automation.core.definition import Action
    from litestar_automation.core.protocols import ActionHandler
    from litestar_automation.core.types import ActionType

__all__ = ["ActionExecutor", "ExecutorConfig"]

logger = get_logger(__name__)


@dataclass
class ExecutorConfig:
    """Configuration for the ActionExecutor.

    Attributes:
        max_retry_count: Upper bound applied to every action's ``retry_count``.
        max_retry_delay_seconds: Upper bound on the wait between attempts.
    """

    max_retry_count: int = 5
    max_retry_delay_seconds: int = 300


class ActionExecutor:
    """Dispatches actions to their handlers.

    Attributes:
        config: Retry limits.
        _handlers: Map of action type to handler.

    Example:
        >>> executor = ActionExecutor(default_handlers(tickets=store))
        >>> result = await executor.execute(action, context)
    """

    def __init__(self, handlers: Iterable[ActionHandler] = (), config: ExecutorConfig | None = None) -> None:
        """Initialize the executor.

        Args:
            handlers: Handlers to register.
            config: Optional retry limits.
        """
        self.config = config or ExecutorConfig()
        self._handlers: dict[ActionType, ActionHandler] = {}
        for handler in handlers:
            self.register(handler)

    def register(self, handler: ActionHandler) -> None:
        """Register ``handler``, replacing any handler of the same type."""
        self._handlers[handler.action_type] = handler

    def get_handler(self, action_type: ActionType) -> ActionHandler | None:
        """Return the handler for ``action_type``, if registered."""
        return self._handlers.get(action_type)

    @property
    def supported_types(self) -> frozenset[ActionType]:
        """Action types with a registered handler."""
        return frozenset(self._handlers)

    async def execute(self, action: Action, context: ExecutionContext) -> ActionResult:
        """Execute one action.

        Parameters are rendered against the context first. When the handler
        raises, the call is retried ``retry_count`` times, waiting
        ``retry_delay_seconds`` between attempts; the last error becomes a
        failed result.

        Args:
            action: The action to execute.
            context: The execution context of the running instance.

        Returns:
            The result, with ``retry_attempts`` and ``duration_ms`` filled in.
        """
        started = time.perf_counter()
        handler = self._handlers.get(action.action_type)
        if handler is None:
            return ActionResult.failure(f"No handler registered for action type '{action.action_type}'")

        log_extra = {
            "action_name": action.name,
            "instance_id": context.instance_id,
            "workflow_id": context.workflow_id,
        }
        max_retries = min(action.retry_count, self.config.max_retry_count)
        retry_delay = min(action.retry_delay_seconds, self.config.max_retry_delay_seconds)
        attempt = 0
        while True:
            try:
                parameters = context.render(action.parameters)
                result = await handler.execute(parameters, context)
                break
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if attempt >= max_retries:
                    logger.warning("Action failed", extra={**log_extra, "error": str(exc), "attempts": attempt + 1})
                    result = ActionResult.failure(str(exc))
                    break
                attempt += 1
                logger.info("Retrying action", extra={**log_extra, "error": str(exc), "attempt": attempt})
                await asyncio.sleep(retry_delay)

        result.retry_attempts = attempt
        result.duration_ms = int((time.perf_counter() - started) * 1000)
        return result
