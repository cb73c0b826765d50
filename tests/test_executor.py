"""Tests for the action executor."""

from __future__ import annotations

from typing import Any
from uuid import uuid4

import pytest
from helpers import FlakyHandler, ScriptedHandler

from litestar_automation.actions.variables import SetVariableAction
from litestar_automation.core.context import ExecutionContext
from litestar_automation.core.definition import Action
from litestar_automation.core.types import ActionType
from litestar_automation.engine.executor import ActionExecutor, ExecutorConfig


def _context(payload: dict[str, Any] | None = None) -> ExecutionContext:
    return ExecutionContext(instance_id=uuid4(), workflow_id=uuid4(), event_id=uuid4(), payload=payload or {})


def _action(action_type: ActionType = ActionType.SEND_WEBHOOK, **kwargs: Any) -> Action:
    kwargs.setdefault("retry_delay_seconds", 0)
    return Action(name="Step", action_type=action_type, **kwargs)


@pytest.mark.unit
class TestActionExecutorRegistration:
    """Tests for handler registration."""

    def test_register_and_lookup(self) -> None:
        """Test registering a handler by its action type."""
        handler = ScriptedHandler()
        executor = ActionExecutor([handler])

        assert executor.get_handler(ActionType.CALL_API) is handler
        assert executor.supported_types == {ActionType.CALL_API}

    def test_register_replaces_existing(self) -> None:
        """Test that a later handler of the same type wins."""
        first, second = ScriptedHandler(), ScriptedHandler()
        executor = ActionExecutor([first])

        executor.register(second)

        assert executor.get_handler(ActionType.CALL_API) is second


@pytest.mark.unit
@pytest.mark.asyncio
class TestActionExecutorExecute:
    """Tests for ActionExecutor.execute."""

    async def test_missing_handler(self) -> None:
        """Test that an unsupported action type yields a failed result."""
        result = await ActionExecutor().execute(_action(ActionType.SEND_EMAIL), _context())

        assert result.success is False
        assert result.error == "No handler registered for action type 'send_email'"

    async def test_renders_parameters(self) -> None:
        """Test that templates are rendered before the handler runs."""
        handler = ScriptedHandler()
        executor = ActionExecutor([handler])

        await executor.execute(
            _action(ActionType.CALL_API, parameters={"step": "{{ticket_id}}", "url": "/t/{{ticket_id}}"}),
            _context({"ticket_id": "1001"}),
        )

        assert handler.calls == [{"step": "1001", "url": "/t/1001"}]

    async def test_success_without_retries(self) -> None:
        """Test a first-attempt success."""
        handler = FlakyHandler(failures=0)
        result = await ActionExecutor([handler]).execute(_action(retry_count=3), _context())

        assert result.success is True
        assert result.retry_attempts == 0
        assert handler.attempts == 1
        assert result.duration_ms >= 0

    async def test_retries_until_success(self) -> None:
        """Test that a failing handler is retried and the retries are counted."""
        handler = FlakyHandler(failures=2)
        result = await ActionExecutor([handler]).execute(_action(retry_count=3), _context())

        assert result.success is True
        assert result.output == {"attempts": 3}
        assert result.retry_attempts == 2

    async def test_retries_exhausted(self) -> None:
        """Test that the last error becomes the failure message."""
        handler = FlakyHandler(failures=10)
        result = await ActionExecutor([handler]).execute(_action(retry_count=2), _context())

        assert result.success is False
        assert result.error == "attempt 3 timed out"
        assert result.retry_attempts == 2
        assert handler.attempts == 3

    async def test_no_retry_by_default(self) -> None:
        """Test that actions without retry_count run once."""
        handler = FlakyHandler(failures=1)
        result = await ActionExecutor([handler]).execute(_action(), _context())

        assert result.success is False
        assert handler.attempts == 1

    async def test_retry_count_is_capped(self) -> None:
        """Test that the configured maximum bounds the retries."""
        handler = FlakyHandler(failures=10)
        executor = ActionExecutor([handler], ExecutorConfig(max_retry_count=1))

        result = await executor.execute(_action(retry_count=5), _context())

        assert result.retry_attempts == 1
        assert handler.attempts == 2

    async def test_returned_failure_is_not_retried(self) -> None:
        """Test that a failed result returned by the handler is final."""
        executor = ActionExecutor([SetVariableAction()])
        result = await executor.execute(
            _action(ActionType.SET_VARIABLE, parameters={}, retry_count=3),
            _context(),
        )

        assert result.success is False
        assert result.retry_attempts == 0
        assert result.error == "Missing required parameter 'name'"
