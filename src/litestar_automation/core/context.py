"""Action execution context and results.

This module provides the :class:`ExecutionContext` handed to every action
handler, the :class:`ActionResult` handlers return, and the ``{{ path }}``
template rendering applied to action parameters before dispatch.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

__all__ = ["ActionResult", "ExecutionContext", "lookup_path", "render_template"]

_PLACEHOLDER = re.compile(r"\{\{\s*([\w.\-]+)\s*\}\}")
_MISSING = object()


def lookup_path(data: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Look up ``path`` in ``data``.

    The literal key is tried first; otherwise the path is split on dots and
    followed through nested mappings.

    Args:
        data: The mapping to search.
        path: A key or dotted path such as ``ticket.client.name``.
        default: Returned when the path does not resolve.

    Returns:
        The resolved value, or ``default``.
    """
    if path in data:
        return data[path]
    current: Any = data
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return default
    return current


@dataclass
class ExecutionContext:
    """State shared by the actions of one workflow instance.

    Attributes:
        instance_id: The running instance.
        workflow_id: The definition being executed.
        event_id: The triggering event.
        payload: Read-only event payload.
        variables: Mutable instance variables, visible to later actions.

    Example:
        >>> context = ExecutionContext(
        ...     instance_id=uuid4(),
        ...     workflow_id=uuid4(),
        ...     event_id=uuid4(),
        ...     payload={"ticket_id": "42"},
        ... )
        >>> context.resolve("ticket_id")
        '42'
    """

    instance_id: UUID
    workflow_id: UUID
    event_id: UUID
    payload: Mapping[str, Any]
    variables: dict[str, Any] = field(default_factory=dict)

    @property
    def ticket_id(self) -> str | None:
        """The ``ticket_id`` carried by the event payload, if any."""
        value = self.payload.get("ticket_id")
        return str(value) if value is not None else None

    def resolve(self, path: str, default: Any = None) -> Any:
        """Resolve ``path`` against the payload, then the variables."""
        value = lookup_path(self.payload, path, _MISSING)
        if value is _MISSING:
            value = lookup_path(self.variables, path, _MISSING)
        return default if value is _MISSING else value

    def render(self, value: Any) -> Any:
        """Render templates in ``value`` against this context."""
        return render_template(value, self)


def render_template(value: Any, context: ExecutionContext) -> Any:
    """Replace ``{{ path }}`` placeholders in ``value``.

    Strings, lists and dictionaries are rendered recursively. A string made of
    exactly one placeholder is replaced by the raw resolved value, so numbers
    and lists keep their type. Unresolved placeholders are left untouched.

    Args:
        value: The value to render.
        context: The context providing payload and variables.

    Returns:
        The rendered value.
    """
    if isinstance(value, str):
        whole = _PLACEHOLDER.fullmatch(value.strip())
        if whole:
            resolved = context.resolve(whole.group(1), _MISSING)
            return value if resolved is _MISSING else resolved

        def substitute(match: re.Match[str]) -> str:
            resolved = context.resolve(match.group(1), _MISSING)
            return match.group(0) if resolved is _MISSING else str(resolved)

        return _PLACEHOLDER.sub(substitute, value)
    if isinstance(value, dict):
        return {key: render_template(item, context) for key, item in value.items()}
    if isinstance(value, list):
        return [render_template(item, context) for item in value]
    return value


@dataclass
class ActionResult:
    """Outcome of executing one action.

    Attributes:
        success: Whether the action succeeded.
        output: Handler output, stored in the execution log.
        error: Error message when the action failed.
        retry_attempts: Number of retries the executor made.
        duration_ms: Wall-clock duration, retries included.
        halt: Stop the workflow after this action; the instance completes.
    """

    success: bool
    output: Any = None
    error: str | None = None
    retry_attempts: int = 0
    duration_ms: int = 0
    halt: bool = False

    @classmethod
    def ok(cls, output: Any = None, *, halt: bool = False) -> ActionResult:
        """Build a successful result."""
        return cls(success=True, output=output, halt=halt)

    @classmethod
    def failure(cls, error: str, output: Any = None) -> ActionResult:
        """Build a failed result."""
        return cls(success=False, output=output, error=error)
