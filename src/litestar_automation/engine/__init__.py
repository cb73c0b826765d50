"""Workflow execution: condition evaluation, registry, executor and engine."""

from __future__ import annotations

from litestar_automation.engine.engine import WorkflowEngine, matches_trigger_config
from litestar_automation.engine.evaluator import ConditionEvaluator, evaluate
from litestar_automation.engine.executor import ActionExecutor, ExecutorConfig
from litestar_automation.engine.registry import WorkflowRegistry

__all__ = [
    "ActionExecutor",
    "ConditionEvaluator",
    "ExecutorConfig",
    "WorkflowEngine",
    "WorkflowRegistry",
    "evaluate",
    "matches_trigger_config",
]
