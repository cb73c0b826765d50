"""Litestar plugin for automation integration.

This module provides the AutomationPlugin, which wires the workflow engine
and the SLA checker into a Litestar application and manages their
lifecycle.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from litestar.channels import ChannelsPlugin
from litestar.di import Provide
from litestar.plugins import InitPluginProtocol

from litestar_automation.actions import default_handlers
from litestar_automation.core.definition import WorkflowDefinition
from litestar_automation.engine.engine import WorkflowEngine
from litestar_automation.engine.executor import ActionExecutor, ExecutorConfig
from litestar_automation.engine.registry import WorkflowRegistry
from litestar_automation.integrations import ChannelsBroadcaster
from litestar_automation.log import get_logger, setup_logging
from litestar_automation.memory import InMemoryDefinitionStore, InMemoryInstanceStore, InMemoryTicketStore
from litestar_automation.sla.checker import SlaChecker, SlaCheckerConfig
from litestar_automation.sla.scheduler import DEFAULT_INTERVAL_SECONDS, SlaScheduler

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx
    from litestar import Litestar
    from litestar.config.app import AppConfig

    from litestar_automation.core.protocols import (
        Broadcaster,
        NotificationSender,
        SlaStore,
        TicketStore,
        UserDirectory,
        WorkflowDefinitionStore,
        WorkflowInstanceStore,
    )

__all__ = ["AutomationPlugin", "AutomationPluginConfig"]

logger = get_logger(__name__)


@dataclass
class AutomationPluginConfig:
    """Configuration for the AutomationPlugin.

    Attributes:
        ticket_store: Ticket store used by ticket actions. Defaults to an
            in-memory store shared with ``sla_store``.
        sla_store: SLA store used by the checker and the SLA actions.
        definition_store: Workflow definition store. Defaults to an in-memory
            store seeded with ``workflows``.
        instance_store: Workflow instance store. Defaults to an in-memory store.
        workflows: Definitions seeded into the default definition store.
            Dicts are validated at app init and get an id when they have none.
        sender: Notification sender for emails.
        broadcaster: Real-time publisher. When None and a ChannelsPlugin is
            registered on the app, a ChannelsBroadcaster is used.
        directory: User directory for recipient lookups.
        http_client: Shared client for the HTTP actions.
        executor_config: Retry limits for the action executor.
        checker_config: SLA checker configuration.
        enable_scheduler: Whether to run the periodic SLA check.
        sla_check_interval_seconds: Seconds between SLA checks.
        reload_on_startup: Load active definitions from the store on startup.
        dependency_key_engine: DI key of the WorkflowEngine.
        dependency_key_registry: DI key of the WorkflowRegistry.
        dependency_key_sla_checker: DI key of the SlaChecker.
        configure_logging: Install the JSON log handler at app init.
        log_level: Level used when ``configure_logging`` is set.
        environment: Environment name stamped onto log records.
    """

    ticket_store: TicketStore | None = None
    sla_store: SlaStore | None = None
    definition_store: WorkflowDefinitionStore | None = None
    instance_store: WorkflowInstanceStore | None = None
    workflows: list[WorkflowDefinition | dict[str, Any]] = field(default_factory=list)
    sender: NotificationSender | None = None
    broadcaster: Broadcaster | None = None
    directory: UserDirectory | None = None
    http_client: httpx.AsyncClient | None = None
    executor_config: ExecutorConfig = field(default_factory=ExecutorConfig)
    checker_config: SlaCheckerConfig = field(default_factory=SlaCheckerConfig)
    enable_scheduler: bool = True
    sla_check_interval_seconds: int = DEFAULT_INTERVAL_SECONDS
    reload_on_startup: bool = True
    dependency_key_engine: str = "workflow_engine"
    dependency_key_registry: str = "workflow_registry"
    dependency_key_sla_checker: str = "sla_checker"
    configure_logging: bool = False
    log_level: str = "INFO"
    environment: str = "development"


class AutomationPlugin(InitPluginProtocol):
    """Litestar plugin for rules-driven automation and SLA tracking.

    The plugin builds the workflow registry, action executor, workflow
    engine, SLA checker and SLA scheduler, provides them through dependency
    injection and ties them to the application lifespan.

    Example:
        Basic usage::

            from litestar import Litestar, post
            from litestar_automation import AutomationPlugin, AutomationPluginConfig, TriggerEvent, WorkflowEngine


            @post("/tickets/{ticket_id:str}/created")
            async def ticket_created(ticket_id: str, workflow_engine: WorkflowEngine) -> list[str]:
                event = TriggerEvent.ticket_created(ticket_id=ticket_id, priority="high")
                return [str(i) for i in await workflow_engine.process_event(event, wait=False)]


            app = Litestar(
                route_handlers=[ticket_created],
                plugins=[AutomationPlugin(AutomationPluginConfig(sla_check_interval_seconds=300))],
            )
    """

    __slots__ = ("_checker", "_config", "_engine", "_registry", "_scheduler")

    def __init__(self, config: AutomationPluginConfig | None = None) -> None:
        """Initialize the plugin.

        Args:
            config: Optional configuration for the plugin.
        """
        self._config = config or AutomationPluginConfig()
        self._registry: WorkflowRegistry | None = None
        self._engine: WorkflowEngine | None = None
        self._checker: SlaChecker | None = None
        self._scheduler: SlaScheduler | None = None

    @property
    def registry(self) -> WorkflowRegistry:
        """Get the workflow registry.

        Raises:
            RuntimeError: If accessed before plugin initialization.
        """
        if self._registry is None:
            msg = "AutomationPlugin has not been initialized. Access registry after app init."
            raise RuntimeError(msg)
        return self._registry

    @property
    def engine(self) -> WorkflowEngine:
        """Get the workflow engine.

        Raises:
            RuntimeError: If accessed before plugin initialization.
        """
        if self._engine is None:
            msg = "AutomationPlugin has not been initialized. Access engine after app init."
            raise RuntimeError(msg)
        return self._engine

    @property
    def checker(self) -> SlaChecker:
        """Get the SLA checker.

        Raises:
            RuntimeError: If accessed before plugin initialization.
        """
        if self._checker is None:
            msg = "AutomationPlugin has not been initialized. Access checker after app init."
            raise RuntimeError(msg)
        return self._checker

    @property
    def scheduler(self) -> SlaScheduler | None:
        """Get the SLA scheduler, or None when scheduling is disabled."""
        return self._scheduler

    def _resolve_broadcaster(self, app_config: AppConfig) -> Broadcaster | None:
        if self._config.broadcaster is not None:
            return self._config.broadcaster
        for plugin in app_config.plugins:
            if isinstance(plugin, ChannelsPlugin):
                return ChannelsBroadcaster(plugin, self._config.checker_config.broadcast_channel)
        return None

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Build the automation components and register them on the app.

        This method:
        1. Resolves the stores, defaulting to in-memory ones
        2. Builds the registry, executor, engine, checker and scheduler
        3. Adds dependency providers to the app config
        4. Registers a lifespan handler that loads definitions and runs the scheduler

        Args:
            app_config: The Litestar application configuration.

        Returns:
            The modified application configuration.
        """
        config = self._config
        if config.configure_logging:
            setup_logging(config.log_level, config.environment)

        if config.ticket_store is None and config.sla_store is None:
            shared = InMemoryTicketStore()
            tickets: TicketStore = shared
            sla_store: SlaStore | None = shared
        else:
            tickets = config.ticket_store or InMemoryTicketStore()
            sla_store = config.sla_store
        definitions = config.definition_store or InMemoryDefinitionStore(
            (WorkflowDefinition.from_dict(item) if isinstance(item, dict) else item).to_dict()
            for item in config.workflows
        )
        broadcaster = self._resolve_broadcaster(app_config)

        self._registry = WorkflowRegistry(definitions)
        executor = ActionExecutor(
            default_handlers(
                tickets=tickets,
                sla_store=sla_store,
                sender=config.sender,
                broadcaster=broadcaster,
                directory=config.directory,
                http_client=config.http_client,
            ),
            config.executor_config,
        )
        self._engine = WorkflowEngine(self._registry, executor, config.instance_store or InMemoryInstanceStore())
        if sla_store is not None:
            self._checker = SlaChecker(
                sla_store,
                sender=config.sender,
                broadcaster=broadcaster,
                directory=config.directory,
                engine=self._engine,
                config=config.checker_config,
            )
            if config.enable_scheduler:
                self._scheduler = SlaScheduler(self._checker, config.sla_check_interval_seconds)

        def provide_registry() -> WorkflowRegistry:
            return self.registry

        def provide_engine() -> WorkflowEngine:
            return self.engine

        def provide_checker() -> SlaChecker:
            return self.checker

        app_config.dependencies[config.dependency_key_registry] = Provide(provide_registry, sync_to_thread=False)
        app_config.dependencies[config.dependency_key_engine] = Provide(provide_engine, sync_to_thread=False)
        if self._checker is not None:
            app_config.dependencies[config.dependency_key_sla_checker] = Provide(
                provide_checker,
                sync_to_thread=False,
            )

        app_config.lifespan.append(self._lifespan)
        return app_config

    @asynccontextmanager
    async def _lifespan(self, app: Litestar) -> AsyncIterator[None]:
        if self._config.reload_on_startup:
            await self.registry.reload()
        if self._scheduler is not None:
            self._scheduler.start()
        logger.info(
            "Automation started",
            extra={
                "workflows": len(self.registry.snapshot()),
                "scheduler": self._scheduler is not None,
            },
        )
        try:
            yield
        finally:
            if self._scheduler is not None:
                self._scheduler.stop()
            await self.engine.shutdown()
            logger.info("Automation stopped")
