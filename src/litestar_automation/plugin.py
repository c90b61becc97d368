"""Litestar plugin for workflow automation.

This module provides the AutomationPlugin, which wires the automation engine,
registry, webhook dispatcher and scheduler into a Litestar application.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from litestar import Router
from litestar.di import Provide
from litestar.plugins import InitPluginProtocol

from litestar_automation.engine.local import AutomationEngine
from litestar_automation.engine.memory import InMemoryWorkflowStore
from litestar_automation.engine.registry import WorkflowRegistry
from litestar_automation.engine.scheduler import Scheduler
from litestar_automation.engine.webhooks import WebhookDispatcher
from litestar_automation.providers.base import BaseActionProvider
from litestar_automation.templates import seed_default_templates

if TYPE_CHECKING:
    from litestar.config.app import AppConfig
    from litestar.types import Guard

    from litestar_automation.core.protocols import ActionProvider, Clock, EventBus, WorkflowStore

__all__ = ["AutomationPlugin", "AutomationPluginConfig"]

logger = logging.getLogger(__name__)


@dataclass
class AutomationPluginConfig:
    """Configuration for the AutomationPlugin.

    Attributes:
        store: Workflow store. Defaults to an :class:`InMemoryWorkflowStore`;
            use :class:`~litestar_automation.db.SQLAlchemyWorkflowStore` for
            durable runs.
        provider: Adapter that delivers effectful actions. Without one, every
            effectful step fails its run with ``NotImplementedError``.
        clock: Time source shared by the engine and the scheduler.
        event_bus: Optional sink for run lifecycle events.
        max_concurrent_runs: Upper bound on runs driven at the same time.
        enable_scheduler: Whether to run the scheduler loop between app
            startup and shutdown.
        tick_interval: Seconds between scheduler ticks.
        stall_timeout: Seconds after which an untouched pending or running run
            is considered stalled and recovered.
        shutdown_timeout: Seconds to wait for in-flight runs on shutdown.
        seed_templates: Install the built-in templates on startup when the
            store has none.
        dependency_key_engine: DI key of the :class:`AutomationEngine`.
        dependency_key_registry: DI key of the :class:`WorkflowRegistry`.
        dependency_key_dispatcher: DI key of the :class:`WebhookDispatcher`.
        enable_api: Whether to register the REST API controllers.
        api_path_prefix: URL path prefix of every automation endpoint.
        api_guards: Guards applied to every endpoint except the public webhook.
        api_tags: OpenAPI tags applied to the endpoints.
        include_api_in_schema: Whether the endpoints appear in the OpenAPI schema.
    """

    store: WorkflowStore | None = None
    provider: ActionProvider | None = None
    clock: Clock | None = None
    event_bus: EventBus | None = None
    max_concurrent_runs: int | None = None
    enable_scheduler: bool = True
    tick_interval: float = 5.0
    stall_timeout: float = 300.0
    shutdown_timeout: float | None = 10.0
    seed_templates: bool = False
    dependency_key_engine: str = "automation_engine"
    dependency_key_registry: str = "automation_registry"
    dependency_key_dispatcher: str = "webhook_dispatcher"
    enable_api: bool = True
    api_path_prefix: str = "/automations"
    api_guards: list[Guard] = field(default_factory=list)
    api_tags: list[str] = field(default_factory=lambda: ["Automations"])
    include_api_in_schema: bool = True


class AutomationPlugin(InitPluginProtocol):
    """Litestar plugin for workflow automation.

    The plugin builds the engine, registry, dispatcher and scheduler from its
    config, provides them through dependency injection, registers the REST
    API and its exception handlers, and runs the scheduler for the lifetime of
    the application.

    Example:
        Basic usage::

            from litestar import Litestar
            from litestar_automation import AutomationPlugin, AutomationPluginConfig

            app = Litestar(
                plugins=[
                    AutomationPlugin(
                        config=AutomationPluginConfig(provider=RecruitingActionProvider())
                    )
                ]
            )

        Feeding domain events from a route handler::

            from litestar import post
            from litestar_automation import AutomationEngine, DomainEvent


            @post("/candidates")
            async def create_candidate(data: dict, automation_engine: AutomationEngine) -> dict:
                candidate = await save_candidate(data)
                await automation_engine.handle_event(
                    DomainEvent("candidate_created", {"candidate": candidate})
                )
                return candidate
    """

    __slots__ = ("_config", "_dispatcher", "_engine", "_registry", "_scheduler")

    def __init__(self, config: AutomationPluginConfig | None = None) -> None:
        """Initialize the plugin.

        Args:
            config: Optional configuration for the plugin.
        """
        self._config = config or AutomationPluginConfig()
        self._engine: AutomationEngine | None = None
        self._registry: WorkflowRegistry | None = None
        self._dispatcher: WebhookDispatcher | None = None
        self._scheduler: Scheduler | None = None

    @property
    def engine(self) -> AutomationEngine:
        """Get the automation engine.

        Raises:
            RuntimeError: If accessed before plugin initialization.
        """
        if self._engine is None:
            msg = "AutomationPlugin has not been initialized. Access engine after app startup."
            raise RuntimeError(msg)
        return self._engine

    @property
    def registry(self) -> WorkflowRegistry:
        """Get the workflow registry.

        Raises:
            RuntimeError: If accessed before plugin initialization.
        """
        if self._registry is None:
            msg = "AutomationPlugin has not been initialized. Access registry after app startup."
            raise RuntimeError(msg)
        return self._registry

    @property
    def scheduler(self) -> Scheduler:
        """Get the scheduler.

        Raises:
            RuntimeError: If accessed before plugin initialization.
        """
        if self._scheduler is None:
            msg = "AutomationPlugin has not been initialized. Access scheduler after app startup."
            raise RuntimeError(msg)
        return self._scheduler

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Wire the automation components into the application.

        Args:
            app_config: The Litestar application configuration.

        Returns:
            The modified application configuration.
        """
        config = self._config
        store = config.store if config.store is not None else InMemoryWorkflowStore()
        provider = config.provider
        if provider is None:
            logger.warning("No action provider configured; effectful workflow steps will fail")
            provider = BaseActionProvider()

        self._engine = AutomationEngine(
            store,
            provider,
            clock=config.clock,
            event_bus=config.event_bus,
            max_concurrent_runs=config.max_concurrent_runs,
        )
        self._registry = WorkflowRegistry(store, self._engine.clock)
        self._dispatcher = WebhookDispatcher(self._engine)
        self._scheduler = Scheduler(
            store,
            self._engine,
            clock=self._engine.clock,
            tick_interval=config.tick_interval,
            stall_timeout=config.stall_timeout,
        )

        # Create dependency providers
        def provide_engine() -> AutomationEngine:
            return self._engine  # type: ignore[return-value]

        def provide_registry() -> WorkflowRegistry:
            return self._registry  # type: ignore[return-value]

        def provide_dispatcher() -> WebhookDispatcher:
            return self._dispatcher  # type: ignore[return-value]

        app_config.dependencies[config.dependency_key_engine] = Provide(provide_engine, sync_to_thread=False)
        app_config.dependencies[config.dependency_key_registry] = Provide(provide_registry, sync_to_thread=False)
        app_config.dependencies[config.dependency_key_dispatcher] = Provide(
            provide_dispatcher,
            sync_to_thread=False,
        )

        if config.enable_api:
            app_config.route_handlers.extend(self._routers())

        app_config.on_startup.append(self._on_startup)
        app_config.on_shutdown.append(self._on_shutdown)
        return app_config

    def _routers(self) -> list[Router]:
        from litestar_automation.web.controllers import (
            EventController,
            WebhookController,
            WorkflowDefinitionController,
            WorkflowRunController,
            WorkflowScheduleController,
            WorkflowTemplateController,
        )
        from litestar_automation.web.exceptions import exception_handlers

        config = self._config
        options: dict[str, Any] = {
            "tags": config.api_tags,
            "include_in_schema": config.include_api_in_schema,
            "exception_handlers": exception_handlers,
        }
        api_router = Router(
            path=config.api_path_prefix,
            route_handlers=[
                WorkflowDefinitionController,
                WorkflowRunController,
                WorkflowScheduleController,
                WorkflowTemplateController,
                EventController,
            ],
            guards=config.api_guards,
            **options,
        )
        webhook_router = Router(
            path=config.api_path_prefix,
            route_handlers=[WebhookController],
            **options,
        )
        return [api_router, webhook_router]

    async def _on_startup(self) -> None:
        if self._config.seed_templates:
            await seed_default_templates(self.registry)
        if self._config.enable_scheduler:
            await self.scheduler.start()

    async def _on_shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            await self._scheduler.stop()
        if self._engine is not None:
            await self._engine.close(self._config.shutdown_timeout)
