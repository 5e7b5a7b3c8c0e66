from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterable, Mapping, Sequence
from contextlib import asynccontextmanager
from enum import StrEnum
from pathlib import Path
from typing import Any

from guardian.agents import (
    AGENT_CLASSES,
    AnalysisAgent,
    ComplianceAgent,
    DevOpsAgent,
    DocumentationAgent,
)
from guardian.backends.base import AgentBackend
from guardian.config import GuardianConfig
from guardian.dispatcher import ScanDispatcher, ScanOptions
from guardian.errors import AgentUnavailableError, LifecycleError, NotReadyError
from guardian.fixes import FixPipeline
from guardian.models import Category, CodeUnit, FixReport, Issue, ScanReport

LOGGER = logging.getLogger(__name__)

AgentFactory = Callable[[], AnalysisAgent]


class LifecycleState(StrEnum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"
    FAILED = "failed"


class Orchestrator:
    """Owns the agents and gates scans and fixes on the lifecycle state.

    Agents are built from the injected factories during ``initialize()`` and
    set up one after another; any setup failure is fatal. ``shutdown()`` stops
    accepting work, waits for in-flight requests, then tears agents down.
    """

    def __init__(
        self,
        agent_factories: Mapping[Category, AgentFactory],
        config: GuardianConfig | None = None,
    ) -> None:
        self.agent_factories = dict(agent_factories)
        self.config = config or GuardianConfig.default()
        self.state = LifecycleState.UNINITIALIZED
        self.agents: dict[Category, AnalysisAgent] = {}
        self._lock = asyncio.Lock()
        self._inflight = 0
        self._drained = asyncio.Event()
        self._drained.set()

    @classmethod
    def from_config(cls, config: GuardianConfig, backend: AgentBackend) -> Orchestrator:
        prompt_dir = Path(config.agents.prompt_dir) if config.agents.prompt_dir else None
        model = config.backend.model or None

        def _factory(agent_cls: type[AnalysisAgent]) -> AgentFactory:
            return lambda: agent_cls(backend, model=model, prompt_dir=prompt_dir)

        return cls(
            {agent_cls.category: _factory(agent_cls) for agent_cls in AGENT_CLASSES},
            config=config,
        )

    @property
    def is_ready(self) -> bool:
        return self.state == LifecycleState.READY

    def _transition(self, state: LifecycleState) -> None:
        LOGGER.debug("Orchestrator state %s -> %s", self.state, state)
        self.state = state

    @staticmethod
    async def _teardown(agents: Mapping[Category, AnalysisAgent]) -> None:
        for category, agent in agents.items():
            try:
                await agent.shutdown()
            except Exception:
                LOGGER.exception("%s agent shutdown failed", category)
            else:
                LOGGER.info("%s agent shut down", category)

    async def initialize(self) -> None:
        async with self._lock:
            if self.state == LifecycleState.READY:
                LOGGER.warning("Orchestrator already initialized")
                return
            if self.state in (LifecycleState.FAILED, LifecycleState.STOPPED):
                raise LifecycleError(f"Cannot initialize orchestrator in state '{self.state}'.")

            self._transition(LifecycleState.INITIALIZING)
            LOGGER.info("Initializing orchestrator with %d agents", len(self.agent_factories))
            agents: dict[Category, AnalysisAgent] = {}
            try:
                for category, factory in self.agent_factories.items():
                    agent = factory()
                    await agent.initialize()
                    agents[category] = agent
                    LOGGER.info("%s agent initialized", category)
            except Exception as exc:
                LOGGER.exception("Failed to initialize orchestrator")
                # Agents that finished setup are released before the failure surfaces.
                await self._teardown(agents)
                self._transition(LifecycleState.FAILED)
                raise LifecycleError(f"Agent setup failed: {exc}") from exc

            self.agents = agents
            self._transition(LifecycleState.READY)
            LOGGER.info("Orchestrator ready")

    async def shutdown(self) -> None:
        async with self._lock:
            if self.state == LifecycleState.STOPPED:
                return
            if self.state in (LifecycleState.UNINITIALIZED, LifecycleState.FAILED):
                self._transition(LifecycleState.STOPPED)
                return

            self._transition(LifecycleState.SHUTTING_DOWN)
            LOGGER.info(
                "Shutting down orchestrator; waiting for %d in-flight requests", self._inflight
            )
            await self._drained.wait()

            await self._teardown(self.agents)
            self._transition(LifecycleState.STOPPED)
            LOGGER.info("Orchestrator shutdown complete")

    @asynccontextmanager
    async def _accepting_work(self) -> AsyncIterator[None]:
        if self.state != LifecycleState.READY:
            raise NotReadyError(f"Orchestrator is not ready (state '{self.state}').")
        self._inflight += 1
        self._drained.clear()
        try:
            yield
        finally:
            self._inflight -= 1
            if self._inflight == 0:
                self._drained.set()

    def _require_agent(self, category: Category) -> AnalysisAgent:
        agent = self.agents.get(category)
        if agent is None:
            raise AgentUnavailableError(f"{category} agent not available", category=str(category))
        return agent

    async def execute_scan(
        self,
        unit: CodeUnit,
        categories: Iterable[Category | str] | None = None,
        options: ScanOptions | None = None,
    ) -> ScanReport:
        async with self._accepting_work():
            dispatcher = ScanDispatcher(
                self.agents, call_timeout_seconds=self.config.scan.call_timeout_seconds
            )
            if categories is None:
                categories = list(self.config.scan.default_categories)
            return await dispatcher.execute(unit, categories, options)

    async def execute_auto_fix(self, unit: CodeUnit, issues: Sequence[Issue]) -> FixReport:
        async with self._accepting_work():
            pipeline = FixPipeline(
                self.agents,
                max_parallel=self.config.fix.max_parallel,
                call_timeout_seconds=self.config.fix.call_timeout_seconds,
            )
            return await pipeline.execute(unit, issues)

    async def generate_pipeline(
        self,
        *,
        language: str,
        framework: str = "",
        platform: str = "github",
        deploy_target: str = "aws",
    ) -> dict[str, Any]:
        async with self._accepting_work():
            agent = self._require_agent(Category.DEVOPS)
            if not isinstance(agent, DevOpsAgent):
                raise AgentUnavailableError("devops agent cannot generate pipelines")
            return await agent.generate_pipeline(
                language=language,
                framework=framework,
                platform=platform,
                deploy_target=deploy_target,
            )

    async def generate_infrastructure(
        self, *, service: str, provider: str = "aws", tool: str = "terraform"
    ) -> dict[str, Any]:
        async with self._accepting_work():
            agent = self._require_agent(Category.DEVOPS)
            if not isinstance(agent, DevOpsAgent):
                raise AgentUnavailableError("devops agent cannot generate infrastructure")
            return await agent.generate_infrastructure(
                service=service, provider=provider, tool=tool
            )

    async def generate_documentation(self, unit: CodeUnit) -> dict[str, Any]:
        async with self._accepting_work():
            unit.validate()
            agent = self._require_agent(Category.DOCUMENTATION)
            if not isinstance(agent, DocumentationAgent):
                raise AgentUnavailableError("documentation agent cannot generate documentation")
            return await agent.generate_documentation(unit)

    async def check_compliance(
        self, unit: CodeUnit, standards: Sequence[str] | None = None
    ) -> dict[str, Any]:
        async with self._accepting_work():
            unit.validate()
            agent = self._require_agent(Category.COMPLIANCE)
            if not isinstance(agent, ComplianceAgent):
                raise AgentUnavailableError("compliance agent cannot check standards")
            return await agent.check_compliance(unit, standards)

    def status(self) -> dict[str, Any]:
        return {
            "state": str(self.state),
            "registered": [str(category) for category in self.agent_factories],
            "initialized": [str(category) for category in self.agents],
            "in_flight": self._inflight,
        }
