"""Composition root for the deployment orchestrator."""

from __future__ import annotations

from collections.abc import Mapping

from deployer.config import Settings, ToolMode
from deployer.domain.ports.services import Toolchain
from deployer.domain.ports.state_store import StateStore
from deployer.domain.services.gates import GateEvaluator
from deployer.domain.services.orchestrator import Orchestrator
from deployer.domain.services.phase_runner import PhaseRunner
from deployer.domain.services.rollback import RollbackManager
from deployer.infrastructure.persistence.file_store import JsonFileStateStore
from deployer.infrastructure.tools.git_source import GitSourceInspector
from deployer.infrastructure.tools.http_health import HttpHealthChecker
from deployer.infrastructure.tools.shell import (
    CommandRunner,
    ShellBackupTool,
    ShellBuildTool,
    ShellDeployTool,
    ShellMigrationTool,
)
from deployer.infrastructure.tools.simulated import simulated_toolchain


def build_toolchain(settings: Settings) -> Toolchain:
    """Assemble the collaborators selected by ``DEPLOY_TOOL_MODE``."""
    tools = settings.tools
    if tools.mode is ToolMode.SIMULATED:
        return simulated_toolchain()

    runner = CommandRunner(workdir=tools.workdir, timeout=tools.command_timeout)
    return Toolchain(
        build=ShellBuildTool(runner, tools),
        migrations=ShellMigrationTool(runner, tools),
        deployer=ShellDeployTool(runner, tools),
        backups=ShellBackupTool(runner, tools),
        health=HttpHealthChecker(timeout=tools.http_timeout),
        source=GitSourceInspector(runner, tools),
    )


class ServiceContainer:
    """Simple dependency injection container.

    Anything not passed in is built from settings; tests inject an in-memory
    store and simulated tools.
    """

    def __init__(
        self,
        settings: Settings,
        store: StateStore | None = None,
        toolchain: Toolchain | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._settings = settings
        self._store = store or JsonFileStateStore(settings.state.path)
        self._toolchain = toolchain or build_toolchain(settings)
        self._environ = environ
        self._orchestrator: Orchestrator | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def store(self) -> StateStore:
        return self._store

    @property
    def toolchain(self) -> Toolchain:
        return self._toolchain

    @property
    def orchestrator(self) -> Orchestrator:
        if self._orchestrator is None:
            gates = GateEvaluator(self._toolchain, self._settings.gates)
            self._orchestrator = Orchestrator(
                store=self._store,
                gates=gates,
                runner=PhaseRunner(gates, self._toolchain, self._settings.tools),
                rollback_manager=RollbackManager(self._toolchain, self._settings.rollback),
                settings=self._settings,
                environ=self._environ,
            )
        return self._orchestrator

    def close(self) -> None:
        self._toolchain.health.close()
