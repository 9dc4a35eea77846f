"""Shared test fixtures."""

from __future__ import annotations

import pytest

from deployer.config import GateSettings, RollbackSettings, Settings, StateSettings, ToolSettings
from deployer.domain.models.migration import Migration
from deployer.domain.models.state import Environment
from deployer.domain.ports.services import Toolchain
from deployer.domain.services.gates import GateContext, GateEvaluator
from deployer.domain.services.orchestrator import Orchestrator
from deployer.domain.services.phase_runner import PhaseRunner
from deployer.domain.services.rollback import RollbackManager
from deployer.infrastructure.persistence.in_memory import InMemoryStateStore
from deployer.infrastructure.tools.simulated import (
    SimulatedBackupTool,
    SimulatedBuildTool,
    SimulatedDeployTool,
    SimulatedHealthChecker,
    SimulatedMigrationTool,
    SimulatedSourceInspector,
)


REQUIRED_ENV = {"DATABASE_URL": "postgres://db/app", "SECRET_KEY": "s3cr3t-value"}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        state=StateSettings(path=".deploy/state.json", report_dir=None),
        gates=GateSettings(
            required_env_vars=list(REQUIRED_ENV),
            base_url="https://fallback.example.test",
            smoke_paths=["/", "/login"],
            performance_samples=3,
        ),
        tools=ToolSettings(),
        rollback=RollbackSettings(max_attempts=3, backoff_seconds=1.0),
    )


@pytest.fixture
def build_tool() -> SimulatedBuildTool:
    return SimulatedBuildTool()


@pytest.fixture
def migration_tool() -> SimulatedMigrationTool:
    return SimulatedMigrationTool()


@pytest.fixture
def deploy_tool() -> SimulatedDeployTool:
    return SimulatedDeployTool()


@pytest.fixture
def backup_tool() -> SimulatedBackupTool:
    return SimulatedBackupTool()


@pytest.fixture
def health_checker() -> SimulatedHealthChecker:
    return SimulatedHealthChecker()


@pytest.fixture
def source_inspector() -> SimulatedSourceInspector:
    return SimulatedSourceInspector()


@pytest.fixture
def toolchain(
    build_tool: SimulatedBuildTool,
    migration_tool: SimulatedMigrationTool,
    deploy_tool: SimulatedDeployTool,
    backup_tool: SimulatedBackupTool,
    health_checker: SimulatedHealthChecker,
    source_inspector: SimulatedSourceInspector,
) -> Toolchain:
    return Toolchain(
        build=build_tool,
        migrations=migration_tool,
        deployer=deploy_tool,
        backups=backup_tool,
        health=health_checker,
        source=source_inspector,
    )


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def gates(toolchain: Toolchain, settings: Settings) -> GateEvaluator:
    return GateEvaluator(toolchain, settings.gates)


@pytest.fixture
def runner(gates: GateEvaluator, toolchain: Toolchain, settings: Settings) -> PhaseRunner:
    return PhaseRunner(gates, toolchain, settings.tools)


@pytest.fixture
def rollback_manager(
    toolchain: Toolchain, settings: Settings, sleeps: list[float]
) -> RollbackManager:
    return RollbackManager(toolchain, settings.rollback, sleep=sleeps.append)


@pytest.fixture
def orchestrator(
    store: InMemoryStateStore,
    gates: GateEvaluator,
    runner: PhaseRunner,
    rollback_manager: RollbackManager,
    settings: Settings,
) -> Orchestrator:
    return Orchestrator(
        store=store,
        gates=gates,
        runner=runner,
        rollback_manager=rollback_manager,
        settings=settings,
        environ=dict(REQUIRED_ENV),
    )


@pytest.fixture
def context() -> GateContext:
    return GateContext(
        environment=Environment.STAGING,
        env=dict(REQUIRED_ENV),
        target_url="https://fallback.example.test",
    )


@pytest.fixture
def risky_migration() -> Migration:
    return Migration(
        identifier="0042_drop_legacy_sessions",
        statements=["DROP TABLE legacy_sessions"],
    )
