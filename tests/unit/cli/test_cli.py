"""Unit tests for the deploy command."""

from __future__ import annotations

import io
import json
from dataclasses import replace

import httpx
import pytest

from deployer.cli import _settings_for, build_parser, run
from deployer.config import get_settings, Settings, ToolMode, ToolSettings
from deployer.container import build_toolchain, ServiceContainer
from deployer.domain.models.phase import Phase
from deployer.domain.models.state import DeploymentState, Environment
from deployer.domain.ports.services import DeployResult, Toolchain
from deployer.infrastructure.persistence.in_memory import InMemoryStateStore
from deployer.infrastructure.tools.http_health import HttpHealthChecker
from deployer.infrastructure.tools.shell import ShellDeployTool
from deployer.infrastructure.tools.simulated import (
    SimulatedBuildTool,
    SimulatedDeployTool,
)


class ExplodingDeployTool(SimulatedDeployTool):
    def deploy(self, environment: str) -> DeployResult:
        raise RuntimeError("unexpected response shape")


@pytest.fixture
def container(
    settings: Settings, store: InMemoryStateStore, toolchain: Toolchain
) -> ServiceContainer:
    return ServiceContainer(
        settings,
        store=store,
        toolchain=toolchain,
        environ={"DATABASE_URL": "postgres://db/app", "SECRET_KEY": "s3cr3t-value"},
    )


def _invoke(container: ServiceContainer, *argv: str) -> tuple[int, str, str]:
    out, err = io.StringIO(), io.StringIO()
    code = run(list(argv), container=container, out=out, err=err)
    return code, out.getvalue(), err.getvalue()


class TestParser:
    def test_defaults_to_staging(self) -> None:
        args = build_parser().parse_args([])
        assert args.environment == "staging"
        assert args.approvals == []

    def test_repeatable_approvals(self) -> None:
        args = build_parser().parse_args(
            ["production", "--approve-migration", "0042", "--approve-migration", "0043"]
        )
        assert args.approvals == ["0042", "0043"]

    def test_modes_are_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--resume", "--rollback"])

    def test_state_file_override(self) -> None:
        args = build_parser().parse_args(["--status", "--state-file", "/tmp/other.json"])
        settings = _settings_for(args, Settings())
        assert settings.state.path == "/tmp/other.json"


class TestExitCodes:
    def test_success(self, container: ServiceContainer) -> None:
        code, out, _ = _invoke(container, "staging")
        assert code == 0
        assert out.startswith("# Deployment succeeded")

    def test_gate_failure_prints_remediation(
        self, container: ServiceContainer, settings: Settings
    ) -> None:
        settings.gates.required_env_vars.append("STRIPE_SECRET_KEY")
        code, _, err = _invoke(container, "production")
        assert code == 1
        assert "HALTED at phase 1.1: gate env_vars failed" in err
        assert "missing: STRIPE_SECRET_KEY" in err

    def test_action_failure(
        self, container: ServiceContainer, deploy_tool: SimulatedDeployTool
    ) -> None:
        deploy_tool.fail_deploy = "502 from platform API"
        code, _, err = _invoke(container, "staging")
        assert code == 1
        assert "HALTED at phase 2.3: deploy failed" in err
        assert "502 from platform API" in err

    def test_already_in_progress(
        self, container: ServiceContainer, store: InMemoryStateStore
    ) -> None:
        running = DeploymentState.new(Environment.STAGING)
        running.begin()
        store.save(running)
        code, _, err = _invoke(container, "staging")
        assert code == 2
        assert "already in progress" in err

    def test_resume_without_failed_state(self, container: ServiceContainer) -> None:
        code, _, _ = _invoke(container, "--resume")
        assert code == 3

    def test_resume_after_fix(
        self, container: ServiceContainer, build_tool: SimulatedBuildTool
    ) -> None:
        build_tool.exit_code = 1
        assert _invoke(container, "staging")[0] == 1
        build_tool.exit_code = 0
        code, out, _ = _invoke(container, "--resume")
        assert code == 0
        assert "Deployment succeeded" in out

    def test_rollback_without_prior_version(self, container: ServiceContainer) -> None:
        code, _, _ = _invoke(container, "--rollback")
        assert code == 4

    def test_manual_rollback_required(
        self, container: ServiceContainer, store: InMemoryStateStore
    ) -> None:
        state = DeploymentState.new(Environment.STAGING)
        state.begin()
        state.deployment_record.previous_version_pointer = "v1"
        state.deployment_record.applied_migrations = ["0030_drop_flags"]
        state.fail(Phase.HEALTH, "internal error: boom")
        store.save(state)
        code, _, err = _invoke(container, "--rollback")
        assert code == 4
        assert "0030_drop_flags" in err

    def test_rollback_success(self, container: ServiceContainer) -> None:
        assert _invoke(container, "staging")[0] == 0
        code, out, _ = _invoke(container, "--rollback")
        assert code == 0
        assert "rolled_back (version v1)" in out

    def test_reset_requires_force(self, container: ServiceContainer) -> None:
        code, _, err = _invoke(container, "--reset")
        assert code == 5
        assert "--force" in err

    def test_reset_with_force(self, container: ServiceContainer, store: InMemoryStateStore) -> None:
        _invoke(container, "staging")
        code, _, _ = _invoke(container, "--reset", "--force")
        assert code == 0
        assert store.raw is None

    def test_corrupt_state(self, settings: Settings, toolchain: Toolchain) -> None:
        container = ServiceContainer(settings, store=InMemoryStateStore("{broken"), toolchain=toolchain)
        code, _, err = _invoke(container, "--status")
        assert code == 5
        assert "corrupt" in err

    def test_unexpected_error(
        self, settings: Settings, store: InMemoryStateStore, toolchain: Toolchain
    ) -> None:
        container = ServiceContainer(
            settings,
            store=store,
            toolchain=replace(toolchain, deployer=ExplodingDeployTool()),
            environ={"DATABASE_URL": "x", "SECRET_KEY": "y"},
        )
        code, _, err = _invoke(container, "staging")
        assert code == 5
        assert "INTERNAL ERROR: RuntimeError" in err


class TestDryRunAndStatus:
    def test_dry_run_exits_zero_even_when_halting(
        self, container: ServiceContainer, build_tool: SimulatedBuildTool, store: InMemoryStateStore
    ) -> None:
        build_tool.exit_code = 1
        code, out, _ = _invoke(container, "production", "--dry-run")
        assert code == 0
        assert "1.2 build: FAIL" in out
        assert "Predicted outcome: halt at pre-checks" in out
        assert store.raw is None

    def test_status_without_state(self, container: ServiceContainer) -> None:
        code, out, _ = _invoke(container, "--status")
        assert code == 0
        assert out.strip() == "no deployment state"

    def test_status_text(self, container: ServiceContainer) -> None:
        _invoke(container, "staging")
        code, out, _ = _invoke(container, "--status")
        assert code == 0
        assert "status: succeeded" in out
        assert "environment: staging" in out

    def test_status_json(self, container: ServiceContainer) -> None:
        _invoke(container, "staging")
        code, out, _ = _invoke(container, "--status", "--json")
        assert code == 0
        payload = json.loads(out)
        assert payload["status"] == "succeeded"
        assert payload["deploymentRecord"]["newVersionPointer"] == "v2"


class TestContainer:
    def test_simulated_mode(self, settings: Settings) -> None:
        settings.tools = ToolSettings(mode=ToolMode.SIMULATED)
        container = ServiceContainer(settings, store=InMemoryStateStore())
        assert isinstance(container.toolchain.deployer, SimulatedDeployTool)
        assert container.orchestrator is container.orchestrator

    def test_shell_mode(self, settings: Settings) -> None:
        tools = build_toolchain(settings)
        assert isinstance(tools.deployer, ShellDeployTool)
        assert isinstance(tools.health, HttpHealthChecker)


class TestCleanup:
    def test_container_close_closes_http_client(
        self, settings: Settings, store: InMemoryStateStore, toolchain: Toolchain
    ) -> None:
        client = httpx.Client()
        container = ServiceContainer(
            settings, store=store, toolchain=replace(toolchain, health=HttpHealthChecker(client=client)),
        )
        container.close()
        assert client.is_closed

    def test_run_closes_container_it_builds(
        self, container: ServiceContainer, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        closed: list[bool] = []
        monkeypatch.setattr(container, "close", lambda: closed.append(True))
        monkeypatch.setattr("deployer.cli.get_settings", lambda: container.settings)
        monkeypatch.setattr("deployer.cli.ServiceContainer", lambda settings: container)

        code = run(["--status"], out=io.StringIO(), err=io.StringIO())

        assert code == 0
        assert closed == [True]

    def test_run_leaves_injected_container_open(
        self, container: ServiceContainer, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        closed: list[bool] = []
        monkeypatch.setattr(container, "close", lambda: closed.append(True))
        assert _invoke(container, "--status")[0] == 0
        assert closed == []


class TestConfiguration:
    def test_invalid_settings_are_a_configuration_error(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DEPLOY_PERFORMANCE_SAMPLES", "several")
        get_settings.cache_clear()
        try:
            err = io.StringIO()
            code = run(["--status"], out=io.StringIO(), err=err)
        finally:
            get_settings.cache_clear()
        assert code == 5
        assert "Invalid configuration" in err.getvalue()
        assert "INTERNAL ERROR" not in err.getvalue()
