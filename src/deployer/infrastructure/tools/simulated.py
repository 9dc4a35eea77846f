"""Simulated collaborators for development and testing.

Each tool records its calls and can be configured to fail, which makes them
usable as spies in tests and as a dry environment for ``DEPLOY_TOOL_MODE=simulated``.
"""

from __future__ import annotations

from typing import Any

import structlog

from deployer.domain.errors import ActionError, MigrationFailedError
from deployer.domain.models.migration import Migration
from deployer.domain.ports.services import (
    BackupTool,
    BuildResult,
    BuildTool,
    DependencyAdvisory,
    DeployResult,
    DeployTool,
    HealthChecker,
    HealthCheckResult,
    MigrationTool,
    SourceFile,
    SourceInspector,
    Toolchain,
)


logger = structlog.get_logger(__name__)


class _CallRecorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        logger.debug("simulated_tool_call", tool=type(self).__name__, call=name)

    def call_count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


class SimulatedBuildTool(_CallRecorder, BuildTool):
    def __init__(
        self,
        exit_code: int = 0,
        duration_seconds: float = 1.5,
        artifact_size_bytes: int | None = 2_500_000,
        output: str = "Build completed",
    ) -> None:
        super().__init__()
        self.exit_code = exit_code
        self.duration_seconds = duration_seconds
        self.artifact_size_bytes = artifact_size_bytes
        self.output = output

    def build(self) -> BuildResult:
        self._record("build")
        return BuildResult(
            exit_code=self.exit_code,
            duration_seconds=self.duration_seconds,
            artifact_size_bytes=self.artifact_size_bytes,
            output=self.output,
        )


class SimulatedMigrationTool(_CallRecorder, MigrationTool):
    def __init__(
        self,
        pending: list[Migration] | None = None,
        fail_apply: str | None = None,
        applied_before_failure: int = 0,
    ) -> None:
        super().__init__()
        self.pending_migrations = list(pending or [])
        self.applied: list[str] = []
        self.fail_apply = fail_apply
        self.applied_before_failure = applied_before_failure

    def pending(self) -> list[Migration]:
        self._record("pending")
        return list(self.pending_migrations)

    def apply(self) -> list[str]:
        self._record("apply")
        if self.fail_apply:
            landed = [m.identifier for m in self.pending_migrations[:self.applied_before_failure]]
            self.applied.extend(landed)
            self.pending_migrations = self.pending_migrations[len(landed):]
            raise MigrationFailedError(self.fail_apply, landed)
        applied = [m.identifier for m in self.pending_migrations]
        self.applied.extend(applied)
        self.pending_migrations = []
        return applied


class SimulatedDeployTool(_CallRecorder, DeployTool):
    def __init__(
        self,
        current: str | None = "v1",
        next_version: str = "v2",
        url: str | None = "https://app.example.test",
        fail_deploy: str | None = None,
        revert_failures: int = 0,
    ) -> None:
        super().__init__()
        self.current = current
        self.next_version = next_version
        self.url = url
        self.fail_deploy = fail_deploy
        self.revert_failures = revert_failures

    def current_version(self, environment: str) -> str | None:
        self._record("current_version", environment)
        return self.current

    def deploy(self, environment: str) -> DeployResult:
        self._record("deploy", environment)
        if self.fail_deploy:
            raise ActionError("deploy", self.fail_deploy)
        self.current = self.next_version
        return DeployResult(version=self.next_version, url=self.url)

    def revert(self, environment: str, version: str) -> None:
        self._record("revert", environment, version)
        if self.revert_failures > 0:
            self.revert_failures -= 1
            raise ActionError("revert", "deployment API unavailable")
        self.current = version


class SimulatedBackupTool(_CallRecorder, BackupTool):
    def __init__(self, location: str = "backups/db-snapshot.sql.gz", fail: str | None = None) -> None:
        super().__init__()
        self.location = location
        self.fail = fail
        self.restored: list[str] = []

    def create_backup(self, environment: str) -> str:
        self._record("create_backup", environment)
        if self.fail:
            raise ActionError("backup", self.fail)
        return self.location

    def restore(self, location: str) -> None:
        self._record("restore", location)
        self.restored.append(location)


class SimulatedHealthChecker(_CallRecorder, HealthChecker):
    """Answers every probe from a per-path table, defaulting to a fast 200."""

    def __init__(
        self,
        responses: dict[str, tuple[int, float]] | None = None,
        default: tuple[int, float] = (200, 42.0),
    ) -> None:
        super().__init__()
        self.responses = dict(responses or {})
        self.default = default

    def check(self, url: str) -> HealthCheckResult:
        self._record("check", url)
        status, latency = self.default
        for suffix, response in self.responses.items():
            if url.endswith(suffix):
                status, latency = response
                break
        return HealthCheckResult(url=url, status_code=status, response_time_ms=latency)


class SimulatedSourceInspector(_CallRecorder, SourceInspector):
    def __init__(
        self,
        files: list[SourceFile] | None = None,
        advisories: list[DependencyAdvisory] | None = None,
    ) -> None:
        super().__init__()
        self.files = list(files or [])
        self.advisories = list(advisories or [])

    def changed_files(self) -> list[SourceFile]:
        self._record("changed_files")
        return list(self.files)

    def dependency_advisories(self) -> list[DependencyAdvisory]:
        self._record("dependency_advisories")
        return list(self.advisories)


def simulated_toolchain() -> Toolchain:
    """A toolchain where every tool succeeds."""
    return Toolchain(
        build=SimulatedBuildTool(),
        migrations=SimulatedMigrationTool(),
        deployer=SimulatedDeployTool(),
        backups=SimulatedBackupTool(),
        health=SimulatedHealthChecker(),
        source=SimulatedSourceInspector(),
    )
