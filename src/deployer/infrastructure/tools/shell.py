"""Collaborators backed by operator-configured shell commands."""

from __future__ import annotations

import json
import shlex
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

import structlog

from deployer.config import ToolSettings
from deployer.domain.errors import ActionError, MigrationFailedError
from deployer.domain.models.migration import Migration
from deployer.domain.ports.services import (
    BackupTool,
    BuildResult,
    BuildTool,
    DeployResult,
    DeployTool,
    MigrationTool,
)


logger = structlog.get_logger(__name__)


@dataclass
class CommandResult:
    """Result of executing a local command."""

    command: str
    stdout: str
    stderr: str
    exit_status: int
    duration_seconds: float

    @property
    def last_line(self) -> str:
        lines = [line.strip() for line in self.stdout.splitlines() if line.strip()]
        return lines[-1] if lines else ""


class CommandRunner:
    """Runs command templates in the project working directory.

    Placeholders such as ``{environment}`` are shell-quoted before
    substitution and the command is executed without a shell.
    """

    def __init__(self, workdir: str = ".", timeout: int = 1800) -> None:
        self._workdir = workdir
        self._timeout = timeout

    def run(self, action: str, template: str | None, **values: str) -> CommandResult:
        if not template:
            raise ActionError(action, f"no {action} command configured")
        try:
            command = template.format(**{k: shlex.quote(v) for k, v in values.items()})
        except KeyError as e:
            raise ActionError(action, f"unknown placeholder {e} in {action} command") from e
        logger.info("command_started", action=action, command=command)
        started = time.monotonic()
        try:
            completed = subprocess.run(
                shlex.split(command),
                capture_output=True,
                text=True,
                timeout=self._timeout,
                cwd=self._workdir,
            )
        except subprocess.TimeoutExpired as e:
            raise ActionError(action, f"`{command}` timed out after {self._timeout}s") from e
        except OSError as e:
            raise ActionError(action, f"`{command}` could not be started: {e}") from e

        result = CommandResult(
            command=command,
            stdout=completed.stdout,
            stderr=completed.stderr,
            exit_status=completed.returncode,
            duration_seconds=time.monotonic() - started,
        )
        logger.info(
            "command_finished",
            action=action,
            exit_status=result.exit_status,
            duration_seconds=round(result.duration_seconds, 2),
        )
        return result

    def run_checked(self, action: str, template: str | None, **values: str) -> CommandResult:
        """Run and raise ActionError on a non-zero exit status."""
        result = self.run(action, template, **values)
        if result.exit_status != 0:
            output = (result.stderr or result.stdout).strip().splitlines()
            tail = output[-1] if output else "no output"
            raise ActionError(action, f"`{result.command}` exited {result.exit_status}: {tail}")
        return result


def _artifact_size(path: Path) -> int | None:
    if path.is_file():
        return path.stat().st_size
    if path.is_dir():
        return sum(p.stat().st_size for p in path.rglob("*") if p.is_file())
    return None


class ShellBuildTool(BuildTool):
    def __init__(self, runner: CommandRunner, settings: ToolSettings) -> None:
        self._runner = runner
        self._settings = settings

    def build(self) -> BuildResult:
        result = self._runner.run("build", self._settings.build_command)
        size = None
        if self._settings.artifact_path:
            size = _artifact_size(Path(self._settings.workdir) / self._settings.artifact_path)
        return BuildResult(
            exit_code=result.exit_status,
            duration_seconds=result.duration_seconds,
            artifact_size_bytes=size,
            output=result.stdout + result.stderr,
        )


class ShellMigrationTool(MigrationTool):
    """Pending migrations are the SQL files not reported as applied by the status command."""

    def __init__(self, runner: CommandRunner, settings: ToolSettings) -> None:
        self._runner = runner
        self._settings = settings

    def _migration_files(self) -> list[Path]:
        directory = Path(self._settings.workdir) / self._settings.migrations_dir
        if not directory.is_dir():
            return []
        return sorted(directory.glob("*.sql"))

    def _applied(self) -> set[str]:
        if not self._settings.migration_status_command:
            return set()
        result = self._runner.run_checked("migration status", self._settings.migration_status_command)
        return {line.strip() for line in result.stdout.splitlines() if line.strip()}

    def pending(self) -> list[Migration]:
        applied = self._applied()
        return [
            Migration.from_sql(path.stem, path.read_text(encoding="utf-8"))
            for path in self._migration_files()
            if path.stem not in applied
        ]

    def apply(self) -> list[str]:
        pending = [m.identifier for m in self.pending()]
        if not pending:
            return []
        try:
            self._runner.run_checked("migrate", self._settings.migrate_command)
        except ActionError as e:
            raise MigrationFailedError(e.detail, self._landed(pending)) from e
        return pending

    def _landed(self, pending: list[str]) -> list[str]:
        """Migrations from ``pending`` the status command now reports as applied."""
        try:
            applied = self._applied()
        except ActionError as e:
            logger.warning("migration_status_unavailable", detail=e.detail)
            return []
        return [identifier for identifier in pending if identifier in applied]


class ShellDeployTool(DeployTool):
    """Deploy output's last line is either JSON ``{"version", "url"}`` or a bare version."""

    def __init__(self, runner: CommandRunner, settings: ToolSettings) -> None:
        self._runner = runner
        self._settings = settings

    def current_version(self, environment: str) -> str | None:
        if not self._settings.current_version_command:
            return None
        result = self._runner.run_checked(
            "current version", self._settings.current_version_command, environment=environment,
        )
        return result.last_line or None

    def deploy(self, environment: str) -> DeployResult:
        result = self._runner.run_checked(
            "deploy", self._settings.deploy_command, environment=environment,
        )
        line = result.last_line
        if not line:
            raise ActionError("deploy", "deploy command printed no version")
        if line.startswith("{"):
            try:
                payload = json.loads(line)
            except json.JSONDecodeError as e:
                raise ActionError("deploy", f"unreadable deploy output: {line}") from e
            if not payload.get("version"):
                raise ActionError("deploy", f"deploy output has no version: {line}")
            return DeployResult(version=str(payload["version"]), url=payload.get("url"))
        return DeployResult(version=line)

    def revert(self, environment: str, version: str) -> None:
        self._runner.run_checked(
            "revert", self._settings.revert_command, environment=environment, version=version,
        )


class ShellBackupTool(BackupTool):
    def __init__(self, runner: CommandRunner, settings: ToolSettings) -> None:
        self._runner = runner
        self._settings = settings

    def create_backup(self, environment: str) -> str:
        timestamp = time.strftime("%Y%m%dT%H%M%SZ", time.gmtime())
        result = self._runner.run_checked(
            "backup", self._settings.backup_command,
            environment=environment, timestamp=timestamp,
        )
        location = result.last_line
        if not location:
            raise ActionError("backup", "backup command printed no location")
        return location

    def restore(self, location: str) -> None:
        self._runner.run_checked("restore", self._settings.restore_command, location=location)
