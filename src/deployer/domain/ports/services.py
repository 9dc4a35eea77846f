"""Collaborator port interfaces (hexagonal architecture).

The orchestrator treats the build, migration, deploy, backup and health-check
tools as opaque capabilities returning typed results. Implementations raise
``ActionError`` when the underlying tool fails.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from pydantic import BaseModel

from deployer.domain.models.migration import Migration


class ToolResult(BaseModel):
    model_config = {"frozen": True}


class BuildResult(ToolResult):
    """Outcome of a build invocation."""

    exit_code: int
    duration_seconds: float = 0.0
    artifact_size_bytes: int | None = None
    output: str = ""


class DeployResult(ToolResult):
    """Outcome of an application deployment."""

    version: str
    url: str | None = None


class HealthCheckResult(ToolResult):
    """Outcome of a single HTTP probe."""

    url: str
    status_code: int
    response_time_ms: float
    error: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class SourceFile(ToolResult):
    path: str
    content: str


class DependencyAdvisory(ToolResult):
    name: str
    severity: str
    title: str = ""


class BuildTool(ABC):
    """Port for the project build."""

    @abstractmethod
    def build(self) -> BuildResult:
        """Run the build."""


class MigrationTool(ABC):
    """Port for the database migration tool."""

    @abstractmethod
    def pending(self) -> list[Migration]:
        """List migrations not yet applied, in application order."""

    @abstractmethod
    def apply(self) -> list[str]:
        """Apply pending migrations. Returns the identifiers applied."""


class DeployTool(ABC):
    """Port for the application deployment tool."""

    @abstractmethod
    def current_version(self, environment: str) -> str | None:
        """Version pointer currently live, or None on a first deployment."""

    @abstractmethod
    def deploy(self, environment: str) -> DeployResult:
        """Deploy the built application."""

    @abstractmethod
    def revert(self, environment: str, version: str) -> None:
        """Point the environment back at ``version``."""


class BackupTool(ABC):
    """Port for database backups."""

    @abstractmethod
    def create_backup(self, environment: str) -> str:
        """Take a backup. Returns its location."""

    @abstractmethod
    def restore(self, location: str) -> None:
        """Restore the database from a backup, overwriting current data."""


class HealthChecker(ABC):
    """Port for probing a deployed application over HTTP."""

    @abstractmethod
    def check(self, url: str) -> HealthCheckResult:
        """Probe ``url`` once."""

    def close(self) -> None:
        """Release any open connections."""


class SourceInspector(ABC):
    """Port for reading the changes being deployed."""

    @abstractmethod
    def changed_files(self) -> list[SourceFile]:
        """Files changed since the last deployment."""

    @abstractmethod
    def dependency_advisories(self) -> list[DependencyAdvisory]:
        """Known vulnerabilities in the project's dependencies."""


@dataclass(frozen=True)
class Toolchain:
    """Bundle of collaborators injected into the gates and phase runner."""

    build: BuildTool
    migrations: MigrationTool
    deployer: DeployTool
    backups: BackupTool
    health: HealthChecker
    source: SourceInspector
