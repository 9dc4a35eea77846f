"""Deployment error taxonomy.

Every error carries the CLI exit code it maps to.
"""

from __future__ import annotations


class DeployerError(Exception):
    """Base class for errors surfaced to the operator."""

    exit_code = 5


class CorruptStateError(DeployerError):
    """Raised when the persisted state cannot be decoded."""


class ConfigurationError(DeployerError):
    """Raised when DEPLOY_* settings cannot be parsed."""


class AlreadyInProgressError(DeployerError):
    """Raised when a run is started while another is in progress."""

    exit_code = 2


class GateFailureError(DeployerError):
    """Raised when a pre-check gate halts the run."""

    exit_code = 1

    def __init__(self, phase: str, gate_name: str, detail: str) -> None:
        super().__init__(f"Phase {phase} halted: gate {gate_name} failed: {detail}")
        self.phase = phase
        self.gate_name = gate_name
        self.detail = detail


class ActionError(DeployerError):
    """Raised when an external collaborator (build, migrate, deploy) fails."""

    exit_code = 1

    def __init__(self, action: str, detail: str, phase: str | None = None) -> None:
        prefix = f"Phase {phase} halted: " if phase else ""
        super().__init__(f"{prefix}{action} failed: {detail}")
        self.action = action
        self.detail = detail
        self.phase = phase


class MigrationFailedError(ActionError):
    """Raised when the migrate command fails after some migrations landed."""

    def __init__(self, detail: str, applied: list[str] | None = None) -> None:
        super().__init__("migrate", detail)
        self.applied = list(applied or [])


class NoFailedStateError(DeployerError):
    """Raised when resume is requested but no failed run exists."""

    exit_code = 3


class InvalidTransitionError(DeployerError):
    """Raised when a state transition is not allowed."""

    exit_code = 3


class NoPriorVersionError(DeployerError):
    """Raised when rollback has no previous version to return to."""

    exit_code = 4


class ManualRollbackRequiredError(DeployerError):
    """Raised when migrations were applied but no backup exists to restore."""

    exit_code = 4

    def __init__(self, migrations: list[str]) -> None:
        super().__init__(
            "Manual database rollback required; no backup recorded for applied "
            f"migrations: {', '.join(migrations)}"
        )
        self.migrations = list(migrations)


class RollbackFailedError(DeployerError):
    """Raised when a rollback step keeps failing after all retries."""


class ResetNotConfirmedError(DeployerError):
    """Raised when state reset is requested without --force."""
