"""Deployment state aggregate with full state machine."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field, field_validator, model_validator

from deployer.domain.errors import InvalidTransitionError
from deployer.domain.models.base import generate_id, PersistedModel, utc_now, ValueObject
from deployer.domain.models.phase import (
    GateName,
    Phase,
    POST_CHECK_GATES,
    PRE_CHECK_GATES,
)


SCHEMA_VERSION = 1


class Environment(str, Enum):
    """Deployment targets."""

    STAGING = "staging"
    PRODUCTION = "production"


class DeploymentStatus(str, Enum):
    """Deployment run lifecycle states."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    FAILED = "failed"
    SUCCEEDED = "succeeded"
    ROLLED_BACK = "rolled_back"


class CheckStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    PENDING = "pending"


# State machine transitions
VALID_TRANSITIONS: dict[DeploymentStatus, set[DeploymentStatus]] = {
    DeploymentStatus.NOT_STARTED: {DeploymentStatus.IN_PROGRESS},
    DeploymentStatus.IN_PROGRESS: {
        DeploymentStatus.FAILED, DeploymentStatus.SUCCEEDED,
        DeploymentStatus.ROLLED_BACK,
    },
    DeploymentStatus.FAILED: {DeploymentStatus.IN_PROGRESS, DeploymentStatus.ROLLED_BACK},
    DeploymentStatus.SUCCEEDED: {DeploymentStatus.ROLLED_BACK},
    DeploymentStatus.ROLLED_BACK: set(),
}


class PreCheckResult(ValueObject):
    """Recorded outcome of a pre-deployment gate."""

    status: CheckStatus = CheckStatus.PENDING
    detail: str = ""


class PostCheckResult(ValueObject):
    """Recorded outcome of a post-deployment check."""

    status: CheckStatus = CheckStatus.PENDING
    response_time_ms: float | None = None
    detail: str = ""


class HistoryEntry(ValueObject):
    """One line in the run's append-only event log."""

    at: datetime = Field(default_factory=utc_now)
    phase: Phase | None = None
    event: str
    detail: str = ""


class DeploymentRecord(PersistedModel):
    """Pointers needed to reverse what phase 2 did."""

    backup_location: str | None = None
    previous_version_pointer: str | None = None
    new_version_pointer: str | None = None
    deployment_url: str | None = None
    applied_migrations: list[str] = Field(default_factory=list)
    rollback_timestamps: list[datetime] = Field(default_factory=list)

    def append_migrations(self, identifiers: list[str]) -> None:
        """Record newly applied migrations; already recorded ids are kept in place."""
        for identifier in identifiers:
            if identifier not in self.applied_migrations:
                self.applied_migrations.append(identifier)


class DeploymentState(PersistedModel):
    """The single persisted aggregate for a deployment run."""

    schema_version: int = SCHEMA_VERSION
    run_id: str = Field(default_factory=generate_id)
    environment: Environment
    current_phase: Phase | None = None
    status: DeploymentStatus = DeploymentStatus.NOT_STARTED
    started_at: datetime = Field(default_factory=utc_now)
    last_updated_at: datetime = Field(default_factory=utc_now)
    skip_migrations: bool = False
    pre_check_results: dict[str, PreCheckResult] = Field(default_factory=dict)
    deployment_record: DeploymentRecord = Field(default_factory=DeploymentRecord)
    post_check_results: dict[str, PostCheckResult] = Field(default_factory=dict)
    completed_phases: list[Phase] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    history: list[HistoryEntry] = Field(default_factory=list)
    failure_reason: str | None = None

    @field_validator("schema_version")
    @classmethod
    def _supported_schema(cls, value: int) -> int:
        if value > SCHEMA_VERSION:
            raise ValueError(
                f"state schema version {value} is newer than supported version {SCHEMA_VERSION}"
            )
        return value

    @model_validator(mode="after")
    def _check_invariants(self) -> DeploymentState:
        if self.status == DeploymentStatus.FAILED:
            if not self.failure_reason:
                raise ValueError("failed state requires a failure reason")
            if self.current_phase is None:
                raise ValueError("failed state requires the failed phase")
        elif self.failure_reason is not None:
            raise ValueError("failure reason is only allowed on failed state")
        if self.status == DeploymentStatus.SUCCEEDED:
            self._check_succeeded()
        return self

    def _check_succeeded(self) -> None:
        not_passed = [
            name for name, result in self.pre_check_results.items()
            if result.status != CheckStatus.PASS
        ]
        if not_passed:
            raise ValueError(f"succeeded state has unpassed pre-checks: {', '.join(not_passed)}")
        unresolved = [
            name for name, result in self.post_check_results.items()
            if result.status == CheckStatus.PENDING
        ]
        if unresolved:
            raise ValueError(f"succeeded state has pending post-checks: {', '.join(unresolved)}")

    @classmethod
    def new(cls, environment: Environment, skip_migrations: bool = False) -> DeploymentState:
        """Create a fresh run with every check pending."""
        return cls(
            environment=environment,
            skip_migrations=skip_migrations,
            pre_check_results={g.value: PreCheckResult() for g in PRE_CHECK_GATES},
            post_check_results={g.value: PostCheckResult() for g in POST_CHECK_GATES},
        )

    def touch(self) -> None:
        self.last_updated_at = utc_now()

    def log(self, event: str, detail: str = "", phase: Phase | None = None) -> None:
        """Append to the run history."""
        self.history.append(HistoryEntry(phase=phase or self.current_phase, event=event, detail=detail))
        self.touch()

    def _transition_to(self, new_status: DeploymentStatus) -> None:
        """Validate and execute state transition."""
        valid = VALID_TRANSITIONS.get(self.status, set())
        if new_status not in valid:
            raise InvalidTransitionError(
                f"Cannot transition from {self.status.value} to {new_status.value}. "
                f"Valid transitions: {sorted(s.value for s in valid)}"
            )
        self.status = new_status
        self.touch()

    def begin(self) -> None:
        """Start the run at the first phase."""
        self._transition_to(DeploymentStatus.IN_PROGRESS)
        self.current_phase = Phase.ENV_VARS
        self.log("run_started", f"environment={self.environment.value}")

    def enter_phase(self, phase: Phase) -> None:
        self.current_phase = phase
        self.log("phase_started")

    def complete_phase(self, phase: Phase) -> None:
        if phase not in self.completed_phases:
            self.completed_phases.append(phase)
        self.log("phase_completed", phase=phase)

    def record_pre_check(self, gate: GateName, passed: bool, detail: str) -> None:
        status = CheckStatus.PASS if passed else CheckStatus.FAIL
        self.pre_check_results[gate.value] = PreCheckResult(status=status, detail=detail)
        self.touch()

    def record_post_check(
        self, gate: GateName, passed: bool, detail: str, response_time_ms: float | None
    ) -> None:
        status = CheckStatus.PASS if passed else CheckStatus.FAIL
        self.post_check_results[gate.value] = PostCheckResult(
            status=status, response_time_ms=response_time_ms, detail=detail,
        )
        if not passed:
            self.warnings.append(f"WARN {gate.value}: {detail}")
        self.touch()

    def fail(self, phase: Phase, reason: str) -> None:
        """Mark the run as failed at ``phase``."""
        self.current_phase = phase
        self.failure_reason = reason
        self._transition_to(DeploymentStatus.FAILED)
        self.log("phase_failed", reason, phase=phase)

    def resume(self) -> Phase:
        """Reopen a failed run; returns the phase to retry."""
        if self.status != DeploymentStatus.FAILED or self.current_phase is None:
            raise InvalidTransitionError(
                f"Cannot resume a run in status {self.status.value}"
            )
        phase = self.current_phase
        self.failure_reason = None
        self._transition_to(DeploymentStatus.IN_PROGRESS)
        self.log("run_resumed", phase=phase)
        return phase

    def succeed(self) -> None:
        self._check_succeeded()
        self._transition_to(DeploymentStatus.SUCCEEDED)
        self.log("run_succeeded")

    def mark_rolled_back(self) -> None:
        self._transition_to(DeploymentStatus.ROLLED_BACK)
        self.failure_reason = None
        self.deployment_record.rollback_timestamps.append(utc_now())
        self.log("rollback_completed")

    @property
    def is_terminal(self) -> bool:
        """Check if the run is in a terminal state."""
        return self.status in {DeploymentStatus.SUCCEEDED, DeploymentStatus.ROLLED_BACK}

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)
