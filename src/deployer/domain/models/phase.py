"""Deployment phases and their fixed ordering."""

from __future__ import annotations

from enum import Enum


class Phase(str, Enum):
    """Deployment phases, declared in execution order."""

    ENV_VARS = "1.1"
    BUILD = "1.2"
    MIGRATION_RISK = "1.3"
    SECURITY_SCAN = "1.4"
    BACKUP = "2.1"
    MIGRATE = "2.2"
    DEPLOY = "2.3"
    HEALTH = "3.1"
    SMOKE = "3.2"
    PERFORMANCE = "3.3"
    FINALIZE = "4"


class PhaseKind(str, Enum):
    """How a phase behaves on failure."""

    PRE_CHECK = "pre_check"
    EXECUTION = "execution"
    POST_CHECK = "post_check"
    FINALIZE = "finalize"


class GateName(str, Enum):
    """Built-in gates."""

    ENV_VARS = "env_vars"
    BUILD = "build"
    MIGRATION_RISK = "migration_risk"
    SECURITY_SCAN = "security_scan"
    HEALTH = "health"
    SMOKE = "smoke"
    PERFORMANCE = "performance"


class PhaseOutcome(str, Enum):
    """What the orchestrator should do after a phase."""

    CONTINUE = "continue"
    HALT = "halt"


PHASE_SEQUENCE: tuple[Phase, ...] = tuple(Phase)

PHASE_KINDS: dict[Phase, PhaseKind] = {
    Phase.ENV_VARS: PhaseKind.PRE_CHECK,
    Phase.BUILD: PhaseKind.PRE_CHECK,
    Phase.MIGRATION_RISK: PhaseKind.PRE_CHECK,
    Phase.SECURITY_SCAN: PhaseKind.PRE_CHECK,
    Phase.BACKUP: PhaseKind.EXECUTION,
    Phase.MIGRATE: PhaseKind.EXECUTION,
    Phase.DEPLOY: PhaseKind.EXECUTION,
    Phase.HEALTH: PhaseKind.POST_CHECK,
    Phase.SMOKE: PhaseKind.POST_CHECK,
    Phase.PERFORMANCE: PhaseKind.POST_CHECK,
    Phase.FINALIZE: PhaseKind.FINALIZE,
}

PHASE_GATES: dict[Phase, GateName] = {
    Phase.ENV_VARS: GateName.ENV_VARS,
    Phase.BUILD: GateName.BUILD,
    Phase.MIGRATION_RISK: GateName.MIGRATION_RISK,
    Phase.SECURITY_SCAN: GateName.SECURITY_SCAN,
    Phase.HEALTH: GateName.HEALTH,
    Phase.SMOKE: GateName.SMOKE,
    Phase.PERFORMANCE: GateName.PERFORMANCE,
}

PHASE_TITLES: dict[Phase, str] = {
    Phase.ENV_VARS: "Environment variables",
    Phase.BUILD: "Build",
    Phase.MIGRATION_RISK: "Migration risk",
    Phase.SECURITY_SCAN: "Security scan",
    Phase.BACKUP: "Backup",
    Phase.MIGRATE: "Migrate database",
    Phase.DEPLOY: "Deploy application",
    Phase.HEALTH: "Health check",
    Phase.SMOKE: "Smoke test",
    Phase.PERFORMANCE: "Performance check",
    Phase.FINALIZE: "Finalize",
}

PRE_CHECK_GATES: tuple[GateName, ...] = tuple(
    PHASE_GATES[p] for p in PHASE_SEQUENCE if PHASE_KINDS[p] is PhaseKind.PRE_CHECK
)
POST_CHECK_GATES: tuple[GateName, ...] = tuple(
    PHASE_GATES[p] for p in PHASE_SEQUENCE if PHASE_KINDS[p] is PhaseKind.POST_CHECK
)


def phase_index(phase: Phase) -> int:
    """Position of a phase in the fixed sequence."""
    return PHASE_SEQUENCE.index(phase)


def next_phase(phase: Phase) -> Phase | None:
    """Phase that follows ``phase``, or None after finalization."""
    idx = phase_index(phase)
    if idx + 1 < len(PHASE_SEQUENCE):
        return PHASE_SEQUENCE[idx + 1]
    return None


def phases_from(phase: Phase) -> tuple[Phase, ...]:
    """The phase and every phase after it, in order."""
    return PHASE_SEQUENCE[phase_index(phase):]


def is_at_or_after(phase: Phase, other: Phase) -> bool:
    return phase_index(phase) >= phase_index(other)
