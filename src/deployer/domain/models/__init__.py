"""Domain models package."""

from deployer.domain.models.base import (
    generate_id,
    PersistedModel,
    utc_now,
    ValueObject,
)
from deployer.domain.models.migration import (
    classify_migration,
    classify_statement,
    ClassifiedMigration,
    Migration,
    MigrationRisk,
)
from deployer.domain.models.phase import (
    GateName,
    next_phase,
    Phase,
    PHASE_GATES,
    PHASE_KINDS,
    PHASE_SEQUENCE,
    PhaseKind,
    PhaseOutcome,
    phases_from,
)
from deployer.domain.models.state import (
    CheckStatus,
    DeploymentRecord,
    DeploymentState,
    DeploymentStatus,
    Environment,
    HistoryEntry,
    PostCheckResult,
    PreCheckResult,
    SCHEMA_VERSION,
    VALID_TRANSITIONS,
)


__all__ = [
    "CheckStatus",
    "ClassifiedMigration",
    "DeploymentRecord",
    "DeploymentState",
    "DeploymentStatus",
    "Environment",
    "GateName",
    "HistoryEntry",
    "Migration",
    "MigrationRisk",
    "PHASE_GATES",
    "PHASE_KINDS",
    "PHASE_SEQUENCE",
    "PersistedModel",
    "Phase",
    "PhaseKind",
    "PhaseOutcome",
    "PostCheckResult",
    "PreCheckResult",
    "SCHEMA_VERSION",
    "VALID_TRANSITIONS",
    "ValueObject",
    "classify_migration",
    "classify_statement",
    "generate_id",
    "next_phase",
    "phases_from",
    "utc_now",
]
