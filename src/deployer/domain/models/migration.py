"""Pending migrations and their risk classification."""

from __future__ import annotations

import re
from enum import Enum

from pydantic import Field

from deployer.domain.models.base import ValueObject


class MigrationRisk(str, Enum):
    """Risk levels, declared from lowest to highest."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


_RISK_ORDER = {MigrationRisk.LOW: 0, MigrationRisk.MEDIUM: 1, MigrationRisk.HIGH: 2}

# First matching rule wins, so more specific patterns come first.
RISK_RULES: list[tuple[re.Pattern[str], MigrationRisk]] = [
    (re.compile(r"\bDROP\s+TABLE\b", re.I), MigrationRisk.HIGH),
    (re.compile(r"\bDROP\s+COLUMN\b", re.I), MigrationRisk.HIGH),
    (re.compile(r"\bALTER\s+COLUMN\s+\S+\s+(SET\s+DATA\s+)?TYPE\b", re.I), MigrationRisk.HIGH),
    (re.compile(r"\bMODIFY\s+(COLUMN\s+)?\S+", re.I), MigrationRisk.HIGH),
    (re.compile(r"\bADD\s+(COLUMN\s+)?.*\bNOT\s+NULL\b.*\bDEFAULT\b", re.I | re.S), MigrationRisk.MEDIUM),
    (re.compile(r"\bADD\s+(COLUMN\s+)?.*\bDEFAULT\b.*\bNOT\s+NULL\b", re.I | re.S), MigrationRisk.MEDIUM),
    (re.compile(r"\bADD\s+(COLUMN\s+)?.*\bNOT\s+NULL\b", re.I | re.S), MigrationRisk.HIGH),
    (re.compile(r"\bSET\s+NOT\s+NULL\b", re.I), MigrationRisk.MEDIUM),
    (re.compile(r"\bCREATE\s+TABLE\b", re.I), MigrationRisk.LOW),
    (re.compile(r"\bCREATE\s+(UNIQUE\s+)?INDEX\b", re.I), MigrationRisk.LOW),
    (re.compile(r"\bADD\s+(COLUMN\s+)?\S+", re.I), MigrationRisk.LOW),
]

UNMATCHED_RISK = MigrationRisk.MEDIUM


class Migration(ValueObject):
    """A pending database migration."""

    identifier: str
    statements: list[str] = Field(default_factory=list)

    @classmethod
    def from_sql(cls, identifier: str, sql: str) -> Migration:
        """Build a migration by splitting a SQL script on statement terminators."""
        statements = [s.strip() for s in sql.split(";") if s.strip()]
        # Drop comment-only chunks
        statements = [
            s for s in statements
            if any(line.strip() and not line.strip().startswith("--") for line in s.splitlines())
        ]
        return cls(identifier=identifier, statements=statements)


class ClassifiedMigration(ValueObject):
    identifier: str
    risk: MigrationRisk
    approved: bool = False


def classify_statement(statement: str) -> MigrationRisk:
    """Classify a single SQL statement using the rule table."""
    for pattern, risk in RISK_RULES:
        if pattern.search(statement):
            return risk
    return UNMATCHED_RISK


def classify_migration(migration: Migration) -> MigrationRisk:
    """A migration is as risky as its riskiest statement."""
    risk = MigrationRisk.LOW
    for statement in migration.statements:
        statement_risk = classify_statement(statement)
        if _RISK_ORDER[statement_risk] > _RISK_ORDER[risk]:
            risk = statement_risk
    return risk
