"""Gate evaluation for pre- and post-deployment checks."""

from __future__ import annotations

import statistics
from collections.abc import Callable
from typing import Any

import structlog
from pydantic import BaseModel, Field

from deployer.config import GateSettings
from deployer.domain.errors import ActionError
from deployer.domain.models.migration import classify_migration, ClassifiedMigration, MigrationRisk
from deployer.domain.models.phase import GateName
from deployer.domain.models.state import Environment
from deployer.domain.ports.services import HealthCheckResult, Toolchain
from deployer.domain.services.secrets import scan_files
from deployer.infrastructure.observability.metrics import GATE_EVALUATIONS_TOTAL


logger = structlog.get_logger(__name__)


class GateContext(BaseModel):
    """Per-invocation inputs to the gates."""

    environment: Environment
    env: dict[str, str] = Field(default_factory=dict)
    approved_migrations: frozenset[str] = frozenset()
    target_url: str | None = None

    model_config = {"frozen": True}


class GateResult(BaseModel):
    """Outcome of a gate. Gates report; they never change deployment state."""

    passed: bool
    detail: str
    response_time_ms: float | None = None
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


def format_bytes(size: int | None) -> str:
    if size is None:
        return "unknown size"
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def join_url(base: str, path: str) -> str:
    if not path or path == "/":
        return base.rstrip("/") + "/"
    return base.rstrip("/") + "/" + path.lstrip("/")


def _tail(text: str, lines: int = 5) -> str:
    return " | ".join(line for line in text.strip().splitlines()[-lines:] if line.strip())


class GateEvaluator:
    """Runs the named built-in gates against the injected collaborators.

    Each gate is independent of the others and of evaluation order.
    """

    def __init__(self, toolchain: Toolchain, settings: GateSettings) -> None:
        self._tools = toolchain
        self._settings = settings
        self._gates: dict[GateName, Callable[[GateContext], GateResult]] = {
            GateName.ENV_VARS: self._env_vars,
            GateName.BUILD: self._build,
            GateName.MIGRATION_RISK: self._migration_risk,
            GateName.SECURITY_SCAN: self._security_scan,
            GateName.HEALTH: self._health,
            GateName.SMOKE: self._smoke,
            GateName.PERFORMANCE: self._performance,
        }

    def evaluate(self, gate_name: GateName | str, context: GateContext) -> GateResult:
        """Evaluate one gate. Unknown gate names raise ValueError."""
        gate = GateName(gate_name)
        result = self._gates[gate](context)

        GATE_EVALUATIONS_TOTAL.labels(
            gate=gate.value, result="pass" if result.passed else "fail",
        ).inc()
        logger.info(
            "gate_evaluated",
            gate=gate.value,
            passed=result.passed,
            detail=result.detail,
            environment=context.environment.value,
        )
        return result

    # ------------------------------------------------------------------
    # Pre-check gates
    # ------------------------------------------------------------------

    def _env_vars(self, context: GateContext) -> GateResult:
        required = self._settings.required_env_vars
        missing = [name for name in required if not context.env.get(name, "").strip()]
        if missing:
            return GateResult(
                passed=False,
                detail=f"missing: {', '.join(missing)}",
                data={"missing": missing},
            )
        return GateResult(passed=True, detail=f"all {len(required)} required variables set")

    def _build(self, context: GateContext) -> GateResult:  # noqa: ARG002
        try:
            result = self._tools.build.build()
        except ActionError as e:
            return GateResult(passed=False, detail=e.detail)

        data = {
            "exit_code": result.exit_code,
            "duration_seconds": result.duration_seconds,
            "artifact_size_bytes": result.artifact_size_bytes,
        }
        summary = (
            f"exit {result.exit_code} in {result.duration_seconds:.1f}s, "
            f"artifact {format_bytes(result.artifact_size_bytes)}"
        )
        if result.exit_code != 0:
            output = _tail(result.output)
            detail = f"{summary}: {output}" if output else summary
            return GateResult(passed=False, detail=detail, data=data)
        return GateResult(passed=True, detail=summary, data=data)

    def _migration_risk(self, context: GateContext) -> GateResult:
        try:
            pending = self._tools.migrations.pending()
        except ActionError as e:
            return GateResult(passed=False, detail=e.detail)

        if not pending:
            return GateResult(passed=True, detail="no pending migrations", data={"migrations": []})

        classified = [
            ClassifiedMigration(
                identifier=m.identifier,
                risk=classify_migration(m),
                approved=m.identifier in context.approved_migrations,
            )
            for m in pending
        ]
        unapproved = [
            c.identifier for c in classified
            if c.risk == MigrationRisk.HIGH and not c.approved
        ]
        listing = ", ".join(
            f"{c.identifier} {c.risk.value}{' (approved)' if c.approved else ''}"
            for c in classified
        )
        detail = f"{len(classified)} pending: {listing}"
        if unapproved:
            detail += f"; unapproved HIGH-risk: {', '.join(unapproved)}"
        return GateResult(
            passed=not unapproved,
            detail=detail,
            data={
                "migrations": [c.model_dump(mode="json") for c in classified],
                "unapproved": unapproved,
            },
        )

    def _security_scan(self, context: GateContext) -> GateResult:  # noqa: ARG002
        try:
            changed = self._tools.source.changed_files()
            advisories = self._tools.source.dependency_advisories()
        except ActionError as e:
            return GateResult(passed=False, detail=e.detail)

        findings = scan_files(changed)
        blocking = {s.lower() for s in self._settings.blocking_severities}
        flagged = [a for a in advisories if a.severity.lower() in blocking]

        problems: list[str] = []
        if findings:
            problems.append(
                "secrets: " + ", ".join(f"{f.path}:{f.line} ({f.pattern})" for f in findings)
            )
        if flagged:
            problems.append(
                "critical dependencies: "
                + ", ".join(f"{a.name} ({a.title})" if a.title else a.name for a in flagged)
            )
        data = {"secret_findings": len(findings), "blocking_advisories": len(flagged)}
        if problems:
            return GateResult(passed=False, detail="; ".join(problems), data=data)
        return GateResult(
            passed=True,
            detail=f"no secrets in {len(changed)} changed files, no critical advisories",
            data=data,
        )

    # ------------------------------------------------------------------
    # Post-check gates
    # ------------------------------------------------------------------

    @staticmethod
    def _describe(result: HealthCheckResult) -> str:
        if result.error:
            return f"GET {result.url} failed: {result.error}"
        return f"GET {result.url} -> {result.status_code} in {result.response_time_ms:.0f}ms"

    def _health(self, context: GateContext) -> GateResult:
        if not context.target_url:
            return GateResult(passed=False, detail="no deployment URL available")
        result = self._tools.health.check(join_url(context.target_url, self._settings.health_path))
        return GateResult(
            passed=result.ok,
            detail=self._describe(result),
            response_time_ms=result.response_time_ms,
        )

    def _smoke(self, context: GateContext) -> GateResult:
        if not context.target_url:
            return GateResult(passed=False, detail="no deployment URL available")
        results = [
            self._tools.health.check(join_url(context.target_url, path))
            for path in self._settings.smoke_paths
        ]
        if not results:
            return GateResult(passed=True, detail="no smoke paths configured")
        failing = [r for r in results if not r.ok]
        slowest = max(r.response_time_ms for r in results)
        if failing:
            return GateResult(
                passed=False,
                detail="; ".join(self._describe(r) for r in failing),
                response_time_ms=slowest,
            )
        return GateResult(
            passed=True,
            detail=f"{len(results)} critical paths responded, slowest {slowest:.0f}ms",
            response_time_ms=slowest,
        )

    def _performance(self, context: GateContext) -> GateResult:
        if not context.target_url:
            return GateResult(passed=False, detail="no deployment URL available")
        url = join_url(context.target_url, "/")
        sample_count = max(1, self._settings.performance_samples)
        samples = [self._tools.health.check(url) for _ in range(sample_count)]
        failing = [r for r in samples if not r.ok]
        median = statistics.median(r.response_time_ms for r in samples)
        threshold = self._settings.max_response_time_ms
        if failing:
            return GateResult(
                passed=False,
                detail=f"{len(failing)}/{len(samples)} requests failed: {self._describe(failing[0])}",
                response_time_ms=median,
            )
        if median > threshold:
            return GateResult(
                passed=False,
                detail=f"median response time {median:.0f}ms exceeds {threshold:.0f}ms",
                response_time_ms=median,
            )
        return GateResult(
            passed=True,
            detail=f"median response time {median:.0f}ms within {threshold:.0f}ms",
            response_time_ms=median,
        )
