"""Operator-facing rendering of deployment state and dry-run predictions."""

from __future__ import annotations

from pydantic import BaseModel, Field

from deployer.domain.models.phase import (
    Phase,
    PHASE_GATES,
    PHASE_KINDS,
    PHASE_SEQUENCE,
    PHASE_TITLES,
    PhaseKind,
)
from deployer.domain.models.state import CheckStatus, DeploymentState, DeploymentStatus, Environment


class DryRunEntry(BaseModel):
    phase: Phase
    gate: str
    kind: PhaseKind
    passed: bool
    detail: str
    response_time_ms: float | None = None


class DryRunReport(BaseModel):
    """Predicted gate outcomes; produced without touching persisted state."""

    environment: Environment
    entries: list[DryRunEntry] = Field(default_factory=list)

    @property
    def would_halt(self) -> bool:
        return any(e.kind is PhaseKind.PRE_CHECK and not e.passed for e in self.entries)


def _mark(status: CheckStatus, soft: bool = False) -> str:
    if status == CheckStatus.PASS:
        return "PASS"
    if status == CheckStatus.FAIL:
        return "WARN" if soft else "FAIL"
    return "PENDING"


def _fmt_ms(value: float | None) -> str:
    return "-" if value is None else f"{value:.0f}ms"


def render_status(state: DeploymentState) -> str:
    """Structured key/value rendering of the whole state."""
    record = state.deployment_record
    lines = [
        f"run_id: {state.run_id}",
        f"environment: {state.environment.value}",
        f"status: {state.status.value}",
        f"current_phase: {state.current_phase.value if state.current_phase else '-'}",
        f"started_at: {state.started_at.isoformat()}",
        f"last_updated_at: {state.last_updated_at.isoformat()}",
        f"skip_migrations: {str(state.skip_migrations).lower()}",
    ]
    if state.failure_reason:
        lines.append(f"failure_reason: {state.failure_reason}")
    lines.append("pre_check_results:")
    for name, pre in state.pre_check_results.items():
        lines.append(f"  {name}: {pre.status.value} {pre.detail}".rstrip())
    lines.append("deployment_record:")
    lines.extend([
        f"  backup_location: {record.backup_location or '-'}",
        f"  previous_version_pointer: {record.previous_version_pointer or '-'}",
        f"  new_version_pointer: {record.new_version_pointer or '-'}",
        f"  deployment_url: {record.deployment_url or '-'}",
        f"  applied_migrations: [{', '.join(record.applied_migrations)}]",
        f"  rollbacks: {len(record.rollback_timestamps)}",
    ])
    lines.append("post_check_results:")
    for name, post in state.post_check_results.items():
        lines.append(
            f"  {name}: {post.status.value} {_fmt_ms(post.response_time_ms)} {post.detail}".rstrip()
        )
    if state.warnings:
        lines.append("warnings:")
        lines.extend(f"  - {w}" for w in state.warnings)
    return "\n".join(lines)


def render_report(state: DeploymentState) -> str:
    """Markdown deployment report."""
    record = state.deployment_record
    title = {
        DeploymentStatus.SUCCEEDED: "Deployment succeeded",
        DeploymentStatus.FAILED: "Deployment failed",
        DeploymentStatus.ROLLED_BACK: "Deployment rolled back",
    }.get(state.status, f"Deployment {state.status.value}")

    out = [
        f"# {title}",
        "",
        f"- Environment: {state.environment.value}",
        f"- Run: {state.run_id}",
        f"- Started: {state.started_at.isoformat()}",
        f"- Finished: {state.last_updated_at.isoformat()}",
    ]
    if record.previous_version_pointer or record.new_version_pointer:
        out.append(
            f"- Version: {record.previous_version_pointer or '-'} -> "
            f"{record.new_version_pointer or '-'}"
        )
    if record.deployment_url:
        out.append(f"- URL: {record.deployment_url}")
    if record.backup_location:
        out.append(f"- Backup: {record.backup_location}")

    out += ["", "## Phases", "", "| Phase | Step | Result | Detail |", "|---|---|---|---|"]
    for phase in PHASE_SEQUENCE:
        kind = PHASE_KINDS[phase]
        gate = PHASE_GATES.get(phase)
        detail = ""
        if kind is PhaseKind.PRE_CHECK and gate:
            pre = state.pre_check_results.get(gate.value)
            result = _mark(pre.status) if pre else "PENDING"
            detail = pre.detail if pre else ""
        elif kind is PhaseKind.POST_CHECK and gate:
            post = state.post_check_results.get(gate.value)
            result = _mark(post.status, soft=True) if post else "PENDING"
            if post:
                detail = f"{post.detail} ({_fmt_ms(post.response_time_ms)})"
        elif phase in state.completed_phases:
            result = "DONE"
        elif state.status == DeploymentStatus.FAILED and state.current_phase == phase:
            result = "FAIL"
            detail = state.failure_reason or ""
        else:
            result = "-"
        if phase == Phase.MIGRATE and phase in state.completed_phases:
            detail = (
                "skipped" if state.skip_migrations
                else ", ".join(record.applied_migrations) or "none pending"
            )
        out.append(f"| {phase.value} | {PHASE_TITLES[phase]} | {result} | {detail} |")

    if state.warnings:
        out += ["", "## Warnings", ""]
        out += [f"- {w}" for w in state.warnings]
        out.append("- Consider `deploy --rollback` if the warnings indicate a broken release.")

    if state.failure_reason:
        phase_id = state.current_phase.value if state.current_phase else "-"
        out += [
            "", "## Failure", "",
            f"Phase {phase_id}: {state.failure_reason}",
            "", "Fix the cause and run `deploy --resume`.",
        ]
    return "\n".join(out) + "\n"


def render_dry_run(report: DryRunReport) -> str:
    lines = [f"Dry run for {report.environment.value} (no changes made)"]
    for entry in report.entries:
        if entry.passed:
            mark = "PASS"
        else:
            mark = "WARN" if entry.kind is PhaseKind.POST_CHECK else "FAIL"
        lines.append(f"  {entry.phase.value} {entry.gate}: {mark} {entry.detail}")
    lines.append(
        "Predicted outcome: "
        + ("halt at pre-checks" if report.would_halt else "pre-checks pass")
    )
    return "\n".join(lines)
