"""Deployment orchestration: drives the phase sequence end to end."""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from pathlib import Path

import structlog

from deployer.config import Settings
from deployer.domain.errors import (
    ActionError,
    AlreadyInProgressError,
    DeployerError,
    GateFailureError,
    InvalidTransitionError,
    NoFailedStateError,
    NoPriorVersionError,
    ResetNotConfirmedError,
)
from deployer.domain.models.phase import (
    Phase,
    PHASE_GATES,
    PHASE_KINDS,
    PHASE_SEQUENCE,
    phase_index,
    PhaseKind,
    PhaseOutcome,
    phases_from,
)
from deployer.domain.models.state import DeploymentState, DeploymentStatus, Environment
from deployer.domain.ports.state_store import StateStore
from deployer.domain.services.gates import GateContext, GateEvaluator
from deployer.domain.services.phase_runner import PhaseRunner
from deployer.domain.services.report import DryRunEntry, DryRunReport, render_report
from deployer.domain.services.rollback import RollbackManager
from deployer.infrastructure.observability.metrics import DEPLOYMENTS_TOTAL


logger = structlog.get_logger(__name__)


class Orchestrator:
    """Drives a deployment run through the fixed phase sequence.

    State is saved before and after every phase so that a run interrupted at
    any point can be inspected and, once failed, resumed at the exact phase
    that failed.
    """

    def __init__(
        self,
        store: StateStore,
        gates: GateEvaluator,
        runner: PhaseRunner,
        rollback_manager: RollbackManager,
        settings: Settings,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._store = store
        self._gates = gates
        self._runner = runner
        self._rollback = rollback_manager
        self._settings = settings
        self._environ = environ if environ is not None else os.environ

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _context(self, environment: Environment, approvals: Iterable[str]) -> GateContext:
        approved = set(self._settings.gates.approved_migrations) | set(approvals)
        return GateContext(
            environment=environment,
            env=dict(self._environ),
            approved_migrations=frozenset(approved),
            target_url=self._settings.gates.base_url,
        )

    @staticmethod
    def _halt_error(phase: Phase, state: DeploymentState) -> DeployerError:
        gate = PHASE_GATES.get(phase)
        if PHASE_KINDS[phase] is PhaseKind.PRE_CHECK and gate is not None:
            detail = state.pre_check_results[gate.value].detail
            return GateFailureError(phase.value, gate.value, detail)
        reason = state.failure_reason or "unknown error"
        action, _, detail = reason.partition(" failed: ")
        if not detail:
            action, detail = phase.name.lower(), reason
        return ActionError(action, detail, phase=phase.value)

    def _run(
        self, state: DeploymentState, start: Phase, context: GateContext
    ) -> DeploymentState:
        structlog.contextvars.bind_contextvars(run_id=state.run_id)
        try:
            for phase in phases_from(start):
                state.current_phase = phase
                state.touch()
                self._store.save(state)

                try:
                    state, outcome = self._runner.run_phase(phase, state, context)
                except Exception as e:
                    state.fail(phase, f"internal error: {e}")
                    self._store.save(state)
                    DEPLOYMENTS_TOTAL.labels(
                        status=state.status.value, environment=state.environment.value,
                    ).inc()
                    logger.exception("phase_internal_error", phase=phase.value)
                    raise

                self._store.save(state)
                if outcome is PhaseOutcome.HALT:
                    DEPLOYMENTS_TOTAL.labels(
                        status=state.status.value, environment=state.environment.value,
                    ).inc()
                    logger.error(
                        "deployment_halted",
                        phase=phase.value,
                        reason=state.failure_reason,
                    )
                    raise self._halt_error(phase, state)
        finally:
            structlog.contextvars.unbind_contextvars("run_id")

        DEPLOYMENTS_TOTAL.labels(
            status=state.status.value, environment=state.environment.value,
        ).inc()
        logger.info(
            "deployment_succeeded",
            run_id=state.run_id,
            environment=state.environment.value,
            warnings=len(state.warnings),
        )
        self._write_report(state)
        return state

    def _write_report(self, state: DeploymentState) -> None:
        report_dir = self._settings.state.report_dir
        if not report_dir:
            return
        path = Path(report_dir) / f"deploy-{state.run_id}.md"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_report(state), encoding="utf-8")
        logger.info("report_written", path=str(path))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start(
        self,
        environment: Environment,
        skip_migrations: bool = False,
        approvals: Iterable[str] = (),
    ) -> DeploymentState:
        """Start a fresh run from phase 1.1."""
        existing = self._store.load()
        if existing is not None and existing.status == DeploymentStatus.IN_PROGRESS:
            phase = existing.current_phase.value if existing.current_phase else "-"
            raise AlreadyInProgressError(
                f"A {existing.environment.value} deployment (run {existing.run_id}) is already "
                f"in progress at phase {phase}; wait for it to finish or run "
                "`deploy --reset --force`"
            )

        state = DeploymentState.new(environment, skip_migrations=skip_migrations)
        state.begin()
        self._store.save(state)
        logger.info(
            "deployment_started",
            run_id=state.run_id,
            environment=environment.value,
            skip_migrations=skip_migrations,
        )
        return self._run(state, PHASE_SEQUENCE[0], self._context(environment, approvals))

    def resume(self, approvals: Iterable[str] = ()) -> DeploymentState:
        """Retry the failed phase of the stored run and continue from there."""
        state = self._store.load()
        if state is None:
            raise NoFailedStateError("No deployment state found; nothing to resume")
        if state.is_terminal:
            raise InvalidTransitionError(
                f"Run {state.run_id} is already {state.status.value}; nothing to resume"
            )
        if state.status != DeploymentStatus.FAILED:
            raise NoFailedStateError(
                f"Run {state.run_id} is {state.status.value}, not failed; nothing to resume"
            )

        phase = state.resume()
        self._store.save(state)
        logger.info("deployment_resumed", run_id=state.run_id, phase=phase.value)
        return self._run(state, phase, self._context(state.environment, approvals))

    def dry_run(
        self, environment: Environment, approvals: Iterable[str] = ()
    ) -> DryRunReport:
        """Evaluate every gate and predict the outcome without side effects on state."""
        context = self._context(environment, approvals)
        report = DryRunReport(environment=environment)
        for phase in PHASE_SEQUENCE:
            gate = PHASE_GATES.get(phase)
            if gate is None:
                continue
            result = self._gates.evaluate(gate, context)
            report.entries.append(DryRunEntry(
                phase=phase,
                gate=gate.value,
                kind=PHASE_KINDS[phase],
                passed=result.passed,
                detail=result.detail,
                response_time_ms=result.response_time_ms,
            ))
        logger.info(
            "dry_run_completed",
            environment=environment.value,
            would_halt=report.would_halt,
        )
        return report

    def status(self) -> DeploymentState | None:
        return self._store.load()

    def rollback(self) -> DeploymentState:
        """Reverse the stored run's deployment actions."""
        state = self._store.load()
        if state is None:
            raise NoPriorVersionError("No deployment state found; nothing to roll back")
        if state.status == DeploymentStatus.ROLLED_BACK:
            raise InvalidTransitionError(f"Run {state.run_id} is already rolled back")

        nothing_deployed = state.status == DeploymentStatus.NOT_STARTED or (
            state.status == DeploymentStatus.FAILED
            and state.current_phase is not None
            and phase_index(state.current_phase) < phase_index(Phase.BACKUP)
        )
        if nothing_deployed:
            logger.info("rollback_noop", run_id=state.run_id, reason="nothing deployed")
            return state

        rolled_back = self._rollback.rollback(state, on_progress=self._store.save)
        self._store.save(rolled_back)
        return rolled_back

    def reset(self, force: bool = False) -> None:
        if not force:
            raise ResetNotConfirmedError("Refusing to delete deployment state without --force")
        self._store.reset()
        logger.warning("state_reset")
