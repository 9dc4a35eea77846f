"""Execution of a single deployment phase."""

from __future__ import annotations

import time

import structlog

from deployer.config import ToolSettings
from deployer.domain.errors import ActionError, MigrationFailedError
from deployer.domain.models.phase import (
    Phase,
    PHASE_GATES,
    PHASE_KINDS,
    PhaseKind,
    PhaseOutcome,
)
from deployer.domain.models.state import DeploymentState, Environment
from deployer.domain.ports.services import Toolchain
from deployer.domain.services.gates import GateContext, GateEvaluator
from deployer.infrastructure.observability.metrics import PHASE_DURATION, PHASES_TOTAL
from deployer.infrastructure.observability.tracing import get_tracer


logger = structlog.get_logger(__name__)


class PhaseRunner:
    """Runs one phase against a copy of the state and decides what happens next.

    Pre-check failures halt the run. Post-check failures are recorded as
    warnings and the run continues. Execution phases halt only when their
    collaborator raises ``ActionError``.
    """

    def __init__(
        self,
        gates: GateEvaluator,
        toolchain: Toolchain,
        settings: ToolSettings,
    ) -> None:
        self._gates = gates
        self._tools = toolchain
        self._settings = settings
        self._tracer = get_tracer(__name__)

    def run_phase(
        self, phase: Phase, state: DeploymentState, context: GateContext
    ) -> tuple[DeploymentState, PhaseOutcome]:
        """Run ``phase`` and return the updated state with the outcome."""
        state = state.model_copy(deep=True)
        state.enter_phase(phase)
        kind = PHASE_KINDS[phase]
        started = time.monotonic()

        with self._tracer.start_as_current_span(f"phase {phase.value}") as span:
            span.set_attribute("deployer.phase", phase.value)
            span.set_attribute("deployer.environment", state.environment.value)

            if kind is PhaseKind.PRE_CHECK:
                outcome = self._run_pre_check(phase, state, context)
            elif kind is PhaseKind.POST_CHECK:
                outcome = self._run_post_check(phase, state, context)
            elif kind is PhaseKind.EXECUTION:
                outcome = self._run_execution(phase, state)
            else:
                state.succeed()
                outcome = PhaseOutcome.CONTINUE

            span.set_attribute("deployer.outcome", outcome.value)

        if outcome is PhaseOutcome.CONTINUE:
            state.complete_phase(phase)

        PHASES_TOTAL.labels(phase=phase.value, outcome=outcome.value).inc()
        PHASE_DURATION.labels(phase=phase.value).observe(time.monotonic() - started)
        logger.info(
            "phase_finished",
            phase=phase.value,
            outcome=outcome.value,
            status=state.status.value,
            run_id=state.run_id,
        )
        return state, outcome

    # ------------------------------------------------------------------
    # Gated phases
    # ------------------------------------------------------------------

    def _run_pre_check(
        self, phase: Phase, state: DeploymentState, context: GateContext
    ) -> PhaseOutcome:
        gate = PHASE_GATES[phase]
        result = self._gates.evaluate(gate, context)
        state.record_pre_check(gate, result.passed, result.detail)
        if not result.passed:
            state.fail(phase, f"{gate.value} failed: {result.detail}")
            return PhaseOutcome.HALT
        return PhaseOutcome.CONTINUE

    def _run_post_check(
        self, phase: Phase, state: DeploymentState, context: GateContext
    ) -> PhaseOutcome:
        gate = PHASE_GATES[phase]
        target = state.deployment_record.deployment_url or context.target_url
        result = self._gates.evaluate(gate, context.model_copy(update={"target_url": target}))
        state.record_post_check(gate, result.passed, result.detail, result.response_time_ms)
        if not result.passed:
            state.log("post_check_warning", f"{gate.value}: {result.detail}", phase=phase)
            logger.warning("post_check_failed", gate=gate.value, detail=result.detail)
        return PhaseOutcome.CONTINUE

    # ------------------------------------------------------------------
    # Execution phases
    # ------------------------------------------------------------------

    def _run_execution(self, phase: Phase, state: DeploymentState) -> PhaseOutcome:
        actions = {
            Phase.BACKUP: self._backup,
            Phase.MIGRATE: self._migrate,
            Phase.DEPLOY: self._deploy,
        }
        try:
            actions[phase](state)
        except ActionError as e:
            state.fail(phase, f"{e.action} failed: {e.detail}")
            logger.error("phase_action_failed", phase=phase.value, action=e.action, detail=e.detail)
            return PhaseOutcome.HALT
        return PhaseOutcome.CONTINUE

    def _backup(self, state: DeploymentState) -> None:
        record = state.deployment_record
        environment = state.environment.value
        record.previous_version_pointer = self._tools.deployer.current_version(environment)

        if state.environment is Environment.PRODUCTION:
            location = self._tools.backups.create_backup(environment)
            if not location:
                raise ActionError("backup", "backup tool returned no location")
            record.backup_location = location
            state.log("backup_created", location)
            return

        if not self._settings.staging_backup:
            state.log("backup_skipped", "backup is optional on staging")
            return
        try:
            location = self._tools.backups.create_backup(environment)
        except ActionError as e:
            state.log("backup_failed", e.detail)
            logger.warning("staging_backup_failed", detail=e.detail)
            return
        if location:
            record.backup_location = location
            state.log("backup_created", location)

    def _migrate(self, state: DeploymentState) -> None:
        if state.skip_migrations:
            state.log("migrations_skipped", "--skip-migrations")
            return
        record = state.deployment_record
        if state.environment is Environment.PRODUCTION and not record.backup_location:
            raise ActionError("migrate", "production migrations require a backup; none recorded")
        try:
            applied = self._tools.migrations.apply()
        except MigrationFailedError as e:
            record.append_migrations(e.applied)
            if e.applied:
                state.log("migrations_partially_applied", ", ".join(e.applied))
            raise
        record.append_migrations(applied)
        state.log("migrations_applied", ", ".join(applied) or "none pending")

    def _deploy(self, state: DeploymentState) -> None:
        result = self._tools.deployer.deploy(state.environment.value)
        record = state.deployment_record
        record.new_version_pointer = result.version
        if result.url:
            record.deployment_url = result.url
        state.log("application_deployed", result.version)
