"""Rollback of a deployment using the recorded version and backup pointers."""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from deployer.config import RollbackSettings
from deployer.domain.errors import (
    ActionError,
    ManualRollbackRequiredError,
    NoPriorVersionError,
    RollbackFailedError,
)
from deployer.domain.models.phase import Phase
from deployer.domain.models.state import DeploymentState, DeploymentStatus
from deployer.domain.ports.services import Toolchain
from deployer.infrastructure.observability.metrics import ROLLBACK_STEP_RETRIES, ROLLBACKS_TOTAL


logger = structlog.get_logger(__name__)


class RollbackManager:
    """Reverses the effects of the execution phases.

    Steps run in order: revert the application, restore the database when
    migrations were applied or the migrate phase failed, then mark the run
    rolled back. Each step is retried with exponential backoff before the
    rollback gives up. Pre-checks are never re-run.
    """

    def __init__(
        self,
        toolchain: Toolchain,
        settings: RollbackSettings,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._tools = toolchain
        self._settings = settings
        self._sleep = sleep

    def rollback(
        self,
        state: DeploymentState,
        on_progress: Callable[[DeploymentState], None] | None = None,
    ) -> DeploymentState:
        """Roll back ``state`` and return the new state.

        ``on_progress`` receives intermediate states so callers can persist
        partial progress, e.g. an application revert that precedes a
        ManualRollbackRequiredError.
        """
        record = state.deployment_record
        if not record.previous_version_pointer:
            ROLLBACKS_TOTAL.labels(result="no_prior_version").inc()
            raise NoPriorVersionError(
                "No previous version recorded for this deployment; nothing to roll back to"
            )

        state = state.model_copy(deep=True)
        state.log("rollback_started", f"target version {record.previous_version_pointer}")
        try:
            return self._apply(state, on_progress)
        except RollbackFailedError:
            if on_progress is not None:
                on_progress(state)
            raise

    def _apply(
        self,
        state: DeploymentState,
        on_progress: Callable[[DeploymentState], None] | None,
    ) -> DeploymentState:
        record = state.deployment_record
        environment = state.environment.value
        previous = record.previous_version_pointer or ""

        self._run_step(
            state, "revert_application",
            lambda: self._tools.deployer.revert(environment, previous),
        )
        state.log("application_reverted", previous)
        if on_progress is not None:
            on_progress(state)

        # A failed migrate command may have landed migrations nobody reported
        migrate_failed = (
            state.status == DeploymentStatus.FAILED and state.current_phase is Phase.MIGRATE
        )
        if record.applied_migrations or (migrate_failed and record.backup_location):
            location = record.backup_location
            if not location:
                migrations = list(record.applied_migrations)
                state.log("manual_rollback_required", ", ".join(migrations))
                if on_progress is not None:
                    on_progress(state)
                ROLLBACKS_TOTAL.labels(result="manual_required").inc()
                logger.error("manual_rollback_required", migrations=migrations)
                raise ManualRollbackRequiredError(migrations)

            self._run_step(state, "restore_database", lambda: self._tools.backups.restore(location))
            state.log("database_restored", location)
            # Restored database no longer contains them
            record.applied_migrations = []

        state.mark_rolled_back()
        ROLLBACKS_TOTAL.labels(result="rolled_back").inc()
        logger.info("rollback_completed", run_id=state.run_id, version=previous)
        return state

    def _run_step(self, state: DeploymentState, step: str, action: Callable[[], None]) -> None:
        """Run ``action`` with bounded retries and exponential backoff."""
        max_attempts = max(1, self._settings.max_attempts)
        for attempt in range(1, max_attempts + 1):
            try:
                action()
                return
            except ActionError as e:
                state.log("rollback_step_failed", f"{step} attempt {attempt}/{max_attempts}: {e.detail}")
                if attempt == max_attempts:
                    ROLLBACKS_TOTAL.labels(result="failed").inc()
                    logger.error("rollback_step_exhausted", step=step, attempts=attempt, detail=e.detail)
                    raise RollbackFailedError(
                        f"Rollback step {step} failed after {attempt} attempts: {e.detail}"
                    ) from e
                delay = self._settings.backoff_seconds * 2 ** (attempt - 1)
                ROLLBACK_STEP_RETRIES.labels(step=step).inc()
                logger.warning("rollback_step_retry", step=step, attempt=attempt, delay=delay)
                self._sleep(delay)
