"""Command-line interface for the deployment orchestrator."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from typing import TextIO

import structlog
from pydantic import ValidationError
from pydantic_settings import SettingsError

from deployer.config import Settings, get_settings
from deployer.container import ServiceContainer
from deployer.domain.errors import (
    ActionError,
    ConfigurationError,
    DeployerError,
    GateFailureError,
    ManualRollbackRequiredError,
)
from deployer.domain.models.state import DeploymentState, Environment
from deployer.domain.services.report import render_dry_run, render_report, render_status


logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_INTERNAL = 5


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deploy",
        description="Run a gated, resumable SaaS deployment.",
    )
    parser.add_argument(
        "environment",
        nargs="?",
        choices=[e.value for e in Environment],
        default=Environment.STAGING.value,
        help="Target environment (default: staging)",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--dry-run", action="store_true",
        help="Evaluate every gate and predict the outcome without changing anything",
    )
    mode.add_argument(
        "--resume", action="store_true",
        help="Continue a failed run from the phase that failed",
    )
    mode.add_argument(
        "--rollback", action="store_true",
        help="Revert the application and restore the database backup",
    )
    mode.add_argument(
        "--status", action="store_true",
        help="Print the current deployment state",
    )
    mode.add_argument(
        "--reset", action="store_true",
        help="Delete the deployment state (requires --force)",
    )

    parser.add_argument(
        "--skip-migrations", action="store_true",
        help="Skip phase 2.2 for this run",
    )
    parser.add_argument(
        "--approve-migration", action="append", default=[], metavar="ID",
        dest="approvals",
        help="Approve a HIGH-risk migration (repeatable)",
    )
    parser.add_argument(
        "--force", action="store_true",
        help="Confirm a destructive operation",
    )
    parser.add_argument(
        "--state-file", type=str, default=None, metavar="PATH",
        help="Path to the state file (overrides DEPLOY_STATE_FILE)",
    )
    parser.add_argument(
        "--json", action="store_true", dest="as_json",
        help="Print --status output as JSON",
    )
    return parser


def _settings_for(args: argparse.Namespace, settings: Settings) -> Settings:
    if not args.state_file:
        return settings
    state = settings.state.model_copy(update={"path": args.state_file})
    return settings.model_copy(update={"state": state})


def _load_settings() -> Settings:
    try:
        return get_settings()
    except (ValidationError, SettingsError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _report_halt(error: DeployerError, err: TextIO) -> None:
    if isinstance(error, GateFailureError):
        print(f"HALTED at phase {error.phase}: gate {error.gate_name} failed", file=err)
        print(f"  {error.detail}", file=err)
        print("Fix the cause and run `deploy --resume`.", file=err)
    elif isinstance(error, ActionError):
        print(f"HALTED at phase {error.phase or '-'}: {error.action} failed", file=err)
        print(f"  {error.detail}", file=err)
        print("Fix the cause and run `deploy --resume`.", file=err)
    elif isinstance(error, ManualRollbackRequiredError):
        print(f"ROLLBACK INCOMPLETE: {error}", file=err)
        print("The application was reverted; restore the database by hand.", file=err)
    else:
        print(f"ERROR: {error}", file=err)


def _print_state(state: DeploymentState | None, as_json: bool, out: TextIO) -> None:
    if state is None:
        print("no deployment state", file=out)
    elif as_json:
        print(state.to_json(), file=out)
    else:
        print(render_status(state), file=out)


def dispatch(args: argparse.Namespace, container: ServiceContainer, out: TextIO) -> int:
    orchestrator = container.orchestrator
    environment = Environment(args.environment)

    if args.status:
        _print_state(orchestrator.status(), args.as_json, out)
        return EXIT_OK

    if args.reset:
        orchestrator.reset(force=args.force)
        print("deployment state removed", file=out)
        return EXIT_OK

    if args.dry_run:
        print(render_dry_run(orchestrator.dry_run(environment, args.approvals)), file=out)
        return EXIT_OK

    if args.rollback:
        state = orchestrator.rollback()
        print(
            f"run {state.run_id}: {state.status.value} "
            f"(version {state.deployment_record.previous_version_pointer or '-'})",
            file=out,
        )
        return EXIT_OK

    if args.resume:
        state = orchestrator.resume(args.approvals)
    else:
        state = orchestrator.start(
            environment, skip_migrations=args.skip_migrations, approvals=args.approvals,
        )
    print(render_report(state), file=out, end="")
    return EXIT_OK


def run(
    argv: Sequence[str] | None = None,
    container: ServiceContainer | None = None,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Parse arguments, run the requested operation, and return the exit code."""
    out = out or sys.stdout
    err = err or sys.stderr
    args = build_parser().parse_args(argv)

    owned = container is None
    try:
        if container is None:
            container = ServiceContainer(_settings_for(args, _load_settings()))
        return dispatch(args, container, out)
    except DeployerError as e:
        logger.error("command_failed", error=str(e), exit_code=e.exit_code)
        _report_halt(e, err)
        return e.exit_code
    except Exception as e:
        logger.exception("command_crashed")
        print(f"INTERNAL ERROR: {type(e).__name__}: {e}", file=err)
        return EXIT_INTERNAL
    finally:
        if owned and container is not None:
            container.close()
