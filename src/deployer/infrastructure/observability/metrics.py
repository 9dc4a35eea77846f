"""Prometheus metrics configuration."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    REGISTRY,
    write_to_textfile,
)


# Application info
APP_INFO = Info("deployer", "SaaS deployment orchestrator info")
APP_INFO.info({
    "version": "1.0.0",
    "service": "saas-deployer",
})

# Run metrics
DEPLOYMENTS_TOTAL = Counter(
    "deployer_runs_total",
    "Total number of deployment runs by final status",
    ["status", "environment"],
)

# Phase metrics
PHASES_TOTAL = Counter(
    "deployer_phases_total",
    "Total number of phases executed",
    ["phase", "outcome"],
)

PHASE_DURATION = Histogram(
    "deployer_phase_duration_seconds",
    "Time taken for a single phase",
    ["phase"],
    buckets=[0.1, 1, 5, 30, 60, 300, 900, 1800],
)

# Gate metrics
GATE_EVALUATIONS_TOTAL = Counter(
    "deployer_gate_evaluations_total",
    "Total gate evaluations",
    ["gate", "result"],  # result: pass/fail
)

# Rollback metrics
ROLLBACKS_TOTAL = Counter(
    "deployer_rollbacks_total",
    "Total rollback attempts by result",
    ["result"],  # "rolled_back", "manual_required", "failed", "no_prior_version"
)

ROLLBACK_STEP_RETRIES = Counter(
    "deployer_rollback_step_retries_total",
    "Total rollback step retries",
    ["step"],
)


def write_metrics(path: str) -> None:
    """Dump the registry in the node-exporter textfile format."""
    write_to_textfile(path, REGISTRY)
