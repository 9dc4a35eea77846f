"""Application entrypoint."""

from __future__ import annotations

import sys

from deployer.cli import run
from deployer.config import ObservabilitySettings
from deployer.infrastructure.observability.logging import setup_logging
from deployer.infrastructure.observability.metrics import write_metrics
from deployer.infrastructure.observability.tracing import setup_tracing


def main() -> None:
    """Run the deploy command."""
    observability = ObservabilitySettings()
    setup_logging(observability.log_level, observability.json_logs, observability.service_name)
    setup_tracing(observability)

    exit_code = run(sys.argv[1:])

    if observability.metrics_textfile:
        write_metrics(observability.metrics_textfile)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
