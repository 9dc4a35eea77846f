"""HTTP health checker."""

from __future__ import annotations

import time

import httpx
import structlog

from deployer.domain.ports.services import HealthChecker, HealthCheckResult


logger = structlog.get_logger(__name__)


class HttpHealthChecker(HealthChecker):
    """Probes URLs with a GET and measures the round-trip latency.

    Transport errors are reported as status 0 rather than raised, since a
    failing probe is a check result, not a tool failure.
    """

    def __init__(self, client: httpx.Client | None = None, timeout: float = 10.0) -> None:
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def check(self, url: str) -> HealthCheckResult:
        started = time.perf_counter()
        try:
            response = self._client.get(url)
        except httpx.HTTPError as e:
            elapsed = (time.perf_counter() - started) * 1000
            logger.warning("health_probe_error", url=url, error=str(e))
            return HealthCheckResult(
                url=url, status_code=0, response_time_ms=elapsed, error=str(e) or type(e).__name__,
            )
        elapsed = (time.perf_counter() - started) * 1000
        logger.debug("health_probe", url=url, status_code=response.status_code, ms=round(elapsed))
        return HealthCheckResult(url=url, status_code=response.status_code, response_time_ms=elapsed)

    def close(self) -> None:
        self._client.close()
