"""Unit tests for the HTTP health checker."""

from __future__ import annotations

from collections.abc import Callable

import httpx

from deployer.infrastructure.tools.http_health import HttpHealthChecker


def _checker(handler: Callable[[httpx.Request], httpx.Response]) -> HttpHealthChecker:
    return HttpHealthChecker(client=httpx.Client(transport=httpx.MockTransport(handler)))


class TestHttpHealthChecker:
    def test_ok_response(self) -> None:
        checker = _checker(lambda request: httpx.Response(200, json={"status": "ok"}))
        result = checker.check("https://app.example.test/api/health")
        assert result.ok
        assert result.status_code == 200
        assert result.response_time_ms >= 0
        assert result.error == ""

    def test_server_error(self) -> None:
        checker = _checker(lambda request: httpx.Response(503))
        result = checker.check("https://app.example.test/api/health")
        assert not result.ok
        assert result.status_code == 503

    def test_transport_error_is_status_zero(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        checker = _checker(refuse)
        result = checker.check("https://app.example.test/")
        assert result.status_code == 0
        assert not result.ok
        assert result.error == "connection refused"

    def test_requests_target_url(self) -> None:
        seen: list[str] = []

        def record(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(204)

        checker = _checker(record)
        checker.check("https://app.example.test/login")
        checker.close()
        assert seen == ["https://app.example.test/login"]
