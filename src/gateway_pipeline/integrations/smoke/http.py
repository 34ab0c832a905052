"""
gateway_pipeline.integrations.smoke.http - HTTP Smoke-Test Runner
===================================================================

Issues one GET per configured path against the deployed endpoint. A check
passes when the response status equals the expected status; timeouts and
connection errors are failed checks, not exceptions.
"""

from __future__ import annotations

import time
from typing import Optional

import httpx
import structlog

from gateway_pipeline.core.enums import Environment
from gateway_pipeline.integrations.smoke.base import (
    SmokeCheckResult,
    SmokeTestReport,
    SmokeTestRunner,
)


logger = structlog.get_logger()


class HttpSmokeTestRunner(SmokeTestRunner):
    """Smoke-test runner issuing real HTTP requests with httpx.

    Args:
        paths: Paths to request.
        expected_status: Status every check must return.
        timeout: Seconds per request.
        client: Pre-built client (tests pass one with a mock transport).
    """

    def __init__(
        self,
        paths: list[str],
        expected_status: int = 200,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(paths, expected_status)
        self._timeout = timeout
        self._client = client
        self._logger = logger.bind(component="smoke_test_runner", impl="http")

    @property
    def runner_name(self) -> str:
        return "http"

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def run(self, endpoint: str, environment: Environment) -> SmokeTestReport:
        client = self._ensure_client()
        checks = []
        for path in self._paths:
            checks.append(await self._check(client, endpoint, path))

        report = SmokeTestReport(environment=environment, endpoint=endpoint, checks=checks)
        self._logger.info(
            "smoke_tests_completed",
            environment=environment.value,
            endpoint=endpoint,
            passed=report.passed,
            failed=len(report.failed_checks),
        )
        return report

    async def _check(self, client: httpx.AsyncClient, endpoint: str, path: str) -> SmokeCheckResult:
        url = f"{endpoint.rstrip('/')}/{path.lstrip('/')}"
        started = time.monotonic()
        try:
            response = await client.get(url)
        except httpx.TimeoutException as e:
            self._logger.warning("smoke_check_timeout", url=url, error=str(e))
            return SmokeCheckResult(
                path=path,
                passed=False,
                detail=f"timeout: {e}",
                duration_seconds=time.monotonic() - started,
            )
        except httpx.RequestError as e:
            self._logger.warning("smoke_check_request_error", url=url, error=str(e))
            return SmokeCheckResult(
                path=path,
                passed=False,
                detail=f"request failed: {e}",
                duration_seconds=time.monotonic() - started,
            )

        passed = response.status_code == self._expected_status
        return SmokeCheckResult(
            path=path,
            passed=passed,
            status_code=response.status_code,
            detail="" if passed else f"expected {self._expected_status}, got {response.status_code}",
            duration_seconds=time.monotonic() - started,
        )
