"""
gateway_pipeline.integrations.smoke.memory - Scripted Smoke-Test Runner
=========================================================================

Every check passes unless told otherwise. Tests script failures per
environment (and optionally per path) and inspect ``runs``.
"""

from __future__ import annotations

from typing import Optional

from gateway_pipeline.core.enums import Environment
from gateway_pipeline.integrations.smoke.base import (
    SmokeCheckResult,
    SmokeTestReport,
    SmokeTestRunner,
)


class InMemorySmokeTestRunner(SmokeTestRunner):
    """Smoke-test runner with scripted outcomes.

    Attributes:
        runs: (environment, endpoint) of every run, in order.
    """

    def __init__(self, paths: Optional[list[str]] = None, expected_status: int = 200) -> None:
        super().__init__(paths or ["/test"], expected_status)
        self._failures: dict[Environment, dict[Optional[str], int]] = {}
        self.runs: list[tuple[Environment, str]] = []

    @property
    def runner_name(self) -> str:
        return "memory"

    def fail_environment(
        self,
        environment: Environment,
        path: Optional[str] = None,
        status_code: int = 502,
    ) -> None:
        """Make checks in ``environment`` return ``status_code``.

        With ``path`` None every check in the environment fails.
        """
        self._failures.setdefault(environment, {})[path] = status_code

    def clear_failures(self) -> None:
        self._failures.clear()

    async def run(self, endpoint: str, environment: Environment) -> SmokeTestReport:
        self.runs.append((environment, endpoint))
        scripted = self._failures.get(environment, {})

        checks = []
        for path in self._paths:
            status = scripted.get(path, scripted.get(None, self._expected_status))
            passed = status == self._expected_status
            checks.append(
                SmokeCheckResult(
                    path=path,
                    passed=passed,
                    status_code=status,
                    detail="" if passed else f"expected {self._expected_status}, got {status}",
                )
            )
        return SmokeTestReport(environment=environment, endpoint=endpoint, checks=checks)
