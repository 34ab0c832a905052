"""
gateway_pipeline.integrations.smoke.base - Smoke-Test Runner Interface
========================================================================

A SmokeTestRunner executes a fixed suite of black-box checks against a
deployed endpoint and reports per-check outcomes. It does not decide what a
failure means; the smoke-test action turns a failed report into a failed
action.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, Field

from gateway_pipeline.core.enums import Environment


class SmokeCheckResult(BaseModel):
    """Outcome of one check."""

    path: str
    passed: bool
    status_code: Optional[int] = Field(default=None)
    detail: str = Field(default="")
    duration_seconds: float = Field(default=0.0, ge=0.0)


class SmokeTestReport(BaseModel):
    """Outcome of the whole suite against one endpoint."""

    environment: Environment
    endpoint: str
    checks: list[SmokeCheckResult] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        """True when at least one check ran and every check passed."""
        return bool(self.checks) and all(c.passed for c in self.checks)

    @property
    def failed_checks(self) -> list[SmokeCheckResult]:
        return [c for c in self.checks if not c.passed]


class SmokeTestRunner(ABC):
    """Abstract runner of the smoke-test suite.

    Args:
        paths: Paths requested on the endpoint, in order.
        expected_status: Status every check must return.
    """

    def __init__(self, paths: list[str], expected_status: int = 200) -> None:
        self._paths = list(paths)
        self._expected_status = expected_status

    @property
    def paths(self) -> list[str]:
        return list(self._paths)

    @property
    @abstractmethod
    def runner_name(self) -> str:
        ...

    @abstractmethod
    async def run(self, endpoint: str, environment: Environment) -> SmokeTestReport:
        """Run every check against ``endpoint``. Never raises for a failed check."""
        ...

    async def close(self) -> None:
        return None
