"""
gateway_pipeline.integrations.smoke - Smoke-Test Runners
==========================================================

Available Runners:
    - SmokeTestRunner:          Abstract interface.
    - HttpSmokeTestRunner:      Real GET requests over httpx.
    - InMemorySmokeTestRunner:  Scripted outcomes for tests.
"""

from gateway_pipeline.core.config import SmokeTestConfig
from gateway_pipeline.integrations.smoke.base import (
    SmokeCheckResult,
    SmokeTestReport,
    SmokeTestRunner,
)
from gateway_pipeline.integrations.smoke.http import HttpSmokeTestRunner
from gateway_pipeline.integrations.smoke.memory import InMemorySmokeTestRunner


def create_smoke_test_runner(config: SmokeTestConfig) -> SmokeTestRunner:
    """Build the runner named by ``config.runner``.

    Raises:
        ValueError: If the runner name is unknown.
    """
    if config.runner == "memory":
        return InMemorySmokeTestRunner(config.paths, config.expected_status)
    if config.runner == "http":
        return HttpSmokeTestRunner(
            config.paths,
            expected_status=config.expected_status,
            timeout=config.request_timeout,
        )
    raise ValueError(f"Unknown smoke-test runner: '{config.runner}'. Supported: memory, http")


__all__ = [
    "SmokeCheckResult",
    "SmokeTestReport",
    "SmokeTestRunner",
    "HttpSmokeTestRunner",
    "InMemorySmokeTestRunner",
    "create_smoke_test_runner",
]
