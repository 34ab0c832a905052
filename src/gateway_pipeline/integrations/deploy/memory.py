"""
gateway_pipeline.integrations.deploy.memory - In-Memory Deploy Backend
========================================================================

Records every deployment request and reports a templated endpoint. Tests
use it to assert what was deployed where, and to make one environment's
deployment fail.

Usage:
    >>> backend = InMemoryDeployBackend(service_name="illiad-gateway")
    >>> backend.fail_environment(Environment.PROD, "quota exceeded")
    >>> backend.requests[0].version
    'abc123'
"""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from gateway_pipeline.core.enums import Environment
from gateway_pipeline.core.exceptions import BuildError
from gateway_pipeline.core.models import DeployOutcome, DeployRequest
from gateway_pipeline.integrations.deploy.base import DeployBackend


logger = structlog.get_logger()


class InMemoryDeployBackend(DeployBackend):
    """Deploy backend that only remembers what it was asked to do.

    Args:
        service_name: Substituted for {service} in the endpoint template.
        endpoint_template: Format string with {service} and {environment}.
        delay_seconds: Artificial deployment duration.

    Attributes:
        requests: Every request received, in order (including failed ones).
        deployed: Environment value → last successful request.
    """

    def __init__(
        self,
        service_name: str = "illiad-gateway",
        endpoint_template: str = "https://{service}-{environment}.example.com",
        delay_seconds: float = 0.0,
    ) -> None:
        self._service_name = service_name
        self._endpoint_template = endpoint_template
        self._delay_seconds = delay_seconds
        self._failures: dict[Environment, str] = {}
        self.requests: list[DeployRequest] = []
        self.deployed: dict[str, DeployRequest] = {}
        self._logger = logger.bind(component="deploy_backend", impl="in_memory")

    @property
    def backend_name(self) -> str:
        return "memory"

    def fail_environment(self, environment: Environment, reason: Optional[str] = "deployment failed") -> None:
        """Make deployments to ``environment`` fail; pass None to clear."""
        if reason is None:
            self._failures.pop(environment, None)
        else:
            self._failures[environment] = reason

    def endpoint_for(self, environment: Environment) -> str:
        return self._endpoint_template.format(
            service=self._service_name,
            environment=environment.value,
        )

    async def deploy(self, request: DeployRequest) -> DeployOutcome:
        self.requests.append(request.model_copy(deep=True))
        if self._delay_seconds:
            await asyncio.sleep(self._delay_seconds)

        reason = self._failures.get(request.environment)
        if reason is not None:
            self._logger.warning(
                "deployment_failed",
                environment=request.environment.value,
                version=request.version,
                reason=reason,
            )
            raise BuildError(
                message=f"Deployment to {request.environment.value} failed: {reason}",
                details={"environment": request.environment.value, "version": request.version},
            )

        self.deployed[request.environment.value] = request
        endpoint = self.endpoint_for(request.environment)
        self._logger.info(
            "deployment_completed",
            environment=request.environment.value,
            version=request.version,
            endpoint=endpoint,
        )
        return DeployOutcome(
            endpoint=endpoint,
            resources={
                "stack_name": request.manifest.get("stack_name"),
                "functions": [f["name"] for f in request.manifest.get("functions", [])],
            },
        )
