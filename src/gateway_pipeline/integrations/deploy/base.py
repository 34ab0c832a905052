"""
gateway_pipeline.integrations.deploy.base - Deployment Backend Interface
==========================================================================

The build-and-deploy action hands a DeployRequest (environment, version,
role, rendered manifest) to a DeployBackend and gets back the endpoint of
the deployed service. How the backend provisions things is its own
business; the pipeline only cares that it either succeeds with an endpoint
or raises.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from gateway_pipeline.core.models import DeployOutcome, DeployRequest


class DeployBackend(ABC):
    """Abstract interface to whatever builds and provisions the service."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        ...

    @abstractmethod
    async def deploy(self, request: DeployRequest) -> DeployOutcome:
        """Build and deploy one version to one environment.

        Raises:
            BuildError: If the build or the deployment fails.
        """
        ...

    async def close(self) -> None:
        return None
