"""
gateway_pipeline.integrations.deploy - Deployment Backends
============================================================

Available Backends:
    - DeployBackend:          Abstract interface.
    - InMemoryDeployBackend:  Records requests, failure injection.
"""

from gateway_pipeline.core.config import DeployConfig, ServiceConfig
from gateway_pipeline.integrations.deploy.base import DeployBackend
from gateway_pipeline.integrations.deploy.memory import InMemoryDeployBackend


def create_deploy_backend(config: DeployConfig, service: ServiceConfig) -> DeployBackend:
    """Build the backend named by ``config.backend``.

    Raises:
        ValueError: If the backend name is unknown.
    """
    if config.backend == "memory":
        return InMemoryDeployBackend(
            service_name=service.service_name,
            endpoint_template=config.endpoint_template,
        )
    raise ValueError(f"Unknown deploy backend: '{config.backend}'. Supported: memory")


__all__ = ["DeployBackend", "InMemoryDeployBackend", "create_deploy_backend"]
