"""
gateway_pipeline - Deployment Pipeline for the ILLiad Gateway
===============================================================

Carries every push of the gateway service through build, test deployment,
smoke tests, manual approval and production deployment, always promoting
the exact commit that was tested.

Quick Start:
    >>> from gateway_pipeline import GatewayPipeline, SourceEvent
    >>> async with GatewayPipeline() as pipeline:
    ...     execution = await pipeline.handle_push(
    ...         SourceEvent(repository="illiad-gateway", branch="master", commit_id="abc123")
    ...     )
"""

from gateway_pipeline.core.models import DecisionRequest, SourceEvent
from gateway_pipeline.facade import GatewayPipeline

__version__ = "0.1.0"

__all__ = ["GatewayPipeline", "SourceEvent", "DecisionRequest", "__version__"]
