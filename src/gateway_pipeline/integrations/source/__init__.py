"""
gateway_pipeline.integrations.source - Version-Control Source Providers
=========================================================================

Available Providers:
    - SourceProvider:          Abstract interface.
    - InMemorySourceProvider:  Seeded revisions, failure injection.
    - GitHubSourceProvider:    GitHub REST API over httpx.
"""

from gateway_pipeline.core.config import SourceConfig
from gateway_pipeline.integrations.source.base import SourceProvider, SourceSnapshot
from gateway_pipeline.integrations.source.github import GitHubSourceProvider
from gateway_pipeline.integrations.source.memory import InMemorySourceProvider


def create_source_provider(config: SourceConfig) -> SourceProvider:
    """Build the source provider named by ``config.provider``.

    Raises:
        ValueError: If the provider name is unknown.
    """
    if config.provider == "memory":
        return InMemorySourceProvider()
    if config.provider == "github":
        return GitHubSourceProvider.from_config(config)
    raise ValueError(
        f"Unknown source provider: '{config.provider}'. Supported: memory, github"
    )


__all__ = [
    "SourceProvider",
    "SourceSnapshot",
    "InMemorySourceProvider",
    "GitHubSourceProvider",
    "create_source_provider",
]
