"""
gateway_pipeline.core.config - Configuration Management
=========================================================

Configuration can be loaded from several sources (highest priority first):

    1. Explicit constructor arguments (including values read from YAML)
    2. Environment variables (prefixed with GATEWAY_PIPELINE_)
    3. Default values defined in the models below

Architecture Context:
    The top-level PipelineConfig is created once and handed to the facade,
    which builds every component from it:

        PipelineConfig
            ├── SourceConfig         → topology (source actions), SourceProvider
            ├── ServiceConfig        → ServiceManifest, stage roles
            ├── DeployConfig         → DeployBackend
            ├── SmokeTestConfig      → SmokeTestRunner
            ├── ApprovalConfig       → ApprovalManager
            └── NotificationConfig   → NotificationChannel / PipelineNotifier

Usage:
    config = PipelineConfig()
    config = load_config("gateway-pipeline.yaml")
    config = PipelineConfig(approval=ApprovalConfig(timeout_seconds=3600))

Environment Variables:
    GATEWAY_PIPELINE_LOG_LEVEL=DEBUG
    GATEWAY_PIPELINE_SOURCE__SERVICE_BRANCH=main
    GATEWAY_PIPELINE_APPROVAL__TIMEOUT_SECONDS=86400
    GATEWAY_PIPELINE_NOTIFICATIONS__PROVIDER=slack
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from gateway_pipeline.core.exceptions import ConfigurationError


DEFAULT_CONFIG_FILE = "gateway-pipeline.yaml"


# =============================================================================
# Source Configuration
# =============================================================================
# Two repositories feed the pipeline: the service code (whose pushes trigger
# executions) and the shared infrastructure blueprints (always fetched at
# their latest revision).
# =============================================================================
class SourceConfig(BaseModel):
    """Version-control settings for the two source actions.

    Attributes:
        git_owner: Account or organisation that owns both repositories.
        git_token_path: Secret path holding the access token.
        service_repository: Repository whose pushes trigger executions.
        service_branch: Tracked branch of the service repository.
        blueprints_repository: Infrastructure repository (no trigger).
        blueprints_branch: Branch of the infrastructure repository.
        provider: "memory" (seeded, for dev/test) or "github".
        api_base_url: REST endpoint used by the github provider.
        token: Access token for the github provider, if any.
        request_timeout: Seconds before a fetch is abandoned.
    """

    git_owner: str = Field(default="ndlib", description="Repository owner")
    git_token_path: str = Field(
        default="/all/github/ndlib-git",
        description="Secret path holding the version-control token",
    )
    service_repository: str = Field(default="illiad-gateway")
    service_branch: str = Field(default="master")
    blueprints_repository: str = Field(default="usurper-blueprints")
    blueprints_branch: str = Field(default="master")
    provider: Literal["memory", "github"] = Field(default="memory")
    api_base_url: str = Field(default="https://api.github.com")
    token: Optional[str] = Field(default=None)
    request_timeout: float = Field(default=10.0, gt=0)


# =============================================================================
# Service Configuration
# =============================================================================
# Describes the gateway service that every build-and-deploy action renders
# a manifest for.
# =============================================================================
class ServiceConfig(BaseModel):
    """Settings of the deployed gateway service.

    Attributes:
        service_name: Name used for stacks, roles and parameter paths.
        description: Free-text description attached to the deployment.
        param_store_root: Root of the per-environment parameter paths.
            The effective path is "<root>/<environment>".
        sentry_project / sentry_org / sentry_token_path: Error-reporting
            release settings. SENTRY_RELEASE becomes "<project>@<version>".
        secrets_path: Secret holding the upstream API key.
        lambda_code_path: Location of the function sources in the artifact.
        owner / contact: Tagging metadata.
    """

    service_name: str = Field(default="illiad-gateway")
    description: str = Field(default="API gateway in front of the ILLiad web platform")
    param_store_root: str = Field(default="/all/illiad-gateway")
    sentry_project: str = Field(default="illiad-gateway")
    sentry_org: str = Field(default="university-of-notre-dame-os")
    sentry_token_path: str = Field(default="/all/sentry/token")
    secrets_path: str = Field(default="/all/illiad-gateway/secrets")
    lambda_code_path: str = Field(default="src")
    owner: str = Field(default="pipeline")
    contact: str = Field(default="user@nd.edu")


class DeployConfig(BaseModel):
    """Settings for the deployment backend.

    Attributes:
        backend: Only "memory" ships with the package; real provisioning
            engines plug in through the DeployBackend interface.
        endpoint_template: Format string for the endpoint a deployment
            reports. Placeholders: {service}, {environment}.
    """

    backend: Literal["memory"] = Field(default="memory")
    endpoint_template: str = Field(
        default="https://{service}-{environment}.example.com",
    )


class SmokeTestConfig(BaseModel):
    """Settings for the fixed smoke-test suite.

    Attributes:
        runner: "memory" (scripted outcomes) or "http" (real GET requests).
        paths: Paths requested on the deployed endpoint. The service exposes
            an unauthenticated mock "/test" route for exactly this purpose.
        expected_status: HTTP status every check must return.
        request_timeout: Seconds per check.
    """

    runner: Literal["memory", "http"] = Field(default="memory")
    paths: list[str] = Field(default_factory=lambda: ["/test"])
    expected_status: int = Field(default=200, ge=100, le=599)
    request_timeout: float = Field(default=10.0, gt=0)


class ApprovalConfig(BaseModel):
    """Settings for the manual approval gate.

    Attributes:
        timeout_seconds: Seconds before a pending request expires. None
            means the gate waits until someone decides.
        additional_information: Text shown to reviewers with the request.
    """

    timeout_seconds: Optional[float] = Field(default=None, gt=0)
    additional_information: str = Field(
        default="Approve or Reject this change after testing",
    )


class NotificationConfig(BaseModel):
    """Where pipeline outcomes and approval requests are announced.

    Attributes:
        provider: "memory", "log" or "slack".
        email_receivers: Addresses subscribed to execution outcomes.
        slack_webhook_url: Incoming-webhook URL for the slack provider.
        slack_notify_stack_name: Name of the chat integration that routes
            approval requests; attached to approval notifications as
            their ``route``.
        request_timeout: Seconds per delivery attempt.
    """

    provider: Literal["memory", "log", "slack"] = Field(default="log")
    email_receivers: list[str] = Field(default_factory=list)
    slack_webhook_url: Optional[str] = Field(default=None)
    slack_notify_stack_name: Optional[str] = Field(default=None)
    request_timeout: float = Field(default=5.0, gt=0)


# =============================================================================
# Main Configuration
# =============================================================================
# Environment Variable Mapping:
#   GATEWAY_PIPELINE_LOG_LEVEL               → config.log_level
#   GATEWAY_PIPELINE_SOURCE__SERVICE_BRANCH  → config.source.service_branch
#   GATEWAY_PIPELINE_APPROVAL__TIMEOUT_SECONDS → config.approval.timeout_seconds
# =============================================================================
class PipelineConfig(BaseSettings):
    """Top-level configuration for the gateway pipeline.

    Attributes:
        pipeline_name: Name of the pipeline; also prefixes stage roles.
        stage: Stage label of the process using this config ("dev" for
            local work). Deployment environments are fixed to test and prod.
        log_level: Python logging level for structlog output.
        log_json: Render logs as JSON lines instead of console text.
        state_dir: When set, execution and approval snapshots are written
            as JSON documents under this directory.

    Example:
        >>> config = PipelineConfig(
        ...     log_level="DEBUG",
        ...     approval=ApprovalConfig(timeout_seconds=600),
        ... )
    """

    # -------------------------------------------------------------------------
    # General Settings
    # -------------------------------------------------------------------------
    pipeline_name: str = Field(
        default="illiad-gateway-pipeline",
        description="Pipeline name used for roles and notifications",
    )
    stage: Literal["dev", "test", "prod"] = Field(default="dev")
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_json: bool = Field(default=False)
    state_dir: Optional[str] = Field(default=None)

    # -------------------------------------------------------------------------
    # Nested Configurations
    # -------------------------------------------------------------------------
    source: SourceConfig = Field(default_factory=SourceConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)
    deploy: DeployConfig = Field(default_factory=DeployConfig)
    smoke_tests: SmokeTestConfig = Field(default_factory=SmokeTestConfig)
    approval: ApprovalConfig = Field(default_factory=ApprovalConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)

    model_config = {
        "env_prefix": "GATEWAY_PIPELINE_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }


# =============================================================================
# Configuration Loader
# =============================================================================
def load_config(path: Optional[str] = None) -> PipelineConfig:
    """Load pipeline configuration from a YAML file and/or environment variables.

    Args:
        path: Path to a YAML configuration file. If None, looks for
            'gateway-pipeline.yaml' in the current directory and falls back
            to pure defaults + environment variables.

    Returns:
        A fully validated PipelineConfig instance.

    Raises:
        FileNotFoundError: If an explicit path is provided but doesn't exist.
        ConfigurationError: If the file is not valid YAML or not a mapping.
    """
    if path is None:
        default_path = Path(DEFAULT_CONFIG_FILE)
        if default_path.exists():
            path = str(default_path)

    yaml_data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(config_path) as f:
            try:
                raw_data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    message=f"Malformed YAML in {path}",
                    error_code="MALFORMED_YAML",
                    details={"path": path, "error": str(e)},
                ) from e

        if raw_data is None:
            raw_data = {}
        if not isinstance(raw_data, dict):
            raise ConfigurationError(
                message=f"Configuration file {path} must contain a mapping",
                error_code="INVALID_CONFIG_FILE",
                details={"path": path, "type": type(raw_data).__name__},
            )
        yaml_data = raw_data

    return PipelineConfig(**yaml_data)


def get_default_config() -> PipelineConfig:
    """Create a PipelineConfig with all defaults (plus any set env vars)."""
    return PipelineConfig()
