"""
gateway_pipeline.service - Gateway Service Manifest
=====================================================

What a build-and-deploy action asks the deploy backend to create for one
environment: five read-only functions behind token-authorized GET routes, an
unauthenticated mock route the smoke tests hit, the runtime settings every
function receives and the parameter the API URL is published under.

    ┌──────────────────────────── {service}-{environment} ──────────────────┐
    │  GET /all  /borrowed  /checkedOut  /web  /pending  ── jwt authorizer  │
    │       │       │          │         │       │        (5 min cache)     │
    │      all   borrowed  checkedOut   web   pending     (128 MB, 30 s)    │
    │                                                                       │
    │  GET /test ── mock integration, always 200 (smoke tests)              │
    │                                                                       │
    │  output: {param_store_root}/{environment}/api-url                     │
    └───────────────────────────────────────────────────────────────────────┘

Runtime settings are references, never values: "ssm:<path>" for parameter
store entries and "secret:<path>#<field>" for secret fields. The deploy
backend resolves them.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from gateway_pipeline.core.config import ServiceConfig
from gateway_pipeline.core.enums import Environment


FUNCTION_NAMES = ("all", "borrowed", "checkedOut", "web", "pending")
SMOKE_TEST_PATH = "/test"

FUNCTION_MEMORY_MB = 128
FUNCTION_TIMEOUT_SECONDS = 30
LOG_RETENTION_DAYS = 7
AUTHORIZER_CACHE_SECONDS = 300


class FunctionSpec(BaseModel):
    """One function of the gateway."""

    name: str
    handler: str
    memory_mb: int = FUNCTION_MEMORY_MB
    timeout_seconds: int = FUNCTION_TIMEOUT_SECONDS
    log_retention_days: int = LOG_RETENTION_DAYS
    code_path: str = "src"


class RouteSpec(BaseModel):
    """One HTTP route of the gateway.

    Attributes:
        path: Route path.
        method: HTTP method.
        function: Function serving the route; None for a mock integration.
        authorized: Whether the token authorizer guards the route.
        mock_status: Status a mock integration always returns.
    """

    path: str
    method: str = "GET"
    function: Optional[str] = None
    authorized: bool = True
    mock_status: Optional[int] = None


class AuthorizerSpec(BaseModel):
    name: str = "jwt"
    function: str
    identity_source: str = "method.request.header.Authorization"
    cache_ttl_seconds: int = AUTHORIZER_CACHE_SECONDS


class ServiceManifest(BaseModel):
    """Everything deployed for one environment at one version.

    Example:
        >>> manifest = build_service_manifest(ServiceConfig(), Environment.TEST, "abc123")
        >>> manifest.stack_name
        'illiad-gateway-test'
        >>> manifest.runtime_settings["SENTRY_RELEASE"]
        'illiad-gateway@abc123'
    """

    stack_name: str
    service_name: str
    environment: Environment
    version: str
    description: str = ""
    param_store_path: str
    functions: list[FunctionSpec] = Field(default_factory=list)
    routes: list[RouteSpec] = Field(default_factory=list)
    authorizer: AuthorizerSpec
    runtime_settings: dict[str, str] = Field(default_factory=dict)
    outputs: dict[str, str] = Field(default_factory=dict)
    tags: dict[str, str] = Field(default_factory=dict)

    def route(self, path: str) -> Optional[RouteSpec]:
        for route in self.routes:
            if route.path == path:
                return route
        return None


def param_store_path(config: ServiceConfig, environment: Environment) -> str:
    """Parameter-store prefix for one environment, e.g. /all/illiad-gateway/test."""
    return f"{config.param_store_root.rstrip('/')}/{environment.value}"


def runtime_settings(
    config: ServiceConfig, environment: Environment, version: str
) -> dict[str, str]:
    """Settings handed to every function of the service."""
    path = param_store_path(config, environment)
    return {
        "SENTRY_DSN": f"ssm:{path}/sentry_dsn",
        "SENTRY_ENVIRONMENT": environment.value,
        "SENTRY_RELEASE": f"{config.sentry_project}@{version}",
        "ILLIAD_URL": f"ssm:{path}/illiad_url",
        "API_KEY": f"secret:{config.secrets_path}#api_key",
        "AUTHORIZED_CLIENTS": f"ssm:{path}/authorized_clients",
    }


def build_service_manifest(
    config: ServiceConfig,
    environment: Environment,
    version: str,
    extra_tags: Optional[dict[str, Any]] = None,
) -> ServiceManifest:
    """Render the service manifest for one environment and version.

    Args:
        config: Service settings.
        environment: Target environment.
        version: Version tag (the commit id being promoted).
        extra_tags: Additional tags merged over the defaults.
    """
    path = param_store_path(config, environment)
    functions = [
        FunctionSpec(name=name, handler=f"{name}.handler", code_path=config.lambda_code_path)
        for name in FUNCTION_NAMES
    ]
    routes = [RouteSpec(path=f"/{name}", function=name) for name in FUNCTION_NAMES]
    routes.append(RouteSpec(path=SMOKE_TEST_PATH, authorized=False, mock_status=200))

    tags = {
        "Owner": config.owner,
        "Contact": config.contact,
        "Version": version,
        "Environment": environment.value,
    }
    tags.update({k: str(v) for k, v in (extra_tags or {}).items()})

    return ServiceManifest(
        stack_name=f"{config.service_name}-{environment.value}",
        service_name=config.service_name,
        environment=environment,
        version=version,
        description=config.description,
        param_store_path=path,
        functions=functions,
        routes=routes,
        authorizer=AuthorizerSpec(function=f"lambda-auth-{environment.value}"),
        runtime_settings=runtime_settings(config, environment, version),
        outputs={"api-url": f"{path}/api-url"},
        tags=tags,
    )
