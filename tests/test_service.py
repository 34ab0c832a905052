"""
Tests for gateway_pipeline.service
====================================

What's Being Tested:
    - The manifest lists the five functions and their authorized routes
    - The smoke-test route is an unauthenticated mock
    - Runtime settings are references scoped to the environment
    - Version and environment tags
"""

import pytest

from gateway_pipeline.core.config import ServiceConfig
from gateway_pipeline.core.enums import Environment
from gateway_pipeline.service import (
    FUNCTION_NAMES,
    build_service_manifest,
    param_store_path,
    runtime_settings,
)


@pytest.fixture
def manifest():
    return build_service_manifest(ServiceConfig(), Environment.PROD, "abc123")


class TestServiceManifest:

    def test_functions_and_routes(self, manifest) -> None:
        assert [f.name for f in manifest.functions] == list(FUNCTION_NAMES)
        assert manifest.functions[0].handler == "all.handler"
        assert all(f.memory_mb == 128 and f.timeout_seconds == 30 for f in manifest.functions)

        for name in FUNCTION_NAMES:
            route = manifest.route(f"/{name}")
            assert route.function == name
            assert route.authorized

    def test_smoke_route_is_open_mock(self, manifest) -> None:
        route = manifest.route("/test")
        assert route.function is None
        assert not route.authorized
        assert route.mock_status == 200

    def test_unknown_route(self, manifest) -> None:
        assert manifest.route("/missing") is None

    def test_naming(self, manifest) -> None:
        assert manifest.stack_name == "illiad-gateway-prod"
        assert manifest.param_store_path == "/all/illiad-gateway/prod"
        assert manifest.outputs == {"api-url": "/all/illiad-gateway/prod/api-url"}
        assert manifest.authorizer.function == "lambda-auth-prod"
        assert manifest.authorizer.cache_ttl_seconds == 300

    def test_tags(self) -> None:
        manifest = build_service_manifest(
            ServiceConfig(), Environment.TEST, "def456", extra_tags={"Build": 7}
        )
        assert manifest.tags["Version"] == "def456"
        assert manifest.tags["Environment"] == "test"
        assert manifest.tags["Build"] == "7"


class TestRuntimeSettings:

    def test_references_not_values(self) -> None:
        settings = runtime_settings(ServiceConfig(), Environment.TEST, "abc123")

        assert settings["SENTRY_RELEASE"] == "illiad-gateway@abc123"
        assert settings["SENTRY_ENVIRONMENT"] == "test"
        assert settings["ILLIAD_URL"] == "ssm:/all/illiad-gateway/test/illiad_url"
        assert settings["API_KEY"] == "secret:/all/illiad-gateway/secrets#api_key"
        assert set(settings) == {
            "SENTRY_DSN",
            "SENTRY_ENVIRONMENT",
            "SENTRY_RELEASE",
            "ILLIAD_URL",
            "API_KEY",
            "AUTHORIZED_CLIENTS",
        }

    def test_param_store_root_trailing_slash(self) -> None:
        config = ServiceConfig(param_store_root="/all/other/")
        assert param_store_path(config, Environment.PROD) == "/all/other/prod"
