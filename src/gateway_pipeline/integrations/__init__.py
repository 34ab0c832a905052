"""
gateway_pipeline.integrations - External Service Integration Layer
====================================================================

Adapters for the collaborators the pipeline depends on. Each one sits
behind an interface so in-memory implementations can stand in for tests.

Sub-packages:
    source/         - Version-control hosts (memory, GitHub)
    deploy/         - Build and provisioning backends (memory)
    smoke/          - Smoke-test runners (memory, HTTP)
    notifications/  - Notification channels (memory, log, Slack)
"""

__all__: list[str] = []
