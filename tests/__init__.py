"""
Gateway Pipeline Test Suite
===========================

Test organization mirrors the source code structure:
    tests/
    ├── test_core/          → gateway_pipeline.core (config, models, state, promotion)
    ├── test_infrastructure/→ gateway_pipeline.infrastructure (artifact store)
    ├── test_integrations/  → gateway_pipeline.integrations (source, deploy, smoke, notifications)
    ├── test_orchestration/ → gateway_pipeline.orchestration (bus, state, policies, orchestrator)
    ├── test_actions/       → gateway_pipeline.actions (source, build, smoke, approval)
    ├── test_integration/   → End-to-end pipeline runs
    └── conftest.py         → Shared pytest fixtures

Running Tests:
    pytest                              # Run all tests
    pytest tests/test_orchestration/    # Run only orchestration tests
    pytest tests/test_integration/      # Run only end-to-end runs
"""
