"""
Promote Release Example - One Commit from Push to Production
===============================================================

This example carries a single push of the gateway service through the
whole pipeline:

    Source → DeployToTest (build, smoke tests, approval) → DeployToProd

Then it shows the two ways a release can stop short of production:

    1. The smoke tests fail in the test environment.
    2. A reviewer rejects the change.

Everything runs in-process: the source provider, deploy backend and smoke
runner are the in-memory implementations, so no network access or cloud
account is needed. The reviewer is simulated by a task that approves (or
rejects) as soon as the approval request appears.

Usage:
    python examples/promote_release.py
"""

from __future__ import annotations

import asyncio

from gateway_pipeline.core.config import (
    NotificationConfig,
    PipelineConfig,
    SmokeTestConfig,
    SourceConfig,
)
from gateway_pipeline.core.enums import Decision, Environment
from gateway_pipeline.core.logging import configure_logging
from gateway_pipeline.core.models import DecisionRequest, SourceEvent
from gateway_pipeline.core.state import PipelineExecution
from gateway_pipeline.facade import GatewayPipeline
from gateway_pipeline.integrations.smoke import InMemorySmokeTestRunner
from gateway_pipeline.integrations.source import InMemorySourceProvider


SERVICE_REPO = "illiad-gateway"
BLUEPRINTS_REPO = "usurper-blueprints"


def _seed_source() -> InMemorySourceProvider:
    provider = InMemorySourceProvider()
    provider.push(
        BLUEPRINTS_REPO,
        "master",
        "bp-7f3e",
        files={"deploy/cdk/illiad-gateway.ts": "// stack definition"},
        message="Blueprints for the gateway stack",
    )
    for commit, message in (("a1b2c3", "Add pending endpoint"), ("d4e5f6", "Fix borrowed paging")):
        provider.push(
            SERVICE_REPO,
            "master",
            commit,
            files={"src/pending.py": "def handler(event, context): ..."},
            message=message,
        )
    return provider


async def _reviewer(pipeline: GatewayPipeline, execution_id: str, decision: Decision) -> None:
    """Decide as soon as the execution asks for approval."""
    while True:
        request = await pipeline.get_approval(execution_id)
        if request is not None and request.is_pending:
            break
        await asyncio.sleep(0.01)
    print(f"  reviewer sees: {request.summary} (commit {request.commit_id})")
    await pipeline.decide(
        DecisionRequest(
            execution_id=execution_id,
            decision=decision,
            actor="reviewer@nd.edu",
            comment="Checked the test endpoint",
        )
    )


def _report(execution: PipelineExecution) -> None:
    print(f"  status          : {execution.status.value}")
    print(f"  promotion state : {execution.promotion_state.value}")
    for env, deployment in execution.deployments.items():
        print(f"  deployed {env:6s}: {deployment.version} → {deployment.endpoint}")
    if execution.failure is not None:
        print(f"  failure         : {execution.failure.kind.value} in {execution.failure.stage_name}")
        print(f"  recovery hint   : {execution.failure.hint.value}")
        print(f"  reason          : {execution.failure.reason}")
    print()


async def main() -> None:
    """Run three executions: promoted, smoke-test failure, rejected."""
    configure_logging("WARNING")

    config = PipelineConfig(
        source=SourceConfig(provider="memory"),
        smoke_tests=SmokeTestConfig(runner="memory", paths=["/test"]),
        notifications=NotificationConfig(provider="log", email_receivers=["ops@nd.edu"]),
    )
    smoke_runner = InMemorySmokeTestRunner(config.smoke_tests.paths)

    async with GatewayPipeline(
        config,
        source_provider=_seed_source(),
        smoke_test_runner=smoke_runner,
    ) as pipeline:
        # --- 1. Approved release ---
        print("=" * 60)
        print("  Release a1b2c3: approved")
        print("=" * 60)
        execution = await pipeline.handle_push(
            SourceEvent(repository=SERVICE_REPO, branch="master", commit_id="a1b2c3")
        )
        await _reviewer(pipeline, execution.execution_id, Decision.APPROVE)
        _report(await pipeline.wait(execution.execution_id))

        # --- 2. Smoke tests fail in test ---
        print("=" * 60)
        print("  Release d4e5f6: smoke tests fail")
        print("=" * 60)
        smoke_runner.fail_environment(Environment.TEST, path="/test", status_code=503)
        failed = await pipeline.trigger(
            SourceEvent(repository=SERVICE_REPO, branch="master", commit_id="d4e5f6")
        )
        _report(failed)

        # --- 3. Re-run after the fix, then reject ---
        print("=" * 60)
        print("  Re-run of d4e5f6: rejected by the reviewer")
        print("=" * 60)
        smoke_runner.clear_failures()
        rerun = await pipeline.rerun(failed.execution_id)
        await _reviewer(pipeline, rerun.execution_id, Decision.REJECT)
        _report(await pipeline.wait(rerun.execution_id))

        print("History of d4e5f6:")
        for past in await pipeline.list_executions(commit_id="d4e5f6"):
            origin = f" (re-run of {past.rerun_of})" if past.rerun_of else ""
            print(f"  {past.execution_id}: {past.status.value}{origin}")


if __name__ == "__main__":
    asyncio.run(main())
