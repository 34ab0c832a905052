"""
gateway_pipeline.topology - Default Pipeline Definition
=========================================================

The pipeline is built once at startup from configuration as an explicit,
ordered stage list:

    Source
        SourceAppCode    (webhook, service repo)     → AppCode      [1]
        SourceInfraCode  (no trigger, blueprints)    → InfraCode    [1]
    DeployToTest         (environment: test)
        Build_and_Deploy  AppCode + InfraCode                       [1]
        SmokeTests        AppCode                                  [98]
        ManualApprovalOfTestEnvironment                             [99]
    DeployToProd         (environment: prod)
        Build_and_Deploy  AppCode + InfraCode                       [1]
        SmokeTests        AppCode                                  [98]

Run orders leave room for extra actions between the build and the smoke
tests without renumbering.
"""

from __future__ import annotations

from gateway_pipeline.core.config import PipelineConfig
from gateway_pipeline.core.enums import ActionKind, Environment, SourceTrigger
from gateway_pipeline.core.models import ActionDefinition, PipelineDefinition, StageDefinition


BUILD_RUN_ORDER = 1
SMOKE_TEST_RUN_ORDER = 98
APPROVAL_RUN_ORDER = 99

APP_CODE_ARTIFACT = "AppCode"
INFRA_CODE_ARTIFACT = "InfraCode"
APP_SOURCE_ACTION = "SourceAppCode"
INFRA_SOURCE_ACTION = "SourceInfraCode"


def stage_role(pipeline_name: str, environment: Environment) -> str:
    """Permission scope a deploy stage runs under."""
    return f"{pipeline_name}-deploy-{environment.value}"


def _deploy_stage(
    name: str,
    config: PipelineConfig,
    environment: Environment,
    with_approval: bool,
) -> StageDefinition:
    actions = [
        ActionDefinition(
            name="Build_and_Deploy",
            kind=ActionKind.BUILD_AND_DEPLOY,
            run_order=BUILD_RUN_ORDER,
            environment=environment,
            inputs=[APP_CODE_ARTIFACT, INFRA_CODE_ARTIFACT],
            environment_variables={
                "STAGE": environment.value,
                "VERSION": f"#{{{APP_SOURCE_ACTION}.CommitId}}",
            },
        ),
        ActionDefinition(
            name="SmokeTests",
            kind=ActionKind.SMOKE_TEST,
            run_order=SMOKE_TEST_RUN_ORDER,
            environment=environment,
            inputs=[APP_CODE_ARTIFACT],
        ),
    ]
    if with_approval:
        actions.append(
            ActionDefinition(
                name="ManualApprovalOfTestEnvironment",
                kind=ActionKind.APPROVAL,
                run_order=APPROVAL_RUN_ORDER,
                additional_information=config.approval.additional_information,
                config={"notify": config.notifications.email_receivers},
            )
        )
    return StageDefinition(
        name=name,
        actions=actions,
        environment=environment,
        role=stage_role(config.pipeline_name, environment),
    )


def build_default_pipeline(config: PipelineConfig) -> PipelineDefinition:
    """Build the gateway's source → test → approval → prod pipeline."""
    source = config.source
    source_stage = StageDefinition(
        name="Source",
        actions=[
            ActionDefinition(
                name=APP_SOURCE_ACTION,
                kind=ActionKind.SOURCE,
                run_order=1,
                repository=source.service_repository,
                branch=source.service_branch,
                trigger=SourceTrigger.WEBHOOK,
                outputs=[APP_CODE_ARTIFACT],
            ),
            ActionDefinition(
                name=INFRA_SOURCE_ACTION,
                kind=ActionKind.SOURCE,
                run_order=1,
                repository=source.blueprints_repository,
                branch=source.blueprints_branch,
                trigger=SourceTrigger.NONE,
                outputs=[INFRA_CODE_ARTIFACT],
            ),
        ],
    )

    definition = PipelineDefinition(
        name=config.pipeline_name,
        stages=[
            source_stage,
            _deploy_stage("DeployToTest", config, Environment.TEST, with_approval=True),
            _deploy_stage("DeployToProd", config, Environment.PROD, with_approval=False),
        ],
    )
    definition.validate_topology()
    return definition
