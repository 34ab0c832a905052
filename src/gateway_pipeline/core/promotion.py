"""
gateway_pipeline.core.promotion - Environment Promotion State Machine
=======================================================================

Tracks how far one commit has progressed. The state only moves forward, one
step per successful action, and never skips a step:

    NOT_DEPLOYED ──build(test)──→ TEST_DEPLOYED ──smoke(test)──→ TEST_VERIFIED
        ──approval──→ APPROVED ──build(prod)──→ PROD_DEPLOYED
        ──smoke(prod)──→ PROD_VERIFIED

Any failure freezes the state where it is. The orchestrator asks for the
transition before an action starts (so an out-of-order action never runs)
and applies it once the action succeeds.
"""

from __future__ import annotations

from typing import Optional

from gateway_pipeline.core.enums import ActionKind, Environment, PromotionState
from gateway_pipeline.core.exceptions import StateError


# (current state, action kind, action environment) → next state.
# Approval actions carry no environment.
PROMOTION_TRANSITIONS: dict[
    tuple[PromotionState, ActionKind, Optional[Environment]], PromotionState
] = {
    (PromotionState.NOT_DEPLOYED, ActionKind.BUILD_AND_DEPLOY, Environment.TEST):
        PromotionState.TEST_DEPLOYED,
    (PromotionState.TEST_DEPLOYED, ActionKind.SMOKE_TEST, Environment.TEST):
        PromotionState.TEST_VERIFIED,
    (PromotionState.TEST_VERIFIED, ActionKind.APPROVAL, None):
        PromotionState.APPROVED,
    (PromotionState.APPROVED, ActionKind.BUILD_AND_DEPLOY, Environment.PROD):
        PromotionState.PROD_DEPLOYED,
    (PromotionState.PROD_DEPLOYED, ActionKind.SMOKE_TEST, Environment.PROD):
        PromotionState.PROD_VERIFIED,
}


def requires_transition(kind: ActionKind) -> bool:
    """Source actions never move the promotion state; everything else does."""
    return kind != ActionKind.SOURCE


def next_promotion_state(
    current: PromotionState,
    kind: ActionKind,
    environment: Optional[Environment] = None,
) -> PromotionState:
    """Look up the state a successful action moves the commit to.

    Args:
        current: The execution's current promotion state.
        kind: Kind of the action that succeeded (or is about to run).
        environment: Environment the action targets. Ignored for approvals.

    Returns:
        The next promotion state.

    Raises:
        StateError: If the action is not allowed from the current state.
    """
    key_env = None if kind == ActionKind.APPROVAL else environment
    target = PROMOTION_TRANSITIONS.get((current, kind, key_env))
    if target is None:
        raise StateError(
            message=(
                f"Illegal promotion: {kind.value}"
                f"{f' ({environment.value})' if environment else ''} "
                f"from {current.value}"
            ),
            error_code="ILLEGAL_PROMOTION",
            details={
                "current": current.value,
                "action_kind": kind.value,
                "environment": environment.value if environment else None,
            },
        )
    return target
