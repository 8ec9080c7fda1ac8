"""
BirthGuide - Stage Progression

Forward-only stage transitions, both the automatic ones driven by decision
answers and manual advances reported by the user.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, FrozenSet

from birthguide.core.exceptions import InvalidStageTransitionError
from birthguide.core.types import (
    BreathingAnswer,
    DecisionId,
    LaborStage,
    LaborState,
)


VALID_TRANSITIONS: Dict[LaborStage, FrozenSet[LaborStage]] = {
    LaborStage.EARLY: frozenset({LaborStage.ACTIVE, LaborStage.TRANSITION, LaborStage.PUSHING}),
    LaborStage.ACTIVE: frozenset({LaborStage.TRANSITION, LaborStage.PUSHING}),
    LaborStage.TRANSITION: frozenset({LaborStage.PUSHING}),
    LaborStage.PUSHING: frozenset({LaborStage.BIRTH}),
    LaborStage.BIRTH: frozenset({LaborStage.POSTPARTUM}),
    LaborStage.POSTPARTUM: frozenset(),
}


def can_transition(current: LaborStage, target: LaborStage) -> bool:
    return target in VALID_TRANSITIONS[current]


def _mark_birth(state: LaborState, now: datetime) -> None:
    if state.birth_timestamp is None:
        state.birth_timestamp = now


def advance_stage(state: LaborState, target: LaborStage, now: datetime) -> None:
    """
    Move ``state`` to ``target`` along the transition table.

    Entering ``birth`` records the birth time if not already known.
    The state is left untouched when the transition is rejected.

    Raises:
        InvalidStageTransitionError: If target is not reachable from the current stage
    """
    if not can_transition(state.stage, target):
        raise InvalidStageTransitionError(
            f"Invalid stage transition: {state.stage.value} -> {target.value}",
            details={
                "current_stage": state.stage.value,
                "target_stage": target.value,
                "allowed": sorted(s.value for s in VALID_TRANSITIONS[state.stage]),
            },
        )

    state.stage = target
    if target == LaborStage.BIRTH:
        _mark_birth(state, now)
    state.last_updated = now


def apply_stage_progression(
    state: LaborState,
    decision_id: DecisionId,
    response: str,
    now: datetime,
) -> bool:
    """
    Apply the automatic stage change for a non-escalating answer.

    Only a breathing baby moves the session on (birth -> postpartum). Placenta
    delivered and head presentation are informational; every other answer
    leaves the stage as is. An answer given outside the birth stage never
    jumps the stage, so only table edges are ever taken.

    Returns:
        True if the stage changed
    """
    changed = False

    if (
        decision_id == DecisionId.BABY_BREATHING
        and response == BreathingAnswer.YES.value
        and can_transition(state.stage, LaborStage.POSTPARTUM)
    ):
        state.stage = LaborStage.POSTPARTUM
        _mark_birth(state, now)
        changed = True

    state.last_updated = now
    return changed
