"""
BirthGuide - Decision Catalog

The five critical decision points, in priority order. The evaluator asks the
first applicable, unanswered decision, so the order below is the tie-break
when several conditions hold at once.

Each decision owns a closed answer enum. Raw input (button value or a
matched voice intent) is resolved with ``parse_answer`` before it reaches
the response handler.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, FrozenSet, Optional, Tuple, Type, Union

from birthguide.core.exceptions import InvalidAnswerError, UnknownDecisionError
from birthguide.core.types import (
    Answer,
    BleedingAnswer,
    BreathingAnswer,
    CrowningAnswer,
    DecisionId,
    EmergencyType,
    LaborStage,
    LaborState,
    PlacentaAnswer,
    PresentationAnswer,
)


@dataclass(frozen=True)
class DecisionPoint:
    """
    Static definition of a critical decision.

    Attributes:
        id: Decision identifier
        condition: Whether the decision applies to the given state
        answer_type: Closed enum of valid answers
        emergency_triggers: Answer values that may escalate
        emergency_type: Default emergency for a trigger (None = record only)
    """
    id: DecisionId
    condition: Callable[[LaborState], bool]
    answer_type: Type[Enum]
    emergency_triggers: FrozenSet[str]
    emergency_type: Optional[EmergencyType] = None

    def is_applicable(self, state: LaborState) -> bool:
        return self.condition(state)

    def is_trigger(self, response: str) -> bool:
        return response in self.emergency_triggers

    @property
    def options(self) -> Tuple[str, ...]:
        return tuple(member.value for member in self.answer_type)


def _in_stage(stage: LaborStage) -> Callable[[LaborState], bool]:
    return lambda state: state.stage == stage


def _head_presenting_while_pushing(state: LaborState) -> bool:
    return (
        state.stage == LaborStage.PUSHING
        and state.has_response(DecisionId.PRESENTATION, PresentationAnswer.HEAD.value)
    )


DECISION_CATALOG: Tuple[DecisionPoint, ...] = (
    DecisionPoint(
        id=DecisionId.PRESENTATION,
        condition=_in_stage(LaborStage.PUSHING),
        answer_type=PresentationAnswer,
        emergency_triggers=frozenset({
            PresentationAnswer.BREECH.value,
            PresentationAnswer.OTHER.value,  # resolves to cord prolapse
        }),
        emergency_type=EmergencyType.BREECH,
    ),
    DecisionPoint(
        id=DecisionId.BLEEDING,
        condition=lambda state: True,
        answer_type=BleedingAnswer,
        emergency_triggers=frozenset({BleedingAnswer.SEVERE.value}),
        emergency_type=EmergencyType.HEMORRHAGE,
    ),
    DecisionPoint(
        id=DecisionId.CROWNING,
        condition=_head_presenting_while_pushing,
        answer_type=CrowningAnswer,
        # Head stuck: recorded, no protocol assigned yet
        emergency_triggers=frozenset({CrowningAnswer.STUCK.value}),
        emergency_type=None,
    ),
    DecisionPoint(
        id=DecisionId.BABY_BREATHING,
        condition=_in_stage(LaborStage.BIRTH),
        answer_type=BreathingAnswer,
        emergency_triggers=frozenset({BreathingAnswer.NO.value}),
        emergency_type=EmergencyType.RESUSCITATION,
    ),
    DecisionPoint(
        id=DecisionId.PLACENTA,
        condition=_in_stage(LaborStage.POSTPARTUM),
        answer_type=PlacentaAnswer,
        emergency_triggers=frozenset({PlacentaAnswer.NO.value}),  # only past the time limit
        emergency_type=EmergencyType.RETAINED_PLACENTA,
    ),
)

_DECISIONS_BY_ID: Dict[DecisionId, DecisionPoint] = {d.id: d for d in DECISION_CATALOG}


def get_decision(decision_id: Union[DecisionId, str]) -> DecisionPoint:
    """
    Look up a decision by id.

    Raises:
        UnknownDecisionError: If the id is not in the catalog
    """
    try:
        return _DECISIONS_BY_ID[DecisionId(decision_id)]
    except ValueError:
        raise UnknownDecisionError(
            f"Unknown decision: {decision_id}",
            details={"decision_id": str(decision_id)},
        ) from None


def parse_answer(decision_id: Union[DecisionId, str], raw: Union[Answer, str]) -> Answer:
    """
    Resolve a raw answer into the decision's typed answer.

    Accepts the enum member itself or its string value (case and
    surrounding whitespace are ignored).

    Raises:
        UnknownDecisionError: If the decision id is not in the catalog
        InvalidAnswerError: If the value is not an option of the decision
    """
    decision = get_decision(decision_id)

    if isinstance(raw, decision.answer_type):
        return raw

    value = raw.value if isinstance(raw, Enum) else str(raw)
    try:
        return decision.answer_type(value.strip().lower())
    except ValueError:
        raise InvalidAnswerError(
            f"Invalid answer for {decision.id.value}: {value!r}",
            details={"decision_id": decision.id.value, "answer": value, "options": list(decision.options)},
        ) from None


def resolve_emergency(
    decision: DecisionPoint,
    response: str,
    minutes_since_birth: int,
    retained_placenta_minutes: int = 60,
) -> Optional[EmergencyType]:
    """
    Effective emergency for a response, or None when nothing escalates.

    Special cases on top of the catalog default:
    - presentation + "other" escalates to cord prolapse, not breech
    - placenta + "no" escalates only once the time limit since birth is reached
    - crowning + "stuck" has no emergency type and never escalates
    """
    if not decision.is_trigger(response):
        return None

    if decision.id == DecisionId.PRESENTATION and response == PresentationAnswer.OTHER.value:
        return EmergencyType.CORD_PROLAPSE

    if decision.id == DecisionId.PLACENTA and response == PlacentaAnswer.NO.value:
        if minutes_since_birth < retained_placenta_minutes:
            return None

    return decision.emergency_type
