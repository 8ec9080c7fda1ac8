"""
BirthGuide - Stage Classifier

Maps the initial assessment answers to the starting labor stage.
"""

from __future__ import annotations

from birthguide.core.exceptions import InvalidAssessmentError
from birthguide.core.types import LaborStage

# Contraction spacing thresholds (minutes between contractions)
TRANSITION_MAX_MINUTES = 2
ACTIVE_MAX_MINUTES = 5

MAX_MONTHS_PREGNANT = 10


def classify_initial_stage(
    months_pregnant: int,
    contraction_minutes: int,
    water_broken: bool,
    urge_to_push: bool,
) -> LaborStage:
    """
    Determine the initial labor stage. First match wins:

    1. Strong urge to push -> pushing
    2. Contractions <= 2 minutes apart -> transition
    3. Contractions <= 5 minutes apart -> active
    4. Otherwise -> early

    ``months_pregnant`` and ``water_broken`` are recorded on the session
    but do not influence the initial stage.
    """
    if urge_to_push:
        return LaborStage.PUSHING

    if contraction_minutes <= TRANSITION_MAX_MINUTES:
        return LaborStage.TRANSITION

    if contraction_minutes <= ACTIVE_MAX_MINUTES:
        return LaborStage.ACTIVE

    return LaborStage.EARLY


def validate_assessment(months_pregnant: int, contraction_minutes: int) -> None:
    """
    Reject assessment values no caller should be able to produce.

    Raises:
        InvalidAssessmentError: If a value is out of range
    """
    if not 1 <= months_pregnant <= MAX_MONTHS_PREGNANT:
        raise InvalidAssessmentError(
            f"months_pregnant must be 1-{MAX_MONTHS_PREGNANT}, got {months_pregnant}",
            details={"field": "months_pregnant", "value": months_pregnant},
        )
    if contraction_minutes < 0:
        raise InvalidAssessmentError(
            f"contraction_minutes must be >= 0, got {contraction_minutes}",
            details={"field": "contraction_minutes", "value": contraction_minutes},
        )
