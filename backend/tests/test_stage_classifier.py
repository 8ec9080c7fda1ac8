"""
BirthGuide - Stage Classifier Tests

Run with: pytest tests/test_stage_classifier.py -v
"""

import pytest

from birthguide.core.exceptions import InvalidAssessmentError
from birthguide.core.stage_classifier import classify_initial_stage, validate_assessment
from birthguide.core.types import LaborStage


class TestClassifyInitialStage:
    """Priority order: urge to push, then contraction spacing."""

    def test_urge_to_push_wins_over_contraction_spacing(self):
        assert classify_initial_stage(9, 1, True, True) == LaborStage.PUSHING
        assert classify_initial_stage(9, 20, False, True) == LaborStage.PUSHING

    @pytest.mark.parametrize(
        "minutes,expected",
        [
            (0, LaborStage.TRANSITION),
            (2, LaborStage.TRANSITION),
            (3, LaborStage.ACTIVE),
            (5, LaborStage.ACTIVE),
            (6, LaborStage.EARLY),
            (15, LaborStage.EARLY),
        ],
    )
    def test_contraction_thresholds(self, minutes, expected):
        assert classify_initial_stage(9, minutes, False, False) == expected

    def test_months_and_water_do_not_affect_stage(self):
        baseline = classify_initial_stage(9, 4, False, False)
        assert classify_initial_stage(6, 4, True, False) == baseline


class TestValidateAssessment:

    def test_accepts_plausible_values(self):
        validate_assessment(9, 0)
        validate_assessment(1, 30)

    @pytest.mark.parametrize("months", [0, 11, -3])
    def test_rejects_months_out_of_range(self, months):
        with pytest.raises(InvalidAssessmentError) as exc_info:
            validate_assessment(months, 4)
        assert exc_info.value.details["field"] == "months_pregnant"

    def test_rejects_negative_contraction_minutes(self):
        with pytest.raises(InvalidAssessmentError):
            validate_assessment(9, -1)
