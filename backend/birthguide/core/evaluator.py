"""
BirthGuide - Decision Evaluator

Selects the next critical decision to ask.
"""

from __future__ import annotations

from typing import Optional, Sequence

from birthguide.core.decisions import DECISION_CATALOG, DecisionPoint
from birthguide.core.types import LaborState


def get_next_critical_decision(
    state: LaborState,
    catalog: Sequence[DecisionPoint] = DECISION_CATALOG,
) -> Optional[DecisionPoint]:
    """
    Return the first catalog entry that applies to ``state`` and has not
    been answered yet, or None.

    Each decision is asked at most once per session: an answered decision
    stays consumed even when its condition keeps holding (bleeding).
    """
    for decision in catalog:
        if decision.is_applicable(state) and not state.has_answered(decision.id):
            return decision
    return None
