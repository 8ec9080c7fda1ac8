"""
BirthGuide - Core Package

Contains the decision engine and its domain types:
- engine: Session operations, response handler and next-action resolver
  (import from birthguide.core.engine)
- decisions / evaluator: Decision catalog and next-decision selection
- progression / stage_classifier: Stage rules
- state_store: Session state persistence
- types: Internal domain types
"""

from .types import (
    SessionId,
    LaborStage,
    DecisionId,
    EmergencyType,
    NextActionKind,
    PresentationAnswer,
    BleedingAnswer,
    CrowningAnswer,
    BreathingAnswer,
    PlacentaAnswer,
    DecisionRecord,
    LaborState,
    NextAction,
)
from .decisions import DECISION_CATALOG, DecisionPoint, get_decision, parse_answer
from .evaluator import get_next_critical_decision
from .stage_classifier import classify_initial_stage
from .state_store import (
    LaborStateStore,
    InMemoryLaborStateStore,
    JsonFileLaborStateStore,
    create_state_store,
)

__all__ = [
    # Types
    "SessionId",
    "LaborStage",
    "DecisionId",
    "EmergencyType",
    "NextActionKind",
    "PresentationAnswer",
    "BleedingAnswer",
    "CrowningAnswer",
    "BreathingAnswer",
    "PlacentaAnswer",
    "DecisionRecord",
    "LaborState",
    "NextAction",
    # Decisions
    "DECISION_CATALOG",
    "DecisionPoint",
    "get_decision",
    "parse_answer",
    "get_next_critical_decision",
    "classify_initial_stage",
    # Persistence
    "LaborStateStore",
    "InMemoryLaborStateStore",
    "JsonFileLaborStateStore",
    "create_state_store",
]
