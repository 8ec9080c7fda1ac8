"""
BirthGuide - Core Domain Types

Internal type definitions for the decision engine. These are domain objects
used within the core, independent of API serialization.

Design Notes:
- LaborState is the only mutable aggregate; one instance per active session.
- Enums subclass str so persisted records and API payloads carry plain values.
- Each decision has its own closed answer enum; raw input is resolved into
  one of these at the boundary (see core.decisions.parse_answer).
- All timestamps are timezone-aware UTC datetimes.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, NewType, Optional, Union


# =============================================================================
# Type Aliases
# =============================================================================

SessionId = NewType("SessionId", str)
"""Opaque identifier of a labor session (``session_<uuid4 hex>``)."""


# =============================================================================
# Enums
# =============================================================================

class LaborStage(str, Enum):
    """Discrete phase of childbirth progression, in forward order."""
    EARLY = "early"
    ACTIVE = "active"
    TRANSITION = "transition"
    PUSHING = "pushing"
    BIRTH = "birth"
    POSTPARTUM = "postpartum"


class DecisionId(str, Enum):
    """The five critical decision points."""
    PRESENTATION = "presentation"
    BLEEDING = "bleeding"
    CROWNING = "crowning"
    BABY_BREATHING = "baby_breathing"
    PLACENTA = "placenta"


class EmergencyType(str, Enum):
    """Emergency protocols the engine can escalate into."""
    HEMORRHAGE = "hemorrhage"
    BREECH = "breech"
    CORD_PROLAPSE = "cord_prolapse"
    RESUSCITATION = "resuscitation"
    RETAINED_PLACENTA = "retained_placenta"


class NextActionKind(str, Enum):
    """What the caller should show next."""
    ASK = "ask"
    GUIDE = "guide"
    EMERGENCY = "emergency"


# =============================================================================
# Typed Answers (one closed set per decision)
# =============================================================================

class PresentationAnswer(str, Enum):
    """What is visible first."""
    HEAD = "head"
    BREECH = "breech"
    OTHER = "other"  # cord or arm
    UNKNOWN = "unknown"


class BleedingAnswer(str, Enum):
    NORMAL = "normal"
    SEVERE = "severe"


class CrowningAnswer(str, Enum):
    """Does the head show and retreat between contractions."""
    YES = "yes"
    STUCK = "stuck"


class BreathingAnswer(str, Enum):
    YES = "yes"
    NO = "no"


class PlacentaAnswer(str, Enum):
    YES = "yes"
    NO = "no"


Answer = Union[
    PresentationAnswer,
    BleedingAnswer,
    CrowningAnswer,
    BreathingAnswer,
    PlacentaAnswer,
]


# =============================================================================
# Decisions-Made Log Entry
# =============================================================================

@dataclass(frozen=True)
class DecisionRecord:
    """One answered decision. The response is kept as its raw string value."""
    decision_id: DecisionId
    response: str

    def to_dict(self) -> Dict[str, Any]:
        return {"decision_id": self.decision_id.value, "response": self.response}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DecisionRecord":
        return cls(
            decision_id=DecisionId(data["decision_id"]),
            response=str(data["response"]),
        )


# =============================================================================
# Labor State (Core Domain Object)
# =============================================================================

@dataclass
class LaborState:
    """
    State of the single active labor session.

    Attributes:
        session_id: Opaque unique identifier, set at creation
        stage: Current labor stage (forward-only)
        months_pregnant: Assessment answer, immutable
        contraction_minutes: Assessment answer, immutable
        water_broken: Assessment answer, immutable
        urge_to_push: Assessment answer, immutable
        labor_start_timestamp: When the session was created
        last_updated: Updated on every mutation
        decisions_made: Append-only log of answered decisions
        emergency_active: Once True, only an explicit clear resets it
        emergency_type: Set and cleared together with emergency_active
        birth_timestamp: When the baby was delivered (set once)
    """
    session_id: SessionId
    stage: LaborStage
    months_pregnant: int
    contraction_minutes: int
    water_broken: bool
    urge_to_push: bool
    labor_start_timestamp: datetime
    last_updated: datetime
    decisions_made: List[DecisionRecord] = field(default_factory=list)
    emergency_active: bool = False
    emergency_type: Optional[EmergencyType] = None
    birth_timestamp: Optional[datetime] = None

    def first_response(self, decision_id: DecisionId) -> Optional[str]:
        """Return the first recorded response for a decision, if any."""
        for record in self.decisions_made:
            if record.decision_id == decision_id:
                return record.response
        return None

    def has_answered(self, decision_id: DecisionId) -> bool:
        return self.first_response(decision_id) is not None

    def has_response(self, decision_id: DecisionId, response: str) -> bool:
        """True if the authoritative (first) answer equals ``response``."""
        return self.first_response(decision_id) == response

    def minutes_since_birth(self, now: datetime) -> int:
        """Whole minutes elapsed since birth; 0 when birth is not recorded."""
        if self.birth_timestamp is None:
            return 0
        return int((now - self.birth_timestamp).total_seconds() // 60)

    def copy(self) -> "LaborState":
        """Independent copy safe to mutate."""
        return replace(self, decisions_made=list(self.decisions_made))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "session_id": self.session_id,
            "stage": self.stage.value,
            "months_pregnant": self.months_pregnant,
            "contraction_minutes": self.contraction_minutes,
            "water_broken": self.water_broken,
            "urge_to_push": self.urge_to_push,
            "decisions_made": [r.to_dict() for r in self.decisions_made],
            "emergency_active": self.emergency_active,
            "emergency_type": self.emergency_type.value if self.emergency_type else None,
            "birth_timestamp": self.birth_timestamp.isoformat() if self.birth_timestamp else None,
            "labor_start_timestamp": self.labor_start_timestamp.isoformat(),
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LaborState":
        """
        Rebuild from a persisted record.

        Raises:
            KeyError, ValueError: If the record is malformed
        """
        emergency_type = data.get("emergency_type")
        birth_timestamp = data.get("birth_timestamp")
        return cls(
            session_id=SessionId(data["session_id"]),
            stage=LaborStage(data["stage"]),
            months_pregnant=int(data["months_pregnant"]),
            contraction_minutes=int(data["contraction_minutes"]),
            water_broken=bool(data["water_broken"]),
            urge_to_push=bool(data["urge_to_push"]),
            labor_start_timestamp=datetime.fromisoformat(data["labor_start_timestamp"]),
            last_updated=datetime.fromisoformat(data["last_updated"]),
            decisions_made=[DecisionRecord.from_dict(r) for r in data.get("decisions_made", [])],
            emergency_active=bool(data.get("emergency_active", False)),
            emergency_type=EmergencyType(emergency_type) if emergency_type else None,
            birth_timestamp=datetime.fromisoformat(birth_timestamp) if birth_timestamp else None,
        )


# =============================================================================
# Next Action
# =============================================================================

@dataclass(frozen=True)
class NextAction:
    """
    Result of the next-action resolver.

    Exactly one of decision_id / stage / emergency_type is set, matching
    the action. ``content`` carries the static prompt or protocol to show.
    """
    action: NextActionKind
    decision_id: Optional[DecisionId] = None
    stage: Optional[LaborStage] = None
    emergency_type: Optional[EmergencyType] = None
    content: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "decision_id": self.decision_id.value if self.decision_id else None,
            "stage": self.stage.value if self.stage else None,
            "emergency_type": self.emergency_type.value if self.emergency_type else None,
            "content": self.content,
        }
