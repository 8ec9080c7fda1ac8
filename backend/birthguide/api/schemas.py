"""
BirthGuide - API Schemas

Pydantic models for request/response validation.
These define the contract between the UI layer and the engine adapter.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from birthguide.core.types import (
    DecisionId,
    EmergencyType,
    LaborStage,
    NextActionKind,
)


# ===========================================
# Session Schemas
# ===========================================

class AssessmentRequest(BaseModel):
    """Initial assessment answers that start a session."""

    months_pregnant: int = Field(ge=1, le=10, description="Months pregnant")
    contraction_minutes: int = Field(ge=0, description="Minutes between contractions")
    water_broken: bool = Field(description="Has the water broken")
    urge_to_push: bool = Field(description="Strong urge to push")


class DecisionRecordSchema(BaseModel):
    """One entry of the decisions-made log."""

    decision_id: DecisionId
    response: str


class LaborStateSchema(BaseModel):
    """Current state of the labor session."""

    session_id: str
    stage: LaborStage
    months_pregnant: int
    contraction_minutes: int
    water_broken: bool
    urge_to_push: bool
    decisions_made: List[DecisionRecordSchema] = Field(default_factory=list)
    emergency_active: bool
    emergency_type: Optional[EmergencyType] = None
    birth_timestamp: Optional[datetime] = None
    labor_start_timestamp: datetime
    last_updated: datetime


# ===========================================
# Next Action Schemas
# ===========================================

class NextActionSchema(BaseModel):
    """What the UI should show next."""

    action: NextActionKind
    decision_id: Optional[DecisionId] = None
    stage: Optional[LaborStage] = None
    emergency_type: Optional[EmergencyType] = None
    content: Dict[str, Any] = Field(
        default_factory=dict,
        description="Decision prompt (ask), stage guidance (guide) or emergency protocol",
    )


# ===========================================
# Mutation Requests
# ===========================================

class DecisionResponseRequest(BaseModel):
    """Answer to a critical decision (button press)."""

    decision_id: DecisionId
    response: str = Field(min_length=1, max_length=64)
    expected_decision_count: Optional[int] = Field(
        default=None,
        ge=0,
        description="Reject if the decisions-made log no longer has this many entries",
    )


class TranscriptRequest(BaseModel):
    """Answer to a critical decision given by voice (already transcribed)."""

    decision_id: DecisionId
    transcript: str = Field(min_length=1, max_length=1000)
    expected_decision_count: Optional[int] = Field(default=None, ge=0)


class TranscriptMatchResponse(BaseModel):
    """Result of matching a transcript and, if matched, committing it."""

    matched: bool
    answer: Optional[str] = None
    next_action: NextActionSchema


class StageAdvanceRequest(BaseModel):
    """User-reported progression to a later stage."""

    stage: LaborStage
    expected_stage: Optional[LaborStage] = None


# ===========================================
# Static Content Schemas
# ===========================================

class DecisionOptionSchema(BaseModel):
    value: str
    label: str
    may_escalate: bool


class DecisionPromptSchema(BaseModel):
    decision_id: DecisionId
    question: str
    options: List[DecisionOptionSchema]


class ProtocolStepSchema(BaseModel):
    id: str
    instruction: str
    critical: bool
    requires_confirmation: bool


class ProtocolSchema(BaseModel):
    id: str
    title: str
    is_emergency: bool
    steps: List[ProtocolStepSchema]


# ===========================================
# System Schemas
# ===========================================

class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="healthy | degraded | unhealthy")
    version: str = "0.1.0"
    components: Dict[str, str] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Error body for every engine error."""

    error: str = Field(description="Stable error code")
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
