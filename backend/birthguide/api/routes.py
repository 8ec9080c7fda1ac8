"""
BirthGuide - REST API Routes

HTTP adapter over the decision engine for a single device. The engine stays
an in-process library; these routes only translate requests into engine
calls and engine results into schemas.

Architecture:
    All operations flow through the LaborSessionEngine stored on app.state.
    Engine errors (BirthGuideError) are rendered by the exception handler
    registered in main.create_app, using each error's code and status.
"""

from typing import List

from fastapi import APIRouter, Depends, Request, status
import logging

from birthguide import __version__
from birthguide.config import Settings
from birthguide.content.protocols import get_decision_prompt, get_protocol
from birthguide.core.decisions import DECISION_CATALOG
from birthguide.core.engine import LaborSessionEngine
from birthguide.core.exceptions import NoActiveSessionError, UnknownProtocolError
from birthguide.core.types import LaborState, NextAction
from birthguide.services.intent_matcher import IntentMatcher

from .schemas import (
    AssessmentRequest,
    DecisionPromptSchema,
    DecisionResponseRequest,
    ErrorResponse,
    HealthResponse,
    LaborStateSchema,
    NextActionSchema,
    ProtocolSchema,
    StageAdvanceRequest,
    TranscriptMatchResponse,
    TranscriptRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["api"],
    responses={
        404: {"model": ErrorResponse, "description": "No active session or unknown resource"},
        409: {"model": ErrorResponse, "description": "Stale state or invalid stage transition"},
        503: {"model": ErrorResponse, "description": "Session state could not be persisted"},
    },
)


# =============================================================================
# Dependencies
# =============================================================================

def get_engine(request: Request) -> LaborSessionEngine:
    """Dependency to get the decision engine from app state."""
    return request.app.state.engine


def get_intent_matcher(request: Request) -> IntentMatcher:
    """Dependency to get the intent matcher from app state."""
    return request.app.state.intent_matcher


def get_settings(request: Request) -> Settings:
    """Dependency to get settings from app state."""
    return request.app.state.settings


# =============================================================================
# Converters (Domain -> API Schema)
# =============================================================================

def state_to_schema(state: LaborState) -> LaborStateSchema:
    return LaborStateSchema.model_validate(state.to_dict())


def action_to_schema(action: NextAction) -> NextActionSchema:
    return NextActionSchema.model_validate(action.to_dict())


# =============================================================================
# Health
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(
    engine: LaborSessionEngine = Depends(get_engine),
    matcher: IntentMatcher = Depends(get_intent_matcher),
    settings: Settings = Depends(get_settings),
):
    """System health check."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        components={
            "api": "operational",
            "engine": "operational",
            "state_backend": settings.state_backend,
            "intent_matcher": matcher.matcher_id,
        },
    )


# =============================================================================
# Session Lifecycle
# =============================================================================

@router.post("/session", response_model=LaborStateSchema, status_code=status.HTTP_201_CREATED)
async def initialize_session(
    request: AssessmentRequest,
    engine: LaborSessionEngine = Depends(get_engine),
):
    """
    Start a new labor session from the initial assessment.

    Replaces any session already stored on this device.
    """
    state = await engine.initialize_session(
        months_pregnant=request.months_pregnant,
        contraction_minutes=request.contraction_minutes,
        water_broken=request.water_broken,
        urge_to_push=request.urge_to_push,
    )
    return state_to_schema(state)


@router.get("/session", response_model=LaborStateSchema)
async def get_session(engine: LaborSessionEngine = Depends(get_engine)):
    """Current session state."""
    state = await engine.get_current_state()
    if state is None:
        raise NoActiveSessionError("No active labor session")
    return state_to_schema(state)


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
async def end_session(engine: LaborSessionEngine = Depends(get_engine)):
    """Discard the session entirely."""
    await engine.end_session()


# =============================================================================
# Decision Flow
# =============================================================================

@router.get("/session/next-action", response_model=NextActionSchema)
async def next_action(engine: LaborSessionEngine = Depends(get_engine)):
    """
    What to show next: an emergency protocol, a critical question, or
    stage guidance, in that order of precedence.
    """
    return action_to_schema(await engine.determine_next_action())


@router.post("/session/decisions", response_model=NextActionSchema)
async def answer_decision(
    request: DecisionResponseRequest,
    engine: LaborSessionEngine = Depends(get_engine),
):
    """Commit an answer and return the resulting next action."""
    await engine.handle_decision_response(
        request.decision_id,
        request.response,
        expected_decision_count=request.expected_decision_count,
    )
    return action_to_schema(await engine.determine_next_action())


@router.post("/session/decisions/transcript", response_model=TranscriptMatchResponse)
async def answer_decision_by_voice(
    request: TranscriptRequest,
    engine: LaborSessionEngine = Depends(get_engine),
    matcher: IntentMatcher = Depends(get_intent_matcher),
):
    """
    Match a transcript onto the decision's answers and commit it.

    Nothing is recorded when the transcript is inconclusive; the returned
    next action then still asks the same question.
    """
    answer = matcher.match(request.decision_id, request.transcript)

    if answer is not None:
        await engine.handle_decision_response(
            request.decision_id,
            answer,
            expected_decision_count=request.expected_decision_count,
        )
    else:
        logger.info("Transcript did not match any answer for %s", request.decision_id.value)

    return TranscriptMatchResponse(
        matched=answer is not None,
        answer=answer.value if answer is not None else None,
        next_action=action_to_schema(await engine.determine_next_action()),
    )


@router.post("/session/stage", response_model=NextActionSchema)
async def advance_stage(
    request: StageAdvanceRequest,
    engine: LaborSessionEngine = Depends(get_engine),
):
    """Move the session forward to a user-reported stage."""
    await engine.advance_to_stage(request.stage, expected_stage=request.expected_stage)
    return action_to_schema(await engine.determine_next_action())


@router.post("/session/emergency/clear", response_model=NextActionSchema)
async def clear_emergency(engine: LaborSessionEngine = Depends(get_engine)):
    """Called by the emergency protocol flow once it is completed or exited."""
    await engine.clear_emergency()
    return action_to_schema(await engine.determine_next_action())


# =============================================================================
# Static Content
# =============================================================================

@router.get("/decisions", response_model=List[DecisionPromptSchema])
async def list_decisions():
    """The critical decisions in priority order, with their options."""
    return [get_decision_prompt(d.id) for d in DECISION_CATALOG]


@router.get("/protocols/{protocol_id}", response_model=ProtocolSchema)
async def read_protocol(protocol_id: str):
    """A guidance or emergency protocol by id."""
    protocol = get_protocol(protocol_id)
    if protocol is None:
        raise UnknownProtocolError(
            f"Protocol {protocol_id} not found",
            details={"protocol_id": protocol_id},
        )
    return protocol.to_dict()
