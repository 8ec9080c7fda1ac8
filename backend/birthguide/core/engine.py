"""
BirthGuide - Labor Session Engine

Central orchestration layer of the decision engine. This is the single entry
point for screens, voice flows and the HTTP adapter.

Architecture:
    determine_next_action() resolves, in this fixed order:

    1. EMERGENCY: an active emergency always wins
    2. ASK: the next applicable, unanswered critical decision
    3. GUIDE: stage guidance when nothing else is pending

    handle_decision_response() records an answer, escalates when the answer
    triggers an emergency, and otherwise applies stage progression.

Design Principles:
    - Explicit ownership: the engine is an object the caller owns, not a
      module-level singleton, so tests and sessions stay isolated
    - Serialized writes: one asyncio.Lock guards every mutation
    - All-or-nothing: each mutation works on a copy that only becomes the
      current state after the store accepted it
    - Sticky emergencies: only clear_emergency() resets the emergency flag

Usage:
    from birthguide.core.engine import LaborSessionEngine
    from birthguide.core.state_store import InMemoryLaborStateStore

    engine = LaborSessionEngine(store=InMemoryLaborStateStore())
    await engine.initialize_session(9, 4, True, False)

    action = await engine.determine_next_action()
    if action.action == NextActionKind.ASK:
        await engine.handle_decision_response(action.decision_id, "normal")
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from birthguide.config import Settings
from birthguide.content.protocols import (
    get_decision_prompt,
    get_protocol_by_emergency,
    get_protocol_by_stage,
)
from birthguide.core.decisions import DecisionPoint, get_decision, parse_answer, resolve_emergency
from birthguide.core.evaluator import get_next_critical_decision
from birthguide.core.exceptions import (
    InvalidAnswerError,
    NoActiveSessionError,
    PersistenceError,
    StaleStateError,
    ValidationError,
)
from birthguide.core.logging import LogContext, get_logger
from birthguide.core.progression import advance_stage, apply_stage_progression
from birthguide.core.stage_classifier import classify_initial_stage, validate_assessment
from birthguide.core.state_store import LaborStateStore
from birthguide.core.types import (
    Answer,
    DecisionId,
    DecisionRecord,
    LaborStage,
    LaborState,
    NextAction,
    NextActionKind,
    PlacentaAnswer,
    SessionId,
)

logger = get_logger(__name__)


Clock = Callable[[], datetime]
"""Returns the current time as a timezone-aware datetime."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


NOTICE_CONTINUE_BREASTFEEDING = "continue_breastfeeding"


def _parse_stage(stage: Union[LaborStage, str]) -> LaborStage:
    try:
        return LaborStage(stage)
    except ValueError:
        raise ValidationError(
            f"Unknown labor stage: {stage}",
            details={"stage": str(stage), "options": [s.value for s in LaborStage]},
        ) from None


class LaborSessionEngine:
    """
    Decision engine for one device's active labor session.

    Attributes:
        store: Session state store
        session_key: Fixed key of the single active session
        retained_placenta_minutes: Minutes after birth before a missing
            placenta escalates
        strict_answers: Reject answers outside a decision's options
        clock: Time source (injectable for tests)
    """

    def __init__(
        self,
        store: LaborStateStore,
        session_key: str = "labor_state",
        retained_placenta_minutes: int = 60,
        strict_answers: bool = True,
        clock: Clock = utc_now,
    ):
        self._store = store
        self._session_key = session_key
        self._retained_placenta_minutes = retained_placenta_minutes
        self._strict_answers = strict_answers
        self._clock = clock

        self._state: Optional[LaborState] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: LaborStateStore,
        clock: Clock = utc_now,
    ) -> "LaborSessionEngine":
        return cls(
            store=store,
            session_key=settings.session_key,
            retained_placenta_minutes=settings.retained_placenta_minutes,
            strict_answers=settings.strict_answers,
            clock=clock,
        )

    # -------------------------------------------------------------------------
    # Session Lifecycle
    # -------------------------------------------------------------------------

    async def initialize_session(
        self,
        months_pregnant: int,
        contraction_minutes: int,
        water_broken: bool,
        urge_to_push: bool,
    ) -> LaborState:
        """
        Create and persist a new session, replacing any prior one.

        Raises:
            InvalidAssessmentError: If an assessment value is out of range
            PersistenceError: If the new state could not be saved
        """
        validate_assessment(months_pregnant, contraction_minutes)
        stage = classify_initial_stage(
            months_pregnant, contraction_minutes, water_broken, urge_to_push
        )

        now = self._clock()
        state = LaborState(
            session_id=SessionId(f"session_{uuid.uuid4().hex}"),
            stage=stage,
            months_pregnant=months_pregnant,
            contraction_minutes=contraction_minutes,
            water_broken=water_broken,
            urge_to_push=urge_to_push,
            labor_start_timestamp=now,
            last_updated=now,
        )

        async with self._lock:
            with LogContext(session_id=state.session_id, operation="initialize_session"):
                await self._commit(state)
                logger.info(
                    "Labor session started",
                    data={
                        "stage": stage.value,
                        "contraction_minutes": contraction_minutes,
                        "urge_to_push": urge_to_push,
                    },
                )

        return state.copy()

    async def get_current_state(self) -> Optional[LaborState]:
        """Read-only accessor. Loads from the store if not cached."""
        async with self._lock:
            state = await self._load_state()
        return state.copy() if state is not None else None

    async def end_session(self) -> None:
        """Discard the persisted session entirely."""
        async with self._lock:
            session_id = self._state.session_id if self._state else None
            with LogContext(session_id=session_id, operation="end_session"):
                try:
                    await self._store.clear(self._session_key)
                except PersistenceError:
                    logger.exception("Failed to clear labor state")
                    raise
                except Exception as e:
                    logger.exception("Failed to clear labor state")
                    raise PersistenceError("State clear failed") from e
                self._state = None
                logger.info("Labor session ended")

    # -------------------------------------------------------------------------
    # Next Action
    # -------------------------------------------------------------------------

    async def determine_next_action(self) -> NextAction:
        """
        Decide what the caller shows next: emergency, then ask, then guide.

        Raises:
            NoActiveSessionError: If no session exists
        """
        async with self._lock:
            state = await self._require_state()

        if state.emergency_active:
            protocol = (
                get_protocol_by_emergency(state.emergency_type)
                if state.emergency_type is not None else None
            )
            return NextAction(
                action=NextActionKind.EMERGENCY,
                emergency_type=state.emergency_type,
                content={"protocol": protocol.to_dict() if protocol else None},
            )

        decision = get_next_critical_decision(state)
        if decision is not None:
            return NextAction(
                action=NextActionKind.ASK,
                decision_id=decision.id,
                content={"prompt": get_decision_prompt(decision.id)},
            )

        return NextAction(
            action=NextActionKind.GUIDE,
            stage=state.stage,
            content=self._guidance_content(state),
        )

    def _guidance_content(self, state: LaborState) -> Dict[str, Any]:
        protocol = get_protocol_by_stage(state.stage)
        notices = []
        if (
            state.stage == LaborStage.POSTPARTUM
            and state.has_response(DecisionId.PLACENTA, PlacentaAnswer.NO.value)
        ):
            notices.append(NOTICE_CONTINUE_BREASTFEEDING)
        return {
            "protocol": protocol.to_dict() if protocol else None,
            "notices": notices,
        }

    # -------------------------------------------------------------------------
    # Response Handler
    # -------------------------------------------------------------------------

    async def handle_decision_response(
        self,
        decision_id: Union[DecisionId, str],
        response: Union[Answer, str],
        expected_decision_count: Optional[int] = None,
    ) -> None:
        """
        Commit an answer to a critical decision.

        The answer is always appended to the decisions-made log. If it
        triggers an emergency the emergency is raised and stage progression
        is skipped; otherwise the stage progression rules apply.

        Args:
            decision_id: Decision being answered
            response: Typed answer or its raw value
            expected_decision_count: If given, reject the call unless the log
                still has exactly this many entries

        Raises:
            NoActiveSessionError: If no session exists
            UnknownDecisionError: If the decision id is not in the catalog
            InvalidAnswerError: If strict and the answer is not an option
            StaleStateError: If expected_decision_count no longer matches
            PersistenceError: If the updated state could not be saved
        """
        async with self._lock:
            current = await self._require_state()

            with LogContext(session_id=current.session_id, operation="handle_decision_response"):
                decision = get_decision(decision_id)
                value = self._resolve_response(decision, response)

                if (
                    expected_decision_count is not None
                    and len(current.decisions_made) != expected_decision_count
                ):
                    raise StaleStateError(
                        "Decision log changed since it was read",
                        details={
                            "expected_decision_count": expected_decision_count,
                            "actual_decision_count": len(current.decisions_made),
                        },
                    )

                now = self._clock()
                updated = current.copy()
                updated.decisions_made.append(DecisionRecord(decision_id=decision.id, response=value))
                updated.last_updated = now

                if decision.is_trigger(value):
                    minutes_since_birth = updated.minutes_since_birth(now)
                    emergency = resolve_emergency(
                        decision, value, minutes_since_birth, self._retained_placenta_minutes
                    )

                    if emergency is not None:
                        previous = updated.emergency_type
                        updated.emergency_active = True
                        updated.emergency_type = emergency
                        await self._commit(updated)
                        logger.warning(
                            "Emergency escalated",
                            data={
                                "decision_id": decision.id.value,
                                "response": value,
                                "emergency_type": emergency.value,
                                "replaced_emergency_type": previous.value if previous else None,
                            },
                        )
                        return

                    # Trigger without escalation: record only
                    await self._commit(updated)
                    if decision.id == DecisionId.CROWNING:
                        logger.warning(
                            "Head reported stuck; no escalation protocol assigned",
                            data={"decision_id": decision.id.value},
                        )
                    else:
                        logger.info(
                            "Trigger answer below escalation threshold",
                            data={
                                "decision_id": decision.id.value,
                                "minutes_since_birth": minutes_since_birth,
                                "threshold_minutes": self._retained_placenta_minutes,
                            },
                        )
                    return

                previous_stage = updated.stage
                changed = apply_stage_progression(updated, decision.id, value, now)
                await self._commit(updated)

                logger.info(
                    "Decision recorded",
                    data={
                        "decision_id": decision.id.value,
                        # Unrecognised raw answers stay out of the logs
                        "response": value if value in decision.options else None,
                    },
                )
                if changed:
                    logger.info(
                        "Stage advanced by decision",
                        data={"from": previous_stage.value, "to": updated.stage.value},
                    )

    def _resolve_response(self, decision: DecisionPoint, response: Union[Answer, str]) -> str:
        """Typed answer value, or the raw string when permissive and unknown."""
        try:
            return parse_answer(decision.id, response).value
        except InvalidAnswerError:
            if self._strict_answers:
                raise
            raw = response.value if isinstance(response, Enum) else str(response)
            logger.warning(
                "Unrecognised answer recorded without effect",
                data={"decision_id": decision.id.value, "options": list(decision.options)},
            )
            return raw

    # -------------------------------------------------------------------------
    # Manual Stage Advance & Emergency Clear
    # -------------------------------------------------------------------------

    async def advance_to_stage(
        self,
        new_stage: Union[LaborStage, str],
        expected_stage: Optional[Union[LaborStage, str]] = None,
    ) -> None:
        """
        Manually move the session forward (user-reported progression).

        Args:
            new_stage: Target stage
            expected_stage: If given, reject the call unless the session is
                still in this stage

        Raises:
            NoActiveSessionError: If no session exists
            InvalidStageTransitionError: If target is not reachable
            StaleStateError: If expected_stage no longer matches
            PersistenceError: If the updated state could not be saved
        """
        async with self._lock:
            current = await self._require_state()

            with LogContext(session_id=current.session_id, operation="advance_to_stage"):
                target = _parse_stage(new_stage)
                expected = _parse_stage(expected_stage) if expected_stage is not None else None

                if expected is not None and current.stage != expected:
                    raise StaleStateError(
                        "Stage changed since it was read",
                        details={"expected_stage": expected.value, "actual_stage": current.stage.value},
                    )

                updated = current.copy()
                advance_stage(updated, target, self._clock())
                await self._commit(updated)

                logger.info(
                    "Stage advanced manually",
                    data={"from": current.stage.value, "to": target.value},
                )

    async def clear_emergency(self) -> None:
        """
        Reset the emergency flag and type. Called only by the emergency
        protocol flow once the user completed or exited the procedure.

        Raises:
            NoActiveSessionError: If no session exists
            PersistenceError: If the updated state could not be saved
        """
        async with self._lock:
            current = await self._require_state()

            with LogContext(session_id=current.session_id, operation="clear_emergency"):
                if not current.emergency_active:
                    return

                updated = current.copy()
                updated.emergency_active = False
                updated.emergency_type = None
                updated.last_updated = self._clock()
                await self._commit(updated)

                logger.info(
                    "Emergency cleared",
                    data={"emergency_type": current.emergency_type.value if current.emergency_type else None},
                )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    async def _load_state(self) -> Optional[LaborState]:
        if self._state is None:
            try:
                self._state = await self._store.load(self._session_key)
            except PersistenceError:
                logger.exception("Failed to load labor state")
                raise
            except Exception as e:
                logger.exception("Failed to load labor state")
                raise PersistenceError("State load failed") from e
        return self._state

    async def _require_state(self) -> LaborState:
        state = await self._load_state()
        if state is None:
            raise NoActiveSessionError(
                "No active labor session. Call initialize_session first."
            )
        return state

    async def _commit(self, state: LaborState) -> None:
        """Save, then make ``state`` current. A failed save changes nothing."""
        try:
            await self._store.save(self._session_key, state)
        except PersistenceError:
            logger.exception("Failed to save labor state")
            raise
        except Exception as e:
            logger.exception("Failed to save labor state")
            raise PersistenceError("State persistence failed") from e
        self._state = state
