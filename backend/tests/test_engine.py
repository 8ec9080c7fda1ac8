"""
BirthGuide - Labor Session Engine Tests

These tests verify:
- Session lifecycle and restore from the store
- Next-action priority (emergency > ask > guide)
- Emergency escalation and the retained-placenta time limit
- Sticky emergencies and the append-only decision log
- Strict vs permissive answers, optimistic concurrency, atomic saves

Run with: pytest tests/test_engine.py -v
"""

import asyncio
import logging

import pytest

from birthguide.core.engine import NOTICE_CONTINUE_BREASTFEEDING, LaborSessionEngine
from birthguide.core.exceptions import (
    InvalidAnswerError,
    InvalidAssessmentError,
    InvalidStageTransitionError,
    NoActiveSessionError,
    PersistenceError,
    StaleStateError,
    UnknownDecisionError,
    ValidationError,
)
from birthguide.core.types import (
    BleedingAnswer,
    DecisionId,
    EmergencyType,
    LaborStage,
    NextActionKind,
    PresentationAnswer,
)

from conftest import SESSION_KEY


# =============================================================================
# Session Lifecycle
# =============================================================================

class TestSessionLifecycle:

    @pytest.mark.asyncio
    async def test_initialize_classifies_and_persists(self, engine, store, clock):
        """Imminent birth: urge to push goes straight to pushing."""
        state = await engine.initialize_session(9, 1, True, True)

        assert state.stage == LaborStage.PUSHING
        assert state.session_id.startswith("session_")
        assert state.decisions_made == []
        assert state.emergency_active is False
        assert state.labor_start_timestamp == clock()
        assert state.last_updated == clock()

        persisted = await store.load(SESSION_KEY)
        assert persisted == state

    @pytest.mark.asyncio
    async def test_first_action_when_pushing_is_presentation(self, engine):
        await engine.initialize_session(9, 1, True, True)
        action = await engine.determine_next_action()

        assert action.action == NextActionKind.ASK
        assert action.decision_id == DecisionId.PRESENTATION
        assert action.content["prompt"]["decision_id"] == "presentation"

    @pytest.mark.asyncio
    async def test_initialize_replaces_previous_session(self, engine):
        first = await engine.initialize_session(9, 4, False, False)
        await engine.handle_decision_response(DecisionId.BLEEDING, "normal")

        second = await engine.initialize_session(8, 10, False, False)
        current = await engine.get_current_state()

        assert second.session_id != first.session_id
        assert current.stage == LaborStage.EARLY
        assert current.decisions_made == []

    @pytest.mark.asyncio
    async def test_initialize_rejects_bad_assessment(self, engine, store):
        with pytest.raises(InvalidAssessmentError):
            await engine.initialize_session(12, 4, False, False)
        assert await store.load(SESSION_KEY) is None

    @pytest.mark.asyncio
    async def test_get_current_state_without_session(self, engine):
        assert await engine.get_current_state() is None

    @pytest.mark.asyncio
    async def test_get_current_state_is_idempotent(self, engine):
        await engine.initialize_session(9, 4, False, False)
        first = await engine.get_current_state()
        second = await engine.get_current_state()
        assert first == second

    @pytest.mark.asyncio
    async def test_returned_state_is_a_copy(self, engine):
        await engine.initialize_session(9, 4, False, False)
        state = await engine.get_current_state()
        state.stage = LaborStage.POSTPARTUM
        state.emergency_active = True

        current = await engine.get_current_state()
        assert current.stage == LaborStage.ACTIVE
        assert current.emergency_active is False

    @pytest.mark.asyncio
    async def test_restore_from_store_with_new_engine(self, engine, store, clock):
        await engine.initialize_session(9, 4, False, False)
        await engine.handle_decision_response(DecisionId.BLEEDING, BleedingAnswer.SEVERE)

        restarted = LaborSessionEngine(store=store, session_key=SESSION_KEY, clock=clock)
        state = await restarted.get_current_state()

        assert state.emergency_active is True
        assert state.emergency_type == EmergencyType.HEMORRHAGE
        action = await restarted.determine_next_action()
        assert action.action == NextActionKind.EMERGENCY

    @pytest.mark.asyncio
    async def test_end_session(self, engine, store):
        await engine.initialize_session(9, 4, False, False)
        await engine.end_session()

        assert await engine.get_current_state() is None
        assert await store.load(SESSION_KEY) is None
        with pytest.raises(NoActiveSessionError):
            await engine.determine_next_action()

    @pytest.mark.asyncio
    async def test_operations_without_session(self, engine):
        with pytest.raises(NoActiveSessionError):
            await engine.handle_decision_response(DecisionId.BLEEDING, "normal")
        with pytest.raises(NoActiveSessionError):
            await engine.advance_to_stage(LaborStage.ACTIVE)
        with pytest.raises(NoActiveSessionError):
            await engine.clear_emergency()

    @pytest.mark.asyncio
    async def test_missing_session_reported_before_bad_input(self, engine):
        """Callers without a session are told to restart, whatever they sent."""
        with pytest.raises(NoActiveSessionError):
            await engine.handle_decision_response(DecisionId.BLEEDING, "maybe")
        with pytest.raises(NoActiveSessionError):
            await engine.handle_decision_response("contractions", "yes")
        with pytest.raises(NoActiveSessionError):
            await engine.advance_to_stage("crowning")


# =============================================================================
# Next Action Priority
# =============================================================================

class TestNextAction:

    @pytest.mark.asyncio
    async def test_emergency_wins_over_pending_questions(self, engine, store, make_state):
        await store.save(
            SESSION_KEY,
            make_state(stage=LaborStage.PUSHING, emergency_type=EmergencyType.BREECH),
        )
        action = await engine.determine_next_action()

        assert action.action == NextActionKind.EMERGENCY
        assert action.emergency_type == EmergencyType.BREECH
        assert action.content["protocol"]["id"] == "breech"

    @pytest.mark.asyncio
    async def test_guide_when_nothing_pending(self, engine, store, make_state):
        await store.save(
            SESSION_KEY,
            make_state(stage=LaborStage.ACTIVE, decisions=[("bleeding", "normal")]),
        )
        action = await engine.determine_next_action()

        assert action.action == NextActionKind.GUIDE
        assert action.stage == LaborStage.ACTIVE
        assert action.content["protocol"]["id"] == "active_labor"
        assert action.content["notices"] == []

    @pytest.mark.asyncio
    async def test_bleeding_not_asked_again_after_stage_change(self, engine):
        await engine.initialize_session(9, 8, False, False)
        await engine.handle_decision_response(DecisionId.BLEEDING, "normal")
        await engine.advance_to_stage(LaborStage.ACTIVE)

        action = await engine.determine_next_action()
        assert action.action == NextActionKind.GUIDE

    @pytest.mark.asyncio
    async def test_determine_next_action_does_not_mutate(self, engine, store):
        await engine.initialize_session(9, 4, False, False)
        before = await store.load(SESSION_KEY)

        await engine.determine_next_action()
        await engine.determine_next_action()

        assert await store.load(SESSION_KEY) == before


# =============================================================================
# Emergency Escalation
# =============================================================================

class TestEmergencyEscalation:

    @pytest.mark.asyncio
    async def test_breech_presentation(self, engine):
        await engine.initialize_session(9, 1, True, True)
        await engine.handle_decision_response(DecisionId.PRESENTATION, PresentationAnswer.BREECH)

        state = await engine.get_current_state()
        assert state.emergency_active is True
        assert state.emergency_type == EmergencyType.BREECH
        assert state.stage == LaborStage.PUSHING

        action = await engine.determine_next_action()
        assert action.action == NextActionKind.EMERGENCY
        assert action.emergency_type == EmergencyType.BREECH

    @pytest.mark.asyncio
    async def test_other_presentation_is_cord_prolapse(self, engine):
        await engine.initialize_session(9, 1, True, True)
        await engine.handle_decision_response("presentation", "other")

        state = await engine.get_current_state()
        assert state.emergency_type == EmergencyType.CORD_PROLAPSE

    @pytest.mark.asyncio
    async def test_baby_not_breathing(self, engine, store, make_state):
        await store.save(
            SESSION_KEY,
            make_state(stage=LaborStage.BIRTH, birth_minutes_ago=1, decisions=[("bleeding", "normal")]),
        )
        await engine.handle_decision_response(DecisionId.BABY_BREATHING, "no")

        state = await engine.get_current_state()
        assert state.emergency_type == EmergencyType.RESUSCITATION
        assert state.stage == LaborStage.BIRTH

    @pytest.mark.asyncio
    async def test_placenta_not_delivered_within_limit(self, engine, store, make_state):
        await store.save(
            SESSION_KEY,
            make_state(
                stage=LaborStage.POSTPARTUM,
                birth_minutes_ago=40,
                decisions=[("bleeding", "normal"), ("baby_breathing", "yes")],
            ),
        )
        await engine.handle_decision_response(DecisionId.PLACENTA, "no")

        state = await engine.get_current_state()
        assert state.emergency_active is False
        assert state.decisions_made[-1].decision_id == DecisionId.PLACENTA
        assert state.decisions_made[-1].response == "no"

        action = await engine.determine_next_action()
        assert action.action == NextActionKind.GUIDE
        assert action.content["protocol"]["id"] == "postpartum"
        assert NOTICE_CONTINUE_BREASTFEEDING in action.content["notices"]

    @pytest.mark.asyncio
    async def test_placenta_retained_past_limit(self, engine, store, make_state):
        await store.save(
            SESSION_KEY,
            make_state(
                stage=LaborStage.POSTPARTUM,
                birth_minutes_ago=65,
                decisions=[("bleeding", "normal"), ("baby_breathing", "yes")],
            ),
        )
        await engine.handle_decision_response(DecisionId.PLACENTA, "no")

        state = await engine.get_current_state()
        assert state.emergency_active is True
        assert state.emergency_type == EmergencyType.RETAINED_PLACENTA

    @pytest.mark.asyncio
    async def test_placenta_limit_uses_clock(self, engine, clock):
        await engine.initialize_session(9, 1, True, True)
        await engine.handle_decision_response(DecisionId.PRESENTATION, "head")
        await engine.handle_decision_response(DecisionId.BLEEDING, "normal")
        await engine.handle_decision_response(DecisionId.CROWNING, "yes")
        await engine.advance_to_stage(LaborStage.BIRTH)
        await engine.handle_decision_response(DecisionId.BABY_BREATHING, "yes")

        clock.advance(61)
        await engine.handle_decision_response(DecisionId.PLACENTA, "no")

        state = await engine.get_current_state()
        assert state.emergency_type == EmergencyType.RETAINED_PLACENTA

    @pytest.mark.asyncio
    async def test_placenta_without_birth_time_does_not_escalate(self, engine, store, make_state):
        await store.save(SESSION_KEY, make_state(stage=LaborStage.POSTPARTUM))
        await engine.handle_decision_response(DecisionId.PLACENTA, "no")

        state = await engine.get_current_state()
        assert state.emergency_active is False

    @pytest.mark.asyncio
    async def test_custom_placenta_limit(self, store, clock, make_state):
        engine = LaborSessionEngine(
            store=store, session_key=SESSION_KEY, retained_placenta_minutes=30, clock=clock
        )
        await store.save(
            SESSION_KEY, make_state(stage=LaborStage.POSTPARTUM, birth_minutes_ago=40)
        )
        await engine.handle_decision_response(DecisionId.PLACENTA, "no")

        state = await engine.get_current_state()
        assert state.emergency_type == EmergencyType.RETAINED_PLACENTA

    @pytest.mark.asyncio
    async def test_stuck_head_is_recorded_without_escalation(self, engine, caplog):
        await engine.initialize_session(9, 1, True, True)
        await engine.handle_decision_response(DecisionId.PRESENTATION, "head")
        await engine.handle_decision_response(DecisionId.BLEEDING, "normal")

        with caplog.at_level(logging.WARNING, logger="birthguide.core.engine"):
            await engine.handle_decision_response(DecisionId.CROWNING, "stuck")

        state = await engine.get_current_state()
        assert state.emergency_active is False
        assert state.stage == LaborStage.PUSHING
        assert state.has_response(DecisionId.CROWNING, "stuck")
        assert any("stuck" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_escalation_logs_warning(self, engine, caplog):
        await engine.initialize_session(9, 4, False, False)
        with caplog.at_level(logging.WARNING, logger="birthguide.core.engine"):
            await engine.handle_decision_response(DecisionId.BLEEDING, "severe")

        records = [r for r in caplog.records if r.getMessage() == "Emergency escalated"]
        assert len(records) == 1
        assert records[0].data["emergency_type"] == "hemorrhage"


# =============================================================================
# Invariants
# =============================================================================

class TestInvariants:

    @pytest.mark.asyncio
    async def test_emergency_is_sticky(self, engine, store, make_state):
        await store.save(
            SESSION_KEY,
            make_state(stage=LaborStage.BIRTH, emergency_type=EmergencyType.HEMORRHAGE),
        )
        await engine.handle_decision_response(DecisionId.BABY_BREATHING, "yes")
        await engine.handle_decision_response(DecisionId.BLEEDING, "normal")

        state = await engine.get_current_state()
        assert state.emergency_active is True
        assert state.emergency_type == EmergencyType.HEMORRHAGE

    @pytest.mark.asyncio
    async def test_emergency_survives_manual_advance(self, engine, store, make_state):
        await store.save(
            SESSION_KEY,
            make_state(stage=LaborStage.PUSHING, emergency_type=EmergencyType.BREECH),
        )
        await engine.advance_to_stage(LaborStage.BIRTH)
        await engine.handle_decision_response(DecisionId.BABY_BREATHING, "yes")

        state = await engine.get_current_state()
        assert state.stage == LaborStage.POSTPARTUM
        assert state.emergency_active is True
        assert state.emergency_type == EmergencyType.BREECH

    @pytest.mark.asyncio
    async def test_newer_emergency_replaces_type(self, engine, store, make_state):
        await store.save(
            SESSION_KEY,
            make_state(stage=LaborStage.BIRTH, emergency_type=EmergencyType.HEMORRHAGE),
        )
        await engine.handle_decision_response(DecisionId.BABY_BREATHING, "no")

        state = await engine.get_current_state()
        assert state.emergency_active is True
        assert state.emergency_type == EmergencyType.RESUSCITATION

    @pytest.mark.asyncio
    async def test_decision_log_is_append_only(self, engine):
        await engine.initialize_session(9, 1, True, True)
        answers = [
            (DecisionId.PRESENTATION, "head"),
            (DecisionId.BLEEDING, "normal"),
            (DecisionId.CROWNING, "yes"),
        ]
        seen = []
        for decision_id, response in answers:
            await engine.handle_decision_response(decision_id, response)
            state = await engine.get_current_state()
            assert state.decisions_made[: len(seen)] == seen
            seen = list(state.decisions_made)

        assert [(r.decision_id, r.response) for r in seen] == answers

    @pytest.mark.asyncio
    async def test_repeated_answer_is_appended_first_wins(self, engine):
        await engine.initialize_session(9, 4, False, False)
        await engine.handle_decision_response(DecisionId.BLEEDING, "normal")
        await engine.handle_decision_response(DecisionId.BLEEDING, "severe")

        state = await engine.get_current_state()
        assert len(state.decisions_made) == 2
        assert state.first_response(DecisionId.BLEEDING) == "normal"
        assert state.emergency_type == EmergencyType.HEMORRHAGE

    @pytest.mark.asyncio
    async def test_last_updated_moves_with_every_write(self, engine, clock):
        await engine.initialize_session(9, 4, False, False)
        clock.advance(3)
        await engine.handle_decision_response(DecisionId.BLEEDING, "normal")

        state = await engine.get_current_state()
        assert state.last_updated == clock()
        assert state.labor_start_timestamp < state.last_updated


# =============================================================================
# Stage Progression
# =============================================================================

class TestStageProgression:

    @pytest.mark.asyncio
    async def test_breathing_baby_moves_to_postpartum(self, engine, store, make_state, clock):
        await store.save(SESSION_KEY, make_state(stage=LaborStage.BIRTH))
        await engine.handle_decision_response(DecisionId.BABY_BREATHING, "yes")

        state = await engine.get_current_state()
        assert state.stage == LaborStage.POSTPARTUM
        assert state.birth_timestamp == clock()

    @pytest.mark.asyncio
    async def test_birth_timestamp_set_once(self, engine, clock):
        await engine.initialize_session(9, 1, True, True)
        await engine.advance_to_stage(LaborStage.BIRTH)
        born_at = clock()

        clock.advance(5)
        await engine.handle_decision_response(DecisionId.BABY_BREATHING, "yes")

        state = await engine.get_current_state()
        assert state.stage == LaborStage.POSTPARTUM
        assert state.birth_timestamp == born_at

    @pytest.mark.asyncio
    async def test_backwards_transition_is_rejected(self, engine, store, make_state):
        await store.save(SESSION_KEY, make_state(stage=LaborStage.POSTPARTUM, birth_minutes_ago=10))
        before = await engine.get_current_state()

        with pytest.raises(InvalidStageTransitionError):
            await engine.advance_to_stage(LaborStage.EARLY)

        assert await engine.get_current_state() == before
        assert await store.load(SESSION_KEY) == before

    @pytest.mark.asyncio
    async def test_advance_accepts_stage_string(self, engine):
        await engine.initialize_session(9, 8, False, False)
        await engine.advance_to_stage("transition")

        state = await engine.get_current_state()
        assert state.stage == LaborStage.TRANSITION

    @pytest.mark.asyncio
    async def test_advance_rejects_unknown_stage(self, engine):
        await engine.initialize_session(9, 8, False, False)
        with pytest.raises(ValidationError):
            await engine.advance_to_stage("crowning")


# =============================================================================
# Answer Handling
# =============================================================================

class TestAnswerHandling:

    @pytest.mark.asyncio
    async def test_unknown_decision_is_rejected(self, engine):
        await engine.initialize_session(9, 4, False, False)
        with pytest.raises(UnknownDecisionError):
            await engine.handle_decision_response("contractions", "yes")

    @pytest.mark.asyncio
    async def test_strict_rejects_unknown_answer(self, engine):
        await engine.initialize_session(9, 4, False, False)
        with pytest.raises(InvalidAnswerError):
            await engine.handle_decision_response(DecisionId.BLEEDING, "a little")

        state = await engine.get_current_state()
        assert state.decisions_made == []

    @pytest.mark.asyncio
    async def test_permissive_records_unknown_answer(self, permissive_engine):
        await permissive_engine.initialize_session(9, 4, False, False)
        await permissive_engine.handle_decision_response(DecisionId.BLEEDING, "a little")

        state = await permissive_engine.get_current_state()
        assert state.decisions_made[0].response == "a little"
        assert state.emergency_active is False

        # The decision counts as answered
        action = await permissive_engine.determine_next_action()
        assert action.action == NextActionKind.GUIDE

    @pytest.mark.asyncio
    async def test_answers_are_normalized(self, engine):
        await engine.initialize_session(9, 4, False, False)
        await engine.handle_decision_response(DecisionId.BLEEDING, " SEVERE ")

        state = await engine.get_current_state()
        assert state.decisions_made[0].response == "severe"
        assert state.emergency_type == EmergencyType.HEMORRHAGE


# =============================================================================
# Concurrency & Persistence
# =============================================================================

class TestConcurrency:

    @pytest.mark.asyncio
    async def test_stale_decision_count_is_rejected(self, engine):
        await engine.initialize_session(9, 4, False, False)
        await engine.handle_decision_response(DecisionId.BLEEDING, "normal", expected_decision_count=0)

        with pytest.raises(StaleStateError) as exc_info:
            await engine.handle_decision_response(
                DecisionId.BLEEDING, "severe", expected_decision_count=0
            )
        assert exc_info.value.details["actual_decision_count"] == 1

        state = await engine.get_current_state()
        assert len(state.decisions_made) == 1
        assert state.emergency_active is False

    @pytest.mark.asyncio
    async def test_stale_stage_is_rejected(self, engine):
        await engine.initialize_session(9, 8, False, False)
        await engine.advance_to_stage(LaborStage.ACTIVE, expected_stage=LaborStage.EARLY)

        with pytest.raises(StaleStateError):
            await engine.advance_to_stage(LaborStage.TRANSITION, expected_stage=LaborStage.EARLY)

    @pytest.mark.asyncio
    async def test_concurrent_answers_are_serialized(self, engine):
        await engine.initialize_session(9, 1, True, True)
        await asyncio.gather(
            engine.handle_decision_response(DecisionId.PRESENTATION, "head"),
            engine.handle_decision_response(DecisionId.BLEEDING, "normal"),
            engine.handle_decision_response(DecisionId.CROWNING, "yes"),
        )

        state = await engine.get_current_state()
        assert len(state.decisions_made) == 3

    @pytest.mark.asyncio
    async def test_failed_save_leaves_state_unchanged(self, flaky_store, clock):
        engine = LaborSessionEngine(store=flaky_store, session_key=SESSION_KEY, clock=clock)
        await engine.initialize_session(9, 4, False, False)
        before = await engine.get_current_state()

        flaky_store.fail_saves = True
        with pytest.raises(PersistenceError):
            await engine.handle_decision_response(DecisionId.BLEEDING, "severe")
        with pytest.raises(PersistenceError):
            await engine.advance_to_stage(LaborStage.TRANSITION)

        assert await engine.get_current_state() == before
        assert await flaky_store.load(SESSION_KEY) == before

    @pytest.mark.asyncio
    async def test_failed_initialize_keeps_previous_session(self, flaky_store, clock):
        engine = LaborSessionEngine(store=flaky_store, session_key=SESSION_KEY, clock=clock)
        first = await engine.initialize_session(9, 4, False, False)

        flaky_store.fail_saves = True
        with pytest.raises(PersistenceError):
            await engine.initialize_session(9, 1, True, True)

        state = await engine.get_current_state()
        assert state.session_id == first.session_id


# =============================================================================
# Emergency Clear
# =============================================================================

class TestClearEmergency:

    @pytest.mark.asyncio
    async def test_clear_resets_flag_and_type(self, engine, store, make_state):
        await store.save(
            SESSION_KEY,
            make_state(stage=LaborStage.PUSHING, decisions=[("presentation", "breech")],
                       emergency_type=EmergencyType.BREECH),
        )
        await engine.clear_emergency()

        state = await engine.get_current_state()
        assert state.emergency_active is False
        assert state.emergency_type is None
        assert len(state.decisions_made) == 1

        # Breech answer stays recorded, so presentation is not asked again
        action = await engine.determine_next_action()
        assert action.decision_id == DecisionId.BLEEDING

    @pytest.mark.asyncio
    async def test_clear_without_emergency_is_noop(self, flaky_store, clock):
        engine = LaborSessionEngine(store=flaky_store, session_key=SESSION_KEY, clock=clock)
        await engine.initialize_session(9, 4, False, False)
        calls = flaky_store.save_calls

        await engine.clear_emergency()
        assert flaky_store.save_calls == calls
