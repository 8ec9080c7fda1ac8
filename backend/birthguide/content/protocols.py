"""
BirthGuide - Static Guidance Content

Question prompts for the critical decisions, stage guidance and emergency
protocols. This is static data: the engine selects it, never computes it.

IMPORTANT SAFETY NOTICE:
    This is PLACEHOLDER content. All protocol steps must be reviewed and
    approved by licensed midwives or OB/GYN professionals before real use.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from birthguide.core.decisions import get_decision
from birthguide.core.types import DecisionId, EmergencyType, LaborStage


# =============================================================================
# Types
# =============================================================================

@dataclass(frozen=True)
class ProtocolStep:
    """A single instruction within a protocol."""
    id: str
    instruction: str
    critical: bool = False
    requires_confirmation: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "instruction": self.instruction,
            "critical": self.critical,
            "requires_confirmation": self.requires_confirmation,
        }


@dataclass(frozen=True)
class CareProtocol:
    """An ordered set of steps shown as guidance or as an emergency procedure."""
    id: str
    title: str
    is_emergency: bool
    steps: Tuple[ProtocolStep, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "is_emergency": self.is_emergency,
            "steps": [s.to_dict() for s in self.steps],
        }


def _steps(*instructions: str, critical: int = 0, confirm: int = 0) -> Tuple[ProtocolStep, ...]:
    """Number the steps; the first ``critical``/``confirm`` steps get the flag."""
    return tuple(
        ProtocolStep(
            id=f"step_{i}",
            instruction=text,
            critical=i <= critical,
            requires_confirmation=i <= confirm,
        )
        for i, text in enumerate(instructions, start=1)
    )


# =============================================================================
# Emergency Protocols
# =============================================================================

HEMORRHAGE_PROTOCOL = CareProtocol(
    id=EmergencyType.HEMORRHAGE.value,
    title="Severe bleeding",
    is_emergency=True,
    steps=_steps(
        "Lie down on your back now.",
        "Place both hands on your belly above the navel and press firmly.",
        "Ask someone to call emergency services immediately.",
        "Keep pressing on your belly until help arrives.",
        critical=4,
        confirm=2,
    ),
)

BREECH_PROTOCOL = CareProtocol(
    id=EmergencyType.BREECH.value,
    title="Breech birth",
    is_emergency=True,
    steps=_steps(
        "Do not push! Stop pushing now.",
        "Get onto your hands and knees.",
        "Lower your head and chest to the floor, keeping your hips raised.",
        "Ask someone to call emergency services immediately.",
        "Stay in this position until medical help arrives.",
        critical=5,
        confirm=3,
    ),
)

CORD_PROLAPSE_PROTOCOL = CareProtocol(
    id=EmergencyType.CORD_PROLAPSE.value,
    title="Cord prolapse",
    is_emergency=True,
    steps=_steps(
        "Do not push! Stop pushing now.",
        "Get onto your hands and knees.",
        "Lower your head and chest to the floor, keeping your hips raised high.",
        "Do not touch the cord or the arm.",
        "Ask someone to call emergency services immediately. This is critical.",
        "Stay on your knees until help arrives.",
        critical=6,
        confirm=3,
    ),
)

RESUSCITATION_PROTOCOL = CareProtocol(
    id=EmergencyType.RESUSCITATION.value,
    title="Newborn not breathing",
    is_emergency=True,
    steps=_steps(
        "Lay the baby on its back on a firm, flat surface.",
        "Gently wipe the baby's nose and mouth with a clean cloth.",
        "Rub the baby's back and feet firmly to stimulate breathing.",
        "Ask someone to call emergency services immediately.",
        "If the baby does not breathe within 30 seconds, start infant CPR.",
        critical=5,
        confirm=3,
    ),
)

RETAINED_PLACENTA_PROTOCOL = CareProtocol(
    id=EmergencyType.RETAINED_PLACENTA.value,
    title="Retained placenta",
    is_emergency=True,
    steps=_steps(
        "Sit half-upright with your knees bent.",
        "Try to breastfeed the baby; this helps the womb contract.",
        "Do not pull on the cord.",
        "Ask someone to call emergency services.",
        "Watch the bleeding and keep breastfeeding until help arrives.",
        critical=4,
        confirm=1,
    ),
)


# =============================================================================
# Stage Guidance
# =============================================================================

EARLY_LABOR_GUIDANCE = CareProtocol(
    id="early_labor",
    title="Early labor",
    is_emergency=False,
    steps=_steps(
        "Stay calm and comfortable. Early labor can last several hours.",
        "Move freely. Walking helps labor progress.",
        "Drink water regularly.",
        "Breathe slowly and deeply with each contraction.",
        "Time the gap between contractions. You will be asked about it later.",
    ),
)

ACTIVE_LABOR_GUIDANCE = CareProtocol(
    id="active_labor",
    title="Active labor",
    is_emergency=False,
    steps=_steps(
        "Find the most comfortable position. Try several.",
        "Breathe deeply with each contraction. A long exhale helps.",
        "Take small sips of water between contractions.",
        "Let someone massage your lower back if it helps.",
        "Empty your bladder regularly.",
    ),
)

PUSHING_GUIDANCE = CareProtocol(
    id="pushing",
    title="Pushing",
    is_emergency=False,
    steps=_steps(
        "Push only when you feel a strong urge.",
        "Take a deep breath, hold it and push downwards.",
        "Push for 10 seconds, breathe, then push again.",
        "Rest between contractions.",
        "When the head shows, stop pushing and pant. Let the head come out slowly.",
    ),
)

POSTPARTUM_GUIDANCE = CareProtocol(
    id="postpartum",
    title="After the birth",
    is_emergency=False,
    steps=_steps(
        "Place the baby directly on your chest. Skin contact matters.",
        "Dry the baby with a clean, warm towel.",
        "Cover yourself and the baby with a blanket.",
        "Try to breastfeed. This helps the placenta come out.",
        "Wait for the placenta. It usually comes within 30 minutes.",
        "Watch the bleeding. A little blood is normal.",
    ),
)


PROTOCOLS: Dict[str, CareProtocol] = {
    p.id: p
    for p in (
        HEMORRHAGE_PROTOCOL,
        BREECH_PROTOCOL,
        CORD_PROLAPSE_PROTOCOL,
        RESUSCITATION_PROTOCOL,
        RETAINED_PLACENTA_PROTOCOL,
        EARLY_LABOR_GUIDANCE,
        ACTIVE_LABOR_GUIDANCE,
        PUSHING_GUIDANCE,
        POSTPARTUM_GUIDANCE,
    )
}

# Transition shares active-labor guidance; birth has none (breathing is asked first)
_STAGE_PROTOCOLS: Dict[LaborStage, str] = {
    LaborStage.EARLY: EARLY_LABOR_GUIDANCE.id,
    LaborStage.ACTIVE: ACTIVE_LABOR_GUIDANCE.id,
    LaborStage.TRANSITION: ACTIVE_LABOR_GUIDANCE.id,
    LaborStage.PUSHING: PUSHING_GUIDANCE.id,
    LaborStage.POSTPARTUM: POSTPARTUM_GUIDANCE.id,
}


def get_protocol(protocol_id: str) -> Optional[CareProtocol]:
    return PROTOCOLS.get(protocol_id)


def get_protocol_by_emergency(emergency_type: EmergencyType) -> CareProtocol:
    return PROTOCOLS[emergency_type.value]


def get_protocol_by_stage(stage: LaborStage) -> Optional[CareProtocol]:
    protocol_id = _STAGE_PROTOCOLS.get(stage)
    return PROTOCOLS[protocol_id] if protocol_id else None


# =============================================================================
# Decision Prompts
# =============================================================================

_QUESTIONS: Dict[DecisionId, str] = {
    DecisionId.PRESENTATION: "Look down. Do you see the baby's head or its bottom?",
    DecisionId.BLEEDING: "How would you describe the bleeding right now?",
    DecisionId.CROWNING: "Does the baby's head show and then go back between contractions?",
    DecisionId.BABY_BREATHING: "The baby is out. Is it crying and breathing?",
    DecisionId.PLACENTA: "Has the placenta come out?",
}

_OPTION_LABELS: Dict[DecisionId, Dict[str, str]] = {
    DecisionId.PRESENTATION: {
        "head": "Head",
        "breech": "Bottom / foot",
        "other": "Something else (cord or arm)",
        "unknown": "I don't know",
    },
    DecisionId.BLEEDING: {
        "normal": "Light / moderate",
        "severe": "Heavy (soaks a pad in 5 minutes)",
    },
    DecisionId.CROWNING: {
        "yes": "Yes",
        "stuck": "No (the head is stuck)",
    },
    DecisionId.BABY_BREATHING: {"yes": "Yes", "no": "No"},
    DecisionId.PLACENTA: {"yes": "Yes", "no": "No"},
}


def get_decision_prompt(decision_id: DecisionId) -> Dict[str, Any]:
    """Question text and answer options for a decision."""
    decision = get_decision(decision_id)
    labels = _OPTION_LABELS[decision.id]
    options: List[Dict[str, Any]] = [
        {
            "value": value,
            "label": labels[value],
            "may_escalate": decision.is_trigger(value),
        }
        for value in decision.options
    ]
    return {
        "decision_id": decision.id.value,
        "question": _QUESTIONS[decision.id],
        "options": options,
    }
