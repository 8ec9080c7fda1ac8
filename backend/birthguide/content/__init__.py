"""
BirthGuide - Static Content Package

Decision prompts, stage guidance and emergency protocols.
"""

from .protocols import (
    ProtocolStep,
    CareProtocol,
    PROTOCOLS,
    get_protocol,
    get_protocol_by_emergency,
    get_protocol_by_stage,
    get_decision_prompt,
)

__all__ = [
    "ProtocolStep",
    "CareProtocol",
    "PROTOCOLS",
    "get_protocol",
    "get_protocol_by_emergency",
    "get_protocol_by_stage",
    "get_decision_prompt",
]
