"""
BirthGuide - Exception Hierarchy

Structured exceptions for consistent error handling across the system.
All exceptions include error codes for API responses.
"""

from typing import Optional


class BirthGuideError(Exception):
    """Base exception for all BirthGuide errors."""

    code: str = "UNKNOWN_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# =============================================================================
# Session Errors
# =============================================================================

class SessionError(BirthGuideError):
    """Error related to the labor session lifecycle."""
    code = "SESSION_ERROR"
    status_code = 400


class NoActiveSessionError(SessionError):
    """No session in memory and no persisted record to load."""
    code = "NO_ACTIVE_SESSION"
    status_code = 404


class StaleStateError(SessionError):
    """Caller acted on a state that has since moved on."""
    code = "STALE_STATE"
    status_code = 409


# =============================================================================
# Stage Errors
# =============================================================================

class StageError(BirthGuideError):
    """Error related to labor stage progression."""
    code = "STAGE_ERROR"
    status_code = 400


class InvalidStageTransitionError(StageError):
    """Target stage is not reachable from the current stage."""
    code = "INVALID_STAGE_TRANSITION"
    status_code = 409


# =============================================================================
# Persistence Errors
# =============================================================================

class PersistenceError(BirthGuideError):
    """Underlying state store read or write failed."""
    code = "PERSISTENCE_ERROR"
    status_code = 503


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(BirthGuideError):
    """Input validation error."""
    code = "VALIDATION_ERROR"
    status_code = 400


class UnknownDecisionError(ValidationError):
    """Decision id is not in the decision catalog."""
    code = "UNKNOWN_DECISION"


class InvalidAnswerError(ValidationError):
    """Answer value is not a valid option for the decision."""
    code = "INVALID_ANSWER"
    status_code = 422


class InvalidAssessmentError(ValidationError):
    """Initial assessment answers are out of range."""
    code = "INVALID_ASSESSMENT"
    status_code = 422


class UnknownProtocolError(ValidationError):
    """No guidance or emergency protocol has this id."""
    code = "UNKNOWN_PROTOCOL"
    status_code = 404


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(BirthGuideError):
    """Configuration error."""
    code = "CONFIGURATION_ERROR"
    status_code = 500
