"""
Failure taxonomy for the quiz agent.

Nothing here is fatal: every error is recovered inside the loop that raised it.
"""

from typing import Optional


class QuizAgentError(Exception):
    """Base class for recoverable quiz agent errors."""

    code = "ERROR"

    def __init__(self, message: str, payload: Optional[dict] = None):
        super().__init__(message)
        self.payload = payload or {}


class PerceptionEmpty(QuizAgentError):
    """OCR returned nothing usable for a region."""

    code = "PERCEPTION_EMPTY"


class PerceptionAmbiguous(QuizAgentError):
    """A quiz screen was read but the subject is missing or fewer than 4 options parsed."""

    code = "PERCEPTION_AMBIGUOUS"


class ActionDenied(QuizAgentError):
    """The host refused or cancelled a pointer/keyboard action."""

    code = "ACTION_DENIED"


class ClassificationUnknown(QuizAgentError):
    """No classification rule matched the sample."""

    code = "CLASSIFICATION_UNKNOWN"
