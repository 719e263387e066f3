"""
Plan Chat error types.

Classification failures stay inside the classifier and degrade to a default
classification. Answer generation failures propagate to the caller.
"""

from typing import Any, Dict, Optional


class PlanChatError(Exception):
    """Base exception for Plan Chat errors.

    Attributes:
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a dict for API responses"""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r})"


class LLMUnavailableError(PlanChatError, RuntimeError):
    """Raised when an LLM call is attempted without a configured provider."""


class ClassificationError(PlanChatError):
    """Classifier oracle failed or returned unusable output (internal only)."""


class AnswerGenerationError(PlanChatError):
    """Answer oracle call failed. Surfaced to the pipeline caller."""
