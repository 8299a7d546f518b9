"""
NoteLens Domain Exceptions

Exception Hierarchy:
    NoteLensError (base)
    ├── SessionError
    │   ├── SessionNotFoundError
    │   ├── SessionStateError
    │   └── DeltaLimitExceededError
    ├── UnknownPresetError
    └── UnsupportedDocumentError

Parsing and analysis never raise for bad clinical text; these exceptions
signal caller misuse (unknown IDs, out-of-order lifecycle calls, bad options).
"""

from typing import Optional


class NoteLensError(Exception):
    """
    Base exception for all NoteLens errors.

    Attributes:
        message: Human-readable error description
        context: Additional debugging context (ids, states, limits)
    """

    def __init__(self, message: str, context: Optional[dict] = None):
        self.message = message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format message with context for display."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message

    def to_dict(self) -> dict:
        """Structured form for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Edit Session Errors
# =============================================================================

class SessionError(NoteLensError):
    """Base class for edit session lifecycle errors"""
    pass


class SessionNotFoundError(SessionError):
    """
    Raised when a session ID is not known to the tracker.

    Example:
        >>> raise SessionNotFoundError(
        ...     "Edit session not found",
        ...     context={"session_id": "abc123"}
        ... )
    """

    def __init__(self, message: str, session_id: Optional[str] = None, context: Optional[dict] = None):
        self.session_id = session_id
        ctx = dict(context or {})
        if session_id is not None:
            ctx.setdefault("session_id", session_id)
        super().__init__(message, ctx)


class SessionStateError(SessionError):
    """Raised when a lifecycle operation does not fit the session's state"""
    pass


class DeltaLimitExceededError(SessionError):
    """Raised when a session's delta log reaches its configured maximum"""
    pass


# =============================================================================
# Option Errors
# =============================================================================

class UnknownPresetError(NoteLensError):
    """Raised for an unrecognised selective-update preset name"""
    pass


class UnsupportedDocumentError(NoteLensError):
    """Raised when an uploaded note cannot be turned into text"""
    pass
