"""
Negotiation exceptions.

WHAT: Domain-specific exceptions that map to HTTP status codes
WHY: Consistent error handling across engine, service and API layers
HOW: NegotiationError base with error code, message and details
"""

from typing import Optional, List, Dict, Any


class NegotiationError(Exception):
    """Base class for negotiation domain exceptions."""

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class SessionNotFoundError(NegotiationError):
    """Raised when a session id is unknown to the store."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Session not found: {session_id}",
            code="SESSION_NOT_FOUND",
            details={"session_id": session_id}
        )


class BranchNotFoundError(NegotiationError):
    """Raised when switching to or forking from a branch that does not exist."""

    def __init__(self, session_id: str, branch: str):
        super().__init__(
            message=f"Branch '{branch}' not found in session {session_id}",
            code="BRANCH_NOT_FOUND",
            details={"session_id": session_id, "branch": branch}
        )


class InvalidStateError(NegotiationError):
    """Raised when an operation is not allowed in the session's current state."""

    def __init__(self, session_id: str, current_state: str, operation: str = "submit_turn"):
        super().__init__(
            message=f"Cannot {operation} on session {session_id} in state '{current_state}'",
            code="INVALID_STATE",
            details={
                "session_id": session_id,
                "current_state": current_state,
                "operation": operation
            }
        )


class RoundLimitError(NegotiationError):
    """Raised when a turn is submitted after the round budget is spent."""

    def __init__(self, session_id: str, max_rounds: int):
        super().__init__(
            message=f"Session {session_id} reached the maximum of {max_rounds} rounds and has expired",
            code="ROUND_LIMIT_REACHED",
            details={"session_id": session_id, "max_rounds": max_rounds}
        )


class ConcurrentModificationError(NegotiationError):
    """Raised when two mutations race on the same session."""

    def __init__(self, session_id: str, reason: str = "another turn is in progress"):
        super().__init__(
            message=f"Concurrent modification of session {session_id}: {reason}",
            code="CONCURRENT_MODIFICATION",
            details={"session_id": session_id, "reason": reason}
        )


class EngineError(NegotiationError):
    """Raised for internal failures that the caller cannot recover from."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message=message, code="ENGINE_ERROR", details=details)


class ValidationException(NegotiationError):
    """Raised for validation errors."""

    def __init__(self, message: str, field_errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"field_errors": field_errors} if field_errors else None
        )


class ParseAmbiguityWarning(UserWarning):
    """Recorded on a turn when the counterpart's reply had no clear decision."""
