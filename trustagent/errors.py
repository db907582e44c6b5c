"""Exception hierarchy for the client core.

Backend implementations wrap every failure in a BackendError subclass so
the coordinator only has to catch one family of exceptions.
"""
from __future__ import annotations


class TrustAgentError(Exception):
    """Base exception for all client errors."""


class BackendError(TrustAgentError):
    """A backend operation failed or was rejected."""
    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(reason)

    def describe(self) -> str:
        return f"{self.operation} failed: {self.reason}"


class BackendUnavailableError(BackendError):
    """The backend could not be reached at all."""
    def __init__(self, operation: str, reason: str = "backend unavailable"):
        super().__init__(operation, reason)


class SessionNotFoundError(BackendError):
    """The backend has no session with the requested id (or no current one)."""
    def __init__(self, operation: str, session_id: str | None = None):
        self.session_id = session_id
        if session_id is None:
            reason = "No current session"
        else:
            reason = "Session to select not found"
        super().__init__(operation, reason)


class CoordinatorClosedError(TrustAgentError):
    """An operation was requested after the coordinator was torn down."""
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Cannot run {operation}: coordinator is closed")
