"""Errors raised by the learning engine and its collaborators.

Only ResponseNotFoundError escapes process_feedback. Persistence and
rollback failures are logged by the engine and learning continues on the
in-memory state.
"""


class LearningError(Exception):
    """Base class for learning engine errors."""


class ResponseNotFoundError(LearningError):
    """Raised when feedback refers to a response that cannot be found.

    Raised before any engine state is mutated, so the caller can retry or
    discard the feedback without side effects.
    """

    def __init__(self, response_id: str):
        super().__init__(f"Response with id '{response_id}' not found")
        self.response_id = response_id


class PersistenceError(LearningError):
    """Raised when a checkpoint or learning log write fails."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class RollbackUnavailableError(LearningError):
    """Raised when a rollback is requested but no checkpoint exists."""
