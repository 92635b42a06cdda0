"""Domain exception hierarchy for the homework assistant."""

from __future__ import annotations


class AcctSolverError(RuntimeError):
    """Base class for all domain-level errors."""


class BackendError(AcctSolverError):
    """Raised when the inference backend fails to produce a response."""


class BackendConnectionError(BackendError):
    """Raised when the inference backend host cannot be reached."""


class BackendModelNotFoundError(BackendError):
    """Raised when the configured model is unavailable on the backend."""


class BackendRequestError(BackendError):
    """Raised when a request fails for non-connectivity reasons."""


class AttachmentError(AcctSolverError):
    """Raised when a local file cannot be ingested as an attachment."""


class PersistenceError(AcctSolverError):
    """Raised when the durable snapshot store fails."""


class PersistenceFormatError(PersistenceError):
    """Raised when a persisted payload cannot be decoded safely."""


class DuplicateMessageError(AcctSolverError):
    """Raised when a message id is already present in the session."""


class ConfigValidationError(AcctSolverError):
    """Raised when configuration cannot be validated safely."""
