"""Error taxonomy shared by the service routes and the conversation pipeline."""

from __future__ import annotations


class DeepSexaError(Exception):
    """Base class for deepsexa errors."""


class QueryValidationError(DeepSexaError, ValueError):
    """Input rejected before any network call. Never retried."""


class TransportError(DeepSexaError):
    """Network failure or non-success HTTP status from a collaborator."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CollaboratorContractError(DeepSexaError):
    """Collaborator answered, but the payload does not match the expected schema."""


class RunCancelledError(DeepSexaError):
    """The run owning this call was superseded by a newer submit."""


class StreamTimeoutError(DeepSexaError):
    """The model stream exceeded its wall-clock ceiling."""
