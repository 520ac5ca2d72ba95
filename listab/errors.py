"""
Listab Errors

Error taxonomy shared by the lifecycle, winner selection and integrations.
"""

from typing import Optional


class ListabError(Exception):
    """Base class for Listab errors."""


class ValidationError(ListabError):
    """Raised when input to an operation is malformed."""


class ExperimentNotFoundError(ValidationError):
    """Raised when an experiment id does not exist."""


class InvalidStateError(ListabError):
    """Raised when an operation is not legal in the current lifecycle state."""


class InsufficientDataError(ListabError):
    """Raised when winner selection cannot meet its sampling thresholds."""

    def __init__(self, message: str, collected: int, required: int):
        super().__init__(message)
        self.collected = collected
        self.required = required


class CollaboratorError(ListabError):
    """Raised when an external collaborator call fails."""

    def __init__(self, collaborator: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator
        self.cause = cause
