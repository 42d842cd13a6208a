from __future__ import annotations


class StrudelBopError(Exception):
    """Base error for the StrudelBop library."""


class InvalidInputError(StrudelBopError):
    """Raised when a required field is missing, empty or out of range."""


class PatternNotFoundError(StrudelBopError):
    """Raised when a pattern id is not known."""


class CollaboratorError(StrudelBopError):
    """Raised when an external collaborator fails."""


class RuntimeUnavailableError(CollaboratorError):
    """Raised when the evaluation runtime cannot be started or resumed."""


class SamplePreloadError(CollaboratorError):
    """Raised when the runtime fails to preload a sample."""


class MediaFetchError(CollaboratorError):
    """Raised when media info or a download cannot be fetched."""


class LLMInferenceError(CollaboratorError):
    """Raised when a model provider fails to produce a response."""


class PatternGenerateError(CollaboratorError):
    """Raised when a model response cannot be turned into a fragment."""


class ModelNotAvailableError(CollaboratorError):
    """Raised when required provider dependencies are missing."""


class EvaluationError(StrudelBopError):
    """Raised when the runtime rejects a combined program."""
