"""Error taxonomy for brief authoring.

Store errors (validation, lookup, availability) gate progress and are raised
to the caller. Generation errors are scoped to the step that triggered them
and are always retryable by user action.
"""


class BriefEngineError(Exception):
    """Base class for all brief engine errors."""


class ValidationError(BriefEngineError):
    """Required user input is missing or inconsistent."""


class NotFoundError(BriefEngineError):
    """A referenced brief or product does not exist."""

    def __init__(self, message: str, entity: str = "brief", entity_id: str | None = None):
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class StoreUnavailable(BriefEngineError):
    """The backing store is unreachable or not configured."""


class GenerationFailed(BriefEngineError):
    """The generation provider errored, timed out, or returned unusable output."""

    def __init__(self, message: str, chain: str | None = None, retryable: bool = True):
        super().__init__(message)
        self.chain = chain
        self.retryable = retryable


class GenerationEmpty(BriefEngineError):
    """The provider returned a valid but empty result; more source material is needed."""

    def __init__(self, message: str, chain: str | None = None):
        super().__init__(message)
        self.chain = chain


class StepLocked(BriefEngineError):
    """Navigation to a step whose predecessor is not complete."""


class DecisionRequired(BriefEngineError):
    """The Brief step cannot be re-entered until the user resolves a pending regeneration decision."""
