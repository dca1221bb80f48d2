"""Map brief engine errors to HTTP responses."""

from fastapi import HTTPException

from brief_engine.core.errors import (
    DecisionRequired,
    NotFoundError,
    StepLocked,
    StoreUnavailable,
    ValidationError,
)
from brief_engine.core.logging import get_logger

logger = get_logger(__name__)


def to_http_exception(e: Exception, action: str) -> HTTPException:
    """Translate an exception raised while performing ``action``."""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, ValidationError | StepLocked):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, DecisionRequired):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, StoreUnavailable):
        logger.warning(f"Store unavailable during {action}: {e}")
        return HTTPException(
            status_code=503,
            detail={"message": str(e), "persistence": "disabled"},
        )

    error_msg = f"Failed to {action}: {str(e)}"
    logger.error(error_msg)
    return HTTPException(status_code=500, detail=error_msg)
