"""API endpoints for the brief repository."""

from typing import Literal

from fastapi import APIRouter, Path, Query

from brief_engine.api.errors import to_http_exception
from brief_engine.core.config import get_settings
from brief_engine.core.logging import get_logger
from brief_engine.core.schemas_brief import BriefFilters, BriefListResponse, BriefSession
from brief_engine.services.session_sync import DraftSessionSynchronizer

logger = get_logger(__name__)

router = APIRouter()


@router.get("/briefs", response_model=BriefListResponse)
async def list_briefs(
    product_id: str | None = Query(None, description="Only briefs for this catalog product"),
    status: Literal["draft", "complete", "archived", "all"] = Query(
        "all", description="Status filter; 'all' excludes archived briefs"
    ),
    limit: int | None = Query(None, ge=1, le=500, description="Page size"),
    offset: int = Query(0, ge=0, description="Page offset"),
) -> BriefListResponse:
    """
    List briefs, most recently updated first.

    Raises:
        HTTPException 503: If the store is unavailable
    """
    try:
        filters = BriefFilters(
            product_id=product_id,
            status=status,
            limit=limit or get_settings().BRIEF_LIST_LIMIT,
            offset=offset,
        )
        briefs, total = DraftSessionSynchronizer().list_sessions(filters)
        return BriefListResponse(briefs=briefs, total=total)
    except Exception as e:
        raise to_http_exception(e, "list briefs") from e


@router.get("/briefs/{brief_id}", response_model=BriefSession)
async def get_brief(
    brief_id: str = Path(..., description="Brief UUID"),
) -> BriefSession:
    """
    Load a brief session with its derived resume step.

    Raises:
        HTTPException 404: If the brief does not exist
    """
    try:
        logger.info(f"Loading brief {brief_id}", extra={"session_id": brief_id})
        return DraftSessionSynchronizer().load_session(brief_id)
    except Exception as e:
        raise to_http_exception(e, "load brief") from e


@router.post("/briefs/{brief_id}/archive")
async def archive_brief(
    brief_id: str = Path(..., description="Brief UUID"),
) -> dict:
    """Archive (soft-delete) a brief. Archiving twice is a no-op."""
    try:
        DraftSessionSynchronizer().archive_session(brief_id)
        return {"id": brief_id, "status": "archived"}
    except Exception as e:
        raise to_http_exception(e, "archive brief") from e


@router.post("/briefs/{brief_id}/duplicate")
async def duplicate_brief(
    brief_id: str = Path(..., description="Brief UUID"),
) -> dict:
    """Copy a brief into a new draft without its Pink Brief."""
    try:
        new_id = DraftSessionSynchronizer().duplicate_session(brief_id)
        return {"id": new_id, "source_id": brief_id, "status": "draft"}
    except Exception as e:
        raise to_http_exception(e, "duplicate brief") from e
