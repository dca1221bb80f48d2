"""Database operations for briefs (one row per authoring session)."""

from datetime import UTC, datetime
from typing import Any

from brief_engine.core.errors import NotFoundError, ValidationError
from brief_engine.core.logging import get_logger
from brief_engine.core.schemas_brief import BriefFilters, BriefListItem
from brief_engine.db.supabase_client import execute, get_supabase

logger = get_logger(__name__)

BRIEF_WITH_PRODUCT = "*, product:products(id, name, brand, market, category)"


def insert_brief(data: dict[str, Any]) -> dict[str, Any]:
    """
    Insert a new draft brief.

    Args:
        data: Column values; exactly one of product_id / product_name_override

    Returns:
        Inserted brief dict

    Raises:
        ValidationError: If no product reference is given
    """
    if not data.get("product_id") and not data.get("product_name_override"):
        raise ValidationError("Product selection required")

    insert_data = {
        **data,
        "product_id": data.get("product_id") or None,
        "product_name_override": None if data.get("product_id") else data.get("product_name_override"),
        "status": "draft",
    }

    supabase = get_supabase()
    try:
        response = execute(supabase.table("briefs").insert(insert_data))
        if not response.data:
            raise ValueError("No data returned from insert")

        brief = response.data[0]
        logger.info(
            f"Created brief {brief['id']}",
            extra={"session_id": brief["id"], "title": brief.get("title")},
        )
        return brief

    except Exception as e:
        logger.error(f"Failed to create brief: {e}")
        raise


def get_brief(brief_id: str) -> dict[str, Any]:
    """
    Get a brief with its joined product row.

    Raises:
        NotFoundError: If no brief has this id
    """
    supabase = get_supabase()

    try:
        response = execute(
            supabase.table("briefs").select(BRIEF_WITH_PRODUCT).eq("id", str(brief_id)).limit(1)
        )
    except Exception as e:
        logger.error(f"Failed to get brief {brief_id}: {e}")
        raise

    if not response.data:
        raise NotFoundError(f"Brief {brief_id} not found", entity="brief", entity_id=str(brief_id))
    return response.data[0]


def update_brief(brief_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    """
    Partially update a brief. Only the given columns are touched.

    Moving to status "complete" stamps completed_at.

    Raises:
        NotFoundError: If no brief has this id
    """
    updates = dict(fields)
    if updates.get("status") == "complete":
        updates["completed_at"] = datetime.now(UTC).isoformat()

    supabase = get_supabase()
    try:
        response = execute(supabase.table("briefs").update(updates).eq("id", str(brief_id)))
    except Exception as e:
        logger.error(
            f"Failed to update brief {brief_id}: {e}",
            extra={"session_id": str(brief_id), "fields": sorted(updates)},
        )
        raise

    if not response.data:
        raise NotFoundError(f"Brief {brief_id} not found", entity="brief", entity_id=str(brief_id))

    logger.debug(
        f"Updated brief {brief_id}",
        extra={"session_id": str(brief_id), "fields": sorted(updates)},
    )
    return response.data[0]


def archive_brief(brief_id: str) -> None:
    """Soft-delete a brief by moving it to status "archived"."""
    supabase = get_supabase()
    try:
        execute(supabase.table("briefs").update({"status": "archived"}).eq("id", str(brief_id)))
        logger.info(f"Archived brief {brief_id}", extra={"session_id": str(brief_id)})
    except Exception as e:
        logger.error(f"Failed to archive brief {brief_id}: {e}")
        raise


def list_briefs(filters: BriefFilters | None = None) -> tuple[list[BriefListItem], int]:
    """
    List briefs for the repository view, most recently updated first.

    Args:
        filters: Product/status filters and pagination. Status "all"
            excludes archived briefs.

    Returns:
        Tuple of (brief cards, total matching count)
    """
    filters = filters or BriefFilters()
    supabase = get_supabase()

    query = (
        supabase.table("briefs")
        .select(
            "id, title, created_by, status, created_at, updated_at, completed_at, "
            "product_id, product_name_override, source_documents, insights_data, "
            "product:products(name, brand, market, category)",
            count="exact",
        )
        .order("updated_at", desc=True)
        .range(filters.offset, filters.offset + filters.limit - 1)
    )

    if filters.product_id:
        query = query.eq("product_id", filters.product_id)

    if filters.status != "all":
        query = query.eq("status", filters.status)
    else:
        query = query.neq("status", "archived")

    try:
        response = execute(query)
    except Exception as e:
        logger.error(f"Failed to list briefs: {e}")
        raise

    briefs = [_to_list_item(row) for row in response.data or []]
    return briefs, response.count or 0


def _to_list_item(row: dict[str, Any]) -> BriefListItem:
    product = row.get("product") or {}
    documents = row.get("source_documents") or []
    insights_data = row.get("insights_data") or {}
    return BriefListItem(
        id=str(row["id"]),
        title=row.get("title") or "",
        created_by=row.get("created_by"),
        status=row["status"],
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
        completed_at=row.get("completed_at"),
        product_name=product.get("name") or row.get("product_name_override") or "Unknown",
        brand=product.get("brand") or "Other",
        market=product.get("market"),
        category=product.get("category"),
        source_filename=documents[0].get("filename") if documents else None,
        model_used=insights_data.get("model_used"),
    )
