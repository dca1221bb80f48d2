"""Fake in-memory brief store and product catalog for behavioral testing."""

from copy import deepcopy
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from brief_engine.core.errors import NotFoundError, StoreUnavailable, ValidationError
from brief_engine.core.schemas_brief import BriefFilters, BriefListItem, Product

PRODUCT_ID = "11111111-1111-1111-1111-111111111111"

SAMPLE_PRODUCTS = [
    Product(id=PRODUCT_ID, name="Glow Serum", brand="Lumen", market="UK", category="Skincare"),
    Product(
        id="22222222-2222-2222-2222-222222222222",
        name="Night Balm",
        brand="Lumen",
        market="UK",
        category="Skincare",
    ),
]


class FakeBriefStore:
    """In-memory `briefs` table implementing the synchronizer's store operations."""

    def __init__(self):
        self.reset()

    def reset(self):
        """Reset all rows and recorded calls."""
        self.rows: dict[str, dict[str, Any]] = {}
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.inserts: list[dict[str, Any]] = []
        self.archived: list[str] = []
        self.fail_updates = False
        self.unavailable = False

    def _check(self):
        if self.unavailable:
            raise StoreUnavailable("Supabase unreachable")

    def seed(self, **row: Any) -> dict[str, Any]:
        """Insert a row directly, bypassing the recorded calls."""
        row.setdefault("id", str(uuid4()))
        row.setdefault("title", "Seeded brief")
        row.setdefault("status", "draft")
        self.rows[row["id"]] = row
        return row

    def insert_brief(self, data: dict[str, Any]) -> dict[str, Any]:
        self._check()
        if not data.get("product_id") and not data.get("product_name_override"):
            raise ValidationError("Product selection required")
        now = datetime.now(UTC).isoformat()
        row = {**deepcopy(data), "id": str(uuid4()), "status": "draft", "created_at": now, "updated_at": now}
        self.rows[row["id"]] = row
        self.inserts.append(deepcopy(data))
        return deepcopy(row)

    def get_brief(self, brief_id: str) -> dict[str, Any]:
        self._check()
        if brief_id not in self.rows:
            raise NotFoundError(f"Brief {brief_id} not found", entity_id=brief_id)
        return deepcopy(self.rows[brief_id])

    def update_brief(self, brief_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        self._check()
        if self.fail_updates:
            raise RuntimeError("write rejected")
        if brief_id not in self.rows:
            raise NotFoundError(f"Brief {brief_id} not found", entity_id=brief_id)
        updates = deepcopy(fields)
        if updates.get("status") == "complete":
            updates["completed_at"] = datetime.now(UTC).isoformat()
        self.rows[brief_id].update(updates)
        self.updates.append((brief_id, deepcopy(fields)))
        return deepcopy(self.rows[brief_id])

    def archive_brief(self, brief_id: str) -> None:
        self._check()
        self.rows[brief_id]["status"] = "archived"
        self.archived.append(brief_id)

    def list_briefs(self, filters: BriefFilters | None = None) -> tuple[list[BriefListItem], int]:
        filters = filters or BriefFilters()
        rows = [
            r
            for r in self.rows.values()
            if (filters.status == "all" and r["status"] != "archived") or r["status"] == filters.status
        ]
        if filters.product_id:
            rows = [r for r in rows if r.get("product_id") == filters.product_id]
        page = rows[filters.offset : filters.offset + filters.limit]
        items = [
            BriefListItem(id=r["id"], title=r["title"], status=r["status"], product_name=r.get("product_name_override") or "Unknown")
            for r in page
        ]
        return items, len(rows)


class FakeCatalog:
    """In-memory product catalog."""

    def __init__(self, products: list[Product] | None = None):
        self.products = {p.id: p for p in (products or SAMPLE_PRODUCTS)}

    def get_product(self, product_id: str) -> Product:
        if product_id not in self.products:
            raise NotFoundError(f"Product {product_id} not found", entity="product", entity_id=product_id)
        return self.products[product_id]
