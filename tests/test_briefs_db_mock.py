"""Tests for brief database operations with mocked Supabase."""

from unittest.mock import MagicMock, patch
from uuid import uuid4

import httpx
import pytest

from brief_engine.core.errors import NotFoundError, StoreUnavailable, ValidationError
from brief_engine.core.schemas_brief import BriefFilters, BriefStatus
from brief_engine.db.briefs import (
    archive_brief,
    get_brief,
    insert_brief,
    list_briefs,
    update_brief,
)


@pytest.fixture
def mock_supabase():
    """Mock Supabase client."""
    with patch("brief_engine.db.briefs.get_supabase") as mock:
        yield mock.return_value


def _response(data, count=None):
    response = MagicMock()
    response.data = data
    response.count = count
    return response


class TestInsertBrief:
    def test_insert_forces_draft_status(self, mock_supabase):
        brief_id = str(uuid4())
        mock_supabase.table.return_value.insert.return_value.execute.return_value = _response(
            [{"id": brief_id, "title": "Glow Serum - Oct 1, 2026", "status": "draft"}]
        )

        result = insert_brief({"product_id": "p1", "title": "Glow Serum - Oct 1, 2026", "status": "complete"})

        assert result["id"] == brief_id
        mock_supabase.table.assert_called_once_with("briefs")
        inserted = mock_supabase.table.return_value.insert.call_args[0][0]
        assert inserted["status"] == "draft"
        assert inserted["product_name_override"] is None

    def test_insert_requires_product(self, mock_supabase):
        with pytest.raises(ValidationError, match="Product selection required"):
            insert_brief({"title": "No product"})
        mock_supabase.table.assert_not_called()

    def test_transport_error_maps_to_store_unavailable(self, mock_supabase):
        mock_supabase.table.return_value.insert.return_value.execute.side_effect = httpx.ConnectError(
            "connection refused"
        )
        with pytest.raises(StoreUnavailable):
            insert_brief({"product_name_override": "Prototype Mist"})


class TestGetBrief:
    def test_get_with_product_join(self, mock_supabase):
        brief_id = str(uuid4())
        (
            mock_supabase.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.return_value
        ) = _response([{"id": brief_id, "product": {"name": "Glow Serum"}}])

        result = get_brief(brief_id)

        assert result["product"]["name"] == "Glow Serum"
        select_arg = mock_supabase.table.return_value.select.call_args[0][0]
        assert "product:products" in select_arg

    def test_get_missing_raises_not_found(self, mock_supabase):
        (
            mock_supabase.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.return_value
        ) = _response([])

        with pytest.raises(NotFoundError) as exc_info:
            get_brief("missing")
        assert exc_info.value.entity_id == "missing"


class TestUpdateBrief:
    def test_partial_update_only_sends_given_fields(self, mock_supabase):
        mock_supabase.table.return_value.update.return_value.eq.return_value.execute.return_value = _response(
            [{"id": "b1", "selected_insight_id": 2}]
        )

        update_brief("b1", {"selected_insight_id": 2})

        sent = mock_supabase.table.return_value.update.call_args[0][0]
        assert sent == {"selected_insight_id": 2}

    def test_completion_stamps_completed_at(self, mock_supabase):
        mock_supabase.table.return_value.update.return_value.eq.return_value.execute.return_value = _response(
            [{"id": "b1", "status": "complete"}]
        )

        update_brief("b1", {"status": "complete", "pink_brief": None})

        sent = mock_supabase.table.return_value.update.call_args[0][0]
        assert sent["completed_at"]
        assert sent["pink_brief"] is None

    def test_update_missing_row(self, mock_supabase):
        mock_supabase.table.return_value.update.return_value.eq.return_value.execute.return_value = _response([])
        with pytest.raises(NotFoundError):
            update_brief("missing", {"title": "x"})


class TestArchiveBrief:
    def test_archive_sets_status(self, mock_supabase):
        archive_brief("b1")
        mock_supabase.table.return_value.update.assert_called_once_with({"status": "archived"})
        mock_supabase.table.return_value.update.return_value.eq.assert_called_once_with("id", "b1")


class TestListBriefs:
    def _query(self, mock_supabase):
        return mock_supabase.table.return_value.select.return_value.order.return_value.range.return_value

    def test_default_excludes_archived(self, mock_supabase):
        query = self._query(mock_supabase)
        query.neq.return_value.execute.return_value = _response(
            [{
                "id": "b1",
                "title": "Glow Serum brief",
                "status": "draft",
                "product_name_override": None,
                "product": {"name": "Glow Serum", "brand": "Lumen", "market": "UK"},
                "source_documents": [{"filename": "research.pdf"}],
                "insights_data": {"model_used": "gpt-4o"},
            }],
            count=1,
        )

        briefs, total = list_briefs()

        query.neq.assert_called_once_with("status", "archived")
        mock_supabase.table.return_value.select.return_value.order.return_value.range.assert_called_once_with(0, 49)
        assert total == 1
        assert briefs[0].product_name == "Glow Serum"
        assert briefs[0].brand == "Lumen"
        assert briefs[0].source_filename == "research.pdf"
        assert briefs[0].model_used == "gpt-4o"
        assert briefs[0].status == BriefStatus.DRAFT

    def test_status_and_product_filters(self, mock_supabase):
        query = self._query(mock_supabase)
        query.eq.return_value.eq.return_value.execute.return_value = _response([], count=0)

        briefs, total = list_briefs(BriefFilters(product_id="p1", status="complete", limit=10, offset=20))

        assert (briefs, total) == ([], 0)
        query.eq.assert_called_once_with("product_id", "p1")
        query.eq.return_value.eq.assert_called_once_with("status", "complete")

    def test_free_text_product_card(self, mock_supabase):
        query = self._query(mock_supabase)
        query.neq.return_value.execute.return_value = _response(
            [{"id": "b2", "title": "t", "status": "complete", "product_name_override": "Prototype Mist"}],
            count=1,
        )

        briefs, _ = list_briefs()

        assert briefs[0].product_name == "Prototype Mist"
        assert briefs[0].brand == "Other"
