"""Canonical brief data shared by the behavioral tests."""

from typing import Any

from brief_engine.core.schemas_brief import (
    ExtractedInsight,
    MarketingSummary,
    PinkBriefContent,
    ProductSelection,
)
from tests.fakes.fake_db import PRODUCT_ID

RESEARCH_TEXT = (
    "Interview 4: I wash my face every night but my skin still feels tight by noon. "
    "Interview 7: I don't trust serums that promise everything. "
    "Survey: 62% of respondents skip moisturiser on busy mornings."
)

CATALOG_PRODUCT = ProductSelection(product_id=PRODUCT_ID, name="Glow Serum")
OTHER_PRODUCT = ProductSelection(name="Prototype Mist", is_other=True)


def make_insight(insight_id: int, text: str | None = None, score: float = 8.0) -> ExtractedInsight:
    return ExtractedInsight(
        id=insight_id,
        insight_headline=f"Tension {insight_id}",
        insight_text=text or f"As a busy professional, I do X. But I struggle with Y ({insight_id}).",
        verbatims=[{"quote": f"quote {insight_id}", "source_location": "p.2"}],
        relevance_score=score,
        tension_type="functional",
        jtbd="Feel ready fast",
    )


def make_insights(count: int = 3) -> list[ExtractedInsight]:
    return [make_insight(i, score=10 - i) for i in range(1, count + 1)]


def make_strategy(essence: str = "Confidence without the routine") -> MarketingSummary:
    return MarketingSummary(
        red_thread_essence=essence,
        red_thread_unlock="Skin that keeps up with the day",
        sections=[
            {"id": "landscape", "title": "Business Landscape", "summary": "Crowded", "content": "..."},
            {"id": "behavior", "title": "Behavioral Deep-Dive", "summary": "Rushed", "content": "..."},
        ],
    )


def make_brief_content(to_grow: str = "share in UK serums") -> PinkBriefContent:
    return PinkBriefContent.model_validate({
        "business_objective": {"to_grow": to_grow, "we_need_to_get": "busy women 25-40"},
        "consumer_problem": {"jtbd": "Feel ready fast", "struggle": "Tight skin by noon"},
        "insights": [{"insight_number": 1, "insight_text": "I never have time"}],
        "execution": {"key_media": ["Social"], "success_measures": {"business": "+2 pts share"}},
    })


def brief_row(**overrides: Any) -> dict[str, Any]:
    """A persisted `briefs` row with a complete pass through every step."""
    row: dict[str, Any] = {
        "product_id": PRODUCT_ID,
        "product_name_override": None,
        "title": "Glow Serum - Oct 1, 2026 - Sam",
        "created_by": "Sam",
        "status": "draft",
        "source_documents": [{
            "filename": "research.pdf",
            "file_type": "application/pdf",
            "upload_timestamp": "2026-10-01T09:00:00+00:00",
            "file_size_bytes": 1024,
            "raw_text": RESEARCH_TEXT,
        }],
        "insights_data": {
            "extraction_timestamp": "2026-10-01T09:01:00+00:00",
            "model_used": "claude-sonnet-4-20250514",
            "category_context": "UK skincare is crowded.",
            "insights": [i.model_dump(mode="json") for i in make_insights()],
        },
        "selected_insight_id": 2,
        "marketing_summary": make_strategy().model_dump(mode="json"),
        "pink_brief": {**make_brief_content().model_dump(mode="json"), "version": 3, "last_edited": "2026-10-01T10:00:00+00:00"},
        "product": {"id": PRODUCT_ID, "name": "Glow Serum", "brand": "Lumen"},
    }
    row.update(overrides)
    return row
