"""Consumer insight extraction from a research document.

Returns 3-5 first-person consumer insights with supporting verbatims,
ranked by relevance, plus a short category context paragraph.
"""

import json
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from brief_engine.core.config import get_settings
from brief_engine.core.errors import GenerationEmpty, GenerationFailed
from brief_engine.core.llm import generate_text, parse_llm_json_dict
from brief_engine.core.logging import get_logger
from brief_engine.core.schemas_brief import (
    TENSION_TYPES,
    ExtractedInsight,
    InsightExtractionResult,
)

logger = get_logger(__name__)

CHAIN = "extract_insights"

EXTRACTION_SYSTEM = """You are a Consumer Insights Analyst at a consumer goods company.
Extract consumer insights from market research documents.

## Output requirements
Generate 3-5 consumer insights. Each insight MUST:
1. Be written in first-person consumer voice ("I...", "As a...", "When I...")
2. Follow the structure: context → current behavior → tension/struggle
3. Be 2-4 sentences maximum
4. Reveal an emotional or functional tension the brand can solve

Template: "[Identity/Context statement]. [Current behavior or belief]. But [tension]."

Do NOT write third-person analysis ("Consumers prefer..."), business language
("There is a gap in the market...") or demographic descriptions.

## For each insight also provide
- insight_headline: punchy summary of the core tension, max 10 words
- verbatims: 2-4 objects {"quote": exact quote from the document, "source_location": page/section if known}
- relevance_score: 1-10, how directly the verbatims support the insight
- tension_type: one of "functional", "emotional", "social", "identity"
- jtbd: short Job To Be Done (3-6 words), not a sentence

Also provide category_context: 2-3 sentences describing the category and market.

## Output format
Return valid JSON only, no markdown:
{
  "category_context": "...",
  "insights": [
    {"id": 1, "insight_headline": "...", "insight_text": "...",
     "verbatims": [{"quote": "...", "source_location": "..."}],
     "relevance_score": 8, "tension_type": "functional", "jtbd": "..."}
  ]
}"""

EXTRACTION_USER = "Extract consumer insights from this research document:\n\n{research}"


def prune_text(text: str, limit: int) -> str:
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit] + "..."


def normalize_verbatims(verbatims: Any) -> list[dict[str, str]]:
    """Coerce strings, {text, source} objects and stray values to {quote, source_location}."""
    if not isinstance(verbatims, list):
        return []
    normalized = []
    for v in verbatims:
        if isinstance(v, str):
            normalized.append({"quote": v, "source_location": ""})
        elif isinstance(v, dict):
            normalized.append({
                "quote": v.get("quote") or v.get("text") or "",
                "source_location": v.get("source_location") or v.get("source") or "",
            })
        elif v is not None:
            normalized.append({"quote": str(v), "source_location": ""})
    return normalized


def normalize_insight(raw: dict[str, Any], fallback_id: int) -> ExtractedInsight:
    """Validate one raw insight, filling the defaults the model tends to omit."""
    tension = raw.get("tension_type")
    try:
        score = float(raw.get("relevance_score") or 0)
    except (TypeError, ValueError):
        score = 0.0
    raw_id = raw.get("id")
    return ExtractedInsight(
        id=raw_id if isinstance(raw_id, int) else fallback_id,
        insight_headline=raw.get("insight_headline") or "",
        insight_text=raw.get("insight_text") or raw.get("insight") or "",
        verbatims=normalize_verbatims(raw.get("verbatims")),
        relevance_score=min(max(score, 0.0), 10.0),
        tension_type=tension if tension in TENSION_TYPES else "functional",
        jtbd=raw.get("jtbd") or "",
    )


async def extract_insights(research_text: str, session_id: str | None = None) -> InsightExtractionResult:
    """
    Extract ranked consumer insights from research text.

    Raises:
        GenerationFailed: Provider error or unparseable response
        GenerationEmpty: The response contained no insights
    """
    settings = get_settings()
    raw = await generate_text(
        EXTRACTION_SYSTEM,
        EXTRACTION_USER.format(research=prune_text(research_text, settings.RESEARCH_PRUNE_CHARS)),
        chain=CHAIN,
        session_id=session_id,
    )

    try:
        content = parse_llm_json_dict(raw)
        if not isinstance(content, dict) or "insights" not in content:
            raise GenerationFailed("Invalid insights response", chain=CHAIN)

        insights = [
            normalize_insight(item, fallback_id=index + 1)
            for index, item in enumerate(content.get("insights") or [])
            if isinstance(item, dict)
        ]
    except (json.JSONDecodeError, PydanticValidationError) as e:
        logger.warning(f"Failed to parse insights response: {raw[:200]}")
        raise GenerationFailed(f"Invalid insights response: {e}", chain=CHAIN) from e

    if not insights:
        raise GenerationEmpty(
            "No insights could be extracted; add more research material and try again",
            chain=CHAIN,
        )

    _dedupe_ids(insights)
    logger.info(f"Extracted {len(insights)} insights", extra={"session_id": session_id})
    return InsightExtractionResult(
        insights=insights,
        category_context=content.get("category_context") or "",
    )


def _dedupe_ids(insights: list[ExtractedInsight]) -> None:
    """Reassign ids so every insight in the list is unique."""
    seen: set[int] = set()
    next_id = max(i.id for i in insights) + 1
    for insight in insights:
        if insight.id in seen:
            insight.id = next_id
            next_id += 1
        seen.add(insight.id)
