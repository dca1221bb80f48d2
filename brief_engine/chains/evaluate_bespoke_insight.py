"""Score a user-written insight hypothesis against the research."""

import json

from pydantic import ValidationError as PydanticValidationError

from brief_engine.chains.extract_insights import normalize_insight, prune_text
from brief_engine.core.config import get_settings
from brief_engine.core.errors import GenerationFailed
from brief_engine.core.llm import generate_text, parse_llm_json_dict
from brief_engine.core.logging import get_logger
from brief_engine.core.schemas_brief import ExtractedInsight

logger = get_logger(__name__)

CHAIN = "evaluate_bespoke_insight"

BESPOKE_SYSTEM = """You are a Consumer Insights Analyst. Evaluate whether the given hypothesis is
supported by the research.

If supported, return a refined first-person consumer insight following the structure
"[Identity/Context]. [Current behavior]. But [tension/struggle]."
Provide an insight_headline: the core tension in max 10 words.
Find verbatims from the research that support or contradict the hypothesis.
Score relevance 1-10 based on evidence strength.
If the hypothesis is NOT supported (score < 5), still return it and explain why in insight_text.

Return valid JSON only:
{
  "insight_headline": "...",
  "insight_text": "...",
  "verbatims": [{"quote": "...", "source_location": "..."}],
  "relevance_score": 7,
  "tension_type": "functional",
  "jtbd": "..."
}"""

BESPOKE_USER = 'Test this hypothesis against the research: "{hypothesis}"\n\nResearch:\n{research}'


async def evaluate_bespoke_insight(
    research_text: str,
    hypothesis: str,
    insight_id: int,
    session_id: str | None = None,
) -> ExtractedInsight:
    """
    Turn a user hypothesis into a scored insight candidate with id ``insight_id``.

    Raises:
        GenerationFailed: Provider error or unparseable response
    """
    settings = get_settings()
    raw = await generate_text(
        BESPOKE_SYSTEM,
        BESPOKE_USER.format(
            hypothesis=hypothesis,
            research=prune_text(research_text, settings.RESEARCH_PRUNE_CHARS),
        ),
        chain=CHAIN,
        max_tokens=2048,
        session_id=session_id,
    )

    try:
        content = parse_llm_json_dict(raw)
        if not isinstance(content, dict):
            raise GenerationFailed("Invalid bespoke insight response", chain=CHAIN)
        insight = normalize_insight({**content, "id": insight_id}, fallback_id=insight_id)
    except (json.JSONDecodeError, PydanticValidationError) as e:
        logger.warning(f"Failed to parse bespoke insight response: {raw[:200]}")
        raise GenerationFailed(f"Invalid bespoke insight response: {e}", chain=CHAIN) from e

    if not insight.insight_headline:
        insight.insight_headline = "Custom Insight"
    if not insight.insight_text:
        insight.insight_text = hypothesis
    return insight
