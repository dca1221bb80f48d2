"""Strategic synthesis: the Red Thread and five strategy sections for a selected insight."""

import json

from pydantic import ValidationError as PydanticValidationError

from brief_engine.chains.extract_insights import prune_text
from brief_engine.core.config import get_settings
from brief_engine.core.errors import GenerationEmpty, GenerationFailed
from brief_engine.core.llm import generate_text, parse_llm_json
from brief_engine.core.logging import get_logger
from brief_engine.core.schemas_brief import MarketingSummary

logger = get_logger(__name__)

CHAIN = "synthesize_strategy"

STRATEGIST_SYSTEM = """You are a Senior Brand Strategist. Synthesize raw research into a logical narrative.

TASK: Generate a Marketing Summary with 5 sections and a "Red Thread" essence and unlock.
STYLE: Professional, analytical, persuasive. Be concise.

SECTIONS:
1. Business Landscape & Competitive Reality
2. Behavioral Deep-Dive
3. Strategic Tension & "The Unlock"
4. The Brand's Right to Win
5. Creative & Cultural Direction

LENGTH CONSTRAINTS:
- red_thread_essence: max 10 words
- red_thread_unlock: max 20 words
- each section summary: max 30 words
- each section content: max 150 words (one focused paragraph)

Return valid JSON only, no markdown:
{
  "red_thread_essence": "...",
  "red_thread_unlock": "...",
  "sections": [
    {"id": "landscape", "title": "...", "purpose": "...", "summary": "...", "content": "..."}
  ]
}"""

STRATEGIST_USER = """Perform a strategic synthesis.

Research:
{research}

Selected Insight:
{insight}"""


async def synthesize_strategy(
    research_text: str,
    insight_text: str,
    session_id: str | None = None,
) -> MarketingSummary:
    """
    Build the strategy for the selected insight.

    Raises:
        GenerationFailed: Provider error or unparseable response
        GenerationEmpty: The response had no strategy sections
    """
    settings = get_settings()
    raw = await generate_text(
        STRATEGIST_SYSTEM,
        STRATEGIST_USER.format(
            research=prune_text(research_text, settings.RESEARCH_PRUNE_CHARS),
            insight=insight_text,
        ),
        chain=CHAIN,
        session_id=session_id,
    )

    try:
        summary = parse_llm_json(raw, MarketingSummary)
    except (json.JSONDecodeError, PydanticValidationError) as e:
        logger.warning(f"Failed to parse strategy response: {raw[:200]}")
        raise GenerationFailed(f"Invalid strategy response: {e}", chain=CHAIN) from e

    if not summary.sections:
        raise GenerationEmpty(
            "Strategy synthesis returned no sections; add more research material and try again",
            chain=CHAIN,
        )
    return summary
