"""Pink Brief generation from the selected insight, category context and strategy."""

import json
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from brief_engine.chains.extract_insights import prune_text
from brief_engine.core.config import get_settings
from brief_engine.core.errors import GenerationFailed
from brief_engine.core.llm import generate_text, parse_llm_json_dict
from brief_engine.core.logging import get_logger
from brief_engine.core.schemas_brief import (
    BriefInsight,
    ExtractedInsight,
    MarketingSummary,
    PinkBriefContent,
)

logger = get_logger(__name__)

CHAIN = "generate_pink_brief"

PINK_BRIEF_SYSTEM = """You are a Brand Strategy Director. Generate a Pink Brief from the provided
consumer insight, strategic framework and research.

- The Red Thread is the strategic north star: every brief section ladders back to it.
- Use the strategic direction to inform the matching brief section:
  Business Landscape → business_objective, Behavioral Deep-Dive → consumer_problem,
  Strategic Tension → communication_challenge, Brand's Right to Win → message_strategy,
  Creative Direction → execution.
- Write real, specific content derived from the research.

Format rules:
1. consumer_problem.jtbd is short (3-6 words), the core job, not a sentence
2. from_state and to_state are quoted consumer mindset phrases
3. benefit names the product and the benefit claim; rtb is the specific proof
4. insights are written in first-person consumer voice
5. success measures carry specific metrics

Return valid JSON only, no markdown:
{
  "business_objective": {"to_grow": "", "we_need_to_get": "", "to": "", "by_forming_new_habit": ""},
  "consumer_problem": {"jtbd": "", "current_behavior": "", "struggle": ""},
  "communication_challenge": {"from_state": "", "to_state": "", "analogy_or_device": ""},
  "message_strategy": {"benefit": "", "rtb": "", "brand_character": ""},
  "insights": [{"insight_number": 1, "insight_text": ""}],
  "execution": {"key_media": [], "campaign_pillars": [], "key_considerations": "",
                "success_measures": {"business": "", "equity": ""}}
}"""

STRATEGY_BLOCK = """=== STRATEGIC FRAMEWORK ===

RED THREAD:
Essence: "{essence}"
Unlock: "{unlock}"

STRATEGIC DIRECTION:
{sections}

===========================

"""

INPUT_BLOCK = """{strategy}SELECTED CONSUMER INSIGHT:
{insight_text}

SUPPORTING VERBATIMS:
{verbatims}

TENSION TYPE: {tension_type}
JOB TO BE DONE: {jtbd}

CATEGORY CONTEXT:
{category_context}

RESEARCH EXCERPT:
{research}
"""


def build_strategy_block(strategy: MarketingSummary | None) -> str:
    if strategy is None or not (strategy.red_thread_essence or strategy.sections):
        return ""
    section_lines = "\n".join(
        f"• {s.title}: {s.summary or s.content[:150]}" for s in strategy.sections
    )
    return STRATEGY_BLOCK.format(
        essence=strategy.red_thread_essence or "(not specified)",
        unlock=strategy.red_thread_unlock or "(not specified)",
        sections=section_lines or "(no sections provided)",
    )


def _section(content: dict[str, Any], key: str) -> dict[str, Any]:
    value = content.get(key)
    if not isinstance(value, dict):
        return {}
    return {k: v for k, v in value.items() if v is not None}


def validate_brief_content(content: dict[str, Any]) -> PinkBriefContent:
    """Build a PinkBriefContent, defaulting every missing or malformed field."""
    execution = _section(content, "execution")
    raw_insights = content.get("insights") if isinstance(content.get("insights"), list) else []
    insights = [
        BriefInsight(
            insight_number=item.get("insight_number") or index + 1,
            insight_text=item.get("insight_text") or "",
        )
        for index, item in enumerate(raw_insights)
        if isinstance(item, dict)
    ]
    return PinkBriefContent.model_validate({
        "business_objective": _section(content, "business_objective"),
        "consumer_problem": _section(content, "consumer_problem"),
        "communication_challenge": _section(content, "communication_challenge"),
        "message_strategy": _section(content, "message_strategy"),
        "insights": insights,
        "execution": {
            "key_media": execution.get("key_media") if isinstance(execution.get("key_media"), list) else [],
            "campaign_pillars": (
                execution.get("campaign_pillars")
                if isinstance(execution.get("campaign_pillars"), list)
                else []
            ),
            "key_considerations": execution.get("key_considerations") or "",
            "success_measures": _section(execution, "success_measures"),
        },
    })


async def generate_pink_brief(
    insight: ExtractedInsight,
    category_context: str,
    research_text: str,
    strategy: MarketingSummary | None = None,
    session_id: str | None = None,
) -> PinkBriefContent:
    """
    Generate Pink Brief content.

    Raises:
        GenerationFailed: Provider error or unparseable response
    """
    settings = get_settings()
    verbatims = "\n".join(f'- "{v.quote}"' for v in insight.verbatims) or "(none provided)"
    user = "Generate a Pink Brief based on this input:\n\n" + INPUT_BLOCK.format(
        strategy=build_strategy_block(strategy),
        insight_text=insight.insight_text or "(no insight text)",
        verbatims=verbatims,
        tension_type=insight.tension_type,
        jtbd=insight.jtbd or "(not specified)",
        category_context=category_context,
        research=prune_text(research_text, settings.BRIEF_EXCERPT_CHARS),
    )

    raw = await generate_text(PINK_BRIEF_SYSTEM, user, chain=CHAIN, session_id=session_id)

    try:
        content = parse_llm_json_dict(raw)
        if not isinstance(content, dict):
            raise GenerationFailed("Invalid Pink Brief response", chain=CHAIN)
        return validate_brief_content(content)
    except (json.JSONDecodeError, PydanticValidationError) as e:
        logger.warning(f"Failed to parse Pink Brief response: {raw[:200]}")
        raise GenerationFailed(f"Invalid Pink Brief response: {e}", chain=CHAIN) from e
