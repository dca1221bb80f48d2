"""Pure derivations over a BriefSession.

Resume precedence, evaluated top to bottom:
  1. no insight candidates                  -> RESEARCH
  2. no confirmed selection                 -> INSIGHTS
  3. Pink Brief present                     -> BRIEF
  4. strategy present                       -> STRATEGY
  5. selection only                         -> INSIGHTS

A selection is "confirmed" only when its id is present in the candidate
list, so a dangling id can never resume into STRATEGY or BRIEF.
"""

import logging

from brief_engine.core.errors import ValidationError
from brief_engine.core.logging import get_logger, log_with_context
from brief_engine.core.schemas_brief import (
    BriefRecord,
    BriefSession,
    ExtractedInsight,
    FlowStep,
    PinkBrief,
    ProductSelection,
)

logger = get_logger(__name__)


def derive_display_insight(session: BriefSession) -> ExtractedInsight | None:
    """Return the confirmed selected insight, or None."""
    return session.find_insight(session.selected_insight_id)


def derive_resume_step(session: BriefSession) -> FlowStep:
    if not session.insights:
        return FlowStep.RESEARCH
    if derive_display_insight(session) is None:
        return FlowStep.INSIGHTS
    if session.final_document is not None:
        return FlowStep.BRIEF
    if session.strategy is not None:
        return FlowStep.STRATEGY
    return FlowStep.INSIGHTS


def require_displayable_brief(session: BriefSession) -> tuple[PinkBrief, ExtractedInsight]:
    """Return the Pink Brief with the insight it was built from.

    Raises:
        ValidationError: If there is no brief or no confirmed insight selection
    """
    if session.final_document is None:
        raise ValidationError("No Pink Brief has been generated for this session")
    insight = derive_display_insight(session)
    if insight is None:
        raise ValidationError(
            "Pink Brief has no confirmed insight selection; select an insight before viewing it"
        )
    return session.final_document, insight


def product_from_record(record: BriefRecord) -> ProductSelection:
    if record.product_id:
        name = (record.product or {}).get("name") or "Unknown"
        return ProductSelection(product_id=record.product_id, name=name, is_other=False)
    return ProductSelection(name=record.product_name_override or "Unknown", is_other=True)


def session_from_record(record: BriefRecord) -> BriefSession:
    """Rebuild local state from a persisted row and derive where to resume."""
    insights_data = record.insights_data
    candidates = insights_data.insights if insights_data else []
    # A dangling selection is dropped so it can never gate resume
    selected_id = record.selected_insight_id
    if selected_id is not None and all(i.id != selected_id for i in candidates):
        log_with_context(
            logger,
            logging.WARNING,
            "Persisted selection is not among the insight candidates; ignoring it",
            session_id=record.id,
            selected_insight_id=selected_id,
        )
        selected_id = None

    session = BriefSession(
        session_id=record.id,
        product=product_from_record(record),
        author=record.created_by or "",
        title=record.title,
        status=record.status,
        source_documents=record.source_documents[:1],
        category_context=insights_data.category_context if insights_data else "",
        insights=candidates,
        insights_extracted_at=insights_data.extraction_timestamp if insights_data else None,
        insights_model=insights_data.model_used if insights_data else None,
        selected_insight_id=selected_id,
        strategy=record.marketing_summary,
        final_document=record.pink_brief,
        known_brief_version=record.pink_brief.version if record.pink_brief else 0,
        completed_at=record.completed_at,
    )
    session.step = derive_resume_step(session)
    return session
