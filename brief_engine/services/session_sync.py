"""Draft Session Synchronizer.

Keeps the local BriefSession consistent with its persisted `briefs` row.

Writes are partial: only fields populated locally go into an autosave
payload, so a half-loaded or partially edited session never nulls out data
it does not know about. Autosave is best-effort: failures are logged and
counted, never raised. Creation and completion gate progress and propagate
every store error.

Concurrency is last-write-wins per row. Each payload is built from the full
local state at the moment it is issued, so a late write can only re-assert
data that was locally visible when it was sent.
"""

import logging
from datetime import UTC, datetime
from typing import Any, Protocol

from brief_engine.core.errors import ValidationError
from brief_engine.core.logging import get_logger, log_with_context
from brief_engine.core.schemas_brief import (
    BriefFilters,
    BriefListItem,
    BriefRecord,
    BriefSession,
    BriefStatus,
    ExtractedInsight,
    FlowStep,
    MarketingSummary,
    PinkBrief,
    PinkBriefContent,
    Product,
    ProductSelection,
    SourceDocument,
)
from brief_engine.core.session_state import session_from_record
from brief_engine.core.step_sequencer import StepSequencer
from brief_engine.db import briefs as briefs_db
from brief_engine.db import products as products_db

logger = get_logger(__name__)


class BriefStore(Protocol):
    """Record store operations the synchronizer relies on."""

    def insert_brief(self, data: dict[str, Any]) -> dict[str, Any]: ...

    def update_brief(self, brief_id: str, fields: dict[str, Any]) -> dict[str, Any]: ...

    def get_brief(self, brief_id: str) -> dict[str, Any]: ...

    def list_briefs(self, filters: BriefFilters | None = None) -> tuple[list[BriefListItem], int]: ...

    def archive_brief(self, brief_id: str) -> None: ...


class ProductCatalog(Protocol):
    def get_product(self, product_id: str) -> Product: ...


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _insights_data(session: BriefSession) -> dict[str, Any]:
    return {
        "extraction_timestamp": session.insights_extracted_at or _now_iso(),
        "model_used": session.insights_model,
        "category_context": session.category_context,
        "insights": [i.model_dump(mode="json") for i in session.insights],
    }


def build_autosave_payload(session: BriefSession) -> dict[str, Any]:
    """Partial update containing only locally populated fields."""
    payload: dict[str, Any] = {}
    if session.source_documents:
        payload["source_documents"] = [d.model_dump(mode="json") for d in session.source_documents]
    if session.insights:
        payload["insights_data"] = _insights_data(session)
    if session.selected_insight_id is not None:
        payload["selected_insight_id"] = session.selected_insight_id
    if session.strategy is not None:
        payload["marketing_summary"] = session.strategy.model_dump(mode="json")
    if session.final_document is not None:
        payload["pink_brief"] = session.final_document.model_dump(mode="json")
    return payload


def build_completion_payload(session: BriefSession) -> dict[str, Any]:
    """Completion write: status, the Pink Brief (or null) and every known upstream field."""
    pink_brief = None
    if session.final_document is not None:
        pink_brief = session.final_document.model_copy(update={"last_edited": _now_iso()})
        pink_brief = pink_brief.model_dump(mode="json")

    payload: dict[str, Any] = {"status": BriefStatus.COMPLETE.value, "pink_brief": pink_brief}
    if session.selected_insight_id is not None:
        payload["selected_insight_id"] = session.selected_insight_id
    if session.insights:
        payload["insights_data"] = _insights_data(session)
    if session.strategy is not None:
        payload["marketing_summary"] = session.strategy.model_dump(mode="json")
    return payload


def default_title(product_name: str, author: str = "", today: datetime | None = None) -> str:
    today = today or datetime.now(UTC)
    date_str = f"{today:%b} {today.day}, {today.year}"
    if author:
        return f"{product_name} - {date_str} - {author}"
    return f"{product_name} - {date_str}"


class DraftSessionSynchronizer:
    """Owns one local BriefSession and its persistence side-channel."""

    def __init__(self, store: BriefStore | None = None, catalog: ProductCatalog | None = None):
        self.store = store or briefs_db
        self.catalog = catalog or products_db
        self.session = BriefSession()
        self.sequencer = StepSequencer()
        self.autosave_suspended = False

        # Aggregate save visibility
        self.last_saved_at: str | None = None
        self.last_save_error: str | None = None
        self.failed_saves = 0

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def reset(self) -> None:
        self.session = BriefSession()
        self.sequencer = StepSequencer()
        self.autosave_suspended = False
        self.last_saved_at = None
        self.last_save_error = None
        self.failed_saves = 0

    def create_session(
        self,
        product: ProductSelection | None,
        author: str = "",
        title: str | None = None,
    ) -> str:
        """
        Persist a new draft for the selected product and move to RESEARCH.

        Raises:
            ValidationError: If no product is selected
            NotFoundError: If the catalog product does not exist
            StoreUnavailable: If the store cannot be reached
        """
        if product is None:
            raise ValidationError("Product not selected")

        name = product.name
        if not product.is_other:
            name = self.catalog.get_product(product.product_id).name

        record = self.store.insert_brief({
            "product_id": None if product.is_other else product.product_id,
            "product_name_override": product.name if product.is_other else None,
            "title": title or default_title(name, author),
            "created_by": author or None,
        })

        self.session = BriefSession(
            session_id=str(record["id"]),
            product=product.model_copy(update={"name": name}),
            author=author,
            title=record.get("title"),
            status=BriefStatus.DRAFT,
        )
        self.sequencer = StepSequencer()
        self.sequencer.advance(FlowStep.PRODUCT)
        self.session.step = self.sequencer.current
        self.last_saved_at = _now_iso()

        log_with_context(
            logger, logging.INFO, "Brief session created", session_id=self.session.session_id
        )
        return self.session.session_id

    def load_session(self, session_id: str) -> BriefSession:
        """
        Replace local state with the persisted session and derive the resume step.

        Raises:
            NotFoundError: If the session does not exist
        """
        record = BriefRecord.model_validate(self.store.get_brief(session_id))

        self.session = session_from_record(record)
        self.sequencer = StepSequencer.from_session(self.session)
        self.autosave_suspended = False
        self.last_saved_at = record.updated_at
        self.last_save_error = None

        log_with_context(
            logger,
            logging.INFO,
            f"Resumed brief session at {self.session.step.name}",
            session_id=record.id,
        )
        return self.session

    def autosave(self) -> bool:
        """
        Write locally populated fields back to the store.

        Returns:
            True if a write was issued and succeeded
        """
        session = self.session
        if not session.session_id:
            return False
        if not session.has_local_content():
            # Local state not loaded yet; writing now would overwrite real data
            logger.debug("Autosave skipped: no local content", extra={"session_id": session.session_id})
            return False
        if self.autosave_suspended:
            return False

        payload = build_autosave_payload(session)
        try:
            self.store.update_brief(session.session_id, payload)
        except Exception as e:
            self.failed_saves += 1
            self.last_save_error = str(e)
            log_with_context(
                logger,
                logging.WARNING,
                f"Autosave failed: {e}",
                session_id=session.session_id,
                failed_saves=self.failed_saves,
            )
            return False

        self.last_saved_at = _now_iso()
        self.last_save_error = None
        return True

    def complete_session(self) -> None:
        """
        Mark the session complete, writing the Pink Brief and all known fields.

        Raises:
            ValidationError: If the session is archived
        """
        session = self.session
        if not session.session_id:
            return
        if session.status == BriefStatus.ARCHIVED:
            raise ValidationError("Archived briefs cannot be completed")

        record = self.store.update_brief(session.session_id, build_completion_payload(session))
        session.status = BriefStatus.COMPLETE
        session.completed_at = record.get("completed_at") or _now_iso()
        self.last_saved_at = _now_iso()
        log_with_context(logger, logging.INFO, "Brief completed", session_id=session.session_id)

    def archive_session(self, session_id: str) -> None:
        """Soft-delete a session. Archiving an archived session does nothing."""
        record = self.store.get_brief(session_id)
        if record.get("status") == BriefStatus.ARCHIVED.value:
            logger.debug("Brief already archived", extra={"session_id": session_id})
            return

        self.store.archive_brief(session_id)
        if self.session.session_id == str(session_id):
            self.session.status = BriefStatus.ARCHIVED

    def duplicate_session(self, session_id: str, overrides: dict[str, Any] | None = None) -> str:
        """
        Create a draft copy of a session without its Pink Brief.

        Args:
            session_id: Source session
            overrides: Column values replacing the copied ones (used when branching)

        Returns:
            The new session id
        """
        original = BriefRecord.model_validate(self.store.get_brief(session_id))

        data: dict[str, Any] = {
            "product_id": original.product_id,
            "product_name_override": original.product_name_override,
            "title": f"Copy of {original.title}",
            "created_by": original.created_by,
            "source_documents": [d.model_dump(mode="json") for d in original.source_documents],
            "insights_data": (
                original.insights_data.model_dump(mode="json") if original.insights_data else None
            ),
            "selected_insight_id": original.selected_insight_id,
            "marketing_summary": (
                original.marketing_summary.model_dump(mode="json")
                if original.marketing_summary
                else None
            ),
            **(overrides or {}),
        }
        # Copies always start as drafts without a Pink Brief
        data["pink_brief"] = None

        record = self.store.insert_brief(data)
        new_id = str(record["id"])
        log_with_context(
            logger, logging.INFO, f"Duplicated brief {session_id}", session_id=new_id
        )
        return new_id

    def list_sessions(self, filters: BriefFilters | None = None) -> tuple[list[BriefListItem], int]:
        return self.store.list_briefs(filters)

    # =========================================================================
    # Local mutations (each one autosaves)
    # =========================================================================

    def attach_document(self, document: SourceDocument) -> None:
        self.session.source_documents = [document]
        self.sequencer.mark_complete(FlowStep.RESEARCH)
        self.autosave()

    def set_insights(
        self,
        category_context: str,
        insights: list[ExtractedInsight],
        model_used: str | None = None,
    ) -> None:
        session = self.session
        session.category_context = category_context
        session.insights = insights
        session.insights_extracted_at = _now_iso()
        session.insights_model = model_used
        if session.find_insight(session.selected_insight_id) is None:
            session.selected_insight_id = None
            self.sequencer.invalidate_from(FlowStep.INSIGHTS)
        self.autosave()

    def add_insight(self, insight: ExtractedInsight) -> None:
        if self.session.find_insight(insight.id) is not None:
            raise ValidationError(f"Insight id {insight.id} already exists")
        self.session.insights = [*self.session.insights, insight]
        self.autosave()

    def select_insight(self, insight_id: int) -> None:
        """
        Select one of the extracted candidates.

        Raises:
            ValidationError: If the id is not among the candidates
        """
        if self.session.find_insight(insight_id) is None:
            raise ValidationError(f"Insight {insight_id} is not among the extracted insights")
        self.session.selected_insight_id = insight_id
        self.sequencer.mark_complete(FlowStep.INSIGHTS)
        self.autosave()

    def set_strategy(self, strategy: MarketingSummary) -> None:
        self.session.strategy = strategy
        self.sequencer.mark_complete(FlowStep.STRATEGY)
        self.autosave()

    def set_final_document(self, content: PinkBriefContent) -> PinkBrief:
        """Accept a generated or edited Pink Brief as the next version."""
        session = self.session
        current = session.final_document.version if session.final_document else 0
        version = max(current, session.known_brief_version) + 1
        brief = PinkBrief(**content.model_dump(), version=version, last_edited=_now_iso())
        session.final_document = brief
        session.known_brief_version = version
        self.sequencer.mark_complete(FlowStep.BRIEF)
        self.autosave()
        return brief

    def clear_final_document(self) -> None:
        """Drop the Pink Brief ahead of regeneration, persisting the explicit null."""
        session = self.session
        session.final_document = None
        self.sequencer.invalidate_from(FlowStep.BRIEF)
        if not session.session_id:
            return

        payload = build_autosave_payload(session)
        payload["pink_brief"] = None
        try:
            self.store.update_brief(session.session_id, payload)
            self.last_saved_at = _now_iso()
        except Exception as e:
            self.failed_saves += 1
            self.last_save_error = str(e)
            log_with_context(
                logger, logging.WARNING, f"Failed to clear Pink Brief: {e}",
                session_id=session.session_id,
            )

    # =========================================================================
    # Navigation and status
    # =========================================================================

    def navigate(self, step: FlowStep) -> FlowStep:
        self.sequencer.navigate(step)
        self.session.step = step
        return step

    def advance(self, step: FlowStep) -> FlowStep:
        self.session.step = self.sequencer.advance(step)
        return self.session.step

    def save_status(self) -> dict[str, Any]:
        """Save indicator: stale when the last autosave attempt failed."""
        return {
            "session_id": self.session.session_id,
            "last_saved_at": self.last_saved_at,
            "last_save_error": self.last_save_error,
            "failed_saves": self.failed_saves,
            "is_stale": self.last_save_error is not None,
        }
