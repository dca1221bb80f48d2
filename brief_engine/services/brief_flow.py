"""Brief authoring flow.

Runs one authoring pass end to end: product -> research -> insights ->
strategy -> Pink Brief. Generation runs through the chains, persistence
through the DraftSessionSynchronizer, and edits that would make an existing
Pink Brief stale go through the RegenerationBoundary.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from brief_engine.chains.evaluate_bespoke_insight import evaluate_bespoke_insight
from brief_engine.chains.extract_insights import extract_insights
from brief_engine.chains.generate_pink_brief import generate_pink_brief
from brief_engine.chains.synthesize_strategy import synthesize_strategy
from brief_engine.core.config import get_settings
from brief_engine.core.errors import (
    DecisionRequired,
    GenerationFailed,
    StoreUnavailable,
    ValidationError,
)
from brief_engine.core.llm import current_model
from brief_engine.core.logging import get_logger, log_with_context
from brief_engine.core.regeneration import (
    BoundaryState,
    RegenerationBoundary,
    RegenerationChoice,
)
from brief_engine.core.schemas_brief import (
    BriefSession,
    BriefStatus,
    ExtractedInsight,
    FlowStep,
    MarketingSummary,
    PinkBrief,
    PinkBriefContent,
    ProductSelection,
    SourceDocument,
)
from brief_engine.core.session_state import derive_display_insight, require_displayable_brief
from brief_engine.core.step_sequencer import StepSequencer
from brief_engine.services.session_sync import DraftSessionSynchronizer

logger = get_logger(__name__)

# Boundary states in which an upstream edit is compared against the snapshot
_GUARDED_STATES = (
    BoundaryState.STABLE,
    BoundaryState.PENDING_DECISION,
    BoundaryState.BRANCHED,
)


class BriefFlow:
    """One authoring pass over a single brief session."""

    def __init__(
        self,
        synchronizer: DraftSessionSynchronizer | None = None,
        generation_timeout: float | None = None,
    ):
        self.sync = synchronizer or DraftSessionSynchronizer()
        self.boundary = RegenerationBoundary()
        self.persistence_enabled = True
        self.generation_timeout = (
            generation_timeout
            if generation_timeout is not None
            else get_settings().BRIEF_GENERATION_TIMEOUT_SECONDS
        )

    @property
    def session(self) -> BriefSession:
        return self.sync.session

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def start(
        self,
        product: ProductSelection | None,
        author: str = "",
        title: str | None = None,
    ) -> str | None:
        """
        Confirm the product and open a new session.

        If the store is unavailable the pass continues without persistence.

        Returns:
            The new session id, or None when persistence is disabled

        Raises:
            ValidationError: If no product is selected
            NotFoundError: If the catalog product does not exist
        """
        self.sync.reset()
        self.boundary = RegenerationBoundary()
        self.persistence_enabled = True

        try:
            return self.sync.create_session(product, author=author, title=title)
        except StoreUnavailable as e:
            logger.warning(f"Store unavailable, continuing without persistence: {e}")
            self.persistence_enabled = False

        # Sessionless pass: local state only, autosave is a no-op without an id
        self.sync.session.product = product
        self.sync.session.author = author
        self.sync.session.title = title
        self.sync.advance(FlowStep.PRODUCT)
        return None

    def resume(self, session_id: str) -> BriefSession:
        """Load a saved session and continue at its derived resume step."""
        session = self.sync.load_session(session_id)
        self.boundary = RegenerationBoundary.for_session(session)
        self.persistence_enabled = True
        return session

    def complete(self) -> None:
        """
        Mark the brief complete.

        Raises:
            DecisionRequired: If a regeneration decision is still pending
            ValidationError: If the Pink Brief has no confirmed insight
        """
        if self.boundary.is_pending:
            raise DecisionRequired("Resolve the pending regeneration decision before completing")
        if self.session.final_document is not None:
            require_displayable_brief(self.session)
        self.sync.complete_session()

    def discard(self) -> None:
        """Archive the current session."""
        if self.session.session_id:
            self.sync.archive_session(self.session.session_id)

    # =========================================================================
    # Research
    # =========================================================================

    def attach_document(
        self,
        filename: str,
        file_type: str,
        raw_text: str,
        file_size_bytes: int = 0,
    ) -> SourceDocument:
        """Attach the research document, replacing any previous one."""
        if not raw_text.strip():
            raise ValidationError(f"No text could be read from {filename}")

        document = SourceDocument(
            filename=filename,
            file_type=file_type,
            upload_timestamp=datetime.now(UTC).isoformat(),
            file_size_bytes=file_size_bytes,
            raw_text=raw_text,
        )
        self.sync.attach_document(document)
        return document

    # =========================================================================
    # Insights
    # =========================================================================

    async def run_insight_extraction(self) -> list[ExtractedInsight]:
        """
        Extract insight candidates from the attached document.

        A failed extraction leaves previously saved candidates untouched.

        Raises:
            ValidationError: If no document is attached
            GenerationFailed: Provider error or unusable response
            GenerationEmpty: No insights found in the document
        """
        research = self._require_research()
        result = await extract_insights(research, session_id=self.session.session_id)

        self._qualifying_edit(
            lambda: self.sync.set_insights(
                result.category_context, result.insights, model_used=current_model()
            )
        )
        return result.insights

    async def add_bespoke_insight(self, hypothesis: str) -> ExtractedInsight:
        """Score a user-written hypothesis and append it as a new candidate."""
        if not hypothesis.strip():
            raise ValidationError("Hypothesis is empty")
        research = self._require_research()

        insight = await evaluate_bespoke_insight(
            research,
            hypothesis,
            insight_id=self.session.next_insight_id(),
            session_id=self.session.session_id,
        )
        self.sync.add_insight(insight)
        return insight

    def select_insight(self, insight_id: int) -> None:
        self._qualifying_edit(lambda: self.sync.select_insight(insight_id))

    def edit_insight(
        self,
        insight_id: int,
        insight_headline: str | None = None,
        insight_text: str | None = None,
    ) -> ExtractedInsight:
        """Edit one candidate's wording. Editing the selected one is a qualifying edit."""
        insight = self.session.find_insight(insight_id)
        if insight is None:
            raise ValidationError(f"Insight {insight_id} is not among the extracted insights")

        updates = {}
        if insight_headline is not None:
            updates["insight_headline"] = insight_headline
        if insight_text is not None:
            updates["insight_text"] = insight_text
        edited = insight.model_copy(update=updates)

        def apply() -> None:
            self.session.insights = [
                edited if i.id == insight_id else i for i in self.session.insights
            ]
            self.sync.autosave()

        self._qualifying_edit(apply)
        return edited

    # =========================================================================
    # Strategy
    # =========================================================================

    async def run_strategy_synthesis(self) -> MarketingSummary:
        """
        Build the strategy for the selected insight.

        Raises:
            ValidationError: If no insight is selected
            GenerationFailed: Provider error or unusable response
            GenerationEmpty: The response had no sections
        """
        insight = self._require_selected_insight()
        strategy = await synthesize_strategy(
            self.session.raw_document_text,
            insight.insight_text,
            session_id=self.session.session_id,
        )
        self._qualifying_edit(lambda: self.sync.set_strategy(strategy))
        return strategy

    def edit_strategy(self, strategy: MarketingSummary) -> None:
        self._qualifying_edit(lambda: self.sync.set_strategy(strategy))

    # =========================================================================
    # Pink Brief
    # =========================================================================

    async def generate_brief(self) -> PinkBrief:
        """
        Generate the Pink Brief from the selected insight and strategy.

        Raises:
            ValidationError: If no insight is selected
            DecisionRequired: If a regeneration decision is pending
            GenerationFailed: Provider error, unusable response or timeout
        """
        if self.boundary.is_pending:
            raise DecisionRequired("Choose regenerate or keep current before generating")
        insight = self._require_selected_insight()
        session = self.session

        try:
            content = await asyncio.wait_for(
                generate_pink_brief(
                    insight,
                    session.category_context,
                    session.raw_document_text,
                    strategy=session.strategy,
                    session_id=session.session_id,
                ),
                timeout=self.generation_timeout,
            )
        except TimeoutError as e:
            error = f"Pink Brief generation timed out after {self.generation_timeout:g}s"
            log_with_context(logger, logging.ERROR, error, session_id=session.session_id)
            raise GenerationFailed(error, chain="generate_pink_brief") from e

        brief = self.sync.set_final_document(content)
        self.boundary.finish_regeneration()
        log_with_context(
            logger,
            logging.INFO,
            f"Pink Brief v{brief.version} generated",
            session_id=session.session_id,
        )
        return brief

    def edit_brief(self, content: PinkBriefContent) -> PinkBrief:
        """Accept a user edit of the Pink Brief as the next version."""
        if self.session.final_document is None:
            raise ValidationError("No Pink Brief has been generated for this session")
        return self.sync.set_final_document(content)

    def display_brief(self) -> tuple[PinkBrief, ExtractedInsight]:
        return require_displayable_brief(self.session)

    # =========================================================================
    # Navigation and the regeneration gate
    # =========================================================================

    def navigate(self, step: FlowStep) -> FlowStep:
        """
        Move to ``step``.

        Raises:
            StepLocked: If the previous step is not complete
            DecisionRequired: If re-entering BRIEF with changed upstream inputs
        """
        step = FlowStep(step)
        if self.session.step == FlowStep.BRIEF and step != FlowStep.BRIEF:
            self.boundary.on_leave_brief(self.session)
        if step == FlowStep.BRIEF and self.session.step != FlowStep.BRIEF:
            self.boundary.check_brief_entry(self.session)
        return self.sync.navigate(step)

    async def resolve(self, choice: RegenerationChoice) -> str | None:
        """
        Resolve a pending regeneration decision.

        Returns:
            The new session id for BRANCH, otherwise None

        Raises:
            ValidationError: If nothing is pending, or branching a session that is not complete
            GenerationFailed: If regeneration fails (the decision stays taken; retry generate_brief)
        """
        choice = RegenerationChoice(choice)
        session = self.session

        if choice == RegenerationChoice.KEEP:
            self.boundary.keep(session)
            self._resume_autosave()
            log_with_context(logger, logging.INFO, "Kept current Pink Brief", session_id=session.session_id)
            return None

        if choice == RegenerationChoice.REGENERATE:
            self.boundary.begin_regeneration()
            self.sync.autosave_suspended = False
            self.sync.clear_final_document()
            await self.generate_brief()
            return None

        if not self.boundary.is_pending:
            raise ValidationError("No pending regeneration decision")
        if session.status != BriefStatus.COMPLETE:
            raise ValidationError("Only a completed brief can be branched")
        if not session.session_id:
            raise ValidationError("Branching requires a saved session")

        new_id = self.sync.duplicate_session(session.session_id, overrides=self._branch_overrides())
        snapshot = self.boundary.branch()
        snapshot.restore_into(session)
        self._resume_autosave()
        log_with_context(
            logger, logging.INFO, f"Branched into new draft {new_id}", session_id=session.session_id
        )
        return new_id

    def save_status(self) -> dict:
        status = self.sync.save_status()
        status["persistence"] = "enabled" if self.persistence_enabled else "disabled"
        status["regeneration"] = self.boundary.state.value
        return status

    # =========================================================================
    # Helpers
    # =========================================================================

    def _qualifying_edit(self, mutate: Callable[[], None]) -> None:
        """Apply an upstream edit, holding autosave while the Pink Brief would go stale."""
        session = self.session
        if session.final_document is None or self.boundary.state not in _GUARDED_STATES:
            mutate()
            return

        self.boundary.begin_edit(session)
        was_suspended = self.sync.autosave_suspended
        self.sync.autosave_suspended = True
        try:
            mutate()
        except Exception:
            self.sync.autosave_suspended = was_suspended
            raise
        state = self.boundary.on_qualifying_edit(session)
        if state == BoundaryState.PENDING_DECISION:
            log_with_context(
                logger,
                logging.INFO,
                "Pink Brief inputs changed; awaiting regeneration decision",
                session_id=session.session_id,
                changes=",".join(self.boundary.pending_changes),
            )
            return
        self._resume_autosave()

    def _resume_autosave(self) -> None:
        # Restored inputs may re-complete steps an edit had invalidated
        self.sync.sequencer = StepSequencer.from_session(self.session)
        self.sync.autosave_suspended = False
        self.sync.autosave()

    def _branch_overrides(self) -> dict:
        session = self.session
        overrides: dict = {"selected_insight_id": session.selected_insight_id}
        if session.insights:
            overrides["insights_data"] = {
                "extraction_timestamp": session.insights_extracted_at,
                "model_used": session.insights_model,
                "category_context": session.category_context,
                "insights": [i.model_dump(mode="json") for i in session.insights],
            }
        if session.strategy is not None:
            overrides["marketing_summary"] = session.strategy.model_dump(mode="json")
        return overrides

    def _require_research(self) -> str:
        research = self.session.raw_document_text
        if not research.strip():
            raise ValidationError("Attach a research document first")
        return research

    def _require_selected_insight(self) -> ExtractedInsight:
        insight = derive_display_insight(self.session)
        if insight is None:
            raise ValidationError("Select an insight first")
        return insight
