"""Regeneration boundary for an existing Pink Brief.

Changing the selected insight or the strategy after a Pink Brief exists
never regenerates or discards the brief on its own. The change parks the
session in PENDING_DECISION until the user picks one of:

  regenerate  PENDING_DECISION → REGENERATING → STABLE (new version)
  keep        PENDING_DECISION → STABLE (edit reverted from the snapshot)
  branch      PENDING_DECISION → BRANCHED (new draft carries the edit)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from brief_engine.core.errors import DecisionRequired, ValidationError
from brief_engine.core.schemas_brief import BriefSession, ExtractedInsight, MarketingSummary


class BoundaryState(str, Enum):
    IDLE = "idle"  # no Pink Brief yet
    STABLE = "stable"
    PENDING_DECISION = "pending_decision"
    REGENERATING = "regenerating"
    BRANCHED = "branched"


class RegenerationChoice(str, Enum):
    REGENERATE = "regenerate"
    KEEP = "keep"
    BRANCH = "branch"


@dataclass(frozen=True)
class BriefSnapshot:
    """Upstream inputs of the Pink Brief at a point in time.

    Compares the whole selected insight record and the whole strategy, so
    an edit to the selected insight's text or verbatims counts as a change.
    """

    selected_insight_id: int | None
    selected_insight: dict[str, Any] | None
    strategy: dict[str, Any] | None
    # Restorable copies for "keep"
    insights: list[ExtractedInsight] = field(default_factory=list)
    strategy_model: MarketingSummary | None = None

    @classmethod
    def capture(cls, session: BriefSession) -> "BriefSnapshot":
        selected = session.find_insight(session.selected_insight_id)
        return cls(
            selected_insight_id=session.selected_insight_id,
            selected_insight=selected.model_dump() if selected else None,
            strategy=session.strategy.model_dump() if session.strategy else None,
            insights=[i.model_copy(deep=True) for i in session.insights],
            strategy_model=session.strategy.model_copy(deep=True) if session.strategy else None,
        )

    def changed_fields(self, session: BriefSession) -> list[str]:
        current = BriefSnapshot.capture(session)
        changes = []
        if current.selected_insight_id != self.selected_insight_id:
            changes.append("selected_insight_id")
        elif current.selected_insight != self.selected_insight:
            changes.append("selected_insight")

        before = self.strategy or {}
        after = current.strategy or {}
        if before.get("red_thread_essence") != after.get("red_thread_essence"):
            changes.append("strategy.red_thread_essence")
        if before.get("red_thread_unlock") != after.get("red_thread_unlock"):
            changes.append("strategy.red_thread_unlock")
        if before.get("sections") != after.get("sections"):
            changes.append("strategy.sections")
        return changes

    def restore_into(self, session: BriefSession) -> None:
        session.insights = [i.model_copy(deep=True) for i in self.insights]
        session.selected_insight_id = self.selected_insight_id
        session.strategy = self.strategy_model.model_copy(deep=True) if self.strategy_model else None


class RegenerationBoundary:
    """Per-session state machine guarding the Pink Brief against stale inputs."""

    def __init__(self, state: BoundaryState = BoundaryState.IDLE):
        self.state = state
        self.snapshot: BriefSnapshot | None = None
        self.pending_changes: list[str] = []

    @classmethod
    def for_session(cls, session: BriefSession) -> "RegenerationBoundary":
        if session.final_document is not None:
            return cls(BoundaryState.STABLE)
        return cls(BoundaryState.IDLE)

    @property
    def is_pending(self) -> bool:
        return self.state == BoundaryState.PENDING_DECISION

    def capture(self, session: BriefSession, *, replace: bool = False) -> None:
        """Record the pre-edit inputs unless an earlier snapshot is still open."""
        if session.final_document is None:
            return
        if self.snapshot is None or replace:
            self.snapshot = BriefSnapshot.capture(session)

    def on_leave_brief(self, session: BriefSession) -> None:
        self.capture(session, replace=True)

    def begin_edit(self, session: BriefSession) -> None:
        """Re-snapshot before an upstream edit unless a decision is already pending.

        Outside PENDING_DECISION the compared inputs still match the brief, so
        a fresh snapshot only picks up candidate edits that are already saved.
        """
        self.capture(session, replace=not self.is_pending)

    def on_qualifying_edit(self, session: BriefSession) -> BoundaryState:
        """Re-evaluate after the selected insight or strategy changed."""
        if session.final_document is None or self.snapshot is None:
            return self.state
        if self.state not in (
            BoundaryState.STABLE,
            BoundaryState.PENDING_DECISION,
            BoundaryState.BRANCHED,
        ):
            return self.state

        self.pending_changes = self.snapshot.changed_fields(session)
        if self.pending_changes:
            self.state = BoundaryState.PENDING_DECISION
        else:
            # Edited back to exactly what the brief was built from
            self.state = BoundaryState.STABLE
        return self.state

    def check_brief_entry(self, session: BriefSession) -> None:
        """Raise DecisionRequired instead of silently re-entering a stale brief."""
        if self.state in (BoundaryState.STABLE, BoundaryState.BRANCHED):
            self.on_qualifying_edit(session)
        if self.is_pending:
            raise DecisionRequired(
                "Upstream changes since the Pink Brief was generated: "
                + ", ".join(self.pending_changes)
                + ". Choose regenerate or keep current."
            )

    def keep(self, session: BriefSession) -> None:
        self._require_pending()
        assert self.snapshot is not None
        self.snapshot.restore_into(session)
        self.state = BoundaryState.STABLE
        self.pending_changes = []

    def begin_regeneration(self) -> None:
        self._require_pending()
        self.state = BoundaryState.REGENERATING
        self.pending_changes = []

    def finish_regeneration(self) -> None:
        self.state = BoundaryState.STABLE
        self.snapshot = None

    def branch(self) -> BriefSnapshot:
        """Mark the session as branched and return the snapshot to restore it to."""
        self._require_pending()
        assert self.snapshot is not None
        self.state = BoundaryState.BRANCHED
        self.pending_changes = []
        return self.snapshot

    def _require_pending(self) -> None:
        if not self.is_pending:
            raise ValidationError(
                f"No pending regeneration decision (boundary is {self.state.value})"
            )
