"""
Step Sequencer for the brief authoring flow.

Linear step flow:
  PRODUCT → RESEARCH → INSIGHTS → STRATEGY → BRIEF

A step is reachable when its predecessor is complete or when it has itself
been completed before (revisiting). PRODUCT is always reachable. Completion
is granted by the action that produces the step's data, never by navigation.
"""

from dataclasses import dataclass

from brief_engine.core.errors import StepLocked
from brief_engine.core.schemas_brief import BriefSession, FlowStep

# ============================================================================
# Step Definitions
# ============================================================================


@dataclass(frozen=True)
class StepDefinition:
    """Display metadata and completion condition for one step."""

    step: FlowStep
    display_name: str
    completion_gate: str


STEP_DEFINITIONS: dict[FlowStep, StepDefinition] = {
    FlowStep.PRODUCT: StepDefinition(FlowStep.PRODUCT, "Product", "session created"),
    FlowStep.RESEARCH: StepDefinition(FlowStep.RESEARCH, "Research", "document attached"),
    FlowStep.INSIGHTS: StepDefinition(
        FlowStep.INSIGHTS, "Insights", "insights extracted and one selected"
    ),
    FlowStep.STRATEGY: StepDefinition(FlowStep.STRATEGY, "Strategy", "strategy synthesized"),
    FlowStep.BRIEF: StepDefinition(FlowStep.BRIEF, "Brief", "Pink Brief generated"),
}

STEP_ORDER: list[FlowStep] = sorted(FlowStep)


def completed_steps_for(session: BriefSession) -> set[FlowStep]:
    """Derive which steps a persisted session has genuinely completed.

    Steps up to INSIGHTS count only when every earlier step counts too, so a
    strategy without a confirmed insight does not mark STRATEGY complete.
    STRATEGY and BRIEF each need INSIGHTS; a Pink Brief may be generated
    without a strategy.
    """
    confirmed = session.find_insight(session.selected_insight_id) is not None
    conditions = [
        (FlowStep.PRODUCT, session.session_id is not None or session.product is not None),
        (FlowStep.RESEARCH, bool(session.source_documents)),
        (FlowStep.INSIGHTS, bool(session.insights) and confirmed),
    ]
    completed: set[FlowStep] = set()
    for step, satisfied in conditions:
        if not satisfied:
            return completed
        completed.add(step)

    if session.strategy is not None:
        completed.add(FlowStep.STRATEGY)
    if session.final_document is not None:
        completed.add(FlowStep.BRIEF)
    return completed


class StepSequencer:
    """Tracks the current step and completion flags for one session."""

    def __init__(self, current: FlowStep = FlowStep.PRODUCT, completed: set[FlowStep] | None = None):
        self.current = current
        self.completed: set[FlowStep] = set(completed or ())

    @classmethod
    def from_session(cls, session: BriefSession) -> "StepSequencer":
        return cls(current=session.step, completed=completed_steps_for(session))

    def is_complete(self, step: FlowStep) -> bool:
        return step in self.completed

    def can_navigate(self, step: FlowStep) -> bool:
        if step == FlowStep.PRODUCT or step in self.completed:
            return True
        return FlowStep(step - 1) in self.completed

    def navigate(self, step: FlowStep) -> FlowStep:
        """Move to ``step`` or raise StepLocked if its predecessor is incomplete."""
        if not self.can_navigate(step):
            previous = STEP_DEFINITIONS[FlowStep(step - 1)]
            raise StepLocked(
                f"Cannot open {STEP_DEFINITIONS[step].display_name}: "
                f"{previous.display_name} requires {previous.completion_gate}"
            )
        self.current = step
        return step

    def mark_complete(self, step: FlowStep) -> None:
        self.completed.add(step)

    def advance(self, step: FlowStep) -> FlowStep:
        """Mark ``step`` complete and move to the one after it (BRIEF stays put)."""
        self.mark_complete(step)
        if step < FlowStep.BRIEF:
            self.current = FlowStep(step + 1)
        else:
            self.current = step
        return self.current

    def invalidate_from(self, step: FlowStep) -> None:
        """Clear completion of ``step`` and every step after it."""
        self.completed = {s for s in self.completed if s < step}

    def status(self) -> list[dict]:
        """Per-step view used by callers rendering a progress indicator."""
        return [
            {
                "step": int(step),
                "label": STEP_DEFINITIONS[step].display_name,
                "is_done": step in self.completed,
                "is_active": step == self.current,
                "is_locked": not self.can_navigate(step),
            }
            for step in STEP_ORDER
        ]
