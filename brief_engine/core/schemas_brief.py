"""Pydantic schemas for brief sessions, insights, strategy and the Pink Brief."""

from enum import Enum, IntEnum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

# =============================================================================
# Enums
# =============================================================================


class FlowStep(IntEnum):
    """Wizard position. Ordered: a step unlocks when its predecessor completes."""

    PRODUCT = 0
    RESEARCH = 1
    INSIGHTS = 2
    STRATEGY = 3
    BRIEF = 4


class BriefStatus(str, Enum):
    DRAFT = "draft"
    COMPLETE = "complete"
    ARCHIVED = "archived"


TensionType = Literal["functional", "emotional", "social", "identity"]
TENSION_TYPES: tuple[str, ...] = ("functional", "emotional", "social", "identity")


# =============================================================================
# Product selection
# =============================================================================


class ProductSelection(BaseModel):
    """Subject of a session: a catalog entry or a free-text override, never both."""

    product_id: str | None = Field(None, description="Catalog product UUID")
    name: str = Field(..., min_length=1, description="Display name")
    is_other: bool = Field(False, description="True when name is a free-text override")

    @model_validator(mode="after")
    def _exactly_one_reference(self) -> "ProductSelection":
        if self.is_other and self.product_id:
            raise ValueError("Free-text product override cannot carry a catalog id")
        if not self.is_other and not self.product_id:
            raise ValueError("Catalog product selection requires a product id")
        return self


# =============================================================================
# Research document
# =============================================================================


class SourceDocument(BaseModel):
    filename: str
    file_type: str
    upload_timestamp: str
    file_size_bytes: int = Field(0, ge=0)
    raw_text: str = ""


# =============================================================================
# Insights
# =============================================================================


class Verbatim(BaseModel):
    quote: str
    source_location: str = ""


class ExtractedInsight(BaseModel):
    """One consumer-research finding with supporting evidence."""

    id: int = Field(..., description="Locally unique id within the session")
    insight_headline: str = ""
    insight_text: str = ""
    verbatims: list[Verbatim] = Field(default_factory=list)
    relevance_score: float = Field(0.0, ge=0.0, le=10.0)
    tension_type: TensionType = "functional"
    jtbd: str = ""


class InsightsData(BaseModel):
    """JSONB payload of the `insights_data` column."""

    extraction_timestamp: str | None = None
    model_used: str | None = None
    category_context: str = ""
    insights: list[ExtractedInsight] = Field(default_factory=list)


class InsightExtractionResult(BaseModel):
    insights: list[ExtractedInsight] = Field(default_factory=list)
    category_context: str = ""


# =============================================================================
# Strategy
# =============================================================================


class StrategySection(BaseModel):
    id: str
    title: str = ""
    purpose: str = ""
    summary: str = ""
    content: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> str:
        return str(v)


class MarketingSummary(BaseModel):
    """Synthesized strategy: the Red Thread essence/unlock and ordered sections."""

    model_config = ConfigDict(populate_by_name=True)

    red_thread_essence: str = Field(
        "", validation_alias=AliasChoices("red_thread_essence", "redThreadEssence")
    )
    red_thread_unlock: str = Field(
        "", validation_alias=AliasChoices("red_thread_unlock", "redThreadUnlock")
    )
    sections: list[StrategySection] = Field(default_factory=list)


# =============================================================================
# Pink Brief
# =============================================================================


class BusinessObjective(BaseModel):
    to_grow: str = ""
    we_need_to_get: str = ""
    to: str = ""
    by_forming_new_habit: str = ""


class ConsumerProblem(BaseModel):
    jtbd: str = ""
    current_behavior: str = ""
    struggle: str = ""


class CommunicationChallenge(BaseModel):
    from_state: str = ""
    to_state: str = ""
    analogy_or_device: str = ""


class MessageStrategy(BaseModel):
    benefit: str = ""
    rtb: str = ""
    brand_character: str = ""


class BriefInsight(BaseModel):
    insight_number: int
    insight_text: str = ""


class SuccessMeasures(BaseModel):
    business: str = ""
    equity: str = ""


class Execution(BaseModel):
    key_media: list[str] = Field(default_factory=list)
    campaign_pillars: list[str] = Field(default_factory=list)
    key_considerations: str = ""
    success_measures: SuccessMeasures = Field(default_factory=SuccessMeasures)


class PinkBriefContent(BaseModel):
    """Generated or user-edited brief fields, without edit bookkeeping."""

    business_objective: BusinessObjective = Field(default_factory=BusinessObjective)
    consumer_problem: ConsumerProblem = Field(default_factory=ConsumerProblem)
    communication_challenge: CommunicationChallenge = Field(default_factory=CommunicationChallenge)
    message_strategy: MessageStrategy = Field(default_factory=MessageStrategy)
    insights: list[BriefInsight] = Field(default_factory=list)
    execution: Execution = Field(default_factory=Execution)


class PinkBrief(PinkBriefContent):
    """The final document as persisted in the `pink_brief` column."""

    version: int = Field(1, ge=1)
    last_edited: str = ""

    def content(self) -> PinkBriefContent:
        return PinkBriefContent.model_validate(
            self.model_dump(exclude={"version", "last_edited"})
        )


# =============================================================================
# Persisted record and listing
# =============================================================================


class BriefRecord(BaseModel):
    """One row of the `briefs` table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    product_id: str | None = None
    product_name_override: str | None = None
    title: str = ""
    created_by: str | None = None
    status: BriefStatus = BriefStatus.DRAFT
    source_documents: list[SourceDocument] = Field(default_factory=list)
    insights_data: InsightsData | None = None
    selected_insight_id: int | None = None
    marketing_summary: MarketingSummary | None = None
    pink_brief: PinkBrief | None = None
    created_at: str | None = None
    updated_at: str | None = None
    completed_at: str | None = None
    product: dict[str, Any] | None = Field(None, description="Joined product row, when selected")

    @field_validator("id", "product_id", mode="before")
    @classmethod
    def _uuid_to_str(cls, v: Any) -> Any:
        return str(v) if v is not None else None

    @field_validator("source_documents", mode="before")
    @classmethod
    def _null_documents(cls, v: Any) -> Any:
        return v or []


class BriefFilters(BaseModel):
    product_id: str | None = None
    status: Literal["draft", "complete", "archived", "all"] = "all"
    limit: int = Field(50, ge=1, le=500)
    offset: int = Field(0, ge=0)


class BriefListItem(BaseModel):
    """Repository card for one brief."""

    id: str
    title: str
    created_by: str | None = None
    status: BriefStatus
    created_at: str | None = None
    updated_at: str | None = None
    completed_at: str | None = None
    product_name: str = "Unknown"
    brand: str = "Other"
    market: str | None = None
    category: str | None = None
    source_filename: str | None = None
    model_used: str | None = None


class BriefListResponse(BaseModel):
    briefs: list[BriefListItem] = Field(default_factory=list)
    total: int = 0


# =============================================================================
# Products
# =============================================================================


class Product(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    brand: str
    market: str | None = None
    category: str | None = None
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _uuid_to_str(cls, v: Any) -> str:
        return str(v)


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1)
    market: str | None = None
    category: str | None = None
    is_active: bool = True


# =============================================================================
# Local session
# =============================================================================


class BriefSession(BaseModel):
    """In-memory view of one authoring flow.

    Fields left unset here are treated as "unknown locally", not "empty":
    autosave never writes them back.
    """

    model_config = ConfigDict(validate_assignment=True)

    session_id: str | None = None
    step: FlowStep = FlowStep.PRODUCT
    product: ProductSelection | None = None
    author: str = ""
    title: str | None = None
    status: BriefStatus = BriefStatus.DRAFT

    source_documents: list[SourceDocument] = Field(default_factory=list)

    category_context: str = ""
    insights: list[ExtractedInsight] = Field(default_factory=list)
    insights_extracted_at: str | None = None
    insights_model: str | None = None
    selected_insight_id: int | None = None

    strategy: MarketingSummary | None = None
    final_document: PinkBrief | None = None

    # Highest Pink Brief version seen for this session, survives a cleared document
    known_brief_version: int = 0
    completed_at: str | None = None

    @property
    def raw_document_text(self) -> str:
        return self.source_documents[0].raw_text if self.source_documents else ""

    def find_insight(self, insight_id: int | None) -> ExtractedInsight | None:
        if insight_id is None:
            return None
        for insight in self.insights:
            if insight.id == insight_id:
                return insight
        return None

    def next_insight_id(self) -> int:
        return max((i.id for i in self.insights), default=0) + 1

    def has_local_content(self) -> bool:
        """False for a blank shell that has not been populated yet."""
        return bool(
            self.source_documents
            or self.insights
            or self.strategy is not None
            or self.final_document is not None
        )
