"""Pydantic models for API requests and responses."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ....core.domain import (
    Category,
    EnhancedContext,
    PageEvent,
    Priority,
    RelevantResult,
    SyncResult,
)


class SearchRequest(BaseModel):
    """Request model for a procedure search."""

    issue: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="The customer's issue in their own words",
        json_schema_extra={"example": "How do I process a refund for a damaged item?"},
    )
    agent_notes: str = Field("", max_length=2000, description="Additional agent context")
    priority: Priority | None = Field(None, description="Ticket priority")
    category: Category | None = Field(None, description="Category hint from the ticket")


class SectionInfo(BaseModel):
    """A matched section of a procedure."""

    title: str
    content: str


class SearchResultItem(BaseModel):
    """One ranked procedure."""

    id: str = Field(..., description="Source page id")
    title: str = Field(..., description="Procedure title")
    category: Category = Field(..., description="Assigned category")
    url: str = Field(..., description="Link to the source page")
    version: int = Field(..., description="Indexed source version")
    relevance_score: float = Field(..., ge=0, le=1, description="Final ranked relevance")
    reasoning: str = Field("", description="Which strategies matched")
    matched_sections: list[SectionInfo] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: RelevantResult) -> "SearchResultItem":
        doc = result.document
        return cls(
            id=doc.id,
            title=doc.title,
            category=doc.category,
            url=doc.url,
            version=doc.version,
            relevance_score=result.relevance_score,
            reasoning=result.reasoning,
            matched_sections=[
                SectionInfo(title=section.title, content=section.content)
                for section in result.matched_sections
            ],
        )


class SearchResponse(BaseModel):
    """Response model for a procedure search."""

    query: str = Field(..., description="The issue text searched for")
    results: list[SearchResultItem] = Field(default_factory=list)
    total_found: int = Field(0, description="Number of results returned")


class ContextRequest(BaseModel):
    """Request model for building grounding context."""

    issue: str = Field(..., min_length=1, max_length=2000, description="Customer issue")
    agent_notes: str = Field("", max_length=2000, description="Additional agent context")
    ticket_id: str = Field("", description="Ticket identifier")
    customer_id: str | None = Field(None, description="CRM customer id")
    priority: Priority | None = Field(None, description="Ticket priority")
    category: Category | None = Field(None, description="Category hint from the ticket")
    with_confidence: bool = Field(True, description="Attach confidence metrics")


class ProcedureInfo(BaseModel):
    """A procedure included in the context."""

    title: str
    procedure: str
    last_updated: datetime
    url: str
    version: int
    category: Category
    relevance_score: float
    sections: list[SectionInfo] = Field(default_factory=list)


class SourceInfo(BaseModel):
    """Citation metadata for a procedure."""

    title: str
    url: str
    last_updated: datetime
    version: int


class ConfidenceInfo(BaseModel):
    sop_relevance: float
    content_freshness: float
    query_clarity: float
    overall: float


class ValidationInfo(BaseModel):
    is_valid: bool
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class ContextResponse(BaseModel):
    """Response model for assembled grounding context."""

    ticket_id: str
    customer_issue: str
    agent_notes: str
    customer_id: str | None = None
    priority: Priority | None = None
    relevant_procedures: list[ProcedureInfo] = Field(default_factory=list)
    product_keywords: list[str] = Field(default_factory=list)
    sop_sources: list[SourceInfo] = Field(default_factory=list)
    sop_freshness: str | None = Field(None, description="Freshness of the newest source")
    total_sops_consulted: int = 0
    confidence: ConfidenceInfo | None = None
    validation: ValidationInfo

    @classmethod
    def from_context(
        cls, context: EnhancedContext, validation: ValidationInfo
    ) -> "ContextResponse":
        confidence = context.confidence
        return cls(
            ticket_id=context.ticket_id,
            customer_issue=context.customer_issue,
            agent_notes=context.agent_notes,
            customer_id=context.customer_id,
            priority=context.priority,
            relevant_procedures=[
                ProcedureInfo(
                    title=procedure.title,
                    procedure=procedure.procedure,
                    last_updated=procedure.last_updated,
                    url=procedure.url,
                    version=procedure.version,
                    category=procedure.category,
                    relevance_score=procedure.relevance_score,
                    sections=[
                        SectionInfo(title=section.title, content=section.content)
                        for section in procedure.sections
                    ],
                )
                for procedure in context.relevant_procedures
            ],
            product_keywords=context.product_keywords,
            sop_sources=[
                SourceInfo(
                    title=source.title,
                    url=source.url,
                    last_updated=source.last_updated,
                    version=source.version,
                )
                for source in context.sop_sources
            ],
            sop_freshness=context.sop_freshness.value if context.sop_freshness else None,
            total_sops_consulted=context.total_sops_consulted,
            confidence=(
                ConfidenceInfo(
                    sop_relevance=confidence.sop_relevance,
                    content_freshness=confidence.content_freshness,
                    query_clarity=confidence.query_clarity,
                    overall=confidence.overall,
                )
                if confidence
                else None
            ),
            validation=validation,
        )


class WebhookPage(BaseModel):
    """Page reference inside a Confluence webhook payload."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str = ""
    space_key: str = Field(..., alias="spaceKey")


class WebhookPayload(BaseModel):
    """Confluence page webhook payload."""

    model_config = ConfigDict(extra="ignore")

    event: PageEvent
    page: WebhookPage


class SyncResponse(BaseModel):
    """Outcome of a sync or webhook update."""

    total: int
    added: int
    updated: int
    removed: int
    errors: list[dict[str, str]] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: SyncResult) -> "SyncResponse":
        return cls(
            total=result.total,
            added=result.added,
            updated=result.updated,
            removed=result.removed,
            errors=[{"page_id": error.page_id, "error": error.error} for error in result.errors],
        )


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Health status")
    version: str = Field(..., description="API version")
    index: str = Field(..., description="Procedure index status")
    freshness: dict[str, int] | None = Field(None, description="SOPs per freshness bucket")
    last_sync: datetime | None = Field(None, description="Last index sync")


class ErrorDetail(BaseModel):
    """Structured error detail information."""

    type: str = Field(..., description="Exception type name")
    code: str = Field(..., description="Error code (e.g., SOP_SRC_002)")
    message: str = Field(..., description="Human-readable error message")


class ErrorLocation(BaseModel):
    """Source location where error occurred."""

    model_config = ConfigDict(populate_by_name=True)

    class_name: str = Field(..., alias="class", description="Class name or <module>")
    method: str = Field(..., description="Method/function name")
    file: str = Field(..., description="Source file name")
    line: int = Field(..., description="Line number")


class ErrorResponse(BaseModel):
    """Response model for structured errors."""

    error: ErrorDetail = Field(..., description="Error details including type, code, and message")
    location: ErrorLocation | None = Field(None, description="Source location of the error")
    context: dict | None = Field(None, description="Additional debugging context")
    cause: dict | None = Field(None, description="Underlying exception that caused this error")
    stack_trace: list[str] | None = Field(None, description="Stack trace (debug mode only)")
