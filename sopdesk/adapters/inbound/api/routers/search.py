"""Search and context endpoints for support agents."""

import logging

from fastapi import APIRouter

from .....common.utils import clean_text
from .....core.domain import CustomerQuery
from .....core.domain.exceptions import EmptyQueryError
from ..deps import get_context_builder, get_search_service
from ..models import (
    ContextRequest,
    ContextResponse,
    ErrorResponse,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
    ValidationInfo,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["search"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
    503: {"model": ErrorResponse, "description": "Document source unavailable"},
}


def _clean_issue(issue: str) -> str:
    cleaned = clean_text(issue).strip()
    if not cleaned:
        raise EmptyQueryError("Customer issue must not be empty")
    return cleaned


@router.post("/search", response_model=SearchResponse, responses=ERROR_RESPONSES)
def search(request: SearchRequest) -> SearchResponse:
    """Rank indexed procedures against a customer issue.

    Args:
        request: Issue text, agent notes and optional priority.

    Returns:
        SearchResponse with at most the configured number of results.
    """
    issue = _clean_issue(request.issue)
    results = get_search_service().find_relevant(
        issue,
        clean_text(request.agent_notes),
        request.priority,
        category_hint=request.category,
    )
    return SearchResponse(
        query=issue,
        results=[SearchResultItem.from_result(result) for result in results],
        total_found=len(results),
    )


@router.post("/context", response_model=ContextResponse, responses=ERROR_RESPONSES)
def build_context(request: ContextRequest) -> ContextResponse:
    """Assemble grounding context for the answer generator.

    Results are re-checked against Confluence so the newest published
    version of each procedure is returned.
    """
    builder = get_context_builder()
    query = CustomerQuery(
        issue=_clean_issue(request.issue),
        agent_notes=clean_text(request.agent_notes),
        ticket_id=request.ticket_id,
        customer_id=request.customer_id,
        priority=request.priority,
        category=request.category,
    )

    if request.with_confidence:
        context = builder.build_context_with_confidence(query)
    else:
        context = builder.build_context(query)

    validation = builder.validate_context_quality(context)
    logger.debug(f"Context summary: {builder.generate_summary(context)}")

    return ContextResponse.from_context(
        context,
        ValidationInfo(
            is_valid=validation.is_valid,
            issues=validation.issues,
            recommendations=validation.recommendations,
        ),
    )
