"""Confluence webhook receiver."""

import logging

from fastapi import APIRouter

from ..deps import get_discovery_service
from ..models import ErrorResponse, SyncResponse, WebhookPayload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/confluence",
    response_model=SyncResponse,
    responses={500: {"model": ErrorResponse, "description": "Internal server error"}},
)
def confluence_webhook(payload: WebhookPayload) -> SyncResponse:
    """Apply a page created, updated or removed event to the index.

    Events for other spaces are acknowledged and ignored.
    """
    page = payload.page
    logger.info(f"Confluence webhook: {payload.event.value} for page {page.title or page.id}")
    result = get_discovery_service().apply_page_event(
        payload.event, payload.page.id, space_key=payload.page.space_key
    )
    return SyncResponse.from_result(result)
