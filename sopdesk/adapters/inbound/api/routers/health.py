"""Health check endpoints."""

from fastapi import APIRouter

from ..... import __version__
from ..deps import get_index_reporter
from ..models import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint.

    Returns:
        HealthResponse with current status and version.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        index="not_checked",
    )


@router.get("/ready", response_model=HealthResponse)
async def readiness_check() -> HealthResponse:
    """Readiness check reporting the size, age and freshness of the procedure index.

    Returns:
        HealthResponse with detailed status.
    """
    try:
        reporter = get_index_reporter()
        report = reporter.generate_report()
        last_sync = report.last_sync.isoformat() if report.last_sync else "never"
        index_status = (
            f"loaded ({report.total_sops} SOPs, generation {reporter.index.snapshot.generation}, "
            f"last sync {last_sync})"
        )
    except Exception as e:
        return HealthResponse(status="ready", version=__version__, index=f"error: {str(e)}")

    return HealthResponse(
        status="ready",
        version=__version__,
        index=index_status,
        freshness=report.freshness,
        last_sync=report.last_sync,
    )
