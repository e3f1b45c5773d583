"""Player archetype classification endpoint."""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.api.dependencies import get_db
from linewatch.api.responses import CamelModel, error_response, success
from linewatch.services.analysis import ArchetypeSyncService
from linewatch.services.jobs import run_tracked

router = APIRouter(prefix="/api/archetypes", tags=["archetypes"])
logger = structlog.get_logger(__name__)


class ClassifyRequest(CamelModel):
    season: str | None = None


@router.post("/classify")
async def classify_archetypes(
    request: ClassifyRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Classify players from season stats, leaving manual overrides alone."""
    request = request or ClassifyRequest()
    try:
        service = ArchetypeSyncService(db)
        result = await run_tracked(
            db,
            "archetype_classification",
            lambda: service.sync(request.season),
            records_key="classified",
        )
        return success(**result)
    except Exception as e:
        logger.error("archetype_classification_failed", error=str(e))
        return error_response(str(e))
