"""Sharp signal calibration endpoint."""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.api.dependencies import get_db
from linewatch.api.responses import error_response, success
from linewatch.services.analysis import CalibrationService, InsufficientDataError
from linewatch.services.jobs import run_tracked

router = APIRouter(prefix="/api/calibration", tags=["calibration"])
logger = structlog.get_logger(__name__)


@router.post("/sharp-signals")
async def calibrate_sharp_signals(db: AsyncSession = Depends(get_db)):
    """Measure per-signal accuracy over verified movements and suggest weights."""
    service = CalibrationService(db)
    try:
        result = await run_tracked(
            db,
            "sharp_signal_calibration",
            service.run,
            records_key="movements_analyzed",
        )
        return success(result=result)
    except InsufficientDataError as e:
        return {"success": False, "message": str(e), "count": e.count, "required": e.required}
    except Exception as e:
        logger.error("calibration_failed", error=str(e))
        return error_response(str(e))
