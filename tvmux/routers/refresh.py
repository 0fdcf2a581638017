"""
Refresh trigger endpoint.
Invoked by an external scheduler to run the pipeline once.
"""
import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from tvmux.config import Settings, get_settings
from tvmux.services.pipeline import RefreshPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["refresh"])

# Rate limiter
limiter = Limiter(key_func=get_remote_address)


def _refresh_limit() -> str:
    return f"{get_settings().refresh_rate_limit_per_minute}/minute"


def verify_trigger(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Reject untrusted triggers before any work is done.
    Production requires "Authorization: Bearer <TVMUX_CRON_SECRET>".
    """
    if not settings.is_production:
        return

    expected = f"Bearer {settings.cron_secret}" if settings.cron_secret else None
    if expected is None or not secrets.compare_digest((authorization or "").encode(), expected.encode()):
        logger.warning("Rejected refresh trigger with invalid credentials")
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.api_route("/refresh", methods=["GET", "POST"], dependencies=[Depends(verify_trigger)])
@limiter.limit(_refresh_limit)
async def trigger_refresh(request: Request, settings: Settings = Depends(get_settings)):
    """
    Run the refresh pipeline once.
    Returns 200 with the run result on success, 500 on a failed run.
    """
    pipeline = RefreshPipeline(settings)
    result = await pipeline.run()
    return JSONResponse(
        status_code=200 if result.succeeded else 500,
        content=result.model_dump(mode="json"),
    )
