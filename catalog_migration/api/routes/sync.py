"""Price sync endpoints."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...orchestrator import MigrationOrchestrator
from ..dependencies import get_orchestrator
from ..models import PriceSyncRequest
from .migrations import build_options

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/prices")
def sync_prices(data: PriceSyncRequest, orchestrator: MigrationOrchestrator = Depends(get_orchestrator)):
    """Push source variant prices to products that already exist on the targets."""
    options = build_options(orchestrator, data.options)
    logger.info(f"API price sync requested for {data.sku}")
    result = orchestrator.sync_prices(data.sku, options)
    return JSONResponse(status_code=200 if result.success else 207, content=result.to_dict())
