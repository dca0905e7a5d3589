"""Migration execution endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ...models.migration import MigrationOptions
from ...orchestrator import MigrationOrchestrator
from ..dependencies import get_orchestrator
from ..models import BatchMigrationRequest, MigrationRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def build_options(orchestrator: MigrationOrchestrator, data: BaseModel) -> MigrationOptions:
    """Request options on top of configured defaults; unknown instances are rejected."""
    unknown = [name for name in data.target_instances or [] if name not in orchestrator.config.targets]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown target instances: {', '.join(unknown)}")
    return orchestrator.default_options(**data.model_dump())


@router.post("/product")
def migrate_product(data: MigrationRequest, orchestrator: MigrationOrchestrator = Depends(get_orchestrator)):
    """Migrate one composite product to the requested target instances."""
    options = build_options(orchestrator, data.options)
    logger.info(f"API migration requested for {data.sku}")
    result = orchestrator.migrate(data.sku, options)
    return JSONResponse(status_code=200 if result.success else 207, content=result.to_dict())


@router.post("/products/batch")
def migrate_products(data: BatchMigrationRequest, orchestrator: MigrationOrchestrator = Depends(get_orchestrator)):
    """Migrate several composite products one after another."""
    options = build_options(orchestrator, data.options)
    codes = [sku.strip() for sku in data.skus if sku.strip()]
    if not codes:
        raise HTTPException(status_code=400, detail="No SKUs given")
    logger.info(f"API batch migration requested for {len(codes)} products")
    batch = orchestrator.migrate_batch(codes, options)
    return JSONResponse(status_code=200 if batch["failed"] == 0 else 207, content=batch)
