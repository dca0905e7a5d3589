"""FastAPI application entry point."""

import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..orchestrator import MigrationOrchestrator
from .dependencies import get_orchestrator
from .routes import migrations, sync

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Catalog Migration API",
    description="API for migrating composite products between catalog instances",
    version="0.1.0",
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(migrations.router, prefix="/api/migrations", tags=["migrations"])
app.include_router(sync.router, prefix="/api/sync", tags=["sync"])


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/api/connections")
def connections(orchestrator: MigrationOrchestrator = Depends(get_orchestrator)):
    """Connectivity to the source catalog and each target instance."""
    status = orchestrator.test_connections()
    healthy = status["source"] and all(status["targets"].values())
    return {"status": "healthy" if healthy else "degraded", **status}
