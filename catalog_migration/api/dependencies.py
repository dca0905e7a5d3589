"""Shared FastAPI dependencies."""

import logging
from functools import lru_cache

from fastapi import HTTPException

from ..errors import ConfigurationError
from ..models.migration import MigrationConfig
from ..orchestrator import MigrationOrchestrator

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _build_orchestrator() -> MigrationOrchestrator:
    config = MigrationConfig.from_env()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    problems = config.validate()
    if problems:
        raise ConfigurationError("Invalid configuration: " + "; ".join(problems), details={"problems": problems})
    logger.info(f"Orchestrator configured for targets: {', '.join(config.targets)}")
    return MigrationOrchestrator(config)


def get_orchestrator() -> MigrationOrchestrator:
    """Orchestrator built once from environment configuration."""
    try:
        return _build_orchestrator()
    except ConfigurationError as e:
        logger.error(str(e))
        raise HTTPException(status_code=503, detail=str(e))
