"""Per-call extraction context."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class ExtractionContext:
    """
    State collected during one extraction call.

    A fresh context is created for every extraction so that concurrent
    migrations never share warnings or lookups.
    """
    source_code: str
    warnings: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def add_warning(self, message: str) -> None:
        """Record a recovered failure."""
        self.warnings.append(message)
        logger.warning(f"Extraction warning for {self.source_code}: {message}")

    def complete(self) -> None:
        self.completed_at = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_code": self.source_code,
            "warnings": self.warnings,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
        }
