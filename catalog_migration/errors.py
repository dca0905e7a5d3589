"""Exception hierarchy for catalog migrations."""

from datetime import datetime
from typing import Any, Dict, Optional


class MigrationError(Exception):
    """
    Base class for every error raised by the migration pipeline.

    Errors carry the phase and target instance they occurred in so they
    can be recorded into results without losing context.
    """

    def __init__(
        self,
        message: str,
        phase: Optional[str] = None,
        instance: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.phase = phase
        self.instance = instance
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the error record stored in results."""
        record = {
            "type": self.__class__.__name__,
            "phase": self.phase,
            "instance": self.instance,
            "error": self.message,
            "timestamp": datetime.utcnow().isoformat(),
        }
        if self.details:
            record["details"] = self.details
        return record


class ConfigurationError(MigrationError):
    """Invalid or incomplete configuration."""


class RemoteAPIError(MigrationError):
    """A remote call failed after the transport exhausted its retries."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[Any] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.response_data = response_data

    def to_dict(self) -> Dict[str, Any]:
        record = super().to_dict()
        record["status_code"] = self.status_code
        return record


class NotFoundError(RemoteAPIError):
    """The requested remote resource does not exist."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("status_code", 404)
        super().__init__(message, **kwargs)


class TypeMismatchError(MigrationError):
    """The entity exists but is not a composite (configurable) product."""


class TranslationError(MigrationError):
    """A source identifier could not be translated into a label."""


class ResolutionError(MigrationError):
    """A label could not be resolved to a target-side resource."""


class EntityWriteError(MigrationError):
    """Creating, updating or linking a single catalog entity failed."""

    def __init__(self, message: str, code: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.code = code

    def to_dict(self) -> Dict[str, Any]:
        record = super().to_dict()
        record["code"] = self.code
        return record


class InstanceError(MigrationError):
    """A failure that aborts the work for one target instance."""
