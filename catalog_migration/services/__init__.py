"""Services for preparing and writing composite products on targets."""

from .category_mapping import CategoryNameMapping
from .creation import CreationEngine
from .media import HttpMediaTranscoder, MediaMigrator, MediaTranscoder
from .notifications import NotificationSink, NullNotifier, WebhookNotifier
from .preparation import PreparationContext, PreparationResolver

__all__ = [
    "CategoryNameMapping",
    "CreationEngine",
    "HttpMediaTranscoder",
    "MediaMigrator",
    "MediaTranscoder",
    "NotificationSink",
    "NullNotifier",
    "WebhookNotifier",
    "PreparationContext",
    "PreparationResolver",
]
