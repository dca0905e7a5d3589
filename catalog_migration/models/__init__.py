"""Data models for catalog migrations."""

from .product import (
    MediaEntry,
    VariantLink,
    ProductMedia,
    IdentifierTranslation,
    SourceSnapshot,
)
from .target import (
    WriteScope,
    ProductType,
    Visibility,
    ResolvedAttribute,
    TargetResourceMapping,
    StockInfo,
    OptionSelection,
    ProductPayload,
    SelectionOption,
    ExistingComposite,
    MediaUpload,
)
from .result import (
    InstanceMode,
    InstanceState,
    EntityOutcome,
    CreationResult,
    ScopeResult,
    InstanceResult,
    MigrationResult,
)
from .migration import (
    Platform,
    SourceConfig,
    TargetInstanceConfig,
    MigrationConfig,
    MigrationOptions,
)

__all__ = [
    "MediaEntry",
    "VariantLink",
    "ProductMedia",
    "IdentifierTranslation",
    "SourceSnapshot",
    "WriteScope",
    "ProductType",
    "Visibility",
    "ResolvedAttribute",
    "TargetResourceMapping",
    "StockInfo",
    "OptionSelection",
    "ProductPayload",
    "SelectionOption",
    "ExistingComposite",
    "MediaUpload",
    "InstanceMode",
    "InstanceState",
    "EntityOutcome",
    "CreationResult",
    "ScopeResult",
    "InstanceResult",
    "MigrationResult",
    "Platform",
    "SourceConfig",
    "TargetInstanceConfig",
    "MigrationConfig",
    "MigrationOptions",
]
