"""Source catalog extraction."""

from .base import ExtractionContext
from .catalog_extractor import CatalogExtractor
from .translator import IdentifierTranslator

__all__ = [
    "ExtractionContext",
    "CatalogExtractor",
    "IdentifierTranslator",
]
