"""Source-to-target category name mapping."""

import json
import logging
import os
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class CategoryNameMapping:
    """
    Static source category name -> target category name lookup.

    Mapping file format:

        {"mappings": [
            {"source": "Shoes", "target": "Footwear", "shopify": "Footwear & Shoes"}
        ]}

    Source names match case-insensitively. A platform key overrides
    "target" for that platform. Unmapped names pass through unchanged.
    """

    def __init__(self, mappings: Optional[List[Dict[str, str]]] = None):
        self._mappings: Dict[str, Dict[str, str]] = {}
        for mapping in mappings or []:
            source = mapping.get("source")
            if not source:
                continue
            self._mappings[source.strip().lower()] = mapping

    def __len__(self) -> int:
        return len(self._mappings)

    @classmethod
    def from_file(cls, path: Optional[str]) -> "CategoryNameMapping":
        """Load a mapping file; a missing or unreadable file yields an empty mapping."""
        if not path:
            return cls()
        if not os.path.exists(path):
            logger.warning(f"Category mapping file {path} not found, categories pass through unchanged")
            return cls()
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read category mapping file {path}: {e}")
            return cls()

        mapping = cls(data.get("mappings", []))
        logger.info(f"Loaded {len(mapping)} category mappings from {path}")
        return mapping

    def map_name(self, name: str, platform: Optional[str] = None) -> str:
        mapping = self._mappings.get(name.strip().lower())
        if not mapping:
            return name
        if platform and mapping.get(platform):
            return mapping[platform]
        return mapping.get("target") or name

    def map_names(self, names: List[str], platform: Optional[str] = None) -> List[str]:
        """Map names, dropping case-insensitive duplicates of the mapped names."""
        mapped: List[str] = []
        seen = set()
        for name in names:
            target = self.map_name(name, platform)
            key = target.strip().lower()
            if key in seen:
                continue
            seen.add(key)
            mapped.append(target)
        return mapped
