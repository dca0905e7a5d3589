"""Resolution of target-side resources for one target instance."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..adapters.base import TargetAdapter
from ..errors import MigrationError, ResolutionError
from ..models.product import SourceSnapshot
from ..models.target import TargetResourceMapping
from .category_mapping import CategoryNameMapping

logger = logging.getLogger(__name__)


@dataclass
class PreparationContext:
    """
    Lookups cached for the duration of one preparation pass.

    Never shared between target instances or migrations.
    """
    instance: str
    category_cache: Dict[str, Optional[str]] = field(default_factory=dict)  # lower-cased name -> id
    remote_lookups: int = 0


class PreparationResolver:
    """
    Resolves the attribute set, option values and categories a snapshot
    needs on one target instance.

    Attribute sets and attributes are only looked up, never created.
    Option values are resolved-or-created. Every failure is recovered:
    the affected field or category is skipped with a warning.
    """

    def __init__(self, adapter: TargetAdapter, category_mapping: Optional[CategoryNameMapping] = None):
        self.adapter = adapter
        self.category_mapping = category_mapping or CategoryNameMapping()

    def prepare(self, snapshot: SourceSnapshot) -> TargetResourceMapping:
        """
        Build the target resource mapping for a snapshot.

        Args:
            snapshot: Source snapshot

        Returns:
            TargetResourceMapping for this adapter's instance
        """
        context = PreparationContext(instance=self.adapter.name)
        mapping = TargetResourceMapping(instance=self.adapter.name)

        self.resolve_attribute_set(snapshot, mapping)
        self.resolve_options(self.required_labels(snapshot), mapping)
        self.resolve_categories(snapshot.category_names, mapping, context)

        logger.info(
            f"Prepared {snapshot.code} on {self.adapter.name}: "
            f"attribute set {mapping.attribute_set_id}, "
            f"{len(mapping.attributes)} attributes, {len(mapping.category_ids)} categories"
        )
        return mapping

    def _warn(self, mapping: TargetResourceMapping, message: str) -> None:
        mapping.warnings.append(message)
        logger.warning(f"[{self.adapter.name}] {message}")

    @staticmethod
    def required_labels(snapshot: SourceSnapshot) -> Dict[str, List[str]]:
        """All distinct (attribute code, label) pairs the snapshot needs, grouped by code."""
        required = snapshot.translations.labels_by_code()
        configurable_codes = list(snapshot.translations.attributes.values())
        for link in snapshot.variant_links:
            for key, label in link.attributes.items():
                code = key.replace(" ", "_")
                if code not in configurable_codes:
                    continue
                labels = required.setdefault(code, [])
                if label not in labels:
                    labels.append(label)
        return required

    def resolve_attribute_set(self, snapshot: SourceSnapshot, mapping: TargetResourceMapping) -> None:
        name = snapshot.translations.attribute_set_name
        default_id = self.adapter.instance.default_attribute_set_id

        resolved = None
        if name:
            try:
                resolved = self.adapter.resolve_attribute_set(name)
            except MigrationError as e:
                self._warn(mapping, f"Attribute set lookup for '{name}' failed: {e}")

        if resolved:
            mapping.attribute_set_id, mapping.attribute_set_name = resolved
        else:
            logger.info(f"Using default attribute set {default_id} on {self.adapter.name}")
            mapping.attribute_set_id = default_id
            mapping.attribute_set_name = None

    def resolve_options(self, required: Dict[str, List[str]], mapping: TargetResourceMapping) -> None:
        for code, labels in required.items():
            try:
                attribute = self.adapter.resolve_attribute(code)
            except MigrationError as e:
                self._warn(mapping, f"Attribute {code} lookup failed, skipping: {e}")
                continue

            if attribute is None:
                self._warn(mapping, f"Attribute {code} does not exist on target, skipping")
                continue
            mapping.attributes[code] = attribute

            for label in labels:
                try:
                    value = self.adapter.resolve_option(attribute, label)
                except MigrationError as e:
                    error = ResolutionError(
                        f"Option '{label}' of {code} could not be resolved: {e}",
                        phase="preparation",
                        instance=self.adapter.name,
                    )
                    mapping.errors.append(error.to_dict())
                    self._warn(mapping, error.message)
                    continue
                logger.debug(f"Resolved {code}='{label}' -> {value} on {self.adapter.name}")

    def resolve_categories(
        self,
        names: List[str],
        mapping: TargetResourceMapping,
        context: PreparationContext
    ) -> None:
        for name in self.category_mapping.map_names(names, self.adapter.platform):
            key = name.strip().lower()
            if key not in context.category_cache:
                context.remote_lookups += 1
                try:
                    context.category_cache[key] = self.adapter.resolve_category(name)
                except MigrationError as e:
                    context.category_cache[key] = None
                    self._warn(mapping, f"Category '{name}' lookup failed: {e}")
                    continue

            category_id = context.category_cache[key]
            if category_id is None:
                self._warn(mapping, f"Category '{name}' not found on target, skipping")
                continue
            mapping.categories[name] = category_id
