"""Target adapter interface."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple
import logging

from ..models.migration import TargetInstanceConfig
from ..models.target import (
    ExistingComposite,
    MediaUpload,
    ProductPayload,
    ResolvedAttribute,
    SelectionOption,
    WriteScope,
)

logger = logging.getLogger(__name__)


class TargetAdapter(ABC):
    """
    Base class for target catalog adapters.

    An adapter expresses one platform's resource model (id-based or
    label-based options, synchronous or mutation-acknowledged writes)
    behind the same set of operations, so the preparation, creation and
    orchestration code never branch on platform.

    Every write takes a WriteScope: GLOBAL writes go through the
    non-scoped path and may create globally shared resources; SCOPED
    writes address one display scope and only touch display fields.
    """

    platform: str = ""

    # Whether media uploads need the image bytes, or only a public URL
    requires_media_content: bool = True

    # Fields lost when written through a scoped path, rewritten globally after parent creation
    corrective_global_fields: Tuple[str, ...] = ()

    def __init__(self, instance: TargetInstanceConfig):
        """
        Initialize the adapter.

        Args:
            instance: Target instance configuration
        """
        self.instance = instance

    @property
    def name(self) -> str:
        return self.instance.name

    # Scopes

    def display_scopes(self) -> List[str]:
        """Display scopes of the instance, in write order."""
        return list(self.instance.store_codes) or ["default"]

    def resolve_website_ids(self, scopes: List[str]) -> List[int]:
        """Derive the site ids a product must be assigned to for the given scopes."""
        return []

    # Preparation

    @abstractmethod
    def resolve_attribute_set(self, name: str) -> Optional[Tuple[int, str]]:
        """
        Look up an attribute set by case-insensitive name.

        Returns:
            (id, name) of the target attribute set, or None
        """
        pass

    @abstractmethod
    def resolve_attribute(self, code: str) -> Optional[ResolvedAttribute]:
        """
        Look up a target attribute by code.

        Returns:
            ResolvedAttribute, or None when the attribute does not exist
        """
        pass

    @abstractmethod
    def resolve_option(self, attribute: ResolvedAttribute, label: str) -> Optional[str]:
        """
        Resolve-or-create an option value by label.

        Must be idempotent: a label that already exists is never created
        again. The resolved value is recorded on `attribute.options`.

        Returns:
            Target option value
        """
        pass

    @abstractmethod
    def resolve_category(self, name: str) -> Optional[str]:
        """Look up a target category id by name."""
        pass

    # Existence

    @abstractmethod
    def find_composite(self, code: str, variant_codes: List[str]) -> Optional[ExistingComposite]:
        """
        Find what the target already holds under a parent code.

        Args:
            code: Parent code
            variant_codes: Source variant codes, for platforms that look up by variant

        Returns:
            ExistingComposite, or None when the parent does not exist
        """
        pass

    def diff_existing_variants(
        self,
        source_codes: List[str],
        existing: ExistingComposite
    ) -> Tuple[List[str], List[str]]:
        """
        Split source variant codes into missing and already existing.

        Returns:
            (missing codes, existing codes), both in source order
        """
        existing_codes = set(existing.variant_codes)
        missing: List[str] = []
        present: List[str] = []
        for code in source_codes:
            bucket = present if code in existing_codes else missing
            if code not in bucket:
                bucket.append(code)
        return missing, present

    # Writes

    @abstractmethod
    def create_variant(self, payload: ProductPayload, scope: WriteScope = WriteScope.GLOBAL) -> Optional[str]:
        """Create a variant product and return its target id."""
        pass

    @abstractmethod
    def create_composite(self, payload: ProductPayload, scope: WriteScope = WriteScope.GLOBAL) -> Optional[str]:
        """Create the composite parent and return its target id."""
        pass

    @abstractmethod
    def update_global_fields(self, code: str, fields: Dict[str, Any]) -> None:
        """Write fields that are only kept when written through the global path."""
        pass

    @abstractmethod
    def define_selection_options(
        self,
        parent_code: str,
        option: SelectionOption,
        scope: WriteScope = WriteScope.GLOBAL
    ) -> None:
        """Define one variant-selection option on the parent."""
        pass

    @abstractmethod
    def link(self, parent_code: str, variant_code: str, scope: WriteScope = WriteScope.GLOBAL) -> None:
        """Associate a created variant with the parent."""
        pass

    @abstractmethod
    def update_scoped_fields(self, code: str, fields: Dict[str, Any], scope: str) -> None:
        """
        Update display fields of a product within one display scope.

        Args:
            code: Product code
            fields: Subset of name, price, enabled, visibility
            scope: Display scope code
        """
        pass

    @abstractmethod
    def attach_media(
        self,
        code: str,
        media: MediaUpload,
        scope: WriteScope = WriteScope.GLOBAL
    ) -> Optional[str]:
        """Attach one media entry to a product and return the target media id."""
        pass

    def test_connection(self) -> bool:
        return True
