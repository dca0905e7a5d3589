"""Source-side product models produced by extraction."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class MediaEntry:
    """A single enabled media gallery entry, in gallery order."""
    file: str
    label: str = ""
    position: int = 0
    types: Tuple[str, ...] = ()
    media_type: str = "image"

    @classmethod
    def from_source(cls, entry: Dict[str, Any]) -> "MediaEntry":
        """Create from a source media gallery entry."""
        return cls(
            file=entry.get("file", ""),
            label=entry.get("label") or "",
            position=int(entry.get("position") or 0),
            types=tuple(entry.get("types") or ()),
            media_type=entry.get("media_type", "image"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "label": self.label,
            "position": self.position,
            "types": list(self.types),
            "media_type": self.media_type,
        }


@dataclass(frozen=True)
class VariantLink:
    """
    Membership record of one variant under a composite parent.

    When the source embeds explicit option pairs next to the membership
    record, `attributes` maps attribute code to option label.
    """
    code: str
    source_id: Optional[str] = None
    name: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "source_id": self.source_id,
            "name": self.name,
            "attributes": dict(self.attributes),
        }


@dataclass
class ProductMedia:
    """Ordered media references for the parent and each variant."""
    parent: Tuple[MediaEntry, ...] = ()
    children: Dict[str, Tuple[MediaEntry, ...]] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.parent) + sum(len(entries) for entries in self.children.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parent": [entry.to_dict() for entry in self.parent],
            "children": {
                code: [entry.to_dict() for entry in entries]
                for code, entries in self.children.items()
            },
        }


@dataclass
class IdentifierTranslation:
    """
    Source identifiers translated into human-comparable labels.

    Built best-effort: a missing entry means the lookup failed and the
    value is treated as untranslated.
    """
    attribute_set_id: Optional[str] = None
    attribute_set_name: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)  # attribute id -> code
    attribute_values: Dict[Tuple[str, str], str] = field(default_factory=dict)  # (attribute id, value id) -> label
    categories: Dict[str, str] = field(default_factory=dict)  # category id -> name

    def attribute_id_for(self, code: str) -> Optional[str]:
        """Reverse lookup of a translated attribute code."""
        for attribute_id, attribute_code in self.attributes.items():
            if attribute_code == code:
                return attribute_id
        return None

    def label_for(self, code: str, value_id: Any) -> Optional[str]:
        """Get the label of a source option value, by attribute code."""
        attribute_id = self.attribute_id_for(code)
        if attribute_id is None or value_id is None:
            return None
        return self.attribute_values.get((attribute_id, str(value_id)))

    def labels_by_code(self) -> Dict[str, List[str]]:
        """
        Group translated option labels by attribute code.

        Returns:
            Dictionary of attribute code -> distinct labels, in source order
        """
        grouped: Dict[str, List[str]] = {}
        for (attribute_id, _), label in self.attribute_values.items():
            code = self.attributes.get(attribute_id)
            if not code:
                continue
            labels = grouped.setdefault(code, [])
            if label not in labels:
                labels.append(label)
        return grouped

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attribute_set": {"id": self.attribute_set_id, "name": self.attribute_set_name},
            "attributes": dict(self.attributes),
            "attribute_values": {
                f"{attribute_id}_{value_id}": label
                for (attribute_id, value_id), label in self.attribute_values.items()
            },
            "categories": dict(self.categories),
        }


@dataclass(frozen=True)
class SourceSnapshot:
    """
    Everything read from the source for one composite product.

    Produced once per migration and shared read-only by every target
    instance.
    """
    parent: Dict[str, Any]
    children: Tuple[Dict[str, Any], ...]
    variant_links: Tuple[VariantLink, ...]
    translations: IdentifierTranslation
    images: ProductMedia = field(default_factory=ProductMedia)
    metadata: Dict[str, Any] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()

    @property
    def code(self) -> str:
        return self.parent["sku"]

    @property
    def name(self) -> str:
        return self.parent.get("name") or self.code

    @property
    def variant_codes(self) -> List[str]:
        """Codes of the variants that were actually extracted, in membership order."""
        return [child["sku"] for child in self.children]

    @property
    def configurable_options(self) -> List[Dict[str, Any]]:
        extension = self.parent.get("extension_attributes") or {}
        return list(extension.get("configurable_product_options") or [])

    @property
    def category_names(self) -> List[str]:
        """Translated category names, in source link order."""
        return list(self.translations.categories.values())

    def get_child(self, code: str) -> Optional[Dict[str, Any]]:
        for child in self.children:
            if child.get("sku") == code:
                return child
        return None

    def link_for(self, code: str) -> Optional[VariantLink]:
        for link in self.variant_links:
            if link.code == code:
                return link
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "variant_codes": self.variant_codes,
            "variant_links": [link.to_dict() for link in self.variant_links],
            "translations": self.translations.to_dict(),
            "images": self.images.to_dict(),
            "metadata": dict(self.metadata),
            "warnings": list(self.warnings),
        }


def get_custom_attribute(product: Dict[str, Any], code: str) -> Any:
    """Get a custom attribute value from a catalog product record."""
    for attribute in product.get("custom_attributes") or []:
        if attribute.get("attribute_code") == code:
            return attribute.get("value")
    return None
