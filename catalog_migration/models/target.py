"""Target-side models: resolved resources and platform-neutral write payloads."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class WriteScope(str, Enum):
    """Which write path a target write goes through."""
    GLOBAL = "global"  # Non-scoped path, may touch globally shared resources
    SCOPED = "scoped"  # One display scope, display fields only


class ProductType(str, Enum):
    SIMPLE = "simple"
    COMPOSITE = "composite"


class Visibility(str, Enum):
    NOT_VISIBLE = "not_visible"
    CATALOG_SEARCH = "catalog_search"


@dataclass
class ResolvedAttribute:
    """A target attribute and the option values resolved on it so far."""
    code: str
    target_id: str
    label: str = ""
    options: Dict[str, str] = field(default_factory=dict)  # label -> target value

    def find_option(self, label: str) -> Optional[str]:
        """Find a resolved option value by case-insensitive label."""
        wanted = label.strip().lower()
        for option_label, value in self.options.items():
            if option_label.strip().lower() == wanted:
                return value
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "target_id": self.target_id,
            "label": self.label,
            "options": dict(self.options),
        }


@dataclass
class TargetResourceMapping:
    """
    Target-side resources resolved for one target instance.

    Produced fresh by each preparation pass and never reused across
    instances or migrations.
    """
    instance: str
    attribute_set_id: Optional[int] = None
    attribute_set_name: Optional[str] = None
    attributes: Dict[str, ResolvedAttribute] = field(default_factory=dict)
    categories: Dict[str, str] = field(default_factory=dict)  # target category name -> id
    warnings: List[str] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def option_value(self, code: str, label: str) -> Optional[str]:
        """Get the target value for an option label, or None if unresolved."""
        attribute = self.attributes.get(code)
        if not attribute or label is None:
            return None
        return attribute.find_option(str(label))

    @property
    def category_ids(self) -> List[str]:
        """Distinct resolved category ids, in resolution order."""
        ids: List[str] = []
        for category_id in self.categories.values():
            if category_id not in ids:
                ids.append(category_id)
        return ids

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instance": self.instance,
            "attribute_set": {"id": self.attribute_set_id, "name": self.attribute_set_name},
            "attributes": {code: attr.to_dict() for code, attr in self.attributes.items()},
            "categories": dict(self.categories),
            "warnings": self.warnings,
            "errors": self.errors,
        }


@dataclass
class StockInfo:
    qty: float = 0
    is_in_stock: bool = False
    manage_stock: bool = True

    @classmethod
    def from_source(cls, product: Dict[str, Any], manage_stock_default: bool = True) -> "StockInfo":
        """Read stock fields from a source product's stock item."""
        stock_item = (product.get("extension_attributes") or {}).get("stock_item") or {}
        manage_stock = stock_item.get("manage_stock")
        return cls(
            qty=stock_item.get("qty") or 0,
            is_in_stock=bool(stock_item.get("is_in_stock", False)),
            manage_stock=manage_stock_default if manage_stock is None else bool(manage_stock),
        )


@dataclass
class OptionSelection:
    """One configurable attribute value carried by a variant."""
    code: str
    label: str
    value: str  # target option value


@dataclass
class ProductPayload:
    """Platform-neutral product write, translated to wire format by an adapter."""
    code: str
    name: str
    product_type: ProductType
    visibility: Visibility
    enabled: bool = True
    price: Optional[float] = None
    weight: Optional[str] = None
    attribute_set_id: Optional[int] = None
    selections: List[OptionSelection] = field(default_factory=list)
    required_selections: List[str] = field(default_factory=list)  # Attribute codes every variant must carry
    custom_attributes: Dict[str, Any] = field(default_factory=dict)
    category_ids: List[str] = field(default_factory=list)
    website_ids: List[int] = field(default_factory=list)
    stock: Optional[StockInfo] = None
    description: Optional[str] = None
    product_kind: Optional[str] = None  # Free-form product type label, from the first category

    @property
    def selection_codes(self) -> List[str]:
        return [selection.code for selection in self.selections]


@dataclass
class SelectionOption:
    """Definition of one variant-selection option on a composite parent."""
    code: str
    attribute_id: str
    label: str
    position: int = 0
    values: List[str] = field(default_factory=list)  # target option values


@dataclass
class ExistingComposite:
    """What the target already holds under the source parent's identity."""
    target_id: Optional[str]
    is_composite: bool = True
    variant_codes: List[str] = field(default_factory=list)


@dataclass
class MediaUpload:
    """One media entry ready to be attached to a target product."""
    url: str
    label: str = ""
    position: int = 0
    types: List[str] = field(default_factory=list)
    content: Optional[bytes] = None
    content_type: str = "image/jpeg"
    file_name: str = ""
