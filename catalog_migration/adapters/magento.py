"""Magento REST target adapter."""

import base64
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from .base import TargetAdapter
from ..clients.base import RemoteCatalogClient
from ..errors import NotFoundError, ResolutionError
from ..models.migration import TargetInstanceConfig
from ..models.target import (
    ExistingComposite,
    MediaUpload,
    ProductPayload,
    ProductType,
    ResolvedAttribute,
    SelectionOption,
    Visibility,
    WriteScope,
)

logger = logging.getLogger(__name__)

GLOBAL_STORE = "all"

STATUS_ENABLED = 1
STATUS_DISABLED = 2

VISIBILITY_IDS = {
    Visibility.NOT_VISIBLE: 1,
    Visibility.CATALOG_SEARCH: 4,
}

TYPE_IDS = {
    ProductType.SIMPLE: "simple",
    ProductType.COMPOSITE: "configurable",
}


def _sku(code: str) -> str:
    return quote(code, safe="")


class MagentoTargetAdapter(TargetAdapter):
    """
    Adapter for Magento targets.

    Options are referenced by numeric option id, writes are synchronous
    REST calls. GLOBAL writes go through /rest/all, SCOPED writes through
    /rest/{store_code}. Weight is dropped when written through a store
    path, so it gets a corrective global write after parent creation.
    """

    platform = "magento"
    requires_media_content = True
    corrective_global_fields = ("weight",)

    def __init__(self, instance: TargetInstanceConfig, client: RemoteCatalogClient):
        super().__init__(instance)
        self.client = client

    @staticmethod
    def _store(scope: WriteScope) -> Optional[str]:
        return GLOBAL_STORE if scope == WriteScope.GLOBAL else None

    def resolve_website_ids(self, scopes: List[str]) -> List[int]:
        """Map store codes to their website ids via the store views list."""
        views = self.client.get("store/storeViews") or []
        website_by_store = {
            view.get("code"): int(view.get("website_id"))
            for view in views
            if view.get("code") and view.get("website_id") is not None
        }

        website_ids: List[int] = []
        for scope in scopes:
            website_id = website_by_store.get(scope)
            if website_id is None:
                logger.warning(f"Store code '{scope}' not found on {self.name}")
                continue
            if website_id and website_id not in website_ids:
                website_ids.append(website_id)
        return website_ids

    def resolve_attribute_set(self, name: str) -> Optional[Tuple[int, str]]:
        items = self.client.search("products/attribute-sets/sets/list", [])
        wanted = name.strip().lower()
        for item in items:
            if str(item.get("attribute_set_name", "")).strip().lower() == wanted:
                return int(item["attribute_set_id"]), item["attribute_set_name"]
        return None

    def resolve_attribute(self, code: str) -> Optional[ResolvedAttribute]:
        try:
            data = self.client.get(f"products/attributes/{quote(code, safe='')}")
        except NotFoundError:
            return None
        if not data:
            return None
        return ResolvedAttribute(
            code=data.get("attribute_code", code),
            target_id=str(data.get("attribute_id")),
            label=data.get("default_frontend_label") or code,
        )

    def list_options(self, code: str) -> Dict[str, str]:
        """Get an attribute's options as label -> option id."""
        options = self.client.get(f"products/attributes/{quote(code, safe='')}/options") or []
        return {
            str(option["label"]): str(option["value"])
            for option in options
            if option.get("label") and option.get("value") not in (None, "")
        }

    @staticmethod
    def _match(options: Dict[str, str], label: str) -> Optional[str]:
        wanted = label.strip().lower()
        for option_label, value in options.items():
            if option_label.strip().lower() == wanted:
                return value
        return None

    def resolve_option(self, attribute: ResolvedAttribute, label: str) -> Optional[str]:
        value = attribute.find_option(label)
        if value is not None:
            return value

        value = self._match(self.list_options(attribute.code), label)
        if value is None:
            logger.info(f"Creating option '{label}' for attribute {attribute.code} on {self.name}")
            self.client.create(
                f"products/attributes/{quote(attribute.code, safe='')}/options",
                {"option": {"label": label, "sort_order": 0, "is_default": False}},
            )
            # The create call only returns an id; re-read to get the full record
            value = self._match(self.list_options(attribute.code), label)
            if value is None:
                raise ResolutionError(
                    f"Option '{label}' was created for {attribute.code} but could not be read back",
                    phase="preparation",
                    instance=self.name,
                )

        attribute.options[label] = value
        return value

    def resolve_category(self, name: str) -> Optional[str]:
        items = self.client.search(
            "categories/list",
            [{"field": "name", "value": name, "condition_type": "eq"}],
        )
        if not items:
            return None
        return str(items[0]["id"])

    def find_composite(self, code: str, variant_codes: List[str]) -> Optional[ExistingComposite]:
        try:
            product = self.client.get(f"products/{_sku(code)}")
        except NotFoundError:
            return None
        if not product:
            return None

        is_composite = product.get("type_id") == TYPE_IDS[ProductType.COMPOSITE]
        children: List[str] = []
        if is_composite:
            linked = self.client.get(f"configurable-products/{_sku(code)}/children") or []
            children = [child["sku"] for child in linked if child.get("sku")]

        return ExistingComposite(
            target_id=str(product.get("id")) if product.get("id") is not None else None,
            is_composite=is_composite,
            variant_codes=children,
        )

    def build_product(self, payload: ProductPayload) -> Dict[str, Any]:
        """Translate a product payload into the REST product body."""
        product: Dict[str, Any] = {
            "sku": payload.code,
            "name": payload.name,
            "attribute_set_id": payload.attribute_set_id or self.instance.default_attribute_set_id,
            "status": STATUS_ENABLED if payload.enabled else STATUS_DISABLED,
            "visibility": VISIBILITY_IDS[payload.visibility],
            "type_id": TYPE_IDS[payload.product_type],
        }
        if payload.price is not None:
            product["price"] = payload.price
        if payload.weight is not None:
            product["weight"] = payload.weight

        custom_attributes = [
            {"attribute_code": selection.code, "value": selection.value}
            for selection in payload.selections
        ]
        custom_attributes.extend(
            {"attribute_code": code, "value": value}
            for code, value in payload.custom_attributes.items()
            if code not in payload.selection_codes
        )
        if payload.description:
            custom_attributes.append({"attribute_code": "description", "value": payload.description})
        if custom_attributes:
            product["custom_attributes"] = custom_attributes

        extension: Dict[str, Any] = {}
        if payload.stock is not None:
            extension["stock_item"] = {
                "qty": payload.stock.qty,
                "is_in_stock": payload.stock.is_in_stock,
                "manage_stock": payload.stock.manage_stock,
            }
        if payload.website_ids:
            extension["website_ids"] = list(payload.website_ids)
        if payload.category_ids:
            extension["category_links"] = [
                {"category_id": str(category_id), "position": 0}
                for category_id in payload.category_ids
            ]
        if extension:
            product["extension_attributes"] = extension

        return product

    def _create_product(self, payload: ProductPayload, scope: WriteScope) -> Optional[str]:
        data = self.client.create(
            "products",
            {"product": self.build_product(payload)},
            store=self._store(scope),
        )
        target_id = (data or {}).get("id")
        return str(target_id) if target_id is not None else None

    def create_variant(self, payload: ProductPayload, scope: WriteScope = WriteScope.GLOBAL) -> Optional[str]:
        return self._create_product(payload, scope)

    def create_composite(self, payload: ProductPayload, scope: WriteScope = WriteScope.GLOBAL) -> Optional[str]:
        return self._create_product(payload, scope)

    def update_global_fields(self, code: str, fields: Dict[str, Any]) -> None:
        product = {"sku": code}
        product.update(fields)
        self.client.update(f"products/{_sku(code)}", {"product": product}, store=GLOBAL_STORE)

    def define_selection_options(
        self,
        parent_code: str,
        option: SelectionOption,
        scope: WriteScope = WriteScope.GLOBAL
    ) -> None:
        self.client.create(
            f"configurable-products/{_sku(parent_code)}/options",
            {
                "option": {
                    "attribute_id": str(option.attribute_id),
                    "label": option.label,
                    "position": option.position,
                    "is_use_default": True,
                    "values": [{"value_index": int(value)} for value in option.values],
                }
            },
            store=self._store(scope),
        )

    def link(self, parent_code: str, variant_code: str, scope: WriteScope = WriteScope.GLOBAL) -> None:
        self.client.create(
            f"configurable-products/{_sku(parent_code)}/child",
            {"childSku": variant_code},
            store=self._store(scope),
        )

    def update_scoped_fields(self, code: str, fields: Dict[str, Any], scope: str) -> None:
        product: Dict[str, Any] = {"sku": code}
        if "name" in fields:
            product["name"] = fields["name"]
        if fields.get("price") is not None:
            product["price"] = fields["price"]
        if "enabled" in fields:
            product["status"] = STATUS_ENABLED if fields["enabled"] else STATUS_DISABLED
        if "visibility" in fields:
            product["visibility"] = VISIBILITY_IDS[Visibility(fields["visibility"])]
        self.client.update(f"products/{_sku(code)}", {"product": product}, store=scope)

    def attach_media(
        self,
        code: str,
        media: MediaUpload,
        scope: WriteScope = WriteScope.GLOBAL
    ) -> Optional[str]:
        if media.content is None:
            raise ValueError(f"Media for {code} has no content to upload")
        entry = {
            "media_type": "image",
            "label": media.label,
            "position": media.position,
            "disabled": False,
            "types": list(media.types),
            "content": {
                "base64_encoded_data": base64.b64encode(media.content).decode("ascii"),
                "type": media.content_type,
                "name": media.file_name,
            },
        }
        data = self.client.create(f"products/{_sku(code)}/media", {"entry": entry}, store=self._store(scope))
        return str(data) if data is not None else None

    def test_connection(self) -> bool:
        return self.client.test_connection()
