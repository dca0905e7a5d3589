"""Shopify GraphQL target adapter."""

import logging
import re
import time
from typing import Any, Dict, List, Optional, Tuple

from .base import TargetAdapter
from ..clients.graphql import GraphQLClient, user_error_messages
from ..errors import EntityWriteError
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

MAX_OPTIONS = 3
MAX_VARIANTS = 100

PRODUCT_SET = """
mutation productSet($input: ProductSetInput!, $synchronous: Boolean!) {
  productSet(input: $input, synchronous: $synchronous) {
    product {
      id
      handle
      variants(first: 100) { edges { node { id sku } } }
    }
    userErrors { field message }
  }
}
"""

VARIANTS_BULK_CREATE = """
mutation productVariantsBulkCreate($productId: ID!, $variants: [ProductVariantsBulkInput!]!, $strategy: ProductVariantsBulkCreateStrategy) {
  productVariantsBulkCreate(productId: $productId, variants: $variants, strategy: $strategy) {
    productVariants { id sku }
    userErrors { field message }
  }
}
"""

VARIANTS_BULK_UPDATE = """
mutation productVariantsBulkUpdate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkUpdate(productId: $productId, variants: $variants) {
    productVariants { id }
    userErrors { field message }
  }
}
"""

PRODUCT_UPDATE = """
mutation productUpdate($product: ProductUpdateInput!) {
  productUpdate(product: $product) {
    product { id }
    userErrors { field message }
  }
}
"""

FIND_VARIANTS = """
query findVariantsBySkus($query: String!) {
  productVariants(first: 100, query: $query) {
    edges { node { id sku product { id handle } } }
  }
}
"""

FIND_PRODUCT = """
query findProductByHandle($query: String!) {
  products(first: 1, query: $query) {
    edges { node { id handle variants(first: 100) { edges { node { id sku } } } } }
  }
}
"""

PRODUCT_CREATE_MEDIA = """
mutation productCreateMedia($productId: ID!, $media: [CreateMediaInput!]!) {
  productCreateMedia(productId: $productId, media: $media) {
    media { id status }
    mediaUserErrors { field message }
  }
}
"""

MEDIA_STATUS = """
query mediaStatus($id: ID!) {
  node(id: $id) { ... on MediaImage { id status } }
}
"""

VARIANT_APPEND_MEDIA = """
mutation productVariantAppendMedia($productId: ID!, $variantMedia: [ProductVariantAppendMediaInput!]!) {
  productVariantAppendMedia(productId: $productId, variantMedia: $variantMedia) {
    productVariants { id }
    userErrors { field message }
  }
}
"""


def slugify(value: str) -> str:
    """Make a product handle from a code."""
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def format_option_name(code: str) -> str:
    """Turn an attribute code into an option name (shoe_size -> Shoe Size)."""
    return code.replace("_", " ").title()


class ShopifyTargetAdapter(TargetAdapter):
    """
    Adapter for Shopify targets.

    Options are referenced by label and created together with the
    product, so option resolution never issues remote calls. Variants
    cannot exist on their own: create_variant stages the variant, and
    the staged variants are submitted with the parent in one productSet
    mutation, or appended to an existing product by link() during a
    variant sync. Mutations acknowledge through userErrors rather than
    HTTP status codes.
    """

    platform = "shopify"
    requires_media_content = False

    def __init__(
        self,
        instance: TargetInstanceConfig,
        client: GraphQLClient,
        media_poll_attempts: int = 10,
        media_poll_delay: float = 1.0
    ):
        super().__init__(instance)
        self.client = client
        self.media_poll_attempts = media_poll_attempts
        self.media_poll_delay = media_poll_delay
        self._product_ids: Dict[str, str] = {}  # parent code -> product gid
        self._variant_ids: Dict[str, str] = {}  # variant sku -> variant gid
        self._variant_products: Dict[str, str] = {}  # variant sku -> product gid
        self._staged: Dict[str, Dict[str, Any]] = {}  # variant sku -> variant input

    def display_scopes(self) -> List[str]:
        return ["default"]

    def _mutate(self, document: str, variables: Dict[str, Any], field: str, code: str) -> Dict[str, Any]:
        data = self.client.execute(document, variables)
        payload = data.get(field) or {}
        messages = user_error_messages(payload) or [
            error.get("message", "unknown error") for error in payload.get("mediaUserErrors") or []
        ]
        if messages:
            raise EntityWriteError(
                f"{field} failed for {code}: {'; '.join(messages)}",
                code=code,
                instance=self.name,
            )
        return payload

    # Preparation

    def resolve_attribute_set(self, name: str) -> Optional[Tuple[int, str]]:
        return None

    def resolve_attribute(self, code: str) -> Optional[ResolvedAttribute]:
        option_name = format_option_name(code)
        return ResolvedAttribute(code=code, target_id=option_name, label=option_name)

    def resolve_option(self, attribute: ResolvedAttribute, label: str) -> Optional[str]:
        value = attribute.find_option(label)
        if value is None:
            value = label
            attribute.options[label] = value
        return value

    def resolve_category(self, name: str) -> Optional[str]:
        return name

    # Existence

    def find_composite(self, code: str, variant_codes: List[str]) -> Optional[ExistingComposite]:
        product_id = None
        found: List[str] = []

        if variant_codes:
            query = " OR ".join(f"sku:{sku}" for sku in variant_codes)
            data = self.client.execute(FIND_VARIANTS, {"query": query})
            edges = ((data.get("productVariants") or {}).get("edges")) or []
            for edge in edges:
                node = edge["node"]
                if node.get("sku") not in variant_codes:
                    continue
                node_product = node["product"]["id"]
                product_id = product_id or node_product
                if node_product == product_id:
                    found.append(node["sku"])
                    self._variant_ids[node["sku"]] = node["id"]
                    self._variant_products[node["sku"]] = node_product

        if product_id is None:
            data = self.client.execute(FIND_PRODUCT, {"query": f"handle:{slugify(code)}"})
            edges = ((data.get("products") or {}).get("edges")) or []
            if not edges:
                return None
            product = edges[0]["node"]
            product_id = product["id"]
            for variant_edge in (product.get("variants") or {}).get("edges") or []:
                variant = variant_edge["node"]
                if variant.get("sku"):
                    found.append(variant["sku"])
                    self._variant_ids[variant["sku"]] = variant["id"]
                    self._variant_products[variant["sku"]] = product_id

        self._product_ids[code] = product_id
        return ExistingComposite(target_id=product_id, is_composite=True, variant_codes=found)

    # Writes

    def create_variant(self, payload: ProductPayload, scope: WriteScope = WriteScope.GLOBAL) -> Optional[str]:
        missing = [code for code in payload.required_selections if code not in payload.selection_codes]
        if missing:
            raise EntityWriteError(
                f"Variant {payload.code} has no value for option(s) {', '.join(missing)}",
                code=payload.code,
                instance=self.name,
            )
        if len(self._staged) >= MAX_VARIANTS:
            raise EntityWriteError(
                f"Variant {payload.code} exceeds the {MAX_VARIANTS} variant limit",
                code=payload.code,
                instance=self.name,
            )

        variant: Dict[str, Any] = {
            "price": str(payload.price or 0),
            "optionValues": [
                {"optionName": format_option_name(selection.code), "name": selection.value}
                for selection in payload.selections[:MAX_OPTIONS]
            ],
            "inventoryItem": {"sku": payload.code, "tracked": True},
        }
        if payload.weight:
            variant["inventoryItem"]["measurement"] = {
                "weight": {"value": float(payload.weight), "unit": "KILOGRAMS"}
            }

        self._staged[payload.code] = variant
        logger.debug(f"Staged variant {payload.code} for {self.name}")
        return None

    def _product_options(self) -> List[Dict[str, Any]]:
        options: Dict[str, List[str]] = {}
        for variant in self._staged.values():
            for value in variant["optionValues"]:
                values = options.setdefault(value["optionName"], [])
                if value["name"] not in values:
                    values.append(value["name"])
        return [
            {"name": name, "values": [{"name": value} for value in values]}
            for name, values in list(options.items())[:MAX_OPTIONS]
        ]

    def create_composite(self, payload: ProductPayload, scope: WriteScope = WriteScope.GLOBAL) -> Optional[str]:
        product_input: Dict[str, Any] = {
            "title": payload.name,
            "handle": slugify(payload.code),
            "status": "ACTIVE" if payload.enabled else "DRAFT",
            "productType": payload.product_kind or "",
        }
        if payload.description:
            product_input["descriptionHtml"] = payload.description
        if self._staged:
            product_input["productOptions"] = self._product_options()
            product_input["variants"] = list(self._staged.values())

        result = self._mutate(
            PRODUCT_SET,
            {"input": product_input, "synchronous": True},
            "productSet",
            payload.code,
        )
        product = result.get("product") or {}
        product_id = product.get("id")
        if not product_id:
            raise EntityWriteError(f"productSet returned no product for {payload.code}", code=payload.code)

        self._product_ids[payload.code] = product_id
        for edge in (product.get("variants") or {}).get("edges") or []:
            node = edge["node"]
            if node.get("sku"):
                self._variant_ids[node["sku"]] = node["id"]
                self._variant_products[node["sku"]] = product_id
                self._staged.pop(node["sku"], None)

        logger.info(f"Created product {payload.code} ({product_id}) on {self.name}")
        return product_id

    def update_global_fields(self, code: str, fields: Dict[str, Any]) -> None:
        logger.debug(f"No global-only fields on {self.platform}; skipping {list(fields)} for {code}")

    def define_selection_options(
        self,
        parent_code: str,
        option: SelectionOption,
        scope: WriteScope = WriteScope.GLOBAL
    ) -> None:
        # Options are created from the variants' option values
        logger.debug(f"Option {option.label} for {parent_code} is defined by its variants")

    def link(self, parent_code: str, variant_code: str, scope: WriteScope = WriteScope.GLOBAL) -> None:
        if variant_code in self._variant_ids:
            return

        variant = self._staged.pop(variant_code, None)
        if variant is None:
            raise EntityWriteError(
                f"Variant {variant_code} was not created and cannot be linked",
                code=variant_code,
                instance=self.name,
            )

        product_id = self._product_ids.get(parent_code)
        if not product_id:
            raise EntityWriteError(f"Parent {parent_code} does not exist on {self.name}", code=variant_code)

        result = self._mutate(
            VARIANTS_BULK_CREATE,
            {"productId": product_id, "variants": [variant], "strategy": "REMOVE_STANDALONE_VARIANT"},
            "productVariantsBulkCreate",
            variant_code,
        )
        for created in result.get("productVariants") or []:
            self._variant_ids[created.get("sku") or variant_code] = created["id"]
            self._variant_products[created.get("sku") or variant_code] = product_id

    def update_scoped_fields(self, code: str, fields: Dict[str, Any], scope: str) -> None:
        if code in self._product_ids:
            product: Dict[str, Any] = {"id": self._product_ids[code]}
            if "name" in fields:
                product["title"] = fields["name"]
            if "enabled" in fields:
                product["status"] = "ACTIVE" if fields["enabled"] else "DRAFT"
            self._mutate(PRODUCT_UPDATE, {"product": product}, "productUpdate", code)
        elif code in self._variant_ids and fields.get("price") is not None:
            self._mutate(
                VARIANTS_BULK_UPDATE,
                {
                    "productId": self._variant_products[code],
                    "variants": [{"id": self._variant_ids[code], "price": str(fields["price"])}],
                },
                "productVariantsBulkUpdate",
                code,
            )

    def attach_media(
        self,
        code: str,
        media: MediaUpload,
        scope: WriteScope = WriteScope.GLOBAL
    ) -> Optional[str]:
        product_id = self._product_ids.get(code) or self._variant_products.get(code)
        if not product_id:
            raise EntityWriteError(f"No product found for media of {code}", code=code, instance=self.name)

        result = self._mutate(
            PRODUCT_CREATE_MEDIA,
            {
                "productId": product_id,
                "media": [{"originalSource": media.url, "alt": media.label, "mediaContentType": "IMAGE"}],
            },
            "productCreateMedia",
            code,
        )
        created = result.get("media") or []
        if not created:
            return None
        media_id = created[0]["id"]

        if code in self._variant_ids:
            self._wait_for_media(media_id)
            self._mutate(
                VARIANT_APPEND_MEDIA,
                {
                    "productId": product_id,
                    "variantMedia": [{"variantId": self._variant_ids[code], "mediaIds": [media_id]}],
                },
                "productVariantAppendMedia",
                code,
            )
        return media_id

    def _wait_for_media(self, media_id: str) -> None:
        """Poll until media processing finishes; variants can only reference ready media."""
        for attempt in range(self.media_poll_attempts):
            node = self.client.execute(MEDIA_STATUS, {"id": media_id}).get("node") or {}
            status = node.get("status")
            if status == "READY":
                return
            if status == "FAILED":
                raise EntityWriteError(f"Media {media_id} failed processing", instance=self.name)
            logger.debug(f"Media {media_id} is {status}, attempt {attempt + 1}")
            time.sleep(self.media_poll_delay)
        raise EntityWriteError(f"Media {media_id} was not ready in time", instance=self.name)

    def test_connection(self) -> bool:
        return self.client.test_connection()
