"""Extraction of a composite product and its variants from the source catalog."""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from .base import ExtractionContext
from .translator import IdentifierTranslator
from ..clients.base import RemoteCatalogClient
from ..errors import NotFoundError, TypeMismatchError
from ..models.product import MediaEntry, ProductMedia, SourceSnapshot, VariantLink

logger = logging.getLogger(__name__)

COMPOSITE_TYPE = "configurable"


class CatalogExtractor:
    """
    Reads a composite product graph from the source catalog.

    Handles:
    - Parent lookup and type check
    - Variant membership from embedded link data or numeric ids
    - Bounded-concurrency variant fetch, dropping variants that fail
    - Ordered, enabled media for parent and variants
    - Identifier translation
    """

    def __init__(self, client: RemoteCatalogClient, max_concurrency: int = 5):
        """
        Initialize the extractor.

        Args:
            client: Source catalog client
            max_concurrency: Maximum simultaneous remote reads
        """
        self.client = client
        self.max_concurrency = max_concurrency
        self.translator = IdentifierTranslator(client, max_concurrency)

    def extract(self, code: str) -> SourceSnapshot:
        """
        Extract a composite product.

        Args:
            code: Source SKU of the parent

        Returns:
            SourceSnapshot shared by every target instance

        Raises:
            NotFoundError: The parent does not exist
            TypeMismatchError: The parent is not a composite product
        """
        context = ExtractionContext(source_code=code)
        logger.info(f"Extracting composite product {code}")

        parent = self.fetch_parent(code)
        links = self.resolve_variant_links(parent, context)
        children = self.fetch_variants([link.code for link in links], context)
        translations = self.translator.translate(parent, children, context)
        images = ProductMedia(
            parent=self.extract_media(parent),
            children={child["sku"]: self.extract_media(child) for child in children},
        )

        context.complete()
        logger.info(
            f"Extracted {code}: {len(children)}/{len(links)} variants, "
            f"{images.total} images, {len(context.warnings)} warnings"
        )

        return SourceSnapshot(
            parent=parent,
            children=tuple(children),
            variant_links=tuple(link for link in links if any(c["sku"] == link.code for c in children)),
            translations=translations,
            images=images,
            metadata={
                "source_id": parent.get("id"),
                "declared_variants": len(links),
                "extracted_variants": len(children),
                "extracted_at": datetime.utcnow().isoformat(),
                "duration_seconds": context.duration_seconds,
            },
            warnings=tuple(context.warnings),
        )

    def fetch_parent(self, code: str) -> Dict[str, Any]:
        try:
            parent = self.client.get(f"products/{quote(code, safe='')}")
        except NotFoundError as e:
            raise NotFoundError(f"Product {code} not found in source", phase="extraction") from e

        if not parent:
            raise NotFoundError(f"Product {code} not found in source", phase="extraction")

        type_id = parent.get("type_id")
        if type_id != COMPOSITE_TYPE:
            raise TypeMismatchError(
                f"Product {code} is of type '{type_id}', expected '{COMPOSITE_TYPE}'",
                phase="extraction",
                details={"type_id": type_id},
            )
        return parent

    def resolve_variant_links(
        self,
        parent: Dict[str, Any],
        context: ExtractionContext
    ) -> List[VariantLink]:
        """
        Resolve the parent's variant membership list.

        Embedded link data carries codes and option pairs directly. Plain
        links may only carry numeric ids, which need a code lookup.
        """
        extension = parent.get("extension_attributes") or {}

        link_data = extension.get("configurable_product_link_data") or []
        if link_data:
            links = self._links_from_link_data(link_data, context)
        else:
            links = self._links_from_references(extension.get("configurable_product_links") or [], context)

        distinct: List[VariantLink] = []
        seen = set()
        for link in links:
            if link.code in seen:
                continue
            seen.add(link.code)
            distinct.append(link)

        logger.debug(f"Resolved {len(distinct)} variant links for {parent.get('sku')}")
        return distinct

    def _links_from_link_data(self, link_data: List[Any], context: ExtractionContext) -> List[VariantLink]:
        links = []
        for entry in link_data:
            if isinstance(entry, str):
                try:
                    entry = json.loads(entry)
                except ValueError:
                    context.add_warning(f"Unreadable variant link data: {entry[:100]}")
                    continue
            code = entry.get("simple_product_sku")
            if not code:
                context.add_warning("Variant link data without a SKU")
                continue
            attributes = {
                str(pair["label"]).lower(): str(pair["value"])
                for pair in entry.get("simple_product_attribute") or []
                if pair.get("label") and pair.get("value") is not None
            }
            source_id = entry.get("simple_product_id")
            links.append(VariantLink(
                code=code,
                source_id=str(source_id) if source_id is not None else None,
                name=entry.get("product_name"),
                attributes=attributes,
            ))
        return links

    def _links_from_references(self, references: List[Any], context: ExtractionContext) -> List[VariantLink]:
        numeric_ids = [str(ref) for ref in references if self._is_numeric_id(ref)]
        codes_by_id = self.lookup_codes(numeric_ids, context) if numeric_ids else {}

        links = []
        for ref in references:
            if self._is_numeric_id(ref):
                code = codes_by_id.get(str(ref))
                if not code:
                    context.add_warning(f"No SKU found for variant id {ref}")
                    continue
                links.append(VariantLink(code=code, source_id=str(ref)))
            else:
                links.append(VariantLink(code=str(ref)))
        return links

    @staticmethod
    def _is_numeric_id(ref: Any) -> bool:
        return isinstance(ref, int) or (isinstance(ref, str) and ref.isdigit())

    def lookup_codes(self, ids: List[str], context: ExtractionContext) -> Dict[str, str]:
        """Look up SKUs for numeric product ids."""
        try:
            items = self.client.search(
                "products",
                [{"field": "entity_id", "value": ",".join(ids), "condition_type": "in"}],
                page_size=len(ids),
            )
        except Exception as e:
            context.add_warning(f"Variant SKU lookup failed: {e}")
            return {}
        return {str(item.get("id")): item.get("sku") for item in items if item.get("sku")}

    def fetch_variants(self, codes: List[str], context: ExtractionContext) -> List[Dict[str, Any]]:
        """
        Fetch variant records with bounded concurrency.

        A variant that cannot be fetched is left out with a warning.
        Results keep membership order.
        """
        if not codes:
            return []

        with ThreadPoolExecutor(max_workers=self.max_concurrency) as executor:
            futures: List[Tuple[str, Any]] = [
                (code, executor.submit(self.client.get, f"products/{quote(code, safe='')}"))
                for code in codes
            ]

        children = []
        for code, future in futures:
            try:
                child = future.result()
            except Exception as e:
                context.add_warning(f"Variant {code} could not be fetched and is skipped: {e}")
                continue
            if not isinstance(child, dict) or not child:
                context.add_warning(f"Variant {code} returned no data and is skipped")
                continue
            child.setdefault("sku", code)
            children.append(child)
        return children

    @staticmethod
    def extract_media(product: Optional[Dict[str, Any]]) -> Tuple[MediaEntry, ...]:
        """Get enabled media gallery entries sorted by position."""
        entries = [
            MediaEntry.from_source(entry)
            for entry in (product or {}).get("media_gallery_entries") or []
            if not entry.get("disabled") and entry.get("file")
        ]
        return tuple(sorted(entries, key=lambda entry: entry.position))
