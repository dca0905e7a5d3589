"""Translation of source identifiers into human-comparable labels."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from .base import ExtractionContext
from ..clients.base import RemoteCatalogClient
from ..errors import TranslationError
from ..models.product import IdentifierTranslation, get_custom_attribute

logger = logging.getLogger(__name__)


class IdentifierTranslator:
    """
    Resolves source ids to labels: attribute set names, attribute codes,
    option labels and category names.

    Every lookup is best-effort. A failed lookup leaves the entry out of
    the translation and adds a warning to the extraction context.
    """

    def __init__(self, client: RemoteCatalogClient, max_concurrency: int = 5):
        self.client = client
        self.max_concurrency = max_concurrency

    def translate(
        self,
        parent: Dict[str, Any],
        children: List[Dict[str, Any]],
        context: ExtractionContext
    ) -> IdentifierTranslation:
        """
        Build the identifier translation for a composite product.

        Args:
            parent: Source parent record
            children: Source variant records that were fetched
            context: Extraction context collecting warnings

        Returns:
            IdentifierTranslation (possibly partial)
        """
        translation = IdentifierTranslation()

        attribute_set_id = parent.get("attribute_set_id")
        if attribute_set_id is not None:
            translation.attribute_set_id = str(attribute_set_id)
            translation.attribute_set_name = self._safe(
                context, self.attribute_set_name, attribute_set_id
            )

        extension = parent.get("extension_attributes") or {}
        for option in extension.get("configurable_product_options") or []:
            self._translate_option(option, children, translation, context)

        category_ids = self.category_ids(parent)
        if category_ids:
            translation.categories = self.category_names(category_ids, context)

        logger.info(
            f"Translated {len(translation.attributes)} attributes, "
            f"{len(translation.attribute_values)} option values and "
            f"{len(translation.categories)} categories for {parent.get('sku')}"
        )
        return translation

    def _safe(self, context: ExtractionContext, lookup, *args) -> Optional[Any]:
        try:
            return lookup(*args)
        except Exception as e:
            context.add_warning(f"{lookup.__name__}({', '.join(str(a) for a in args)}) failed: {e}")
            return None

    def _translate_option(
        self,
        option: Dict[str, Any],
        children: List[Dict[str, Any]],
        translation: IdentifierTranslation,
        context: ExtractionContext
    ) -> None:
        attribute_id = str(option.get("attribute_id"))
        code = self._safe(context, self.attribute_code, attribute_id)
        if not code:
            return
        translation.attributes[attribute_id] = code

        value_ids = [
            str(value["value_index"])
            for value in option.get("values") or []
            if value.get("value_index") is not None
        ]
        if not value_ids:
            value_ids = self.infer_value_ids(code, children)
            logger.debug(f"Inferred {len(value_ids)} values for {code} from variants")

        if not value_ids:
            return

        options = self._safe(context, self.option_catalog, code)
        if options is None:
            return

        for value_id in value_ids:
            label = options.get(value_id)
            if label:
                translation.attribute_values[(attribute_id, value_id)] = label
            else:
                context.add_warning(f"No label for value {value_id} of attribute {code}")

    def attribute_set_name(self, attribute_set_id: Any) -> Optional[str]:
        data = self.client.get(f"products/attribute-sets/{attribute_set_id}")
        return data.get("attribute_set_name") if isinstance(data, dict) else None

    def attribute_code(self, attribute_id: str) -> str:
        data = self.client.get(f"products/attributes/{quote(str(attribute_id), safe='')}")
        code = data.get("attribute_code") if isinstance(data, dict) else None
        if not code:
            raise TranslationError(f"Attribute {attribute_id} has no code", phase="extraction")
        return code

    def option_catalog(self, code: str) -> Dict[str, str]:
        """
        Get the option catalog of an attribute.

        Returns:
            Dictionary of option value (as string) -> label
        """
        options = self.client.get(f"products/attributes/{quote(code, safe='')}/options") or []
        return {
            str(option.get("value")): option.get("label")
            for option in options
            if option.get("value") not in (None, "") and option.get("label")
        }

    @staticmethod
    def infer_value_ids(code: str, children: List[Dict[str, Any]]) -> List[str]:
        """Collect the distinct values the variants actually use for an attribute."""
        value_ids: List[str] = []
        for child in children:
            value = get_custom_attribute(child, code)
            if value is None or value == "":
                continue
            if str(value) not in value_ids:
                value_ids.append(str(value))
        return value_ids

    @staticmethod
    def category_ids(product: Dict[str, Any]) -> List[str]:
        """Get category ids from category links, falling back to the category_ids attribute."""
        extension = product.get("extension_attributes") or {}
        links = extension.get("category_links") or []
        ids = [str(link["category_id"]) for link in links if link.get("category_id") is not None]
        if not ids:
            value = get_custom_attribute(product, "category_ids") or []
            if isinstance(value, str):
                value = value.split(",")
            ids = [str(v).strip() for v in value if str(v).strip()]

        distinct: List[str] = []
        for category_id in ids:
            if category_id not in distinct:
                distinct.append(category_id)
        return distinct

    def category_names(self, category_ids: List[str], context: ExtractionContext) -> Dict[str, str]:
        """Translate category ids to names with bounded concurrency."""
        with ThreadPoolExecutor(max_workers=self.max_concurrency) as executor:
            futures = [
                (category_id, executor.submit(self.client.get, f"categories/{category_id}"))
                for category_id in category_ids
            ]

        names: Dict[str, str] = {}
        for category_id, future in futures:
            try:
                data = future.result()
            except Exception as e:
                context.add_warning(f"Category {category_id} could not be translated: {e}")
                continue
            name = data.get("name") if isinstance(data, dict) else None
            if name:
                names[category_id] = name
            else:
                context.add_warning(f"Category {category_id} has no name")
        return names
