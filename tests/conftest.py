"""
Shared fixtures: in-memory source catalog, Magento-like target and a
scripted GraphQL client.

The fakes implement the client interfaces the production code talks to
and record every call so tests can assert on the exact writes issued.
"""

import json
import re
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote

import pytest

from catalog_migration.adapters.magento import MagentoTargetAdapter
from catalog_migration.adapters.shopify import ShopifyTargetAdapter
from catalog_migration.clients.base import RemoteCatalogClient
from catalog_migration.errors import NotFoundError, RemoteAPIError
from catalog_migration.extractors.catalog_extractor import CatalogExtractor
from catalog_migration.models.migration import (
    MigrationConfig,
    Platform,
    SourceConfig,
    TargetInstanceConfig,
)
from catalog_migration.models.target import MediaUpload
from catalog_migration.orchestrator import MigrationOrchestrator
from catalog_migration.services.category_mapping import CategoryNameMapping
from catalog_migration.services.media import MediaMigrator, MediaTranscoder
from catalog_migration.services.notifications import NotificationSink

# ---------------------------------------------------------------------------
# Source catalog
# ---------------------------------------------------------------------------

COLOR_ATTRIBUTE_ID = "93"
COLOR_VALUES = {"Red": "5", "Blue": "6", "Green": "7", "Black": "8", "White": "9"}


class FakeSourceCatalog(RemoteCatalogClient):
    """Read-only catalog backed by a path -> response dictionary."""

    def __init__(self, resources: Optional[Dict[str, Any]] = None):
        self.resources: Dict[str, Any] = dict(resources or {})
        self.products_by_id: Dict[str, str] = {}
        self.failures: Dict[str, Exception] = {}
        self.calls: List[Tuple[str, str]] = []

    def add_product(self, product: Dict[str, Any]) -> None:
        self.resources[f"products/{product['sku']}"] = product
        if product.get("id") is not None:
            self.products_by_id[str(product["id"])] = product["sku"]

    def get(self, path, params=None, store=None):
        path = unquote(path)
        self.calls.append(("GET", path))
        if path in self.failures:
            raise self.failures[path]
        if path not in self.resources:
            raise NotFoundError(f"{path} not found")
        return self.resources[path]

    def create(self, path, payload, store=None):
        raise AssertionError(f"Source catalog must never be written: POST {path}")

    def update(self, path, payload, store=None):
        raise AssertionError(f"Source catalog must never be written: PUT {path}")

    def search(self, path, filters, store=None, page_size=None):
        self.calls.append(("SEARCH", path))
        if path in self.failures:
            raise self.failures[path]
        if path != "products":
            return []
        ids = []
        for search_filter in filters:
            if search_filter["field"] == "entity_id":
                ids.extend(str(search_filter["value"]).split(","))
        return [
            {"id": int(product_id), "sku": self.products_by_id[product_id]}
            for product_id in ids
            if product_id in self.products_by_id
        ]


def variant_sku(parent_code: str, label: str) -> str:
    return f"{parent_code}-{label.upper()}"


def build_source_catalog(
    code: str = "P-100",
    colors: Tuple[str, ...] = ("Red", "Blue"),
    link_data: bool = False,
    type_id: str = "configurable",
    categories: Optional[Dict[str, str]] = None
) -> FakeSourceCatalog:
    """
    Build a source catalog holding one configurable product with one
    variant per color.

    With link_data the membership list embeds SKUs and option pairs,
    otherwise it only carries numeric variant ids.
    """
    categories = {"3": "Shirts"} if categories is None else categories
    catalog = FakeSourceCatalog({
        "products/attribute-sets/10": {"attribute_set_id": 10, "attribute_set_name": "Apparel"},
        f"products/attributes/{COLOR_ATTRIBUTE_ID}": {"attribute_id": 93, "attribute_code": "color"},
        "products/attributes/color/options": [{"value": "", "label": " "}] + [
            {"value": value, "label": label} for label, value in COLOR_VALUES.items()
        ],
    })
    for category_id, name in categories.items():
        catalog.resources[f"categories/{category_id}"] = {"id": int(category_id), "name": name}

    links = []
    for index, label in enumerate(colors):
        child_id = 101 + index
        sku = variant_sku(code, label)
        catalog.add_product({
            "id": child_id,
            "sku": sku,
            "name": f"Tee {label}",
            "type_id": "simple",
            "price": 19.0 + index,
            "weight": 0.3,
            "custom_attributes": [{"attribute_code": "color", "value": COLOR_VALUES[label]}],
            "extension_attributes": {"stock_item": {"qty": 10, "is_in_stock": True}},
            "media_gallery_entries": [
                {"file": f"/t/e/{sku.lower()}.jpg", "position": 1, "disabled": False, "types": ["image"]},
            ],
        })
        if link_data:
            links.append(json.dumps({
                "simple_product_id": child_id,
                "simple_product_sku": sku,
                "product_name": f"Tee {label}",
                "simple_product_attribute": [{"label": "Color", "value": label}],
            }))
        else:
            links.append(child_id)

    extension: Dict[str, Any] = {
        "configurable_product_options": [{
            "attribute_id": COLOR_ATTRIBUTE_ID,
            "label": "Color",
            "position": 0,
            "values": [{"value_index": int(COLOR_VALUES[label])} for label in colors],
        }],
        "category_links": [{"category_id": category_id, "position": 0} for category_id in categories],
    }
    extension["configurable_product_link_data" if link_data else "configurable_product_links"] = links

    catalog.add_product({
        "id": 100,
        "sku": code,
        "name": "Classic Tee",
        "type_id": type_id,
        "attribute_set_id": 10,
        "weight": 0.5,
        "custom_attributes": [
            {"attribute_code": "description", "value": "<p>A classic tee</p>"},
            {"attribute_code": "meta_title", "value": "Classic Tee"},
        ],
        "extension_attributes": extension,
        "media_gallery_entries": [
            {"file": "/t/e/tee-back.jpg", "position": 2, "disabled": False, "label": "Back", "types": []},
            {"file": "/t/e/tee.jpg", "position": 1, "disabled": False, "label": "Front", "types": ["image"]},
            {"file": "/t/e/old.jpg", "position": 0, "disabled": True, "types": []},
        ],
    })
    return catalog


# ---------------------------------------------------------------------------
# Magento-like target
# ---------------------------------------------------------------------------


class FakeMagentoTarget(RemoteCatalogClient):
    """
    Stateful in-memory Magento REST API.

    POST products upserts by SKU, like the real endpoint. Failures are
    injected with fail(); each rule may be limited to a store, a SKU in
    the payload, or a number of occurrences.
    """

    def __init__(self, store_codes: Tuple[str, ...] = ("default",)):
        self.store_views = [{"code": "admin", "website_id": 0}] + [
            {"code": code, "website_id": 1} for code in store_codes
        ]
        self.attribute_sets = [
            {"attribute_set_id": 4, "attribute_set_name": "Default"},
            {"attribute_set_id": 11, "attribute_set_name": "apparel"},
        ]
        self.attributes: Dict[str, Dict[str, Any]] = {
            "color": {
                "attribute_id": 193,
                "attribute_code": "color",
                "default_frontend_label": "Color",
                "options": [{"label": "Red", "value": "41"}],
            },
        }
        self.categories = [{"id": 7, "name": "Shirts"}]
        self.products: Dict[str, Dict[str, Any]] = {}
        self.children: Dict[str, List[str]] = {}
        self.selection_options: Dict[str, List[Dict[str, Any]]] = {}
        self.media: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[Tuple[str, Optional[str], str, Any]] = []
        self._rules: List[Dict[str, Any]] = []
        self._next_id = 1000

    # Test helpers

    def seed_product(self, sku: str, type_id: str = "simple", children: Optional[List[str]] = None) -> None:
        self._next_id += 1
        self.products[sku] = {"id": self._next_id, "sku": sku, "type_id": type_id}
        if children is not None:
            self.children[sku] = list(children)

    def fail(
        self,
        method: str,
        path: str,
        error: Optional[Exception] = None,
        store: Optional[str] = None,
        sku: Optional[str] = None,
        times: Optional[int] = None
    ) -> None:
        self._rules.append({
            "method": method,
            "path": path,
            "store": store,
            "sku": sku,
            "remaining": times,
            "error": error or RemoteAPIError(f"{method} {path} rejected", status_code=400),
        })

    @property
    def writes(self) -> List[Tuple[str, Optional[str], str, Any]]:
        return [call for call in self.calls if call[0] in ("POST", "PUT")]

    def writes_to(self, path: str, method: str = "POST") -> List[Tuple[str, Optional[str], str, Any]]:
        return [call for call in self.calls if call[0] == method and call[2] == path]

    # Dispatch

    def _record(self, method: str, path: str, store: Optional[str], payload: Any) -> str:
        path = unquote(path)
        self.calls.append((method, store, path, payload))
        payload_sku = None
        if isinstance(payload, dict):
            payload_sku = (payload.get("product") or {}).get("sku")
        for rule in self._rules:
            if rule["method"] != method or rule["path"] != path:
                continue
            if rule["store"] is not None and rule["store"] != store:
                continue
            if rule["sku"] is not None and rule["sku"] != payload_sku:
                continue
            if rule["remaining"] is not None:
                if rule["remaining"] <= 0:
                    continue
                rule["remaining"] -= 1
            raise rule["error"]
        return path

    def _options(self, code: str) -> List[Dict[str, Any]]:
        return [{"label": " ", "value": ""}] + self.attributes[code]["options"]

    def get(self, path, params=None, store=None):
        path = self._record("GET", path, store, None)
        if path == "store/storeViews":
            return self.store_views
        if path == "store/storeConfigs":
            return []

        match = re.fullmatch(r"products/attributes/([^/]+)/options", path)
        if match:
            if match.group(1) not in self.attributes:
                raise NotFoundError(f"Attribute {match.group(1)} not found")
            return self._options(match.group(1))

        match = re.fullmatch(r"products/attributes/([^/]+)", path)
        if match:
            attribute = self.attributes.get(match.group(1))
            if attribute is None:
                raise NotFoundError(f"Attribute {match.group(1)} not found")
            return {key: value for key, value in attribute.items() if key != "options"}

        match = re.fullmatch(r"configurable-products/([^/]+)/children", path)
        if match:
            return [dict(self.products.get(sku, {"sku": sku})) for sku in self.children.get(match.group(1), [])]

        match = re.fullmatch(r"products/([^/]+)", path)
        if match:
            product = self.products.get(match.group(1))
            if product is None:
                raise NotFoundError(f"Product {match.group(1)} not found")
            return dict(product)

        raise NotFoundError(f"{path} not found")

    def create(self, path, payload, store=None):
        path = self._record("POST", path, store, payload)
        if path == "products":
            product = dict(payload["product"])
            existing = self.products.get(product["sku"])
            if existing:
                product["id"] = existing["id"]
            else:
                self._next_id += 1
                product["id"] = self._next_id
            self.products[product["sku"]] = product
            return product

        match = re.fullmatch(r"products/attributes/([^/]+)/options", path)
        if match:
            options = self.attributes[match.group(1)]["options"]
            value = str(41 + len(options))
            options.append({"label": payload["option"]["label"], "value": value})
            return f"id_{value}"

        match = re.fullmatch(r"configurable-products/([^/]+)/options", path)
        if match:
            self.selection_options.setdefault(match.group(1), []).append(payload["option"])
            return len(self.selection_options[match.group(1)])

        match = re.fullmatch(r"configurable-products/([^/]+)/child", path)
        if match:
            parent = match.group(1)
            if parent not in self.products:
                raise NotFoundError(f"Product {parent} not found")
            children = self.children.setdefault(parent, [])
            if payload["childSku"] not in children:
                children.append(payload["childSku"])
            return True

        match = re.fullmatch(r"products/([^/]+)/media", path)
        if match:
            entries = self.media.setdefault(match.group(1), [])
            entries.append(payload["entry"])
            return len(entries)

        raise AssertionError(f"Unexpected POST {path}")

    def update(self, path, payload, store=None):
        path = self._record("PUT", path, store, payload)
        match = re.fullmatch(r"products/([^/]+)", path)
        if not match or match.group(1) not in self.products:
            raise NotFoundError(f"{path} not found")
        self.products[match.group(1)].update(payload["product"])
        return self.products[match.group(1)]

    def search(self, path, filters, store=None, page_size=None):
        self._record("SEARCH", path, store, filters)
        if path == "products/attribute-sets/sets/list":
            return list(self.attribute_sets)
        if path == "categories/list":
            names = [f["value"] for f in filters if f["field"] == "name"]
            return [category for category in self.categories if category["name"] in names]
        return []


# ---------------------------------------------------------------------------
# Shopify GraphQL
# ---------------------------------------------------------------------------


class ScriptedGraphQLClient:
    """
    GraphQL client answering by operation name.

    Default handlers behave like an empty shop; override entries in
    `handlers` to script other responses.
    """

    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.handlers: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
            "findVariantsBySkus": lambda variables: {"productVariants": {"edges": []}},
            "findProductByHandle": lambda variables: {"products": {"edges": []}},
            "productSet": self._product_set,
            "productVariantsBulkCreate": self._bulk_create,
            "productVariantsBulkUpdate": lambda variables: {"productVariantsBulkUpdate": {"userErrors": []}},
            "productUpdate": lambda variables: {"productUpdate": {"userErrors": []}},
            "productCreateMedia": lambda variables: {
                "productCreateMedia": {"media": [{"id": "gid://shopify/MediaImage/1", "status": "UPLOADED"}],
                                       "mediaUserErrors": []},
            },
            "mediaStatus": lambda variables: {"node": {"id": variables["id"], "status": "READY"}},
            "productVariantAppendMedia": lambda variables: {"productVariantAppendMedia": {"userErrors": []}},
        }

    @staticmethod
    def _product_set(variables):
        variants = variables["input"].get("variants") or []
        return {"productSet": {
            "product": {
                "id": "gid://shopify/Product/1",
                "handle": variables["input"]["handle"],
                "variants": {"edges": [
                    {"node": {"id": f"gid://shopify/ProductVariant/{index + 1}", "sku": v["inventoryItem"]["sku"]}}
                    for index, v in enumerate(variants)
                ]},
            },
            "userErrors": [],
        }}

    @staticmethod
    def _bulk_create(variables):
        return {"productVariantsBulkCreate": {
            "productVariants": [
                {"id": f"gid://shopify/ProductVariant/{100 + index}", "sku": v["inventoryItem"]["sku"]}
                for index, v in enumerate(variables["variants"])
            ],
            "userErrors": [],
        }}

    def operations(self, name: str) -> List[Dict[str, Any]]:
        return [variables for operation, variables in self.calls if operation == name]

    def execute(self, query, variables=None):
        operation = re.search(r"(?:query|mutation)\s+(\w+)", query).group(1)
        self.calls.append((operation, variables or {}))
        return self.handlers[operation](variables or {})

    def test_connection(self):
        return True


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class FakeTranscoder(MediaTranscoder):
    def __init__(self):
        self.fetched: List[str] = []

    def fetch(self, url):
        self.fetched.append(url)
        return b"raw-image"

    def reencode(self, content):
        return b"jpeg:" + content


class RecordingNotifier(NotificationSink):
    def __init__(self):
        self.started: List[Tuple[str, List[str], List[str]]] = []
        self.ended = []

    def notify_start(self, parent_code, variant_codes, instances):
        self.started.append((parent_code, list(variant_codes), list(instances)))

    def notify_end(self, result):
        self.ended.append(result)


def magento_instance(name: str, store_codes: Tuple[str, ...] = ("default",)) -> TargetInstanceConfig:
    return TargetInstanceConfig(
        name=name,
        platform=Platform.MAGENTO,
        base_url=f"https://{name}.test",
        token="token",
        store_codes=list(store_codes),
    )


def shopify_instance(name: str) -> TargetInstanceConfig:
    return TargetInstanceConfig(
        name=name,
        platform=Platform.SHOPIFY,
        base_url=f"{name}.myshopify.com",
        token="token",
    )


def build_orchestrator(
    source: FakeSourceCatalog,
    targets: Dict[str, Any],
    instances: List[TargetInstanceConfig],
    notifier: Optional[NotificationSink] = None,
    continue_on_error: bool = True,
    category_mapping: Optional[CategoryNameMapping] = None
) -> MigrationOrchestrator:
    """
    Wire an orchestrator to fake clients.

    `targets` maps instance name to a FakeMagentoTarget or a
    ScriptedGraphQLClient; every migration gets fresh adapters over the
    same fake client, like the real factory.
    """
    config = MigrationConfig(
        source=SourceConfig(base_url="https://source.test", token="source-token"),
        targets={instance.name: instance for instance in instances},
        continue_on_error=continue_on_error,
        max_concurrency=2,
    )

    def adapter_factory(instance: TargetInstanceConfig):
        client = targets[instance.name]
        if instance.platform == Platform.SHOPIFY:
            return ShopifyTargetAdapter(instance, client, media_poll_delay=0)
        return MagentoTargetAdapter(instance, client)

    return MigrationOrchestrator(
        config,
        source_client=source,
        adapter_factory=adapter_factory,
        notifier=notifier or RecordingNotifier(),
        category_mapping=category_mapping or CategoryNameMapping(),
        media=MediaMigrator(FakeTranscoder(), "https://source.test/media/catalog/product"),
    )


@pytest.fixture()
def source():
    return build_source_catalog()


@pytest.fixture()
def magento_target():
    return FakeMagentoTarget(store_codes=("default", "fr"))


@pytest.fixture()
def store_a():
    return magento_instance("store-a", ("default", "fr"))


@pytest.fixture()
def snapshot(source):
    return CatalogExtractor(source, max_concurrency=2).extract("P-100")


@pytest.fixture()
def media_upload():
    return MediaUpload(url="https://source.test/media/catalog/product/t/e/tee.jpg", label="Front",
                       content=b"jpeg", file_name="tee.jpg")
