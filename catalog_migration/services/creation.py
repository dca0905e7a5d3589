"""Creation and linking of composite products on a target instance."""

import logging
from typing import Any, Dict, List, Optional

from ..adapters.base import TargetAdapter
from ..errors import EntityWriteError
from ..models.migration import MigrationOptions
from ..models.product import SourceSnapshot, VariantLink, get_custom_attribute
from ..models.result import CreationResult, EntityOutcome, InstanceMode, ScopeResult
from ..models.target import (
    ExistingComposite,
    OptionSelection,
    ProductPayload,
    ProductType,
    SelectionOption,
    StockInfo,
    TargetResourceMapping,
    Visibility,
    WriteScope,
)
from .media import MediaMigrator

logger = logging.getLogger(__name__)

DEFAULT_WEIGHT = "0.1"

# Free-text attributes copied to the target as-is
PASSTHROUGH_ATTRIBUTES = ("short_description", "meta_title", "meta_keyword", "meta_description")


class CreationEngine:
    """
    Builds and submits the writes for one target instance.

    Full creation order: variants, parent (plus corrective global
    write), selection options, links, media. Variant sync creates and
    links only the missing variants and never touches the parent's media.

    Write failures on single entities are recorded; with
    continue_on_error disabled the first one is raised as
    EntityWriteError and the remaining work is abandoned.
    """

    def __init__(
        self,
        adapter: TargetAdapter,
        continue_on_error: bool = True,
        media: Optional[MediaMigrator] = None
    ):
        """
        Initialize the engine.

        Args:
            adapter: Adapter for the target instance
            continue_on_error: Record entity failures and keep going
            media: Media migrator, required when images are included
        """
        self.adapter = adapter
        self.continue_on_error = continue_on_error
        self.media = media

    def _failure(
        self,
        code: str,
        action: str,
        error: Exception,
        errors: List[Dict[str, Any]]
    ) -> EntityOutcome:
        """Record a failed write; raise it when errors are not allowed to continue."""
        write_error = error if isinstance(error, EntityWriteError) else EntityWriteError(
            f"{action} failed for {code}: {error}",
            code=code,
        )
        write_error.phase = write_error.phase or "creation"
        write_error.instance = write_error.instance or self.adapter.name
        write_error.code = write_error.code or code
        errors.append(write_error.to_dict())
        logger.error(f"[{self.adapter.name}] {action} failed for {code}: {error}")

        if not self.continue_on_error:
            if write_error is error:
                raise write_error
            raise write_error from error
        return EntityOutcome(code=code, success=False, reason=str(error), action=action)

    # Payloads

    @staticmethod
    def _link_label(link: Optional[VariantLink], code: str) -> Optional[str]:
        if not link:
            return None
        for key, label in link.attributes.items():
            if key == code or key.replace(" ", "_") == code:
                return label
        return None

    def variant_selections(
        self,
        child: Dict[str, Any],
        snapshot: SourceSnapshot,
        mapping: TargetResourceMapping
    ) -> List[OptionSelection]:
        """
        Resolve a variant's configurable values on the target.

        The explicit pair from the membership record wins; otherwise the
        variant's own stored value is translated to a label. Attributes
        that cannot be resolved are left out.
        """
        selections = []
        link = snapshot.link_for(child["sku"])
        for code in snapshot.translations.attributes.values():
            label = self._link_label(link, code)
            if label is None:
                raw_value = get_custom_attribute(child, code)
                if raw_value is None or raw_value == "":
                    continue
                label = snapshot.translations.label_for(code, raw_value) or str(raw_value)

            value = mapping.option_value(code, label)
            if value is None:
                logger.debug(f"No target value for {code}='{label}' on {child['sku']}, omitting")
                continue
            selections.append(OptionSelection(code=code, label=label, value=value))
        return selections

    def build_variant_payload(
        self,
        child: Dict[str, Any],
        snapshot: SourceSnapshot,
        mapping: TargetResourceMapping,
        options: MigrationOptions,
        website_ids: Optional[List[int]] = None
    ) -> ProductPayload:
        weight = child.get("weight")
        return ProductPayload(
            code=child["sku"],
            name=child.get("name") or child["sku"],
            product_type=ProductType.SIMPLE,
            visibility=Visibility.NOT_VISIBLE,
            enabled=options.product_enabled,
            price=child.get("price"),
            weight=str(weight) if weight else DEFAULT_WEIGHT,
            attribute_set_id=mapping.attribute_set_id,
            selections=self.variant_selections(child, snapshot, mapping),
            required_selections=[
                code for code in snapshot.translations.attributes.values()
                if code in mapping.attributes
            ],
            custom_attributes=self._passthrough(child),
            website_ids=list(website_ids or []),
            stock=StockInfo.from_source(child),
        )

    def build_composite_payload(
        self,
        snapshot: SourceSnapshot,
        mapping: TargetResourceMapping,
        options: MigrationOptions,
        website_ids: Optional[List[int]] = None
    ) -> ProductPayload:
        parent = snapshot.parent
        weight = parent.get("weight")
        category_names = list(mapping.categories.keys())
        return ProductPayload(
            code=snapshot.code,
            name=snapshot.name,
            product_type=ProductType.COMPOSITE,
            visibility=Visibility.CATALOG_SEARCH,
            enabled=options.product_enabled,
            weight=str(weight) if weight else DEFAULT_WEIGHT,
            attribute_set_id=mapping.attribute_set_id,
            custom_attributes=self._passthrough(parent),
            category_ids=mapping.category_ids,
            website_ids=list(website_ids or []),
            stock=StockInfo.from_source(parent, manage_stock_default=False),
            description=get_custom_attribute(parent, "description"),
            product_kind=category_names[0] if category_names else None,
        )

    @staticmethod
    def _passthrough(product: Dict[str, Any]) -> Dict[str, Any]:
        values = {}
        for code in PASSTHROUGH_ATTRIBUTES:
            value = get_custom_attribute(product, code)
            if value not in (None, ""):
                values[code] = value
        return values

    def build_selection_options(
        self,
        snapshot: SourceSnapshot,
        mapping: TargetResourceMapping,
        warnings: List[str]
    ) -> List[SelectionOption]:
        """Build option definitions strictly from target-resolved values."""
        translations = snapshot.translations
        labels_by_code = translations.labels_by_code()
        definitions = []

        for index, option in enumerate(snapshot.configurable_options):
            attribute_id = str(option.get("attribute_id"))
            code = translations.attributes.get(attribute_id)
            attribute = mapping.attributes.get(code) if code else None
            if attribute is None:
                warnings.append(f"Option attribute {code or attribute_id} is not resolved on target, skipping")
                continue

            declared = [
                translations.attribute_values.get((attribute_id, str(value.get("value_index"))))
                for value in option.get("values") or []
                if value.get("value_index") is not None
            ]
            labels = [label for label in declared if label] if declared else labels_by_code.get(code, [])

            values: List[str] = []
            for label in labels:
                value = mapping.option_value(code, label)
                if value is not None and value not in values:
                    values.append(value)

            if not values:
                warnings.append(f"Option {code} has no resolved values, skipping")
                continue

            definitions.append(SelectionOption(
                code=code,
                attribute_id=attribute.target_id,
                label=option.get("label") or attribute.label,
                position=option.get("position", index),
                values=values,
            ))
        return definitions

    # Operations

    def create_simple_products(
        self,
        snapshot: SourceSnapshot,
        mapping: TargetResourceMapping,
        options: MigrationOptions,
        codes: List[str],
        result: CreationResult,
        website_ids: Optional[List[int]] = None
    ) -> List[EntityOutcome]:
        """
        Create variant products.

        Returns:
            One outcome per requested code
        """
        outcomes = []
        for code in codes:
            child = snapshot.get_child(code)
            try:
                if child is None:
                    raise EntityWriteError(f"Variant {code} is not in the source snapshot", code=code)
                payload = self.build_variant_payload(child, snapshot, mapping, options, website_ids)
                missing = [c for c in payload.required_selections if c not in payload.selection_codes]
                if missing:
                    result.warnings.append(f"Variant {code} has no value for {', '.join(missing)}")
                target_id = self.adapter.create_variant(payload, WriteScope.GLOBAL)
                outcome = EntityOutcome(code=code, success=True, target_id=target_id)
                logger.info(f"[{self.adapter.name}] Created variant {code}")
            except Exception as e:
                outcome = self._failure(code, "create", e, result.errors)
            outcomes.append(outcome)

        result.variant_outcomes.extend(outcomes)
        return outcomes

    def create_composite_parent(
        self,
        snapshot: SourceSnapshot,
        mapping: TargetResourceMapping,
        options: MigrationOptions,
        result: CreationResult,
        website_ids: Optional[List[int]] = None
    ) -> Optional[str]:
        """
        Create the composite parent and apply the corrective global write.

        Raises:
            EntityWriteError: The parent could not be created
        """
        payload = self.build_composite_payload(snapshot, mapping, options, website_ids)
        try:
            target_id = self.adapter.create_composite(payload, WriteScope.GLOBAL)
        except Exception as e:
            error = EntityWriteError(
                f"Parent {snapshot.code} could not be created: {e}",
                code=snapshot.code,
                phase="creation",
                instance=self.adapter.name,
            )
            result.errors.append(error.to_dict())
            logger.error(f"[{self.adapter.name}] {error.message}")
            raise error from e
        result.parent_target_id = target_id
        logger.info(f"[{self.adapter.name}] Created composite parent {snapshot.code} ({target_id})")

        fields = {
            name: getattr(payload, name)
            for name in self.adapter.corrective_global_fields
            if getattr(payload, name, None) is not None
        }
        if fields:
            try:
                self.adapter.update_global_fields(snapshot.code, fields)
            except Exception as e:
                self._failure(snapshot.code, "global update", e, result.errors)
        return target_id

    def define_selection_options(
        self,
        snapshot: SourceSnapshot,
        mapping: TargetResourceMapping,
        result: CreationResult
    ) -> List[SelectionOption]:
        definitions = self.build_selection_options(snapshot, mapping, result.warnings)
        for option in definitions:
            try:
                self.adapter.define_selection_options(snapshot.code, option, WriteScope.GLOBAL)
                logger.debug(f"[{self.adapter.name}] Defined option {option.code} on {snapshot.code}")
            except Exception as e:
                self._failure(snapshot.code, f"define option {option.code}", e, result.errors)
        return definitions

    def link_children(self, parent_code: str, codes: List[str], result: CreationResult) -> List[EntityOutcome]:
        """Link created variants to the parent; the parent and its options must already exist."""
        outcomes = []
        for code in codes:
            try:
                self.adapter.link(parent_code, code, WriteScope.GLOBAL)
                outcome = EntityOutcome(code=code, success=True, action="link")
            except Exception as e:
                outcome = self._failure(code, "link", e, result.errors)
            outcomes.append(outcome)

        result.link_outcomes.extend(outcomes)
        logger.info(
            f"[{self.adapter.name}] Linked {sum(1 for o in outcomes if o.success)}/{len(codes)} variants to {parent_code}"
        )
        return outcomes

    def migrate_media(
        self,
        snapshot: SourceSnapshot,
        codes: List[str],
        result: CreationResult,
        include_parent: bool
    ) -> None:
        if self.media is None:
            result.warnings.append("Images requested but no media migrator is configured")
            return

        targets = ([snapshot.code] if include_parent else []) + codes
        for code in targets:
            entries = snapshot.images.parent if code == snapshot.code else snapshot.images.children.get(code, ())
            uploaded, failures = self.media.migrate(self.adapter, code, entries)
            result.images_uploaded += uploaded
            result.warnings.extend(failures)

    def create_full(
        self,
        snapshot: SourceSnapshot,
        mapping: TargetResourceMapping,
        options: MigrationOptions,
        website_ids: Optional[List[int]] = None,
        result: Optional[CreationResult] = None
    ) -> CreationResult:
        """
        Create the parent and every variant on a target that has neither.

        Passing in `result` keeps the outcomes recorded so far visible to
        the caller when a write error aborts the run.
        """
        result = result or CreationResult(mode=InstanceMode.FULL_CREATION)

        outcomes = self.create_simple_products(
            snapshot, mapping, options, snapshot.variant_codes, result, website_ids
        )
        created = [outcome.code for outcome in outcomes if outcome.success]

        self.create_composite_parent(snapshot, mapping, options, result, website_ids)
        self.define_selection_options(snapshot, mapping, result)
        self.link_children(snapshot.code, created, result)

        if options.include_images:
            self.migrate_media(snapshot, created, result, include_parent=True)

        return result

    def sync_missing_variants(
        self,
        snapshot: SourceSnapshot,
        mapping: TargetResourceMapping,
        existing: ExistingComposite,
        options: MigrationOptions,
        website_ids: Optional[List[int]] = None,
        result: Optional[CreationResult] = None
    ) -> CreationResult:
        """Create and link only the variants the target does not have yet."""
        missing, present = self.adapter.diff_existing_variants(snapshot.variant_codes, existing)
        result = result or CreationResult(mode=InstanceMode.VARIANT_SYNC)
        result.parent_target_id = existing.target_id
        result.skipped_children = [{"sku": code, "reason": "already_exists"} for code in present]
        logger.info(
            f"[{self.adapter.name}] Variant sync for {snapshot.code}: "
            f"{len(missing)} missing, {len(present)} already present"
        )

        outcomes = self.create_simple_products(snapshot, mapping, options, missing, result, website_ids)
        created = [outcome.code for outcome in outcomes if outcome.success]
        self.link_children(snapshot.code, created, result)

        if options.include_images:
            self.migrate_media(snapshot, created, result, include_parent=False)

        return result

    def update_scoped_fields(
        self,
        snapshot: SourceSnapshot,
        codes: List[str],
        options: MigrationOptions,
        scope_result: ScopeResult
    ) -> List[EntityOutcome]:
        """Update display fields of already-created products in one display scope."""
        outcomes = []
        for code in codes:
            is_parent = code == snapshot.code
            product = snapshot.parent if is_parent else snapshot.get_child(code) or {}
            fields = {
                "name": product.get("name") or code,
                "price": product.get("price"),
                "enabled": options.product_enabled,
                "visibility": (Visibility.CATALOG_SEARCH if is_parent else Visibility.NOT_VISIBLE).value,
            }
            try:
                self.adapter.update_scoped_fields(code, fields, scope_result.scope)
                outcome = EntityOutcome(code=code, success=True, action="update")
            except Exception as e:
                outcome = self._failure(code, "scoped update", e, scope_result.errors)
            outcomes.append(outcome)

        scope_result.outcomes.extend(outcomes)
        return outcomes

    def sync_prices(
        self,
        snapshot: SourceSnapshot,
        codes: List[str],
        scope_result: ScopeResult
    ) -> List[EntityOutcome]:
        """Write source variant prices to one display scope; nothing else is touched."""
        outcomes = []
        for code in codes:
            price = (snapshot.get_child(code) or {}).get("price")
            if price is None:
                logger.warning(f"[{self.adapter.name}] {code} has no source price, skipped")
                continue
            try:
                self.adapter.update_scoped_fields(code, {"price": price}, scope_result.scope)
                outcome = EntityOutcome(code=code, success=True, action="price")
                logger.debug(f"[{self.adapter.name}] Price of {code} set to {price} in {scope_result.scope}")
            except Exception as e:
                outcome = self._failure(code, "price update", e, scope_result.errors)
            outcomes.append(outcome)

        scope_result.outcomes.extend(outcomes)
        return outcomes
