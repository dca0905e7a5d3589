"""Migration orchestrator - coordinates extraction and per-instance creation."""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .adapters import create_adapter
from .adapters.base import TargetAdapter
from .clients.base import RemoteCatalogClient
from .clients.rest import RestCatalogClient
from .errors import ConfigurationError, EntityWriteError, InstanceError, MigrationError
from .extractors.catalog_extractor import CatalogExtractor
from .models.migration import MigrationConfig, MigrationOptions, TargetInstanceConfig
from .models.product import SourceSnapshot
from .models.result import (
    CreationResult,
    InstanceMode,
    InstanceResult,
    InstanceState,
    MigrationResult,
    ScopeResult,
)
from .models.target import ExistingComposite, TargetResourceMapping, WriteScope
from .services.category_mapping import CategoryNameMapping
from .services.creation import CreationEngine
from .services.media import HttpMediaTranscoder, MediaMigrator
from .services.notifications import NotificationSink, NullNotifier, WebhookNotifier
from .services.preparation import PreparationResolver

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[TargetInstanceConfig], TargetAdapter]

MODE_STATES = {
    InstanceMode.FULL_CREATION: InstanceState.FULL_CREATION,
    InstanceMode.VARIANT_SYNC: InstanceState.VARIANT_SYNC,
    InstanceMode.NO_ACTION: InstanceState.NO_ACTION,
}


def error_record(error: Exception, phase: str, instance: Optional[str] = None) -> Dict[str, Any]:
    """Turn any exception into an error record carrying phase and instance."""
    if isinstance(error, MigrationError):
        error.phase = error.phase or phase
        error.instance = error.instance or instance
        return error.to_dict()
    return {
        "type": error.__class__.__name__,
        "phase": phase,
        "instance": instance,
        "error": str(error),
        "timestamp": datetime.utcnow().isoformat(),
    }


class MigrationOrchestrator:
    """
    Orchestrates the migration of composite products.

    Handles:
    - One extraction per product, shared read-only by every target
    - Per-instance preparation, existence check and mode selection
    - Display-scope fan-out: the first successful scope writes globally,
      the remaining scopes only update display fields
    - Per-instance failure isolation and result aggregation
    - Price-only sync of variants that already exist on the targets
    - Start/end notifications
    """

    def __init__(
        self,
        config: MigrationConfig,
        source_client: Optional[RemoteCatalogClient] = None,
        adapter_factory: Optional[AdapterFactory] = None,
        notifier: Optional[NotificationSink] = None,
        category_mapping: Optional[CategoryNameMapping] = None,
        media: Optional[MediaMigrator] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Migration configuration
            source_client: Source catalog client (built from config if omitted)
            adapter_factory: Creates a fresh adapter per target instance
            notifier: Notification sink
            category_mapping: Category rename table
            media: Media migrator used when images are included
        """
        self.config = config
        self.source_client = source_client or RestCatalogClient(
            config.source.base_url,
            token=config.source.token,
            timeout=config.timeout,
            max_retries=config.max_retries,
            backoff_factor=config.backoff_factor,
        )
        self.adapter_factory = adapter_factory or (lambda instance: create_adapter(instance, config))
        self.notifier = notifier or self._create_notifier()
        self.category_mapping = category_mapping or CategoryNameMapping.from_file(config.category_mapping_file)
        self.media = media or MediaMigrator(
            HttpMediaTranscoder(
                max_image_size_mb=config.max_image_size_mb,
                timeout=config.timeout,
                max_retries=config.max_retries,
                backoff_factor=config.backoff_factor,
            ),
            config.source.media_url,
        )
        self.extractor = CatalogExtractor(self.source_client, config.max_concurrency)

    def _create_notifier(self) -> NotificationSink:
        if self.config.notification_webhook_url:
            return WebhookNotifier(self.config.notification_webhook_url, self.config.notification_timeout)
        return NullNotifier()

    def default_options(self, **overrides) -> MigrationOptions:
        return MigrationOptions.from_config(self.config, **overrides)

    def migrate(self, source_code: str, options: Optional[MigrationOptions] = None) -> MigrationResult:
        """
        Migrate one composite product to every requested target instance.

        Args:
            source_code: Source SKU of the composite parent
            options: Request options (configured defaults if omitted)

        Returns:
            MigrationResult with per-instance and per-scope detail
        """
        options = options or self.default_options()
        continue_on_error = (
            self.config.continue_on_error if options.continue_on_error is None else options.continue_on_error
        )
        instances = options.target_instances or list(self.config.targets.keys())
        result = MigrationResult(source_code=source_code)

        logger.info(f"Migrating {source_code} to {', '.join(instances) or 'no instances'}")

        snapshot = self._extract(source_code, result)
        if snapshot is None:
            return result

        self._notify_start(snapshot, instances)

        logger.info("=== PHASE 2: TARGET INSTANCES ===")
        started = datetime.utcnow()
        for name in instances:
            result.instance_results[name] = self.migrate_instance(snapshot, name, options, continue_on_error)
        result.phase_durations["instances"] = (datetime.utcnow() - started).total_seconds()

        result.completed_at = datetime.utcnow()
        summary = result.summary
        logger.info(
            f"=== MIGRATION {'COMPLETED' if result.success else 'FINISHED WITH FAILURES'} === "
            f"{source_code}: {summary['instances_succeeded']}/{summary['instances_requested']} instances, "
            f"{summary['children_created']} variants created"
        )

        self._notify_end(result)
        return result

    def _extract(self, source_code: str, result: MigrationResult) -> Optional[SourceSnapshot]:
        """Run the extraction phase; a terminal source error ends the run with a recorded error."""
        try:
            logger.info("=== PHASE 1: EXTRACTION ===")
            started = datetime.utcnow()
            snapshot = self.extractor.extract(source_code)
            result.phase_durations["extraction"] = (datetime.utcnow() - started).total_seconds()
            result.warnings.extend(snapshot.warnings)
            return snapshot
        except Exception as e:
            logger.error(f"{source_code} aborted during extraction: {e}")
            result.errors.append(error_record(e, "extraction"))
            result.completed_at = datetime.utcnow()
            self._notify_end(result)
            return None

    def sync_prices(self, source_code: str, options: Optional[MigrationOptions] = None) -> MigrationResult:
        """
        Push current source variant prices to products that already exist on the targets.

        Every display scope of every requested instance gets a price-only
        write for each variant present there. Nothing is created.

        Args:
            source_code: Source SKU of the composite parent
            options: Request options (configured defaults if omitted)

        Returns:
            MigrationResult with one price-sync instance result per target
        """
        options = options or self.default_options()
        continue_on_error = (
            self.config.continue_on_error if options.continue_on_error is None else options.continue_on_error
        )
        instances = options.target_instances or list(self.config.targets.keys())
        result = MigrationResult(source_code=source_code)

        logger.info(f"Syncing prices of {source_code} to {', '.join(instances) or 'no instances'}")

        snapshot = self._extract(source_code, result)
        if snapshot is None:
            return result

        self._notify_start(snapshot, instances)

        logger.info("=== PHASE 2: PRICE UPDATES ===")
        started = datetime.utcnow()
        for name in instances:
            result.instance_results[name] = self.sync_instance_prices(snapshot, name, continue_on_error)
        result.phase_durations["instances"] = (datetime.utcnow() - started).total_seconds()

        result.completed_at = datetime.utcnow()
        summary = result.summary
        logger.info(
            f"=== PRICE SYNC {'COMPLETED' if result.success else 'FINISHED WITH FAILURES'} === "
            f"{source_code}: {summary['instances_succeeded']}/{summary['instances_requested']} instances"
        )

        self._notify_end(result)
        return result

    def sync_instance_prices(self, snapshot: SourceSnapshot, name: str, continue_on_error: bool) -> InstanceResult:
        """Write variant prices to every display scope of one target instance."""
        instance_result = InstanceResult(
            instance=name,
            mode=InstanceMode.PRICE_SYNC,
            started_at=datetime.utcnow(),
        )
        phase = "existence"

        try:
            instance = self.config.targets.get(name)
            if instance is None:
                raise ConfigurationError(f"Unknown target instance '{name}'", instance=name)
            instance_result.platform = instance.platform.value
            adapter = self.adapter_factory(instance)

            existing = adapter.find_composite(snapshot.code, snapshot.variant_codes)
            if existing is None or not existing.is_composite:
                raise InstanceError(
                    f"{snapshot.code} does not exist on {name} as a composite product",
                    phase="existence",
                    instance=name,
                )
            instance_result.state = InstanceState.PRICE_SYNC
            instance_result.parent_target_id = existing.target_id
            missing, present = adapter.diff_existing_variants(snapshot.variant_codes, existing)
            instance_result.skipped_children = [{"sku": code, "reason": "not_on_target"} for code in missing]

            phase = "price sync"
            engine = CreationEngine(adapter, continue_on_error, self.media)
            for scope in adapter.display_scopes():
                scope_result = ScopeResult(scope=scope, write_scope=WriteScope.SCOPED, started_at=datetime.utcnow())
                instance_result.scope_results.append(scope_result)
                try:
                    outcomes = engine.sync_prices(snapshot, present, scope_result)
                    scope_result.success = all(outcome.success for outcome in outcomes)
                except Exception as e:
                    raise InstanceError(
                        f"Aborted price sync on {name} after scope {scope} failed: {e}",
                        phase=phase,
                        instance=name,
                    ) from e
                finally:
                    scope_result.completed_at = datetime.utcnow()

            failed_scopes = [scope.scope for scope in instance_result.scope_results if not scope.success]
            instance_result.state = InstanceState.FAILED if failed_scopes else InstanceState.COMPLETED
            logger.info(
                f"[{name}] Prices of {len(present)} variants synced to "
                f"{len(instance_result.scope_results) - len(failed_scopes)}/{len(instance_result.scope_results)} scopes"
            )

        except Exception as e:
            logger.error(f"[{name}] Price sync failed during {phase}: {e}")
            instance_result.add_error(error_record(e, phase, name))
            instance_result.state = InstanceState.FAILED

        finally:
            instance_result.completed_at = datetime.utcnow()

        return instance_result

    def migrate_batch(self, source_codes: List[str], options: Optional[MigrationOptions] = None) -> Dict[str, Any]:
        """
        Migrate several composite products one after another.

        Returns:
            Batch totals plus one result per product
        """
        results = [self.migrate(code, options) for code in source_codes]
        succeeded = sum(1 for result in results if result.success)
        return {
            "total": len(results),
            "succeeded": succeeded,
            "failed": len(results) - succeeded,
            "results": [result.to_dict() for result in results],
        }

    def migrate_instance(
        self,
        snapshot: SourceSnapshot,
        name: str,
        options: MigrationOptions,
        continue_on_error: bool
    ) -> InstanceResult:
        """Run preparation, existence check and creation for one target instance."""
        instance_result = InstanceResult(instance=name, started_at=datetime.utcnow())
        phase = "preparation"

        try:
            instance = self.config.targets.get(name)
            if instance is None:
                raise ConfigurationError(f"Unknown target instance '{name}'", instance=name)
            instance_result.platform = instance.platform.value
            adapter = self.adapter_factory(instance)

            phase = "existence"
            existing = adapter.find_composite(snapshot.code, snapshot.variant_codes)
            instance_result.state = InstanceState.EXISTENCE_CHECKED
            mode = self.choose_mode(adapter, snapshot, existing, name)
            instance_result.mode = mode
            instance_result.state = MODE_STATES[mode]
            logger.info(f"[{name}] {snapshot.code}: {mode.value}")

            if existing is not None:
                instance_result.parent_target_id = existing.target_id

            if mode == InstanceMode.NO_ACTION:
                instance_result.skipped_children = [
                    {"sku": code, "reason": "already_exists"} for code in snapshot.variant_codes
                ]
                instance_result.state = InstanceState.COMPLETED
                return instance_result

            # Preparation may create option values, so it only runs when something will be written
            phase = "preparation"
            logger.info(f"--- [{name}] preparation ---")
            mapping = PreparationResolver(adapter, self.category_mapping).prepare(snapshot)
            instance_result.warnings.extend(mapping.warnings)
            instance_result.errors.extend(mapping.errors)

            phase = "creation"
            self._run_scopes(adapter, snapshot, mapping, existing, mode, options, continue_on_error, instance_result)

        except Exception as e:
            logger.error(f"[{name}] Instance failed during {phase}: {e}")
            instance_result.add_error(error_record(e, phase, name))
            instance_result.state = InstanceState.FAILED

        finally:
            instance_result.completed_at = datetime.utcnow()

        return instance_result

    @staticmethod
    def choose_mode(
        adapter: TargetAdapter,
        snapshot: SourceSnapshot,
        existing: Optional[ExistingComposite],
        name: str
    ) -> InstanceMode:
        if existing is None:
            return InstanceMode.FULL_CREATION
        if not existing.is_composite:
            raise InstanceError(
                f"{snapshot.code} exists on {name} but is not a composite product",
                phase="existence",
                instance=name,
            )
        missing, _ = adapter.diff_existing_variants(snapshot.variant_codes, existing)
        return InstanceMode.VARIANT_SYNC if missing else InstanceMode.NO_ACTION

    def _run_scopes(
        self,
        adapter: TargetAdapter,
        snapshot: SourceSnapshot,
        mapping: TargetResourceMapping,
        existing: Optional[ExistingComposite],
        mode: InstanceMode,
        options: MigrationOptions,
        continue_on_error: bool,
        instance_result: InstanceResult
    ) -> None:
        """
        Fan the chosen action out over the instance's display scopes.

        Until one scope has completed the global write, each scope
        attempts it; every later scope only updates display fields of the
        products the global write created.
        """
        scopes = adapter.display_scopes()
        website_ids = adapter.resolve_website_ids(scopes)
        instance_result.website_ids = website_ids
        engine = CreationEngine(adapter, continue_on_error, self.media)
        creation: Optional[CreationResult] = None

        for scope in scopes:
            if creation is None:
                scope_result = ScopeResult(scope=scope, write_scope=WriteScope.GLOBAL, started_at=datetime.utcnow())
                instance_result.scope_results.append(scope_result)
                attempt = CreationResult(mode=mode)
                try:
                    if mode == InstanceMode.FULL_CREATION:
                        engine.create_full(snapshot, mapping, options, website_ids, attempt)
                    else:
                        engine.sync_missing_variants(snapshot, mapping, existing, options, website_ids, attempt)
                    scope_result.success = True
                    creation = attempt
                except Exception as e:
                    if not isinstance(e, EntityWriteError):
                        scope_result.errors.append(error_record(e, "creation", adapter.name))
                    logger.error(f"[{adapter.name}] Global write in scope {scope} failed: {e}")
                    if not continue_on_error:
                        raise InstanceError(
                            f"Aborted {adapter.name} after scope {scope} failed: {e}",
                            phase="creation",
                            instance=adapter.name,
                        ) from e
                finally:
                    scope_result.outcomes.extend(attempt.variant_outcomes + attempt.link_outcomes)
                    scope_result.errors.extend(attempt.errors)
                    instance_result.warnings.extend(attempt.warnings)
                    scope_result.completed_at = datetime.utcnow()
                continue

            scope_result = ScopeResult(scope=scope, write_scope=WriteScope.SCOPED, started_at=datetime.utcnow())
            instance_result.scope_results.append(scope_result)
            codes = ([snapshot.code] if mode == InstanceMode.FULL_CREATION else []) + creation.created_children
            try:
                outcomes = engine.update_scoped_fields(snapshot, codes, options, scope_result)
                scope_result.success = all(outcome.success for outcome in outcomes)
            except Exception as e:
                logger.error(f"[{adapter.name}] Scoped update in {scope} failed: {e}")
                raise InstanceError(
                    f"Aborted {adapter.name} after scoped update in {scope} failed: {e}",
                    phase="creation",
                    instance=adapter.name,
                ) from e
            finally:
                scope_result.completed_at = datetime.utcnow()

        if creation is None:
            instance_result.state = InstanceState.FAILED
            return

        instance_result.created_children = creation.created_children
        instance_result.skipped_children = creation.skipped_children
        instance_result.parent_target_id = creation.parent_target_id or instance_result.parent_target_id
        instance_result.images_uploaded = creation.images_uploaded
        instance_result.state = InstanceState.COMPLETED

    def _notify_start(self, snapshot: SourceSnapshot, instances: List[str]) -> None:
        try:
            self.notifier.notify_start(snapshot.code, snapshot.variant_codes, instances)
        except Exception as e:
            logger.warning(f"Start notification failed: {e}")

    def _notify_end(self, result: MigrationResult) -> None:
        try:
            self.notifier.notify_end(result)
        except Exception as e:
            logger.warning(f"End notification failed: {e}")

    def test_connections(self, instances: Optional[List[str]] = None) -> Dict[str, Any]:
        """Check connectivity to the source and each target instance."""
        targets = {}
        for name in instances or list(self.config.targets.keys()):
            instance = self.config.targets.get(name)
            if instance is None:
                targets[name] = False
                continue
            try:
                targets[name] = self.adapter_factory(instance).test_connection()
            except Exception as e:
                logger.warning(f"Connection test for {name} failed: {e}")
                targets[name] = False

        return {
            "source": self.source_client.test_connection(),
            "targets": targets,
        }
