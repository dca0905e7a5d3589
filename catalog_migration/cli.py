"""Command-line interface for composite product migration."""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .errors import ConfigurationError
from .models.migration import MigrationConfig
from .models.result import MigrationResult
from .orchestrator import MigrationOrchestrator

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    common.add_argument("--config", help="Path to JSON config file (environment variables if omitted)")
    common.add_argument("--targets", help="Comma-separated target instance names (default: all)")

    parser = argparse.ArgumentParser(
        prog="catalog-migrate",
        description="Migrate composite products and their variants between catalog instances",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Migrate one or more products
    migrate_parser = subparsers.add_parser("migrate", parents=[common], help="Migrate composite products")
    migrate_parser.add_argument("codes", nargs="+", metavar="CODE", help="Source SKU of a composite parent")
    migrate_parser.add_argument("--include-images", action="store_true", default=None, help="Migrate product images")
    migrate_parser.add_argument("--disabled", action="store_true", help="Create products disabled")
    migrate_parser.add_argument("--stop-on-error", action="store_true", help="Abort an instance on the first failed write")
    migrate_parser.add_argument("--output", help="Write the JSON result to this file")

    # Price sync of already migrated products
    prices_parser = subparsers.add_parser("sync-prices", parents=[common], help="Sync variant prices to targets")
    prices_parser.add_argument("codes", nargs="+", metavar="CODE", help="Source SKU of a composite parent")
    prices_parser.add_argument("--stop-on-error", action="store_true", help="Abort an instance on the first failed write")
    prices_parser.add_argument("--output", help="Write the JSON result to this file")

    # Connectivity check
    subparsers.add_parser("connections", parents=[common], help="Test connectivity to source and targets")

    return parser


def load_config(path: Optional[str]) -> MigrationConfig:
    config = MigrationConfig.from_json_file(path) if path else MigrationConfig.from_env()
    problems = config.validate()
    if problems:
        raise ConfigurationError("Invalid configuration: " + "; ".join(problems), details={"problems": problems})
    return config


def _split_targets(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [name.strip() for name in value.split(",") if name.strip()]


def print_result(result: MigrationResult, title: str = "MIGRATION") -> None:
    summary = result.summary

    print("\n" + "=" * 60)
    print(f"{title} {'COMPLETE' if result.success else 'FAILED'}: {result.source_code}")
    print("=" * 60)
    print(f"Instances: {summary['instances_succeeded']}/{summary['instances_requested']} succeeded")
    print(f"Children Created: {summary['children_created']}")
    print(f"Errors: {summary['errors_count']}")
    print(f"Warnings: {summary['warnings_count']}")
    if summary["total_duration_seconds"] is not None:
        print(f"Duration: {summary['total_duration_seconds']:.2f} seconds")

    for name, instance in result.instance_results.items():
        mode = instance.mode.value if instance.mode else "none"
        status = "ok" if instance.success else "FAILED"
        print(f"\n  {name} [{mode}] {status}")
        for scope in instance.scope_results:
            print(f"    - {scope.scope} ({scope.write_scope.value}): {'ok' if scope.success else 'failed'}")
        for error in instance.all_errors:
            print(f"    ! {error.get('error')}")

    for error in result.errors:
        print(f"\n  ! {error.get('phase')}: {error.get('error')}")


def run_migration(args) -> int:
    """Migrate each requested product and print a summary."""
    config = load_config(args.config)
    orchestrator = MigrationOrchestrator(config)
    options = orchestrator.default_options(
        target_instances=_split_targets(args.targets),
        include_images=args.include_images,
        product_enabled=False if args.disabled else None,
        continue_on_error=False if args.stop_on_error else None,
    )

    results = []
    for code in args.codes:
        result = orchestrator.migrate(code, options)
        print_result(result)
        results.append(result)

    return finish(results, args.output)


def run_price_sync(args) -> int:
    """Sync variant prices of each requested product and print a summary."""
    config = load_config(args.config)
    orchestrator = MigrationOrchestrator(config)
    options = orchestrator.default_options(
        target_instances=_split_targets(args.targets),
        continue_on_error=False if args.stop_on_error else None,
    )

    results = []
    for code in args.codes:
        result = orchestrator.sync_prices(code, options)
        print_result(result, "PRICE SYNC")
        results.append(result)

    return finish(results, args.output)


def finish(results: List[MigrationResult], output_path: Optional[str]) -> int:
    """Optionally save results as JSON and return the exit code."""
    if output_path:
        output = [result.to_dict() for result in results]
        with open(output_path, "w") as f:
            json.dump(output[0] if len(output) == 1 else output, f, indent=2, default=str)
        print(f"\nResult saved to {output_path}")

    return 0 if all(result.success for result in results) else 1


def run_connections(args) -> int:
    """Test connectivity to the source and each target."""
    config = load_config(args.config)
    orchestrator = MigrationOrchestrator(config)
    status = orchestrator.test_connections(_split_targets(args.targets))

    print("\n=== Connections ===")
    print(f"source: {'ok' if status['source'] else 'FAILED'}")
    for name, connected in status["targets"].items():
        print(f"{name}: {'ok' if connected else 'FAILED'}")

    healthy = status["source"] and all(status["targets"].values())
    return 0 if healthy else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Set up logging
    log_level = logging.DEBUG if getattr(args, "verbose", False) else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        if args.command == "migrate":
            return run_migration(args)
        if args.command == "sync-prices":
            return run_price_sync(args)
        if args.command == "connections":
            return run_connections(args)
    except ConfigurationError as e:
        logger.error(str(e))
        print(f"Configuration error: {e}")
        return 2

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
