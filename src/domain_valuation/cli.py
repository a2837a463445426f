"""
Command-line interface for the domain valuation client.

This module provides the main CLI entry point with commands for:
- value: Value a single domain
- bulk: Value up to 100 domains from a file (one per line)
- warmup: Wake the valuation backend
- stats / reset: Inspect or clear local search tracking
- config: Configuration management
"""

import argparse
import asyncio
import json
import sys
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Optional

from . import __version__
from .audit_logger import AuditLogger
from .config import (
    ApiConfig,
    CacheConfig,
    LoggingConfig,
    PersistenceConfig,
    RateLimitRule,
    RetryConfig,
    SystemConfig,
    TrackerConfig,
    load_config_from_env,
    validate_config,
)
from .export import VALUE_FIELDS, export_filename, results_to_csv, sort_by_value
from .formatters import format_confidence, format_currency, format_date
from .rate_limiter import RateLimiter
from .response_cache import ResponseCache
from .search_tracker import SearchTracker
from .service import ValuationService
from .storage import JsonFileStore, MemoryStore
from .valuation_client import ValuationClient


DEFAULT_CONFIG_PATH = Path.home() / ".domain_valuation" / "config.json"


def _section(cls, data: Any):
    """Instantiate a config dataclass from a JSON object, ignoring unknown keys."""
    if not isinstance(data, dict):
        raise TypeError(f"{cls.__name__} section must be a JSON object")
    known = {f.name for f in fields(cls)}
    return cls(**{key: value for key, value in data.items() if key in known})


def config_to_dict(config: SystemConfig) -> dict:
    """Convert a SystemConfig into JSON-serializable data."""
    data = asdict(config)
    data["persistence"]["storage_path"] = str(config.persistence.storage_path)
    return data


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Missing sections and keys fall back to their defaults.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        persistence = _section(PersistenceConfig, data.get("persistence", {}))
        persistence.storage_path = Path(persistence.storage_path)

        rate_limit_data = data.get("rate_limit")

        return SystemConfig(
            api=_section(ApiConfig, data.get("api", {})),
            retry=_section(RetryConfig, data.get("retry", {})),
            cache=_section(CacheConfig, data.get("cache", {})),
            tracker=_section(TrackerConfig, data.get("tracker", {})),
            rate_limit=_section(RateLimitRule, rate_limit_data) if rate_limit_data else None,
            persistence=persistence,
            logging=_section(LoggingConfig, data.get("logging", {})),
        )

    except (json.JSONDecodeError, TypeError, AttributeError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None
    except FileNotFoundError:
        return None


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file, creating parent directories.

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)
        return True

    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def resolve_config(config_path: Optional[str]) -> Optional[SystemConfig]:
    """Load the config file when given, otherwise read the environment."""
    if config_path:
        config = load_config_from_file(Path(config_path))
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
        return config
    return load_config_from_env()


def create_tracker(config: SystemConfig) -> SearchTracker:
    return SearchTracker(
        persistent_store=JsonFileStore(config.persistence.storage_path),
        session_store=MemoryStore(),
        config=config.tracker,
    )


def create_client(
    config: SystemConfig,
    logger: Optional[AuditLogger] = None,
    cache: Optional[ResponseCache] = None,
) -> ValuationClient:
    return ValuationClient(
        config=config.api,
        cache=cache if cache is not None else ResponseCache.from_config(config.cache),
        retry_config=config.retry,
        logger=logger,
    )


def create_logger(config: SystemConfig, verbose: bool = False) -> AuditLogger:
    logging_config = config.logging
    if verbose:
        logging_config = LoggingConfig(level="debug", output_format=logging_config.output_format)
    return AuditLogger.from_config(logging_config)


def _print_valuation(data: dict) -> None:
    valuation = data.get("valuation") or {}
    print(f"Domain:            {data.get('domain', '')}")
    print(f"Estimated value:   {format_currency(valuation.get('estimatedValue'))}")
    print(f"Auction value:     {format_currency(valuation.get('auctionValue'))}")
    print(f"Marketplace value: {format_currency(valuation.get('marketplaceValue'))}")
    print(f"Brokerage value:   {format_currency(valuation.get('brokerageValue'))}")
    if "confidence" in data:
        print(f"Confidence:        {format_confidence(data.get('confidence'))}")
    if "lastUpdated" in data:
        print(f"Last updated:      {format_date(data.get('lastUpdated'))}")


async def value_domain(
    domain: str,
    config: SystemConfig,
    as_json: bool = False,
    verbose: bool = False,
) -> int:
    """
    Value a single domain and print the result.

    Returns:
        Exit code (0 on success, 1 on error)
    """
    logger = create_logger(config, verbose)
    tracker = create_tracker(config)
    limiter = RateLimiter(config.rate_limit) if config.rate_limit else None

    async with create_client(config, logger) as client:
        service = ValuationService(client, tracker, rate_limiter=limiter, logger=logger)
        outcome = await service.search_domain(domain)

    if outcome.error is not None:
        print(f"Error: {outcome.error.message}", file=sys.stderr)
        return 1

    if as_json:
        print(json.dumps(outcome.data, indent=2, ensure_ascii=False))
    elif isinstance(outcome.data, dict):
        _print_valuation(outcome.data)
    else:
        print(outcome.data)

    if outcome.show_donation_prompt:
        print("\nEnjoying the tool? Consider supporting it with a donation.")
        service.dismiss_donation_prompt()

    return 0


async def value_domain_list(
    domains_file: str,
    config: SystemConfig,
    output_file: Optional[Path] = None,
    output_format: str = "csv",
    sort_field: Optional[str] = None,
    verbose: bool = False,
) -> int:
    """
    Value every domain listed in a file ('-' reads stdin).

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        if domains_file == "-":
            text = sys.stdin.read()
        else:
            with open(domains_file, "r", encoding="utf-8") as f:
                text = f.read()
    except OSError as e:
        print(f"Error reading domains file: {e}", file=sys.stderr)
        return 1

    logger = create_logger(config, verbose)
    tracker = create_tracker(config)
    limiter = RateLimiter(config.rate_limit) if config.rate_limit else None

    async with create_client(config, logger) as client:
        service = ValuationService(client, tracker, rate_limiter=limiter, logger=logger)
        outcome = await service.search_bulk(text)

    if outcome.notice:
        print(outcome.notice, file=sys.stderr)

    if outcome.error is not None:
        print(f"Error: {outcome.error.message}", file=sys.stderr)
        return 1

    results = outcome.results
    if sort_field:
        results = sort_by_value(results, sort_field)

    if output_format == "json":
        rendered = json.dumps({"results": results}, indent=2, ensure_ascii=False)
    else:
        rendered = results_to_csv(results)

    if output_file is not None:
        if output_file.is_dir():
            output_file = output_file / export_filename(extension=output_format)
        try:
            output_file.parent.mkdir(parents=True, exist_ok=True)
            with open(output_file, "w", encoding="utf-8", newline="") as f:
                f.write(rendered)
            print(f"Results written to: {output_file}")
        except OSError as e:
            print(f"Error writing results: {e}", file=sys.stderr)
            return 1
    else:
        print(rendered, end="" if rendered.endswith("\n") else "\n")

    print(f"Valued {len(results)} domain(s)", file=sys.stderr)
    return 0


async def warm_up(config: SystemConfig, verbose: bool = False) -> int:
    logger = create_logger(config, verbose)
    async with create_client(config, logger) as client:
        ok = await client.warm_up_api()
    print("Valuation API is warm" if ok else "Warm-up failed")
    return 0 if ok else 1


def cmd_value(args: argparse.Namespace) -> int:
    """Handle the 'value' command."""
    config = resolve_config(args.config)
    if config is None:
        return 1
    return asyncio.run(value_domain(
        domain=args.domain,
        config=config,
        as_json=args.json,
        verbose=args.verbose,
    ))


def cmd_bulk(args: argparse.Namespace) -> int:
    """Handle the 'bulk' command."""
    config = resolve_config(args.config)
    if config is None:
        return 1
    return asyncio.run(value_domain_list(
        domains_file=args.file,
        config=config,
        output_file=Path(args.output) if args.output else None,
        output_format=args.format,
        sort_field=args.sort,
        verbose=args.verbose,
    ))


def cmd_warmup(args: argparse.Namespace) -> int:
    """Handle the 'warmup' command."""
    config = resolve_config(args.config)
    if config is None:
        return 1
    return asyncio.run(warm_up(config, verbose=args.verbose))


def cmd_stats(args: argparse.Namespace) -> int:
    """Handle the 'stats' command."""
    config = resolve_config(args.config)
    if config is None:
        return 1
    tracker = create_tracker(config)
    stats = tracker.get_search_stats()
    print(f"Total searches: {stats['totalSearches']}")
    print(f"Rate limited:   {'yes' if tracker.is_rate_limited() else 'no'}")
    return 0


def cmd_reset(args: argparse.Namespace) -> int:
    """Handle the 'reset' command."""
    config = resolve_config(args.config)
    if config is None:
        return 1
    create_tracker(config).clear_all_data()
    print("Search data cleared.")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        print(f"Configuration from: {config_path}")
        print(f"  API base URL: {config.api.base_url}")
        print(f"  Timeouts: single {config.api.single_timeout}s, bulk {config.api.bulk_timeout}s")
        print(f"  Retry attempts: {config.retry.retry_attempts}")
        print(f"  Cache duration: {config.cache.duration_seconds}s")
        print(f"  Storage file: {config.persistence.storage_path}")
        print(f"  Log level: {config.logging.level}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        if save_config_to_file(load_config_from_env(), config_path):
            print(f"Configuration created at: {config_path}")
            return 0
        return 1

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return 1

        result = validate_config(config)
        for warning in result.warnings:
            print(f"Warning: {warning}")
        for error in result.errors:
            print(f"Error: {error}", file=sys.stderr)
        if not result.valid:
            return 1

        print(f"Configuration at {config_path} is valid.")
        return 0

    return 1


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file (defaults to environment variables)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="domain-valuation",
        description="Domain valuation client with caching and bulk support",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    value_parser = subparsers.add_parser("value", help="Value a single domain")
    value_parser.add_argument("domain", help="Domain to value (e.g., example.com)")
    value_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the raw API payload as JSON",
    )
    _add_common_arguments(value_parser)
    value_parser.set_defaults(func=cmd_value)

    bulk_parser = subparsers.add_parser(
        "bulk",
        help="Value up to 100 domains from a file",
    )
    bulk_parser.add_argument(
        "file",
        help="Path to file containing domains (one per line), or '-' for stdin",
    )
    bulk_parser.add_argument(
        "--output", "-o",
        help="Write results to this file or directory",
    )
    bulk_parser.add_argument(
        "--format", "-f",
        choices=["csv", "json"],
        default="csv",
        help="Output format (default: csv)",
    )
    bulk_parser.add_argument(
        "--sort",
        choices=VALUE_FIELDS,
        help="Sort results by a valuation field, highest first",
    )
    _add_common_arguments(bulk_parser)
    bulk_parser.set_defaults(func=cmd_bulk)

    warmup_parser = subparsers.add_parser("warmup", help="Wake the valuation backend")
    _add_common_arguments(warmup_parser)
    warmup_parser.set_defaults(func=cmd_warmup)

    stats_parser = subparsers.add_parser("stats", help="Show local search statistics")
    _add_common_arguments(stats_parser)
    stats_parser.set_defaults(func=cmd_stats)

    reset_parser = subparsers.add_parser("reset", help="Clear local search data")
    _add_common_arguments(reset_parser)
    reset_parser.set_defaults(func=cmd_reset)

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
