"""Command line interface for the database flag audit."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

import boto3
from botocore.exceptions import ProfileNotFound

from .catalog import (
    PLATFORM_VARIANTS,
    RULE_CATALOG,
    build_rules,
    load_parameters,
    parse_parameter_overrides,
)
from .engine import run_audit
from .exceptions import ConfigurationError
from .inventory import ResourceInventoryCache
from .providers import InventoryProvider, RdsInventoryProvider, load_snapshot
from .reporting import JsonLinesReporter


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Return parsed command line arguments."""

    parser = argparse.ArgumentParser(
        description="Check managed database instances for required configuration flags."
    )
    parser.add_argument("--profile", help="AWS CLI profile to use", default=None)
    parser.add_argument("--region", help="AWS region whose RDS instances are audited", default=None)
    parser.add_argument(
        "--snapshot",
        dest="snapshot_path",
        help="Evaluate a JSON inventory snapshot instead of querying AWS",
    )
    parser.add_argument(
        "--platform",
        choices=sorted(PLATFORM_VARIANTS),
        default=None,
        help="Platform whose flag names the rules use (default: taken from the inventory source)",
    )
    parser.add_argument(
        "--rules",
        nargs="*",
        default=None,
        help=f"Subset of rules to evaluate (default: all). Choices: {', '.join(sorted(RULE_CATALOG.keys()))}",
    )
    parser.add_argument("--params", dest="params_path", help="JSON file with rule parameter values")
    parser.add_argument(
        "--param",
        dest="param_overrides",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Override a single rule parameter (repeatable)",
    )
    parser.add_argument(
        "--json",
        dest="json_path",
        help="Write outcomes as JSON lines to this path instead of stdout",
    )
    parser.add_argument("--workers", type=int, default=8, help="Number of parallel evaluation workers")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _build_provider(args: argparse.Namespace) -> tuple[InventoryProvider, str]:
    if args.snapshot_path:
        provider = load_snapshot(args.snapshot_path)
        return provider, provider.default_fleet or ""
    session = boto3.Session(profile_name=args.profile, region_name=args.region)
    return RdsInventoryProvider(session), args.region or session.region_name or ""


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point used by ``python -m db_flag_audit``."""

    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        parameters = load_parameters(args.params_path) if args.params_path else {}
        parameters.update(parse_parameter_overrides(args.param_overrides))
        provider, fleet = _build_provider(args)
        platform = args.platform or provider.platform
        rules = build_rules(parameters, args.rules, platform=platform)
    except (ConfigurationError, ProfileNotFound, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.workers < 1:
        print("Error: --workers must be at least 1", file=sys.stderr)
        return 1

    cache = ResourceInventoryCache(provider, fleet)
    try:
        output = open(args.json_path, "w", encoding="utf-8") if args.json_path else sys.stdout
    except OSError as exc:
        print(f"Error: cannot write {args.json_path}: {exc}", file=sys.stderr)
        return 1
    try:
        reporter = JsonLinesReporter(output)
        results = run_audit(rules, cache, reporter, max_workers=args.workers)
    finally:
        if output is not sys.stdout:
            output.close()

    print(json.dumps({"summary": results.summary()}), file=sys.stderr)
    if args.json_path:
        print(f"Outcomes exported to {args.json_path}", file=sys.stderr)
    if results.cancelled:
        print("Audit interrupted; partial outcomes were written.", file=sys.stderr)
        return 130
    return 0


__all__ = ["main", "parse_args"]
