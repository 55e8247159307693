"""
Command-line interface for the Kanboard to Phabricator migration tool.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any

from . import kanboard_utils as kbu
from . import phabricator_utils as phu
from .exceptions import MigrationError
from .migrator import KanboardToPhabricatorMigrator
from .models import MigrationConfig
from .utils import PassError, setup_logging

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Migrate a Kanboard project into a Phabricator Maniphest project")

    # Positional arguments
    _ = parser.add_argument(
        "kanboard_url", help="Kanboard JSON-RPC endpoint (e.g. https://todo.example.org/jsonrpc.php)"
    )
    _ = parser.add_argument("kanboard_project", help="Kanboard project id")
    _ = parser.add_argument("phabricator_url", help="Phabricator base URL (e.g. https://phabricator.example.org)")
    _ = parser.add_argument("phabricator_project", help="PHID of the Phabricator project to move tasks to")

    # Optional arguments with short forms
    _ = parser.add_argument(
        "--exclude-column",
        "-x",
        action="append",
        default=[],
        dest="excluded_columns",
        help="Id of a Kanboard column such as 'Done' whose tasks are not migrated. Can be specified multiple times.",
    )

    _ = parser.add_argument(
        "--watcher",
        required=True,
        help="PHID of the user to remove from the subscribers of every migrated task",
    )

    _ = parser.add_argument("--kanboard-user", default="jsonrpc", help="Kanboard API user (default: jsonrpc)")

    _ = parser.add_argument(
        "--kanboard-pass-token", help="Path for Kanboard token in pass utility (default: kanboard/jsonrpc/token)"
    )

    _ = parser.add_argument(
        "--phabricator-pass-token",
        help="Path for Conduit token in pass utility (default: phabricator/conduit/token)",
    )

    _ = parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> MigrationConfig:
    """Resolve tokens and turn parsed arguments into a MigrationConfig."""
    kanboard_token = kbu.get_token(args.kanboard_pass_token)
    if not kanboard_token:
        msg = "A Kanboard API token is required (set KANBOARD_TOKEN or use --kanboard-pass-token)"
        raise MigrationError(msg)

    phabricator_token = phu.get_token(args.phabricator_pass_token)
    if not phabricator_token:
        msg = "A Conduit API token is required (set PHABRICATOR_TOKEN or use --phabricator-pass-token)"
        raise MigrationError(msg)

    return MigrationConfig(
        kanboard_url=args.kanboard_url,
        kanboard_user=args.kanboard_user,
        kanboard_token=kanboard_token,
        kanboard_project_id=args.kanboard_project,
        excluded_columns=frozenset(args.excluded_columns),
        phabricator_url=args.phabricator_url,
        phabricator_token=phabricator_token,
        phabricator_project_phid=args.phabricator_project,
        watcher_phid=args.watcher,
    )


def _print_migration_report(report: dict[str, Any]) -> None:
    print()
    print("=" * 60)
    print(f"Kanboard project {report['kanboard_project']} -> {report['phabricator_project']}")
    print(f"Status: {'PASSED' if report['success'] else 'FAILED'}")
    print("=" * 60)

    for key, value in report["statistics"].items():
        print(f"  {key}: {value}")

    if report["errors"]:
        print("\nErrors:")
        for error in report["errors"]:
            print(f"  - {error}")


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)

    verbose: bool = getattr(args, "verbose", False)
    setup_logging(verbose=verbose)

    try:
        config = build_config(args)
        migrator = KanboardToPhabricatorMigrator(config)
        report = migrator.migrate()
    except (MigrationError, PassError, ValueError):
        logger.exception("Migration failed")
        sys.exit(1)

    _print_migration_report(report)
    sys.exit(0 if report["success"] else 1)
