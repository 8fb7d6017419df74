"""cloudblob CLI - ledger migrations, cleanup sweeps and existence checks.

Usage:
    python -m cloudblob migrate [--revision REV]
    python -m cloudblob cleanup [--dry-run] [--content-model PATH]
    python -m cloudblob exists BLOB_ID

All commands read their configuration from CLOUDBLOB_* environment variables
and print deterministic JSON to stdout.

Exit codes:
    0: Success
    1: Operation failed / Internal error
    2: Invalid input or configuration
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from cloudblob.blobs.content_model import ContentModelError, JsonContentModel
from cloudblob.blobs.errors import CleanupFailedError
from cloudblob.blobs.ids import coerce_blob_id
from cloudblob.blobs.provider import create_provider_from_env
from cloudblob.observability.tracing import configure_tracing
from cloudblob.persistence.db import DatabaseConfigError, get_engine
from cloudblob.storage.errors import ObjectStoreConfigError

logger = logging.getLogger(__name__)

CONFIG_ERRORS = (DatabaseConfigError, ObjectStoreConfigError, ContentModelError)

# Numeric env settings are validated with ValueError while the provider is built.
SETUP_ERRORS = (*CONFIG_ERRORS, ValueError)


def _output_json(data: dict[str, Any]) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _make_error(code: str, message: str) -> dict[str, Any]:
    return {"error": {"code": code, "message": message}}


def cmd_migrate(args: argparse.Namespace) -> int:
    """Upgrade the ledger schema to the requested revision."""
    from cloudblob.persistence.migrations import get_current_revision, run_upgrade

    try:
        engine = get_engine()
        run_upgrade(engine, revision=args.revision)
        current = get_current_revision(engine)
    except DatabaseConfigError as e:
        _output_json(_make_error("CONFIG_ERROR", str(e)))
        return 2
    except SQLAlchemyError as e:
        _output_json(_make_error("MIGRATION_FAILED", str(e)))
        return 1

    _output_json({"revision": current})
    return 0


def cmd_cleanup(args: argparse.Namespace) -> int:
    """Run one cleanup sweep and print its report."""
    try:
        content_model = None
        if args.content_model:
            content_model = JsonContentModel.from_file(args.content_model)
        provider = create_provider_from_env(content_model=content_model)
    except SETUP_ERRORS as e:
        _output_json(_make_error("CONFIG_ERROR", str(e)))
        return 2

    try:
        report = provider.cleanup(dry_run=args.dry_run)
    except ContentModelError as e:
        _output_json(_make_error("CONFIG_ERROR", str(e)))
        return 2
    except CleanupFailedError as e:
        _output_json(_make_error("CLEANUP_FAILED", str(e)))
        return 1

    _output_json(report.to_dict())
    return 0


def cmd_exists(args: argparse.Namespace) -> int:
    """Report whether a blob is tracked in the ledger."""
    try:
        blob_id = coerce_blob_id(args.blob_id)
    except ValueError as e:
        _output_json(_make_error("INVALID_BLOB_ID", str(e)))
        return 2

    try:
        provider = create_provider_from_env()
    except SETUP_ERRORS as e:
        _output_json(_make_error("CONFIG_ERROR", str(e)))
        return 2

    try:
        exists = provider.exists(blob_id)
    except SQLAlchemyError as e:
        _output_json(_make_error("LEDGER_ERROR", str(e)))
        return 1

    _output_json({"blob_id": str(blob_id), "exists": exists})
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cloudblob",
        description="cloudblob - cloud blob storage provider CLI",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    migrate_parser = subparsers.add_parser(
        "migrate",
        help="Apply ledger schema migrations",
    )
    migrate_parser.add_argument(
        "--revision",
        default="head",
        metavar="REV",
        help="Target revision (default: head)",
    )

    cleanup_parser = subparsers.add_parser(
        "cleanup",
        help="Delete blobs that no content references",
    )
    cleanup_parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Report orphans without deleting anything",
    )
    cleanup_parser.add_argument(
        "--content-model",
        metavar="PATH",
        default=None,
        help="JSON template catalogue (default: CLOUDBLOB_CONTENT_MODEL_PATH)",
    )

    exists_parser = subparsers.add_parser(
        "exists",
        help="Check whether a blob is tracked in the ledger",
    )
    exists_parser.add_argument("blob_id", metavar="BLOB_ID", help="Blob identifier")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Exit codes:
        0: Success
        1: Operation failed / Internal error (unexpected)
        2: Invalid input or configuration
    """
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        logging.basicConfig(
            level=getattr(logging, args.log_level),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )
        configure_tracing()

        if args.command is None:
            parser.print_help()
            return 0

        if args.command == "migrate":
            return cmd_migrate(args)

        if args.command == "cleanup":
            return cmd_cleanup(args)

        if args.command == "exists":
            return cmd_exists(args)

        return 0

    except Exception as e:
        logger.exception("Unexpected error")
        _output_json(_make_error("INTERNAL_ERROR", str(e)))
        return 1


if __name__ == "__main__":
    sys.exit(main())
