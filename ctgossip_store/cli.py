#!/usr/bin/env python3
"""
ctgossip_store/cli.py - Command-Line Interface

Usage:
    python -m ctgossip_store.cli init
    python -m ctgossip_store.cli stats --json
    python -m ctgossip_store.cli sample --limit 5
    python -m ctgossip_store.cli import-pollination sths.json
    python -m ctgossip_store.cli import-feedback feedback.json

Exit Codes:
    0 = OK
    1 = Invalid input
    2 = Storage unavailable
"""
import argparse
import json
import logging
import sys
from pathlib import Path

from .config import get_settings
from .database import Database
from .errors import InvalidArgument, StorageUnavailable, invalid_argument
from .models import SCTFeedbackEntry, STHPollinationEntry
from .relay import GossipRelay


EXIT_OK = 0
EXIT_INVALID = 1
EXIT_STORAGE = 2


def main(argv=None):
    """
    Parse command-line arguments and dispatch to the selected subcommand.

    The process exits with the subcommand's exit code.
    """
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="ctgossip-store",
        description="Inspect and load the CT gossip relay store"
    )
    parser.add_argument(
        "--database-url",
        default=settings.DATABASE_URL,
        help="SQLAlchemy database URL (default: DATABASE_URL setting)"
    )
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        help="Logging level"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create the schema")

    stats_parser = subparsers.add_parser("stats", help="Show row counts")
    stats_parser.add_argument("--json", action="store_true", help="Print counts as JSON")

    sample_parser = subparsers.add_parser("sample", help="Print a random sample of fresh STHs")
    sample_parser.add_argument(
        "--limit", "-n",
        type=int,
        default=settings.DEFAULT_NUM_POLLINATIONS_TO_RETURN,
        help="Maximum number of STHs to print"
    )

    pollination_parser = subparsers.add_parser("import-pollination", help="Load STHs from a JSON file")
    pollination_parser.add_argument("file", help='JSON document of the form {"sths": [...]}')

    feedback_parser = subparsers.add_parser("import-feedback", help="Load SCT feedback from a JSON file")
    feedback_parser.add_argument("file", help='JSON document of the form {"sct_feedback": [...]}')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    sys.exit(run(args))


COMMANDS = {}


def command(name):
    def register(fn):
        COMMANDS[name] = fn
        return fn
    return register


def run(args) -> int:
    """Open the store, run one subcommand, map failures to exit codes."""
    settings = get_settings().model_copy(update={"DATABASE_URL": args.database_url})
    db = Database.from_settings(settings)
    try:
        db.open()
        return COMMANDS[args.command](GossipRelay(db), args)
    except InvalidArgument as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID
    except StorageUnavailable as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_STORAGE
    finally:
        db.close()


@command("init")
def run_init(relay, args) -> int:
    print(f"Schema ready at {relay.db.database_url}")
    return EXIT_OK


@command("stats")
def run_stats(relay, args) -> int:
    stats = relay.stats()
    if args.json:
        print(json.dumps(stats, sort_keys=True))
    else:
        for name, value in stats.items():
            print(f"{name + ':':<10} {value}")
    return EXIT_OK


@command("sample")
def run_sample(relay, args) -> int:
    sample = relay.sample_fresh_pollination(args.limit)
    print(json.dumps({"sths": [entry.to_dict() for entry in sample]}, indent=2))
    return EXIT_OK


@command("import-pollination")
def run_import_pollination(relay, args) -> int:
    items = _load_list(args.file, "sths")
    entries = [STHPollinationEntry.from_dict(item) for item in items]
    added = relay.add_pollination(entries)
    print(f"Imported {len(entries)} STHs ({added} new)")
    return EXIT_OK


@command("import-feedback")
def run_import_feedback(relay, args) -> int:
    items = _load_list(args.file, "sct_feedback")
    entries = [SCTFeedbackEntry.from_dict(item) for item in items]
    added = relay.add_feedback(entries)
    print(f"Imported {len(entries)} feedback entries ({added} new pairs)")
    return EXIT_OK


def _load_list(path: str, field: str) -> list:
    file_path = Path(path)
    if not file_path.exists():
        raise invalid_argument(f"File not found: {file_path}", {"path": str(file_path)})
    try:
        document = json.loads(file_path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as e:
        raise invalid_argument(f"File is not UTF-8: {file_path}", {"path": str(file_path)}) from e
    except json.JSONDecodeError as e:
        raise invalid_argument(f"Invalid JSON in {file_path}: {e}", {"path": str(file_path)}) from e
    if not isinstance(document, dict) or not isinstance(document.get(field), list):
        raise invalid_argument(f'Expected an object with a "{field}" list', {"path": str(file_path)})
    return document[field]


if __name__ == "__main__":
    main()
