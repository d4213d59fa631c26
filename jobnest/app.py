import argparse
import json
from pathlib import Path
from typing import Any, Dict, List

from . import __version__
from .config import Settings
from .env import load_env
from .logger import get_logger
from .ranking import search
from .schema import listing_from_dict, validate_listing
from .stats import category_counts, collect_stats
from .storage import ListingStore, StorageError

logger = get_logger()


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _open_store(args: argparse.Namespace, settings: Settings) -> ListingStore:
    db_path = Path(args.db) if args.db else settings.db_path
    return ListingStore(db_path, timeout=settings.db_timeout)


def ingest_listings(listings: List[Dict[str, Any]], store: ListingStore) -> Dict[str, int]:
    """Validate and upsert wire-format listings; returns counts by status."""
    summary: Dict[str, int] = {}
    for i, data in enumerate(listings):
        if not isinstance(data, dict):
            errors = ["Listing must be a JSON object"]
        else:
            errors = validate_listing(data)
        if errors:
            logger.warning("Skipping invalid listing", index=i, errors=errors)
            status = "validation_error"
        else:
            status = store.upsert(listing_from_dict(data))["status"]
        logger.record_ingest(status)
        summary[status] = summary.get(status, 0) + 1
    return summary


def cmd_search(args: argparse.Namespace, settings: Settings) -> None:
    params = {
        "search": args.search,
        "location": args.location,
        "source": args.source,
        "page": args.page,
        "limit": args.limit,
        "preferences": args.preferences,
    }
    with _open_store(args, settings) as store:
        body = search(
            store,
            params,
            window=settings.candidate_window,
            default_limit=settings.default_limit,
        )
    _print_json(body)
    if "error" in body:
        raise SystemExit(1)


def cmd_ingest(args: argparse.Namespace, settings: Settings) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    try:
        with input_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise SystemExit(f"Invalid JSON in {input_path}: {e}")

    listings = data if isinstance(data, list) else [data]
    with _open_store(args, settings) as store:
        try:
            summary = ingest_listings(listings, store)
        except StorageError as e:
            raise SystemExit(str(e))
    parts = " ".join(f"{status}={count}" for status, count in sorted(summary.items()))
    print(f"Done. total={len(listings)} {parts}".rstrip())


def cmd_stats(args: argparse.Namespace, settings: Settings) -> None:
    with _open_store(args, settings) as store:
        try:
            _print_json(collect_stats(store))
        except StorageError as e:
            raise SystemExit(str(e))


def cmd_categories(args: argparse.Namespace, settings: Settings) -> None:
    with _open_store(args, settings) as store:
        try:
            _print_json({"counts": category_counts(store)})
        except StorageError as e:
            raise SystemExit(str(e))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jobnest", description="JobNest: ranked job listing search")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--db", help="Path to SQLite database (default: JOBNEST_DB_PATH or data/jobs.db)")

    subparsers = parser.add_subparsers(dest="command")
    srch = subparsers.add_parser("search", help="Rank stored listings for a query and print the JSON response")
    srch.add_argument("--search", default="", help="Free-text query, also filters title/company")
    srch.add_argument("--location", default="", help="Location substring filter")
    srch.add_argument("--source", default="", help="Exact source filter (e.g. linkedin)")
    srch.add_argument("--page", default="1", help="Page number (default 1)")
    srch.add_argument("--limit", default="", help="Results per page (default 20)")
    srch.add_argument("--preferences", default="", help="Preferences as a JSON object")
    srch.set_defaults(func=cmd_search)

    ing = subparsers.add_parser("ingest", help="Validate and upsert listings from a JSON file")
    ing.add_argument("--input", required=True, help="Path to a JSON listing or list of listings")
    ing.set_defaults(func=cmd_ingest)

    st = subparsers.add_parser("stats", help="Print store statistics")
    st.set_defaults(func=cmd_stats)

    cat = subparsers.add_parser("categories", help="Print listing counts per category")
    cat.set_defaults(func=cmd_categories)
    return parser


def main(argv=None):
    # Load .env if present (JOBNEST_DB_PATH, JOBNEST_LOG_LEVEL, etc.)
    load_env()
    settings = Settings.from_env()
    logger.configure(
        level=settings.log_level,
        log_dir=settings.log_dir,
        enable_file=settings.log_dir is not None,
    )

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args, settings)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
