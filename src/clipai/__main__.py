import argparse
import logging
import sys
import threading
from datetime import datetime

from clipai import __version__
from clipai.config import DB_PATH, LOG_PATH, PAGE_SIZE, PREVIEW_LENGTH
from clipai.errors import ClipAIError
from clipai.models import ClipboardItem, ContentType, SearchResult, StoreStats
from clipai.settings import SettingsManager
from clipai.storage import StorageManager
from clipai.utils import detect_content_kind, ensure_dirs, truncate_text

logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> None:
    ensure_dirs()
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(LOG_PATH),
            logging.StreamHandler(sys.stderr),
        ],
    )


def format_item(item: ClipboardItem) -> str:
    """One-line rendering of an item for terminal output."""
    when = datetime.fromtimestamp(item.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
    if item.type == ContentType.TEXT:
        kind = detect_content_kind(item.text)
        body = truncate_text(item.text, PREVIEW_LENGTH)
        label = "text" if kind == "text" else f"text/{kind}"
    elif item.type == ContentType.IMAGE:
        label = "image"
        body = f"[Image, {len(item.image)} bytes encoded]"
    else:
        label = "file"
        body = f"{item.file_name} ({item.file_path})"
    return f"{item.id if item.id is not None else '-':>6}  {when}  {label:<11} {body}"


def format_stats(title: str, stats: StoreStats) -> str:
    lines = [f"{title}: {stats.total} items"]
    for content_type, count in stats.by_type.items():
        lines.append(f"  {content_type:<6} {count}")
    lines.append(f"  with embedding: {stats.with_embedding}")
    return "\n".join(lines)


def _print_items(items: list[ClipboardItem]) -> None:
    if not items:
        print("(No clipboard history)")
        return
    for item in items:
        print(format_item(item))


def _print_results(results: list[SearchResult]) -> None:
    if not results:
        print("No results.")
        return
    for result in results:
        print(f"{result.distance:.4f}  {format_item(result.item)}")


def build_history(settings: SettingsManager | None = None, reader=None):
    from clipai.history import ClipboardHistory

    ensure_dirs()
    settings = settings or SettingsManager()
    storage = StorageManager(DB_PATH)
    return ClipboardHistory(storage, settings, reader=reader)


def run_daemon() -> int:
    """Capture the clipboard in the foreground until interrupted."""
    setup_logging()
    history = build_history()
    history.subscribe(lambda item: logger.info("New %s item #%s", item.type.value, item.id))
    stop = threading.Event()
    try:
        history.start()
        logger.info("clipai %s running, press Ctrl+C to stop", __version__)
        stop.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        history.close()
    return 0


def run_command(args: argparse.Namespace) -> int:
    settings = SettingsManager()

    if args.command == "retention":
        if args.days is None:
            print(f"Retention period: {settings.get_retention_days()} days")
        else:
            settings.set_retention_days(args.days)
            state = "disabled" if args.days <= 0 else f"{args.days} days"
            print(f"Retention period set: {state}")
        return 0

    if args.command == "set-key":
        settings.set_openai_api_key(args.key)
        print("OpenAI API key updated." if settings.get_openai_api_key() else "OpenAI API key cleared.")
        return 0

    history = build_history(settings)
    try:
        return _dispatch(history, args)
    finally:
        history.close()


def _dispatch(history, args: argparse.Namespace) -> int:
    if args.command == "history":
        history.monitor.reload()
        while len(history.get_history()) < args.offset + args.limit and history.load_more(PAGE_SIZE):
            pass
        _print_items(history.get_history(args.limit, args.offset))
    elif args.command == "search":
        source = history.search_archive if args.archive else history.search
        _print_items(source(args.query, args.limit))
    elif args.command == "semantic":
        source = history.semantic_search_archive if args.archive else history.semantic_search
        _print_results(source(args.query, args.limit))
    elif args.command == "stats":
        print(format_stats("Active", history.get_stats()))
        print(format_stats("Archive", history.get_archive_stats()))
    elif args.command == "archive":
        moved = history.archive_now()
        print(f"Archived {moved} items.")
    elif args.command == "archived":
        _print_items(history.get_archived_items(args.limit, args.offset))
    elif args.command == "unarchive":
        if not history.unarchive_item(args.id):
            print(f"No archived item with id {args.id}.", file=sys.stderr)
            return 1
        print(f"Restored item {args.id}.")
    elif args.command == "delete":
        deleted = history.delete_archived_item(args.id) if args.archived else history.delete_item(args.id)
        if not deleted:
            print(f"No item with id {args.id}.", file=sys.stderr)
            return 1
        print(f"Deleted item {args.id}.")
    elif args.command == "clear":
        if args.archive:
            history.clear_archive()
            print("Archive cleared.")
        else:
            history.clear_history()
            print("History cleared.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipai",
        description="clipai - Clipboard history with semantic search",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  clipai                          # Capture clipboard changes in the foreground
  clipai history --limit 20       # Show the 20 newest items
  clipai semantic "that sql query" # Search by meaning (needs an OpenAI key)
  clipai retention 14             # Archive items older than two weeks
""",
    )
    parser.add_argument("--version", action="version", version=f"clipai {__version__}")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Capture clipboard changes (default)")

    p = sub.add_parser("history", help="List recent items")
    p.add_argument("--limit", type=int, default=PAGE_SIZE)
    p.add_argument("--offset", type=int, default=0)

    p = sub.add_parser("search", help="Substring search over text items")
    p.add_argument("query")
    p.add_argument("--limit", type=int, default=100)
    p.add_argument("--archive", action="store_true", help="Search the archive instead")

    p = sub.add_parser("semantic", help="Semantic search over text items")
    p.add_argument("query")
    p.add_argument("--limit", type=int, default=10)
    p.add_argument("--archive", action="store_true", help="Search the archive instead")

    sub.add_parser("stats", help="Show item counts")
    sub.add_parser("archive", help="Archive items past the retention period now")

    p = sub.add_parser("archived", help="List archived items")
    p.add_argument("--limit", type=int, default=PAGE_SIZE)
    p.add_argument("--offset", type=int, default=0)

    p = sub.add_parser("unarchive", help="Move an archived item back to history")
    p.add_argument("id", type=int)

    p = sub.add_parser("delete", help="Delete an item")
    p.add_argument("id", type=int)
    p.add_argument("--archived", action="store_true", help="Delete from the archive")

    p = sub.add_parser("clear", help="Delete all history")
    p.add_argument("--archive", action="store_true", help="Clear the archive instead")

    p = sub.add_parser("retention", help="Show or set the retention period in days")
    p.add_argument("days", type=int, nargs="?")

    p = sub.add_parser("set-key", help="Store the OpenAI API key used for embeddings")
    p.add_argument("key")

    return parser


def main(argv: list[str] | None = None):
    args = build_parser().parse_args(argv)

    if args.command in (None, "run"):
        sys.exit(run_daemon())

    setup_logging(logging.WARNING)
    try:
        code = run_command(args)
    except ClipAIError as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
