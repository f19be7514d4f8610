import argparse
import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler

from config import Settings, get_settings
from core.notifications.manager import NotificationManager
from core.renderer import PageRenderer
from db.backends import create_backend
from db.registry import SearchRegistry
from db.store import Store
from watcher.run import Watcher

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(settings: Settings) -> None:
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    log_level = getattr(logging, settings.log_level.upper())

    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    file_handler = RotatingFileHandler(
        settings.log_dir / "stay-watcher.log",
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    file_handler.setLevel(log_level)
    logging.getLogger().addHandler(file_handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stay-watcher",
        description="Watch saved stay searches and report new listings",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Scan every watched search once")
    first_run = run.add_mutually_exclusive_group()
    first_run.add_argument(
        "--notify-first-run",
        dest="notify_on_first_run",
        action="store_true",
        default=None,
        help="Include listings from a search's first scan in the notification",
    )
    first_run.add_argument(
        "--no-notify-first-run",
        dest="notify_on_first_run",
        action="store_false",
        help="Only establish a baseline on a search's first scan",
    )

    add = commands.add_parser("add", help="Start watching a search URL")
    add.add_argument("url")

    remove = commands.add_parser("remove", help="Stop watching a search URL (history is kept)")
    remove.add_argument("url")

    commands.add_parser("list", help="Show watched searches and their scan state")

    forget = commands.add_parser("forget", help="Delete the stored history of a search URL")
    forget.add_argument("url")

    return parser


async def run_command(args: argparse.Namespace, settings: Settings) -> int:
    backend = create_backend(settings)
    registry = SearchRegistry(backend, key=settings.outstanding_key)

    async with Store(backend, prefix=settings.key_prefix) as store:
        if args.command == "add":
            await registry.add(args.url)
        elif args.command == "remove":
            await registry.remove(args.url)
        elif args.command == "forget":
            await store.forget(args.url)
        elif args.command == "list":
            for meta in await registry.list_with_metadata(store):
                created = meta.created_at.isoformat() if meta.created_at else "-"
                scanned = meta.last_scan_at.isoformat() if meta.last_scan_at else "-"
                print(
                    f"{meta.status.value:<7} {meta.property_count:>5} seen  "
                    f"created {created}  last scan {scanned}\n  {meta.search_url}"
                )
        elif args.command == "run":
            notify_on_first_run = (
                settings.notify_on_first_run
                if args.notify_on_first_run is None
                else args.notify_on_first_run
            )
            async with PageRenderer(settings) as renderer:
                watcher = Watcher(
                    registry,
                    store,
                    renderer,
                    NotificationManager.from_settings(settings),
                    notify_on_first_run=notify_on_first_run,
                )
                summary = await watcher.run()
            if summary.failed or summary.notification_error:
                return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings)
    return asyncio.run(run_command(args, settings))


if __name__ == "__main__":
    sys.exit(main())
