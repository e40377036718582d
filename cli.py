"""
CLI utility for managing the novel scraper.

Usage:
    python cli.py run [URL ...]              # Scrape configured (or given) novels
    python cli.py init-db                    # Create database tables
    python cli.py check                      # Verify .env and database access
    python cli.py list-novels                # List tracked novels and progress
    python cli.py list-chapters <novel_url>  # List persisted chapters of a novel
    python cli.py list-genres                # List all genres
"""
import argparse
import logging
import sys
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from batch_runner import build_runner
from config import settings
from database import check_connection, create_db_engine, create_session_factory, init_db
from models import Genre
from progress_store import ProgressStore

logger = logging.getLogger(__name__)


def _open_store() -> ProgressStore:
    if not settings.database_url:
        print("Error: DATABASE_URL is not configured")
        sys.exit(1)
    engine = create_db_engine(settings.database_url)
    return ProgressStore(create_session_factory(engine))


def cmd_run(args):
    """Run one scraping batch."""
    startup = build_runner(settings)
    if not startup.ok:
        print(f"Error: {startup.error}")
        sys.exit(1)

    runner = startup.runner
    try:
        stats = runner.run(args.urls or None)
    finally:
        runner.fetcher.close()

    if stats.novels_failed:
        sys.exit(2)


def cmd_init_db(args):
    """Create database tables."""
    if not settings.database_url:
        print("Error: DATABASE_URL is not configured")
        sys.exit(1)

    engine = create_db_engine(settings.database_url)
    init_db(engine)
    print("✓ Tables created")


def cmd_check(args):
    """Check configuration and database connectivity."""
    ok = True

    if Path(".env").exists():
        print("✓ .env file found")
    else:
        print("⚠ .env file not found (using environment variables only)")

    if not settings.database_url:
        print("✗ DATABASE_URL is not configured")
        sys.exit(1)

    try:
        check_connection(create_db_engine(settings.database_url))
        print("✓ Database connection successful")
    except SQLAlchemyError as e:
        print(f"✗ Database connection failed: {e}")
        ok = False

    print(f"✓ {len(settings.targets)} target novel(s) configured")
    for url in settings.targets:
        print(f"  - {url}")

    if not ok:
        sys.exit(1)


def cmd_list_novels(args):
    """List tracked novels with their resume point."""
    store = _open_store()
    novels = store.list_novels(limit=args.limit)

    print(f"\n{'ID':<5} {'Title':<40} {'Status':<12} {'Saved':<8} {'Declared':<10}")
    print("-" * 77)

    for novel in novels:
        title = novel.title[:37] + "..." if len(novel.title) > 40 else novel.title
        highest = store.get_highest_chapter_number(novel.id) or 0
        declared = novel.total_chapters or "?"
        print(f"{novel.id:<5} {title:<40} {novel.status.value:<12} {highest:<8} {declared:<10}")

    print(f"\nTotal: {len(novels)} novels")


def cmd_list_chapters(args):
    """List persisted chapter numbers of a novel, flagging gaps."""
    store = _open_store()
    novel = store.get_novel(args.novel_url)

    if novel is None:
        print(f"Novel not found: {args.novel_url}")
        sys.exit(1)

    numbers = store.chapter_numbers(novel.id)
    print(f"\n{novel.title}: {len(numbers)} chapters saved")

    if numbers:
        missing = sorted(set(range(1, numbers[-1] + 1)) - set(numbers))
        print(f"  Range: 1..{numbers[-1]}")
        if missing:
            print(f"  Gaps ({len(missing)}): {', '.join(str(n) for n in missing[:args.limit])}")


def cmd_list_genres(args):
    """List all genres."""
    store = _open_store()
    db = store.session_factory()
    try:
        genres = db.query(Genre).order_by(Genre.name).all()

        print(f"\n{'ID':<5} {'Name':<30} {'Slug':<30} {'Novels':<10}")
        print("-" * 75)

        for genre in genres:
            print(f"{genre.id:<5} {genre.name:<30} {genre.slug:<30} {len(genre.novels):<10}")

        print(f"\nTotal: {len(genres)} genres")
    finally:
        db.close()


def main():
    """Main CLI entry point."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(
        description="Novel Scraper CLI"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    run_parser = subparsers.add_parser("run", help="Scrape novels")
    run_parser.add_argument(
        "urls",
        nargs="*",
        help="Novel URLs to scrape (defaults to configured targets)"
    )
    run_parser.set_defaults(func=cmd_run)

    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.set_defaults(func=cmd_init_db)

    check_parser = subparsers.add_parser("check", help="Verify configuration")
    check_parser.set_defaults(func=cmd_check)

    list_novels_parser = subparsers.add_parser("list-novels", help="List novels")
    list_novels_parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Maximum number of novels to show"
    )
    list_novels_parser.set_defaults(func=cmd_list_novels)

    list_chapters_parser = subparsers.add_parser("list-chapters", help="Show chapter progress of a novel")
    list_chapters_parser.add_argument("novel_url", help="Novel landing page URL")
    list_chapters_parser.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum number of gaps to print"
    )
    list_chapters_parser.set_defaults(func=cmd_list_chapters)

    list_genres_parser = subparsers.add_parser("list-genres", help="List genres")
    list_genres_parser.set_defaults(func=cmd_list_genres)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
