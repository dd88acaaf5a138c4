#!/usr/bin/env python3
"""Reading Log CLI - track, filter, back up and import your books."""
import argparse
import asyncio
import sys
from datetime import date, datetime
from tabulate import tabulate
from readlog.async_client import AsyncGeminiClient
from readlog.client import GeminiClient
from readlog.config import Config
from readlog.errors import ParseError, ValidationError
from readlog.library import (
    ALL,
    BookLibrary,
    FilterState,
    books_by_author,
    collect_facets,
    filter_books,
)
from readlog.models import ReadingStatus
from readlog.parse import export_books
from readlog.reconcile import BookImporter
from readlog.storage import open_store
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

STATUS_CHOICES = [status.name for status in ReadingStatus]


def parse_date_ms(value: str) -> int:
    """Convert YYYY-MM-DD to epoch milliseconds."""
    return int(datetime.strptime(value, "%Y-%m-%d").timestamp() * 1000)


def format_date(ms) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d") if ms else ""


def truncate(text: str, width: int) -> str:
    return text[:width] + "..." if len(text) > width else text


def display_books(books, format_type: str):
    """Display books in specified format."""
    if format_type == "table":
        headers = ["ID", "Title", "Author", "Status", "Rating", "Type", "Keywords", "Read", "Fav"]
        rows = [
            [
                book.id[:8],
                truncate(book.title, 40),
                truncate(book.author, 20),
                book.status.value,
                book.rating,
                book.type,
                truncate(", ".join(book.keywords), 30),
                format_date(book.read_at),
                "★" if book.is_favorite else ""
            ]
            for book in books
        ]
        print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))

    elif format_type == "json":
        print(export_books(books))

    elif format_type == "compact":
        for i, book in enumerate(books, 1):
            print(f"{i}. {book.title} - {book.author}")


async def resolve_id(store, prefix: str) -> str:
    """Accept a full id or a unique prefix (as shown in the table)."""
    matches = [book.id for book in await store.list_books() if book.id.startswith(prefix)]
    if len(matches) != 1:
        raise KeyError(f"No unique book matches id '{prefix}'")
    return matches[0]


def book_fields(args) -> dict:
    """Collect the book fields given on the command line."""
    fields = {}
    for name in ("title", "author", "rating", "review", "type"):
        value = getattr(args, name, None)
        if value is not None:
            fields[name] = value
    if args.status:
        fields["status"] = ReadingStatus[args.status]
    if args.keyword:
        fields["keywords"] = args.keyword
    if args.quote:
        fields["quotes"] = args.quote
    if args.read_at:
        fields["read_at"] = parse_date_ms(args.read_at)
    return fields


async def list_books(args, store):
    """List books matching the given filters."""
    filters = FilterState(
        search=args.search,
        status=ReadingStatus[args.status] if args.status else ALL,
        type=args.type or ALL,
        min_rating=args.min_rating if args.min_rating is not None else ALL,
        sort=args.sort,
        only_favorites=args.favorites
    )
    books = filter_books(await store.list_books(), filters)
    logger.info(f"Found {len(books)} books")
    display_books(books, args.format)


async def add_book(args, store):
    """Add a book."""
    book = await BookLibrary(store).add_book(book_fields(args))
    print(f"✅ Added {book.title} ({book.id})")


async def edit_book(args, store):
    """Edit an existing book."""
    book_id = await resolve_id(store, args.id)
    book = await BookLibrary(store).update_book(book_id, book_fields(args))
    print(f"✅ Updated {book.title}")


async def favorite_book(args, store):
    """Toggle the favorite flag of a book."""
    book_id = await resolve_id(store, args.id)
    book = await BookLibrary(store).toggle_favorite(book_id)
    if book is None:
        print("❌ 更新收藏失敗")
        sys.exit(1)
    print(f"{'★' if book.is_favorite else '☆'} {book.title}")


async def delete_book(args, store):
    """Delete a book."""
    book_id = await resolve_id(store, args.id)
    await BookLibrary(store).delete_book(book_id)
    print("✅ Deleted")


async def show_author(args, store):
    """Show every book by one author."""
    books = books_by_author(await store.list_books(), args.author)
    print(f"\n{args.author} · 共 {len(books)} 本")
    display_books(books, args.format)


async def import_json(args, store):
    """Import books from a JSON backup file."""
    with open(args.file, encoding="utf-8") as f:
        text = f.read()

    outcome = await BookImporter(store).import_json(text)
    if outcome:
        print(f"✅ 成功匯入！新增 {outcome.inserted_count} 筆，覆蓋更新 {outcome.updated_count} 筆。")


async def import_legacy(args, store):
    """Import the built-in legacy reading list."""
    outcome = await BookImporter(store).import_legacy()
    if outcome:
        print(f"✅ 範例匯入完成！新增 {outcome.inserted_count} 筆，覆蓋 {outcome.updated_count} 筆。")


async def export_data(args, store):
    """Export every book as JSON."""
    books = await store.list_books()
    data = export_books(books)

    if args.output == "-":
        print(data)
        return

    output_file = args.output or f"reading_tracker_backup_{date.today().isoformat()}.json"
    with open(output_file, 'w', encoding='utf-8') as f:
        f.write(data)
    logger.info(f"✅ Exported {len(books)} books to {output_file}")


async def show_stats(args, store):
    """Show collection statistics."""
    facets = collect_facets(await store.list_books())
    stats = facets["stats"]

    print("\n" + "=" * 50)
    print("READING LOG STATISTICS")
    print("=" * 50)
    print(f"Total books: {stats['total']}")
    print(f"Completed: {stats['completed']}")
    print(f"To read: {stats['to_read']}")
    print(f"Authors: {len(facets['authors'])}")
    print(f"Keywords: {len(facets['keywords'])}")
    print("=" * 50 + "\n")

    # Cleanup if requested
    if args.cleanup and hasattr(store, "cleanup_expired_cache"):
        deleted = store.cleanup_expired_cache()
        print(f"✅ Cleaned up {deleted} expired cache entries\n")


def print_suggestion(title: str, suggestion):
    rows = [
        ["Keywords", ", ".join(suggestion.keywords)],
        ["Summary", suggestion.summary],
        ["Quotes", "\n".join(suggestion.quotes)],
        ["Type", suggestion.type_recommendation],
    ]
    print(f"\n{title}")
    print(tabulate(rows, tablefmt="grid"))


async def suggest(args, store, config: Config):
    """Ask the AI for metadata about one book."""
    with GeminiClient(
        api_key=config.GEMINI_API_KEY,
        model=config.GEMINI_MODEL,
        timeout=config.DEFAULT_TIMEOUT,
        max_retries=config.DEFAULT_MAX_RETRIES
    ) as client:
        cache_db = store if hasattr(store, "cache_get") and not args.no_cache else None
        suggestion = client.suggest_with_cache(
            args.title,
            args.author or "",
            cache_db=cache_db,
            cache_ttl=config.DEFAULT_CACHE_TTL
        )
    print_suggestion(args.title, suggestion)


async def suggest_missing(args, store, config: Config):
    """Ask the AI for metadata about every book that has no keywords yet."""
    books = [book for book in await store.list_books() if not book.keywords]
    if not books:
        logger.info("Every book already has keywords")
        return

    logger.info(f"Requesting suggestions for {len(books)} books")
    logger.info(f"Parallel requests: {args.parallel}")

    async with AsyncGeminiClient(
        api_key=config.GEMINI_API_KEY,
        model=config.GEMINI_MODEL,
        timeout=config.DEFAULT_TIMEOUT,
        max_concurrent=args.parallel
    ) as client:
        suggestions = await client.suggest_many([(b.title, b.author) for b in books])

    for book, suggestion in zip(books, suggestions):
        print_suggestion(book.title, suggestion)


def add_book_arguments(parser, require_title: bool):
    if require_title:
        parser.add_argument("title", help="Book title")
    else:
        parser.add_argument("--title", help="Book title")
    parser.add_argument("--author", help="Author")
    parser.add_argument("--status", choices=STATUS_CHOICES, help="Reading status")
    parser.add_argument("--rating", type=float, help="Rating from 0 to 5")
    parser.add_argument("--type", help="Book type")
    parser.add_argument("--review", help="Review text")
    parser.add_argument("--keyword", action="append", help="Keyword (repeatable)")
    parser.add_argument("--quote", action="append", help="Quote (repeatable)")
    parser.add_argument("--read-at", help="Date read (YYYY-MM-DD)")


async def run(args, config: Config):
    store = open_store(config)
    try:
        if args.command == "list":
            await list_books(args, store)
        elif args.command == "add":
            await add_book(args, store)
        elif args.command == "edit":
            await edit_book(args, store)
        elif args.command == "favorite":
            await favorite_book(args, store)
        elif args.command == "delete":
            await delete_book(args, store)
        elif args.command == "author":
            await show_author(args, store)
        elif args.command == "import":
            await import_json(args, store)
        elif args.command == "import-legacy":
            await import_legacy(args, store)
        elif args.command == "export":
            await export_data(args, store)
        elif args.command == "stats":
            await show_stats(args, store)
        elif args.command == "suggest":
            await suggest(args, store, config)
        elif args.command == "suggest-missing":
            await suggest_missing(args, store, config)
    finally:
        store.close()


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Reading Log - personal book tracker CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Browse favorites with at least 4 stars
  %(prog)s list --favorites --min-rating 4

  # Add a book
  %(prog)s add "三體" --author 劉慈欣 --status READING --keyword 科幻

  # Back up and restore
  %(prog)s export --output backup.json
  %(prog)s import backup.json

  # Suggest metadata with AI
  %(prog)s suggest "小王子" --author "聖修伯里"
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # List command
    list_parser = subparsers.add_parser("list", help="List and filter books")
    list_parser.add_argument("--search", default="", help="Match title, author or keyword")
    list_parser.add_argument("--status", choices=STATUS_CHOICES, help="Only this status")
    list_parser.add_argument("--type", help="Only this book type")
    list_parser.add_argument("--min-rating", type=float, help="Minimum rating")
    list_parser.add_argument("--sort", choices=["newest", "oldest"], default="newest", help="Sort order")
    list_parser.add_argument("--favorites", action="store_true", help="Only favorites")
    list_parser.add_argument("--format", choices=["table", "json", "compact"], default="table", help="Output format")

    # Add / edit commands
    add_parser = subparsers.add_parser("add", help="Add a book")
    add_book_arguments(add_parser, require_title=True)

    edit_parser = subparsers.add_parser("edit", help="Edit a book")
    edit_parser.add_argument("id", help="Book id or id prefix")
    add_book_arguments(edit_parser, require_title=False)

    favorite_parser = subparsers.add_parser("favorite", help="Toggle favorite")
    favorite_parser.add_argument("id", help="Book id or id prefix")

    delete_parser = subparsers.add_parser("delete", help="Delete a book")
    delete_parser.add_argument("id", help="Book id or id prefix")

    author_parser = subparsers.add_parser("author", help="Books by an author")
    author_parser.add_argument("author", help="Author name")
    author_parser.add_argument("--format", choices=["table", "json", "compact"], default="table", help="Output format")

    # Import / export commands
    import_parser = subparsers.add_parser("import", help="Import a JSON array of books")
    import_parser.add_argument("file", help="JSON file")

    subparsers.add_parser("import-legacy", help="Import the built-in legacy reading list")

    export_parser = subparsers.add_parser("export", help="Export all books as JSON")
    export_parser.add_argument("--output", help="Output file ('-' for stdout, default: dated backup file)")

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Show collection statistics")
    stats_parser.add_argument("--cleanup", action="store_true", help="Clean up expired suggestion cache")

    # AI commands
    suggest_parser = subparsers.add_parser("suggest", help="Suggest metadata for a book")
    suggest_parser.add_argument("title", help="Book title")
    suggest_parser.add_argument("--author", help="Author")
    suggest_parser.add_argument("--no-cache", action="store_true", help="Disable caching")

    missing_parser = subparsers.add_parser("suggest-missing", help="Suggest metadata for books without keywords")
    missing_parser.add_argument("--parallel", type=int, default=Config.SUGGEST_CONCURRENCY, help="Concurrent requests")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = Config()

    try:
        asyncio.run(run(args, config))

    except ValidationError as e:
        print(f"❌ 資料驗證失敗：{e}")
        sys.exit(1)
    except ParseError as e:
        logger.error(f"❌ {e}")
        print("❌ 匯入失敗，請檢查 JSON 格式是否正確。")
        sys.exit(1)
    except KeyError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("\n⚠️  Interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"❌ Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
