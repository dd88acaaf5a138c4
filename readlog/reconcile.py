"""Import reconciliation: merge raw records into an existing collection."""
import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from readlog.errors import InvalidRecordError, ParseError
from readlog.legacy_books import LEGACY_BOOKS
from readlog.models import Book, LEGACY_TAG, title_key
from readlog.parse import normalize_book, parse_import_json
from readlog.validation import validate_book

logger = logging.getLogger(__name__)

Persist = Callable[[Book], Awaitable[None]]


@dataclass
class ImportOutcome:
    """Counts for one import run."""
    inserted_count: int = 0
    updated_count: int = 0

    @property
    def total(self) -> int:
        return self.inserted_count + self.updated_count


def find_by_title(books: Iterable[Book], title: str) -> Optional[Book]:
    """First book whose title matches, ignoring case and surrounding space."""
    key = title_key(title)
    for book in books:
        if title_key(book.title) == key:
            return book
    return None


def append_tag(book: Book, tag: str) -> Book:
    """Return `book` with `tag` added to its keywords, unless already there."""
    if tag in book.keywords:
        return book
    return dataclasses.replace(book, keywords=[*book.keywords, tag])


async def reconcile_batch(
    raw_items: Iterable[Dict[str, Any]],
    existing_books: Iterable[Book],
    persist: Persist,
    tag_append: Optional[str] = None
) -> ImportOutcome:
    """
    Normalize raw records and write them one at a time.

    Every item is matched against the collection as it was when the batch
    started, so duplicate titles inside one batch do not see each other.
    Items without a title are skipped. A validation or store error stops
    the batch; items already written stay written.

    Args:
        raw_items: Raw records in import order
        existing_books: Current collection
        persist: Coroutine function that creates or replaces a book
        tag_append: Keyword to add to every imported book

    Returns:
        Inserted and updated counts
    """
    snapshot: List[Book] = list(existing_books)
    outcome = ImportOutcome()

    for index, item in enumerate(raw_items):
        title = item.get("title") if isinstance(item, dict) else None
        existing = find_by_title(snapshot, title) if isinstance(title, str) and title else None

        try:
            book = normalize_book(item, existing)
        except InvalidRecordError as e:
            logger.debug(f"Skipping record {index}: {e}")
            continue

        if tag_append:
            book = append_tag(book, tag_append)

        validate_book(book)
        await persist(book)

        if existing:
            outcome.updated_count += 1
        else:
            outcome.inserted_count += 1

    return outcome


class BookImporter:
    """Runs bulk imports against a store, one batch at a time."""

    def __init__(self, store):
        self.store = store
        self.is_importing = False

    async def _run(
        self,
        raw_items: List[Dict[str, Any]],
        tag_append: Optional[str] = None
    ) -> Optional[ImportOutcome]:
        if self.is_importing:
            logger.warning("Import already in progress, ignoring request")
            return None

        self.is_importing = True
        try:
            existing = await self.store.list_books()
            outcome = await reconcile_batch(
                raw_items, existing, self.store.save_book, tag_append
            )
            logger.info(
                f"Import finished: inserted {outcome.inserted_count}, "
                f"updated {outcome.updated_count}"
            )
            return outcome
        except Exception:
            logger.exception("Import failed")
            raise
        finally:
            self.is_importing = False

    async def import_json(self, text: str) -> Optional[ImportOutcome]:
        """
        Import a JSON array of records (a backup or hand-written list).

        Raises:
            ParseError: before any write if the payload is not a JSON array
        """
        if self.is_importing:
            logger.warning("Import already in progress, ignoring request")
            return None
        raw_items = parse_import_json(text)
        return await self._run(raw_items)

    async def import_legacy(self) -> Optional[ImportOutcome]:
        """Import the built-in seed data, tagging every book as a legacy record."""
        if not LEGACY_BOOKS:
            raise ParseError("找不到內建範例資料。")
        return await self._run(LEGACY_BOOKS, tag_append=LEGACY_TAG)
