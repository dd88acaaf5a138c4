"""Collection queries and single-book operations."""
import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from readlog.errors import ValidationError
from readlog.models import (
    Book,
    BookType,
    ReadingStatus,
    UNKNOWN_AUTHOR,
    generate_id,
    now_ms,
)
from readlog.parse import dedupe_keywords
from readlog.validation import validate_book

logger = logging.getLogger(__name__)

ALL = "ALL"

EDITABLE_FIELDS = {
    "title", "author", "status", "rating", "review",
    "quotes", "type", "keywords", "read_at",
}


def _status(value) -> ReadingStatus:
    try:
        return ReadingStatus(value)
    except ValueError:
        raise ValidationError("無效的閱讀狀態。") from None


@dataclass
class FilterState:
    """Browse filters. ALL disables a filter."""
    search: str = ""
    status: Union[ReadingStatus, str] = ALL
    type: str = ALL
    min_rating: Union[float, str] = ALL
    sort: str = "newest"
    only_favorites: bool = False


def _matches(book: Book, filters: FilterState) -> bool:
    needle = filters.search.lower()
    if needle and not (
        needle in book.title.lower()
        or needle in book.author.lower()
        or any(needle in keyword.lower() for keyword in book.keywords)
    ):
        return False
    if filters.status != ALL and book.status != filters.status:
        return False
    if filters.type != ALL and book.type != filters.type:
        return False
    if filters.min_rating != ALL and book.rating < filters.min_rating:
        return False
    if filters.only_favorites and not book.is_favorite:
        return False
    return True


def filter_books(books: List[Book], filters: Optional[FilterState] = None) -> List[Book]:
    """
    Apply browse filters and sort by creation time.

    Args:
        books: Collection
        filters: Filters to apply (defaults show everything, newest first)

    Returns:
        Matching books, sorted
    """
    filters = filters or FilterState()
    matching = [book for book in books if _matches(book, filters)]
    return sorted(
        matching,
        key=lambda b: b.created_at,
        reverse=filters.sort != "oldest"
    )


def books_by_author(books: List[Book], author: str) -> List[Book]:
    """All books by `author` (case and whitespace insensitive), newest first."""
    key = author.strip().lower()
    found = [book for book in books if book.author.strip().lower() == key]
    return sorted(found, key=lambda b: b.created_at, reverse=True)


def collect_facets(books: List[Book]) -> Dict[str, Any]:
    """
    Gather autocomplete values and headline counts.

    Returns:
        Dict with sorted `authors`, `keywords`, `types` and a `stats` dict
    """
    authors = set()
    keywords = set()
    types = {book_type.value for book_type in BookType}
    completed = 0
    to_read = 0

    for book in books:
        if book.author:
            authors.add(book.author)
        keywords.update(book.keywords)
        if book.type:
            types.add(book.type)
        if book.status == ReadingStatus.COMPLETED:
            completed += 1
        elif book.status == ReadingStatus.TO_READ:
            to_read += 1

    return {
        "authors": sorted(authors),
        "keywords": sorted(keywords),
        "types": sorted(types),
        "stats": {
            "total": len(books),
            "completed": completed,
            "to_read": to_read,
        },
    }


class BookLibrary:
    """
    Add, edit, favorite and delete single books in a store.

    A failed validation aborts only the operation at hand; the
    ValidationError is raised for the caller to report.
    """

    def __init__(self, store):
        self.store = store

    async def _require(self, book_id: str) -> Book:
        book = await self.store.get_book(book_id)
        if book is None:
            raise KeyError(f"No book with id {book_id}")
        return book

    async def add_book(self, data: Dict[str, Any]) -> Book:
        """
        Create a book from form data.

        Args:
            data: Editable fields, keyed by Book attribute name

        Returns:
            The stored book
        """
        now = now_ms()
        book = Book(
            id=generate_id(),
            title=data.get("title", ""),
            author=data.get("author") or UNKNOWN_AUTHOR,
            status=_status(data.get("status", ReadingStatus.TO_READ)),
            rating=data.get("rating", 0),
            review=data.get("review", ""),
            type=data.get("type") or BookType.ORIGINAL_NOVEL.value,
            created_at=now,
            updated_at=now,
            quotes=list(data.get("quotes", [])),
            keywords=dedupe_keywords(data.get("keywords", [])),
            is_favorite=False,
            read_at=data.get("read_at"),
        )
        validate_book(book)
        await self.store.save_book(book)
        logger.info(f"Added book {book.id} ({book.title})")
        return book

    async def update_book(self, book_id: str, changes: Dict[str, Any]) -> Book:
        """
        Replace a book with `changes` applied on top of it.

        Args:
            book_id: Book to edit
            changes: Editable fields to change, keyed by Book attribute name

        Returns:
            The stored book
        """
        current = await self._require(book_id)
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        values = dict(changes)
        if "status" in values:
            values["status"] = _status(values["status"])
        if "keywords" in values:
            values["keywords"] = dedupe_keywords(values["keywords"])

        updated = dataclasses.replace(current, updated_at=now_ms(), **values)
        validate_book(updated)
        await self.store.save_book(updated)
        logger.info(f"Updated book {book_id}")
        return updated

    async def toggle_favorite(self, book_id: str) -> Optional[Book]:
        """Flip the favorite flag. Failures are logged, not raised."""
        try:
            book = await self._require(book_id)
            updated = dataclasses.replace(
                book, is_favorite=not book.is_favorite, updated_at=now_ms()
            )
            await self.store.save_book(updated)
            return updated
        except Exception as e:
            logger.error(f"Failed to toggle favorite: {e}")
            return None

    async def delete_book(self, book_id: str):
        await self.store.delete_book(book_id)
        logger.info(f"Deleted book {book_id}")
