"""Parse and normalize raw book records from imports and backups."""
import json
import logging
import math
import re
from typing import Dict, Any, List, Optional, Iterable

from readlog.errors import InvalidRecordError, ParseError
from readlog.models import (
    Book,
    BookType,
    ReadingStatus,
    UNKNOWN_AUTHOR,
    generate_id,
    now_ms,
)

logger = logging.getLogger(__name__)

# Placeholders the legacy dataset used for "not rated"
NO_RATING_MARKERS = {"N/A", "X"}
NO_REVIEW_MARKER = "N/A"

# Old textual statuses that predate ReadingStatus. Anything not listed here
# and not already canonical, including a missing status, is DEFAULT_STATUS.
LEGACY_STATUS_ALIASES = {
    "待看": ReadingStatus.TO_READ,
    "棄書": ReadingStatus.DROPPED,
    "閱讀中": ReadingStatus.READING,
}
DEFAULT_STATUS = ReadingStatus.COMPLETED
DEFAULT_TYPE = BookType.ORIGINAL_NOVEL.value

_CANONICAL_STATUSES = {status.value: status for status in ReadingStatus}

# Leading numeric prefix, the part a lenient float parser would accept
_NUMBER_PREFIX = re.compile(
    r"^\s*([+-]?(?:Infinity|\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?))"
)


def parse_rating(value: Any) -> float:
    """
    Turn a loosely typed rating into a number.

    Numbers pass through unclamped; range checks belong to validation.

    Args:
        value: Raw rating (number, string, None, anything)

    Returns:
        The rating, or 0 when it is missing or unparseable
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        if value in NO_RATING_MARKERS:
            return 0
        match = _NUMBER_PREFIX.match(value)
        if not match:
            return 0
        parsed = float(match.group(1).replace("Infinity", "inf"))
        return int(parsed) if parsed.is_integer() else parsed
    return 0


def dedupe_keywords(keywords: Iterable[Any]) -> List[Any]:
    """
    Remove duplicate keywords, keeping the first occurrence.

    Only strings are compared; anything else is kept in place for the
    validator to reject.
    """
    seen = set()
    result = []
    for keyword in keywords:
        if isinstance(keyword, str):
            if keyword in seen:
                continue
            seen.add(keyword)
        result.append(keyword)
    return result


def parse_keywords(item: Dict[str, Any]) -> List[str]:
    """Pick `keywords`, else the legacy `tags` list, and deduplicate it."""
    keywords = item.get("keywords")
    if not isinstance(keywords, list):
        keywords = item.get("tags")
    if not isinstance(keywords, list):
        keywords = []
    return dedupe_keywords(keywords)


def map_status(value: Any) -> ReadingStatus:
    """
    Resolve a raw status to a ReadingStatus.

    Canonical values pass through, legacy spellings are translated, and
    everything else (including a missing status) becomes COMPLETED.
    """
    if isinstance(value, ReadingStatus):
        return value
    if isinstance(value, str):
        if value in _CANONICAL_STATUSES:
            return _CANONICAL_STATUSES[value]
        if value in LEGACY_STATUS_ALIASES:
            return LEGACY_STATUS_ALIASES[value]
    return DEFAULT_STATUS


def _timestamp(value: Any) -> Optional[float]:
    """Return value if it is a usable epoch-ms number, else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return value


def parse_review(item: Dict[str, Any]) -> str:
    review = item.get("review") or item.get("comment") or ""
    if review == NO_REVIEW_MARKER:
        return ""
    return review


def normalize_book(
    item: Dict[str, Any],
    existing: Optional[Book] = None,
    now: Optional[int] = None
) -> Book:
    """
    Normalize a raw import record into a canonical Book.

    Args:
        item: Raw record of unknown/partial shape
        existing: Book with the same title already in the collection, if any
        now: Timestamp (ms) to stamp; defaults to the current time

    Returns:
        A new Book. When `existing` is given it keeps that book's id,
        createdAt and favorite flag.

    Raises:
        InvalidRecordError: if the record has no usable title
    """
    if not isinstance(item, dict):
        raise InvalidRecordError(f"Record is not an object: {item!r}")

    title = item.get("title")
    if not title or not isinstance(title, str):
        raise InvalidRecordError("Record has no title")

    if now is None:
        now = now_ms()

    if existing:
        book_id = existing.id
        created_at = existing.created_at
        is_favorite = existing.is_favorite
    else:
        book_id = generate_id()
        created_at = _timestamp(item.get("createdAt")) or now
        is_favorite = bool(item.get("isFavorite"))

    quotes = item.get("quotes")

    return Book(
        id=book_id,
        title=title,
        author=item.get("author") or (existing.author if existing else None) or UNKNOWN_AUTHOR,
        status=map_status(item.get("status")),
        rating=parse_rating(item.get("rating")),
        review=parse_review(item),
        type=item.get("type") or DEFAULT_TYPE,
        created_at=created_at,
        updated_at=now,
        quotes=list(quotes) if isinstance(quotes, list) else [],
        keywords=parse_keywords(item),
        is_favorite=is_favorite,
        read_at=item.get("readAt") or (existing.read_at if existing else None),
    )


def parse_import_json(text: str) -> List[Any]:
    """
    Parse a user-supplied backup/import payload.

    Args:
        text: JSON text expected to hold an array of records

    Returns:
        The raw records, unvalidated

    Raises:
        ParseError: if the text is not JSON or not a top-level array
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ParseError(f"無法解析 JSON：{e}") from e

    if not isinstance(data, list):
        raise ParseError("匯入格式錯誤：必須是書籍陣列 ([...])")

    logger.info(f"Parsed {len(data)} records from import payload")
    return data


def export_books(books: Iterable[Book]) -> str:
    """Serialize the collection to indented JSON in its stored shape."""
    return json.dumps([book.to_dict() for book in books], indent=2, ensure_ascii=False)


def load_books(records: Iterable[Dict[str, Any]]) -> List[Book]:
    """
    Load canonical records from a store, skipping any that are corrupt.

    Args:
        records: Stored dicts

    Returns:
        List of Book objects
    """
    books = []
    for record in records:
        try:
            books.append(Book.from_dict(record))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping unreadable stored record: {e}")
    return books
