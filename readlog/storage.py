"""Book store interface and the local (demo mode) store."""
import json
import logging
import os
from typing import Callable, List, Optional, Dict, Any

from readlog.errors import TransportError
from readlog.events import BookEvents, Listener
from readlog.models import Book
from readlog.parse import load_books

logger = logging.getLogger(__name__)

LOCAL_KEY_PREFIX = "reading-track-data-v1"


def sort_newest_first(books: List[Book]) -> List[Book]:
    return sorted(books, key=lambda b: b.created_at, reverse=True)


class BookStore:
    """
    Per-user book collection.

    Writes are create-or-replace by id. Every change made through a store
    instance is announced to that instance's subscribers with the full
    collection.
    """

    def __init__(self):
        self.events = BookEvents()

    async def list_books(self) -> List[Book]:
        """Return the collection, newest createdAt first."""
        raise NotImplementedError

    async def save_book(self, book: Book):
        """Create or replace a book by id."""
        raise NotImplementedError

    async def delete_book(self, book_id: str):
        """Remove a book by id. Unknown ids are ignored."""
        raise NotImplementedError

    async def get_book(self, book_id: str) -> Optional[Book]:
        for book in await self.list_books():
            if book.id == book_id:
                return book
        return None

    async def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Deliver the current collection now and on every later change.

        Returns:
            Unsubscribe function
        """
        listener(await self.list_books())
        return self.events.subscribe(listener)

    async def _notify(self):
        if len(self.events):
            self.events.emit(await self.list_books())

    def close(self):
        pass


class LocalBookStore(BookStore):
    """Book store held in memory, optionally mirrored to a JSON file."""

    def __init__(self, path: Optional[str] = None):
        """
        Initialize local store.

        Args:
            path: JSON file to load from and write through to; memory only if None
        """
        super().__init__()
        self.path = path
        self._records: List[Dict[str, Any]] = self._load()

    @classmethod
    def for_user(cls, data_dir: str, user_id: str) -> "LocalBookStore":
        """Open the file store of one user inside `data_dir`."""
        os.makedirs(data_dir, exist_ok=True)
        return cls(os.path.join(data_dir, f"{LOCAL_KEY_PREFIX}-{user_id}.json"))

    def _load(self) -> List[Dict[str, Any]]:
        if not self.path or not os.path.exists(self.path):
            return []
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise TransportError(f"Cannot read {self.path}: {e}") from e
        return data if isinstance(data, list) else []

    def _write(self):
        if not self.path:
            return
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._records, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise TransportError(f"Cannot write {self.path}: {e}") from e

    async def list_books(self) -> List[Book]:
        return sort_newest_first(load_books(self._records))

    async def save_book(self, book: Book):
        record = book.to_dict()
        for index, existing in enumerate(self._records):
            if existing.get("id") == book.id:
                self._records[index] = record
                break
        else:
            self._records.insert(0, record)

        self._write()
        logger.debug(f"Saved book {book.id} ({book.title})")
        await self._notify()

    async def delete_book(self, book_id: str):
        remaining = [r for r in self._records if r.get("id") != book_id]
        if len(remaining) == len(self._records):
            return
        self._records = remaining
        self._write()
        logger.debug(f"Deleted book {book_id}")
        await self._notify()


def open_store(config) -> BookStore:
    """
    Open the store for the configured user.

    Demo users and READLOG_STORE=local get a JSON file store; everyone
    else goes to PostgreSQL.
    """
    if config.STORE == "local" or (config.STORE == "auto" and config.is_demo_user):
        logger.info(f"Using local store for {config.USER_ID}")
        return LocalBookStore.for_user(config.DATA_DIR, config.USER_ID)

    from readlog.database import PostgresBookStore

    store = PostgresBookStore(config.DATABASE_URL, config.USER_ID)
    store.init_schema()
    return store
