# tests/conftest.py
import pytest

from readlog.models import Book, ReadingStatus
from readlog.storage import LocalBookStore


@pytest.fixture
def make_book():
    """Factory for valid canonical books; keyword args override fields."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        fields = dict(
            id=f"book-{n}",
            title=f"Book {n}",
            author="Someone",
            status=ReadingStatus.COMPLETED,
            rating=3,
            review="",
            type="實體書",
            created_at=1_000 * n,
            updated_at=1_000 * n,
            quotes=[],
            keywords=[],
            is_favorite=False,
            read_at=None,
        )
        fields.update(overrides)
        return Book(**fields)

    return _make


@pytest.fixture
def store():
    """In-memory local store."""
    return LocalBookStore()


class RecordingPersist:
    """Persist callable that records every book it is given."""

    def __init__(self, fail_on=None, error=None):
        self.saved = []
        self.fail_on = fail_on
        self.error = error

    async def __call__(self, book):
        if self.fail_on is not None and len(self.saved) == self.fail_on:
            raise self.error
        self.saved.append(book)


@pytest.fixture
def persist():
    return RecordingPersist()
