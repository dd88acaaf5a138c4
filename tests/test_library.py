"""Tests for collection queries and single-book operations."""
import pytest

from readlog.errors import ValidationError
from readlog.library import (
    BookLibrary,
    FilterState,
    books_by_author,
    collect_facets,
    filter_books,
)
from readlog.models import BookType, ReadingStatus, UNKNOWN_AUTHOR


@pytest.fixture
def shelf(make_book):
    return [
        make_book(title="Dune", author="Frank Herbert", rating=5, keywords=["Sci-Fi"],
                  created_at=3, is_favorite=True, type="外文書"),
        make_book(title="三體", author="劉慈欣", rating=4, status=ReadingStatus.READING,
                  created_at=1, keywords=["科幻"]),
        make_book(title="Children of Dune", author=" frank herbert ", rating=2,
                  status=ReadingStatus.TO_READ, created_at=2),
    ]


def test_default_filters_sort_newest_first(shelf):
    """Test that no filters keeps everything, newest first."""
    assert [b.created_at for b in filter_books(shelf)] == [3, 2, 1]


def test_sort_oldest(shelf):
    """Test oldest-first sorting."""
    books = filter_books(shelf, FilterState(sort="oldest"))
    assert [b.created_at for b in books] == [1, 2, 3]


def test_search_matches_title_author_and_keywords(shelf):
    """Test case-insensitive search across fields."""
    assert {b.title for b in filter_books(shelf, FilterState(search="dune"))} == {"Dune", "Children of Dune"}
    assert [b.title for b in filter_books(shelf, FilterState(search="劉"))] == ["三體"]
    assert [b.title for b in filter_books(shelf, FilterState(search="sci-fi"))] == ["Dune"]


def test_filters_combine(shelf):
    """Test status, type, rating and favorite filters."""
    assert [b.title for b in filter_books(shelf, FilterState(status=ReadingStatus.READING))] == ["三體"]
    assert [b.title for b in filter_books(shelf, FilterState(type="外文書"))] == ["Dune"]
    assert len(filter_books(shelf, FilterState(min_rating=4))) == 2
    assert [b.title for b in filter_books(shelf, FilterState(only_favorites=True))] == ["Dune"]
    assert filter_books(shelf, FilterState(min_rating=4, status=ReadingStatus.TO_READ)) == []


def test_books_by_author(shelf):
    """Test author cross-reference ignores case and surrounding space."""
    books = books_by_author(shelf, "FRANK HERBERT")
    assert [b.title for b in books] == ["Dune", "Children of Dune"]
    assert books_by_author(shelf, "nobody") == []


def test_collect_facets(shelf):
    """Test autocomplete values and stats."""
    facets = collect_facets(shelf)

    assert facets["authors"] == sorted({"Frank Herbert", " frank herbert ", "劉慈欣"})
    assert facets["keywords"] == ["Sci-Fi", "科幻"]
    assert set(facets["types"]) >= {t.value for t in BookType}
    assert facets["stats"] == {"total": 3, "completed": 1, "to_read": 1}


@pytest.mark.asyncio
async def test_add_book(store):
    """Test that a new book gets identity and timestamps."""
    book = await BookLibrary(store).add_book({
        "title": "新書",
        "status": ReadingStatus.READING,
        "rating": 4,
        "keywords": ["a", "a"],
    })

    assert book.id
    assert book.author == UNKNOWN_AUTHOR
    assert book.type == BookType.ORIGINAL_NOVEL.value
    assert book.keywords == ["a"]
    assert book.is_favorite is False
    assert book.created_at == book.updated_at
    assert await store.get_book(book.id) == book


@pytest.mark.asyncio
async def test_invalid_add_aborts_only_that_operation(store):
    """Test that a failed validation writes nothing and can be retried."""
    library = BookLibrary(store)

    with pytest.raises(ValidationError):
        await library.add_book({"title": "Bad", "rating": 6})
    with pytest.raises(ValidationError):
        await library.add_book({"title": "Bad", "status": "看完了"})

    assert await store.list_books() == []
    await library.add_book({"title": "Good"})
    assert len(await store.list_books()) == 1


@pytest.mark.asyncio
async def test_update_book(store, make_book):
    """Test that an edit replaces the record and keeps its identity."""
    original = make_book(title="Old", is_favorite=True)
    await store.save_book(original)

    updated = await BookLibrary(store).update_book(original.id, {"title": "New", "status": "待閱"})

    assert updated.id == original.id
    assert updated.created_at == original.created_at
    assert updated.updated_at > original.updated_at
    assert updated.is_favorite is True
    assert updated.status == ReadingStatus.TO_READ
    assert (await store.get_book(original.id)).title == "New"


@pytest.mark.asyncio
async def test_invalid_update_keeps_stored_record(store, make_book):
    """Test that a rejected edit leaves the stored book alone."""
    original = make_book(title="Keep")
    await store.save_book(original)

    with pytest.raises(ValidationError):
        await BookLibrary(store).update_book(original.id, {"title": ""})

    assert await store.get_book(original.id) == original


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(store, make_book):
    """Test that identity fields cannot be edited."""
    book = make_book()
    await store.save_book(book)

    with pytest.raises(ValueError):
        await BookLibrary(store).update_book(book.id, {"id": "other"})


@pytest.mark.asyncio
async def test_toggle_favorite(store, make_book):
    """Test flipping the favorite flag back and forth."""
    book = make_book()
    await store.save_book(book)
    library = BookLibrary(store)

    assert (await library.toggle_favorite(book.id)).is_favorite is True
    assert (await library.toggle_favorite(book.id)).is_favorite is False


@pytest.mark.asyncio
async def test_toggle_favorite_failure_returns_none(store):
    """Test that a failed toggle is reported as None."""
    assert await BookLibrary(store).toggle_favorite("missing") is None


@pytest.mark.asyncio
async def test_delete_book(store, make_book):
    """Test that a deleted book leaves the collection."""
    book = make_book()
    await store.save_book(book)

    await BookLibrary(store).delete_book(book.id)

    assert await store.list_books() == []
