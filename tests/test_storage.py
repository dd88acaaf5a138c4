"""Tests for the local book store and change notifications."""
import dataclasses
import json

import pytest

from readlog.config import Config
from readlog.errors import TransportError
from readlog.events import BookEvents
from readlog.storage import LocalBookStore, open_store


@pytest.mark.asyncio
async def test_subscribe_delivers_initial_snapshot(store, make_book):
    """Test that a new subscriber gets the current collection."""
    await store.save_book(make_book(title="A"))
    received = []

    await store.subscribe(received.append)

    assert len(received) == 1
    assert [b.title for b in received[0]] == ["A"]


@pytest.mark.asyncio
async def test_subscribers_see_every_change(store, make_book):
    """Test notifications on save, replace and delete."""
    received = []
    unsubscribe = await store.subscribe(received.append)

    book = make_book(title="A")
    await store.save_book(book)
    await store.save_book(dataclasses.replace(book, rating=5))
    await store.delete_book(book.id)

    assert [len(snapshot) for snapshot in received] == [0, 1, 1, 0]
    assert received[2][0].rating == 5

    unsubscribe()
    await store.save_book(make_book())
    assert len(received) == 4


@pytest.mark.asyncio
async def test_save_replaces_by_id(store, make_book):
    """Test that saving a known id replaces the record."""
    book = make_book(title="Old")
    await store.save_book(book)
    await store.save_book(dataclasses.replace(book, title="New"))

    books = await store.list_books()
    assert [b.title for b in books] == ["New"]


@pytest.mark.asyncio
async def test_list_is_newest_first(store, make_book):
    """Test ordering by createdAt, newest first."""
    await store.save_book(make_book(title="old", created_at=1))
    await store.save_book(make_book(title="new", created_at=3))
    await store.save_book(make_book(title="mid", created_at=2))

    assert [b.title for b in await store.list_books()] == ["new", "mid", "old"]


@pytest.mark.asyncio
async def test_delete_unknown_id_is_ignored(store, make_book):
    """Test that deleting a missing id changes nothing."""
    received = []
    await store.save_book(make_book())
    await store.subscribe(received.append)

    await store.delete_book("missing")

    assert len(received) == 1
    assert len(await store.list_books()) == 1


@pytest.mark.asyncio
async def test_stores_do_not_share_listeners(make_book):
    """Test that listeners are per store instance."""
    first = LocalBookStore()
    second = LocalBookStore()
    first_seen = []
    second_seen = []
    await first.subscribe(first_seen.append)
    await second.subscribe(second_seen.append)

    await first.save_book(make_book())

    assert len(first_seen) == 2
    assert len(second_seen) == 1


@pytest.mark.asyncio
async def test_file_store_persists_between_instances(tmp_path, make_book):
    """Test that the JSON file store survives reopening."""
    book = make_book(title="三體", keywords=["科幻"])
    store = LocalBookStore.for_user(str(tmp_path), "demo-wizard-001")
    await store.save_book(book)

    path = tmp_path / "reading-track-data-v1-demo-wizard-001.json"
    assert json.loads(path.read_text(encoding="utf-8"))[0]["title"] == "三體"

    reopened = LocalBookStore(str(path))
    assert await reopened.get_book(book.id) == book


def test_corrupt_file_raises_transport_error(tmp_path):
    """Test that an unreadable data file is a transport error."""
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(TransportError):
        LocalBookStore(str(path))


def test_events_unsubscribe_twice_is_harmless():
    """Test that unsubscribing twice is a no-op."""
    events = BookEvents()
    unsubscribe = events.subscribe(lambda books: None)

    unsubscribe()
    unsubscribe()

    assert len(events) == 0


def test_demo_user_opens_local_store(tmp_path):
    """Test that demo users are served by the local file store."""
    config = Config()
    config.USER_ID = "demo-wizard-007"
    config.STORE = "auto"
    config.DATA_DIR = str(tmp_path)

    store = open_store(config)

    assert isinstance(store, LocalBookStore)
    assert store.path.endswith("reading-track-data-v1-demo-wizard-007.json")
