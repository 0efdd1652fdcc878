from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from app.models.wellness import FavoriteTip
from app.services.favorites_store import FAVORITES_KEY, LocalFavoritesStore
from app.services.storage import InMemoryKeyValueStorage, SQLiteKeyValueStorage


def _favorites() -> list[FavoriteTip]:
    return [
        FavoriteTip(
            id="1700000000001-2",
            title="Screens Off Early",
            summary="Stop screens an hour before bed.",
            icon="📵",
            details="Blue light delays melatonin.\n\nDim the lights too.",
            action_plan=["Step 1: Set an alarm", "Step 2: Charge your phone outside the bedroom"],
            saved_at="2024-05-02T21:15:00+00:00",
        ),
        FavoriteTip(
            id="1700000000000-0",
            title="Hydrate First Thing",
            summary="Drink water right after waking up.",
            icon="💧",
            saved_at="2024-05-01T07:00:00+00:00",
        ),
    ]


def test_round_trip_reproduces_favorites_field_for_field(favorites_store: LocalFavoritesStore) -> None:
    favorites = _favorites()

    favorites_store.save(favorites)
    reloaded = favorites_store.load()

    assert reloaded == favorites
    assert reloaded[1].details is None
    assert reloaded[1].action_plan is None


def test_saved_documents_use_camel_case_keys(
    storage: InMemoryKeyValueStorage, favorites_store: LocalFavoritesStore
) -> None:
    favorites_store.save(_favorites())

    stored = json.loads(storage.get_item("browser-1", FAVORITES_KEY))

    assert [entry["id"] for entry in stored] == ["1700000000001-2", "1700000000000-0"]
    assert stored[0]["actionPlan"][0] == "Step 1: Set an alarm"
    assert stored[0]["savedAt"] == "2024-05-02T21:15:00+00:00"
    assert "actionPlan" not in stored[1]


def test_missing_key_loads_empty_list(favorites_store: LocalFavoritesStore) -> None:
    assert favorites_store.load() == []


@pytest.mark.parametrize("corrupted", ["{not json", '{"id": "x"}', "42"])
def test_corrupted_storage_loads_empty_list_and_logs(
    storage: InMemoryKeyValueStorage,
    favorites_store: LocalFavoritesStore,
    caplog: pytest.LogCaptureFixture,
    corrupted: str,
) -> None:
    storage.set_item("browser-1", FAVORITES_KEY, corrupted)

    with caplog.at_level(logging.WARNING, logger="app.services.favorites_store"):
        assert favorites_store.load() == []

    assert any("Failed to load favorites" in record.getMessage() for record in caplog.records)


def test_non_object_entries_are_skipped(
    storage: InMemoryKeyValueStorage, favorites_store: LocalFavoritesStore
) -> None:
    entry = _favorites()[1].to_document()
    storage.set_item("browser-1", FAVORITES_KEY, json.dumps(["oops", entry, 7]))

    loaded = favorites_store.load()

    assert [favorite.id for favorite in loaded] == ["1700000000000-0"]


def test_namespaces_are_isolated(storage: InMemoryKeyValueStorage) -> None:
    first = LocalFavoritesStore(storage.scoped("browser-a"))
    second = LocalFavoritesStore(storage.scoped("browser-b"))

    first.save(_favorites())

    assert len(first.load()) == 2
    assert second.load() == []


def test_sqlite_storage_survives_reopen(tmp_path: Path) -> None:
    db_path = tmp_path / "data" / "local_storage.db"
    storage = SQLiteKeyValueStorage(db_path=db_path)
    LocalFavoritesStore(storage.scoped("browser-1")).save(_favorites())
    storage.close()

    reopened = SQLiteKeyValueStorage(db_path=db_path)
    try:
        reloaded = LocalFavoritesStore(reopened.scoped("browser-1")).load()
    finally:
        reopened.close()

    assert reloaded == _favorites()


def test_sqlite_storage_overwrites_and_removes(tmp_path: Path) -> None:
    storage = SQLiteKeyValueStorage(db_path=tmp_path / "kv.db")
    scoped = storage.scoped("browser-1")
    try:
        scoped.set_item("key", "first")
        scoped.set_item("key", "second")
        assert scoped.get_item("key") == "second"

        scoped.remove_item("key")
        assert scoped.get_item("key") is None
    finally:
        storage.close()
