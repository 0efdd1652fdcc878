"""Shared fixtures for the test suite."""

from __future__ import annotations

from typing import Callable

import pytest

from app.models.wellness import Gender, UserProfile, WellnessGoal
from app.services.favorites_store import LocalFavoritesStore
from app.services.storage import InMemoryKeyValueStorage
from app.services.wellness_state import WellnessState


@pytest.fixture()
def profile() -> UserProfile:
    return UserProfile(age=34, gender=Gender.FEMALE, goal=WellnessGoal.BETTER_SLEEP)


@pytest.fixture()
def storage() -> InMemoryKeyValueStorage:
    return InMemoryKeyValueStorage()


@pytest.fixture()
def favorites_store(storage: InMemoryKeyValueStorage) -> LocalFavoritesStore:
    return LocalFavoritesStore(storage.scoped("browser-1"))


@pytest.fixture()
def make_state(storage: InMemoryKeyValueStorage) -> Callable[..., WellnessState]:
    """Return a factory creating session state bound to the shared in-memory storage."""

    def _factory(namespace: str = "browser-1") -> WellnessState:
        return WellnessState(LocalFavoritesStore(storage.scoped(namespace)))

    return _factory
