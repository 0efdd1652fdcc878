"""Persist the user's favourite tips in browser-scoped local storage."""
from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from typing import Final, Iterable

from app.models.wellness import FavoriteTip
from app.services.storage import SupportsLocalStorage

FAVORITES_KEY: Final[str] = "wellness-favorites"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LocalFavoritesStore:
    """Read and write the favourites list under a single storage key."""

    storage: SupportsLocalStorage
    key: str = FAVORITES_KEY

    def load(self) -> list[FavoriteTip]:
        """Return the saved favourites, or an empty list when nothing usable is stored."""

        raw = self.storage.get_item(self.key)
        if raw is None:
            return []

        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(
                "Failed to load favorites; stored value is not valid JSON",
                extra={"event": "favorites.load_failed", "key": self.key},
            )
            return []

        if not isinstance(payload, list):
            logger.warning(
                "Failed to load favorites; stored value is not a list",
                extra={"event": "favorites.load_failed", "key": self.key},
            )
            return []

        favorites: list[FavoriteTip] = []
        for entry in payload:
            if not isinstance(entry, dict):
                logger.warning(
                    "Skipping malformed favorite entry",
                    extra={"event": "favorites.entry_skipped", "key": self.key},
                )
                continue
            favorites.append(FavoriteTip.from_document(entry))
        return favorites

    def save(self, favorites: Iterable[FavoriteTip]) -> None:
        """Write the full favourites list, replacing whatever was stored."""

        documents = [favorite.to_document() for favorite in favorites]
        self.storage.set_item(self.key, json.dumps(documents, ensure_ascii=False))
        logger.debug(
            "Favorites persisted",
            extra={"event": "favorites.saved", "count": len(documents)},
        )


__all__ = ["FAVORITES_KEY", "LocalFavoritesStore"]
