"""Session-owned state for the wellness experience.

A ``WellnessState`` holds one browser session's profile, generated tips,
favourites and loading flag. It is created and torn down by the
``SessionRegistry`` and handed to the views explicitly; nothing here is a
module-level singleton.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
import time
from typing import Callable, Iterable

from app.models.wellness import FavoriteTip, UserProfile, WellnessTip
from app.services.favorites_store import LocalFavoritesStore
from app.services.storage import KeyValueStorage

logger = logging.getLogger(__name__)


class CancellationToken:
    """Flag shared between a suspended operation and whoever may abandon it."""

    __slots__ = ("name", "_cancelled")

    def __init__(self, name: str) -> None:
        self.name = name
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"CancellationToken(name={self.name!r}, cancelled={self._cancelled})"


@dataclass(slots=True, frozen=True)
class Notification:
    """A toast shown on the next rendered page."""

    title: str
    description: str
    variant: str = "default"

    @property
    def is_destructive(self) -> bool:
        return self.variant == "destructive"


class WellnessState:
    """Profile, tips and favourites for one browser session."""

    def __init__(self, favorites_store: LocalFavoritesStore) -> None:
        self._store = favorites_store
        self._profile: UserProfile | None = None
        self._tips: list[WellnessTip] = []
        self._favorites: list[FavoriteTip] = favorites_store.load()
        self._is_loading = False
        self._pending: dict[str, CancellationToken] = {}
        self._notifications: list[Notification] = []

    # ------------------------------------------------------------------
    # Profile and tips
    # ------------------------------------------------------------------
    @property
    def profile(self) -> UserProfile | None:
        return self._profile

    def set_profile(self, profile: UserProfile) -> None:
        """Replace the profile; a different profile invalidates the current tips."""

        if profile != self._profile:
            self._tips = []
        self._profile = profile

    @property
    def tips(self) -> list[WellnessTip]:
        return list(self._tips)

    def set_tips(self, tips: Iterable[WellnessTip]) -> None:
        self._tips = list(tips)

    def get_tip(self, tip_id: str) -> WellnessTip | None:
        """Look a tip up in the current batch first, then among the favourites."""

        for tip in self._tips:
            if tip.id == tip_id:
                return tip
        for favorite in self._favorites:
            if favorite.id == tip_id:
                return favorite
        return None

    def update_tip(
        self,
        tip_id: str,
        *,
        details: str,
        action_plan: list[str],
    ) -> WellnessTip | None:
        """Attach expanded details to every copy of the tip this session holds."""

        updated: WellnessTip | None = None
        for index, tip in enumerate(self._tips):
            if tip.id == tip_id:
                updated = replace(tip, details=details, action_plan=list(action_plan))
                self._tips[index] = updated

        favorites_changed = False
        for index, favorite in enumerate(self._favorites):
            if favorite.id == tip_id:
                self._favorites[index] = replace(favorite, details=details, action_plan=list(action_plan))
                favorites_changed = True
                if updated is None:
                    updated = self._favorites[index]

        if favorites_changed:
            self._persist_favorites()
        return updated

    # ------------------------------------------------------------------
    # Favourites
    # ------------------------------------------------------------------
    @property
    def favorites(self) -> list[FavoriteTip]:
        return list(self._favorites)

    def add_favorite(self, tip: WellnessTip) -> FavoriteTip:
        """Save ``tip`` at the front of the favourites; a repeat add moves it to the front."""

        favorite = FavoriteTip.from_tip(tip)
        self._favorites = [favorite, *(item for item in self._favorites if item.id != tip.id)]
        self._persist_favorites()
        return favorite

    def remove_favorite(self, tip_id: str) -> None:
        self._favorites = [item for item in self._favorites if item.id != tip_id]
        self._persist_favorites()

    def is_favorite(self, tip_id: str) -> bool:
        return any(item.id == tip_id for item in self._favorites)

    def _persist_favorites(self) -> None:
        self._store.save(self._favorites)

    # ------------------------------------------------------------------
    # Loading flag and pending operations
    # ------------------------------------------------------------------
    @property
    def is_loading(self) -> bool:
        return self._is_loading

    def set_is_loading(self, loading: bool) -> None:
        self._is_loading = bool(loading)

    def begin_operation(self, name: str) -> CancellationToken:
        """Start a named operation, superseding any pending one with the same name."""

        previous = self._pending.get(name)
        if previous is not None:
            previous.cancel()
        token = CancellationToken(name)
        self._pending[name] = token
        return token

    def finish_operation(self, token: CancellationToken) -> bool:
        """Retire ``token``; returns ``True`` when its result may still be applied."""

        if self._pending.get(token.name) is token:
            del self._pending[token.name]
        return not token.cancelled

    def is_current(self, token: CancellationToken) -> bool:
        return not token.cancelled and self._pending.get(token.name) is token

    def cancel_pending(self) -> None:
        """Abandon every in-flight operation, e.g. when the user navigates."""

        for token in self._pending.values():
            token.cancel()
            logger.debug(
                "Pending operation cancelled",
                extra={"event": "state.operation_cancelled", "operation": token.name},
            )
        self._pending.clear()
        self._is_loading = False

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    def notify(self, title: str, description: str, *, variant: str = "default") -> None:
        self._notifications.append(Notification(title=title, description=description, variant=variant))

    def drain_notifications(self) -> list[Notification]:
        pending, self._notifications = self._notifications, []
        return pending

    def close(self) -> None:
        """Tear the session down; favourites remain in storage."""

        self.cancel_pending()
        self._notifications.clear()


@dataclass(slots=True)
class _SessionEntry:
    state: WellnessState
    last_seen: float


@dataclass(slots=True)
class SessionRegistry:
    """Own one ``WellnessState`` per browser for the lifetime of its session."""

    storage: KeyValueStorage
    ttl_seconds: float = 3600.0
    clock: Callable[[], float] = time.monotonic
    _sessions: dict[str, _SessionEntry] = field(default_factory=dict, init=False)

    def open(self, client_id: str) -> WellnessState:
        """Return the session for ``client_id``, creating it on first use."""

        now = self.clock()
        self.prune(now=now)
        entry = self._sessions.get(client_id)
        if entry is None:
            store = LocalFavoritesStore(self.storage.scoped(client_id))
            entry = _SessionEntry(state=WellnessState(store), last_seen=now)
            self._sessions[client_id] = entry
            logger.info("Session started", extra={"event": "session.open"})
        entry.last_seen = now
        return entry.state

    def close(self, client_id: str) -> None:
        entry = self._sessions.pop(client_id, None)
        if entry is not None:
            entry.state.close()
            logger.info("Session closed", extra={"event": "session.close"})

    def prune(self, *, now: float | None = None) -> int:
        """Drop sessions idle for longer than ``ttl_seconds``; returns how many were dropped."""

        current = self.clock() if now is None else now
        expired = [
            client_id
            for client_id, entry in self._sessions.items()
            if current - entry.last_seen > self.ttl_seconds
        ]
        for client_id in expired:
            self.close(client_id)
        return len(expired)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


__all__ = [
    "CancellationToken",
    "Notification",
    "SessionRegistry",
    "WellnessState",
]
