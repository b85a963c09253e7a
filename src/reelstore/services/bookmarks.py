"""Locally persisted bookmark list and display preferences."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from enum import Enum
from pathlib import Path

from reelstore.models import Bookmark, MovieSummary

logger = logging.getLogger(__name__)

WATCHLIST_KEY = "watchlist"
DARK_MODE_KEY = "darkMode"


class LocalStore:
    """String key/value store kept in a single JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def _read(self) -> dict[str, object]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error(f"[BOOKMARKS] Ignoring unreadable storage file {self._path}: {exc}")
            return {}
        return payload if isinstance(payload, dict) else {}

    def _write(self, data: dict[str, object]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class SortOrder(str, Enum):
    DATE_ADDED = "date_added"
    NAME = "name"
    RATING = "rating"


class BookmarkList:
    """Bookmarked movies, unique by id, saved after every change."""

    def __init__(self, storage: LocalStore) -> None:
        self._storage = storage
        self._items: list[Bookmark] = self._load()

    @property
    def items(self) -> tuple[Bookmark, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def contains(self, movie_id: int) -> bool:
        return any(item.id == movie_id for item in self._items)

    def add(self, movie: MovieSummary) -> bool:
        """Bookmark ``movie``; returns False if it was already bookmarked."""
        if self.contains(movie.id):
            return False
        self._items.append(Bookmark.from_movie(movie))
        self._save()
        return True

    def remove(self, movie_id: int) -> bool:
        remaining = [item for item in self._items if item.id != movie_id]
        if len(remaining) == len(self._items):
            return False
        self._items = remaining
        self._save()
        return True

    def clear(self) -> None:
        self._items = []
        self._save()

    def sorted(self, order: SortOrder = SortOrder.DATE_ADDED) -> list[Bookmark]:
        if order is SortOrder.NAME:
            return sorted(self._items, key=lambda item: item.title.casefold())
        if order is SortOrder.RATING:
            return sorted(self._items, key=lambda item: item.vote_average, reverse=True)
        return sorted(self._items, key=lambda item: item.added_at, reverse=True)

    def _load(self) -> list[Bookmark]:
        raw = self._storage.get(WATCHLIST_KEY)
        if raw is None:
            return []
        try:
            payload = json.loads(raw)
            if not isinstance(payload, list):
                raise ValueError("bookmark list is not a JSON array")
            return [Bookmark.model_validate(entry) for entry in payload]
        except ValueError as exc:
            # Also covers JSONDecodeError and pydantic's ValidationError.
            logger.error(f"[BOOKMARKS] Error parsing saved bookmarks, starting empty: {exc}")
            return []

    def _save(self) -> None:
        payload = [item.model_dump(mode="json") for item in self._items]
        self._storage.set(WATCHLIST_KEY, json.dumps(payload))


class DisplayPreferences:
    """Light/dark display mode flag."""

    def __init__(self, storage: LocalStore) -> None:
        self._storage = storage

    @property
    def dark_mode(self) -> bool:
        return self._storage.get(DARK_MODE_KEY) == "true"

    @dark_mode.setter
    def dark_mode(self, enabled: bool) -> None:
        self._storage.set(DARK_MODE_KEY, "true" if enabled else "false")

    def toggle(self) -> bool:
        self.dark_mode = not self.dark_mode
        return self.dark_mode


__all__ = ["BookmarkList", "DisplayPreferences", "LocalStore", "SortOrder"]
