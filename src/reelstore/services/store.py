"""Movie store: owns the cached collection and the page-loading state machine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError

from reelstore.clients.tmdb import FALLBACK_ERROR_MESSAGE, CatalogClient, CatalogError
from reelstore.config import Settings
from reelstore.models import Movie
from reelstore.services.accumulator import merge, replace_movie
from reelstore.services.enrichment import DetailEnricher
from reelstore.services.pagination import FIRST_PAGE, advance

logger = logging.getLogger(__name__)

DEFAULT_ERROR_DISPLAY_SECONDS = 5.0
DEFAULT_SAVE_DELAY = 1.0


class LoadState(str, Enum):
    """Lifecycle of the store's page loading."""

    IDLE = "idle"
    LOADING = "loading"
    EXHAUSTED = "exhausted"
    IDLE_WITH_ERROR = "idle_with_error"


@dataclass(frozen=True)
class StoreSnapshot:
    """Consistent view of the store handed to subscribers."""

    movies: tuple[Movie, ...]
    page: int
    state: LoadState
    error: str | None
    loading_initial: bool
    saving: bool = False

    @property
    def has_more(self) -> bool:
        return self.state is not LoadState.EXHAUSTED

    @property
    def busy(self) -> bool:
        return self.state is LoadState.LOADING


Listener = Callable[[StoreSnapshot], None]


class MovieStore:
    """Incrementally loads the popular-movies catalog into an in-memory collection.

    Only ``load_next``, ``update_movie`` and ``save_movies`` change the
    collection. Every change is published to subscribers as a single
    ``StoreSnapshot``; intermediate states of a page load are never visible.
    """

    def __init__(
        self,
        client: CatalogClient,
        *,
        enricher: DetailEnricher | None = None,
        error_display_seconds: float = DEFAULT_ERROR_DISPLAY_SECONDS,
        max_pages: int | None = None,
        save_delay: float = DEFAULT_SAVE_DELAY,
        debug: bool = False,
    ) -> None:
        self._client = client
        self._enricher = enricher or DetailEnricher(client, debug=debug)
        self._error_display_seconds = error_display_seconds
        self._max_pages = max_pages
        self._save_delay = save_delay
        self._debug = debug

        self._movies: tuple[Movie, ...] = ()
        self._page = FIRST_PAGE
        self._state = LoadState.IDLE
        self._error: str | None = None
        self._loading_initial = True
        self._saving = False
        self._error_timer: asyncio.TimerHandle | None = None
        self._listeners: list[Listener] = []

    @property
    def movies(self) -> tuple[Movie, ...]:
        return self._movies

    @property
    def page(self) -> int:
        return self._page

    @property
    def state(self) -> LoadState:
        return self._state

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def busy(self) -> bool:
        return self._state is LoadState.LOADING

    @property
    def has_more(self) -> bool:
        return self._state is not LoadState.EXHAUSTED

    @property
    def loading_initial(self) -> bool:
        return self._loading_initial

    @property
    def saving(self) -> bool:
        return self._saving

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            movies=self._movies,
            page=self._page,
            state=self._state,
            error=self._error,
            loading_initial=self._loading_initial,
            saving=self._saving,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for snapshots; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def on_attach(self) -> bool:
        """Perform the initial load if nothing has been loaded yet."""
        if self._movies or self._page != FIRST_PAGE or self._state is not LoadState.IDLE:
            return False
        return await self.load_next()

    def on_detach(self) -> None:
        self._cancel_error_timer()
        self._listeners.clear()

    async def load_next(self) -> bool:
        """Load, enrich and merge the next catalog page.

        Returns False without doing anything while a load is in flight or once
        the catalog is exhausted, and False when the page itself could not be
        fetched. Returns True when a page was merged.
        """
        if self._state in (LoadState.LOADING, LoadState.EXHAUSTED):
            return False

        # Must be set before the first await so concurrent callers are dropped.
        self._state = LoadState.LOADING
        self._publish()

        page = self._page
        try:
            result = await self._client.fetch_page(page)
            movies = await self._enricher.enrich(result.items)
        except CatalogError as exc:
            self._fail_load(exc.message)
            return False
        except asyncio.CancelledError:
            self._state = LoadState.IDLE_WITH_ERROR if self._error else LoadState.IDLE
            self._publish()
            raise
        except Exception as exc:
            logger.exception(f"[STORE] Unexpected failure loading page {page}")
            self._fail_load(str(exc) or FALLBACK_ERROR_MESSAGE)
            return False

        cursor = advance(result, max_page=self._max_pages)
        merged = merge(self._movies, movies)
        added = len(merged) - len(self._movies)

        self._movies = tuple(merged)
        self._page = cursor.next_page
        self._state = LoadState.IDLE if cursor.has_more else LoadState.EXHAUSTED
        self._cancel_error_timer()
        self._error = None
        self._loading_initial = False
        self._publish()

        if self._debug:
            logger.info(
                f"[STORE] Page {result.page}/{result.total_pages}: "
                f"{added} new of {len(movies)}, collection size {len(self._movies)}"
            )
        if not cursor.has_more:
            logger.info(f"[STORE] Catalog exhausted after page {result.page}")
        return True

    def update_movie(self, patch: Mapping[str, Any]) -> bool:
        """Overwrite the movie with ``patch["id"]`` by its fields merged with ``patch``.

        Returns False, leaving the collection untouched, when no such movie is loaded.
        """
        updated = replace_movie(self._movies, patch)
        if updated is None:
            return False
        self._movies = tuple(updated)
        self._publish()
        return True

    async def save_movies(
        self, updates: Mapping[Any, Mapping[str, Any]] | Iterable[Mapping[str, Any]]
    ) -> bool:
        """Persist a batch of edits and apply them to the collection.

        There is no remote persistence endpoint yet; ``save_delay`` stands in
        for the round-trip. Edits are applied all together or not at all, and
        subscribers see ``saving`` set while the save is in flight.
        """
        patches = list(updates.values()) if isinstance(updates, Mapping) else list(updates)
        self._saving = True
        self._publish()
        try:
            await asyncio.sleep(self._save_delay)
            movies = self._movies
            for patch in patches:
                updated = replace_movie(movies, patch)
                if updated is not None:
                    movies = tuple(updated)
            self._movies = movies
            return True
        except ValidationError as exc:
            logger.error(f"[STORE] Rejected movie edits: {exc}")
            self._show_error(
                f"Invalid movie edit: {exc.error_count()} field error(s)", publish=False
            )
            return False
        finally:
            self._saving = False
            self._publish()

    def _fail_load(self, message: str) -> None:
        logger.error(f"[STORE] Failed to load page {self._page}: {message}")
        self._state = LoadState.IDLE_WITH_ERROR
        self._loading_initial = False
        self._show_error(message)

    def _show_error(self, message: str, *, publish: bool = True) -> None:
        self._cancel_error_timer()
        self._error = message
        loop = asyncio.get_running_loop()
        self._error_timer = loop.call_later(self._error_display_seconds, self._expire_error)
        if publish:
            self._publish()

    def _expire_error(self) -> None:
        self._error_timer = None
        self._error = None
        if self._state is LoadState.IDLE_WITH_ERROR:
            self._state = LoadState.IDLE
        self._publish()

    def _cancel_error_timer(self) -> None:
        if self._error_timer is not None:
            self._error_timer.cancel()
            self._error_timer = None

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("[STORE] Snapshot listener failed")


def build_store(settings: Settings, client: CatalogClient, *, debug: bool = False) -> MovieStore:
    """Construct a store configured from ``settings``."""
    return MovieStore(
        client,
        error_display_seconds=settings.error_display_seconds,
        max_pages=settings.max_pages,
        debug=debug,
    )


__all__ = ["LoadState", "MovieStore", "StoreSnapshot", "build_store"]
