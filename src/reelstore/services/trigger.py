"""Scroll-proximity trigger: loads the next page as the last rendered movie comes into view."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Hashable, Sequence
from dataclasses import dataclass
from typing import Protocol

from reelstore.config import Settings
from reelstore.models import Movie
from reelstore.services.store import MovieStore, StoreSnapshot

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.5
DEFAULT_ROOT_MARGIN_PX = 100


@dataclass(frozen=True)
class VisibilityEntry:
    """Visibility change reported by the host for one observed sentinel."""

    target: Hashable
    is_intersecting: bool
    intersection_ratio: float


@dataclass(frozen=True)
class ObserverOptions:
    threshold: float = DEFAULT_THRESHOLD
    root_margin_px: int = DEFAULT_ROOT_MARGIN_PX


class VisibilityObserver(Protocol):
    """Host-provided observer, e.g. a bridge to a browser IntersectionObserver."""

    def observe(self, target: Hashable) -> None:
        """Start reporting visibility changes of ``target``."""

    def disconnect(self) -> None:
        """Stop observing every target and release host resources."""


ObserverFactory = Callable[
    [Callable[[Sequence[VisibilityEntry]], None], ObserverOptions], VisibilityObserver
]


class ScrollTrigger:
    """Binds a visibility observer to the last rendered movie and requests more pages.

    The sentinel is the id of the last movie in ``rendered()``, which defaults
    to the store's whole collection. Views that filter or sort should pass the
    list they actually render and call ``refresh()`` when it changes.
    """

    def __init__(
        self,
        store: MovieStore,
        observer_factory: ObserverFactory,
        *,
        rendered: Callable[[], Sequence[Movie]] | None = None,
        threshold: float = DEFAULT_THRESHOLD,
        root_margin_px: int = DEFAULT_ROOT_MARGIN_PX,
    ) -> None:
        self._store = store
        self._observer_factory = observer_factory
        self._rendered = rendered or (lambda: store.movies)
        self._options = ObserverOptions(threshold=threshold, root_margin_px=root_margin_px)

        self._observer: VisibilityObserver | None = None
        self._sentinel: Hashable | None = None
        self._bound_length: int | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._pending: set[asyncio.Task[bool]] = set()

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    @property
    def sentinel(self) -> Hashable | None:
        return self._sentinel

    @property
    def pending(self) -> frozenset[asyncio.Task[bool]]:
        """Load tasks scheduled by this trigger that have not finished yet."""
        return frozenset(self._pending)

    def on_attach(self) -> None:
        if self.attached:
            return
        self._unsubscribe = self._store.subscribe(self._on_snapshot)
        self._bind()

    def on_detach(self) -> None:
        """Release the observer and the store subscription; in-flight loads keep running."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._release_observer()
        self._bound_length = None

    def refresh(self) -> None:
        """Re-bind if the rendered list changed length or last item since the last binding."""
        if not self.attached:
            return
        rendered = self._rendered()
        last_id = rendered[-1].id if rendered else None
        if len(rendered) != self._bound_length or last_id != self._sentinel:
            self._bind()

    def _on_snapshot(self, snapshot: StoreSnapshot) -> None:
        self.refresh()

    def _bind(self) -> None:
        self._release_observer()
        rendered = self._rendered()
        self._bound_length = len(rendered)
        if not rendered:
            return
        self._sentinel = rendered[-1].id
        self._observer = self._observer_factory(self._on_visibility, self._options)
        self._observer.observe(self._sentinel)
        logger.debug(f"[TRIGGER] Observing movie {self._sentinel} ({self._bound_length} rendered)")

    def _release_observer(self) -> None:
        if self._observer is not None:
            self._observer.disconnect()
        self._observer = None
        self._sentinel = None

    def _on_visibility(self, entries: Sequence[VisibilityEntry]) -> None:
        for entry in entries:
            if entry.target != self._sentinel:
                continue
            if not entry.is_intersecting or entry.intersection_ratio < self._options.threshold:
                continue
            if not self._store.has_more or self._store.busy:
                return
            self._schedule_load()
            return

    def _schedule_load(self) -> None:
        logger.debug(f"[TRIGGER] Sentinel {self._sentinel} visible, requesting next page")
        task = asyncio.get_running_loop().create_task(self._store.load_next())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)


def build_trigger(
    settings: Settings,
    store: MovieStore,
    observer_factory: ObserverFactory,
    *,
    rendered: Callable[[], Sequence[Movie]] | None = None,
) -> ScrollTrigger:
    """Construct a trigger using the configured threshold and pre-fetch margin."""
    return ScrollTrigger(
        store,
        observer_factory,
        rendered=rendered,
        threshold=settings.trigger_threshold,
        root_margin_px=settings.trigger_margin,
    )


__all__ = [
    "ObserverFactory",
    "ObserverOptions",
    "ScrollTrigger",
    "VisibilityEntry",
    "VisibilityObserver",
    "build_trigger",
]
