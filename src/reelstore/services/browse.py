from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from reelstore.models import Movie


@dataclass(frozen=True)
class BrowseQuery:
    search: str = ""
    sort_by_title: bool = False


def apply_browse(movies: Sequence[Movie], query: BrowseQuery) -> list[Movie]:
    """Filter a collection snapshot by title and optionally sort it alphabetically."""
    needle = query.search.strip().casefold()
    visible = [movie for movie in movies if needle in movie.title.casefold()]
    if query.sort_by_title:
        visible.sort(key=lambda movie: movie.title.casefold())
    return visible


__all__ = ["BrowseQuery", "apply_browse"]
