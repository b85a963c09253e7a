"""Pure merge helpers for the growing movie collection."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from reelstore.models import Movie


def merge(existing: Sequence[Movie], incoming: Iterable[Movie]) -> list[Movie]:
    """Append incoming movies whose id has not been seen yet.

    First-seen wins: movies already in ``existing`` are never replaced by a
    later page. Neither argument is mutated.
    """
    seen_ids = {movie.id for movie in existing}
    merged = list(existing)
    for movie in incoming:
        if movie.id in seen_ids:
            continue
        seen_ids.add(movie.id)
        merged.append(movie)
    return merged


def replace_movie(collection: Sequence[Movie], patch: Mapping[str, Any]) -> list[Movie] | None:
    """Return a copy of ``collection`` with the patched movie, or None if its id is absent."""
    movie_id = patch.get("id")
    for index, movie in enumerate(collection):
        if movie.id == movie_id:
            updated = list(collection)
            updated[index] = movie.with_changes(patch)
            return updated
    return None


__all__ = ["merge", "replace_movie"]
