from __future__ import annotations

import logging

from pydantic import ValidationError

from reelstore.clients.tmdb import CatalogClient, CatalogError
from reelstore.models import Trailer

logger = logging.getLogger(__name__)

TRAILER_TYPE = "Trailer"
TRAILER_SITE = "YouTube"


async def find_trailer(client: CatalogClient, movie_id: int) -> Trailer | None:
    """Return the first YouTube trailer of a movie, or None when it has none.

    A failed lookup also yields None; the detail view treats both the same way.
    """
    try:
        videos = await client.fetch_videos(movie_id)
    except CatalogError as exc:
        logger.error(f"[TRAILER] Failed to fetch trailer for movie {movie_id}: {exc}")
        return None

    for video in videos:
        if video.get("type") != TRAILER_TYPE or video.get("site") != TRAILER_SITE:
            continue
        if not video.get("key"):
            continue
        try:
            return Trailer.model_validate(video)
        except ValidationError as exc:
            logger.warning(f"[TRAILER] Skipping malformed video for movie {movie_id}: {exc}")
    return None


__all__ = ["find_trailer"]
