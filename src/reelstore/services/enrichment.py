"""Enrichment service for overlaying per-movie detail onto a fetched page."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from reelstore.clients.tmdb import CatalogClient, DetailError
from reelstore.models import Movie, MovieSummary

logger = logging.getLogger(__name__)


class DetailEnricher:
    """Fetches detail records for every movie of a page, tolerating per-movie failures."""

    def __init__(self, client: CatalogClient, *, debug: bool = False) -> None:
        self._client = client
        self._debug = debug

    async def enrich(self, items: Sequence[MovieSummary]) -> list[Movie]:
        """
        Enrich a page of summaries with their detail records.

        All lookups run concurrently and the page completes once every one of
        them has settled. A movie whose lookup fails is returned summary-only.
        Output order always follows the input order.
        """
        enriched = await asyncio.gather(*(self._enrich_single(item) for item in items))
        if self._debug:
            degraded = sum(1 for movie in enriched if not movie.has_details)
            logger.info(f"[ENRICH] {len(enriched)} movies enriched, {degraded} summary-only")
        return list(enriched)

    async def _enrich_single(self, summary: MovieSummary) -> Movie:
        try:
            detail = await self._client.fetch_detail(summary.id)
        except DetailError as exc:
            logger.warning(f"[ENRICH] Failed to fetch details for movie {summary.id}: {exc}")
            return Movie.from_summary(summary)
        except Exception:
            logger.exception(f"[ENRICH] Unexpected error enriching movie {summary.id}")
            return Movie.from_summary(summary)
        return Movie.merge(summary, detail)


__all__ = ["DetailEnricher"]
