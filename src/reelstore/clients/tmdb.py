from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
from pydantic import ValidationError

from reelstore.models import MovieDetail, PageResult

DEFAULT_LANGUAGE = "en-US"
DEFAULT_TIMEOUT = 20.0
USER_AGENT = "reelstore/0.1.0"
FALLBACK_ERROR_MESSAGE = "An unexpected error occurred"


class CatalogError(RuntimeError):
    """Raised when a catalog request fails or returns an unusable body."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DetailError(CatalogError):
    """Raised when the detail lookup for a single movie fails."""

    def __init__(self, movie_id: int, message: str) -> None:
        super().__init__(message)
        self.movie_id = movie_id


class CatalogClient:
    """Thin asynchronous wrapper around the TMDB v3 movie endpoints."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        language: str = DEFAULT_LANGUAGE,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._language = language
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        }
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_page(self, page: int) -> PageResult:
        params = {"page": page, "language": self._language}
        try:
            payload = await self._get_json("/movie/popular", params)
            return PageResult.model_validate(payload)
        except (httpx.HTTPError, ValueError, ValidationError) as exc:
            raise CatalogError(_error_message(exc)) from exc

    async def fetch_detail(self, movie_id: int) -> MovieDetail:
        params = {"language": self._language}
        try:
            payload = await self._get_json(f"/movie/{movie_id}", params)
            return MovieDetail.model_validate(payload)
        except (httpx.HTTPError, ValueError, ValidationError) as exc:
            raise DetailError(movie_id, _error_message(exc)) from exc

    async def fetch_videos(self, movie_id: int) -> list[dict[str, Any]]:
        """Return the raw video entries attached to a movie.

        Args:
            movie_id: Catalog identifier of the movie

        Returns:
            List of video dictionaries (``key``, ``site``, ``type``...)
        """
        try:
            payload = await self._get_json(f"/movie/{movie_id}/videos", {})
        except (httpx.HTTPError, ValueError) as exc:
            raise CatalogError(_error_message(exc)) from exc
        results = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(results, list):
            raise CatalogError(f"Malformed video list for movie {movie_id}")
        return results

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        response = await self._client.get(path, params={"api_key": self._api_key, **params})
        response.raise_for_status()
        return response.json()

    async def __aenter__(self) -> CatalogClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        await self.close()


@asynccontextmanager
async def catalog_client(
    base_url: str,
    api_key: str,
    *,
    language: str = DEFAULT_LANGUAGE,
    timeout: float = DEFAULT_TIMEOUT,
):
    client = CatalogClient(base_url=base_url, api_key=api_key, language=language, timeout=timeout)
    try:
        yield client
    finally:
        await client.close()


def _error_message(exc: Exception) -> str:
    """Prefer the catalog's own ``status_message`` over the transport error text."""
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            body = exc.response.json()
        except ValueError:  # response was not JSON
            body = None
        if isinstance(body, dict) and body.get("status_message"):
            return str(body["status_message"])
    return str(exc) or FALLBACK_ERROR_MESSAGE


__all__ = ["CatalogClient", "CatalogError", "DetailError", "catalog_client"]
