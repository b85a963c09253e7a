from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator

IMAGE_BASE_URL = "https://image.tmdb.org/t/p"
YOUTUBE_WATCH_URL = "https://www.youtube.com/watch"

_MODEL_CONFIG = {
    "populate_by_name": True,
    "extra": "ignore",
}


class Genre(BaseModel):
    id: int
    name: str

    model_config = _MODEL_CONFIG


class MovieSummary(BaseModel):
    """Movie as listed by the catalog's paged popular endpoint."""

    id: int
    title: str
    original_title: str | None = None
    original_language: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    release_date: date | None = None
    vote_average: float = 0.0
    vote_count: int = 0
    popularity: float = 0.0
    genre_ids: list[int] = Field(default_factory=list)
    adult: bool = False

    model_config = _MODEL_CONFIG

    @field_validator("release_date", mode="before")
    @classmethod
    def _blank_date_is_unknown(cls, value: Any) -> Any:
        # The catalog sends "" for unreleased titles.
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def year(self) -> int | None:
        return self.release_date.year if self.release_date else None

    def poster_url(self, size: str = "w500") -> str | None:
        if not self.poster_path:
            return None
        return f"{IMAGE_BASE_URL}/{size}{self.poster_path}"


class MovieDetail(MovieSummary):
    """Full record returned by the per-movie detail endpoint."""

    runtime: int | None = None
    genres: list[Genre] = Field(default_factory=list)
    tagline: str | None = None
    status: str | None = None
    budget: int | None = None
    revenue: int | None = None
    homepage: str | None = None
    imdb_id: str | None = None


class Movie(MovieDetail):
    """Collection entry: summary fields overlaid by whatever detail was fetched.

    ``has_details`` is False for summary-only entries, whose detail fields keep
    their empty defaults.
    """

    has_details: bool = False

    @classmethod
    def from_summary(cls, summary: MovieSummary) -> Movie:
        return cls.model_validate(summary.model_dump())

    @classmethod
    def from_detail(cls, detail: MovieDetail) -> Movie:
        return cls.model_validate({**detail.model_dump(), "has_details": True})

    @classmethod
    def merge(cls, summary: MovieSummary, detail: MovieDetail) -> Movie:
        payload = summary.model_dump()
        payload.update(detail.model_dump(exclude_unset=True))
        payload["has_details"] = True
        return cls.model_validate(payload)

    def with_changes(self, patch: Mapping[str, Any]) -> Movie:
        payload = self.model_dump()
        payload.update(patch)
        return type(self).model_validate(payload)


class PageResult(BaseModel):
    """One page of the catalog's list endpoint."""

    items: list[MovieSummary] = Field(default_factory=list, alias="results")
    page: int
    total_pages: int
    total_results: int = 0

    model_config = _MODEL_CONFIG


class Trailer(BaseModel):
    key: str
    name: str | None = None
    site: str
    type: str

    model_config = _MODEL_CONFIG

    @property
    def url(self) -> str:
        return f"{YOUTUBE_WATCH_URL}?v={self.key}"


class Bookmark(BaseModel):
    """Entry of the locally persisted bookmark list."""

    id: int
    title: str
    poster_path: str | None = None
    vote_average: float = 0.0
    release_date: date | None = None
    added_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = _MODEL_CONFIG

    @field_validator("release_date", mode="before")
    @classmethod
    def _blank_date_is_unknown(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_movie(cls, movie: MovieSummary) -> Bookmark:
        return cls(
            id=movie.id,
            title=movie.title,
            poster_path=movie.poster_path,
            vote_average=movie.vote_average,
            release_date=movie.release_date,
        )


__all__ = [
    "Bookmark",
    "Genre",
    "Movie",
    "MovieDetail",
    "MovieSummary",
    "PageResult",
    "Trailer",
]
