from .movie import Bookmark, Genre, Movie, MovieDetail, MovieSummary, PageResult, Trailer

__all__ = [
    "Bookmark",
    "Genre",
    "Movie",
    "MovieDetail",
    "MovieSummary",
    "PageResult",
    "Trailer",
]
