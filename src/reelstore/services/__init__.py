from .bookmarks import BookmarkList, DisplayPreferences, LocalStore, SortOrder
from .browse import BrowseQuery, apply_browse
from .enrichment import DetailEnricher
from .store import LoadState, MovieStore, StoreSnapshot, build_store
from .trailers import find_trailer
from .trigger import ScrollTrigger, VisibilityEntry, build_trigger

__all__ = [
    "BookmarkList",
    "BrowseQuery",
    "DetailEnricher",
    "DisplayPreferences",
    "LoadState",
    "LocalStore",
    "MovieStore",
    "ScrollTrigger",
    "SortOrder",
    "StoreSnapshot",
    "VisibilityEntry",
    "apply_browse",
    "build_store",
    "build_trigger",
    "find_trailer",
]
