from __future__ import annotations

from dataclasses import dataclass

from reelstore.models import PageResult

FIRST_PAGE = 1


@dataclass(frozen=True)
class PageAdvance:
    next_page: int
    has_more: bool


def advance(result: PageResult, *, max_page: int | None = None) -> PageAdvance:
    """Compute the cursor after ``result`` was loaded.

    An empty page that still reports more pages advances like any other.
    ``max_page`` caps how far the cursor may go when the catalog keeps
    reporting more pages than it will actually serve.
    """
    has_more = result.page < result.total_pages
    if max_page is not None and result.page >= max_page:
        has_more = False
    return PageAdvance(next_page=result.page + 1, has_more=has_more)


__all__ = ["FIRST_PAGE", "PageAdvance", "advance"]
