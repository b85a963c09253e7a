"""Tests for the movie store state machine."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from reelstore.clients.tmdb import CatalogClient, CatalogError, DetailError
from reelstore.config import Settings
from reelstore.models import MovieDetail, PageResult
from reelstore.services.store import LoadState, MovieStore, StoreSnapshot, build_store
from tests.fixtures.tmdb_responses import detail_payload, page_payload

ERROR_WINDOW = 0.05


def _pages(total_pages: int, per_page: int = 3) -> dict[int, PageResult]:
    return {
        page: PageResult.model_validate(
            page_payload(
                page,
                total_pages,
                list(range((page - 1) * per_page + 1, page * per_page + 1)),
            )
        )
        for page in range(1, total_pages + 1)
    }


@pytest.fixture
def mock_catalog_client():
    """Create a mock CatalogClient serving five pages of three movies."""
    client = AsyncMock(spec=CatalogClient)
    pages = _pages(5)

    async def fetch_page(page: int) -> PageResult:
        return pages[page]

    async def fetch_detail(movie_id: int) -> MovieDetail:
        return MovieDetail.model_validate(detail_payload(movie_id))

    client.fetch_page = AsyncMock(side_effect=fetch_page)
    client.fetch_detail = AsyncMock(side_effect=fetch_detail)
    return client


@pytest.fixture
def store(mock_catalog_client):
    """Create a MovieStore with a short error display window."""
    return MovieStore(mock_catalog_client, error_display_seconds=ERROR_WINDOW, save_delay=0)


class TestInitialState:
    """Test cases for a freshly constructed store."""

    def test_initial_state(self, store):
        assert store.state is LoadState.IDLE
        assert store.page == 1
        assert store.movies == ()
        assert store.error is None
        assert store.busy is False
        assert store.has_more is True
        assert store.loading_initial is True

    def test_snapshot_reflects_state(self, store):
        snapshot = store.snapshot()

        assert snapshot == StoreSnapshot(
            movies=(),
            page=1,
            state=LoadState.IDLE,
            error=None,
            loading_initial=True,
            saving=False,
        )
        assert snapshot.has_more is True
        assert snapshot.busy is False


class TestLoadNext:
    """Test cases for MovieStore.load_next."""

    @pytest.mark.asyncio
    async def test_load_first_page(self, store, mock_catalog_client):
        loaded = await store.load_next()

        assert loaded is True
        assert [movie.id for movie in store.movies] == [1, 2, 3]
        assert all(movie.has_details for movie in store.movies)
        assert store.page == 2
        assert store.state is LoadState.IDLE
        assert store.loading_initial is False
        mock_catalog_client.fetch_page.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_sequential_loads_concatenate_pages(self, store, mock_catalog_client):
        await store.load_next()
        await store.load_next()
        await store.load_next()

        assert [movie.id for movie in store.movies] == list(range(1, 10))
        assert store.page == 4
        assert [call.args[0] for call in mock_catalog_client.fetch_page.await_args_list] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_overlapping_pages_are_deduplicated(self, store, mock_catalog_client):
        pages = {
            1: PageResult.model_validate(page_payload(1, 3, [10, 11, 12])),
            2: PageResult.model_validate(page_payload(2, 3, [12, 13, 10])),
            3: PageResult.model_validate(page_payload(3, 3, [14])),
        }

        async def fetch_page(page: int) -> PageResult:
            return pages[page]

        mock_catalog_client.fetch_page.side_effect = fetch_page

        while await store.load_next():
            pass

        assert [movie.id for movie in store.movies] == [10, 11, 12, 13, 14]
        assert store.state is LoadState.EXHAUSTED

    @pytest.mark.asyncio
    async def test_concurrent_calls_fetch_once(self, store, mock_catalog_client):
        """Test two immediate calls while the first is in flight fetch one page."""
        release = asyncio.Event()
        pages = _pages(5)

        async def fetch_page(page: int) -> PageResult:
            await release.wait()
            return pages[page]

        mock_catalog_client.fetch_page.side_effect = fetch_page

        first = asyncio.create_task(store.load_next())
        await asyncio.sleep(0)
        assert store.busy is True
        assert store.state is LoadState.LOADING

        second = await store.load_next()
        release.set()

        assert await first is True
        assert second is False
        assert mock_catalog_client.fetch_page.await_count == 1
        assert store.busy is False

    @pytest.mark.asyncio
    async def test_exhaustion_makes_load_a_noop(self, store, mock_catalog_client):
        for _ in range(5):
            assert await store.load_next() is True

        assert store.state is LoadState.EXHAUSTED
        assert store.has_more is False

        assert await store.load_next() is False
        assert await store.load_next() is False
        assert mock_catalog_client.fetch_page.await_count == 5
        assert len(store.movies) == 15

    @pytest.mark.asyncio
    async def test_single_last_page_exhausts(self, store, mock_catalog_client):
        mock_catalog_client.fetch_page.side_effect = None
        mock_catalog_client.fetch_page.return_value = PageResult.model_validate(
            page_payload(5, 5, [1])
        )

        await store.load_next()

        assert store.has_more is False
        assert store.page == 6
        assert await store.load_next() is False
        assert mock_catalog_client.fetch_page.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_page_with_more_advances_cursor(self, store, mock_catalog_client):
        mock_catalog_client.fetch_page.side_effect = None
        mock_catalog_client.fetch_page.return_value = PageResult.model_validate(
            page_payload(1, 10, [])
        )

        assert await store.load_next() is True

        assert store.movies == ()
        assert store.page == 2
        assert store.state is LoadState.IDLE

    @pytest.mark.asyncio
    async def test_max_pages_ceiling(self, mock_catalog_client):
        store = MovieStore(mock_catalog_client, max_pages=2)

        await store.load_next()
        await store.load_next()

        assert store.state is LoadState.EXHAUSTED
        assert await store.load_next() is False

    @pytest.mark.asyncio
    async def test_detail_failures_do_not_fail_the_page(self, store, mock_catalog_client):
        async def fetch_detail(movie_id: int) -> MovieDetail:
            if movie_id == 2:
                raise DetailError(movie_id, "boom")
            return MovieDetail.model_validate(detail_payload(movie_id))

        mock_catalog_client.fetch_detail.side_effect = fetch_detail

        assert await store.load_next() is True

        assert store.error is None
        assert [movie.has_details for movie in store.movies] == [True, False, True]


class TestErrorHandling:
    """Test cases for list-fetch failures."""

    @pytest.mark.asyncio
    async def test_list_failure_sets_error_and_keeps_collection(self, store, mock_catalog_client):
        await store.load_next()
        before = store.movies
        mock_catalog_client.fetch_page.side_effect = CatalogError("Invalid API key")

        loaded = await store.load_next()

        assert loaded is False
        assert store.error == "Invalid API key"
        assert store.state is LoadState.IDLE_WITH_ERROR
        assert store.movies == before
        assert store.page == 2

    @pytest.mark.asyncio
    async def test_error_clears_after_display_window(self, store, mock_catalog_client):
        mock_catalog_client.fetch_page.side_effect = CatalogError("Network Error")

        await store.load_next()
        assert store.error == "Network Error"
        assert store.loading_initial is False

        await asyncio.sleep(ERROR_WINDOW * 3)

        assert store.error is None
        assert store.state is LoadState.IDLE
        assert store.movies == ()

    @pytest.mark.asyncio
    async def test_retry_after_failure_succeeds_and_clears_error(self, store, mock_catalog_client):
        pages = _pages(5)
        mock_catalog_client.fetch_page.side_effect = [CatalogError("Network Error"), pages[1]]

        assert await store.load_next() is False
        assert await store.load_next() is True

        assert store.error is None
        assert store.state is LoadState.IDLE
        assert [movie.id for movie in store.movies] == [1, 2, 3]
        assert [call.args[0] for call in mock_catalog_client.fetch_page.await_args_list] == [1, 1]

    @pytest.mark.asyncio
    async def test_stale_timer_does_not_clear_newer_state(self, store, mock_catalog_client):
        pages = _pages(5)
        mock_catalog_client.fetch_page.side_effect = [CatalogError("first"), pages[1]]

        await store.load_next()
        await store.load_next()
        await asyncio.sleep(ERROR_WINDOW * 3)

        assert store.state is LoadState.IDLE
        assert store.error is None
        assert len(store.movies) == 3

    @pytest.mark.asyncio
    async def test_unexpected_failure_returns_to_interactive_state(self, store, mock_catalog_client):
        mock_catalog_client.fetch_page.side_effect = KeyError("results")

        assert await store.load_next() is False

        assert store.state is LoadState.IDLE_WITH_ERROR
        assert store.error

    @pytest.mark.asyncio
    async def test_cancelled_load_returns_to_idle(self, store, mock_catalog_client):
        """Test a load cancelled mid-fetch leaves the store able to load again."""
        never = asyncio.Event()
        pages = _pages(5)

        async def hanging_fetch_page(page: int) -> PageResult:
            await never.wait()
            return pages[page]

        mock_catalog_client.fetch_page.side_effect = hanging_fetch_page

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(store.load_next(), 0.01)

        assert store.state is LoadState.IDLE
        assert store.busy is False
        assert store.movies == ()
        assert store.page == 1

        mock_catalog_client.fetch_page.side_effect = lambda page: pages[page]
        assert await store.load_next() is True
        assert mock_catalog_client.fetch_page.await_count == 2
        assert [movie.id for movie in store.movies] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_cancelled_load_keeps_visible_error(self, store, mock_catalog_client):
        never = asyncio.Event()

        async def hanging_fetch_page(page: int) -> PageResult:
            await never.wait()
            raise AssertionError("unreachable")

        mock_catalog_client.fetch_page.side_effect = CatalogError("Network Error")
        await store.load_next()
        mock_catalog_client.fetch_page.side_effect = hanging_fetch_page

        task = asyncio.create_task(store.load_next())
        await asyncio.sleep(0)
        assert store.state is LoadState.LOADING
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert store.state is LoadState.IDLE_WITH_ERROR
        assert store.error == "Network Error"


class TestSubscriptions:
    """Test cases for snapshot publication."""

    @pytest.mark.asyncio
    async def test_subscribers_see_loading_then_result(self, store):
        snapshots: list[StoreSnapshot] = []
        store.subscribe(snapshots.append)

        await store.load_next()

        assert [snapshot.state for snapshot in snapshots] == [LoadState.LOADING, LoadState.IDLE]
        assert snapshots[0].movies == ()
        assert len(snapshots[1].movies) == 3
        assert snapshots[1].page == 2

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_notifications(self, store):
        snapshots: list[StoreSnapshot] = []
        unsubscribe = store.subscribe(snapshots.append)
        unsubscribe()

        await store.load_next()

        assert snapshots == []

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_loading(self, store):
        def broken(snapshot: StoreSnapshot) -> None:
            raise RuntimeError("view crashed")

        store.subscribe(broken)

        assert await store.load_next() is True
        assert len(store.movies) == 3


class TestLifecycle:
    """Test cases for on_attach/on_detach."""

    @pytest.mark.asyncio
    async def test_on_attach_performs_initial_load(self, store, mock_catalog_client):
        assert await store.on_attach() is True
        assert len(store.movies) == 3

        assert await store.on_attach() is False
        assert mock_catalog_client.fetch_page.await_count == 1

    @pytest.mark.asyncio
    async def test_on_detach_cancels_error_timer_and_listeners(self, store, mock_catalog_client):
        snapshots: list[StoreSnapshot] = []
        store.subscribe(snapshots.append)
        mock_catalog_client.fetch_page.side_effect = CatalogError("down")
        await store.load_next()
        published = len(snapshots)

        store.on_detach()
        await asyncio.sleep(ERROR_WINDOW * 3)

        assert len(snapshots) == published
        assert store._error_timer is None


class TestUpdateMovie:
    """Test cases for update_movie and save_movies."""

    @pytest.mark.asyncio
    async def test_update_changes_only_patched_field(self, mock_catalog_client):
        pages = {1: PageResult.model_validate(page_payload(1, 1, [41, 42, 43]))}
        mock_catalog_client.fetch_page.side_effect = lambda page: pages[page]
        store = MovieStore(mock_catalog_client)
        await store.load_next()
        before = store.movies

        assert store.update_movie({"id": 42, "title": "New"}) is True

        assert len(store.movies) == 3
        assert [movie.id for movie in store.movies] == [41, 42, 43]
        assert store.movies[1].title == "New"
        assert store.movies[1].model_dump(exclude={"title"}) == before[1].model_dump(
            exclude={"title"}
        )
        assert store.movies[0] == before[0]
        assert store.movies[2] == before[2]

    @pytest.mark.asyncio
    async def test_update_missing_id_is_noop(self, store):
        await store.load_next()
        before = store.movies

        assert store.update_movie({"id": 42, "title": "New"}) is False
        assert store.movies is before

    @pytest.mark.asyncio
    async def test_update_does_not_touch_load_state(self, store):
        for _ in range(5):
            await store.load_next()

        store.update_movie({"id": 1, "title": "Edited"})

        assert store.state is LoadState.EXHAUSTED
        assert store.page == 6

    @pytest.mark.asyncio
    async def test_save_movies_applies_all_edits(self, store):
        await store.load_next()
        snapshots: list[StoreSnapshot] = []
        store.subscribe(snapshots.append)

        saved = await store.save_movies(
            {1: {"id": 1, "title": "One"}, 3: {"id": 3, "vote_average": 9.5}}
        )

        assert saved is True
        assert store.movies[0].title == "One"
        assert store.movies[2].vote_average == 9.5
        assert store.saving is False
        assert [snapshot.saving for snapshot in snapshots] == [True, False]
        assert snapshots[0].movies[0].title != "One"
        assert snapshots[-1].movies[0].title == "One"

    @pytest.mark.asyncio
    async def test_save_movies_rejects_invalid_edit_atomically(self, store):
        await store.load_next()
        before = store.movies

        saved = await store.save_movies(
            [{"id": 1, "title": "One"}, {"id": 2, "vote_count": "many"}]
        )

        assert saved is False
        assert store.movies == before
        assert store.error is not None
        assert store.state is LoadState.IDLE
        assert store.saving is False


def test_build_store_uses_settings(mock_catalog_client):
    settings = Settings(error_display_seconds=2.5, max_pages=7)

    store = build_store(settings, mock_catalog_client)

    assert store._error_display_seconds == 2.5
    assert store._max_pages == 7
    assert store._client is mock_catalog_client
