from __future__ import annotations

import asyncio
import logging
from typing import Any

import typer

from reelstore import __version__
from reelstore.clients.tmdb import CatalogError, catalog_client
from reelstore.config import Settings, SettingsError, SettingsLoadResult, load_settings
from reelstore.models import Bookmark, Movie, Trailer
from reelstore.services.bookmarks import BookmarkList, DisplayPreferences, LocalStore, SortOrder
from reelstore.services.browse import BrowseQuery, apply_browse
from reelstore.services.store import LoadState, StoreSnapshot, build_store
from reelstore.services.trailers import find_trailer

app = typer.Typer(
    add_completion=False,
    help="Browse, bookmark and cache popular movies from the TMDB catalog.",
)
bookmark_app = typer.Typer(help="Manage the local bookmark list.")
app.add_typer(bookmark_app, name="bookmark")


@app.callback()
def _cli_entry(ctx: typer.Context) -> None:
    """Entrypoint for the reelstore CLI."""
    ctx.obj = {} if ctx.obj is None else ctx.obj


@app.command()
def version() -> None:
    """Print the installed version."""
    typer.echo(__version__)


@app.command()
def browse(
    pages: int = typer.Option(1, min=1, help="Number of catalog pages to load."),
    search: str = typer.Option("", help="Only show titles containing this text."),
    sort: bool = typer.Option(False, help="Sort the listing by title."),
    debug: bool = typer.Option(False, help="Enable debug logging to follow each page load."),
) -> None:
    """Load popular movies page by page and list the cached collection."""
    if debug:
        _setup_logging(logging.INFO)

    settings = _require_tmdb_settings()
    snapshot = asyncio.run(_run_browse(settings, pages=pages, debug=debug))
    _render_browse_results(snapshot, BrowseQuery(search=search, sort_by_title=sort))


@app.command()
def trailer(movie_id: int = typer.Argument(..., help="TMDB movie id.")) -> None:
    """Print the YouTube trailer link of a movie."""
    settings = _require_tmdb_settings()
    found = asyncio.run(_run_trailer(settings, movie_id))
    if found is None:
        typer.secho("No trailer available.", fg=typer.colors.YELLOW)
        return
    typer.echo(f"{found.name or 'Trailer'}: {found.url}")


@app.command("dark-mode")
def dark_mode(
    toggle: bool = typer.Option(False, "--toggle", help="Flip the stored preference."),
) -> None:
    """Show or toggle the dark display mode preference."""
    settings = _load_settings_or_exit()
    preferences = DisplayPreferences(LocalStore(settings.storage_path))
    enabled = preferences.toggle() if toggle else preferences.dark_mode
    typer.echo(f"dark_mode: {'on' if enabled else 'off'}")


@app.command()
def config(show_sources: bool = typer.Option(False, help="Display where settings came from.")) -> None:
    """Describe configuration expectations."""
    load_result = _safe_load_settings(load_even_if_missing=True)
    if load_result is None:
        raise typer.Exit(code=1)

    settings = load_result.settings
    values: dict[str, Any] = {
        "tmdb_api_key": "<set>" if settings.tmdb_api_key else "<unset>",
        "tmdb_base_url": settings.tmdb_base_url,
        "tmdb_language": settings.tmdb_language,
        "tmdb_timeout": settings.tmdb_timeout,
        "error_display_seconds": settings.error_display_seconds,
        "max_pages": settings.max_pages or "<unbounded>",
        "trigger_threshold": settings.trigger_threshold,
        "trigger_margin": settings.trigger_margin,
        "storage_path": settings.storage_path,
    }

    for key, value in values.items():
        typer.echo(f"{key}: {value}")

    if show_sources:
        source_hint = load_result.source_path or "<env/.env>"
        typer.echo(f"resolved_from: {source_hint}")
        typer.echo(
            "Catalog key: TMDB_API_KEY."
            " Configure ~/.config/reelstore/config.toml for persistent settings.",
        )


@bookmark_app.command("add")
def bookmark_add(movie_id: int = typer.Argument(..., help="TMDB movie id.")) -> None:
    """Bookmark a movie by id."""
    settings = _require_tmdb_settings()
    try:
        movie = asyncio.run(_fetch_movie(settings, movie_id))
    except CatalogError as exc:
        typer.secho(f"Error looking up movie {movie_id}: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    bookmarks = BookmarkList(LocalStore(settings.storage_path))
    if bookmarks.add(movie):
        typer.secho(f"✓ Bookmarked: {movie.title}", fg=typer.colors.GREEN)
    else:
        typer.secho(f"⊘ Already bookmarked: {movie.title}", fg=typer.colors.YELLOW)


@bookmark_app.command("remove")
def bookmark_remove(movie_id: int = typer.Argument(..., help="TMDB movie id.")) -> None:
    """Remove a bookmark."""
    settings = _load_settings_or_exit()
    bookmarks = BookmarkList(LocalStore(settings.storage_path))
    if bookmarks.remove(movie_id):
        typer.secho(f"Removed bookmark {movie_id}", fg=typer.colors.GREEN)
    else:
        typer.secho(f"Movie {movie_id} is not bookmarked.", fg=typer.colors.YELLOW)


@bookmark_app.command("list")
def bookmark_list(
    order: SortOrder = typer.Option(SortOrder.DATE_ADDED, help="Sort order."),
) -> None:
    """List bookmarked movies."""
    settings = _load_settings_or_exit()
    bookmarks = BookmarkList(LocalStore(settings.storage_path))
    _render_bookmarks(bookmarks.sorted(order))


@bookmark_app.command("clear")
def bookmark_clear(
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    """Remove every bookmark."""
    settings = _load_settings_or_exit()
    if not yes and not typer.confirm("Remove all bookmarks?"):
        raise typer.Exit(code=0)
    BookmarkList(LocalStore(settings.storage_path)).clear()
    typer.echo("Bookmarks cleared.")


def main() -> None:
    """Expose Typer app for the console script."""
    app()


def _safe_load_settings(load_even_if_missing: bool = False) -> SettingsLoadResult | None:
    try:
        return load_settings()
    except SettingsError as exc:
        if load_even_if_missing:
            typer.secho(
                f"Warning: configuration incomplete – {exc}",
                fg=typer.colors.YELLOW,
            )
            return SettingsLoadResult(settings=Settings(), source_path=None)
        typer.secho(str(exc), fg=typer.colors.RED)
        return None


def _load_settings_or_exit() -> Settings:
    load_result = _safe_load_settings()
    if load_result is None:
        raise typer.Exit(code=1)
    return load_result.settings


def _require_tmdb_settings() -> Settings:
    settings = _load_settings_or_exit()
    try:
        settings.require_tmdb()
    except SettingsError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    return settings


def _setup_logging(level: int = logging.INFO) -> None:
    """Configure logging for debug mode."""
    logging.basicConfig(
        format="%(message)s",
        level=level,
        force=True,
    )


async def _run_browse(settings: Settings, *, pages: int, debug: bool = False) -> StoreSnapshot:
    assert settings.tmdb_api_key is not None

    async with catalog_client(
        settings.tmdb_base_url,
        settings.tmdb_api_key,
        language=settings.tmdb_language,
        timeout=settings.tmdb_timeout,
    ) as client:
        store = build_store(settings, client, debug=debug)
        try:
            await store.on_attach()
            # store.page is the next page to fetch, so page - 1 pages are loaded
            while store.state is LoadState.IDLE and store.page - 1 < pages:
                if not await store.load_next():
                    break
            return store.snapshot()
        finally:
            store.on_detach()


async def _run_trailer(settings: Settings, movie_id: int) -> Trailer | None:
    assert settings.tmdb_api_key is not None

    async with catalog_client(
        settings.tmdb_base_url,
        settings.tmdb_api_key,
        timeout=settings.tmdb_timeout,
    ) as client:
        return await find_trailer(client, movie_id)


async def _fetch_movie(settings: Settings, movie_id: int) -> Movie:
    assert settings.tmdb_api_key is not None

    async with catalog_client(
        settings.tmdb_base_url,
        settings.tmdb_api_key,
        language=settings.tmdb_language,
        timeout=settings.tmdb_timeout,
    ) as client:
        detail = await client.fetch_detail(movie_id)
    return Movie.from_detail(detail)


def _render_browse_results(snapshot: StoreSnapshot, query: BrowseQuery) -> None:
    if snapshot.error:
        typer.secho(f"Error: {snapshot.error}", fg=typer.colors.RED)

    movies = apply_browse(snapshot.movies, query)
    if not movies:
        typer.secho("No movies found.", fg=typer.colors.YELLOW)
        return

    loaded_pages = snapshot.page - 1
    status = "all pages loaded" if not snapshot.has_more else f"{loaded_pages} page(s) loaded"
    typer.secho(f"{len(movies)} of {len(snapshot.movies)} movies • {status}", fg=typer.colors.CYAN)
    for idx, movie in enumerate(movies, start=1):
        year = movie.year or "Unknown Year"
        typer.echo(f"{idx}. {movie.title} ({year}) • rating={movie.vote_average:.1f}")
        if not movie.has_details:
            typer.echo("   details unavailable")
            continue
        extras = []
        if movie.runtime:
            extras.append(f"{movie.runtime} min")
        if movie.genres:
            extras.append(", ".join(genre.name for genre in movie.genres))
        if movie.tagline:
            extras.append(movie.tagline)
        if extras:
            typer.echo(f"   {' • '.join(extras)}")


def _render_bookmarks(bookmarks: list[Bookmark]) -> None:
    if not bookmarks:
        typer.secho("No bookmarks yet.", fg=typer.colors.YELLOW)
        return
    for idx, item in enumerate(bookmarks, start=1):
        year = item.release_date.year if item.release_date else "Unknown Year"
        typer.echo(
            f"{idx}. {item.title} ({year}) • rating={item.vote_average:.1f}"
            f" • added {item.added_at:%Y-%m-%d}"
        )


if __name__ == "__main__":
    main()
