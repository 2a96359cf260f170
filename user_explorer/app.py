"""Typer CLI entrypoint for the user explorer."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, DataSettings, ExplorerConfig, SortKey
from .engine import ExpiringCache, MemoryCacheBackend, SQLiteCacheBackend, User, UserFetcher
from .infra import SQLiteManager
from .logging_conf import configure_logging, default_log_dir, tail_log
from .orchestrator import Explorer

app = typer.Typer(
    help="User data explorer: parallel fetch, streaming and offloaded processing.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Inspect log files.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
app.add_typer(log_app, name="log")

console = Console()

T = TypeVar("T")


@dataclass
class AppState:
    repository: ConfigRepository
    config: ExplorerConfig
    cache: ExpiringCache
    explorer_factory: Callable[[], Explorer]
    storage: Optional[SQLiteManager] = None

    def close(self) -> None:
        if self.storage is not None:
            self.storage.close()


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    config = repository.load()
    storage: Optional[SQLiteManager] = None
    if config.cache_backend == "sqlite":
        storage = SQLiteManager(repository.locator.cache_db_path())
        backend = SQLiteCacheBackend(storage)
    else:
        backend = MemoryCacheBackend()
    cache = ExpiringCache(backend, ttl_seconds=config.cache_ttl_seconds)

    def explorer_factory() -> Explorer:
        fetcher = UserFetcher(
            config.base_url,
            timeout=config.request_timeout,
            users_per_page=config.users_per_page,
        )
        return Explorer(config, fetcher, cache)

    return AppState(
        repository=repository,
        config=config,
        cache=cache,
        explorer_factory=explorer_factory,
        storage=storage,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _run_session(state: AppState, body: Callable[[Explorer], Awaitable[T]]) -> tuple[Explorer, T]:
    async def _runner() -> tuple[Explorer, T]:
        explorer = state.explorer_factory()
        try:
            return explorer, await body(explorer)
        finally:
            await explorer.fetcher.aclose()

    try:
        return asyncio.run(_runner())
    finally:
        state.close()


def _render_users_table(title: str, users: Sequence[User], limit: int = 50) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAD)
    table.add_column("ID", style="cyan", justify="right", no_wrap=True)
    table.add_column("Name", style="green")
    table.add_column("Age", style="magenta", justify="right")
    table.add_column("Email", style="dim")
    for user in users[:limit]:
        table.add_row(str(user.id), user.name, str(user.age), user.email)
    if len(users) > limit:
        table.caption = f"… {len(users) - limit} more"
    return table


def _render_metrics_table(explorer: Explorer) -> Table:
    metrics = explorer.metrics
    table = Table(title="Performance Metrics", box=box.MINIMAL_DOUBLE_HEAD, show_header=False)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="cyan", justify="right")
    table.add_row("Data source", explorer.data_source or "N/A")
    table.add_row("Fail-fast fetch", f"{metrics.parallel_all:.2f} ms")
    table.add_row("Partial-success fetch", f"{metrics.parallel_settled:.2f} ms")
    table.add_row("Worker processing", f"{metrics.worker_time:.2f} ms")
    table.add_row("Inline processing", f"{metrics.main_thread_time:.2f} ms")
    return table


async def _load(explorer: Explorer, pages: Optional[int], refresh: bool) -> list[User]:
    if pages is not None:
        explorer.update_settings(pages_to_fetch=pages)
    with console.status("Loading data…"):
        if refresh:
            return await explorer.refresh_data()
        return await explorer.load_parallel_data()


def _check_settings(pages: Optional[int] = None, limit: Optional[int] = None) -> None:
    payload = {}
    if pages is not None:
        payload["pages_to_fetch"] = pages
    if limit is not None:
        payload["stream_limit"] = limit
    try:
        DataSettings.model_validate(payload)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging.")
) -> None:
    ctx.obj = build_state(verbose)


@app.command("serve", help="Run the mock data server.")
def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Bind address."),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port."),
) -> None:
    from .server import create_app

    state = _get_state(ctx)
    settings = state.config.server
    server_app = create_app(settings)
    bind_host = host or settings.host
    bind_port = port or settings.port
    console.print(f"Server running on http://{bind_host}:{bind_port}", style="green")
    server_app.run(host=bind_host, port=bind_port, threaded=True)


@app.command("load", help="Load users in parallel (served from cache when fresh).")
def load(
    ctx: typer.Context,
    pages: Optional[int] = typer.Option(None, "--pages", help="Pages to fetch (1-5)."),
    refresh: bool = typer.Option(False, "--refresh", help="Clear the cache before loading."),
) -> None:
    state = _get_state(ctx)
    _check_settings(pages=pages)
    explorer, users = _run_session(state, lambda ex: _load(ex, pages, refresh))
    if not users:
        console.print("No users loaded; check the server and logs.", style="red")
        raise typer.Exit(code=1)
    console.print(_render_users_table(f"Users ({len(users)} total)", users))
    console.print(_render_metrics_table(explorer))


@app.command("refresh", help="Clear the cached users and reload from the server.")
def refresh(
    ctx: typer.Context,
    pages: Optional[int] = typer.Option(None, "--pages", help="Pages to fetch (1-5)."),
) -> None:
    load(ctx, pages=pages, refresh=True)


@app.command("stream", help="Stream users, stopping at the limit.")
def stream(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", help="Records to accept (1-30)."),
) -> None:
    state = _get_state(ctx)
    _check_settings(limit=limit)

    def _print(user: User) -> None:
        console.print(f"[cyan]{user.id:>5}[/cyan]  {user.name}  ({user.age})  [dim]{user.email}[/dim]")

    async def _body(explorer: Explorer) -> list[User]:
        if limit is not None:
            explorer.update_settings(stream_limit=limit)
        return await explorer.stream_data(on_record=_print)

    _, users = _run_session(state, _body)
    console.print(f"Streamed users: {len(users)}", style="green" if users else "yellow")


@app.command("process", help="Filter by age and sort the cached users.")
def process(
    ctx: typer.Context,
    min_age: Optional[int] = typer.Option(None, "--min-age", help="Keep users strictly older."),
    sort_by: Optional[SortKey] = typer.Option(None, "--sort-by", help="Sort field."),
    worker: Optional[bool] = typer.Option(
        None, "--worker/--inline", help="Offload to a worker process or run inline."
    ),
) -> None:
    state = _get_state(ctx)

    async def _body(explorer: Explorer) -> list[User]:
        with console.status("Loading data…"):
            await explorer.load_parallel_data()
        if not explorer.users:
            return []
        return await explorer.process_data(min_age=min_age, sort_by=sort_by, use_worker=worker)

    explorer, users = _run_session(state, _body)
    if not explorer.data_source:
        console.print("No users available to process.", style="red")
        raise typer.Exit(code=1)
    title = f"Processed Users ({len(users)} total, Age > {explorer.min_age})"
    console.print(_render_users_table(title, users))
    console.print(_render_metrics_table(explorer))


@app.command("demo", help="Load, process both ways and stream in a single session.")
def demo(
    ctx: typer.Context,
    pages: Optional[int] = typer.Option(None, "--pages", help="Pages to fetch (1-5)."),
    limit: Optional[int] = typer.Option(None, "--limit", help="Stream limit (1-30)."),
) -> None:
    state = _get_state(ctx)
    _check_settings(pages=pages, limit=limit)

    async def _body(explorer: Explorer) -> None:
        explorer.update_settings(pages_to_fetch=pages, stream_limit=limit)
        await _load(explorer, None, refresh=True)
        if not explorer.users:
            return
        loaded = list(explorer.users)
        await explorer.process_data(use_worker=False)
        explorer.users = loaded
        await explorer.process_data(use_worker=True)
        with console.status("Streaming…"):
            await explorer.stream_data()

    explorer, _ = _run_session(state, _body)
    console.print(_render_users_table(f"Processed Users ({len(explorer.users)})", explorer.users))
    if explorer.stream_users:
        console.print(
            _render_users_table(f"Streamed Users ({len(explorer.stream_users)})", explorer.stream_users)
        )
    console.print(_render_metrics_table(explorer))


@log_app.command("show", help="Show the most recent lines of the application log.")
def log_show(
    tail: int = typer.Option(100, "--tail", help="Number of lines to show."),
    errors: bool = typer.Option(False, "--errors", help="Show the error log instead."),
) -> None:
    path = default_log_dir() / ("error.log" if errors else "explorer.log")
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log entries yet.", style="dim")
        return
    console.print(f"{path.name} · last {len(lines)} lines", style="cyan")
    console.print("".join(lines))


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
