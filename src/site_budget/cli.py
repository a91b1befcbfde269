"""Command-line interface for the site budget tracker."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer

from .config import TrackerSettings
from .enforcement import TabRegistryHost
from .errors import SiteBudgetError
from .paths import get_db_path
from .reporting import SummaryPrinter, parse_clock
from .service import BudgetService
from .store import StateStore
from .timeutils import MINUTES_PER_DAY

app = typer.Typer(help="Per-website time budgets for your browser.")

DB_OPTION = typer.Option(
    None,
    "--db",
    help="Location of the budget SQLite database.",
)


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _service(db_path: Optional[Path]) -> BudgetService:
    settings = TrackerSettings()
    store = StateStore(db_path or get_db_path(), state_key=settings.state_key)
    return BudgetService(store, TabRegistryHost(), settings)


@contextmanager
def _reported_errors() -> Iterator[None]:
    try:
        yield
    except SiteBudgetError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(code=1) from exc


def _window(start: Optional[str], end: Optional[str]) -> tuple[int, int]:
    try:
        return parse_clock(start, 0), parse_clock(end, MINUTES_PER_DAY)
    except ValueError as exc:
        raise typer.BadParameter("Use HH:MM for window times.") from exc


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = DB_OPTION,
    tick_seconds: float = typer.Option(
        15.0,
        "--interval",
        min=1.0,
        help="Seconds between usage ticks.",
    ),
) -> None:
    """Run the budget service and its periodic tick until interrupted."""
    from .server_runner import run_server

    run_server(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=TrackerSettings.from_intervals(tick_seconds=tick_seconds),
    )


@app.command()
def sites(db_path: Optional[Path] = DB_OPTION) -> None:
    """List configured sites with their usage for the current period."""
    payload = _service(db_path).list_sites()
    SummaryPrinter().print_sites(payload["sites"])


@app.command()
def add(
    domain: str = typer.Argument(..., help="Website to limit, e.g. example.com."),
    limit_minutes: float = typer.Option(
        0.0, "--limit", min=0.0, help="Minutes allowed per period (0 = unlimited)."
    ),
    period: str = typer.Option("daily", "--period", help="daily or weekly."),
    start: Optional[str] = typer.Option(None, "--start", help="Window start (HH:MM)."),
    end: Optional[str] = typer.Option(None, "--end", help="Window end (HH:MM)."),
    invert: bool = typer.Option(False, "--invert", help="Enforce outside the window."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Start tracking a website."""
    window_start, window_end = _window(start, end)
    with _reported_errors():
        site = _service(db_path).add_site(
            domain, limit_minutes, period, window_start, window_end, invert
        )
    typer.echo(f"Added {site['domain']} ({site['id']}).")


@app.command()
def edit(
    site_id: str = typer.Argument(..., help="Identifier shown by `sites`."),
    domain: Optional[str] = typer.Argument(None, help="New website domain."),
    limit_minutes: Optional[float] = typer.Option(
        None, "--limit", min=0.0, help="Minutes allowed per period (0 = unlimited)."
    ),
    period: Optional[str] = typer.Option(None, "--period", help="daily or weekly."),
    start: Optional[str] = typer.Option(None, "--start", help="Window start (HH:MM)."),
    end: Optional[str] = typer.Option(None, "--end", help="Window end (HH:MM)."),
    invert: Optional[bool] = typer.Option(
        None, "--invert/--no-invert", help="Enforce outside the window."
    ),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Change the settings of a tracked website; omitted settings are kept."""
    service = _service(db_path)
    with _reported_errors():
        current = service.get_site(site_id)
        try:
            window_start = parse_clock(start, current["window_start_minutes"])
            window_end = parse_clock(end, current["window_end_minutes"])
        except ValueError as exc:
            raise typer.BadParameter("Use HH:MM for window times.") from exc
        site = service.update_site(
            site_id,
            domain if domain is not None else current["domain"],
            limit_minutes if limit_minutes is not None else current["limit_minutes"],
            period if period is not None else current["period"],
            window_start,
            window_end,
            invert if invert is not None else current["invert_window"],
        )
    typer.echo(f"Updated {site['domain']}.")


@app.command()
def remove(
    site_id: str = typer.Argument(..., help="Identifier shown by `sites`."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Stop tracking a website."""
    with _reported_errors():
        _service(db_path).remove_site(site_id)
    typer.echo("Removed.")


@app.command()
def reset(
    site_id: str = typer.Argument(..., help="Identifier shown by `sites`."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Clear the usage of a website for the current period."""
    with _reported_errors():
        _service(db_path).reset_usage(site_id)
    typer.echo("Usage reset.")


@app.command()
def enable(
    site_id: str = typer.Argument(..., help="Identifier shown by `sites`."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Resume enforcing a website's budget."""
    with _reported_errors():
        _service(db_path).set_enabled(site_id, True)
    typer.echo("Enabled.")


@app.command()
def disable(
    site_id: str = typer.Argument(..., help="Identifier shown by `sites`."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Pause tracking and enforcement for a website."""
    with _reported_errors():
        _service(db_path).set_enabled(site_id, False)
    typer.echo("Disabled.")


@app.command()
def stats(db_path: Optional[Path] = DB_OPTION) -> None:
    """Print today's usage statistics."""
    SummaryPrinter().print_stats(_service(db_path).get_stats())
