"""Typer-based CLI entry point."""

from __future__ import annotations

import asyncio
import functools
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import typer
from rich import print
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .appctx import AppContext, create_di_container
from .application.services.booking_service import BookingService
from .application.services.customer_service import CustomerService
from .config import BOOKINGS_LIST, CUSTOMERS_LIST
from .domain.models import BookingStatus, ListQuery, SortKey, customer_display_name
from .errors import DomainError, InkbookError, ValidationError
from .infrastructure.db.pool import ConnectionPool
from .listcore.managed_list import ManagedList

app = typer.Typer(help="Studio admin: customers and bookings")
customers_app = typer.Typer(help="Manage customers")
bookings_app = typer.Typer(help="Manage bookings")
app.add_typer(customers_app, name="customers")
app.add_typer(bookings_app, name="bookings")

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=verbose)],
        force=True,
    )


def _handle_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ValidationError as exc:
            field = f" ({exc.field})" if exc.field else ""
            typer.echo(f"Invalid input{field}: {exc}", err=True)
            raise typer.Exit(2) from exc
        except DomainError as exc:
            typer.echo(f"Error: {exc}", err=True)
            raise typer.Exit(1) from exc
        except InkbookError as exc:
            typer.echo(f"Unexpected error: {exc}", err=True)
            raise typer.Exit(1) from exc

    return wrapper


def _context(ctx: typer.Context) -> AppContext:
    return ctx.ensure_object(dict)["app"]


@app.callback()
def main(
    ctx: typer.Context,
    settings: Optional[Path] = typer.Option(None, "--settings", help="Path to settings.json"),
    database: Optional[Path] = typer.Option(None, "--db", help="Path to the SQLite database"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
) -> None:
    _configure_logging(verbose)
    app_context = AppContext(container=create_di_container(settings, database))
    ctx.ensure_object(dict)["app"] = app_context
    ctx.call_on_close(app_context.shutdown)


@app.command("init-db")
@_handle_errors
def init_db(ctx: typer.Context) -> None:
    """Create the database schema if it does not exist."""

    pool = _context(ctx).container.resolve(ConnectionPool)
    print(f"[green]Database ready at {pool.db_path}")


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

def _load_rows(managed: ManagedList, limit: int) -> Tuple[List[Any], bool]:
    async def _run() -> bool:
        try:
            return await managed.ensure_range(0, limit - 1)
        finally:
            managed.close()

    ok = asyncio.run(_run())
    if not ok and managed.renderer.last_error is not None:
        raise managed.renderer.last_error
    return managed.rows()[:limit], len(managed) > limit or managed.has_more


def _print_table(title: str, columns: Sequence[str], rows: List[Any], render: Callable[[Dict[str, Any]], Sequence[str]], more: bool) -> None:
    table = Table(title=title)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*render(row))
    console.print(table)
    if more:
        console.print("[dim]More rows available; raise --limit to see them.")


def _query(search: Optional[str], status: Optional[str], sort: SortKey) -> ListQuery:
    return ListQuery(search=search, status=status, sort=sort)


@customers_app.command("list")
@_handle_errors
def customers_list(
    ctx: typer.Context,
    search: Optional[str] = typer.Option(None, "--search", "-s"),
    status: Optional[str] = typer.Option(None, "--status"),
    sort: SortKey = typer.Option(SortKey.DATE_DESC, "--sort"),
    limit: int = typer.Option(20, "--limit", min=1),
) -> None:
    """List customers, newest first by default."""

    managed = _context(ctx).create_list(CUSTOMERS_LIST, _query(search, status, sort))
    rows, more = _load_rows(managed, limit)
    _print_table(
        "Customers",
        ("ID", "Name", "Email", "Phone", "Status"),
        rows,
        lambda row: (row["id"], customer_display_name(row), row["email"], row.get("phone") or "", row["status"]),
        more,
    )


@customers_app.command("add")
@_handle_errors
def customers_add(
    ctx: typer.Context,
    first_name: str = typer.Option(..., "--first-name"),
    last_name: str = typer.Option(..., "--last-name"),
    email: str = typer.Option(..., "--email"),
    phone: Optional[str] = typer.Option(None, "--phone"),
    notes: Optional[str] = typer.Option(None, "--notes"),
) -> None:
    """Add a customer."""

    service = _context(ctx).container.resolve(CustomerService)
    customer = service.add({
        "first_name": first_name,
        "last_name": last_name,
        "email": email,
        "phone": phone,
        "notes": notes,
    })
    print(f"[green]Added {customer.display_name} ({customer.id})")


@customers_app.command("rm")
@_handle_errors
def customers_rm(ctx: typer.Context, customer_id: str) -> None:
    """Delete a customer."""

    _context(ctx).container.resolve(CustomerService).remove(customer_id)
    print(f"[green]Removed customer {customer_id}")


@bookings_app.command("list")
@_handle_errors
def bookings_list(
    ctx: typer.Context,
    search: Optional[str] = typer.Option(None, "--search", "-s"),
    status: Optional[str] = typer.Option(None, "--status"),
    sort: SortKey = typer.Option(SortKey.DATE_DESC, "--sort"),
    limit: int = typer.Option(20, "--limit", min=1),
) -> None:
    """List bookings, newest first by default."""

    managed = _context(ctx).create_list(BOOKINGS_LIST, _query(search, status, sort))
    rows, more = _load_rows(managed, limit)
    _print_table(
        "Bookings",
        ("ID", "Client", "Tattoo", "Status", "Price"),
        rows,
        lambda row: (
            row["id"],
            row.get("name") or "",
            row.get("tattoo_type") or "",
            row["status"],
            "" if row.get("estimated_price") is None else f"{row['estimated_price']:.2f}",
        ),
        more,
    )


@bookings_app.command("add")
@_handle_errors
def bookings_add(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name"),
    email: Optional[str] = typer.Option(None, "--email"),
    tattoo_type: Optional[str] = typer.Option(None, "--tattoo-type"),
    placement: Optional[str] = typer.Option(None, "--placement"),
    price: Optional[float] = typer.Option(None, "--price"),
    date: Optional[str] = typer.Option(None, "--date", help="Preferred date (ISO 8601)"),
    customer_id: Optional[str] = typer.Option(None, "--customer"),
) -> None:
    """Record a booking request."""

    booking = _context(ctx).container.resolve(BookingService).book({
        "name": name,
        "email": email,
        "tattoo_type": tattoo_type,
        "placement": placement,
        "estimated_price": price,
        "preferred_date": date,
        "customer_id": customer_id,
    })
    print(f"[green]Added booking {booking.id}")


@bookings_app.command("set-status")
@_handle_errors
def bookings_set_status(ctx: typer.Context, booking_id: str, status: BookingStatus) -> None:
    """Move a booking to another status."""

    booking = _context(ctx).container.resolve(BookingService).set_status(booking_id, status.value)
    print(f"[green]Booking {booking.id} is now {booking.status.value}")


if __name__ == "__main__":
    app()
