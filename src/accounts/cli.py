"""Command-line interface for the accounts service."""

from typing import Annotated

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from accounts.logging_config import configure_logging, get_logger
from accounts.referral.service import ReferralQueryService
from accounts.settings import Settings, check_production_secret
from accounts.storage.db import Database
from accounts.storage.repo import SqlReferralStore, SqlUserStore

logger = get_logger(__name__)

# Create Typer app
app = typer.Typer(
    name="accounts",
    help="Accounts - user registration, login and referral tracking",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


def _load_settings() -> Settings:
    settings = Settings()
    configure_logging(settings)
    return settings


@app.command("init-db")
def init_database() -> None:
    """Initialize the database and create tables."""
    settings = _load_settings()
    db = Database(settings)

    console.print("[bold blue]Initializing database...[/bold blue]")
    db.wait_until_ready()
    db.create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option("--host", "-h", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", "-p", help="Port to listen on")] = 3000,
    reload: Annotated[bool, typer.Option("--reload", help="Reload on code changes")] = False,
) -> None:
    """Run the HTTP API."""
    settings = _load_settings()
    check_production_secret(settings)

    console.print(f"[bold blue]Starting accounts API on {host}:{port}[/bold blue] (env={settings.env})")
    uvicorn.run(
        "accounts.api.main:get_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_config=None,
    )


@app.command("referral-stats")
def referral_stats(
    email: Annotated[str, typer.Argument(help="Email of the referring user")],
) -> None:
    """Show the referrals made by a user."""
    settings = _load_settings()
    db = Database(settings)
    users = SqlUserStore(db)
    queries = ReferralQueryService(SqlReferralStore(db))

    user = users.get_by_email(email)
    if user is None:
        console.print(f"[bold red]✗[/bold red] No user with email {email}")
        raise typer.Exit(1)

    stats = queries.get_referral_stats(user.id)
    referrals = queries.list_referrals(user.id)

    table = Table(title=f"Referrals by {user.username} (code {user.referral_code})")
    table.add_column("ID", style="cyan")
    table.add_column("Username")
    table.add_column("Email")
    table.add_column("Status", style="green")
    table.add_column("Date")

    for referral in referrals:
        referred = referral["referred_user"] or {}
        table.add_row(
            str(referral["id"]),
            referred.get("username", "-"),
            referred.get("email", "-"),
            referral["status"].value,
            referral["date_referred"].strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)
    console.print(
        f"Total: [bold]{stats['totalReferrals']}[/bold]  "
        f"Successful: [bold]{stats['successfulReferrals']}[/bold]"
    )


if __name__ == "__main__":
    app()
