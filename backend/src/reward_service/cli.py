"""Command-line interface for the reward service."""

from typing import Annotated, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from reward_service.auth.local import LocalAuthService
from reward_service.errors import RewardServiceError
from reward_service.ledger.service import RewardLedger
from reward_service.logging_config import configure_logging, get_logger
from reward_service.referral.service import ReferralRedeemer
from reward_service.settings import settings
from reward_service.storage.db import db

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Create Typer app
app = typer.Typer(
    name="reward-service",
    help="Reward Service - points, tasks and referral rewards",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


def _fail(e: RewardServiceError) -> NoReturn:
    console.print(f"[bold red]✗[/bold red] {e}")
    raise typer.Exit(1)


@app.command("init")
def init_database() -> None:
    """Initialize the database and create tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    db.create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("create-user")
def create_user(
    email: Annotated[str, typer.Option("--email", "-e", help="Account email")],
    password: Annotated[str, typer.Option("--password", "-p", prompt=True, hide_input=True, help="Password (min 8 chars)")],
    first_name: Annotated[str | None, typer.Option("--first-name", help="First name")] = None,
    last_name: Annotated[str | None, typer.Option("--last-name", help="Last name")] = None,
    referral_code: Annotated[str | None, typer.Option("--code", "-c", help="Own referral code (generated if omitted)")] = None,
) -> None:
    """Register a new account."""
    try:
        user = LocalAuthService().register(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            referral_code=referral_code,
        )
    except RewardServiceError as e:
        _fail(e)

    console.print(f"[bold green]✓[/bold green] User created with ID: [bold]{user.id}[/bold]")
    console.print(f"  Email: {user.email}")
    console.print(f"  Referral code: {user.referral_code}")


@app.command("leaderboard")
def show_leaderboard(
    limit: Annotated[int | None, typer.Option("--limit", "-l", help="Number of rows")] = 10,
) -> None:
    """Show users ordered by score."""
    users = RewardLedger().leaderboard(limit)

    if not users:
        console.print("[yellow]No users found[/yellow]")
        return

    table = Table(title="Leaderboard")
    table.add_column("#", justify="right")
    table.add_column("ID", style="cyan")
    table.add_column("Email", style="green")
    table.add_column("Score", justify="right")
    table.add_column("Referral Code")

    for rank, user in enumerate(users, start=1):
        table.add_row(str(rank), str(user.id), user.email, str(user.score), user.referral_code or "-")

    console.print(table)


@app.command("add-points")
def add_points(
    user_id: Annotated[int, typer.Argument(help="User ID")],
    points: Annotated[int, typer.Argument(min=0, help="Points to add")],
) -> None:
    """Credit points to a user."""
    ledger = RewardLedger()
    try:
        ledger.add_points(user_id, points)
        balance = ledger.get_balance(user_id)
    except RewardServiceError as e:
        _fail(e)

    console.print(f"[bold green]✓[/bold green] Added {points} points to user {user_id} (score: {balance})")


@app.command("redeem")
def redeem(
    user_id: Annotated[int, typer.Argument(help="Redeeming user ID")],
    code: Annotated[str, typer.Argument(help="Referral code of another user")],
) -> None:
    """Redeem a referral code for a user."""
    try:
        redemption = ReferralRedeemer().redeem(user_id, code)
    except RewardServiceError as e:
        _fail(e)

    console.print(
        f"[bold green]✓[/bold green] Code {redemption.referral_code} redeemed: "
        f"+{redemption.referrer_points} to referrer, +{redemption.redeemer_points} to user {user_id}"
    )


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = settings.host,
    port: Annotated[int, typer.Option("--port", help="Bind port")] = settings.port,
    reload: Annotated[bool, typer.Option("--reload", help="Auto-reload on code changes")] = False,
) -> None:
    """Run the HTTP API."""
    import uvicorn

    console.print(f"[bold blue]Starting API on {host}:{port}...[/bold blue]")
    uvicorn.run(
        "reward_service.api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_config=None,
    )


if __name__ == "__main__":
    app()
