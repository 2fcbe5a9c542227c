#!/usr/bin/env python3
"""
Command-line interface for IDE Login.

This module provides a command-line interface using Typer for signing in to
Google accounts, listing and switching them, and printing access tokens.
"""
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from idelogin.auth import LoginError, LoginSessionManager
from idelogin.config import Settings, get_settings, load_settings
from idelogin.console import ConsoleUiFacade

# Create Typer app
app = typer.Typer(
    name="IDE Login",
    help="Google account login for desktop development tools",
    add_completion=False,
)

# Rich console for pretty output
console = Console()

# Configure logger
logger = logging.getLogger(__name__)

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to a JSON config file",
    exists=True,
    dir_okay=False,
    readable=True,
)


def configure_logging(level: str) -> None:
    """Send log records to the console through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load(config_file: Optional[Path]) -> Settings:
    load_dotenv()
    settings = load_settings(config_file)
    configure_logging(settings.app.log_level.value)
    return settings


def _create_manager(settings: Settings) -> LoginSessionManager:
    if not settings.login.client_id:
        console.print(
            "[bold red]Error:[/bold red] OAuth client ID is not configured.\n"
            "Set IDE_LOGIN_LOGIN__CLIENT_ID and IDE_LOGIN_LOGIN__CLIENT_SECRET "
            "or pass a config file.",
            style="red",
        )
        raise typer.Exit(code=1)

    return LoginSessionManager.from_settings(settings.login, ConsoleUiFacade(console))


@app.command("login")
def login(
    config_file: Optional[Path] = ConfigOption,
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Title shown before signing in"),
) -> None:
    """Sign in with a Google account (adds to the signed-in accounts)."""
    manager = _create_manager(_load(config_file))
    if not manager.log_in(title):
        raise typer.Exit(code=1)

    active = manager.list_accounts().active_account
    console.print(f"[green]✓ Signed in as {active.email}[/green]")


@app.command("logout")
def logout(
    config_file: Optional[Path] = ConfigOption,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Sign out of all accounts."""
    manager = _create_manager(_load(config_file))
    try:
        if not manager.log_out_all(show_prompt=not yes):
            console.print("[yellow]Sign out cancelled[/yellow]")
            raise typer.Exit(code=1)
    except LoginError as e:
        console.print(f"[bold red]Error:[/bold red] {e}", style="red")
        raise typer.Exit(code=1)
    console.print("[green]✓ Signed out[/green]")


@app.command("logout-account")
def logout_account(
    email: str = typer.Argument(..., help="Email of the account to sign out"),
    config_file: Optional[Path] = ConfigOption,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Sign out of a single account."""
    manager = _create_manager(_load(config_file))
    try:
        if not manager.log_out_account(email, show_prompt=not yes):
            console.print(f"[yellow]Not signed out of {email}[/yellow]")
            raise typer.Exit(code=1)
    except LoginError as e:
        console.print(f"[bold red]Error:[/bold red] {e}", style="red")
        raise typer.Exit(code=1)
    console.print(f"[green]✓ Signed out of {email}[/green]")


@app.command("accounts")
def list_accounts(config_file: Optional[Path] = ConfigOption) -> None:
    """List the signed-in accounts."""
    manager = _create_manager(_load(config_file))
    accounts_info = manager.list_accounts()
    if not len(accounts_info):
        console.print("[yellow]Not signed in[/yellow]")
        return

    table = Table(title="Signed-in Accounts")
    table.add_column("Account", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Active", style="magenta")

    for account in accounts_info:
        table.add_row(
            account.email,
            account.name or "",
            "✓" if account == accounts_info.active_account else "",
        )

    console.print(table)


@app.command("switch")
def switch(
    email: str = typer.Argument(..., help="Email of the account to make active"),
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """Make another signed-in account active."""
    manager = _create_manager(_load(config_file))
    try:
        switched = manager.switch_active_account(email)
    except LoginError as e:
        console.print(f"[bold red]Error:[/bold red] {e}", style="red")
        raise typer.Exit(code=1)

    if not switched:
        console.print(f"[bold red]Error:[/bold red] {email} is not signed in", style="red")
        raise typer.Exit(code=1)
    console.print(f"[green]✓ {email} is now active[/green]")


@app.command("token")
def print_token(config_file: Optional[Path] = ConfigOption) -> None:
    """Print a valid access token for the active account."""
    manager = _create_manager(_load(config_file))
    if not manager.is_logged_in():
        console.print("[bold red]Error:[/bold red] Not signed in", style="red")
        raise typer.Exit(code=1)

    try:
        token = manager.fetch_access_token()
    except LoginError as e:
        console.print(f"[bold red]Error:[/bold red] {e}", style="red")
        raise typer.Exit(code=1)
    typer.echo(token)


@app.command("version")
def show_version() -> None:
    """Show version information."""
    settings = get_settings()

    table = Table(title=f"{settings.app.app_name} v{settings.app.version}")
    table.add_column("Component", style="cyan")
    table.add_column("Version/Status", style="green")

    table.add_row("Python", sys.version.split()[0])
    table.add_row("Log Level", settings.app.log_level.value)
    table.add_row(
        "OAuth Client",
        "Configured" if settings.login.client_id else "Not configured",
    )
    table.add_row("Credential Store", str(settings.login.store_path))

    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
