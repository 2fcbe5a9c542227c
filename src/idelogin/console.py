"""
Console implementation of the login UI for IDE Login.

Used by the command-line interface: opens the authorization URL in the
default browser and asks the user to paste the verification code back.
"""
import logging
import webbrowser
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from idelogin.auth.facades import UiFacade
from idelogin.auth.models import VerificationCodeHolder

# Configure logger
logger = logging.getLogger(__name__)


class ConsoleUiFacade(UiFacade):
    """UiFacade that talks to the user through the terminal."""

    def __init__(self, console: Optional[Console] = None, open_browser: bool = True):
        self.console = console or Console()
        self.open_browser = open_browser

    def obtain_verification_code_via_browser(
        self, title: Optional[str], auth_url: str
    ) -> Optional[str]:
        if title:
            self.console.print(Panel.fit(f"[bold blue]{title}[/bold blue]", border_style="blue"))

        self.console.print("Open the following URL in your browser and grant access:")
        self.console.print(auth_url, style="cyan", soft_wrap=True)
        if self.open_browser:
            try:
                webbrowser.open(auth_url)
            except webbrowser.Error as e:
                logger.debug(f"Could not open a browser: {e}")

        code = typer.prompt("Verification code", default="", show_default=False)
        return code.strip() or None

    def obtain_verification_code_via_local_server(
        self, title: Optional[str]
    ) -> Optional[VerificationCodeHolder]:
        # The redirect listener belongs to the embedding IDE
        logger.warning("Local server login is not available in the console")
        self.console.print(
            "[yellow]Local server login is not available here; use the browser login.[/yellow]"
        )
        return None

    def show_error_dialog(self, title: str, message: str) -> None:
        self.console.print(f"[bold red]{title}:[/bold red] {message}", style="red")

    def ask_yes_or_no(self, title: str, message: str) -> bool:
        self.console.print(f"[bold]{title}[/bold]")
        return typer.confirm(message, default=False)

    def notify_status_indicator(self) -> None:
        pass
