"""
Collaborator interfaces implemented by the embedding application.

The session manager talks to the user and to the application's log through
these interfaces so it can run inside any IDE or console front end.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

from idelogin.auth.models import VerificationCodeHolder


class UiFacade(ABC):
    """User interactions that are part of the login and logout processes."""

    @abstractmethod
    def obtain_verification_code_via_browser(
        self, title: Optional[str], auth_url: str
    ) -> Optional[str]:
        """
        Send the user to the authorization URL and return the verification code.

        The implementation may read the code from an embedded browser or ask
        the user to paste it.

        Args:
            title: Title for the widget hosting the interaction, or None
            auth_url: Authorization URL to open

        Returns:
            The verification code, or None if the user cancelled
        """

    @abstractmethod
    def obtain_verification_code_via_local_server(
        self, title: Optional[str]
    ) -> Optional[VerificationCodeHolder]:
        """
        Run the login through a local redirect listener owned by the UI.

        Returns:
            The verification code together with the redirect URL it was
            issued for, or None if the user cancelled or an error occurred
        """

    @abstractmethod
    def show_error_dialog(self, title: str, message: str) -> None:
        """Display an error and block until the user dismisses it."""

    @abstractmethod
    def ask_yes_or_no(self, title: str, message: str) -> bool:
        """Ask a yes/no question and block until the user answers."""

    @abstractmethod
    def notify_status_indicator(self) -> None:
        """Tell the login status widget to refresh itself."""


class LoggerFacade(ABC):
    """Log channel of the embedding application."""

    @abstractmethod
    def log_error(self, message: str, cause: Optional[BaseException] = None) -> None:
        """Record an error with the exception that caused it."""

    @abstractmethod
    def log_warning(self, message: str) -> None:
        """Record a warning."""


class StandardLoggerFacade(LoggerFacade):
    """LoggerFacade writing to a standard library logger."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("idelogin")

    def log_error(self, message: str, cause: Optional[BaseException] = None) -> None:
        if cause is not None:
            self.logger.error(
                f"{message}: {cause}",
                exc_info=(type(cause), cause, cause.__traceback__),
            )
        else:
            self.logger.error(message)

    def log_warning(self, message: str) -> None:
        self.logger.warning(message)
