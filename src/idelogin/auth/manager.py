"""
Login session manager for IDE Login.

This module provides the LoginSessionManager class, which turns OAuth
verification codes into a persisted, queryable set of logged-in Google
accounts. It drives login, logout, account switching and token refresh,
reconciles persisted accounts against the configured scopes at startup and
notifies registered listeners of every login status change.
"""
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple

from google.auth.transport.requests import AuthorizedSession
from google.oauth2.credentials import Credentials

from idelogin.auth.exceptions import (
    EmailNotReturnedError,
    InvariantViolation,
    NetworkError,
    StorageError,
)
from idelogin.auth.facades import LoggerFacade, StandardLoggerFacade, UiFacade
from idelogin.auth.models import (
    Account,
    AccountsInfo,
    OAuthRecord,
    TokenResponse,
    UserInfo,
)
from idelogin.auth.oauth import OOB_REDIRECT_URI, TOKEN_URI, GoogleOAuthClient
from idelogin.auth.roster import AccountRoster
from idelogin.auth.store import OAuthDataStore, SQLiteOAuthDataStore
from idelogin.auth import userinfo
from idelogin.auth.userinfo import DEFAULT_TIMEOUT, IdentityFormat

# Configure logger
logger = logging.getLogger(__name__)

LoginListener = Callable[[AccountsInfo], None]


class LoginSessionManager:
    """
    Manages the Google accounts a desktop tool is signed in with.

    Every successful login makes the new account active; switch_active_account()
    is the only other way to change the active account. State changes are
    applied in a fixed order: roster, then persistence, then the UI status
    indicator, then login listeners, so listeners only ever see state that is
    already stored.

    Not thread-safe: the embedding application must serialize all calls into
    an instance, e.g. by making them from a single UI thread. Only listener
    registration may happen concurrently with notification.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        scopes: Iterable[str],
        data_store: OAuthDataStore,
        ui_facade: UiFacade,
        logger_facade: Optional[LoggerFacade] = None,
        roster: Optional[AccountRoster] = None,
        oauth_client: Optional[GoogleOAuthClient] = None,
        identity_url: Optional[str] = None,
        identity_format: IdentityFormat = IdentityFormat.USER_INFO,
        timeout: Tuple[float, float] = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the manager and load previously persisted accounts.

        Args:
            client_id: OAuth client ID of the application
            client_secret: OAuth client secret of the application
            scopes: Authorization scopes the application requires
            data_store: Persistent storage for OAuth data
            ui_facade: User interaction collaborator
            logger_facade: Log collaborator (defaults to the logging module)
            roster: Account roster to use (a new empty one by default)
            oauth_client: Token exchange collaborator
            identity_url: Endpoint queried for the email of a new login
            identity_format: Response format of that endpoint
            timeout: (connect, read) timeouts for identity queries in seconds
        """
        self._client_id = client_id
        self._client_secret = client_secret
        self._scopes: FrozenSet[str] = frozenset(scopes)
        self._data_store = data_store
        self._ui = ui_facade
        self._logger_facade = logger_facade or StandardLoggerFacade()
        self._roster = roster if roster is not None else AccountRoster()
        self._oauth_client = oauth_client or GoogleOAuthClient(
            client_id, client_secret, self._scopes
        )
        self._identity_format = IdentityFormat(identity_format)
        if identity_url is None:
            identity_url = (
                userinfo.GET_EMAIL_URL
                if self._identity_format == IdentityFormat.EMAIL
                else userinfo.USER_INFO_URL
            )
        self._identity_url = identity_url
        self._timeout = timeout

        self._listeners: List[LoginListener] = []
        self._listeners_lock = threading.Lock()

        self._retrieve_saved_credentials()

    @classmethod
    def from_settings(
        cls,
        settings,
        ui_facade: UiFacade,
        data_store: Optional[OAuthDataStore] = None,
        **kwargs,
    ) -> "LoginSessionManager":
        """
        Build a manager from LoginSettings.

        A SQLite data store at the configured path and namespace is created
        unless one is given.
        """
        if data_store is None:
            data_store = SQLiteOAuthDataStore(settings.store_path, settings.store_namespace)

        return cls(
            client_id=settings.client_id,
            client_secret=settings.client_secret.get_secret_value(),
            scopes=settings.scopes,
            data_store=data_store,
            ui_facade=ui_facade,
            identity_url=settings.identity_url,
            identity_format=settings.identity_format,
            timeout=(settings.connect_timeout_ms / 1000.0, settings.read_timeout_ms / 1000.0),
            **kwargs,
        )

    # ------------------------------------------------------------------ #
    # Listeners                                                          #
    # ------------------------------------------------------------------ #

    def add_login_listener(self, listener: LoginListener) -> None:
        """Register a callable to be notified with an AccountsInfo on status changes."""
        with self._listeners_lock:
            self._listeners.append(listener)

    def remove_login_listener(self, listener: LoginListener) -> None:
        with self._listeners_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify_login_status_change(self) -> None:
        accounts_info = self.list_accounts()
        with self._listeners_lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(accounts_info)
            except Exception as e:
                self._logger_facade.log_error("Login listener failed", e)

    # ------------------------------------------------------------------ #
    # State queries                                                      #
    # ------------------------------------------------------------------ #

    def is_logged_in(self) -> bool:
        return not self._roster.is_empty()

    def list_accounts(self) -> AccountsInfo:
        """
        Snapshot of the logged-in accounts for UI widgets and listeners.

        The active account is the one whose credential get_active_credential()
        returns. The snapshot does not change when the roster does.
        """
        return self._roster.list_accounts()

    def get_active_credential(self) -> Optional[Credentials]:
        """
        Return a new credential object for the active account, or None if logged out.

        Each call builds a fresh object; changing it does not affect the
        manager's state.
        """
        if not self.is_logged_in():
            return None

        account = self._get_active_account()
        return self._make_credentials(
            account.access_token, account.refresh_token, account.access_token_expiry_time
        )

    def create_authorized_session(self) -> AuthorizedSession:
        """
        Return a requests session that signs requests as the active account.

        Tokens the session refreshes on its own are not persisted.

        Raises:
            InvariantViolation: If no account is signed in
        """
        self._get_active_account()
        return AuthorizedSession(self.get_active_credential())

    def fetch_oauth2_client_id(self) -> str:
        return self._client_id

    def fetch_oauth2_client_secret(self) -> str:
        return self._client_secret

    def fetch_oauth2_refresh_token(self) -> Optional[str]:
        """
        Raises:
            InvariantViolation: If no account is signed in
        """
        return self._get_active_account().refresh_token

    def fetch_access_token(self) -> str:
        """
        Return the active account's access token, refreshing it if it has expired.

        Raises:
            InvariantViolation: If no account is signed in
            NetworkError: If a needed refresh fails
            StorageError: If the refreshed token cannot be stored
        """
        account = self._get_active_account()
        expiry_time = account.access_token_expiry_time
        if not account.access_token or expiry_time == 0 or time.time() >= expiry_time:
            return self.fetch_oauth2_token()
        return account.access_token

    def fetch_oauth2_token(self) -> str:
        """
        Refresh the active account's access token and store the result.

        The account is replaced with one holding the new token and expiry,
        and its full record is saved again.

        Raises:
            InvariantViolation: If no account is signed in
            NetworkError: If the refresh fails
            StorageError: If the refreshed token cannot be stored
        """
        account = self._get_active_account()
        try:
            response = self._oauth_client.refresh(account.refresh_token)
        except NetworkError as e:
            self._logger_facade.log_error("Could not obtain an OAuth2 access token.", e)
            raise

        refreshed = Account(
            email=account.email,
            access_token=response.access_token,
            refresh_token=response.refresh_token or account.refresh_token,
            access_token_expiry_time=self._expiry_time(response),
            name=account.name,
            avatar_url=account.avatar_url,
        )
        self._roster.add(refreshed)
        try:
            self._data_store.save(OAuthRecord.from_account(refreshed, self._scopes))
        except StorageError as e:
            self._logger_facade.log_error("Could not store the refreshed access token.", e)
            raise

        logger.info(f"Refreshed access token for {refreshed.email}")
        return refreshed.access_token

    # ------------------------------------------------------------------ #
    # Login                                                              #
    # ------------------------------------------------------------------ #

    def log_in(self, title: Optional[str] = None) -> bool:
        """
        Sign in through the browser, with the user pasting back the verification code.

        This always prompts, so it can be used to add further accounts.

        Args:
            title: Title shown at the top of the interaction, for example
                "Importing a project from Drive requires signing in.", or None

        Returns:
            True if the user signed in, False otherwise
        """
        auth_url = self._oauth_client.authorization_url(OOB_REDIRECT_URI)
        verification_code = self._ui.obtain_verification_code_via_browser(title, auth_url)
        if not verification_code:
            logger.debug("Login cancelled by the user")
            return False

        return self._log_in_helper(verification_code, OOB_REDIRECT_URI)

    def log_in_with_local_server(self, title: Optional[str] = None) -> bool:
        """
        Sign in through a local redirect listener provided by the UI.

        Returns:
            True if the user signed in, False otherwise
        """
        code_holder = self._ui.obtain_verification_code_via_local_server(title)
        if code_holder is None or not code_holder.verification_code:
            logger.debug("Login cancelled by the user")
            return False

        return self._log_in_helper(code_holder.verification_code, code_holder.redirect_url)

    def _log_in_helper(self, verification_code: str, redirect_uri: Optional[str]) -> bool:
        snapshot = self._roster.snapshot()
        try:
            token_response = self._oauth_client.exchange_code(verification_code, redirect_uri)
            account = self._build_account(token_response)

            self._roster.add(account)
            try:
                # The other records are unchanged; saving the new active
                # account last keeps it active on reload.
                self._data_store.save(OAuthRecord.from_account(account, self._scopes))
            except StorageError:
                self._roster.restore(snapshot)
                self._restore_stored_accounts(account.email)
                raise
        except (NetworkError, EmailNotReturnedError, StorageError) as e:
            self._ui.show_error_dialog(
                "Error while signing in",
                f"An error occurred while trying to sign in: {e}",
            )
            self._logger_facade.log_error("Could not sign in", e)
            return False

        logger.info(f"Signed in as {account.email}")
        self._ui.notify_status_indicator()
        self._notify_login_status_change()
        return True

    def _build_account(self, token_response: TokenResponse) -> Account:
        # The token was just issued; no expiry so the query never triggers a refresh
        credentials = self._make_credentials(
            token_response.access_token, token_response.refresh_token
        )
        user_info = self._query_identity(credentials)
        return Account(
            email=user_info.email,
            access_token=token_response.access_token,
            refresh_token=token_response.refresh_token,
            access_token_expiry_time=self._expiry_time(token_response),
            name=user_info.name,
            avatar_url=user_info.picture,
        )

    def _restore_stored_accounts(self, email: str) -> None:
        """Bring the store back in line with the restored roster, best effort."""
        try:
            if email not in self._roster:
                self._data_store.remove(email)
            if self.is_logged_in():
                self._persist_credentials()
        except StorageError as e:
            self._logger_facade.log_warning(f"Could not restore stored data for {email}: {e}")

    # ------------------------------------------------------------------ #
    # Logout and switching                                               #
    # ------------------------------------------------------------------ #

    def log_out(self, show_prompt: bool = True) -> bool:
        """
        Sign out of all accounts.

        Args:
            show_prompt: Whether to ask the user for confirmation first

        Returns:
            True if the user was logged out or already was, False if the
            user chose not to log out
        """
        return self.log_out_all(show_prompt)

    def log_out_all(self, show_prompt: bool = True) -> bool:
        """
        Sign out of all accounts and clear every stored credential.

        Raises:
            StorageError: If the stored credentials cannot be cleared. The
                accounts are already signed out in memory.
        """
        if not self.is_logged_in():
            return True

        if show_prompt and not self._ui.ask_yes_or_no(
            "Sign out?", "Are you sure you want to sign out?"
        ):
            return False

        self._roster.clear()
        try:
            self._data_store.clear_all()
        except StorageError as e:
            self._logger_facade.log_error("Could not clear stored credentials", e)
            self._ui.notify_status_indicator()
            raise

        logger.info("Signed out of all accounts")
        self._ui.notify_status_indicator()
        self._notify_login_status_change()
        return True

    def log_out_account(self, email: str, show_prompt: bool = True) -> bool:
        """
        Sign out of a single account.

        Returns:
            True if the account was signed out, False if it is unknown or
            the user chose not to sign out

        Raises:
            StorageError: If the account's stored credentials cannot be removed
        """
        if email not in self._roster:
            return False

        if show_prompt and not self._ui.ask_yes_or_no(
            "Sign out?", f"Are you sure you want to sign out of {email}?"
        ):
            return False

        self._roster.remove(email)
        try:
            self._data_store.remove(email)
            if self.is_logged_in():
                self._persist_credentials()
        except StorageError as e:
            self._logger_facade.log_error(f"Could not remove stored credentials for {email}", e)
            self._ui.notify_status_indicator()
            raise

        logger.info(f"Signed out of {email}")
        self._ui.notify_status_indicator()
        self._notify_login_status_change()
        return True

    def switch_active_account(self, email: str) -> bool:
        """
        Make the account with the given email active.

        Does nothing if there is no such account.

        Returns:
            True if the account exists and is now active

        Raises:
            StorageError: If the new state cannot be stored
        """
        if not email:
            raise ValueError("email is required")

        if not self._roster.switch_active(email):
            return False

        try:
            self._persist_credentials()
        except StorageError as e:
            self._logger_facade.log_error("Could not store credentials", e)
            raise

        self._ui.notify_status_indicator()
        self._notify_login_status_change()
        return True

    # ------------------------------------------------------------------ #
    # Identity queries                                                   #
    # ------------------------------------------------------------------ #

    def query_email(self, credentials: Credentials) -> str:
        """
        Raises:
            NetworkError: If the query fails or returns a non-2xx status
            EmailNotReturnedError: If no email is returned
        """
        return userinfo.query_email(credentials, self._identity_url, self._timeout)

    def query_user_info(self, credentials: Credentials) -> UserInfo:
        """
        Raises:
            NetworkError: If the query fails or returns a non-2xx status
            EmailNotReturnedError: If no email is returned
        """
        return userinfo.query_user_info(credentials, self._identity_url, self._timeout)

    def _query_identity(self, credentials: Credentials) -> UserInfo:
        if self._identity_format == IdentityFormat.EMAIL:
            return UserInfo(email=self.query_email(credentials))
        return self.query_user_info(credentials)

    # ------------------------------------------------------------------ #
    # Persistence                                                        #
    # ------------------------------------------------------------------ #

    def _persist_credentials(self) -> None:
        """Save every account, the active one last so it is restored as active."""
        active = self._get_active_account()
        for account in self._roster.accounts():
            if account.email != active.email:
                self._data_store.save(OAuthRecord.from_account(account, self._scopes))
        self._data_store.save(OAuthRecord.from_account(active, self._scopes))

    def _retrieve_saved_credentials(self) -> None:
        if self.is_logged_in():
            raise InvariantViolation("Should be called only once in the constructor.")

        try:
            records = self._data_store.load_all()
        except StorageError as e:
            self._logger_facade.log_error("Could not load stored credentials", e)
            return

        for record in records:
            if not record.refresh_token or not record.scopes:
                logger.debug(f"Discarding incomplete stored credentials for {record.email}")
                self._discard_record(record.email)
                continue

            if record.scopes != self._scopes:
                self._logger_facade.log_warning(
                    "OAuth scope set for stored credentials no longer valid, logging out."
                )
                self._logger_facade.log_warning(
                    f"{sorted(self._scopes)} vs. {sorted(record.scopes)}"
                )
                self._discard_record(record.email)
                continue

            self._roster.add(record.to_account())

        if self.is_logged_in():
            logger.info(f"Loaded {len(self._roster)} stored account(s)")

    def _discard_record(self, email: str) -> None:
        try:
            self._data_store.remove(email)
        except StorageError as e:
            self._logger_facade.log_error(f"Could not remove stored credentials for {email}", e)

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #

    def _get_active_account(self) -> Account:
        if not self.is_logged_in():
            raise InvariantViolation("No account is signed in")
        return self._roster.get_active()

    def _make_credentials(
        self,
        access_token: Optional[str],
        refresh_token: Optional[str],
        expiry_time: int = 0,
    ) -> Credentials:
        expiry = None
        if expiry_time:
            # google-auth compares against naive UTC datetimes
            expiry = datetime.fromtimestamp(expiry_time, tz=timezone.utc).replace(tzinfo=None)

        return Credentials(
            token=access_token,
            refresh_token=refresh_token,
            token_uri=TOKEN_URI,
            client_id=self._client_id,
            client_secret=self._client_secret,
            scopes=sorted(self._scopes),
            expiry=expiry,
        )

    @staticmethod
    def _expiry_time(token_response: TokenResponse) -> int:
        if not token_response.expires_in:
            return 0
        return int(time.time()) + token_response.expires_in
