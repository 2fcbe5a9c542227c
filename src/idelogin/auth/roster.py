"""
Account roster for IDE Login.

The roster is the in-memory registry of logged-in accounts owned by a
LoginSessionManager. It keeps at most one account per email and designates
one of them as active.

Not thread-safe; the session manager must serialize access to it.
"""
import logging
from collections import OrderedDict
from typing import List, Optional, Tuple

from idelogin.auth.exceptions import InvariantViolation
from idelogin.auth.models import Account, AccountsInfo

# Configure logger
logger = logging.getLogger(__name__)


class AccountRoster:
    """
    Email-keyed set of logged-in accounts with an active designation.

    Accounts are kept in the order they were last added. Adding an account
    always makes it active; switch_active() is the only other way to change
    the active account.
    """

    def __init__(self):
        self._accounts: "OrderedDict[str, Account]" = OrderedDict()
        self._active_email: Optional[str] = None

    def clear(self) -> None:
        self._accounts.clear()
        self._active_email = None

    def is_empty(self) -> bool:
        return not self._accounts

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, email: object) -> bool:
        return email in self._accounts

    def add(self, account: Account) -> None:
        """
        Add an account and make it active.

        An existing account with the same email is discarded first; none of
        its fields carry over.
        """
        if not account.email:
            raise ValueError("Account must have an email address")

        self._accounts.pop(account.email, None)
        self._accounts[account.email] = account
        self._active_email = account.email
        logger.debug(f"Added account {account.email} to roster")

    def remove(self, email: str) -> None:
        """
        Remove an account if present.

        When the active account is removed, the most recently added remaining
        account becomes active.
        """
        if self._accounts.pop(email, None) is None:
            return

        if self._active_email == email:
            self._active_email = next(reversed(self._accounts), None)
        logger.debug(f"Removed account {email} from roster")

    def switch_active(self, email: str) -> bool:
        """
        Make the account with the given email active.

        Returns:
            True if the account exists, False otherwise (active unchanged)
        """
        if email not in self._accounts:
            return False

        self._active_email = email
        return True

    def get(self, email: str) -> Optional[Account]:
        return self._accounts.get(email)

    def get_active(self) -> Account:
        """
        Return the active account.

        Raises:
            InvariantViolation: If the roster is empty
        """
        if self._active_email is None:
            raise InvariantViolation("No active account in an empty roster")
        return self._accounts[self._active_email]

    def accounts(self) -> List[Account]:
        """Copy of the accounts in the order they were added."""
        return list(self._accounts.values())

    def snapshot(self) -> Tuple[List[Account], Optional[str]]:
        """Capture the roster contents so a failed change can be undone."""
        return list(self._accounts.values()), self._active_email

    def restore(self, snapshot: Tuple[List[Account], Optional[str]]) -> None:
        accounts, active_email = snapshot
        self._accounts = OrderedDict((account.email, account) for account in accounts)
        self._active_email = active_email

    def list_accounts(self) -> AccountsInfo:
        """Detached snapshot separating the active account from the others."""
        active = None
        inactive = set()
        for email, account in self._accounts.items():
            if email == self._active_email:
                active = account
            else:
                inactive.add(account)
        return AccountsInfo(active_account=active, inactive_accounts=frozenset(inactive))
