"""
Authentication module for IDE Login.

This module handles Google OAuth login for desktop tools: token exchange and
refresh, persistent storage of credentials and switching between multiple
logged-in accounts.
"""
from idelogin.auth.manager import LoginSessionManager
from idelogin.auth.roster import AccountRoster
from idelogin.auth.store import OAuthDataStore, SQLiteOAuthDataStore
from idelogin.auth.facades import LoggerFacade, StandardLoggerFacade, UiFacade
from idelogin.auth.models import (
    Account,
    AccountsInfo,
    OAuthRecord,
    TokenResponse,
    UserInfo,
    VerificationCodeHolder,
)
from idelogin.auth.oauth import GoogleOAuthClient
from idelogin.auth.exceptions import (
    EmailNotReturnedError,
    InvariantViolation,
    LoginError,
    NetworkError,
    StorageError,
    ValidationError,
)

__all__ = [
    "LoginSessionManager",
    "AccountRoster",
    "OAuthDataStore",
    "SQLiteOAuthDataStore",
    "LoggerFacade",
    "StandardLoggerFacade",
    "UiFacade",
    "Account",
    "AccountsInfo",
    "OAuthRecord",
    "TokenResponse",
    "UserInfo",
    "VerificationCodeHolder",
    "GoogleOAuthClient",
    "EmailNotReturnedError",
    "InvariantViolation",
    "LoginError",
    "NetworkError",
    "StorageError",
    "ValidationError",
]
