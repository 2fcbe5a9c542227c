"""
Custom exceptions for the login module.

This module defines exceptions that can be raised while validating and
persisting OAuth data, talking to the OAuth and identity endpoints, and
querying the in-memory account roster.
"""


class LoginError(Exception):
    """Base exception class for login errors."""

    def __init__(self, message: str = "Login error occurred", original_error=None):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)


class ValidationError(LoginError, ValueError):
    """Raised when an OAuth record cannot be stored as given (caller bug)."""

    def __init__(self, message: str = "Invalid OAuth data"):
        super().__init__(message)


class StorageError(LoginError):
    """Raised when the storage backend fails to read, write or remove data."""

    def __init__(self, message: str = "OAuth data storage error", original_error=None):
        super().__init__(message, original_error)


class NetworkError(LoginError, IOError):
    """Raised when a token exchange, refresh or identity query fails in transit."""

    def __init__(self, message: str = "Network error", original_error=None):
        super().__init__(message, original_error)


class EmailNotReturnedError(LoginError):
    """Raised when the identity endpoint answers but supplies no usable email."""

    def __init__(self, message: str = "Server failed to return email address"):
        super().__init__(message)


class InvariantViolation(LoginError, RuntimeError):
    """Raised on programmer errors such as asking an empty roster for its active account."""

    def __init__(self, message: str = "Invariant violated"):
        super().__init__(message)
