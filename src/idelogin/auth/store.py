"""
OAuth data storage module for IDE Login.

This module defines the OAuthDataStore contract consumed by the session
manager and a SQLite implementation of it. Each account's record is kept as
a set of key/value entries under a namespace owned exclusively by the store,
so several stores can share one database file without seeing each other's
data.
"""
import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union

from idelogin.auth.exceptions import StorageError, ValidationError
from idelogin.auth.models import OAuthRecord

# Configure logger
logger = logging.getLogger(__name__)

KEY_ACCESS_TOKEN = "access_token"
KEY_REFRESH_TOKEN = "refresh_token"
KEY_ACCESS_TOKEN_EXPIRY_TIME = "access_token_expiry_time"
KEY_ACCOUNT_NAME = "account_name"
KEY_AVATAR_URL = "avatar_url"
KEY_OAUTH_SCOPES = "oauth_scopes"

SCOPE_DELIMITER = " "


class OAuthDataStore(ABC):
    """
    Persistent storage for OAuthRecord objects, keyed by email.

    Implementations may raise StorageError from any method; save() raises
    ValidationError for records that cannot be serialized.
    """

    @abstractmethod
    def save(self, record: OAuthRecord) -> None:
        """Store a record, replacing any record for the same email."""

    @abstractmethod
    def load_all(self) -> List[OAuthRecord]:
        """Return every stored record, oldest save first. Never None."""

    @abstractmethod
    def remove(self, email: str) -> None:
        """Remove the record for an email, if any."""

    @abstractmethod
    def clear_all(self) -> None:
        """Remove every record owned by this store."""


def validate_record(record: OAuthRecord) -> None:
    """
    Check that a record can be written.

    Raises:
        ValidationError: If the email is missing or a scope contains the
            scope delimiter
    """
    if not record.email:
        raise ValidationError("OAuth data must have an email address.")
    for scope in record.scopes:
        if SCOPE_DELIMITER in scope:
            raise ValidationError("Scopes must not have a delimiter character.")


def encode_record(record: OAuthRecord) -> Dict[str, str]:
    """Flatten a record into string entries; absent values become empty strings."""
    return {
        KEY_ACCESS_TOKEN: record.access_token or "",
        KEY_REFRESH_TOKEN: record.refresh_token or "",
        KEY_ACCESS_TOKEN_EXPIRY_TIME: str(record.access_token_expiry_time),
        KEY_ACCOUNT_NAME: record.name or "",
        KEY_AVATAR_URL: record.avatar_url or "",
        KEY_OAUTH_SCOPES: SCOPE_DELIMITER.join(sorted(record.scopes)),
    }


def decode_record(email: str, entries: Dict[str, Optional[str]]) -> OAuthRecord:
    """
    Rebuild a record from its string entries.

    Missing entries and an unparseable expiry time fall back to defaults
    instead of failing.
    """
    raw_expiry = entries.get(KEY_ACCESS_TOKEN_EXPIRY_TIME) or "0"
    try:
        expiry = int(raw_expiry)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring corrupt expiry time for {email}: {raw_expiry!r}")
        expiry = 0

    scopes_string = entries.get(KEY_OAUTH_SCOPES) or ""
    scopes = frozenset(s for s in scopes_string.split(SCOPE_DELIMITER) if s)

    return OAuthRecord(
        email=email,
        access_token=entries.get(KEY_ACCESS_TOKEN),
        refresh_token=entries.get(KEY_REFRESH_TOKEN),
        access_token_expiry_time=expiry,
        scopes=scopes,
        name=entries.get(KEY_ACCOUNT_NAME),
        avatar_url=entries.get(KEY_AVATAR_URL),
    )


class SQLiteOAuthDataStore(OAuthDataStore):
    """
    OAuthDataStore backed by a SQLite database.

    Not thread-safe; the session manager serializes access.
    """

    def __init__(
        self,
        db_path: Union[str, Path],
        namespace: str,
        auto_create: bool = True,
    ):
        """
        Initialize the data store.

        Args:
            db_path: Path to the SQLite database file
            namespace: Name of the namespace owned by this store. It must not
                be shared with other stores.
            auto_create: Whether to create the database schema if missing

        Raises:
            StorageError: If the database cannot be initialized
        """
        if not namespace:
            raise ValueError("A namespace is required")

        self.db_path = Path(db_path)
        self.namespace = namespace

        if auto_create:
            self._create_database()

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a connection to the database.

        Raises:
            StorageError: If there's an error connecting to the database
        """
        try:
            conn = sqlite3.connect(str(self.db_path))
            conn.execute("PRAGMA foreign_keys = ON")
            conn.row_factory = sqlite3.Row
            return conn
        except sqlite3.Error as e:
            raise StorageError(f"Error connecting to OAuth database: {e}", e)

    def _create_database(self) -> None:
        """
        Create the database schema.

        Raises:
            StorageError: If there's an error creating the schema
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

            conn = self._get_connection()
            try:
                with conn:
                    conn.executescript("""
                    CREATE TABLE IF NOT EXISTS accounts (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        namespace TEXT NOT NULL,
                        email TEXT NOT NULL,
                        UNIQUE (namespace, email)
                    );

                    CREATE TABLE IF NOT EXISTS account_entries (
                        account_id INTEGER NOT NULL,
                        key TEXT NOT NULL,
                        value TEXT,
                        FOREIGN KEY (account_id) REFERENCES accounts(id) ON DELETE CASCADE,
                        PRIMARY KEY (account_id, key)
                    );

                    CREATE INDEX IF NOT EXISTS idx_accounts_namespace ON accounts(namespace);
                    """)
            finally:
                conn.close()

            logger.debug(f"Ensured OAuth database schema at {self.db_path}")
        except StorageError:
            raise
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Error creating OAuth database: {e}", e)

    def save(self, record: OAuthRecord) -> None:
        """
        Store a record for an account in a single transaction.

        Raises:
            ValidationError: If the record has an illegal scope
            StorageError: If there's an error writing the record
        """
        validate_record(record)
        entries = encode_record(record)

        conn = self._get_connection()
        try:
            with conn:
                # Re-inserting keeps row ids in save order
                conn.execute(
                    "DELETE FROM accounts WHERE namespace = ? AND email = ?",
                    (self.namespace, record.email),
                )
                cursor = conn.execute(
                    "INSERT INTO accounts (namespace, email) VALUES (?, ?)",
                    (self.namespace, record.email),
                )
                account_id = cursor.lastrowid
                conn.executemany(
                    "INSERT INTO account_entries (account_id, key, value) VALUES (?, ?, ?)",
                    [(account_id, key, value) for key, value in entries.items()],
                )
            logger.debug(f"Saved OAuth data for {record.email}")
        except sqlite3.Error as e:
            logger.warning(f"Could not save OAuth data for {record.email}: {e}")
            raise StorageError(f"Error saving OAuth data: {e}", e)
        finally:
            conn.close()

    def load_all(self) -> List[OAuthRecord]:
        """
        Load every record in this store's namespace.

        Raises:
            StorageError: If there's an error reading the database
        """
        conn = self._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT a.id, a.email, e.key, e.value
                FROM accounts a
                LEFT JOIN account_entries e ON e.account_id = a.id
                WHERE a.namespace = ?
                ORDER BY a.id
                """,
                (self.namespace,),
            ).fetchall()
        except sqlite3.Error as e:
            logger.warning(f"Could not load OAuth data: {e}")
            raise StorageError(f"Error loading OAuth data: {e}", e)
        finally:
            conn.close()

        grouped: Dict[int, Dict[str, Optional[str]]] = {}
        emails: Dict[int, str] = {}
        for row in rows:
            emails[row["id"]] = row["email"]
            entries = grouped.setdefault(row["id"], {})
            if row["key"] is not None:
                entries[row["key"]] = row["value"]

        # dicts keep the ORDER BY order
        return [decode_record(emails[account_id], entries)
                for account_id, entries in grouped.items()]

    def remove(self, email: str) -> None:
        """
        Remove one account's record. Missing records are ignored.

        Raises:
            StorageError: If there's an error deleting the record
        """
        self._delete("DELETE FROM accounts WHERE namespace = ? AND email = ?",
                     (self.namespace, email))
        logger.debug(f"Removed OAuth data for {email}")

    def clear_all(self) -> None:
        """
        Remove every record in this store's namespace.

        Raises:
            StorageError: If there's an error deleting the records
        """
        self._delete("DELETE FROM accounts WHERE namespace = ?", (self.namespace,))
        logger.debug(f"Cleared OAuth data in namespace {self.namespace}")

    def _delete(self, query: str, params: tuple) -> None:
        conn = self._get_connection()
        try:
            with conn:
                conn.execute(query, params)
        except sqlite3.Error as e:
            logger.warning(f"Could not remove OAuth data: {e}")
            raise StorageError(f"Error removing OAuth data: {e}", e)
        finally:
            conn.close()
