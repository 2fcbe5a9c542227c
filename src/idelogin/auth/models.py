"""
Pydantic models for login entities.

This module defines the value objects that flow between the account roster,
the OAuth data store and the session manager: logged-in accounts, their
persisted OAuth records, token responses and identity payloads.
"""
from typing import FrozenSet, Iterator, List, Optional

from pydantic import BaseModel, Field, validator


def _empty_to_none(value: Optional[str]) -> Optional[str]:
    if value == "":
        return None
    return value


class Account(BaseModel):
    """
    A single logged-in account.

    Accounts are immutable values owned by the roster; a refreshed token
    produces a new Account rather than mutating the old one. Two accounts are
    equal when their emails are equal.
    """
    email: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    access_token_expiry_time: int = 0
    name: Optional[str] = None
    avatar_url: Optional[str] = None

    class Config:
        """Pydantic config."""
        frozen = True

    @validator("access_token", "refresh_token", "name", "avatar_url", pre=True)
    def normalize_empty(cls, v):
        return _empty_to_none(v)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Account):
            return False
        return self.email == other.email

    def __hash__(self) -> int:
        return hash(self.email)


class OAuthRecord(BaseModel):
    """
    Durable representation of one account's authorization state.

    Empty strings are treated as absent values, and a missing scope set is
    stored as an empty one.
    """
    email: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    access_token_expiry_time: int = 0
    scopes: FrozenSet[str] = Field(default_factory=frozenset)
    name: Optional[str] = None
    avatar_url: Optional[str] = None

    class Config:
        """Pydantic config."""
        frozen = True

    @validator("access_token", "refresh_token", "name", "avatar_url", pre=True)
    def normalize_empty(cls, v):
        return _empty_to_none(v)

    @validator("scopes", pre=True)
    def default_scopes(cls, v):
        if v is None:
            return frozenset()
        return v

    @validator("access_token_expiry_time", pre=True)
    def default_expiry(cls, v):
        if v is None or v == "":
            return 0
        return v

    @classmethod
    def from_account(cls, account: Account, scopes) -> "OAuthRecord":
        """Build the persisted form of an account granted the given scopes."""
        return cls(
            email=account.email,
            access_token=account.access_token,
            refresh_token=account.refresh_token,
            access_token_expiry_time=account.access_token_expiry_time,
            scopes=frozenset(scopes),
            name=account.name,
            avatar_url=account.avatar_url,
        )

    def to_account(self) -> Account:
        """Build the in-memory account this record describes."""
        return Account(
            email=self.email,
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            access_token_expiry_time=self.access_token_expiry_time,
            name=self.name,
            avatar_url=self.avatar_url,
        )


class AccountsInfo(BaseModel):
    """Snapshot of the roster, separating the active account from the rest."""
    active_account: Optional[Account] = None
    inactive_accounts: FrozenSet[Account] = Field(default_factory=frozenset)

    class Config:
        """Pydantic config."""
        frozen = True

    @property
    def accounts(self) -> List[Account]:
        """All accounts, active one first."""
        result = [self.active_account] if self.active_account else []
        result.extend(sorted(self.inactive_accounts, key=lambda a: a.email))
        return result

    def emails(self) -> List[str]:
        return [account.email for account in self.accounts]

    def __len__(self) -> int:
        return len(self.inactive_accounts) + (1 if self.active_account else 0)

    def __iter__(self) -> Iterator[Account]:
        return iter(self.accounts)


class VerificationCodeHolder(BaseModel):
    """A verification code and the redirect URL it was issued for."""
    verification_code: Optional[str] = None
    redirect_url: Optional[str] = None


class TokenResponse(BaseModel):
    """Tokens returned from a code exchange or a refresh."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


class UserInfo(BaseModel):
    """Identity of the user a token was issued to."""
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None

    @validator("name", "picture", pre=True)
    def normalize_empty(cls, v):
        return _empty_to_none(v)
