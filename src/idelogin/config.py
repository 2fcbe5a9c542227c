"""
Configuration module for IDE Login.

This module uses Pydantic Settings to handle loading environment variables,
secrets, and application configuration with proper typing and validation.
"""
import json
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from pydantic import (
    Field,
    validator,
    SecretStr,
)
# NOTE: In Pydantic v2 `BaseSettings` lives in the dedicated
# `pydantic_settings` package.
from pydantic_settings import BaseSettings, SettingsConfigDict

from idelogin.auth.userinfo import IdentityFormat


class LogLevel(str, Enum):
    """Log levels for the application."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LoginSettings(BaseSettings):
    """Settings for Google OAuth login."""
    client_id: str = Field(
        default="",
        description="OAuth client ID of the desktop application",
    )
    client_secret: SecretStr = Field(
        default=SecretStr(""),
        description="OAuth client secret of the desktop application",
    )
    scopes: List[str] = Field(
        default=[
            "https://www.googleapis.com/auth/userinfo.email",
            "https://www.googleapis.com/auth/userinfo.profile",
            "https://www.googleapis.com/auth/cloud-platform",
        ],
        description="OAuth scopes required by the application",
    )
    store_path: Path = Field(
        default=Path.home() / ".config" / "ide-login" / "oauth.db",
        description="Path to the SQLite database holding OAuth data",
    )
    store_namespace: str = Field(
        default="ide-login",
        description="Namespace reserved for this application's OAuth data",
    )
    identity_url: Optional[str] = Field(
        default=None,
        description="Endpoint queried for the email of a new login "
                    "(defaults to the endpoint matching identity_format)",
    )
    identity_format: IdentityFormat = Field(
        default=IdentityFormat.USER_INFO,
        description="Response format of the identity endpoint",
    )
    connect_timeout_ms: int = Field(
        default=5000,
        description="Connect timeout for identity queries in milliseconds",
        ge=100,
        le=60000,
    )
    read_timeout_ms: int = Field(
        default=3000,
        description="Read timeout for identity queries in milliseconds",
        ge=100,
        le=60000,
    )

    @validator("scopes")
    def validate_scopes(cls, v: List[str]) -> List[str]:
        """Scopes are persisted space-separated, so they may not contain whitespace."""
        if not v:
            raise ValueError("At least one OAuth scope is required")
        for scope in v:
            if not scope or any(c.isspace() for c in scope):
                raise ValueError(f"Invalid OAuth scope: {scope!r}")
        return v

    @validator("store_namespace")
    def validate_namespace(cls, v: str) -> str:
        if not v:
            raise ValueError("Store namespace must not be empty")
        return v


class AppSettings(BaseSettings):
    """Main application settings."""
    app_name: str = Field(
        default="IDE Login",
        description="Name of the application",
    )
    version: str = Field(
        default="1.0.0",
        description="Application version",
    )
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )


class Settings(BaseSettings):
    """Root settings class combining all application settings."""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="IDE_LOGIN_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=AppSettings)
    login: LoginSettings = Field(default_factory=LoginSettings)

    @classmethod
    def from_json(cls, file_path: Union[str, Path]) -> "Settings":
        """Load settings from a JSON file."""
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {file_path}")

        with open(file_path, "r") as f:
            config_data = json.load(f)

        return cls.parse_obj(config_data)

    def save_to_json(self, file_path: Union[str, Path]) -> None:
        """Save settings to a JSON file. Secrets are written in clear text."""
        file_path = Path(file_path)

        if not file_path.parent.exists():
            file_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = json.loads(self.json(exclude_none=True))
        config_dict["login"]["client_secret"] = self.login.client_secret.get_secret_value()

        with open(file_path, "w") as f:
            json.dump(config_dict, f, indent=2)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, initializing if necessary."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(file_path: Optional[Union[str, Path]] = None) -> Settings:
    """Load settings from a file or environment variables."""
    global _settings

    if file_path:
        _settings = Settings.from_json(file_path)
    else:
        _settings = Settings()

    return _settings
