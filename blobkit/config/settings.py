"""
Application settings using Pydantic Settings.
"""

from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Literal, Protocol, runtime_checkable

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when a required setting is missing."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Setting not configured: {key}")


@runtime_checkable
class SettingsProvider(Protocol):
    """Anything that can look up a setting by key."""

    def get_setting(self, key: str) -> str:
        """Return the setting value or raise ConfigurationError."""
        ...


class MappingSettingsProvider:
    """Settings provider backed by a plain mapping."""

    def __init__(self, values: Mapping[str, str]):
        self._values = dict(values)

    def get_setting(self, key: str) -> str:
        value = self._values.get(key)
        if value is None or value == "":
            raise ConfigurationError(key)
        return value


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        # Prefer local overrides while keeping .env as the default source
        env_file=(".env.local", ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Backend selection
    storage_backend: Literal["azure", "memory"] = "azure"

    # Azure Storage
    azure_storage_connection_string: SecretStr | None = None
    azure_storage_account_url: str | None = None
    azure_storage_container: str = "myblobstorage"

    # Tutorial blob names and local files
    block_blob_name: str = "myblob"
    append_blob_name: str = "myappendblob"
    upload_source_path: Path = Field(
        Path("TestingBlockBlobs.txt"), description="Local file uploaded to the block blob"
    )
    download_dir: Path = Field(Path("downloads"), description="Directory for downloaded blobs")

    # Listing
    list_page_size: int = Field(100, ge=1, le=5000, description="Blobs per listing page")

    # Caller-directed transport retry
    transport_max_attempts: int = Field(3, ge=1, description="Attempts for retryable calls")

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"

    @property
    def azure_connection_string_str(self) -> str | None:
        """Get Azure Storage connection string as string."""
        if self.azure_storage_connection_string:
            return self.azure_storage_connection_string.get_secret_value()
        return None

    def get_setting(self, key: str) -> str:
        """
        Look up a setting by field name.

        Secret values are unwrapped. Unknown or unset keys raise
        ConfigurationError.
        """
        if key not in type(self).model_fields:
            raise ConfigurationError(key)

        value = getattr(self, key)
        if isinstance(value, SecretStr):
            value = value.get_secret_value()
        if value is None or value == "":
            raise ConfigurationError(key)
        return str(value)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
