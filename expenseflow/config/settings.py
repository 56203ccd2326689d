"""
Configuration Management for ExpenseFlow

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Firebase is optional: without credentials the session runs against the
in-memory document store and the local fallback storage only.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FirebaseSettings(BaseSettings):
    """Firestore (firebase-admin) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FIREBASE_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Firebase service account credentials JSON"
    )
    project_id: Optional[str] = Field(
        default=None,
        description="Firebase project ID (taken from the credentials if omitted)"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Firebase credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class LocalStorageSettings(BaseSettings):
    """Local fallback storage used while nobody is signed in."""

    model_config = SettingsConfigDict(
        env_prefix="LOCAL_STORAGE_",
        extra="ignore"
    )

    directory: str = Field(
        default=".expenseflow",
        description="Directory holding one JSON file per storage key"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Family sharing
    invitation_expiry_days: int = Field(
        default=7,
        ge=1,
        le=90,
        description="Days before a family invitation can no longer be accepted"
    )

    # Delete behaviour: "optimistic" or "pessimistic"
    delete_policy: str = Field(
        default="optimistic",
        pattern="^(optimistic|pessimistic)$",
        description="Whether local deletes wait for the remote store"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def firebase(self) -> FirebaseSettings:
        return FirebaseSettings()

    @property
    def local_storage(self) -> LocalStorageSettings:
        return LocalStorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.firebase
        results["firebase"] = True
    except Exception as e:
        results["firebase"] = False
        results["firebase_error"] = str(e)

    try:
        _ = settings.local_storage
        results["local_storage"] = True
    except Exception as e:
        results["local_storage"] = False
        results["local_storage_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
