"""Runtime configuration loaded from the environment (and an optional .env file)."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from hubspot_connector.model import AppError

DEFAULT_BASE_URL = "https://api.hubapi.com"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    access_token: str | None = Field(default=None, alias="HUBSPOT_ACCESS_TOKEN")
    base_url: str = Field(default=DEFAULT_BASE_URL, alias="HUBSPOT_BASE_URL")
    timeout: float = Field(default=30.0, alias="HUBSPOT_TIMEOUT")

    # One workbook per record type, e.g. "<data_dir>/customers.xlsx"
    data_dir: Path = Field(default=Path("./data for upload"), alias="DATA_DIR")
    report_path: Path = Field(default=Path("./output/Errors.xlsx"), alias="REPORT_PATH")

    def require_token(self) -> str:
        if not self.access_token:
            raise AppError("Environment", "No HubSpot access token!")
        return self.access_token


def load_settings(**overrides: object) -> Settings:
    """Read settings, failing fast when the HubSpot access token is missing."""
    values = {
        Settings.model_fields[name].alias or name: value
        for name, value in overrides.items()
        if value is not None
    }
    settings = Settings(**values)
    settings.require_token()
    return settings


__all__ = ["Settings", "load_settings"]
