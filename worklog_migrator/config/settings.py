"""Application settings management using Pydantic Settings."""

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from dotenv import load_dotenv
import os

# Load environment variables from .env file
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 'yes', 'on')


class TrackerConfig(BaseModel):
    """Connection settings of one Jira instance."""

    name: str
    base_url: str = ""
    email: str = ""
    api_token: str = ""
    tempo_token: str = ""
    tempo_api_url: str = "https://api.tempo.io"
    verify_ssl: bool = True
    api_version: str = "3"

    @property
    def url(self) -> str:
        """Server URL without trailing slash."""
        return self.base_url.rstrip('/')

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.email and self.api_token and self.base_url.startswith('http'))

    @property
    def uses_tempo(self) -> bool:
        return bool(self.tempo_token and self.tempo_token.strip())


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Source Jira (where time is logged originally)
    source_jira_server: str = os.getenv('SOURCE_JIRA_SERVER', '')
    source_jira_email: str = os.getenv('SOURCE_JIRA_EMAIL', '')
    source_jira_api_token: str = os.getenv('SOURCE_JIRA_API_TOKEN', '')

    # Destination Jira (where time is migrated to)
    dest_jira_server: str = os.getenv('DEST_JIRA_SERVER', '')
    dest_jira_email: str = os.getenv('DEST_JIRA_EMAIL', '')
    dest_jira_api_token: str = os.getenv('DEST_JIRA_API_TOKEN', '')
    dest_tempo_token: str = os.getenv('DEST_TEMPO_TOKEN', '')  # Tempo Cloud token, optional
    tempo_api_url: str = os.getenv('TEMPO_API_URL', 'https://api.tempo.io')

    jira_verify_ssl: bool = _env_flag('JIRA_VERIFY_SSL', 'true')
    jira_api_version: str = os.getenv('JIRA_API_VERSION', '3')
    jira_timeout: float = float(os.getenv('JIRA_TIMEOUT', '30'))

    # Presentation and routing
    time_display_mode: str = os.getenv('TIME_DISPLAY_MODE', 'hm')  # "hm" or "decimal"
    rules_file: Optional[str] = os.getenv('RULES_FILE', None)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def source_tracker(self) -> TrackerConfig:
        """Connection settings of the source Jira."""
        return TrackerConfig(
            name="Jira X",
            base_url=self.source_jira_server,
            email=self.source_jira_email,
            api_token=self.source_jira_api_token,
            verify_ssl=self.jira_verify_ssl,
            api_version=self.jira_api_version,
        )

    def destination_tracker(self) -> TrackerConfig:
        """Connection settings of the destination Jira (and Tempo)."""
        return TrackerConfig(
            name="Jira Y",
            base_url=self.dest_jira_server,
            email=self.dest_jira_email,
            api_token=self.dest_jira_api_token,
            tempo_token=self.dest_tempo_token,
            tempo_api_url=self.tempo_api_url,
            verify_ssl=self.jira_verify_ssl,
            api_version=self.jira_api_version,
        )


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()
