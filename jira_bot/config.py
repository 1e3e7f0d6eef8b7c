"""
Bot Configuration

Environment-sourced settings for the Jira chat bot.

Sections:
- Jira: base URL, API token, account email, project key
- Model: OpenAI model name and API key
- Slack: bot/app tokens, app mode (socket or http), client id, instructions file

Missing values are logged as warnings but never abort startup; an incomplete
Jira configuration shows up later as connectivity failures.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_PORT = 3000
DEFAULT_INSTRUCTIONS_PATH = str(Path(__file__).parent / "instructions.txt")

APP_MODE_SOCKET = "socket"
APP_MODE_HTTP = "http"


# =============================================================================
# Jira
# =============================================================================

@dataclass
class JiraConfig:
    """Jira connection settings. All four fields are required for a usable client."""

    base_url: str = field(default_factory=lambda: os.getenv("JIRA_BASE_URL", ""))
    token: str = field(default_factory=lambda: os.getenv("JIRA_API_TOKEN", ""))
    email: str = field(default_factory=lambda: os.getenv("JIRA_EMAIL", ""))
    project: str = field(default_factory=lambda: os.getenv("JIRA_PROJECT", ""))

    @property
    def server_url(self) -> str:
        """Base URL with https:// prepended when configured as a bare host."""
        url = self.base_url.strip().rstrip("/")
        if url and "://" not in url:
            url = f"https://{url}"
        return url

    def missing_fields(self) -> List[str]:
        missing = []
        if not self.base_url:
            missing.append("JIRA_BASE_URL")
        if not self.token:
            missing.append("JIRA_API_TOKEN")
        if not self.email:
            missing.append("JIRA_EMAIL")
        if not self.project:
            missing.append("JIRA_PROJECT")
        return missing

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()


# =============================================================================
# Model
# =============================================================================

@dataclass
class ModelConfig:
    """Chat model settings."""

    model_name: str = field(default_factory=lambda: os.getenv("OPENAI_MODEL") or DEFAULT_MODEL)
    api_key: Optional[str] = field(default_factory=lambda: os.getenv("OPENAI_API_KEY"))
    base_url: Optional[str] = field(default_factory=lambda: os.getenv("OPENAI_BASE_URL") or None)


# =============================================================================
# Slack
# =============================================================================

@dataclass
class BotConfig:
    """Slack app identity and runtime settings."""

    bot_token: Optional[str] = field(default_factory=lambda: os.getenv("SLACK_BOT_TOKEN"))
    app_token: Optional[str] = field(default_factory=lambda: os.getenv("SLACK_APP_TOKEN"))
    signing_secret: Optional[str] = field(default_factory=lambda: os.getenv("SLACK_SIGNING_SECRET"))
    app_mode: str = field(default_factory=lambda: (os.getenv("APP_MODE") or APP_MODE_SOCKET).lower())
    client_id: Optional[str] = field(default_factory=lambda: os.getenv("SLACK_CLIENT_ID"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT") or DEFAULT_PORT))
    instructions_path: str = field(
        default_factory=lambda: os.getenv("INSTRUCTIONS_PATH") or DEFAULT_INSTRUCTIONS_PATH
    )
    log_level: str = field(default_factory=lambda: (os.getenv("LOG_LEVEL") or "INFO").upper())

    @property
    def socket_mode(self) -> bool:
        return self.app_mode != APP_MODE_HTTP


@dataclass
class Settings:
    """All bot settings."""

    jira: JiraConfig = field(default_factory=JiraConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    bot: BotConfig = field(default_factory=BotConfig)


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Load settings from the environment.

    Args:
        env_file: Optional path to a .env file (defaults to python-dotenv's lookup)

    Returns:
        Settings populated from environment variables
    """
    load_dotenv(env_file)
    return Settings()


def validate_settings(settings: Settings) -> List[str]:
    """
    Log a warning for every missing required setting.

    Returns:
        Names of the missing environment variables
    """
    missing = settings.jira.missing_fields()
    if missing:
        logger.warning(
            f"Missing required JIRA configuration: {', '.join(missing)}. "
            "JIRA requests will fail until these are set."
        )

    other_missing = []
    if not settings.bot.bot_token:
        other_missing.append("SLACK_BOT_TOKEN")
    if settings.bot.socket_mode and not settings.bot.app_token:
        other_missing.append("SLACK_APP_TOKEN")
    if not settings.bot.socket_mode and not settings.bot.signing_secret:
        other_missing.append("SLACK_SIGNING_SECRET")
    if other_missing:
        logger.warning(f"Missing Slack configuration: {', '.join(other_missing)}")

    if not settings.model.api_key:
        logger.warning("OPENAI_API_KEY not set; chat replies will fail")
        other_missing.append("OPENAI_API_KEY")

    return missing + other_missing
