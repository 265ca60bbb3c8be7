"""
Application configuration using pydantic-settings with nested structure
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from pathlib import Path


# ============================================================================
# NESTED CONFIGURATION MODELS
# ============================================================================

# Get absolute path to .env file (backend directory)
_BASE_DIR = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BASE_DIR / ".env"


class CoachConfig(BaseSettings):
    """Timing and threshold knobs for the coaching loops."""
    # Screenshot ingestion
    polling_interval_seconds: float = 5.0
    warmup_seconds: float = 12.0

    # Dialogue loop
    dialogue_interval_seconds: float = 10.0
    user_message_cooldown_seconds: float = 30.0
    price_change_threshold: float = 0.01
    volume_change_threshold: float = 0.10
    max_consecutive_no_change: int = 3
    history_max_turns: int = 20

    # Notification gate
    notification_dedup_window_seconds: float = 5.0

    # Batch analysis
    batch_interval_seconds: float = 20.0
    batch_min_artifacts: int = 3
    batch_max_artifacts: int = 5
    batch_min_interval_seconds: float = 15.0

    model_config = SettingsConfigDict(env_prefix="COACH__", extra="ignore")


class CaptureConfig(BaseSettings):
    """Screen capture folder configuration."""
    folder: str = "./data/screenshots"
    extensions: List[str] = [".png", ".jpg", ".jpeg", ".gif", ".webp"]
    model_config = SettingsConfigDict(env_prefix="CAPTURE__", extra="ignore")


class ClaudeConfig(BaseSettings):
    """Anthropic Claude API configuration."""
    api_key: str = ""
    model: str = "claude-sonnet-4-20250514"
    classify_max_tokens: int = 10
    classify_temperature: float = 0.1
    advice_max_tokens: int = 300
    advice_temperature: float = 0.3
    reaction_temperature: float = 0.7
    batch_max_tokens: int = 800
    batch_temperature: float = 0.3
    model_config = SettingsConfigDict(env_prefix="CLAUDE__", extra="ignore")


class WebhookConfig(BaseSettings):
    """Session-started webhook configuration (empty url disables delivery)."""
    url: str = ""
    timeout_seconds: float = 10.0
    model_config = SettingsConfigDict(env_prefix="WEBHOOK__", extra="ignore")


class DatabaseConfig(BaseSettings):
    """Database connection configuration."""
    url: str = "sqlite:///./data/tradecoach.db"
    model_config = SettingsConfigDict(env_prefix="DATABASE__", extra="ignore")


class LoggerConfig(BaseSettings):
    """Logger configuration settings."""
    default_level: str = "INFO"
    file_path: str = "./data/logs/tradecoach.log"
    rotation: str = "10 MB"
    retention: str = "30 days"
    filter_enabled: bool = True
    filter_max_history: int = 5
    filter_time_threshold_seconds: float = 1.0
    model_config = SettingsConfigDict(env_prefix="LOGGER__", extra="ignore")


# ============================================================================
# MAIN SETTINGS CLASS
# ============================================================================

class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Configuration is organized into nested sections for better organization.
    Use double underscore (__) in env vars to access nested configs.

    Example:
        LOGGER__DEFAULT_LEVEL=DEBUG
        COACH__WARMUP_SECONDS=20
        CAPTURE__FOLDER=~/Desktop/coach-screenshots
    """

    # Application metadata
    APP_NAME: str = "TradeCoach"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Nested configuration sections (manually construct from environment)
    COACH: Optional[CoachConfig] = None
    CAPTURE: Optional[CaptureConfig] = None
    CLAUDE: Optional[ClaudeConfig] = None
    WEBHOOK: Optional[WebhookConfig] = None
    DATABASE: Optional[DatabaseConfig] = None
    LOGGER: Optional[LoggerConfig] = None

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Manually construct nested configs AFTER environment is loaded
        self.COACH = CoachConfig()
        self.CAPTURE = CaptureConfig()
        self.CLAUDE = ClaudeConfig()
        self.WEBHOOK = WebhookConfig()
        self.DATABASE = DatabaseConfig()
        self.LOGGER = LoggerConfig()

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        env_nested_delimiter="__",
        validate_default=True,
        env_prefix=""
    )


# Global settings instance
from dotenv import load_dotenv

# Load .env file into environment variables
if _ENV_FILE.exists():
    load_dotenv(str(_ENV_FILE), override=True)

settings = Settings()
