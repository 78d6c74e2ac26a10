"""
Integrity Monitor Configuration Settings

Thresholds default to the values used by the browser prototype:
presence poll every 3s, fast keystroke gap 100ms, 150 WPM, 50-char paste.
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Configuration for the Integrity Monitor service."""

    # API Settings
    APP_NAME: str = "Interview Integrity Monitor"
    DEBUG: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_DIR: str = "logs"

    # Session timing
    CLOCK_TICK_SECONDS: float = 1.0
    PRESENCE_POLL_SECONDS: float = 3.0

    # Classification thresholds
    FAST_KEYSTROKE_GAP_MS: float = 100.0
    VELOCITY_WPM_THRESHOLD: float = 150.0
    PASTE_LENGTH_THRESHOLD: int = 50

    # External code review (messages-style LLM endpoint)
    ANALYSIS_API_URL: Optional[str] = None
    ANALYSIS_API_KEY: Optional[str] = None
    ANALYSIS_MODEL: str = "claude-sonnet-4-20250514"
    ANALYSIS_MAX_TOKENS: int = 1000
    ANALYSIS_TIMEOUT_SECONDS: float = 30.0

    # Export
    EXPORT_DIR: str = "exports"

    # Stopped sessions stay readable (status, events, export) this long
    SESSION_RETENTION_SECONDS: float = 300.0

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    def classifier_thresholds(self) -> dict:
        """Thresholds in the shape EventClassifier expects"""
        return {
            "presence_interval_seconds": self.PRESENCE_POLL_SECONDS,
            "fast_keystroke_gap_ms": self.FAST_KEYSTROKE_GAP_MS,
            "velocity_wpm": self.VELOCITY_WPM_THRESHOLD,
            "paste_length": float(self.PASTE_LENGTH_THRESHOLD),
        }


settings = Settings()
