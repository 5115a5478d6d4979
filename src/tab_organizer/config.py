"""
Configuration management for the application.
"""

import logging
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tab_organizer.agents.models import MAX_CONTENT_CHARS


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Inference provider ("openai" or "gemini")
    inference_provider: str = "openai"

    # API Keys
    openai_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None

    # Model Configuration
    openai_llm_model: str = "gpt-4o-mini"
    openai_base_url: Optional[str] = None  # OpenAI-compatible server (top-K is forwarded)
    gemini_model: str = "gemini-1.5-flash"

    # Sampling parameters, fixed for the lifetime of the session
    inference_temperature: float = 0.3
    inference_top_k: Optional[int] = 40

    # Storage
    store_path: Path = Path("./data/tab_organizer.db")

    # Content extraction
    content_max_chars: int = 1000
    fetch_timeout: float = 10.0

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("content_max_chars")
    @classmethod
    def check_content_max_chars(cls, v: int) -> int:
        """Page excerpts never exceed MAX_CONTENT_CHARS characters."""
        if not 0 < v <= MAX_CONTENT_CHARS:
            raise ValueError(f"content_max_chars must be between 1 and {MAX_CONTENT_CHARS}")
        return v


# Global settings instance
settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure application-wide logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
