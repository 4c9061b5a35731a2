"""
Configuration Management for Somatic Scan

Environment-based configuration using Pydantic Settings.
"""
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra fields from .env file
    )

    # Application
    app_name: str = "Somatic Scan"
    app_version: str = "0.1.0"
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Package log level")

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_prefix: str = "/api/v1"
    cors_origins: List[str] = ["*"]

    # Capture scheduler cadences (milliseconds)
    inference_interval_ms: int = Field(default=100, description="Landmark inference tick")
    alignment_interval_ms: int = Field(default=200, description="Alignment re-check tick")
    hold_tick_ms: int = Field(default=100, description="Hold timer tick")
    retry_delay_ms: int = Field(default=2000, description="Auto-retry delay after a failed capture")
    timing_variant: str = Field(default="long", description="'short' (3s) or 'long' (2s hold + 3s countdown)")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
