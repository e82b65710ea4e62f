"""
Configuration management using Pydantic Settings.
Loads from environment variables and .env file.
"""

from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application configuration loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # LLM Provider
    llm_provider: Literal["openai", "anthropic"] = Field(
        default="openai",
        description="Which LLM provider to use"
    )

    # OpenAI
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openai_model: str = Field(default="gpt-4o", description="OpenAI model name")

    # Anthropic
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    anthropic_model: str = Field(
        default="claude-3-5-sonnet-20241022",
        description="Anthropic model name"
    )

    # Storage
    database_path: str = Field(
        default="./data/searchprobe.db",
        description="SQLite database path"
    )
    artifacts_dir: str = Field(
        default="./artifacts",
        description="Root directory for screenshots"
    )

    # Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Browser
    browser_mode: Literal["local", "browserbase"] = Field(
        default="local",
        description="Launch Chromium locally or connect to a Browserbase session"
    )
    browserbase_api_key: str = Field(default="", description="Browserbase API key")
    browserbase_project_id: str = Field(default="", description="Browserbase project ID")
    browserbase_api_url: str = Field(
        default="https://api.browserbase.com/v1",
        description="Browserbase REST API base URL"
    )
    browserbase_session_timeout: int = Field(
        default=300,
        description="Remote session lifetime in seconds"
    )
    browserbase_max_retries: int = Field(
        default=3,
        description="Session creation attempts when rate limited"
    )
    headless: bool = Field(default=True, description="Run browser in headless mode")
    navigation_timeout: int = Field(default=30000, description="Page navigation timeout in ms")
    action_timeout_s: float = Field(
        default=30.0,
        description="Upper bound for one natural-language action"
    )
    settle_delay_ms: int = Field(
        default=1500,
        description="Fixed wait after an interaction before checking the page"
    )
    results_settle_ms: int = Field(
        default=3000,
        description="Wait for a results page to render before the screenshot"
    )

    # Probe
    max_transient_retries: int = Field(
        default=2,
        description="Consecutive transient page errors tolerated per difficulty tier"
    )

    # Batch scheduler
    batch_concurrency: int = Field(
        default=5,
        ge=1,
        description="Maximum simultaneous browser sessions"
    )
    batch_page_size: int = Field(default=10, ge=1, description="Queued items fetched per tick")
    poll_interval_s: float = Field(default=10.0, description="Seconds between scheduler ticks")
    item_timeout_s: float = Field(default=300.0, description="Wall-clock limit per probe")
    scheduler_autostart: bool = Field(
        default=True,
        description="Start the poll loop when the API starts"
    )


def load_settings(**overrides) -> Settings:
    """
    Build the settings object once at process start.

    Args:
        **overrides: Explicit values taking precedence over the environment

    Returns:
        Settings instance to pass into component constructors
    """
    return Settings(**overrides)
