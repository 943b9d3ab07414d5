"""
Configuration management for the market-resolution oracle.

This module handles all configuration loading from environment variables
and builds the explicit OracleConfig that is passed into the resolution
pipeline. Nothing in the pipeline reads the environment directly.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import requests
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()


class Config:
    """
    Centralized environment configuration for the oracle.

    All configuration values are loaded from environment variables with
    sensible defaults where appropriate. The LLM key is optional; without it
    the oracle resolves markets from heuristics alone.
    """

    # LLM Configuration (optional)
    OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4.1-mini")
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com")
    OPENAI_MAX_RETRIES: int = int(os.getenv("OPENAI_MAX_RETRIES", "2"))
    OPENAI_TEMPERATURE: float = float(os.getenv("OPENAI_TEMPERATURE", "0.1"))
    OPENAI_MAX_OUTPUT_TOKENS: int = int(os.getenv("OPENAI_MAX_OUTPUT_TOKENS", "500"))

    # News feed Configuration
    NEWS_FEED_BASES: list[str] = [
        base.strip()
        for base in os.getenv(
            "NEWS_FEED_BASES",
            "https://r.jina.ai/https://news.google.com/rss/search?hl=en-US&gl=US&ceid=US:en&q=,"
            "https://r.jina.ai/http://news.google.com/rss/search?hl=en-US&gl=US&ceid=US:en&q=",
        ).split(",")
        if base.strip()
    ]
    MAX_SIGNALS_PER_QUERY: int = int(os.getenv("MAX_SIGNALS_PER_QUERY", "8"))
    USER_AGENT: str = os.getenv(
        "ORACLE_USER_AGENT",
        "Mozilla/5.0 (compatible; AiOracleBot/1.0; +https://example.com/oracle)"
    )

    # Resolution Parameters
    RESOLUTION_THRESHOLD: float = float(os.getenv("RESOLUTION_THRESHOLD", "0.6"))
    DOMAIN_TOLERANCE_RATIO: float = float(os.getenv("DOMAIN_TOLERANCE_RATIO", "0.1"))
    MEDIAN_BLEND_WEIGHT: float = float(os.getenv("MEDIAN_BLEND_WEIGHT", "0.5"))

    # Request Timeouts (seconds)
    API_TIMEOUT: int = int(os.getenv("API_TIMEOUT", "20"))

    # Database Configuration
    DB_PATH: Path = Path(os.getenv("DB_PATH", "data/markets.db"))

    # Scheduler Configuration
    ORACLE_RECHECK_INTERVAL_MINUTES: int = int(os.getenv("ORACLE_RECHECK_INTERVAL_MINUTES", "5"))
    SYNC_INTERVAL_MINUTES: int = int(os.getenv("SYNC_INTERVAL_MINUTES", "5"))
    SCHEDULER_TIMEZONE: str = os.getenv("SCHEDULER_TIMEZONE", "UTC")

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: Optional[Path] = Path(os.getenv("LOG_FILE", "logs/oracle.log")) if os.getenv("LOG_FILE") else None

    @classmethod
    def validate(cls) -> tuple[bool, list[str]]:
        """
        Validate configuration values.

        Returns:
            tuple: (is_valid, list_of_errors)
        """
        errors: list[str] = []

        if not cls.NEWS_FEED_BASES:
            errors.append("NEWS_FEED_BASES must contain at least one base URL")

        if cls.MAX_SIGNALS_PER_QUERY < 1:
            errors.append("MAX_SIGNALS_PER_QUERY must be at least 1")

        if not (0.0 <= cls.RESOLUTION_THRESHOLD <= 1.0):
            errors.append("RESOLUTION_THRESHOLD must be between 0.0 and 1.0")

        if cls.DOMAIN_TOLERANCE_RATIO < 0:
            errors.append("DOMAIN_TOLERANCE_RATIO cannot be negative")

        if not (0.0 <= cls.MEDIAN_BLEND_WEIGHT <= 1.0):
            errors.append("MEDIAN_BLEND_WEIGHT must be between 0.0 and 1.0")

        if cls.OPENAI_MAX_RETRIES < 0:
            errors.append("OPENAI_MAX_RETRIES cannot be negative")

        if not (0.0 <= cls.OPENAI_TEMPERATURE <= 2.0):
            errors.append("OPENAI_TEMPERATURE must be between 0.0 and 2.0")

        if cls.API_TIMEOUT < 1:
            errors.append("API_TIMEOUT must be at least 1 second")

        if cls.ORACLE_RECHECK_INTERVAL_MINUTES < 0:
            errors.append("ORACLE_RECHECK_INTERVAL_MINUTES cannot be negative")

        if cls.SYNC_INTERVAL_MINUTES < 1:
            errors.append("SYNC_INTERVAL_MINUTES must be at least 1")

        return (len(errors) == 0, errors)

    @classmethod
    def ensure_directories(cls) -> None:
        """Create directories for the database and log file if they don't exist."""
        cls.DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        if cls.LOG_FILE:
            cls.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)


@dataclass
class OracleConfig:
    """
    Explicit configuration passed into every pipeline function.

    Attributes:
        http_client: Object exposing requests-style ``get``/``post`` used for
            every outbound call (feed fetches and the LLM endpoint)
        feed_bases: Ordered feed base URLs; the encoded query is appended
        max_signals_per_query: Signals kept per query (total cap is this
            value times the number of queries)
        resolution_threshold: Minimum confidence for a resolved verdict
        logger: Logger used by the check pipeline
        llm_api_key: Bearer token for the LLM endpoint; None disables it
        llm_model: Model name sent to the LLM endpoint
        llm_base_url: Base URL of the LLM endpoint
        llm_max_retries: Extra attempts after the first LLM call fails
        llm_backoff_seconds: Linear backoff step between LLM attempts
        llm_temperature: Sampling temperature for the LLM call
        llm_max_output_tokens: Output token cap for the LLM call
        request_timeout: Timeout in seconds applied to every network call
        recheck_interval: Minimum spacing between two checks of one market
        domain_tolerance_ratio: Share of the domain span accepted outside it
        median_blend_weight: Weight of the weighted median in the estimate
        user_agent: User-Agent header for feed requests
    """
    http_client: Any = field(default_factory=requests.Session)
    feed_bases: list[str] = field(default_factory=lambda: list(Config.NEWS_FEED_BASES))
    max_signals_per_query: int = Config.MAX_SIGNALS_PER_QUERY
    resolution_threshold: float = Config.RESOLUTION_THRESHOLD
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("oracle"))
    llm_api_key: Optional[str] = Config.OPENAI_API_KEY
    llm_model: str = Config.OPENAI_MODEL
    llm_base_url: str = Config.OPENAI_BASE_URL
    llm_max_retries: int = Config.OPENAI_MAX_RETRIES
    llm_backoff_seconds: float = 0.5
    llm_temperature: float = Config.OPENAI_TEMPERATURE
    llm_max_output_tokens: int = Config.OPENAI_MAX_OUTPUT_TOKENS
    request_timeout: float = Config.API_TIMEOUT
    recheck_interval: timedelta = timedelta(minutes=Config.ORACLE_RECHECK_INTERVAL_MINUTES)
    domain_tolerance_ratio: float = Config.DOMAIN_TOLERANCE_RATIO
    median_blend_weight: float = Config.MEDIAN_BLEND_WEIGHT
    user_agent: str = Config.USER_AGENT

    @classmethod
    def from_env(cls, **overrides: Any) -> "OracleConfig":
        """
        Build a configuration from the current environment.

        ``Config`` is read at import time, so values are re-read here to pick
        up variables set after import (e.g. by a test or a wrapper script).

        Args:
            **overrides: Field values that take precedence over the environment

        Returns:
            OracleConfig instance
        """
        values: dict[str, Any] = {
            "llm_api_key": os.getenv("OPENAI_API_KEY", Config.OPENAI_API_KEY),
            "llm_model": os.getenv("OPENAI_MODEL", Config.OPENAI_MODEL),
            "llm_base_url": os.getenv("OPENAI_BASE_URL", Config.OPENAI_BASE_URL),
        }
        values.update(overrides)
        return cls(**values)
