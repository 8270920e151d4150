"""
Configuration management for the ParcelAI tracker.
Handles loading settings from environment variables and config files.
"""

import os
from pathlib import Path
from typing import Optional
from dataclasses import dataclass
from dotenv import load_dotenv


PLACEHOLDER_API_KEY = "your-trackingmore-api-key"


@dataclass
class TrackerConfig:
    """Main configuration class for the tracker."""

    # === TrackingMore (aggregator fallback) ===
    trackingmore_api_key: str = ""
    trackingmore_api_url: str = "https://api.trackingmore.com/v4"

    # === Timeouts (seconds) ===
    scrape_timeout: float = 15.0
    probe_timeout: float = 10.0
    aggregator_timeout: float = 20.0

    # === Cache ===
    cache_sweep_minutes: int = 15  # expired-entry sweep while serving

    # === HTTP service ===
    host: str = "127.0.0.1"
    port: int = 8000

    # Logging
    log_level: str = "INFO"
    log_file: str = ""  # empty = console only

    @property
    def aggregator_configured(self) -> bool:
        """True when a real TrackingMore API key is present."""
        key = self.trackingmore_api_key
        return bool(key and key != PLACEHOLDER_API_KEY)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "TrackerConfig":
        """Load configuration from environment variables."""

        # Try to load from .env file
        if env_file:
            load_dotenv(env_file)
        else:
            # Try common locations
            for env_path in ["config.env", ".env", "../config.env"]:
                if Path(env_path).exists():
                    load_dotenv(env_path)
                    break

        return cls(
            # TrackingMore
            trackingmore_api_key=os.getenv("TRACKINGMORE_API_KEY", ""),
            trackingmore_api_url=os.getenv(
                "TRACKINGMORE_API_URL", "https://api.trackingmore.com/v4"
            ).rstrip("/"),

            # Timeouts
            scrape_timeout=float(os.getenv("SCRAPE_TIMEOUT", "15")),
            probe_timeout=float(os.getenv("PROBE_TIMEOUT", "10")),
            aggregator_timeout=float(os.getenv("AGGREGATOR_TIMEOUT", "20")),

            # Cache
            cache_sweep_minutes=int(os.getenv("CACHE_SWEEP_MINUTES", "15")),

            # HTTP service
            host=os.getenv("HOST", "127.0.0.1"),
            port=int(os.getenv("PORT", "8000")),

            # Logging
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE", ""),
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if self.scrape_timeout <= 0:
            errors.append("SCRAPE_TIMEOUT must be positive")
        if self.probe_timeout <= 0:
            errors.append("PROBE_TIMEOUT must be positive")
        if self.aggregator_timeout <= 0:
            errors.append("AGGREGATOR_TIMEOUT must be positive")
        if self.cache_sweep_minutes <= 0:
            errors.append("CACHE_SWEEP_MINUTES must be positive")
        if not self.trackingmore_api_url.startswith(("http://", "https://")):
            errors.append("TRACKINGMORE_API_URL must be an http(s) URL")

        # Aggregator - warning if not configured
        if not self.aggregator_configured:
            errors.append("Warning: TRACKINGMORE_API_KEY not configured - aggregator fallback disabled")

        return errors


# Global config instance
_config: Optional[TrackerConfig] = None


def get_config() -> TrackerConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = TrackerConfig.from_env()
    return _config


def init_config(env_file: Optional[str] = None) -> TrackerConfig:
    """Initialize configuration from environment."""
    global _config
    _config = TrackerConfig.from_env(env_file)
    return _config
