"""
Configuration management for the playlist campaign planner.
Handles data file locations, planning defaults and environment configuration.
"""

import os
import streamlit as st
from dotenv import load_dotenv
from typing import Optional
from dataclasses import dataclass


@dataclass
class AppConfig:
    """Application configuration settings."""
    playlist_file: str = "playlists.xlsx"
    vendor_file: str = "vendors.xlsx"
    campaign_store_path: str = "campaign_store.json"
    cache_dir: str = ".cache"
    cache_timeout_hours: int = 24
    default_duration_days: int = 90
    commission_rate: float = 0.20
    clamp_progress: bool = False
    retry_attempts: int = 3
    supported_file_formats: list = None

    def __post_init__(self):
        if self.supported_file_formats is None:
            self.supported_file_formats = ['.xlsx', '.xls', '.csv']


class ConfigManager:
    """Manages application configuration and settings."""

    def __init__(self):
        self._config: Optional[AppConfig] = None

    def load_config(self) -> AppConfig:
        """Load configuration from Streamlit secrets, then environment variables."""
        if self._config is not None:
            return self._config

        load_dotenv()

        commission_rate = self._get_float_setting("COMMISSION_RATE", 0.20)
        if not 0 <= commission_rate <= 1:
            raise ValueError(f"COMMISSION_RATE must be between 0 and 1, got {commission_rate}")

        self._config = AppConfig(
            playlist_file=self._get_setting("PLAYLIST_FILE", "playlists.xlsx"),
            vendor_file=self._get_setting("VENDOR_FILE", "vendors.xlsx"),
            campaign_store_path=self._get_setting("CAMPAIGN_STORE_PATH", "campaign_store.json"),
            cache_dir=self._get_setting("CACHE_DIR", ".cache"),
            cache_timeout_hours=self._get_int_setting("CACHE_TIMEOUT_HOURS", 24),
            default_duration_days=self._get_int_setting("DEFAULT_DURATION_DAYS", 90),
            commission_rate=commission_rate,
            clamp_progress=self._get_bool_setting("CLAMP_PROGRESS", False),
            retry_attempts=self._get_int_setting("RETRY_ATTEMPTS", 3)
        )

        return self._config

    def reset(self):
        """Forget the loaded configuration so the next load re-reads sources."""
        self._config = None

    def _get_secret_or_env(self, key: str) -> Optional[str]:
        """Get value from Streamlit secrets or environment variables."""
        # Streamlit raises when no secrets file exists
        try:
            if hasattr(st, 'secrets') and key in st.secrets:
                return str(st.secrets[key])
        except Exception:
            pass

        return os.getenv(key)

    def _get_setting(self, key: str, default: str) -> str:
        value = self._get_secret_or_env(key)
        return value if value is not None else default

    def _get_int_setting(self, key: str, default: int) -> int:
        value = self._get_secret_or_env(key)
        if value is not None:
            try:
                return int(value)
            except ValueError:
                pass
        return default

    def _get_float_setting(self, key: str, default: float) -> float:
        value = self._get_secret_or_env(key)
        if value is not None:
            try:
                return float(value)
            except ValueError:
                pass
        return default

    def _get_bool_setting(self, key: str, default: bool) -> bool:
        value = self._get_secret_or_env(key)
        if value is None:
            return default
        return value.strip().lower() in ('1', 'true', 'yes', 'on')

    def get_default_duration(self) -> int:
        config = self.load_config()
        return config.default_duration_days

    def get_commission_rate(self) -> float:
        config = self.load_config()
        return config.commission_rate

    def get_cache_timeout(self) -> int:
        """Get cache timeout in hours."""
        config = self.load_config()
        return config.cache_timeout_hours

    def is_valid_file_format(self, filename: str) -> bool:
        """Check if file format is supported."""
        config = self.load_config()
        return any(filename.lower().endswith(fmt) for fmt in config.supported_file_formats)


# Global configuration manager instance
config_manager = ConfigManager()
