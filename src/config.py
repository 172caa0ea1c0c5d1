"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file).

    Every variable is prefixed with ``COVERAGE_SYNC_``, e.g.
    ``COVERAGE_SYNC_BASE_URL``.
    """

    # --- App ---
    app_name: str = "Coverage Sync"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Backend ---
    base_url: str = "https://your.server.domain.com"
    http_timeout_seconds: float = 30.0
    probe_timeout_seconds: float = 5.0

    # --- Speed test ---
    speedtest_asset_url: str = (
        "https://storage.googleapis.com/gd-prod/images/"
        "a910d418-7123-4bc4-aa3b-ef7e25e74ae6.60c498c559810aa0.webp"
    )
    speedtest_enabled: bool = True

    # --- Local storage ---
    queue_db_path: str = "data/offline_measurements.db"
    queue_capacity: int = 100
    credential_store_path: str = "data/api_prefs.json"

    # --- Device ---
    device_id: str = ""  # empty = generate once and persist in the prefs file
    app_label: str = "coverage-sync"

    # --- Scheduling ---
    sync_interval_seconds: float = 0.0  # 0 disables the built-in periodic runner

    model_config = SettingsConfigDict(
        env_prefix="COVERAGE_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
