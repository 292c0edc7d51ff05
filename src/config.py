from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

# Application version
VERSION = "0.1.0"


class Settings(BaseSettings):
    """
    Application configuration loaded from environment variables.
    Utilizes pydantic-settings for robust validation and type-casting.
    """

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8086
    LOG_LEVEL: str = "info"
    RELOAD: bool = False
    ROOT_PATH: str = ""
    DOCS_URL: str = "/docs"
    REDOC_URL: str = "/redoc"
    OPENAPI_URL: str = "/openapi.json"

    # API Authentication
    API_TOKEN: Optional[str] = None

    # Probe configuration
    # Some origins reject requests with an empty or library default user agent
    DEFAULT_USER_AGENT: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
    PROBE_PRIMARY_TIMEOUT: float = 8.0
    PROBE_FALLBACK_TIMEOUT: float = 10.0
    # Last byte offset requested by the fallback GET (Range: bytes=0-N)
    PROBE_RANGE_BYTES: int = 1024

    # Liveness policy
    FAILURE_THRESHOLD: int = 3

    # Scheduler configuration
    HEALTH_CHECK_ENABLED: bool = True
    HEALTH_CHECK_INTERVAL_HOURS: float = 2.0
    # Channels checked more recently than this are skipped by a sweep
    RECHECK_INTERVAL_HOURS: float = 2.0
    SWEEP_BATCH_SIZE: int = 5
    SWEEP_BATCH_DELAY: float = 1.0
    # Delay before the first sweep so the rest of the process can finish booting
    SWEEP_WARMUP_DELAY: float = 30.0

    # Channel catalogue bootstrap
    SEED_DEFAULT_CHANNELS: bool = True
    CHANNELS_FILE: Optional[str] = None

    # Redis-backed channel registry
    REDIS_ENABLED: bool = False
    REDIS_HOST: str = "localhost"
    REDIS_SERVER_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_KEY_PREFIX: str = "channel-health:"

    # Model configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="",  # No prefix, read directly from .env
        extra="ignore"  # Ignore extra environment variables from container
    )


# Global settings instance
settings = Settings()
