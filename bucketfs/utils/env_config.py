"""
Environment-based configuration for the storage adapter.

Settings come from environment variables, optionally seeded from a ``.env``
file in the working directory.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import structlog
from dotenv import load_dotenv

logger = structlog.get_logger(__name__)

# Load environment variables from .env file
env_file = Path.cwd() / ".env"
if env_file.exists():
    load_dotenv(env_file, override=True)
    logger.info("Loaded environment variables", env_file=str(env_file))


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    value = os.getenv(key, "").lower()
    return value in ("true", "1", "yes", "on") if value else default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer value from environment variable."""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


@dataclass
class AppSettings:
    """Application settings from environment variables."""

    # Environment
    environment: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))

    # Storage Configuration
    storage_access_key_id: Optional[str] = field(default_factory=lambda: os.getenv("STORAGE_ACCESS_KEY_ID"))
    storage_secret_access_key: Optional[str] = field(default_factory=lambda: os.getenv("STORAGE_SECRET_ACCESS_KEY"))
    storage_bucket_name: Optional[str] = field(default_factory=lambda: os.getenv("STORAGE_BUCKET_NAME"))
    storage_endpoint_url: Optional[str] = field(default_factory=lambda: os.getenv("STORAGE_ENDPOINT_URL"))
    storage_region: str = field(default_factory=lambda: os.getenv("STORAGE_REGION", "us-east-1"))
    storage_use_ssl: bool = field(default_factory=lambda: get_env_bool("STORAGE_USE_SSL", True))
    storage_path_prefix: str = field(default_factory=lambda: os.getenv("STORAGE_PATH_PREFIX", ""))
    storage_multipart_threshold: int = field(
        default_factory=lambda: get_env_int("STORAGE_MULTIPART_THRESHOLD", 134217728)  # 128MB
    )
    storage_default_visibility: str = field(default_factory=lambda: os.getenv("STORAGE_DEFAULT_VISIBILITY", "private"))
    storage_cdn_domain: Optional[str] = field(default_factory=lambda: os.getenv("STORAGE_CDN_DOMAIN"))
    storage_addressing_style: str = field(default_factory=lambda: os.getenv("STORAGE_ADDRESSING_STYLE", "auto"))
    storage_max_pool_connections: int = field(default_factory=lambda: get_env_int("STORAGE_MAX_POOL_CONNECTIONS", 10))
    storage_max_attempts: int = field(default_factory=lambda: get_env_int("STORAGE_MAX_ATTEMPTS", 3))

    # Logging Configuration
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_json_format: bool = field(default_factory=lambda: get_env_bool("LOG_JSON_FORMAT", False))

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.environment == "production":
            if not self.storage_access_key_id or not self.storage_secret_access_key:
                logger.warning("Storage credentials not provided for production environment")
            if not self.storage_use_ssl:
                logger.warning("SSL disabled for storage in production environment")

    def get_storage_config(self) -> dict:
        """Get storage configuration as a dictionary."""
        return {
            "access_key_id": self.storage_access_key_id,
            "secret_access_key": self.storage_secret_access_key,
            "bucket_name": self.storage_bucket_name,
            "endpoint_url": self.storage_endpoint_url,
            "region": self.storage_region,
            "use_ssl": self.storage_use_ssl,
            "path_prefix": self.storage_path_prefix,
            "multipart_threshold": self.storage_multipart_threshold,
            "default_visibility": self.storage_default_visibility,
            "cdn_domain": self.storage_cdn_domain,
            "addressing_style": self.storage_addressing_style,
            "max_pool_connections": self.storage_max_pool_connections,
            "max_attempts": self.storage_max_attempts,
        }

    def get_logging_config(self) -> dict:
        """Get logging configuration as a dictionary."""
        return {
            "level": self.log_level,
            "json_format": self.log_json_format,
        }


# Global settings instance
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    """Get the global application settings instance."""
    global _settings
    if _settings is None:
        _settings = AppSettings()
        logger.info("Loaded settings", environment=_settings.environment)
    return _settings


def reload_settings() -> AppSettings:
    """Reload the global application settings."""
    global _settings
    if env_file.exists():
        load_dotenv(env_file, override=True)
    _settings = AppSettings()
    logger.info("Reloaded settings", environment=_settings.environment)
    return _settings
