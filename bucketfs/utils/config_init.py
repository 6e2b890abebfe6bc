"""
Configuration initialization module.

Sets up logging from the environment settings and builds the storage
adapter at application startup.
"""

from typing import Optional

import structlog

from bucketfs.factories.storage_factory import create_storage
from bucketfs.storage.s3_adapter import S3Adapter
from bucketfs.utils.env_config import AppSettings, get_settings
from bucketfs.utils.logging_config import configure_logging

logger = structlog.get_logger(__name__)


def setup_logging(settings: AppSettings) -> None:
    """Set up logging based on configuration."""
    configure_logging(**settings.get_logging_config())


def initialize_storage(settings: Optional[AppSettings] = None) -> Optional[S3Adapter]:
    """
    Initialize logging and the storage adapter.

    Args:
        settings: Settings to use; the global settings when omitted

    Returns:
        The configured adapter, or None when storage credentials are missing
    """
    if settings is None:
        settings = get_settings()

    setup_logging(settings)

    adapter = create_storage(settings)
    if adapter is None:
        logger.warning("Storage not configured", environment=settings.environment)
    else:
        logger.info(
            "Storage initialized",
            environment=settings.environment,
            bucket=adapter.get_bucket(),
            prefix=adapter.get_path_prefix(),
        )
    return adapter
