"""
Factory for creating storage adapters.
"""

from bucketfs.storage.cloud_storage import StorageConfig
from bucketfs.storage.s3_adapter import S3Adapter
from bucketfs.utils.env_config import AppSettings


def create_storage(settings: AppSettings) -> S3Adapter | None:
    """Create a storage adapter based on configuration."""
    config_dict = settings.get_storage_config()

    # Check if all required fields are present and not empty/whitespace
    access_key = config_dict["access_key_id"]
    secret_key = config_dict["secret_access_key"]
    bucket_name = config_dict["bucket_name"]

    if access_key and access_key.strip() and secret_key and secret_key.strip() and bucket_name and bucket_name.strip():
        config = StorageConfig(**config_dict)
        return S3Adapter.from_config(config)
    return None
