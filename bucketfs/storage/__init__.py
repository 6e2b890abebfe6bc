"""
Filesystem abstraction over S3-compatible object storage.

This package maps a hierarchical file interface (write, read, delete, list,
rename, copy, metadata, visibility) onto a flat bucket/key object store.
Any service implementing the S3 API can serve as the backend: AWS S3,
Aliyun OSS, MinIO, CloudFlare R2, DigitalOcean Spaces, Wasabi and others.
"""

from .cloud_storage import (
    AdapterOptions,
    FileRecord,
    FilesystemAdapter,
    FileType,
    NetworkError,
    ObjectStorageClient,
    QuotaExceededError,
    StorageConfig,
    StorageError,
    StorageFileNotFoundError,
    StoragePermission,
    StoragePermissionError,
    ValidationError,
    Visibility,
)
from .file_utils import FileUtils, file_utils
from .normalizer import MetadataNormalizer, emulate_directories
from .options import Config, UploadOptions, build_upload_options
from .paths import PathKeyTranslator
from .s3_adapter import S3Adapter
from .s3_client import S3ObjectClient


def create_adapter(config: StorageConfig) -> S3Adapter:
    """Create an S3-compatible filesystem adapter."""
    return S3Adapter.from_config(config)


__all__ = [
    # Abstract interfaces
    "FilesystemAdapter",
    "ObjectStorageClient",
    # Concrete implementations
    "S3Adapter",
    "S3ObjectClient",
    # Factory functions
    "create_adapter",
    # Path and metadata handling
    "PathKeyTranslator",
    "MetadataNormalizer",
    "emulate_directories",
    # Configuration and options
    "StorageConfig",
    "AdapterOptions",
    "Config",
    "UploadOptions",
    "build_upload_options",
    # Data models and enums
    "FileRecord",
    "FileType",
    "Visibility",
    "StoragePermission",
    # Exceptions
    "StorageError",
    "StorageFileNotFoundError",
    "StoragePermissionError",
    "QuotaExceededError",
    "NetworkError",
    "ValidationError",
    # Utilities
    "FileUtils",
    "file_utils",
]
