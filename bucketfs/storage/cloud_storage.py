"""
Abstract storage interfaces and shared types for the filesystem adapter.

This module defines the data records, configuration models, error hierarchy
and the two abstract seams of the package: the object-storage client the
adapter talks to, and the filesystem interface the adapter exposes.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import IO, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FileType(str, Enum):
    """Kind of entry a record describes."""

    FILE = "file"
    DIR = "dir"


class Visibility(str, Enum):
    """Two-valued visibility exposed to callers."""

    PUBLIC = "public"
    PRIVATE = "private"


class StoragePermission(str, Enum):
    """Canned ACLs understood by S3-compatible backends."""

    PRIVATE = "private"
    PUBLIC_READ = "public-read"
    PUBLIC_READ_WRITE = "public-read-write"
    AUTHENTICATED_READ = "authenticated-read"


@dataclass(frozen=True)
class FileRecord:
    """Normalized metadata about a stored file or directory."""

    path: str | None
    type: FileType = FileType.FILE
    dirname: str | None = None
    basename: str | None = None
    filename: str | None = None
    extension: str | None = None
    size: int | None = None
    mimetype: str | None = None
    timestamp: int | None = None
    visibility: str | None = None
    storage_class: str | None = None
    etag: str | None = None
    metadata: dict[str, str] | None = field(default=None, compare=False)
    contents: bytes | None = field(default=None, repr=False)
    stream: IO[bytes] | None = field(default=None, repr=False, compare=False)
    raw_contents: Any = field(default=None, repr=False, compare=False)

    @property
    def is_dir(self) -> bool:
        return self.type == FileType.DIR

    @property
    def is_file(self) -> bool:
        return self.type == FileType.FILE

    def to_dict(self) -> dict[str, Any]:
        """Return the populated fields as a plain dictionary."""
        data = asdict(self)
        data["type"] = self.type.value
        return {key: value for key, value in data.items() if value is not None}


class StorageConfig(BaseModel):
    """Configuration for an S3-compatible object storage connection."""

    model_config = ConfigDict(use_enum_values=True)

    bucket_name: str
    region: str | None = None
    endpoint_url: str | None = None  # Required for non-AWS S3 services
    access_key_id: str | None = None
    secret_access_key: str | None = None
    path_prefix: str = ""

    # Client settings
    use_ssl: bool = True
    verify_ssl: bool = True
    addressing_style: Literal["auto", "virtual", "path"] = "auto"
    max_pool_connections: int = Field(default=10, ge=1, le=100)
    max_attempts: int = Field(default=3, ge=1, le=10)

    # Upload settings
    multipart_threshold: int = Field(default=128 * 1024 * 1024, ge=5 * 1024 * 1024)  # 128MB
    default_visibility: Visibility = Visibility.PRIVATE

    # CDN settings
    cdn_domain: str | None = None

    @field_validator("bucket_name")
    @classmethod
    def validate_bucket_name(cls, v: str) -> str:
        if not v or len(v.strip()) < 3:
            raise ValueError("Bucket name must be at least 3 characters")
        return v.strip()

    @field_validator("endpoint_url")
    @classmethod
    def validate_endpoint_url(cls, v: str | None) -> str | None:
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("Endpoint URL must start with http:// or https://")
        return v


class AdapterOptions(BaseModel):
    """Immutable defaults fixed when an adapter is constructed."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    multipart_threshold: int = Field(default=128 * 1024 * 1024, ge=1)
    default_visibility: Visibility | None = None
    upload_defaults: dict[str, Any] = Field(default_factory=dict)
    cdn_domain: str | None = None
    region: str | None = None


class StorageError(Exception):
    """Base exception for storage operations."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}


class StorageFileNotFoundError(StorageError):
    """Object not found in storage."""

    pass


class StoragePermissionError(StorageError):
    """Permission denied for storage operation."""

    pass


class QuotaExceededError(StorageError):
    """Storage quota exceeded."""

    pass


class NetworkError(StorageError):
    """Network-related storage error."""

    pass


class ValidationError(StorageError):
    """Request rejected as malformed by the backend."""

    pass


class ObjectStorageClient(ABC):
    """
    Narrow contract of the object-storage backend.

    Implementations raise StorageError subclasses; the adapter converts
    them into failure sentinels at its own boundary.
    """

    @abstractmethod
    def put_object(self, bucket: str, key: str, body: bytes | IO[bytes], options: Mapping[str, Any]) -> dict[str, Any]:
        """Store ``body`` under ``key`` with the given request arguments."""

    @abstractmethod
    def upload_stream(
        self,
        bucket: str,
        key: str,
        stream: IO[bytes],
        options: Mapping[str, Any],
        multipart_threshold: int,
    ) -> None:
        """Upload a stream, switching to multipart above the threshold."""

    @abstractmethod
    def get_object(self, bucket: str, key: str) -> dict[str, Any]:
        """Fetch an object. The result carries the body under ``Body``."""

    @abstractmethod
    def delete_object(self, bucket: str, key: str) -> None:
        """Delete an object. Deleting a missing key is not an error."""

    @abstractmethod
    def delete_objects(self, bucket: str, keys: list[str]) -> dict[str, bool]:
        """Delete several objects, reporting success per key."""

    @abstractmethod
    def does_object_exist(self, bucket: str, key: str) -> bool:
        """Check whether ``key`` exists."""

    @abstractmethod
    def get_object_meta(self, bucket: str, key: str) -> dict[str, Any]:
        """Return the object's headers without its body."""

    @abstractmethod
    def copy_object(self, bucket: str, source_key: str, copy_source: str, target_key: str) -> None:
        """Server-side copy; ``copy_source`` is the URL-encoded ``bucket/key``."""

    @abstractmethod
    def create_object_dir(self, bucket: str, key: str) -> None:
        """Create a zero-byte placeholder whose key ends in ``/``."""

    @abstractmethod
    def put_object_acl(self, bucket: str, key: str, acl: str) -> None:
        """Apply a canned ACL."""

    @abstractmethod
    def get_object_acl(self, bucket: str, key: str) -> str:
        """Return the object's canned ACL."""

    @abstractmethod
    def list_objects(self, bucket: str, prefix: str = "") -> Iterator[dict[str, Any]]:
        """Iterate listing pages carrying ``Contents`` and ``CommonPrefixes``."""

    @abstractmethod
    def sign_url(
        self,
        bucket: str,
        key: str,
        timeout: int,
        method: str = "GET",
        params: Mapping[str, str] | None = None,
    ) -> str:
        """Generate a pre-signed URL, including extra query parameters."""


class FilesystemAdapter(ABC):
    """
    Filesystem-style interface over a flat object store.

    Operations that do not return data report failure with ``False``.
    """

    @abstractmethod
    def write(self, path: str, contents: str | bytes, config: Any = None) -> FileRecord | Literal[False]:
        pass

    @abstractmethod
    def write_stream(self, path: str, stream: IO[bytes], config: Any = None) -> FileRecord | Literal[False]:
        pass

    @abstractmethod
    def update(self, path: str, contents: str | bytes, config: Any = None) -> FileRecord | Literal[False]:
        pass

    @abstractmethod
    def update_stream(self, path: str, stream: IO[bytes], config: Any = None) -> FileRecord | Literal[False]:
        pass

    @abstractmethod
    def rename(self, path: str, new_path: str) -> bool:
        pass

    @abstractmethod
    def copy(self, path: str, new_path: str) -> bool:
        pass

    @abstractmethod
    def delete(self, path: str) -> bool:
        pass

    @abstractmethod
    def delete_dir(self, dirname: str) -> bool:
        pass

    @abstractmethod
    def create_dir(self, dirname: str, config: Any = None) -> FileRecord | Literal[False]:
        pass

    @abstractmethod
    def has(self, path: str) -> bool:
        pass

    @abstractmethod
    def read(self, path: str) -> FileRecord | Literal[False]:
        pass

    @abstractmethod
    def read_stream(self, path: str) -> FileRecord | Literal[False]:
        pass

    @abstractmethod
    def list_contents(self, directory: str = "", recursive: bool = False) -> list[FileRecord]:
        pass

    @abstractmethod
    def get_metadata(self, path: str) -> FileRecord | Literal[False]:
        pass

    @abstractmethod
    def get_size(self, path: str) -> FileRecord | Literal[False]:
        pass

    @abstractmethod
    def get_mimetype(self, path: str) -> FileRecord | Literal[False]:
        pass

    @abstractmethod
    def get_timestamp(self, path: str) -> FileRecord | Literal[False]:
        pass

    @abstractmethod
    def set_visibility(self, path: str, visibility: str) -> FileRecord | Literal[False]:
        pass

    @abstractmethod
    def get_visibility(self, path: str) -> FileRecord | Literal[False]:
        pass

    def list_paths(self, directory: str = "", recursive: bool = False) -> Iterable[str]:
        """Yield the path of every entry under ``directory``."""
        for record in self.list_contents(directory, recursive):
            yield record.path


__all__ = [
    "AdapterOptions",
    "FileRecord",
    "FileType",
    "FilesystemAdapter",
    "NetworkError",
    "ObjectStorageClient",
    "QuotaExceededError",
    "StorageConfig",
    "StorageError",
    "StorageFileNotFoundError",
    "StoragePermission",
    "StoragePermissionError",
    "ValidationError",
    "Visibility",
]
