"""
Filesystem adapter for S3-compatible object storage.

S3Adapter exposes write/read/delete/list/copy/rename/metadata/visibility
operations over a flat bucket. Each operation translates the logical path
into an object key, issues one or two calls to the ObjectStorageClient and
normalizes what comes back into a FileRecord.

Backend failures never cross the adapter boundary: they are logged with
their cause and reported as ``False`` (``[]`` for listings).
"""

from collections.abc import Mapping
from contextlib import closing
from dataclasses import replace
from fnmatch import fnmatchcase
from functools import wraps
from typing import IO, Any, Callable, Literal, Optional, TypeVar
from urllib.parse import quote, quote_plus

import structlog

from .cloud_storage import (
    AdapterOptions,
    FileRecord,
    FilesystemAdapter,
    ObjectStorageClient,
    StorageConfig,
    StorageError,
)
from .file_utils import file_utils
from .normalizer import MetadataNormalizer
from .options import ConfigLike, acl_to_visibility, build_upload_options, visibility_to_acl
from .paths import PathKeyTranslator
from .s3_client import S3ObjectClient


logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Image processing parameter understood by OSS-style backends
IMAGE_PROCESS_PARAM = "x-oss-process"
IMAGE_RESIZE_TEMPLATE = "image/resize,m_pad,h_{height},w_{width},color_FFFFFF"


def failure_sentinel(
    operation: str,
    sentinel_factory: Callable[[], Any] = bool,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator converting StorageError into a failure sentinel.

    Args:
        operation: Operation name recorded in the log event
        sentinel_factory: Builds the value returned on failure (``bool``
            gives ``False``, ``list`` gives ``[]``)
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(self, *args, **kwargs) -> T:
            try:
                return func(self, *args, **kwargs)
            except StorageError as e:
                self.logger.warning(
                    "Storage operation failed",
                    operation=operation,
                    target=args[0] if args else None,
                    error=e.message,
                    error_code=e.error_code,
                    status_code=e.status_code,
                    error_type=type(e).__name__,
                )
                return sentinel_factory()

        return wrapper
    return decorator


class S3Adapter(FilesystemAdapter):
    """
    Filesystem adapter over an S3-compatible bucket.

    Directories are emulated: listings synthesize entries for the prefixes
    implied by object keys, and ``create_dir`` stores a zero-byte
    placeholder whose key ends in ``/``. The adapter keeps no state besides
    the bucket, key prefix and the defaults given at construction, so one
    instance can serve concurrent callers.
    """

    def __init__(
        self,
        client: ObjectStorageClient,
        bucket: str,
        endpoint: Optional[str] = None,
        prefix: str = "",
        options: AdapterOptions | Mapping[str, Any] | None = None,
    ):
        """Initialize the adapter for ``bucket`` scoped under ``prefix``."""
        self.client = client
        self.bucket = bucket
        self.endpoint = endpoint
        self.translator = PathKeyTranslator(prefix)
        self.normalizer = MetadataNormalizer(self.translator)
        self.options = options if isinstance(options, AdapterOptions) else AdapterOptions(**(options or {}))
        self.logger = logger.bind(bucket=bucket, prefix=self.translator.prefix)

    @classmethod
    def from_config(cls, config: StorageConfig) -> "S3Adapter":
        """Build an adapter and its boto3 client from a StorageConfig."""
        options = AdapterOptions(
            multipart_threshold=config.multipart_threshold,
            default_visibility=config.default_visibility,
            cdn_domain=config.cdn_domain,
            region=config.region,
        )
        return cls(
            S3ObjectClient.from_config(config),
            config.bucket_name,
            endpoint=config.endpoint_url,
            prefix=config.path_prefix,
            options=options,
        )

    # Writing

    @failure_sentinel("write")
    def write(self, path: str, contents: str | bytes, config: ConfigLike = None) -> FileRecord | Literal[False]:
        """Write a new file. Returns its metadata, or False on failure."""
        return self._upload(path, contents, config)

    @failure_sentinel("write stream")
    def write_stream(self, path: str, stream: IO[bytes], config: ConfigLike = None) -> FileRecord | Literal[False]:
        """
        Write a new file from a binary stream.

        Streams at or above the multipart threshold, or of unknown size, go
        through the client's managed multipart upload.
        """
        key = self.translator.apply_prefix(path)
        options = build_upload_options(self.options, config, path, stream)
        threshold = self.options.multipart_threshold

        if options.content_length is None or options.content_length >= threshold:
            self.logger.debug("Multipart upload", key=key, size=options.content_length)
            self.client.upload_stream(self.bucket, key, stream, options.to_request_args(), threshold)
        else:
            self.client.put_object(self.bucket, key, stream, options.to_request_args())

        return self.normalizer.normalize(options.to_response(), path)

    def update(self, path: str, contents: str | bytes, config: ConfigLike = None) -> FileRecord | Literal[False]:
        """
        Replace a file by deleting then writing it.

        Not atomic: a read issued between the two calls sees no file.
        """
        self.delete(path)
        return self.write(path, contents, config)

    def update_stream(self, path: str, stream: IO[bytes], config: ConfigLike = None) -> FileRecord | Literal[False]:
        """Overwrite a file from a stream."""
        return self.write_stream(path, stream, config)

    @failure_sentinel("create directory")
    def create_dir(self, dirname: str, config: ConfigLike = None) -> FileRecord | Literal[False]:
        """Create a directory placeholder object."""
        dirname = dirname.rstrip("/")
        options = build_upload_options(self.options, config, dirname)
        self.client.create_object_dir(self.bucket, self.translator.apply_prefix(dirname))
        return self.normalizer.normalize(options.to_response(), f"{dirname}/")

    # Copying and deleting

    def rename(self, path: str, new_path: str) -> bool:
        """
        Rename a file as copy followed by delete.

        A failed copy leaves the source untouched. A failed delete after a
        successful copy reports False with both objects present.
        """
        if not self.copy(path, new_path):
            return False

        return self.delete(path)

    @failure_sentinel("copy")
    def copy(self, path: str, new_path: str) -> bool:
        """Copy a file server-side."""
        source_key = self.translator.apply_prefix(path)
        self.client.copy_object(
            self.bucket,
            source_key,
            quote_plus(f"{self.bucket}/{source_key}"),
            self.translator.apply_prefix(new_path),
        )
        return True

    @failure_sentinel("delete")
    def delete(self, path: str) -> bool:
        """Delete a file; True once the object no longer exists."""
        self.client.delete_object(self.bucket, self.translator.apply_prefix(path))

        return not self.has(path)

    @failure_sentinel("delete directory")
    def delete_dir(self, dirname: str) -> bool:
        """Delete a directory placeholder and every object below it."""
        directory_key = self.translator.directory_key(dirname)
        keys = [item["Key"] for item in self._retrieve_paginated_listing(directory_key) if "Key" in item]
        if directory_key and directory_key not in keys:
            keys.append(directory_key)
        if not keys:
            return True

        results = self.client.delete_objects(self.bucket, keys)
        failed = [key for key, deleted in results.items() if not deleted]
        if failed:
            self.logger.warning("Directory partially deleted", dirname=dirname, failed=failed)
        return not failed

    # Reading

    @failure_sentinel("has")
    def has(self, path: str) -> bool:
        """
        Check whether a file or directory exists.

        Paths containing a ``.`` (matching ``*.*``) are probed as files;
        all others are probed as directory placeholders (``path + "/"``).
        A dot-less file name such as ``LICENSE`` is therefore reported
        missing even when it exists.
        """
        probe = path if fnmatchcase(path, "*.*") else f"{path}/"

        return self.client.does_object_exist(self.bucket, self.translator.apply_prefix(probe))

    @failure_sentinel("read")
    def read(self, path: str) -> FileRecord | Literal[False]:
        """Read a file's contents."""
        record = self._read_object(path)
        with closing(record.raw_contents) as body:
            contents = body.read()

        return replace(record, contents=contents, raw_contents=None)

    @failure_sentinel("read stream")
    def read_stream(self, path: str) -> FileRecord | Literal[False]:
        """
        Read a file as a stream.

        The backend body is copied into a rewound temporary stream and
        closed; the caller owns and must close ``record.stream``.
        """
        record = self._read_object(path)
        with closing(record.raw_contents) as body:
            stream = file_utils.spool(body)

        return replace(record, stream=stream, raw_contents=None)

    @failure_sentinel("list contents", sentinel_factory=list)
    def list_contents(self, directory: str = "", recursive: bool = False) -> list[FileRecord]:
        """
        List the contents of a directory.

        The backend listing is always a full enumeration under the
        directory key, whatever ``recursive`` says; intermediate
        directories are synthesized from the returned keys.
        """
        listing = self._retrieve_paginated_listing(self.translator.directory_key(directory))

        return self.normalizer.normalize_listing(listing, directory)

    @failure_sentinel("get metadata")
    def get_metadata(self, path: str) -> FileRecord | Literal[False]:
        """Get all the metadata of a file."""
        response = self.client.get_object_meta(self.bucket, self.translator.apply_prefix(path))

        return self.normalizer.normalize(response, path)

    @failure_sentinel("get size")
    def get_size(self, path: str) -> FileRecord | Literal[False]:
        return self._metadata_field(path, "size")

    @failure_sentinel("get mimetype")
    def get_mimetype(self, path: str) -> FileRecord | Literal[False]:
        return self._metadata_field(path, "mimetype")

    @failure_sentinel("get timestamp")
    def get_timestamp(self, path: str) -> FileRecord | Literal[False]:
        return self._metadata_field(path, "timestamp")

    # Visibility

    @failure_sentinel("set visibility")
    def set_visibility(self, path: str, visibility: str) -> FileRecord | Literal[False]:
        """Set the visibility of a file (``public`` or ``private``)."""
        self.client.put_object_acl(
            self.bucket,
            self.translator.apply_prefix(path),
            visibility_to_acl(visibility),
        )

        return FileRecord(path=path, visibility=visibility)

    @failure_sentinel("get visibility")
    def get_visibility(self, path: str) -> FileRecord | Literal[False]:
        """
        Get the visibility of a file.

        ACLs other than ``public-read`` and ``private`` are returned as the
        backend reports them.
        """
        acl = self.client.get_object_acl(self.bucket, self.translator.apply_prefix(path))

        return FileRecord(path=path, visibility=acl_to_visibility(acl))

    # URLs

    def get_url(self, path: str) -> str:
        """Public URL of a file."""
        key = quote(self.translator.apply_prefix(path))

        if self.options.cdn_domain:
            return f"https://{self.options.cdn_domain}/{key}"

        if self.endpoint:
            # Custom endpoint (e.g., OSS, MinIO, R2)
            return f"{self.endpoint.rstrip('/')}/{self.bucket}/{key}"

        if self.options.region:
            return f"https://{self.bucket}.s3.{self.options.region}.amazonaws.com/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    def get_signed_url(
        self,
        bucket: str,
        object_key: str,
        timeout: int = 60,
        options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Generate a signed GET URL with an image resize transform.

        ``object_key`` is used verbatim (no prefix applied). ``width`` and
        ``height`` options default to 0.
        """
        options = options or {}
        params = {
            IMAGE_PROCESS_PARAM: IMAGE_RESIZE_TEMPLATE.format(
                height=int(options.get("height", 0)),
                width=int(options.get("width", 0)),
            )
        }

        return self.client.sign_url(bucket, object_key, timeout, "GET", params)

    # Accessors

    def get_bucket(self) -> str:
        return self.bucket

    def get_client(self) -> ObjectStorageClient:
        return self.client

    def get_path_prefix(self) -> str:
        return self.translator.prefix

    def apply_prefix(self, path: str) -> str:
        return self.translator.apply_prefix(path)

    def remove_prefix(self, key: str) -> str:
        return self.translator.remove_prefix(key)

    # Private helper methods

    def _upload(self, path: str, body: str | bytes, config: ConfigLike) -> FileRecord:
        key = self.translator.apply_prefix(path)
        options = build_upload_options(self.options, config, path, body)

        if isinstance(body, str):
            body = body.encode("utf-8")

        self.client.put_object(self.bucket, key, body, options.to_request_args())
        self.logger.debug("Uploaded object", key=key, size=options.content_length)

        return self.normalizer.normalize(options.to_response(), path)

    def _read_object(self, path: str) -> FileRecord:
        response = self.client.get_object(self.bucket, self.translator.apply_prefix(path))

        return self.normalizer.normalize(response, path)

    def _metadata_field(self, path: str, field_name: str) -> FileRecord:
        response = self.client.get_object_meta(self.bucket, self.translator.apply_prefix(path))
        record = self.normalizer.normalize(response, path)

        return FileRecord(path=path, type=record.type, **{field_name: getattr(record, field_name)})

    def _retrieve_paginated_listing(self, prefix: str) -> list[dict[str, Any]]:
        listing: list[dict[str, Any]] = []

        for page in self.client.list_objects(self.bucket, prefix):
            listing.extend(page.get("Contents") or [])
            listing.extend(page.get("CommonPrefixes") or [])

        return listing
