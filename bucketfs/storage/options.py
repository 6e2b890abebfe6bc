"""
Per-call options container and the upload options derived from it.
"""

from collections.abc import Mapping
from typing import IO, Any, Union

from pydantic import BaseModel, ConfigDict, Field

from .cloud_storage import AdapterOptions, StoragePermission, Visibility
from .file_utils import file_utils


class Config:
    """
    Read-only options supplied by the caller for a single operation.

    Lookups fall back to an optional second container, so adapter-wide
    defaults can sit behind per-call overrides.
    """

    def __init__(self, settings: Mapping[str, Any] | None = None, fallback: "Config | None" = None):
        self._settings = dict(settings or {})
        self._fallback = fallback

    def has(self, key: str) -> bool:
        if key in self._settings:
            return True
        return self._fallback is not None and self._fallback.has(key)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if self._fallback is not None:
            return self._fallback.get(key, default)
        return default

    def with_fallback(self, fallback: "Config") -> "Config":
        return Config(self._settings, fallback)

    def __repr__(self) -> str:
        return f"Config({self._settings!r})"


ConfigLike = Union[Config, Mapping[str, Any], None]

# Header names callers may pass through the options container
META_OPTIONS = (
    "CacheControl",
    "Expires",
    "ServerSideEncryption",
    "Metadata",
    "ACL",
    "ContentType",
    "ContentDisposition",
    "ContentLanguage",
    "ContentEncoding",
)


def as_config(config: ConfigLike) -> Config:
    """Accept a Config, a plain mapping or None."""
    if isinstance(config, Config):
        return config
    return Config(config)


def visibility_to_acl(visibility: str) -> str:
    """Map a two-valued visibility onto the backend's canned ACL."""
    if visibility == Visibility.PUBLIC.value:
        return StoragePermission.PUBLIC_READ.value
    return StoragePermission.PRIVATE.value


def acl_to_visibility(acl: str) -> str:
    """
    Map a canned ACL back onto a visibility.

    ACLs outside the two-valued model (``public-read-write``,
    ``authenticated-read``, ``default``...) are returned unchanged.
    """
    if acl == StoragePermission.PUBLIC_READ.value:
        return Visibility.PUBLIC.value
    if acl == StoragePermission.PRIVATE.value:
        return Visibility.PRIVATE.value
    return acl


class UploadOptions(BaseModel):
    """Request arguments for a single upload."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    # Local references, not sent to the backend
    visibility: str | None = Field(default=None, exclude=True)
    mimetype: str | None = Field(default=None, exclude=True)

    acl: str | None = Field(default=None, alias="ACL")
    content_type: str | None = Field(default=None, alias="ContentType")
    content_length: int | None = Field(default=None, alias="ContentLength")
    cache_control: str | None = Field(default=None, alias="CacheControl")
    expires: Any = Field(default=None, alias="Expires")
    server_side_encryption: str | None = Field(default=None, alias="ServerSideEncryption")
    metadata: dict[str, str] | None = Field(default=None, alias="Metadata")
    content_disposition: str | None = Field(default=None, alias="ContentDisposition")
    content_language: str | None = Field(default=None, alias="ContentLanguage")
    content_encoding: str | None = Field(default=None, alias="ContentEncoding")

    def to_request_args(self) -> dict[str, Any]:
        """Return the backend request arguments, unset headers dropped."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_response(self) -> dict[str, Any]:
        """Return the options shaped like a backend response for normalization."""
        response = self.to_request_args()
        if self.visibility is not None:
            response["visibility"] = self.visibility
        return response


def build_upload_options(
    defaults: AdapterOptions,
    config: ConfigLike,
    path: str,
    body: str | bytes | IO[bytes] | None = None,
) -> UploadOptions:
    """
    Compute the upload options for one write.

    Adapter defaults are applied first, then the caller's ``visibility``,
    ``mimetype`` and header options. A missing content type is guessed
    from the path and body, a missing content length measured from the body.
    """
    config = as_config(config)
    options: dict[str, Any] = dict(defaults.upload_defaults)

    visibility = config.get("visibility") or defaults.default_visibility
    if visibility:
        if isinstance(visibility, Visibility):
            visibility = visibility.value
        options["visibility"] = visibility
        options["ACL"] = visibility_to_acl(visibility)

    mimetype = config.get("mimetype")
    if mimetype:
        options["mimetype"] = mimetype
        options["ContentType"] = mimetype

    for option in META_OPTIONS:
        if config.has(option):
            options[option] = config.get(option)

    if body is not None:
        if not options.get("ContentType"):
            if isinstance(body, (str, bytes)):
                options["ContentType"] = file_utils.guess_mimetype(path, body)
            else:
                options["ContentType"] = file_utils.get_content_type(path) or file_utils.DEFAULT_MIME_TYPE
        if options.get("ContentLength") is None:
            if isinstance(body, (str, bytes)):
                options["ContentLength"] = file_utils.content_size(body)
            else:
                options["ContentLength"] = file_utils.stream_size(body)

    if options.get("ContentType") and "mimetype" not in options:
        options["mimetype"] = options["ContentType"]

    return UploadOptions(**options)
