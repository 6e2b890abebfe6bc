"""
Normalization of backend responses into FileRecord instances.

Backends disagree on header casing and on whether a directory is a real
zero-length object ending in ``/`` or only an implied key prefix. Every
response the adapter hands back passes through MetadataNormalizer so
callers always see the same record shape.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import structlog

from .cloud_storage import FileRecord, FileType
from .paths import PathKeyTranslator, dirname, pathinfo


logger = structlog.get_logger(__name__)


class MetadataNormalizer:
    """Build FileRecords from raw backend responses."""

    # Backend field name -> FileRecord field
    RESULT_MAP: dict[str, str] = {
        "Body": "raw_contents",
        "ContentLength": "size",
        "Content-Length": "size",
        "content-length": "size",
        "Size": "size",
        "ContentType": "mimetype",
        "Content-Type": "mimetype",
        "content-type": "mimetype",
        "StorageClass": "storage_class",
        "x-oss-storage-class": "storage_class",
        "ETag": "etag",
        "etag": "etag",
        "Metadata": "metadata",
        "visibility": "visibility",
    }

    TIMESTAMP_FIELDS = ("LastModified", "Last-Modified", "last-modified")

    def __init__(self, translator: PathKeyTranslator):
        self.translator = translator

    def normalize(self, response: Mapping[str, Any], path: str | None = None) -> FileRecord:
        """
        Convert one backend response into a FileRecord.

        Args:
            response: Raw response (object headers, listing entry or upload options)
            path: Logical path of the object; derived from ``Key`` or
                ``Prefix`` in the response when omitted

        Returns:
            FileRecord typed ``dir`` when the path ends in ``/``, else ``file``
        """
        if not path:
            path = self._resolve_path(response)
        if path is None:
            return FileRecord(path=None)

        result: dict[str, Any] = pathinfo(path)

        timestamp = self._extract_timestamp(response)
        if timestamp is not None:
            result["timestamp"] = timestamp

        if path.endswith("/"):
            result.update(pathinfo(path.rstrip("/")))
            result["type"] = FileType.DIR
            return FileRecord(**result)

        for source, target in self.RESULT_MAP.items():
            if source in response and response[source] is not None:
                result[target] = response[source]

        if "size" in result:
            result["size"] = int(result["size"])
        if "etag" in result:
            result["etag"] = str(result["etag"]).strip('"')

        result["type"] = FileType.FILE
        return FileRecord(**result)

    def normalize_listing(self, listing: Iterable[Mapping[str, Any]], directory: str = "") -> list[FileRecord]:
        """Normalize a raw listing and emulate the directories it implies."""
        directory = directory.strip("/")
        records = []
        for item in listing:
            record = self.normalize(item)
            if not record.path or record.path == directory:
                continue
            records.append(record)
        return emulate_directories(records, directory)

    def _resolve_path(self, response: Mapping[str, Any]) -> str | None:
        key = response.get("Key")
        if key is None:
            key = response.get("Prefix")
        if key is None:
            return None
        return self.translator.remove_prefix(key)

    def _extract_timestamp(self, response: Mapping[str, Any]) -> int | None:
        for name in self.TIMESTAMP_FIELDS:
            if response.get(name) is not None:
                return to_timestamp(response[name])
        return None


def to_timestamp(value: Any) -> int | None:
    """
    Convert a last-modified value into Unix epoch seconds.

    Accepts datetimes, RFC 1123 HTTP dates, ISO 8601 strings and numbers.
    Naive datetimes are taken as UTC. Returns None for unparseable input.
    """
    if isinstance(value, (int, float)):
        return int(value)

    if isinstance(value, str):
        try:
            value = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            try:
                value = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                logger.debug("Unparseable timestamp", value=value)
                return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())

    return None


def emulate_directories(records: list[FileRecord], directory: str = "") -> list[FileRecord]:
    """
    Add directory entries implied by the paths of a listing.

    Object stores only return objects, so ``a/b/c.txt`` carries no entry for
    ``a/b``. Each ancestor strictly below ``directory`` is emitted once as a
    ``dir`` record, after the listed records, unless the listing already
    holds an entry for it.
    """
    directory = directory.strip("/")
    listed = {record.path for record in records if record.is_dir}
    implied: list[str] = []
    seen: set[str] = set()

    for record in records:
        parent = record.dirname if record.dirname is not None else dirname(record.path)
        while parent and parent != directory and parent not in seen:
            if directory and not parent.startswith(f"{directory}/"):
                break
            seen.add(parent)
            implied.append(parent)
            parent = dirname(parent)

    synthesized = [
        FileRecord(**pathinfo(path), type=FileType.DIR)
        for path in implied
        if path not in listed
    ]
    return records + synthesized
