import io
from collections.abc import Iterator, Mapping
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlencode

import boto3
import pytest

from bucketfs.storage.cloud_storage import (
    AdapterOptions,
    ObjectStorageClient,
    StorageError,
    StorageFileNotFoundError,
)
from bucketfs.storage.s3_adapter import S3Adapter


LAST_MODIFIED = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class InMemoryObjectClient(ObjectStorageClient):
    """Object store double keeping objects in a dictionary."""

    def __init__(self, page_size: int = 2):
        self.buckets: dict[str, dict[str, dict[str, Any]]] = {}
        self.acls: dict[tuple[str, str], str] = {}
        self.calls: list[tuple[str, tuple]] = []
        self.failing: set[str] = set()
        self.page_size = page_size

    def fail(self, *methods: str) -> None:
        self.failing.update(methods)

    def keys(self, bucket: str = "test-bucket") -> list[str]:
        return sorted(self.buckets.get(bucket, {}))

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        if method in self.failing:
            raise StorageError(f"{method} failed", error_code="InternalError", status_code=500)

    def _objects(self, bucket: str) -> dict[str, dict[str, Any]]:
        return self.buckets.setdefault(bucket, {})

    def _store(self, bucket: str, key: str, data: bytes, options: Mapping[str, Any]) -> None:
        self._objects(bucket)[key] = {
            "data": data,
            "ContentType": options.get("ContentType", "binary/octet-stream"),
            "ContentLength": len(data),
            "LastModified": LAST_MODIFIED,
            "ETag": '"etag-%d"' % len(data),
            "StorageClass": "STANDARD",
            "Metadata": dict(options.get("Metadata") or {}),
        }
        self.acls[(bucket, key)] = options.get("ACL", "private")

    def _get(self, bucket: str, key: str) -> dict[str, Any]:
        try:
            return self._objects(bucket)[key]
        except KeyError:
            raise StorageFileNotFoundError(f"{key} not found", error_code="NoSuchKey", status_code=404)

    def put_object(self, bucket, key, body, options):
        self._record("put_object", bucket, key)
        data = body if isinstance(body, bytes) else body.read()
        self._store(bucket, key, data, options)
        return {"ETag": self._objects(bucket)[key]["ETag"]}

    def upload_stream(self, bucket, key, stream, options, multipart_threshold):
        self._record("upload_stream", bucket, key, multipart_threshold)
        self._store(bucket, key, stream.read(), options)

    def get_object(self, bucket, key):
        self._record("get_object", bucket, key)
        obj = self._get(bucket, key)
        headers = {name: value for name, value in obj.items() if name != "data"}
        return {"Body": io.BytesIO(obj["data"]), **headers}

    def delete_object(self, bucket, key):
        self._record("delete_object", bucket, key)
        self._objects(bucket).pop(key, None)

    def delete_objects(self, bucket, keys):
        self._record("delete_objects", bucket, tuple(keys))
        for key in keys:
            self._objects(bucket).pop(key, None)
        return {key: True for key in keys}

    def does_object_exist(self, bucket, key):
        self._record("does_object_exist", bucket, key)
        return key in self._objects(bucket)

    def get_object_meta(self, bucket, key):
        self._record("get_object_meta", bucket, key)
        obj = self._get(bucket, key)
        return {name: value for name, value in obj.items() if name != "data"}

    def copy_object(self, bucket, source_key, copy_source, target_key):
        self._record("copy_object", bucket, source_key, copy_source, target_key)
        self._objects(bucket)[target_key] = dict(self._get(bucket, source_key))

    def create_object_dir(self, bucket, key):
        self._record("create_object_dir", bucket, key)
        self._store(bucket, key.rstrip("/") + "/", b"", {})

    def put_object_acl(self, bucket, key, acl):
        self._record("put_object_acl", bucket, key, acl)
        self._get(bucket, key)
        self.acls[(bucket, key)] = acl

    def get_object_acl(self, bucket, key):
        self._record("get_object_acl", bucket, key)
        self._get(bucket, key)
        return self.acls[(bucket, key)]

    def list_objects(self, bucket, prefix="") -> Iterator[dict[str, Any]]:
        self._record("list_objects", bucket, prefix)
        keys = [key for key in sorted(self._objects(bucket)) if key.startswith(prefix)]
        for start in range(0, max(len(keys), 1), self.page_size):
            yield {
                "Contents": [
                    {
                        "Key": key,
                        "Size": self._objects(bucket)[key]["ContentLength"],
                        "LastModified": LAST_MODIFIED,
                        "ETag": self._objects(bucket)[key]["ETag"],
                        "StorageClass": "STANDARD",
                    }
                    for key in keys[start:start + self.page_size]
                ]
            }

    def sign_url(self, bucket, key, timeout, method="GET", params=None):
        self._record("sign_url", bucket, key, timeout, method)
        query = urlencode({**(params or {}), "Expires": timeout})
        return f"https://{bucket}.example.com/{key}?{query}"


@pytest.fixture
def memory_client() -> InMemoryObjectClient:
    return InMemoryObjectClient()


@pytest.fixture
def adapter(memory_client: InMemoryObjectClient) -> S3Adapter:
    return S3Adapter(memory_client, "test-bucket", prefix="uploads")


@pytest.fixture
def root_adapter(memory_client: InMemoryObjectClient) -> S3Adapter:
    return S3Adapter(memory_client, "test-bucket", options=AdapterOptions(multipart_threshold=16))


@pytest.fixture
def s3_client() -> Any:
    """Real boto3 client with dummy credentials; never reaches the network."""
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
