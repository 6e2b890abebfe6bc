"""
Universal S3-compatible object storage client.

This module implements the ObjectStorageClient contract on top of boto3 for
any service speaking the S3 API (AWS S3, Aliyun OSS, MinIO, CloudFlare R2,
DigitalOcean Spaces, Wasabi, Backblaze B2...). botocore errors are
translated into the StorageError hierarchy so the adapter never has to know
about them.
"""

from collections.abc import Iterator, Mapping
from typing import IO, Any, Callable, Dict, List, Optional
from urllib.parse import quote, unquote_plus, urlencode, urlsplit

import boto3
import structlog
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from .cloud_storage import (
    NetworkError,
    ObjectStorageClient,
    QuotaExceededError,
    StorageConfig,
    StorageError,
    StorageFileNotFoundError,
    StoragePermission,
    StoragePermissionError,
    ValidationError,
)


logger = structlog.get_logger(__name__)

# Pseudo request parameter carrying extra query string entries into presigned URLs
EXTRA_QUERY_PARAMS = "ExtraQueryParams"

ALL_USERS_GROUP = "http://acs.amazonaws.com/groups/global/AllUsers"
AUTHENTICATED_USERS_GROUP = "http://acs.amazonaws.com/groups/global/AuthenticatedUsers"

NOT_FOUND_CODES = ("NoSuchKey", "NotFound", "404")

# S3 caps DeleteObjects at 1000 keys per request
DELETE_BATCH_SIZE = 1000

# Request arguments upload_fileobj does not accept in ExtraArgs
UNSUPPORTED_TRANSFER_ARGS = ("ContentLength",)


def _stash_extra_query_params(params: Dict[str, Any], context: Dict[str, Any], **kwargs) -> None:
    """Move extra query parameters out of the validated request params."""
    query = params.pop(EXTRA_QUERY_PARAMS, None)
    if query:
        context[EXTRA_QUERY_PARAMS] = dict(query)


def _apply_extra_query_params(request, **kwargs) -> None:
    """Append stashed query parameters to the URL before it is signed."""
    query = request.context.get(EXTRA_QUERY_PARAMS)
    if not query:
        return
    separator = "&" if urlsplit(request.url).query else "?"
    request.url = f"{request.url}{separator}{urlencode(query, quote_via=quote)}"


class S3ObjectClient(ObjectStorageClient):
    """
    boto3-backed implementation of the object storage client.

    Retries and connection pooling are configured on the underlying botocore
    client; this class performs exactly one API call per method.
    """

    def __init__(self, client):
        """Wrap an existing boto3 S3 client."""
        self._client = client
        events = client.meta.events
        events.register(
            "before-parameter-build.s3",
            _stash_extra_query_params,
            unique_id="bucketfs-stash-extra-query-params",
        )
        events.register(
            "before-sign.s3",
            _apply_extra_query_params,
            unique_id="bucketfs-apply-extra-query-params",
        )

    @classmethod
    def from_config(cls, config: StorageConfig) -> "S3ObjectClient":
        """Create a client for the connection described by ``config``."""
        session = boto3.Session(
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
        )

        boto_config = Config(
            max_pool_connections=config.max_pool_connections,
            retries={
                'max_attempts': config.max_attempts,
                'mode': 'adaptive'
            },
            s3={'addressing_style': config.addressing_style},
        )

        client_kwargs = {
            'config': boto_config,
            'region_name': config.region,
            'use_ssl': config.use_ssl,
            'verify': config.verify_ssl,
        }

        if config.endpoint_url:
            client_kwargs['endpoint_url'] = config.endpoint_url

        client = session.client('s3', **client_kwargs)
        logger.info(
            "Created S3 client",
            bucket=config.bucket_name,
            endpoint=config.endpoint_url,
            region=config.region,
        )
        return cls(client)

    @property
    def client(self):
        """The wrapped boto3 client."""
        return self._client

    def put_object(self, bucket: str, key: str, body, options: Mapping[str, Any]) -> Dict[str, Any]:
        return self._call(
            f"put object {key}",
            self._client.put_object,
            Bucket=bucket,
            Key=key,
            Body=body,
            **options
        )

    def upload_stream(
        self,
        bucket: str,
        key: str,
        stream: IO[bytes],
        options: Mapping[str, Any],
        multipart_threshold: int,
    ) -> None:
        extra_args = {
            name: value
            for name, value in options.items()
            if name not in UNSUPPORTED_TRANSFER_ARGS
        }
        transfer_config = TransferConfig(multipart_threshold=multipart_threshold)

        try:
            self._call(
                f"upload stream {key}",
                self._client.upload_fileobj,
                Fileobj=stream,
                Bucket=bucket,
                Key=key,
                ExtraArgs=extra_args,
                Config=transfer_config,
            )
        except S3UploadFailedError as e:
            raise StorageError(f"Failed to upload stream {key}: {e}") from e

    def get_object(self, bucket: str, key: str) -> Dict[str, Any]:
        return self._call(f"get object {key}", self._client.get_object, Bucket=bucket, Key=key)

    def delete_object(self, bucket: str, key: str) -> None:
        self._call(f"delete object {key}", self._client.delete_object, Bucket=bucket, Key=key)

    def delete_objects(self, bucket: str, keys: List[str]) -> Dict[str, bool]:
        results: Dict[str, bool] = {}

        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            response = self._call(
                "delete multiple objects",
                self._client.delete_objects,
                Bucket=bucket,
                Delete={'Objects': [{'Key': key} for key in batch], 'Quiet': False},
            )

            for deleted in response.get('Deleted', []):
                results[deleted['Key']] = True

            for error in response.get('Errors', []):
                results[error['Key']] = False
                logger.error("Failed to delete object", key=error['Key'], error=error.get('Message'))

        # Keys missing from the response count as failures
        for key in keys:
            results.setdefault(key, False)

        return results

    def does_object_exist(self, bucket: str, key: str) -> bool:
        try:
            self._client.head_object(Bucket=bucket, Key=key)
            return True
        except ClientError as e:
            if self._error_code(e) in NOT_FOUND_CODES:
                return False
            self._handle_client_error(e, f"check existence of object {key}")
        except BotoCoreError as e:
            raise NetworkError(f"Network error during check existence of object {key}: {e}") from e

    def get_object_meta(self, bucket: str, key: str) -> Dict[str, Any]:
        return self._call(f"get metadata for object {key}", self._client.head_object, Bucket=bucket, Key=key)

    def copy_object(self, bucket: str, source_key: str, copy_source: str, target_key: str) -> None:
        # botocore quotes string copy sources itself
        self._call(
            f"copy object from {source_key} to {target_key}",
            self._client.copy_object,
            Bucket=bucket,
            Key=target_key,
            CopySource=unquote_plus(copy_source),
        )

    def create_object_dir(self, bucket: str, key: str) -> None:
        key = key.rstrip('/') + '/'
        self._call(
            f"create directory {key}",
            self._client.put_object,
            Bucket=bucket,
            Key=key,
            Body=b'',
            ContentLength=0,
        )

    def put_object_acl(self, bucket: str, key: str, acl: str) -> None:
        self._call(f"set ACL for object {key}", self._client.put_object_acl, Bucket=bucket, Key=key, ACL=acl)

    def get_object_acl(self, bucket: str, key: str) -> str:
        response = self._call(f"get ACL for object {key}", self._client.get_object_acl, Bucket=bucket, Key=key)
        return self._canned_acl(response.get('Grants', []))

    def list_objects(self, bucket: str, prefix: str = "") -> Iterator[Dict[str, Any]]:
        paginator = self._client.get_paginator('list_objects_v2')
        pages = paginator.paginate(Bucket=bucket, Prefix=prefix)

        try:
            for page in pages:
                yield page
        except ClientError as e:
            self._handle_client_error(e, f"list objects under {prefix!r}")
        except BotoCoreError as e:
            raise NetworkError(f"Network error during list objects under {prefix!r}: {e}") from e

    def sign_url(
        self,
        bucket: str,
        key: str,
        timeout: int,
        method: str = "GET",
        params: Optional[Mapping[str, str]] = None,
    ) -> str:
        request_params: Dict[str, Any] = {'Bucket': bucket, 'Key': key}
        if params:
            request_params[EXTRA_QUERY_PARAMS] = dict(params)

        return self._call(
            f"generate presigned URL for {key}",
            self._client.generate_presigned_url,
            ClientMethod=f'{method.lower()}_object',
            Params=request_params,
            ExpiresIn=int(timeout),
            HttpMethod=method.upper(),
        )

    # Private helper methods

    def _call(self, operation: str, func: Callable, **kwargs):
        """Invoke a boto3 method, translating botocore failures."""
        try:
            return func(**kwargs)
        except NoCredentialsError as e:
            raise StoragePermissionError(
                "AWS credentials not found",
                error_code="NO_CREDENTIALS",
                details={"error": str(e)}
            ) from e
        except ClientError as e:
            self._handle_client_error(e, operation)
        except BotoCoreError as e:
            raise NetworkError(f"Network error during {operation}: {e}") from e

    @staticmethod
    def _error_code(error: ClientError) -> str:
        return error.response.get('Error', {}).get('Code', 'UNKNOWN')

    @staticmethod
    def _canned_acl(grants: List[Dict[str, Any]]) -> str:
        """Collapse an ACL grant list into the matching canned ACL."""
        public: set = set()
        authenticated: set = set()

        for grant in grants:
            uri = grant.get('Grantee', {}).get('URI')
            if uri == ALL_USERS_GROUP:
                public.add(grant.get('Permission'))
            elif uri == AUTHENTICATED_USERS_GROUP:
                authenticated.add(grant.get('Permission'))

        if 'FULL_CONTROL' in public or {'READ', 'WRITE'} <= public:
            return StoragePermission.PUBLIC_READ_WRITE.value
        if 'READ' in public:
            return StoragePermission.PUBLIC_READ.value
        if 'READ' in authenticated or 'FULL_CONTROL' in authenticated:
            return StoragePermission.AUTHENTICATED_READ.value
        return StoragePermission.PRIVATE.value

    def _handle_client_error(self, error: ClientError, operation: str) -> None:
        """Handle S3 client errors and convert to appropriate exceptions."""
        error_code = self._error_code(error)
        status_code = error.response.get('ResponseMetadata', {}).get('HTTPStatusCode')
        message = error.response.get('Error', {}).get('Message', str(error))

        if error_code in NOT_FOUND_CODES:
            raise StorageFileNotFoundError(
                f"Object not found during {operation}",
                error_code=error_code,
                status_code=status_code
            ) from error
        elif error_code in ['AccessDenied', 'Forbidden', '403']:
            raise StoragePermissionError(
                f"Access denied during {operation}",
                error_code=error_code,
                status_code=status_code
            ) from error
        elif error_code in ['QuotaExceeded', 'RequestLimitExceeded', 'SlowDown']:
            raise QuotaExceededError(
                f"Quota exceeded during {operation}",
                error_code=error_code,
                status_code=status_code
            ) from error
        elif error_code in ['RequestTimeout', 'ServiceUnavailable']:
            raise NetworkError(
                f"Network error during {operation}: {message}",
                error_code=error_code,
                status_code=status_code
            ) from error
        elif error_code in ['InvalidArgument', 'InvalidRequest', 'MalformedXML', 'InvalidObjectName']:
            raise ValidationError(
                f"Invalid request during {operation}: {message}",
                error_code=error_code,
                status_code=status_code
            ) from error
        else:
            raise StorageError(
                f"S3 error during {operation}: {message}",
                error_code=error_code,
                status_code=status_code
            ) from error
