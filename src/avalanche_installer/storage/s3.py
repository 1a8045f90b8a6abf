"""
S3-backed object store.

boto3 is synchronous, so each call runs in a worker thread to keep the event
loop responsive. botocore and boto3 transfer errors are translated into ObjectStoreError with a
retryability flag the sync retry loops rely on.
"""

import asyncio
from typing import Any, Callable, List, Optional, Sequence, TypeVar

import boto3
from boto3.exceptions import RetriesExceededError, S3UploadFailedError
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from avalanche_installer.download.interfaces import Pathish
from avalanche_installer.exceptions import ObjectStoreError
from avalanche_installer.log_utils import logger

from .interfaces import StoreObject

T = TypeVar("T")

RETRYABLE_ERROR_CODES = frozenset(
    {
        "InternalError",
        "RequestLimitExceeded",
        "RequestTimeout",
        "RequestTimeTooSkewed",
        "ServiceUnavailable",
        "SlowDown",
        "Throttling",
        "ThrottlingException",
        "TooManyRequestsException",
    }
)

# S3 DeleteObjects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000


def is_retryable_boto_error(error: BaseException) -> bool:
    """Classify a botocore/boto3 failure as transient or permanent."""
    if isinstance(error, RetriesExceededError):
        # the transfer manager already gave up on a transient read failure
        return True
    if isinstance(error, S3UploadFailedError):
        # boto3 raises this while handling the underlying ClientError
        cause = error.__cause__ or error.__context__
        return cause is not None and is_retryable_boto_error(cause)
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if code in RETRYABLE_ERROR_CODES:
            return True
        return isinstance(status, int) and status >= 500
    return isinstance(
        error,
        (
            EndpointConnectionError,
            ConnectionClosedError,
            ConnectTimeoutError,
            ReadTimeoutError,
        ),
    )


class S3ObjectStore:
    """ObjectStore implementation on top of a boto3 S3 client."""

    def __init__(
        self,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client: Optional[Any] = None,
    ) -> None:
        self.region = region
        self._client = client or boto3.client(
            "s3", region_name=region, endpoint_url=endpoint_url
        )

    async def _call(
        self,
        operation: str,
        bucket: str,
        key: Optional[str],
        fn: Callable[..., T],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except (
            BotoCoreError,
            ClientError,
            RetriesExceededError,
            S3UploadFailedError,
        ) as e:
            raise ObjectStoreError(
                f"{operation} failed for s3://{bucket}/{key or ''}",
                bucket=bucket,
                key=key,
                is_retryable=is_retryable_boto_error(e),
                details=str(e),
            ) from e
        except OSError as e:
            raise ObjectStoreError(
                f"{operation} failed for s3://{bucket}/{key or ''}",
                bucket=bucket,
                key=key,
                details=str(e),
            ) from e

    async def get_object(self, bucket: str, key: str, local_path: Pathish) -> None:
        logger.info(f"get_object s3://{bucket}/{key} to {local_path}")
        await self._call(
            "get_object",
            bucket,
            key,
            self._client.download_file,
            bucket,
            key,
            str(local_path),
        )

    async def put_object(self, local_path: Pathish, bucket: str, key: str) -> None:
        logger.info(f"put_object {local_path} to s3://{bucket}/{key}")
        await self._call(
            "put_object",
            bucket,
            key,
            self._client.upload_file,
            str(local_path),
            bucket,
            key,
        )

    async def list_objects(
        self, bucket: str, prefix: Optional[str] = None
    ) -> List[StoreObject]:
        logger.info(f"list_objects s3://{bucket}/{prefix or ''}")

        def _list() -> List[StoreObject]:
            paginator = self._client.get_paginator("list_objects_v2")
            params = {"Bucket": bucket}
            if prefix:
                params["Prefix"] = prefix
            objects: List[StoreObject] = []
            for page in paginator.paginate(**params):
                for entry in page.get("Contents", []):
                    objects.append(
                        StoreObject(key=entry["Key"], size=int(entry.get("Size", 0)))
                    )
            return objects

        return await self._call("list_objects", bucket, prefix, _list)

    async def delete_objects(
        self, bucket: str, keys: Optional[Sequence[str]] = None
    ) -> None:
        """Delete the given keys, or every object in the bucket when `keys` is None."""
        if keys is None:
            keys = [obj.key for obj in await self.list_objects(bucket)]
        keys = list(keys)
        logger.info(f"delete_objects {len(keys)} keys in {bucket}")

        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start : start + DELETE_BATCH_SIZE]
            await self._call(
                "delete_objects",
                bucket,
                None,
                self._client.delete_objects,
                Bucket=bucket,
                Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
            )

    async def create_bucket(self, bucket: str) -> None:
        logger.info(f"create_bucket {bucket}")
        params: dict = {"Bucket": bucket}
        if self.region and self.region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            await self._call(
                "create_bucket", bucket, None, self._client.create_bucket, **params
            )
        except ObjectStoreError as e:
            cause = e.__cause__
            if (
                isinstance(cause, ClientError)
                and cause.response.get("Error", {}).get("Code")
                == "BucketAlreadyOwnedByYou"
            ):
                logger.warning(f"bucket {bucket} already exists -- skipping create")
                return
            raise

    async def delete_bucket(self, bucket: str) -> None:
        logger.info(f"delete_bucket {bucket}")
        await self._call(
            "delete_bucket", bucket, None, self._client.delete_bucket, Bucket=bucket
        )
