"""
Tests for the boto3-backed object store with a stubbed S3 client.
"""

import pytest
from boto3.exceptions import RetriesExceededError, S3UploadFailedError
from botocore.exceptions import (
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

from avalanche_installer.exceptions import ObjectStoreError
from avalanche_installer.storage.interfaces import StoreObject
from avalanche_installer.storage.s3 import S3ObjectStore, is_retryable_boto_error

pytestmark = [pytest.mark.unit]


def _client_error(code, status=400, operation="GetObject"):
    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


def _upload_failed(cause):
    try:
        raise cause
    except ClientError as e:
        try:
            raise S3UploadFailedError(f"Failed to upload: {e}")
        except S3UploadFailedError as wrapped:
            return wrapped


class TestErrorClassification:
    @pytest.mark.parametrize(
        "code,status",
        [("SlowDown", 503), ("InternalError", 500), ("RequestTimeout", 400)],
    )
    def test_transient_codes(self, code, status):
        assert is_retryable_boto_error(_client_error(code, status))

    def test_unknown_5xx_is_transient(self):
        assert is_retryable_boto_error(_client_error("Weird", 502))

    @pytest.mark.parametrize("code,status", [("NoSuchKey", 404), ("AccessDenied", 403)])
    def test_permanent_codes(self, code, status):
        assert not is_retryable_boto_error(_client_error(code, status))

    def test_connection_errors(self):
        assert is_retryable_boto_error(
            EndpointConnectionError(endpoint_url="https://s3.local")
        )
        assert is_retryable_boto_error(
            ReadTimeoutError(endpoint_url="https://s3.local")
        )

    def test_credentials_error_is_permanent(self):
        assert not is_retryable_boto_error(NoCredentialsError())

    def test_transfer_retries_exceeded_is_transient(self):
        assert is_retryable_boto_error(RetriesExceededError(OSError("read timeout")))

    def test_upload_failed_follows_wrapped_client_error(self):
        assert is_retryable_boto_error(_upload_failed(_client_error("SlowDown", 503)))
        assert not is_retryable_boto_error(
            _upload_failed(_client_error("AccessDenied", 403))
        )

    def test_upload_failed_without_cause_is_permanent(self):
        assert not is_retryable_boto_error(S3UploadFailedError("Failed to upload"))


@pytest.fixture
def s3_client(mocker):
    return mocker.MagicMock()


@pytest.mark.asyncio
class TestS3ObjectStore:
    async def test_get_object(self, s3_client, tmp_path):
        store = S3ObjectStore(client=s3_client)

        await store.get_object("bucket", "plugins/evm.zst", tmp_path / "tmp")

        s3_client.download_file.assert_called_once_with(
            "bucket", "plugins/evm.zst", str(tmp_path / "tmp")
        )

    async def test_get_object_missing_key(self, s3_client, tmp_path):
        s3_client.download_file.side_effect = _client_error("404", 404, "HeadObject")
        store = S3ObjectStore(client=s3_client)

        with pytest.raises(ObjectStoreError) as exc_info:
            await store.get_object("bucket", "absent", tmp_path / "tmp")

        assert exc_info.value.is_retryable is False
        assert exc_info.value.bucket == "bucket"
        assert exc_info.value.key == "absent"

    async def test_get_object_throttled(self, s3_client, tmp_path):
        s3_client.download_file.side_effect = _client_error("SlowDown", 503)
        store = S3ObjectStore(client=s3_client)

        with pytest.raises(ObjectStoreError) as exc_info:
            await store.get_object("bucket", "k", tmp_path / "tmp")

        assert exc_info.value.is_retryable is True

    async def test_get_object_transfer_retries_exceeded(self, s3_client, tmp_path):
        s3_client.download_file.side_effect = RetriesExceededError(OSError("read timeout"))
        store = S3ObjectStore(client=s3_client)

        with pytest.raises(ObjectStoreError) as exc_info:
            await store.get_object("bucket", "k", tmp_path / "tmp")

        assert exc_info.value.is_retryable is True
        assert isinstance(exc_info.value.__cause__, RetriesExceededError)

    async def test_put_object_upload_failed(self, s3_client, tmp_path):
        s3_client.upload_file.side_effect = _upload_failed(
            _client_error("AccessDenied", 403, "PutObject")
        )
        store = S3ObjectStore(client=s3_client)

        with pytest.raises(ObjectStoreError) as exc_info:
            await store.put_object(tmp_path / "avalanchego", "bucket", "avalanchego")

        assert exc_info.value.is_retryable is False
        assert exc_info.value.key == "avalanchego"

    async def test_local_filesystem_error(self, s3_client, tmp_path):
        s3_client.download_file.side_effect = PermissionError("read-only")
        store = S3ObjectStore(client=s3_client)

        with pytest.raises(ObjectStoreError) as exc_info:
            await store.get_object("bucket", "k", tmp_path / "tmp")

        assert exc_info.value.is_retryable is False

    async def test_put_object(self, s3_client, tmp_path):
        store = S3ObjectStore(client=s3_client)

        await store.put_object(tmp_path / "avalanchego", "bucket", "avalanchego")

        s3_client.upload_file.assert_called_once_with(
            str(tmp_path / "avalanchego"), "bucket", "avalanchego"
        )

    async def test_list_objects_pages(self, s3_client):
        paginator = s3_client.get_paginator.return_value
        paginator.paginate.return_value = [
            {"Contents": [{"Key": "plugins/plugin", "Size": 0}]},
            {"Contents": [{"Key": "plugins/evm.zst", "Size": 12}]},
            {},
        ]
        store = S3ObjectStore(client=s3_client)

        objects = await store.list_objects("bucket", "plugins")

        s3_client.get_paginator.assert_called_once_with("list_objects_v2")
        paginator.paginate.assert_called_once_with(Bucket="bucket", Prefix="plugins")
        assert objects == [
            StoreObject(key="plugins/plugin", size=0),
            StoreObject(key="plugins/evm.zst", size=12),
        ]

    async def test_list_objects_without_prefix(self, s3_client):
        paginator = s3_client.get_paginator.return_value
        paginator.paginate.return_value = []
        store = S3ObjectStore(client=s3_client)

        assert await store.list_objects("bucket") == []
        paginator.paginate.assert_called_once_with(Bucket="bucket")

    async def test_delete_objects_batches(self, s3_client):
        store = S3ObjectStore(client=s3_client)
        keys = [f"k{i}" for i in range(1001)]

        await store.delete_objects("bucket", keys)

        assert s3_client.delete_objects.call_count == 2
        first = s3_client.delete_objects.call_args_list[0].kwargs
        second = s3_client.delete_objects.call_args_list[1].kwargs
        assert len(first["Delete"]["Objects"]) == 1000
        assert second["Delete"]["Objects"] == [{"Key": "k1000"}]

    async def test_delete_all_objects(self, s3_client):
        s3_client.get_paginator.return_value.paginate.return_value = [
            {"Contents": [{"Key": "a"}, {"Key": "b"}]}
        ]
        store = S3ObjectStore(client=s3_client)

        await store.delete_objects("bucket")

        s3_client.delete_objects.assert_called_once_with(
            Bucket="bucket",
            Delete={"Objects": [{"Key": "a"}, {"Key": "b"}], "Quiet": True},
        )

    async def test_create_bucket_with_region(self, s3_client):
        store = S3ObjectStore(region="eu-west-1", client=s3_client)

        await store.create_bucket("bucket")

        s3_client.create_bucket.assert_called_once_with(
            Bucket="bucket",
            CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
        )

    async def test_create_bucket_us_east_1(self, s3_client):
        store = S3ObjectStore(region="us-east-1", client=s3_client)

        await store.create_bucket("bucket")

        s3_client.create_bucket.assert_called_once_with(Bucket="bucket")

    async def test_create_existing_owned_bucket(self, s3_client):
        s3_client.create_bucket.side_effect = _client_error(
            "BucketAlreadyOwnedByYou", 409, "CreateBucket"
        )
        store = S3ObjectStore(client=s3_client)

        await store.create_bucket("bucket")

    async def test_create_bucket_owned_by_someone_else(self, s3_client):
        s3_client.create_bucket.side_effect = _client_error(
            "BucketAlreadyExists", 409, "CreateBucket"
        )
        store = S3ObjectStore(client=s3_client)

        with pytest.raises(ObjectStoreError):
            await store.create_bucket("bucket")

    async def test_delete_bucket(self, s3_client):
        store = S3ObjectStore(client=s3_client)

        await store.delete_bucket("bucket")

        s3_client.delete_bucket.assert_called_once_with(Bucket="bucket")


def test_default_client_uses_boto3(mocker):
    boto_client = mocker.patch("avalanche_installer.storage.s3.boto3.client")

    S3ObjectStore(region="us-west-2", endpoint_url="http://localhost:9000")

    boto_client.assert_called_once_with(
        "s3", region_name="us-west-2", endpoint_url="http://localhost:9000"
    )
