from contextlib import AsyncExitStack
from typing import Optional, Protocol

import aioboto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_REGION = "us-east-1"
MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}
EXISTING_BUCKET_CODES = {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}


class ObjectStoreError(Exception):
    pass


class ObjectStore(Protocol):
    async def put_object(self, bucket: str, key: str, data: bytes, size: int, content_type: str) -> None:
        ...

    async def get_object(self, bucket: str, key: str) -> bytes:
        ...

    async def remove_object(self, bucket: str, key: str) -> None:
        ...

    async def bucket_exists(self, bucket: str) -> bool:
        ...

    async def make_bucket(self, bucket: str, region: str = DEFAULT_REGION) -> None:
        ...


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3ObjectStore:
    """S3-compatible (MinIO) object store over a single long-lived aioboto3 client.

    Use as an async context manager: the client and its connection pool are
    opened on enter and released on exit.
    """

    def __init__(
        self,
        endpoint_url: str,
        access_key: str,
        secret_key: str,
        region: str = DEFAULT_REGION,
        max_pool_connections: int = 10,
        session: Optional[aioboto3.Session] = None,
    ):
        self.endpoint_url = endpoint_url
        self.region = region
        self._access_key = access_key
        self._secret_key = secret_key
        self._max_pool_connections = max_pool_connections
        self._session = session or aioboto3.Session()
        self._stack: Optional[AsyncExitStack] = None
        self._client = None

    async def __aenter__(self) -> "S3ObjectStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def connect(self) -> None:
        if self._client is not None:
            return
        logger.info(f"Opening object store client for {self.endpoint_url}")
        stack = AsyncExitStack()
        self._client = await stack.enter_async_context(
            self._session.client(
                "s3",
                endpoint_url=self.endpoint_url,
                aws_access_key_id=self._access_key,
                aws_secret_access_key=self._secret_key,
                region_name=self.region,
                config=Config(
                    signature_version="s3v4",
                    s3={"addressing_style": "path"},
                    max_pool_connections=self._max_pool_connections,
                ),
            )
        )
        self._stack = stack

    async def close(self) -> None:
        if self._stack is not None:
            logger.info("Closing object store client")
            await self._stack.aclose()
        self._stack = None
        self._client = None

    @property
    def client(self):
        if self._client is None:
            raise ObjectStoreError("Object store client is not connected")
        return self._client

    async def put_object(self, bucket: str, key: str, data: bytes, size: int, content_type: str) -> None:
        try:
            await self.client.put_object(
                Bucket=bucket,
                Key=key,
                Body=data,
                ContentLength=size,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(f"put_object failed for {bucket}/{key}: {e}") from e
        logger.debug(f"Stored object {bucket}/{key} ({size} bytes, {content_type})")

    async def get_object(self, bucket: str, key: str) -> bytes:
        try:
            response = await self.client.get_object(Bucket=bucket, Key=key)
            async with response["Body"] as stream:
                return await stream.read()
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(f"get_object failed for {bucket}/{key}: {e}") from e

    async def remove_object(self, bucket: str, key: str) -> None:
        try:
            await self.client.delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(f"remove_object failed for {bucket}/{key}: {e}") from e
        logger.debug(f"Removed object {bucket}/{key}")

    async def bucket_exists(self, bucket: str) -> bool:
        try:
            await self.client.head_bucket(Bucket=bucket)
            return True
        except ClientError as e:
            if _error_code(e) in MISSING_BUCKET_CODES:
                return False
            raise ObjectStoreError(f"bucket_exists failed for {bucket}: {e}") from e
        except BotoCoreError as e:
            raise ObjectStoreError(f"bucket_exists failed for {bucket}: {e}") from e

    async def make_bucket(self, bucket: str, region: str = DEFAULT_REGION) -> None:
        params = {"Bucket": bucket}
        if region and region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            await self.client.create_bucket(**params)
        except ClientError as e:
            if _error_code(e) in EXISTING_BUCKET_CODES:
                logger.info(f"Bucket '{bucket}' was created concurrently.")
                return
            raise ObjectStoreError(f"make_bucket failed for {bucket}: {e}") from e
        except BotoCoreError as e:
            raise ObjectStoreError(f"make_bucket failed for {bucket}: {e}") from e
