"""S3-compatible storage sink.

Uploads the backup stream with boto3's managed transfer
(``upload_fileobj``), which switches to multipart upload for large
streams and aborts the multipart upload when the stream fails, so a
failed backup never leaves a visible object behind.

boto3 is blocking, so the transfer runs in a worker thread and pulls
bytes from the event loop's pipe through ``BlockingStreamReader``.

Usage:
    sink = S3Sink(bucket="backups", region="eu-west-1",
                  access_key="...", secret_key="...")
    location = await sink.upload(pipe.reader, "nightly", "mydb", compressed=True)
"""

import asyncio
import logging
from urllib.parse import quote

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from pgs3backup.backup.pipe import PipeReader
from pgs3backup.errors import SinkError
from pgs3backup.storage.base import build_object_key

logger = logging.getLogger(__name__)


class BlockingStreamReader:
    """Sync file-like adapter over an async ``PipeReader``.

    ``read()`` must be called from a thread other than the loop's own;
    it blocks until the loop has served the request.
    """

    def __init__(self, stream: PipeReader, loop: asyncio.AbstractEventLoop) -> None:
        self._stream = stream
        self._loop = loop

    def read(self, size: int = -1) -> bytes:
        future = asyncio.run_coroutine_threadsafe(self._stream.read(size), self._loop)
        return future.result()

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False


def create_s3_client(
    region: str,
    access_key: str,
    secret_key: str,
    endpoint: str | None = None,
) -> BaseClient:
    """Create an S3 client with static credentials.

    A custom ``endpoint`` (MinIO and other S3-compatible stores) switches
    to path-style addressing.
    """
    config = Config(
        retries={"max_attempts": 5, "mode": "standard"},
        user_agent_extra="pgs3backup",
        s3={"addressing_style": "path"} if endpoint else None,
    )
    session = boto3.Session(
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        region_name=region,
    )
    return session.client("s3", endpoint_url=endpoint or None, config=config)


class S3Sink:
    """``BackupSink`` uploading to an S3 bucket.

    Args:
        bucket: Destination bucket.
        region: Bucket region.
        access_key: Static access key id.
        secret_key: Static secret access key.
        endpoint: Optional custom endpoint URL.
        client: Pre-built boto3 S3 client (overrides the credentials).
    """

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        access_key: str = "",
        secret_key: str = "",
        endpoint: str | None = None,
        client: BaseClient | None = None,
    ) -> None:
        self.bucket = bucket
        self.region = region
        self.endpoint = endpoint
        self._client = client or create_s3_client(region, access_key, secret_key, endpoint)

    async def upload(
        self,
        stream: PipeReader,
        prefix: str,
        name: str,
        compressed: bool,
    ) -> str:
        """Upload under ``<prefix>/<name>_<timestamp>.dump[.gz]``."""
        key = build_object_key(prefix, name, compressed)
        return await self.upload_with_key(stream, key)

    async def upload_with_key(self, stream: PipeReader, key: str) -> str:
        """Upload the stream under an explicit object key."""
        loop = asyncio.get_running_loop()
        body = BlockingStreamReader(stream, loop)
        logger.info("Uploading to s3://%s/%s", self.bucket, key)
        try:
            await asyncio.to_thread(self._client.upload_fileobj, body, self.bucket, key)
        except (BotoCoreError, ClientError) as e:
            raise SinkError(f"Upload to s3://{self.bucket}/{key} failed: {e}") from e
        return self.location(key)

    def location(self, key: str) -> str:
        """URL of an object in this bucket."""
        quoted = quote(key)
        if self.endpoint:
            return f"{self.endpoint.rstrip('/')}/{self.bucket}/{quoted}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{quoted}"
