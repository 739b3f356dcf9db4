"""
Interact with the S3-compatible remote (cold) tier (e.g., AWS S3, MinIO, SeaweedFS, Cloudflare R2).
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, AsyncIterator

from aiobotocore.config import AioConfig
from aiobotocore.session import get_session
from anyio import to_thread
from botocore.exceptions import BotoCoreError, ClientError
from types_aiobotocore_s3.client import S3Client

from hivegate.config import Settings
from hivegate.errors import RemoteUnavailable

logger = logging.getLogger("hivegate.remotetier")

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
DOWNLOAD_CHUNK_SIZE = 1024 * 1024


def is_not_found(e: ClientError) -> bool:
    return e.response.get("Error", {}).get("Code") in NOT_FOUND_CODES


def create_s3_client(settings: Settings):
    """Create the (async context manager for the) aiobotocore client for the configured remote tier"""
    if not settings.remote_enabled:
        raise ValueError("s3_host, s3_bucket, s3_access_key and s3_secret_key must all be specified")

    session = get_session()
    return session.create_client(
        service_name="s3",
        endpoint_url=settings.s3_host,
        region_name=settings.s3_region,
        aws_access_key_id=settings.s3_access_key,
        aws_secret_access_key=settings.s3_secret_key,
        config=AioConfig(signature_version="s3v4", s3={"addressing_style": "path"}),
    )


class RemoteTier:
    def __init__(self, client: S3Client, bucket: str):
        self.client = client
        self.bucket = bucket

    async def probe(self, timeout: float) -> None:
        """Check that the bucket exists and is reachable within timeout seconds"""
        try:
            await asyncio.wait_for(self.client.head_bucket(Bucket=self.bucket), timeout)
        except (ClientError, BotoCoreError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to connect to remote storage bucket {self.bucket}: {e!r}")
            raise RemoteUnavailable(f"Remote storage bucket {self.bucket} is not reachable") from e

    async def exists(self, key: str) -> bool:
        try:
            await self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if is_not_found(e):
                return False
            raise RemoteUnavailable() from e
        return True

    @asynccontextmanager
    async def open(self, key: str) -> AsyncGenerator[AsyncIterator[bytes], None]:
        """
        Open a remote object for reading, yielding an async iterator over its content.
        Raises ClientError before yielding if the object cannot be fetched.
        """
        response = await self.client.get_object(Bucket=self.bucket, Key=key)
        async with response["Body"] as body:
            yield _read_chunks(body)

    async def upload(self, key: str, path: Path) -> None:
        """Upload the local file, streaming it from disk"""
        f = await to_thread.run_sync(open, path, "rb")
        try:
            size = os.fstat(f.fileno()).st_size
            await self.client.put_object(Bucket=self.bucket, Key=key, Body=f, ContentLength=size)
        finally:
            f.close()


async def _read_chunks(body) -> AsyncIterator[bytes]:
    while chunk := await body.read(DOWNLOAD_CHUNK_SIZE):
        yield chunk
