"""
hivegate configuration

We read configuration from 2 sources, in order of precedence (higher is more priority)
- Environment variables
- A .env file, either in the current working directory or in a location specified
  by the HIVEGATE_ENV_FILE environment variable
"""

import functools
from enum import Enum
from pathlib import Path
from typing import Annotated

from class_doc import extract_docs_from_cls_obj
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "hivegate_"


class SegmentPolicy(str, Enum):
    #: silently drop path segments that are not key=value pairs
    ignore = "ignore"

    #: refuse paths containing segments that are not key=value pairs
    reject = "reject"


class UploadLockScope(str, Enum):
    #: serialize pushes of the same object, allow distinct objects to upload concurrently
    per_key = "per_key"

    #: serialize all pushes to the remote tier through a single lock
    global_ = "global"


for _enum in (SegmentPolicy, UploadLockScope):
    for field, doc in extract_docs_from_cls_obj(_enum).items():
        _enum[field].__doc__ = "\n".join(doc)


class Settings(BaseSettings):
    env_file: Annotated[
        Path,
        Field(
            description="Location of a .env file (if used) relative to working directory",
        ),
    ] = Path(".env")

    local_root: Annotated[
        Path,
        Field(description="Root directory of the local (hot) storage tier"),
    ] = Path(".local/tmp")

    port: Annotated[int, Field(description="Port to serve the gateway on")] = 3000

    s3_host: Annotated[
        str | None,
        Field(description="Endpoint URL of the S3-compatible remote tier, e.g. http://localhost:9000"),
    ] = None
    s3_bucket: Annotated[str | None, Field(description="Bucket holding the remote copies")] = None
    s3_access_key: Annotated[str | None, Field(description="Access key for the remote tier")] = None
    s3_secret_key: Annotated[str | None, Field(description="Secret key for the remote tier")] = None
    s3_region: Annotated[str, Field(description="Region name used for request signing")] = "us-east-1"

    s3_probe_timeout: Annotated[
        float,
        Field(description="Seconds to wait for the remote bucket check at startup"),
    ] = 5.0
    s3_upload_timeout: Annotated[float, Field(description="Seconds before a single push is abandoned")] = 30.0
    s3_download_timeout: Annotated[
        float | None,
        Field(description="Seconds before a pull-on-miss is abandoned (default: no limit)"),
    ] = None

    push_workers: Annotated[int, Field(ge=1, description="Number of concurrent push workers")] = 2
    push_queue_size: Annotated[int, Field(ge=1, description="Maximum number of pending pushes")] = 1000
    push_drain_timeout: Annotated[
        float,
        Field(description="Seconds to wait for pending pushes on shutdown"),
    ] = 30.0

    upload_lock: Annotated[
        UploadLockScope,
        Field(description="Scope of the lock guarding pushes to the remote tier"),
    ] = UploadLockScope.per_key

    malformed_segments: Annotated[
        SegmentPolicy,
        Field(description="What to do with path segments that are not key=value partitions"),
    ] = SegmentPolicy.ignore

    sniff_limit: Annotated[
        int,
        Field(description="Objects up to this many bytes are checked for JSON content when served"),
    ] = 1024 * 1024

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX)

    @property
    def remote_enabled(self) -> bool:
        return all([self.s3_host, self.s3_bucket, self.s3_access_key, self.s3_secret_key])


@functools.lru_cache()
def get_settings() -> Settings:
    temp = Settings()
    load_dotenv(temp.env_file, override=False)
    return Settings()


if __name__ == "__main__":
    # Echo the settings
    for k, v in get_settings().model_dump().items():
        print(f"{ENV_PREFIX.upper()}{k.upper()}={v}")
