"""
Keep the local and remote tiers consistent.

Reads are served from the local tier, pulling missing objects from the remote tier first.
Writes go to the local tier and are pushed to the remote tier in the background.
"""

import asyncio
import logging
import os
import stat
from enum import Enum
from pathlib import Path
from typing import AsyncIterable

from botocore.exceptions import BotoCoreError, ClientError

from hivegate.errors import Internal, InvalidRequest, NotFound
from hivegate.localtier import LocalObject, LocalTier
from hivegate.locks import SingleFlight
from hivegate.paths import HivePathInfo, PathResolver
from hivegate.pushqueue import PushJob, PushQueue
from hivegate.remotetier import RemoteTier, is_not_found

logger = logging.getLogger("hivegate.coordinator")


class TierState(str, Enum):
    absent = "absent"
    local_only = "local_only"
    remote_only = "remote_only"
    both = "both"


class TierCoordinator:
    def __init__(
        self,
        resolver: PathResolver,
        local: LocalTier,
        remote: RemoteTier | None = None,
        pushes: PushQueue | None = None,
        download_timeout: float | None = None,
    ):
        self.resolver = resolver
        self.local = local
        self.remote = remote
        self.pushes = pushes
        self.download_timeout = download_timeout
        self._pulls = SingleFlight()

    async def _stat(self, path: Path) -> os.stat_result | None:
        try:
            return await self.local.stat(path)
        except OSError as e:
            logger.error(f"Error getting file info for {path}: {e}")
            raise Internal() from e

    async def get(self, info: HivePathInfo) -> LocalObject:
        """Return the local object for this path, pulling it from the remote tier if it is missing locally"""
        path = self.resolver.physical_location(info)
        key = self.resolver.relative_key(path)
        st = await self._stat(path)
        if st is None:
            if self.remote is None:
                raise NotFound()
            await self._pulls.do(key, lambda: self._pull(key, path))
            st = await self._stat(path)
            if st is None:
                raise Internal("Failed to stat file after remote fetch")
        if stat.S_ISDIR(st.st_mode):
            raise NotFound()
        return LocalObject.from_stat(path, key, st)

    async def _pull(self, key: str, path: Path) -> None:
        assert self.remote is not None
        logger.info(f"Fetching {key} from remote storage")
        try:
            size = await asyncio.wait_for(self._download(key, path), self.download_timeout)
        except ClientError as e:
            if is_not_found(e):
                logger.debug(f"{key} not found in remote storage")
            else:
                logger.warning(f"Remote fetch of {key} failed: {e}")
            raise NotFound() from e
        except (BotoCoreError, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"Remote fetch of {key} failed: {e!r}")
            raise NotFound() from e
        logger.info(f"Fetched {key} from remote storage ({size} bytes)")

    async def _download(self, key: str, path: Path) -> int:
        assert self.remote is not None
        async with self.remote.open(key) as chunks:
            return await self.local.write(path, chunks)

    async def put(self, info: HivePathInfo, chunks: AsyncIterable[bytes]) -> str:
        """
        Write the content to the local tier, replacing any existing object, and schedule a push
        to the remote tier. Returns the object key (the path relative to the local root).
        """
        if info.is_wildcard:
            raise InvalidRequest("Wildcards are not allowed in object paths")
        path = self.resolver.physical_location(info)
        key = self.resolver.relative_key(path)
        try:
            size = await self.local.write(path, chunks)
        except OSError as e:
            logger.error(f"Failed to write {key}: {e}")
            raise Internal("Failed to write file") from e
        logger.debug(f"Wrote {key} ({size} bytes)")
        if self.pushes is not None:
            self.pushes.submit(PushJob(key=key, path=path))
        return key

    async def tier_state(self, info: HivePathInfo) -> TierState:
        path = self.resolver.physical_location(info)
        st = await self._stat(path)
        local = st is not None and not stat.S_ISDIR(st.st_mode)
        remote = self.remote is not None and await self.remote.exists(self.resolver.relative_key(path))
        if local and remote:
            return TierState.both
        if local:
            return TierState.local_only
        if remote:
            return TierState.remote_only
        return TierState.absent
