"""
Wildcard aggregation: expand a path template containing '*' against the local tier and combine
the metadata of all matching objects.

Only objects present in the local tier are visible; remote-only objects are not listed.
"""

import logging
import os
import re
from datetime import datetime
from pathlib import Path

from anyio import to_thread
from pydantic import BaseModel

from hivegate.errors import Internal, NotFound, PatternError
from hivegate.localtier import LocalObject, LocalTier
from hivegate.paths import HivePathInfo, PathResolver

logger = logging.getLogger("hivegate.wildcard")


class Aggregate(BaseModel):
    objects: list[LocalObject]
    total_size: int
    last_modified: datetime

    @property
    def count(self) -> int:
        return len(self.objects)

    @property
    def keys(self) -> list[str]:
        return [o.key for o in self.objects]


class WildcardAggregator:
    def __init__(self, resolver: PathResolver, local: LocalTier):
        self.resolver = resolver
        self.local = local

    async def expand(self, info: HivePathInfo) -> list[Path]:
        pattern = self.resolver.search_pattern(info)
        logger.debug(f"Searching for pattern: {pattern}")
        try:
            matches = await self.local.glob(pattern)
        except (re.error, ValueError) as e:
            logger.error(f"Error finding files matching {pattern}: {e}")
            raise PatternError() from e
        logger.debug(f"Found {len(matches)} matching files")
        return matches

    async def aggregate(self, paths: list[Path]) -> Aggregate:
        """
        Collect size and modification time of all paths.
        If any of them can no longer be read, the whole aggregate fails.
        """
        try:
            stats = await to_thread.run_sync(lambda: [os.stat(p) for p in paths])
        except OSError as e:
            logger.error(f"Error getting file info: {e}")
            raise Internal("Failed to get file info") from e
        objects = [LocalObject.from_stat(p, self.resolver.relative_key(p), st) for p, st in zip(paths, stats)]
        return Aggregate(
            objects=objects,
            total_size=sum(o.size for o in objects),
            last_modified=max(o.modified for o in objects),
        )

    async def query(self, info: HivePathInfo) -> Aggregate:
        """Expand and aggregate a wildcard path, raising NotFound if nothing matches"""
        paths = await self.expand(info)
        if not paths:
            raise NotFound("No matching files found")
        return await self.aggregate(paths)
