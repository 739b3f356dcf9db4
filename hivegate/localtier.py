"""
The local (hot) storage tier: a directory tree under a configured root.

Writes go to a hidden temp file next to the target and are moved into place when complete,
so readers and wildcard searches never see partially written objects.
"""

import glob
import logging
import os
import stat
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import AsyncIterable

from anyio import to_thread
from pydantic import BaseModel

logger = logging.getLogger("hivegate.localtier")

TEMP_SUFFIX = ".part"


class LocalObject(BaseModel):
    """An object present in the local tier"""

    path: Path
    key: str
    size: int
    modified: datetime

    @classmethod
    def from_stat(cls, path: Path, key: str, st: os.stat_result) -> "LocalObject":
        return cls(path=path, key=key, size=st.st_size, modified=datetime.fromtimestamp(st.st_mtime, tz=UTC))


def is_temp_file(path: Path) -> bool:
    return path.name.startswith(".") and path.name.endswith(TEMP_SUFFIX)


def temp_path_for(path: Path) -> Path:
    return path.with_name(f".{path.name}.{uuid.uuid4().hex[:12]}{TEMP_SUFFIX}")


class LocalTier:
    def __init__(self, root: Path):
        self.root = Path(root)

    def ensure_root(self) -> None:
        """Create the root directory (and its ancestors) if needed"""
        self.root.mkdir(parents=True, exist_ok=True)

    async def stat(self, path: Path) -> os.stat_result | None:
        """Stat a path, returning None if it does not exist"""
        try:
            return await to_thread.run_sync(os.stat, path)
        except (FileNotFoundError, NotADirectoryError):
            return None

    async def write(self, path: Path, chunks: AsyncIterable[bytes]) -> int:
        """
        Write all chunks to path, replacing any existing file, and return the number of bytes written.
        If writing fails or is cancelled, the temp file is removed and the existing file is untouched.
        """
        await to_thread.run_sync(lambda: path.parent.mkdir(parents=True, exist_ok=True))
        tmp = temp_path_for(path)
        size = 0
        try:
            f = await to_thread.run_sync(open, tmp, "wb")
            try:
                async for chunk in chunks:
                    if chunk:
                        await to_thread.run_sync(f.write, chunk)
                        size += len(chunk)
            finally:
                f.close()
            await to_thread.run_sync(os.replace, tmp, path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        return size

    async def glob(self, pattern: str) -> list[Path]:
        """Return the files (not directories) matching the glob pattern, sorted by path"""
        return await to_thread.run_sync(self._glob, pattern)

    def _glob(self, pattern: str) -> list[Path]:
        result = []
        for match in sorted(glob.glob(pattern)):
            path = Path(match)
            if is_temp_file(path):
                continue
            try:
                st = os.stat(path)
            except OSError as e:
                logger.warning(f"Error accessing path {path}: {e}")
                continue
            if not stat.S_ISDIR(st.st_mode):
                result.append(path)
        return result
