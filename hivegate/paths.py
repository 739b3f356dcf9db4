"""
Resolve logical request paths to locations in the local storage tier.

A logical path such as ``year=2024/month=01/data.json`` is split into hive-style
partitions (``year=2024``, ``month=01``) and a leaf file name (``data.json``).
The physical location joins the partitions in lexicographic key order, so any
permutation of the same partitions resolves to the same file.
"""

import glob
from pathlib import Path, PurePosixPath
from typing import Mapping

from pydantic import BaseModel, ConfigDict

from hivegate.config import SegmentPolicy
from hivegate.errors import InvalidRequest

WILDCARD = "*"


class HivePathInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw: str
    partitions: Mapping[str, str]
    file_name: str

    @property
    def is_hive_style(self) -> bool:
        return len(self.partitions) > 0

    @property
    def is_wildcard(self) -> bool:
        return WILDCARD in self.raw

    def canonical(self) -> list[tuple[str, str]]:
        """The partitions in the order they are laid out on disk"""
        return sorted(self.partitions.items())


def split_segment(segment: str) -> tuple[str, str] | None:
    """Split a key=value segment once on '=', or return None if it is not a partition"""
    key, sep, value = segment.partition("=")
    if not sep or not key:
        return None
    return key, value


def parse_hive_path(logical_path: str, policy: SegmentPolicy = SegmentPolicy.ignore) -> HivePathInfo:
    """
    Parse a logical path into partitions and a leaf file name.

    Every segment but the last is a candidate partition. Segments that are not key=value
    are dropped (or rejected, depending on the policy). If a key repeats, the last value wins.
    """
    logical_path = logical_path.lstrip("/")
    if not logical_path:
        raise InvalidRequest("Path is required")
    *parents, file_name = logical_path.split("/")
    if not file_name:
        raise InvalidRequest("Path must end in an object name")
    if any(segment in (".", "..") for segment in [*parents, file_name]):
        raise InvalidRequest("Relative path segments are not allowed")
    if "\x00" in logical_path:
        raise InvalidRequest("Null bytes are not allowed in paths")

    partitions: dict[str, str] = {}
    for segment in parents:
        kv = split_segment(segment)
        if kv is None:
            if policy == SegmentPolicy.reject:
                raise InvalidRequest(f"Not a key=value partition: {segment!r}")
            continue
        key, value = kv
        partitions[key] = value
    return HivePathInfo(raw=logical_path, partitions=partitions, file_name=file_name)


def _glob_literal(value: str) -> str:
    """Escape glob magic, keeping only the wildcard marker as a wildcard"""
    return WILDCARD.join(glob.escape(part) for part in value.split(WILDCARD))


class PathResolver:
    def __init__(self, root: Path, policy: SegmentPolicy = SegmentPolicy.ignore):
        self.root = Path(root)
        self.policy = policy

    def parse(self, logical_path: str) -> HivePathInfo:
        return parse_hive_path(logical_path, self.policy)

    def physical_location(self, info: HivePathInfo) -> Path:
        if info.is_hive_style:
            path = self.root
            for key, value in info.canonical():
                path = path / f"{key}={value}"
            return path / info.file_name
        return self.root.joinpath(*(s for s in info.raw.split("/") if s))

    def search_pattern(self, info: HivePathInfo) -> str:
        """Build the glob pattern for a path containing wildcards"""
        parts = [glob.escape(str(self.root))]
        if info.is_hive_style:
            parts += [f"{glob.escape(key)}={_glob_literal(value)}" for key, value in info.canonical()]
            parts.append(_glob_literal(info.file_name))
        else:
            parts += [_glob_literal(s) for s in info.raw.split("/") if s]
        return str(Path(*parts))

    def relative_key(self, path: Path) -> str:
        """The path relative to the local root, which is also the object key in the remote tier"""
        return PurePosixPath(Path(path).relative_to(self.root)).as_posix()
