from itertools import permutations
from pathlib import Path

import pytest

from hivegate.config import SegmentPolicy
from hivegate.errors import InvalidRequest
from hivegate.paths import PathResolver, parse_hive_path

ROOT = Path("/srv/store")


def test_parse_hive_path():
    info = parse_hive_path("year=2024/month=01/data.json")
    assert dict(info.partitions) == {"year": "2024", "month": "01"}
    assert info.file_name == "data.json"
    assert info.is_hive_style
    assert not info.is_wildcard

    # leading slashes (as in the raw URL path) are ignored
    assert parse_hive_path("/year=2024/data.json").partitions == {"year": "2024"}


def test_parse_segments():
    # split once on '='
    assert parse_hive_path("q=a=b/x").partitions == {"q": "a=b"}
    # empty values are allowed
    assert parse_hive_path("q=/x").partitions == {"q": ""}
    # last occurrence wins
    assert parse_hive_path("a=1/a=2/x").partitions == {"a": "2"}


def test_malformed_segments():
    info = parse_hive_path("data/year=2024/=nokey/x.json")
    assert info.partitions == {"year": "2024"}
    assert info.file_name == "x.json"

    assert not parse_hive_path("logs/app.log").is_hive_style

    with pytest.raises(InvalidRequest):
        parse_hive_path("data/year=2024/x.json", SegmentPolicy.reject)
    # a leaf without '=' is fine, it is not a candidate partition
    assert parse_hive_path("year=2024/x.json", SegmentPolicy.reject).partitions == {"year": "2024"}


@pytest.mark.parametrize("path", ["", "/", "year=2024/", "a/../b", "./x", "a=1/..", "year=2024/da\x00ta.json"])
def test_invalid_paths(path):
    with pytest.raises(InvalidRequest):
        parse_hive_path(path)


def test_physical_location_order_independent():
    resolver = PathResolver(ROOT)
    segments = ["c=3", "a=1", "b=2"]
    locations = {resolver.physical_location(resolver.parse("/".join([*p, "f.parquet"]))) for p in permutations(segments)}
    assert locations == {ROOT / "a=1" / "b=2" / "c=3" / "f.parquet"}


def test_physical_location_flat():
    resolver = PathResolver(ROOT)
    info = resolver.parse("logs/2024/app.log")
    assert not info.is_hive_style
    assert resolver.physical_location(info) == ROOT / "logs" / "2024" / "app.log"
    assert resolver.physical_location(resolver.parse("data.json")) == ROOT / "data.json"


def test_relative_key():
    resolver = PathResolver(ROOT)
    path = resolver.physical_location(resolver.parse("year=2024/month=01/data.json"))
    assert resolver.relative_key(path) == "month=01/year=2024/data.json"


def test_search_pattern():
    resolver = PathResolver(ROOT)
    info = resolver.parse("year=2024/month=*/data.json")
    assert info.is_wildcard
    assert resolver.search_pattern(info) == str(ROOT / "month=*" / "year=2024" / "data.json")

    # wildcards in the leaf or inside a value
    assert resolver.search_pattern(resolver.parse("year=20*/*.json")) == str(ROOT / "year=20*" / "*.json")

    # non-hive paths keep their directories
    assert resolver.search_pattern(resolver.parse("logs/*.log")) == str(ROOT / "logs" / "*.log")


def test_search_pattern_escapes_literals():
    resolver = PathResolver(ROOT)
    pattern = resolver.search_pattern(resolver.parse("name=a[1]/month=*/x?.json"))
    assert pattern == str(ROOT / "month=*" / "name=a[[]1]" / "x[?].json")
