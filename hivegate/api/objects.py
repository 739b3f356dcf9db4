"""API Endpoints for reading and writing objects."""

import json
from pathlib import Path

from anyio import to_thread
from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse, JSONResponse, Response
from pydantic import BaseModel, Field

from hivegate.api.caching import http_date, not_modified
from hivegate.connections import TieredStorage
from hivegate.localtier import LocalObject
from hivegate.paths import HivePathInfo

app_objects = APIRouter(tags=["objects"])

OCTET_STREAM = "application/octet-stream"


class WriteResponse(BaseModel):
    success: bool = Field(description="Whether the object was written")
    path: str = Field(description="The path of the object relative to the storage root")


def get_storage(request: Request) -> TieredStorage:
    return request.app.state.storage


def sniff_content_type(path: Path, size: int, limit: int) -> str:
    """application/json if the file is (small enough to check and) valid JSON, otherwise octet-stream"""
    if not 0 < size <= limit:
        return OCTET_STREAM
    try:
        json.loads(path.read_bytes())
    except (ValueError, RecursionError):
        return OCTET_STREAM
    return "application/json"


async def object_response(request: Request, obj: LocalObject, sniff_limit: int) -> Response:
    if not_modified(request, obj.modified):
        return Response(status_code=304, headers={"Last-Modified": http_date(obj.modified)})
    media_type = await to_thread.run_sync(sniff_content_type, obj.path, obj.size, sniff_limit)
    return FileResponse(obj.path, media_type=media_type, headers={"Accept-Ranges": "bytes"})


async def wildcard_response(request: Request, storage: TieredStorage, info: HivePathInfo) -> Response:
    matched = await storage.aggregator.query(info)
    if request.method == "HEAD":
        return Response(
            status_code=200,
            headers={
                "Content-Length": str(matched.total_size),
                "Last-Modified": http_date(matched.last_modified),
                "Accept-Ranges": "bytes",
                "Content-Type": OCTET_STREAM,
                "X-Matched-Files": str(matched.count),
            },
        )
    if matched.count == 1:
        return await object_response(request, matched.objects[0], storage.settings.sniff_limit)
    return JSONResponse(matched.keys, headers={"X-Matched-Files": str(matched.count)})


@app_objects.api_route("/{path:path}", methods=["GET", "HEAD"])
async def read_object(path: str, request: Request, storage: TieredStorage = Depends(get_storage)):
    """
    Get an object by its (hive-style) path, e.g. /year=2024/month=01/data.json.
    Partition order does not matter. If the object is not stored locally, it is fetched from remote storage.

    A '*' in the path matches all locally stored objects: a single match is returned as-is,
    multiple matches as a list of paths. HEAD requests return the combined size and match count.
    """
    info = storage.resolver.parse(path)
    if info.is_wildcard:
        return await wildcard_response(request, storage, info)
    obj = await storage.coordinator.get(info)
    return await object_response(request, obj, storage.settings.sniff_limit)


@app_objects.post("/{path:path}")
async def write_object(path: str, request: Request, storage: TieredStorage = Depends(get_storage)) -> WriteResponse:
    """
    Store the request body as the object at this path, replacing any existing object.
    The object is copied to remote storage (if configured) in the background.
    """
    info = storage.resolver.parse(path)
    key = await storage.coordinator.put(info, request.stream())
    return WriteResponse(success=True, path=key)
