"""hivegate: an HTTP gateway over a hive-partitioned, two-tier object store."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hivegate.api.objects import app_objects
from hivegate.config import get_settings
from hivegate.connections import tiered_storage
from hivegate.errors import GatewayError

logger = logging.getLogger("hivegate.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Initializing storage...")
    async with tiered_storage(get_settings()) as storage:
        app.state.storage = storage
        yield


app = FastAPI(
    title="hivegate",
    description=__doc__ if __doc__ else "",
    openapi_tags=[
        dict(name="objects", description="Endpoints to read, aggregate, and write objects"),
    ],
    lifespan=lifespan,
)
app.include_router(app_objects)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "HEAD", "POST"],
    allow_headers=["*"],
    expose_headers=["X-Matched-Files"],
    max_age=5000,
)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "There was an issue with the request you sent."})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unexpected error handling {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})
