from contextlib import asynccontextmanager

import pytest
from httpx import ASGITransport, AsyncClient

from hivegate import api
from hivegate.config import Settings
from hivegate.connections import tiered_storage
from tests.tools import FakeS3Client

TEST_BUCKET = "test-bucket"


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(local_root=tmp_path / "store", s3_bucket=TEST_BUCKET, push_drain_timeout=5)


@pytest.fixture()
def s3() -> FakeS3Client:
    return FakeS3Client(TEST_BUCKET)


@pytest.fixture()
async def storage(settings, s3):
    """Storage with a (fake) remote tier"""
    async with tiered_storage(settings, s3_client=s3) as storage:
        yield storage


@pytest.fixture()
async def local_storage(settings):
    """Storage without a remote tier"""
    async with tiered_storage(settings) as storage:
        yield storage


@asynccontextmanager
async def gateway_client(storage):
    api.app.state.storage = storage
    async with AsyncClient(transport=ASGITransport(app=api.app), base_url="http://test") as client:
        yield client


@pytest.fixture()
async def client(storage):
    async with gateway_client(storage) as c:
        yield c


@pytest.fixture()
async def local_client(local_storage):
    async with gateway_client(local_storage) as c:
        yield c
