import logging

import pytest

from hivegate.config import Settings, UploadLockScope
from hivegate.connections import tiered_storage
from hivegate.errors import RemotePushFailed
from hivegate.locks import KeyedLock
from hivegate.pushqueue import PushJob, PushQueue
from hivegate.remotetier import RemoteTier
from tests.conftest import TEST_BUCKET
from tests.tools import client_error


@pytest.fixture()
def remote(s3) -> RemoteTier:
    return RemoteTier(s3, TEST_BUCKET)


def _job(tmp_path, key: str, content: bytes = b"content") -> PushJob:
    path = tmp_path / key.replace("/", "_")
    path.write_bytes(content)
    return PushJob(key=key, path=path)


@pytest.mark.anyio
async def test_push(tmp_path, s3, remote):
    queue = PushQueue(remote)
    queue.start()
    try:
        assert queue.submit(_job(tmp_path, "a=1/f.json", b'{"a": 1}'))
        await queue.drain()
    finally:
        await queue.close()
    assert s3.objects["a=1/f.json"] == b'{"a": 1}'
    assert queue.stats.submitted == 1
    assert queue.stats.pushed == 1
    assert queue.pending == 0


@pytest.mark.anyio
async def test_push_failure_is_logged(tmp_path, s3, remote, caplog):
    s3.errors["put_object"] = client_error("InternalError", "PutObject")
    queue = PushQueue(remote)
    queue.start()
    try:
        with caplog.at_level(logging.ERROR, logger="hivegate.pushqueue"):
            queue.submit(_job(tmp_path, "a=1/f.json"))
            # the local file may be gone by the time the push runs
            queue.submit(PushJob(key="a=2/f.json", path=tmp_path / "missing"))
            await queue.drain()
    finally:
        await queue.close()
    assert queue.stats.failed == 2
    assert queue.stats.pushed == 0
    assert isinstance(queue.last_failure, RemotePushFailed)
    assert "Push of a=1/f.json failed" in caplog.text
    assert s3.objects == {}


@pytest.mark.anyio
async def test_full_queue_drops(tmp_path, remote):
    queue = PushQueue(remote, maxsize=1)
    assert queue.submit(_job(tmp_path, "one"))
    assert not queue.submit(_job(tmp_path, "two"))
    assert queue.stats.dropped == 1
    assert queue.pending == 1
    await queue.close(timeout=0.1)


@pytest.mark.anyio
async def test_pushes_of_same_key_are_serialized(tmp_path, s3, remote):
    s3.delays["put_object"] = 0.05
    queue = PushQueue(remote, KeyedLock(UploadLockScope.per_key), workers=3)
    queue.start()
    try:
        for _ in range(3):
            queue.submit(_job(tmp_path, "same"))
        await queue.drain()
        assert s3.max_active_puts == 1

        for key in ("k1", "k2", "k3"):
            queue.submit(_job(tmp_path, key))
        await queue.drain()
        assert s3.max_active_puts == 3
    finally:
        await queue.close()


@pytest.mark.anyio
async def test_global_lock_serializes_all_pushes(tmp_path, s3, remote):
    s3.delays["put_object"] = 0.02
    queue = PushQueue(remote, KeyedLock(UploadLockScope.global_), workers=3)
    queue.start()
    try:
        for key in ("k1", "k2", "k3"):
            queue.submit(_job(tmp_path, key))
        await queue.drain()
    finally:
        await queue.close()
    assert s3.max_active_puts == 1
    assert set(s3.objects) == {"k1", "k2", "k3"}


@pytest.mark.anyio
async def test_upload_timeout(tmp_path, s3, remote):
    s3.delays["put_object"] = 1
    queue = PushQueue(remote, upload_timeout=0.01)
    queue.start()
    try:
        queue.submit(_job(tmp_path, "slow"))
        await queue.drain()
    finally:
        await queue.close()
    assert queue.stats.failed == 1
    assert "slow" not in s3.objects


@pytest.mark.anyio
async def test_configured_lock_scope_is_used(tmp_path, s3):
    settings = Settings(local_root=tmp_path / "store", s3_bucket=TEST_BUCKET, upload_lock="global")
    async with tiered_storage(settings, s3_client=s3) as storage:
        assert storage.pushes.lock.scope == UploadLockScope.global_
        s3.delays["put_object"] = 0.02
        for key in ("k1", "k2", "k3"):
            storage.pushes.submit(_job(tmp_path, key))
        await storage.pushes.drain()
    assert s3.max_active_puts == 1
    assert set(s3.objects) == {"k1", "k2", "k3"}
