import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncGenerator

from types_aiobotocore_s3.client import S3Client

from hivegate.config import Settings
from hivegate.coordinator import TierCoordinator
from hivegate.localtier import LocalTier
from hivegate.locks import KeyedLock
from hivegate.paths import PathResolver
from hivegate.pushqueue import PushQueue
from hivegate.remotetier import RemoteTier, create_s3_client
from hivegate.wildcard import WildcardAggregator

logger = logging.getLogger("hivegate.connections")


class TieredStorage:
    """The storage components of one gateway instance, shared by all requests"""

    def __init__(
        self,
        settings: Settings,
        resolver: PathResolver,
        local: LocalTier,
        coordinator: TierCoordinator,
        aggregator: WildcardAggregator,
        remote: RemoteTier | None = None,
        pushes: PushQueue | None = None,
    ):
        self.settings = settings
        self.resolver = resolver
        self.local = local
        self.coordinator = coordinator
        self.aggregator = aggregator
        self.remote = remote
        self.pushes = pushes


@asynccontextmanager
async def tiered_storage(settings: Settings, s3_client: S3Client | None = None) -> AsyncGenerator[TieredStorage, None]:
    """
    The main context manager to start and stop the storage used by the gateway.
    Always use this once (and only once):
        - For running the server: in the FastAPI lifespan
        - For tests: in the storage fixture (optionally passing a fake s3_client)
        - For CLI commands: within the CLI command

    If the remote tier is configured (or a client is given), the bucket must be reachable,
    otherwise RemoteUnavailable is raised.
    """
    local = LocalTier(settings.local_root)
    local.ensure_root()
    resolver = PathResolver(settings.local_root, settings.malformed_segments)

    async with AsyncExitStack() as stack:
        remote, pushes = None, None
        if s3_client is None and settings.remote_enabled:
            logger.info(f"Connecting to remote storage at {settings.s3_host}, bucket: {settings.s3_bucket}")
            s3_client = await stack.enter_async_context(create_s3_client(settings))
        if s3_client is not None:
            if not settings.s3_bucket:
                raise ValueError("s3_bucket not specified")
            remote = RemoteTier(s3_client, settings.s3_bucket)
            await remote.probe(settings.s3_probe_timeout)
            pushes = PushQueue(
                remote,
                KeyedLock(settings.upload_lock),
                workers=settings.push_workers,
                maxsize=settings.push_queue_size,
                upload_timeout=settings.s3_upload_timeout,
            )
            pushes.start()
            stack.push_async_callback(pushes.close, settings.push_drain_timeout)
            logger.info("Successfully connected to remote storage")
        else:
            logger.info("Running in local storage mode")

        coordinator = TierCoordinator(resolver, local, remote, pushes, download_timeout=settings.s3_download_timeout)
        yield TieredStorage(
            settings=settings,
            resolver=resolver,
            local=local,
            coordinator=coordinator,
            aggregator=WildcardAggregator(resolver, local),
            remote=remote,
            pushes=pushes,
        )
