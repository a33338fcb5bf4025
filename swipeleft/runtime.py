import aiosqlite

import swipeleft.database as database
from swipeleft.channel import Channel
from swipeleft.config import Config, get_config
from swipeleft.engine import DecisionEngine
from swipeleft.errors import EmptyCandidateSet
from swipeleft.logging import configure_logging, get_logger
from swipeleft.models import Status
from swipeleft.remote.auth import StaticTokenProvider
from swipeleft.remote.client import ApiClient
from swipeleft.repository.local import LocalStatusStore
from swipeleft.repository.remote import PublicFeedUploader, RemoteStatusStore
from swipeleft.selection.buffer import SelectionBuffer
from swipeleft.selection.prefetch import Prefetcher
from swipeleft.session import Session
from swipeleft.sources.base import IdentifierSource, ImageLoader, TokenProvider, UploadPipeline
from swipeleft.sync import SyncCoordinator, SyncReport

_logger = get_logger(__name__)


class Runtime:
    """Wires the stores, buffer and engine for one user session."""

    def __init__(
        self,
        source: IdentifierSource,
        loader: ImageLoader,
        config: Config | None = None,
        *,
        uploader: UploadPipeline | None = None,
        token_provider: TokenProvider | None = None,
    ):
        self.config = config or get_config()
        self.source = source
        self.loader = loader
        self.channel = Channel()
        self.session = Session()

        self._uploader = uploader
        self._token_provider = token_provider
        self._conn: aiosqlite.Connection | None = None
        self.client: ApiClient | None = None

        self.local: LocalStatusStore | None = None
        self.remote: RemoteStatusStore | None = None
        self.buffer: SelectionBuffer | None = None
        self.prefetcher: Prefetcher | None = None
        self.engine: DecisionEngine | None = None
        self.sync_coordinator: SyncCoordinator | None = None
        self.candidate_ids: list[str] = []
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        if self._connected:
            return

        configure_logging(self.config.log_level)
        self._conn = await database.connect(self.config.db_path)
        self.local = LocalStatusStore(self._conn)
        await self.local.init_schema()

        if self.config.remote:
            provider = self._token_provider or StaticTokenProvider(self.config.api_token)
            self.client = ApiClient(
                self.config.api_base_url,
                token_provider=provider,
                timeout=self.config.request_timeout,
            )
            self.remote = RemoteStatusStore(self.client, loader=self.loader)
            self.sync_coordinator = SyncCoordinator(self.local, self.remote, channel=self.channel)
            if self._uploader is None:
                self._uploader = PublicFeedUploader(self.remote, self.source)
            self.session.authenticated = await provider.get_token() is not None

        self.candidate_ids = await self.source.list_all(self.config.sort_key)
        pending = await self.local.list_by_status(Status.UNPROCESSED, self.candidate_ids)
        if not pending:
            await self.close()
            raise EmptyCandidateSet("Nothing left to review")

        self.buffer = SelectionBuffer.initialize(
            [item.id for item in pending],
            self.config.pool_size,
            session=self.session,
        )
        self.prefetcher = Prefetcher(self.loader)
        self.engine = DecisionEngine(
            self.local,
            self.buffer,
            session=self.session,
            uploader=self._uploader,
            channel=self.channel,
            prefetcher=self.prefetcher,
        )
        self.engine.prime()
        self._connected = True
        _logger.info(
            "Runtime ready: %d candidates, %d pending review, pool size %d",
            len(self.candidate_ids),
            len(pending),
            self.config.pool_size,
        )

    async def sync(self) -> SyncReport | None:
        if self.sync_coordinator is None:
            return None
        return await self.sync_coordinator.run(self.candidate_ids)

    async def close(self) -> None:
        if self.engine:
            await self.engine.close()
        if self.prefetcher:
            await self.prefetcher.close()
        await self.channel.drain()
        if self.client:
            await self.client.close()
            self.client = None
        if self._conn:
            await self._conn.close()
            self._conn = None
        self._connected = False
