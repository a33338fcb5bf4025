import asyncio
from dataclasses import dataclass

from swipeleft.channel import Channel
from swipeleft.errors import Exhausted, InvalidTransition, StatusError
from swipeleft.events import DecisionFailed, DecisionRecorded, UploadFailed
from swipeleft.logging import get_logger
from swipeleft.models import PRIVATE_COLLECTION, Decision, Status
from swipeleft.repository.base import StatusRepository
from swipeleft.selection.buffer import SelectionBuffer
from swipeleft.selection.prefetch import Prefetcher
from swipeleft.session import Session
from swipeleft.sources.base import UploadPipeline

_logger = get_logger(__name__)


@dataclass
class DecisionOutcome:
    item_id: str
    decision: Decision
    status: Status
    next_id: str | None
    upload: asyncio.Task | None = None


class DecisionEngine:
    """Applies a user decision to the current item, then moves the stream on.

    The buffer advances whether or not the write succeeded, so a failing store
    never pins the user to one item. Decided ids leave the buffer for good;
    skipped ids and failed writes come back in a later pass. Persistence errors are re-raised after the
    advance. Uploads for `publish` run in the background; their failures are
    reported on the channel and leave the recorded `uploaded` status in place.
    """

    def __init__(
        self,
        repository: StatusRepository,
        buffer: SelectionBuffer,
        *,
        session: Session | None = None,
        uploader: UploadPipeline | None = None,
        channel: Channel | None = None,
        prefetcher: Prefetcher | None = None,
    ):
        self.repository = repository
        self.buffer = buffer
        self.session = session
        self.uploader = uploader
        self.channel = channel
        self.prefetcher = prefetcher
        self._uploads: dict[str, asyncio.Task] = {}
        self._deciding = asyncio.Lock()

    @property
    def current_id(self) -> str:
        return self.buffer.current()

    @property
    def finished(self) -> bool:
        return not self.buffer.pool

    @property
    def pending_uploads(self) -> list[str]:
        return [item_id for item_id, task in self._uploads.items() if not task.done()]

    def prime(self) -> None:
        if self.prefetcher:
            self.prefetcher.request_many(self.buffer.pool)

    async def discard(self) -> DecisionOutcome:
        return await self.decide(Decision.DISCARD)

    async def keep(self) -> DecisionOutcome:
        return await self.decide(Decision.KEEP)

    async def publish(self) -> DecisionOutcome:
        return await self.decide(Decision.PUBLISH)

    async def decide(self, decision: Decision | str) -> DecisionOutcome:
        decision = Decision(decision)
        async with self._deciding:
            return await self._decide(decision)

    async def _decide(self, decision: Decision) -> DecisionOutcome:
        item_id = self.buffer.current()
        target = decision.target

        try:
            await self._commit(item_id, decision)
        except StatusError as e:
            if isinstance(e, InvalidTransition):
                self.buffer.discard(item_id)
            await self._advance()
            _logger.error("Decision %s for %s failed: %s", decision, item_id, e)
            self._publish(DecisionFailed(item_id=item_id, decision=decision, error=str(e)))
            raise

        self.buffer.discard(item_id)
        next_id = await self._advance()
        if self.session is not None:
            self.session.decisions += 1
        self._publish(DecisionRecorded(item_id=item_id, decision=decision, status=target))
        _logger.info("Recorded %s for %s", target, item_id)

        upload = self._start_upload(item_id) if decision is Decision.PUBLISH else None
        return DecisionOutcome(item_id=item_id, decision=decision, status=target, next_id=next_id, upload=upload)

    async def skip(self) -> str | None:
        async with self._deciding:
            return await self._advance()

    def retry_upload(self, item_id: str) -> asyncio.Task | None:
        return self._start_upload(item_id)

    async def wait_uploads(self) -> None:
        tasks = list(self._uploads.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        for task in self._uploads.values():
            task.cancel()
        await self.wait_uploads()
        self._uploads.clear()

    async def _commit(self, item_id: str, decision: Decision) -> None:
        current = await self.repository.get_status(item_id)
        if current.is_processed:
            raise InvalidTransition(item_id, current, decision.target)
        await self.repository.set_status(item_id, decision.target)
        if decision is Decision.KEEP:
            await self.repository.add_to_collection(PRIVATE_COLLECTION, item_id)

    async def _advance(self) -> str | None:
        try:
            next_id = await self.buffer.advance_async()
        except Exhausted:
            _logger.info("Every candidate has been decided")
            next_id = None
        if self.session is not None:
            self.session.set_current(next_id)
        if self.prefetcher:
            pool = self.buffer.pool
            self.prefetcher.retain(pool)
            self.prefetcher.request_many(pool)
        return next_id

    def _start_upload(self, item_id: str) -> asyncio.Task | None:
        if self.uploader is None:
            return None
        running = self._uploads.get(item_id)
        if running is not None and not running.done():
            return running
        task = asyncio.create_task(self._upload(item_id), name=f"upload:{item_id}")
        self._uploads[item_id] = task
        return task

    async def _upload(self, item_id: str) -> bool:
        try:
            await self.uploader.upload(item_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            retryable = getattr(e, "retryable", False)
            _logger.warning("Upload for %s failed (retryable=%s): %s", item_id, retryable, e)
            self._publish(UploadFailed(item_id=item_id, error=str(e), retryable=retryable))
            return False
        _logger.info("Uploaded %s", item_id)
        return True

    def _publish(self, event) -> None:
        if self.channel is not None:
            self.channel.publish(event)
