from collections.abc import Iterable
from dataclasses import dataclass, field

from swipeleft.channel import Channel
from swipeleft.errors import SwipeLeftError
from swipeleft.events import SyncCompleted
from swipeleft.logging import get_logger
from swipeleft.models import PRIVATE_COLLECTION, PROCESSED_STATUSES, Collection, Item, Status
from swipeleft.repository.base import StatusRepository

_logger = get_logger(__name__)


@dataclass
class SyncReport:
    pushed: list[str] = field(default_factory=list)
    pulled: list[str] = field(default_factory=list)
    unchanged: int = 0
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def local_wins(local: Item, remote: Item) -> bool:
    """Last writer wins; a side without a timestamp loses to the local copy."""
    if local.last_modified is None or remote.last_modified is None:
        return True
    return local.last_modified >= remote.last_modified


class SyncCoordinator:
    def __init__(self, local: StatusRepository, remote: StatusRepository, *, channel: Channel | None = None):
        self.local = local
        self.remote = remote
        self.channel = channel

    async def run(self, candidate_ids: Iterable[str] | None = None) -> SyncReport:
        candidates = list(candidate_ids) if candidate_ids is not None else None
        local_items = await self._collect(self.local, candidates)
        remote_items = await self._collect(self.remote, None)
        remote_private = await self.remote.get_collection(PRIVATE_COLLECTION)

        report = SyncReport()
        for item_id in sorted(local_items.keys() | remote_items.keys()):
            try:
                await self._reconcile(item_id, local_items.get(item_id), remote_items.get(item_id), remote_private, report)
            except SwipeLeftError as e:
                _logger.warning("Sync failed for %s: %s", item_id, e)
                report.failed.append(item_id)

        _logger.info(
            "Sync finished: %d pushed, %d pulled, %d unchanged, %d failed",
            len(report.pushed),
            len(report.pulled),
            report.unchanged,
            len(report.failed),
        )
        if self.channel is not None:
            self.channel.publish(
                SyncCompleted(
                    pushed=len(report.pushed),
                    pulled=len(report.pulled),
                    unchanged=report.unchanged,
                    failed=report.failed,
                )
            )
        return report

    async def _collect(self, repo: StatusRepository, candidates: list[str] | None) -> dict[str, Item]:
        items: dict[str, Item] = {}
        for status in PROCESSED_STATUSES:
            for item in await repo.list_by_status(status, candidates):
                items[item.id] = item
        return items

    async def _reconcile(
        self,
        item_id: str,
        local: Item | None,
        remote: Item | None,
        remote_private: Collection,
        report: SyncReport,
    ) -> None:
        if remote is None or (local is not None and local.status is not remote.status and local_wins(local, remote)):
            await self._push(local, remote_private)
            report.pushed.append(item_id)
        elif local is None or local.status is not remote.status:
            await self.local.set_status(item_id, remote.status, at=remote.last_modified)
            if local is not None and local.status is Status.SAVED:
                await self.local.remove_from_collection(PRIVATE_COLLECTION, item_id)
            report.pulled.append(item_id)
        elif local.status is Status.SAVED and not remote_private.contains(item_id):
            await self.remote.add_to_collection(PRIVATE_COLLECTION, item_id)
            report.pushed.append(item_id)
        else:
            report.unchanged += 1

    async def _push(self, local: Item, remote_private: Collection) -> None:
        # saved writes add the membership themselves
        await self.remote.set_status(local.id, local.status, at=local.last_modified)
        if local.status is not Status.SAVED and remote_private.contains(local.id):
            await self.remote.remove_from_collection(PRIVATE_COLLECTION, local.id)
