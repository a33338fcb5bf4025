import asyncio
import random
from collections import deque
from collections.abc import Iterable
from typing import Self

from swipeleft.constants import DEFAULT_POOL_SIZE, MAX_POOL_SIZE
from swipeleft.errors import EmptyCandidateSet, Exhausted
from swipeleft.logging import get_logger
from swipeleft.session import Session

_logger = get_logger(__name__)


class SelectionBuffer:
    """Randomized, non-repeating stream of ids with a small lookahead pool.

    Every pass draws each candidate exactly once. Draws come straight from an
    explicit list of ids not yet used in the current pass (swap-to-end removal),
    so a draw always succeeds while any eligible id is left. Ids still sitting
    in the pool are parked at the tail of that list and skipped, which keeps
    the pool free of duplicates across a pass boundary. Decided ids are
    dropped with `discard`; once none are left the stream is `Exhausted`.
    """

    def __init__(
        self,
        candidate_ids: Iterable[str],
        pool_size: int = DEFAULT_POOL_SIZE,
        *,
        session: Session | None = None,
        rng: random.Random | None = None,
    ):
        candidates = dict.fromkeys(candidate_ids)
        if not candidates:
            raise EmptyCandidateSet()
        if not 1 <= pool_size <= MAX_POOL_SIZE:
            raise ValueError(f"pool_size must be 1-{MAX_POOL_SIZE}, got {pool_size}")

        self._candidates: dict[str, None] = candidates
        self._pool_size = pool_size
        self._session = session
        self._rng = rng or random.Random()
        self._pool: deque[str] = deque()
        self._unused: list[str] = []
        self._positions: dict[str, int] = {}
        self._pass = 0
        self._lock = asyncio.Lock()

        self._start_pass()
        self._fill()
        self._publish_current()

    @classmethod
    def initialize(
        cls,
        candidate_ids: Iterable[str],
        pool_size: int = DEFAULT_POOL_SIZE,
        *,
        session: Session | None = None,
        rng: random.Random | None = None,
    ) -> Self:
        return cls(candidate_ids, pool_size, session=session, rng=rng)

    def __len__(self) -> int:
        return len(self._candidates)

    @property
    def pool_size(self) -> int:
        return self._pool_size

    @property
    def pool(self) -> list[str]:
        return list(self._pool)

    @property
    def pass_number(self) -> int:
        return self._pass

    @property
    def remaining(self) -> int:
        return len(self._unused)

    def current(self) -> str:
        if not self._pool:
            raise Exhausted()
        return self._pool[0]

    def lookahead(self) -> list[str]:
        return list(self._pool)[1:]

    def discard(self, item_id: str) -> bool:
        """Drop a decided id from every later pass.

        An id already in the pool stays there until it is advanced past.
        """
        if item_id not in self._candidates:
            return False
        del self._candidates[item_id]
        pos = self._positions.get(item_id)
        if pos is not None:
            self._swap(pos, len(self._unused) - 1)
            self._unused.pop()
            del self._positions[item_id]
        return True

    def advance(self) -> str:
        if self._pool:
            self._pool.popleft()
        self._fill()
        self._publish_current()
        return self.current()

    async def advance_async(self) -> str:
        async with self._lock:
            return self.advance()

    def _fill(self) -> None:
        while len(self._pool) < self._pool_size:
            item_id = self._draw()
            if item_id is None:
                break
            self._pool.append(item_id)

    def _draw(self) -> str | None:
        if not self._candidates:
            return None
        if not self._unused:
            pooled = sum(1 for item_id in self._pool if item_id in self._candidates)
            if pooled == len(self._candidates):
                return None
            self._start_pass()

        end = len(self._unused)
        for pooled in self._pool:
            pos = self._positions.get(pooled)
            if pos is not None and pos < end:
                end -= 1
                self._swap(pos, end)
        if end == 0:
            return None

        last = len(self._unused) - 1
        self._swap(self._rng.randrange(end), last)
        item_id = self._unused.pop()
        del self._positions[item_id]
        return item_id

    def _swap(self, i: int, j: int) -> None:
        if i == j:
            return
        unused = self._unused
        unused[i], unused[j] = unused[j], unused[i]
        self._positions[unused[i]] = i
        self._positions[unused[j]] = j

    def _start_pass(self) -> None:
        self._unused = list(self._candidates)
        self._positions = {item_id: i for i, item_id in enumerate(self._unused)}
        self._pass += 1
        if self._pass > 1:
            _logger.debug("Starting selection pass %d over %d ids", self._pass, len(self._candidates))

    def _publish_current(self) -> None:
        if self._session is not None:
            self._session.set_current(self._pool[0] if self._pool else None)
