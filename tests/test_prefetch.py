import asyncio

import pytest

from swipeleft.selection.prefetch import Prefetcher
from tests.conftest import FakeLoader


class TestPrefetcher:
    @pytest.mark.asyncio
    async def test_get_returns_loaded_value(self):
        prefetcher = Prefetcher(FakeLoader())

        assert await prefetcher.get("a") == b"img:a"

    @pytest.mark.asyncio
    async def test_second_request_attaches_to_inflight(self):
        loader = FakeLoader()
        loader.gate.clear()
        prefetcher = Prefetcher(loader)

        first = prefetcher.request("a")
        second = prefetcher.request("a")
        waiter = asyncio.create_task(prefetcher.get("a"))
        await asyncio.sleep(0)
        loader.gate.set()

        assert first is second
        assert await waiter == b"img:a"
        assert loader.calls == ["a"]

    @pytest.mark.asyncio
    async def test_cancelling_one_waiter_keeps_shared_load(self):
        loader = FakeLoader()
        loader.gate.clear()
        prefetcher = Prefetcher(loader)

        impatient = asyncio.create_task(prefetcher.get("a"))
        patient = asyncio.create_task(prefetcher.get("a"))
        await asyncio.sleep(0)
        impatient.cancel()
        loader.gate.set()

        assert await patient == b"img:a"
        with pytest.raises(asyncio.CancelledError):
            await impatient

    @pytest.mark.asyncio
    async def test_retain_cancels_items_that_left_pool(self):
        loader = FakeLoader()
        loader.gate.clear()
        prefetcher = Prefetcher(loader)
        prefetcher.request_many(["a", "b", "c"])
        task_b = prefetcher.request("b")
        await asyncio.sleep(0)

        prefetcher.retain(["a", "c"])
        await asyncio.sleep(0)

        assert task_b.cancelled()
        assert "b" not in prefetcher
        assert sorted(prefetcher.pending) == ["a", "c"]
        loader.gate.set()
        await prefetcher.close()

    @pytest.mark.asyncio
    async def test_failed_load_is_dropped_and_retried(self):
        loader = FakeLoader(fail={"bad"})
        prefetcher = Prefetcher(loader)

        with pytest.raises(OSError):
            await prefetcher.get("bad")
        assert "bad" not in prefetcher

        loader.fail.clear()
        assert await prefetcher.get("bad") == b"img:bad"
        assert loader.calls == ["bad", "bad"]

    @pytest.mark.asyncio
    async def test_close_cancels_everything(self):
        loader = FakeLoader()
        loader.gate.clear()
        prefetcher = Prefetcher(loader)
        tasks = [prefetcher.request(i) for i in ("a", "b")]

        await prefetcher.close()

        assert all(t.cancelled() for t in tasks)
        assert prefetcher.pending == []
