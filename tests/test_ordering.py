"""Tests for sequential execution order across sync and async items."""

import asyncio

import pytest

from tasklane import TaskLane, WorkItem


@pytest.fixture
def lane():
    """Create a lane and drop anything left over after the test."""
    l = TaskLane.create()
    yield l
    l.clear()


class TestSyncExecution:
    """Synchronous items run immediately and in order."""

    def test_sync_items_interleave_with_callbacks(self, lane):
        """Each item's callback fires before the next item starts."""
        results = []

        def task_a():
            results.append("a")
            return "ra"

        def task_b():
            results.append("b")
            return "rb"

        lane.add(task_a, description="A", on_complete=results.append)
        lane.add(task_b, description="B", on_complete=results.append)

        assert results == ["a", "ra", "b", "rb"]
        assert lane.idle

    def test_first_item_runs_inside_submit(self, lane):
        """Submitting to an idle lane runs the item before submit returns."""
        results = []
        lane.add(lambda: results.append("ran"), description="immediate")
        assert results == ["ran"]
        assert lane.is_running is False

    def test_results_feed_later_items(self, lane):
        """Later items see the results delivered by earlier ones."""
        results = []
        lane.add(lambda: 10, description="first", on_complete=results.append)
        lane.add(lambda: results[0] * 2, description="second", on_complete=results.append)
        lane.add(lambda: results[1] + 5, description="third", on_complete=results.append)
        assert results == [10, 20, 25]

    def test_submit_accepts_work_item(self, lane):
        """submit() takes a prebuilt WorkItem."""
        results = []
        item = WorkItem(task=lambda: "value", description="prebuilt", on_complete=results.append)
        work_id = lane.submit(item)
        assert work_id == 1
        assert results == ["value"]


class TestAsyncExecution:
    """Awaitable results hold the lane until they settle."""

    async def test_slow_item_finishes_before_fast_one_starts(self, lane):
        """Completion order equals submission order regardless of latency."""
        results = []

        async def slow():
            await asyncio.sleep(0.05)
            results.append("task1")
            return "result1"

        async def fast():
            await asyncio.sleep(0.01)
            results.append("task2")
            return "result2"

        lane.add(slow, description="slow", on_complete=results.append)
        lane.add(fast, description="fast", on_complete=results.append)

        await lane.join()
        assert results == ["task1", "result1", "task2", "result2"]

    async def test_next_item_waits_for_pending_result(self, lane):
        """A wait-mode item blocks the sync item queued after it."""
        results = []
        lane.add(lambda: asyncio.sleep(0.02), description="blocker")
        lane.add(lambda: results.append("after"), description="after")

        assert results == []
        assert lane.pending_count == 1
        assert lane.in_flight_count == 1
        assert lane.is_running is True

        await lane.join()
        assert results == ["after"]
        assert lane.is_running is False

    async def test_mixed_sync_and_async(self, lane):
        """Sync, wait-mode and fire-and-forget items keep their documented order."""
        results = []

        async def push_later(value, delay):
            await asyncio.sleep(delay)
            results.append(value)
            return "done"

        lane.add(lambda: results.append("sync1"), description="sync1")
        lane.add(lambda: push_later("async2", 0.02), description="async2")
        lane.add(lambda: results.append("sync3"), description="sync3")
        lane.add(lambda: push_later("async4", 0.04), description="async4", fire_and_forget=True)
        lane.add(lambda: results.append("sync5"), description="sync5")

        await lane.join()
        assert results == ["sync1", "async2", "sync3", "sync5", "async4"]

    async def test_future_handle(self, lane):
        """A plain asyncio.Future counts as a deferred result."""
        loop = asyncio.get_running_loop()
        results = []

        def start():
            fut = loop.create_future()
            loop.call_later(0.01, fut.set_result, 5)
            return fut

        lane.add(start, description="future", on_complete=results.append)
        lane.add(lambda: results.append("next"), description="next")

        await lane.join()
        assert results == [5, "next"]

    async def test_empty_lane_restarts(self, lane):
        """After draining, a new submission starts the loop again."""
        results = []
        lane.add(lambda: asyncio.sleep(0.01, result="one"), description="one", on_complete=results.append)
        await lane.join()
        assert lane.is_running is False

        lane.add(lambda: asyncio.sleep(0.01, result="two"), description="two", on_complete=results.append)
        await lane.join()
        assert results == ["one", "two"]

    async def test_many_sync_items_after_blocker(self, lane):
        """A long run of queued sync items does not grow the call stack."""
        count = 5000
        results = []
        lane.add(lambda: asyncio.sleep(0.01), description="blocker")
        for i in range(count):
            lane.add(lambda i=i: results.append(i), description=f"sync {i}")

        await lane.join()
        assert results == list(range(count))


class TestReentrancy:
    """Callbacks and task bodies may use the lane they run on."""

    async def test_callback_submission_goes_to_back(self, lane):
        """An item submitted from a callback runs after already-queued items."""
        results = []

        lane.add(lambda: asyncio.sleep(0.01), description="blocker")
        lane.add(
            lambda: results.append("a"),
            description="A",
            on_complete=lambda _: lane.add(lambda: results.append("c"), description="C"),
        )
        lane.add(lambda: results.append("b"), description="B")

        await lane.join()
        assert results == ["a", "b", "c"]

    async def test_task_body_submission(self, lane):
        """A task body may submit follow-up work."""
        results = []

        async def parent():
            await asyncio.sleep(0.01)
            results.append("parent")
            lane.add(lambda: results.append("child"), description="child")

        lane.add(parent, description="parent")
        lane.add(lambda: results.append("sibling"), description="sibling")

        await lane.join()
        assert results == ["parent", "sibling", "child"]
