"""Tests for clear() and epoch invalidation."""

import asyncio
import logging

from tasklane import TaskLane


async def push_later(results, value, delay):
    await asyncio.sleep(delay)
    results.append(value)
    return value


class TestClear:
    """Tests for dropping the queue."""

    async def test_clear_drops_pending_items(self):
        """Nothing queued before clear() runs."""
        lane = TaskLane.create()
        results = []

        lane.add(lambda: asyncio.sleep(0.02), description="blocker")
        lane.add(lambda: results.append("task1"), description="task1")
        lane.add(lambda: results.append("task2"), description="task2")
        lane.add(lambda: results.append("task3"), description="task3")

        lane.clear()
        assert lane.pending_count == 0
        assert lane.idle
        assert lane.is_running is False
        assert lane.epoch == 1

        await asyncio.sleep(0.05)
        assert results == []

    async def test_in_flight_callbacks_become_noops(self, caplog):
        """Items settling after clear() fire no callbacks and log nothing."""
        lane = TaskLane.create()
        results = []

        async def fail():
            await asyncio.sleep(0.01)
            raise RuntimeError("stale")

        with caplog.at_level(logging.ERROR, logger="tasklane"):
            lane.add(
                lambda: push_later(results, "body", 0.01),
                description="stale success",
                on_complete=lambda r: results.append("callback"),
            )
            lane.clear()
            lane.add(fail, description="stale failure", fire_and_forget=True)
            lane.clear()
            await asyncio.sleep(0.03)

        # The coroutine itself still ran to completion
        assert results == ["body"]
        assert caplog.records == []

    async def test_fresh_submission_after_clear(self):
        """A lane keeps working normally after clear()."""
        lane = TaskLane.create()
        results = []

        lane.add(lambda: push_later(results, "old", 0.08), description="old", on_complete=results.append)
        lane.add(lambda: results.append("dropped"), description="dropped")
        lane.clear()

        lane.add(lambda: push_later(results, "new", 0.01), description="new", on_complete=lambda r: results.append(f"cb:{r}"))
        lane.add(lambda: results.append("after"), description="after")

        await lane.join()
        assert results == ["new", "cb:new", "after"]

        await asyncio.sleep(0.1)
        assert results == ["new", "cb:new", "after", "old"]

    async def test_stale_settlement_does_not_advance_new_epoch(self):
        """An old wait-mode item settling must not start a second loop."""
        lane = TaskLane.create()
        results = []

        lane.add(lambda: asyncio.sleep(0.01), description="old")
        lane.clear()

        lane.add(lambda: push_later(results, "new", 0.06), description="new")
        lane.add(lambda: results.append("after new"), description="after new")

        # Old item settles here; "after new" must keep waiting
        await asyncio.sleep(0.03)
        assert results == []
        assert lane.pending_count == 1

        await lane.join()
        assert results == ["new", "after new"]

    async def test_ids_restart_per_epoch(self):
        """Ids restart after clear(); a stale item cannot disturb its namesake."""
        lane = TaskLane.create()
        results = []

        old_id = lane.add(lambda: asyncio.sleep(0.01, result="old"), description="old", on_complete=results.append)
        lane.clear()
        new_id = lane.add(lambda: asyncio.sleep(0.06, result="new"), description="new", on_complete=results.append)
        assert old_id == new_id == 1

        await asyncio.sleep(0.02)
        assert lane.is_alive(new_id) is True

        await lane.join()
        assert results == ["new"]

    async def test_clear_resets_cancellations(self):
        """Cancellation marks do not survive clear()."""
        lane = TaskLane.create()
        results = []

        lane.add(lambda: asyncio.sleep(0.01), description="blocker")
        work_id = lane.add(lambda: None, description="cancelled")
        lane.cancel(work_id)
        lane.clear()

        lane.add(lambda: asyncio.sleep(0.01), description="blocker again")
        same_id = lane.add(lambda: "kept", description="same id", on_complete=results.append)
        assert same_id == work_id

        await lane.join()
        assert results == ["kept"]

    async def test_clear_from_callback(self):
        """clear() inside a callback stops the current pass."""
        lane = TaskLane.create()
        results = []

        lane.add(lambda: asyncio.sleep(0.01), description="blocker")
        lane.add(lambda: "a", description="clears", on_complete=lambda r: lane.clear())
        lane.add(lambda: results.append("b"), description="dropped")

        await asyncio.sleep(0.03)
        assert results == []
        assert lane.idle
        assert lane.is_running is False

        lane.add(lambda: results.append("c"), description="fresh")
        assert results == ["c"]

    def test_clear_then_submit_from_task_body(self):
        """A task body may clear the lane and start new work."""
        lane = TaskLane.create()
        results = []

        def reset():
            lane.clear()
            lane.add(lambda: results.append("restarted"), description="restarted")
            return "reset"

        lane.add(reset, description="reset", on_complete=results.append)

        # The resetting item belongs to the cleared epoch; its result is dropped
        assert results == ["restarted"]
        assert lane.idle

    def test_clear_idle_lane(self):
        """clear() on an idle lane only moves the epoch."""
        lane = TaskLane.create()
        lane.clear()
        lane.clear()
        assert lane.epoch == 2
        assert lane.idle
