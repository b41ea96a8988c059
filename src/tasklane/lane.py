"""Core TaskLane scheduler class."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from typing import Any, Awaitable, Callable

from tasklane.models import QueueEntry, WorkItem, WorkState

logger = logging.getLogger(__name__)


class TaskLane:
    """
    Single-consumer lane that runs work items one at a time, in order.

    Work items may finish immediately or hand back an awaitable. Either way
    the next wait-mode item does not start until the previous item's outcome
    has been delivered. Fire-and-forget items only hold the lane long enough
    to be launched.

    Fully in-memory. Owned by one event loop thread; no locking.

    Example:
        lane = TaskLane.create()

        lane.add(lambda: write_header(fp), description="write header")
        lane.add(
            lambda: upload(fp),
            description="upload file",
            on_complete=lambda url: print("uploaded to", url),
            on_failure=lambda exc: print("upload failed:", exc),
        )

        await lane.join()
    """

    def __init__(self, name: str = "tasklane") -> None:
        self.name = name

        # Pending work, in submission order
        self._queue: deque[QueueEntry] = deque()
        # Popped entries whose outcome has not been delivered yet
        self._in_flight: dict[int, QueueEntry] = {}
        # Ids to suppress; cleared as soon as the loop observes them
        self._cancelled: set[int] = set()

        self._next_id = 1
        self._epoch = 0
        self._running = False

    @classmethod
    def create(cls, name: str = "tasklane") -> TaskLane:
        """Create a fresh, empty, idle lane."""
        return cls(name)

    def __repr__(self) -> str:
        return (
            f"<TaskLane {self.name!r} epoch={self._epoch} pending={len(self._queue)} "
            f"in_flight={len(self._in_flight)} running={self._running}>"
        )

    # --- Work Operations ---

    def submit(self, item: WorkItem) -> int:
        """
        Append a work item to the lane.

        If the lane is idle the loop starts right away, so the first item
        may run before this call returns.

        Args:
            item: The work to run.

        Returns:
            Id of the queued entry. Ids are unique within the current epoch
            only and restart after ``clear()``.

        Raises:
            TypeError: If ``item`` is not a WorkItem.
        """
        if not isinstance(item, WorkItem):
            raise TypeError(f"Expected WorkItem, got {type(item).__name__}")

        entry = QueueEntry(id=self._next_id, item=item, epoch=self._epoch)
        self._next_id += 1
        self._queue.append(entry)
        logger.debug("[%s] Queued task %d [%s]", self.name, entry.id, item.description)

        if not self._running:
            self._running = True
            self._step()
        return entry.id

    def add(
        self,
        task: Callable[[], Any],
        *,
        description: str,
        on_complete: Callable[[Any], Any] | None = None,
        on_failure: Callable[[BaseException], Any] | None = None,
        on_error: Callable[[BaseException], Any] | None = None,
        fire_and_forget: bool = False,
    ) -> int:
        """
        Build a WorkItem from keyword arguments and submit it.

        Example:
            lane.add(save, description="save settings", on_error=log_it)
        """
        return self.submit(
            WorkItem(
                task=task,
                description=description,
                on_complete=on_complete,
                on_failure=on_failure,
                on_error=on_error,
                fire_and_forget=fire_and_forget,
            )
        )

    def cancel(self, work_id: int) -> None:
        """
        Cancel a work item.

        A pending item is skipped without being called. An item already
        waiting on its awaitable keeps running, but none of its callbacks
        fire. Unknown, finished and already-cancelled ids are ignored.
        """
        if work_id in self._in_flight or self._is_pending(work_id):
            self._cancelled.add(work_id)

    def is_alive(self, work_id: int) -> bool:
        """Return True if the item is still pending or in flight and not cancelled."""
        return self.state(work_id) in (WorkState.PENDING, WorkState.RUNNING)

    def state(self, work_id: int) -> WorkState:
        """Classify a work id in the current epoch."""
        if work_id in self._cancelled:
            return WorkState.CANCELLED
        if work_id in self._in_flight:
            return WorkState.RUNNING
        if self._is_pending(work_id):
            return WorkState.PENDING
        return WorkState.UNKNOWN

    def clear(self) -> None:
        """
        Drop all pending work and start a new epoch.

        Items already waiting on an awaitable are left to settle; when they
        do, their callbacks are skipped and they do not advance the lane.
        """
        self._epoch += 1
        dropped = len(self._queue)
        self._queue.clear()
        self._cancelled.clear()
        self._in_flight.clear()
        self._next_id = 1
        self._running = False
        logger.debug("[%s] Cleared %d pending tasks, now at epoch %d", self.name, dropped, self._epoch)

    # --- Introspection ---

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def epoch(self) -> int:
        """Number of times this lane has been cleared."""
        return self._epoch

    @property
    def idle(self) -> bool:
        """True when nothing is pending and nothing is in flight."""
        return not self._queue and not self._in_flight

    async def join(self, poll_interval: float = 0.01) -> None:
        """
        Wait until the lane has nothing pending and nothing in flight.

        Fire-and-forget items count as in flight until they settle.

        Args:
            poll_interval: Seconds between checks.
        """
        while not self.idle:
            await asyncio.sleep(poll_interval)

    # --- Scheduler Loop ---

    def _is_pending(self, work_id: int) -> bool:
        return any(entry.id == work_id for entry in self._queue)

    def _take_cancelled(self, work_id: int) -> bool:
        """Consume a cancellation mark. Returns True if one was set."""
        if work_id in self._cancelled:
            self._cancelled.discard(work_id)
            return True
        return False

    def _step(self) -> None:
        """Run queued entries until one has to be waited on or the queue is empty."""
        epoch = self._epoch
        while epoch == self._epoch:
            if not self._queue:
                self._running = False
                return

            entry = self._queue.popleft()
            if self._take_cancelled(entry.id):
                logger.debug(
                    "[%s] Skipped cancelled task %d [%s]", self.name, entry.id, entry.item.description
                )
                continue

            try:
                advance = self._run_entry(entry)
            except BaseException:
                # Interrupts abandon this pass; the next submit restarts the loop
                if epoch == self._epoch:
                    self._in_flight.pop(entry.id, None)
                    self._running = False
                raise

            if not advance:
                return

    def _run_entry(self, entry: QueueEntry) -> bool:
        """
        Execute one entry.

        Returns True if the loop may move on to the next entry right away,
        False if it has to wait for this entry's awaitable to settle.
        """
        item = entry.item
        self._in_flight[entry.id] = entry

        future: asyncio.Future | None = None
        try:
            result = item.task()
            if inspect.isawaitable(result):
                future = self._ensure_future(result)
        except Exception as exc:
            if entry.epoch != self._epoch:
                return False
            self._in_flight.pop(entry.id, None)
            if not self._take_cancelled(entry.id):
                self._report_sync_error(entry, exc)
            return True

        # The task body itself cleared the lane
        if entry.epoch != self._epoch:
            if future is not None:
                future.add_done_callback(lambda fut: self._settle(entry, fut))
            return False

        if future is None:
            self._in_flight.pop(entry.id, None)
            if not self._take_cancelled(entry.id):
                self._invoke(entry, item.on_complete, result)
            return True

        future.add_done_callback(lambda fut: self._settle(entry, fut))
        return item.fire_and_forget

    def _ensure_future(self, awaitable: Awaitable[Any]) -> asyncio.Future:
        """Schedule an awaitable on the running loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise RuntimeError("Deferred tasks need a running event loop") from None
        return asyncio.ensure_future(awaitable, loop=loop)

    def _settle(self, entry: QueueEntry, future: asyncio.Future) -> None:
        """Deliver the outcome of a deferred entry, then advance if it was waited on."""
        if entry.epoch != self._epoch:
            logger.debug(
                "[%s] Dropped outcome of task %d [%s] from epoch %d",
                self.name,
                entry.id,
                entry.item.description,
                entry.epoch,
            )
            if not future.cancelled():
                # Marks the exception as retrieved
                future.exception()
            return

        item = entry.item
        self._in_flight.pop(entry.id, None)

        if self._take_cancelled(entry.id):
            logger.debug("[%s] Suppressed outcome of cancelled task %d [%s]", self.name, entry.id, item.description)
            if not future.cancelled():
                future.exception()
        elif future.cancelled():
            self._report_deferred_error(entry, asyncio.CancelledError())
        elif future.exception() is not None:
            self._report_deferred_error(entry, future.exception())
        else:
            self._invoke(entry, item.on_complete, future.result())

        # Fire-and-forget entries advanced when they were launched
        if not item.fire_and_forget and entry.epoch == self._epoch:
            self._step()

    # --- Outcome Delivery ---

    def _invoke(self, entry: QueueEntry, callback: Callable[[Any], Any] | None, arg: Any) -> None:
        """Call a user callback; errors it raises never escape into the loop."""
        if callback is None:
            return
        try:
            callback(arg)
        except Exception as exc:
            self._report_callback_error(entry, callback, exc)

    def _report_sync_error(self, entry: QueueEntry, exc: Exception) -> None:
        item = entry.item
        if item.on_error is not None:
            self._invoke(entry, item.on_error, exc)
        else:
            logger.error(
                "[%s] Unhandled exception in task [%s]: %r", self.name, item.description, exc, exc_info=exc
            )

    def _report_deferred_error(self, entry: QueueEntry, exc: BaseException) -> None:
        item = entry.item
        if item.on_failure is not None:
            self._invoke(entry, item.on_failure, exc)
        elif item.on_error is not None:
            self._invoke(entry, item.on_error, exc)
        else:
            logger.error(
                "[%s] Unhandled rejection in deferred task [%s]: %r",
                self.name,
                item.description,
                exc,
                exc_info=exc,
            )

    def _report_callback_error(self, entry: QueueEntry, callback: Callable[[Any], Any], exc: Exception) -> None:
        item = entry.item
        if item.on_error is not None and callback is not item.on_error:
            try:
                item.on_error(exc)
                return
            except Exception as inner:
                exc = inner
        logger.error(
            "[%s] Unhandled exception in callback of task [%s]: %r",
            self.name,
            item.description,
            exc,
            exc_info=exc,
        )
