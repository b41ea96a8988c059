"""Core data models for tasklane."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable


class WorkState(str, Enum):
    """Where a work item stands from the lane's point of view."""

    PENDING = "pending"
    RUNNING = "running"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"  # Never submitted, already delivered, or cleared


@dataclass
class WorkItem:
    """A unit of work to run on a lane.

    ``task`` is called with no arguments. It may return a plain value, return
    an awaitable that settles later, or raise.
    """

    task: Callable[[], Any]
    description: str  # Shown in diagnostics only
    on_complete: Callable[[Any], Any] | None = None
    on_failure: Callable[[BaseException], Any] | None = None  # Deferred rejections
    on_error: Callable[[BaseException], Any] | None = None  # Generic fallback
    fire_and_forget: bool = False

    def __post_init__(self) -> None:
        if not callable(self.task):
            raise TypeError(f"task must be callable, got {type(self.task).__name__}")
        if not isinstance(self.description, str) or not self.description.strip():
            raise ValueError("description is required")


@dataclass
class QueueEntry:
    """A submitted work item with its lane-assigned id."""

    id: int
    item: WorkItem
    epoch: int
