"""tasklane - Run work one item at a time, in submission order."""

from tasklane.lane import TaskLane
from tasklane.models import QueueEntry, WorkItem, WorkState

__version__ = "0.1.0"
__all__ = ["TaskLane", "WorkItem", "WorkState", "QueueEntry"]
