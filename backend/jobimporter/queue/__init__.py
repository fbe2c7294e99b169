"""Work queue implementations for batch dispatch."""

from jobimporter.queue.base import BatchUnit, WorkQueue, retry_delay
from jobimporter.queue.memory import InMemoryWorkQueue

__all__ = ["BatchUnit", "WorkQueue", "InMemoryWorkQueue", "retry_delay"]
