"""Work queue capability interface.

The import pipeline only needs three things from a durable queue: submit many
batch units in one call, deliver each unit to one worker at a time with the
retry contract below, and report unit counts for observability.

Retry contract: a unit is attempted up to max_attempts times (default 3) with
exponential backoff of backoff_seconds * 2 ** (attempt - 1), i.e. 2s, 4s, 8s.
A worker asks for a retry by raising RetryBatch with the items still pending.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, replace

QUEUE_STATES = ("waiting", "active", "completed", "failed")


@dataclass(frozen=True)
class BatchUnit:
    """One unit of work: a batch of raw feed items tagged with its run."""

    run_id: str
    source: str
    batch_index: int
    items: list[dict] = field(default_factory=list)

    @property
    def name(self) -> str:
        return f"import-batch:{self.run_id}:{self.batch_index}"

    def with_items(self, items: list[dict]) -> "BatchUnit":
        return replace(self, items=list(items))

    def to_message(self) -> dict:
        return asdict(self)

    @classmethod
    def from_message(cls, message: dict) -> "BatchUnit":
        return cls(
            run_id=str(message["run_id"]),
            source=message["source"],
            batch_index=int(message["batch_index"]),
            items=list(message.get("items") or []),
        )


def retry_delay(attempt: int, backoff_seconds: float = 2.0) -> float:
    """Backoff before the attempt following `attempt` (1-based)."""
    return backoff_seconds * 2 ** (attempt - 1)


class WorkQueue(ABC):

    @abstractmethod
    def submit_bulk(self, units: list[BatchUnit]) -> None:
        """Submit all units in one call. Each unit then lives independently."""
        ...

    @abstractmethod
    def counts(self) -> dict[str, int]:
        """Unit counts keyed by QUEUE_STATES."""
        ...
