"""Buffer holding work deferred while an access token is being refreshed."""
from __future__ import annotations

import queue
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class DeferredItem:
    """A buffered work item.

    Attributes:
        item: The work item to replay from the start of its pipeline
        generation: Token generation the item was rejected with, or None when
            it was parked only because a refresh was already in flight
    """
    item: Any
    generation: Optional[int] = None


class RequeueBuffer:
    """Unbounded FIFO with non-blocking push and drain.

    Unbounded so that a push can never block against in-flight work.
    """

    def __init__(self):
        self._queue: "queue.Queue[DeferredItem]" = queue.Queue()

    def push(self, item: Any, generation: Optional[int] = None) -> None:
        self._queue.put_nowait(DeferredItem(item, generation))

    def drain_all(self) -> list[DeferredItem]:
        """Pop every entry present right now; never waits for new ones."""
        drained = []
        while True:
            try:
                drained.append(self._queue.get_nowait())
            except queue.Empty:
                return drained

    def __len__(self) -> int:
        return self._queue.qsize()
