"""Single-flight access token refresh with requeue of deferred work.

Concurrent pipelines discover token expiry independently. Without
coordination, N discoveries would trigger N refresh calls, each one
invalidating the refresh token used by the previous one. The coordinator
lets exactly one caller perform the exchange; the others wait on the lock,
find the token already replaced, and move on.

Flow for a pipeline step rejected with 401:

    defer(item, stale_generation)
      ├─ push item into the requeue buffer
      └─ ensure_fresh(stale_generation)
           ├─ lock; refresh only if the token is still the rejected one
           │   (or expired by the clock); unlock
           └─ drain(): resubmit every buffered item whose token has since
              been replaced, put the others back for their own caller
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from ..tokens import TokenHolder, TokenRefreshError
from .requeue import RequeueBuffer

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """Coordinates refreshes of one :class:`TokenHolder` across all tasks of a run.

    Args:
        tokens: Shared token holder
        buffer: Requeue buffer owned by this coordinator
        resubmit: Called once per drained item to hand it back to the pipeline
    """

    def __init__(self, tokens: TokenHolder, buffer: RequeueBuffer, resubmit: Callable[[Any], None]):
        self.tokens = tokens
        self.buffer = buffer
        self._resubmit = resubmit
        self._state_lock = threading.Lock()
        self._is_refreshing = False
        self.refresh_count = 0
        self.fatal_error: Optional[TokenRefreshError] = None

    @property
    def is_refreshing(self) -> bool:
        return self._is_refreshing

    def route(self, item: Any) -> bool:
        """Park ``item`` in the buffer when a refresh is in flight.

        Checked and pushed under the same lock that ends a refresh, so an
        item parked here is always seen by the drain that follows it.

        Returns:
            True when the item was buffered, False when the caller should
            submit it to the pipeline itself
        """
        with self._state_lock:
            if self._is_refreshing:
                self.buffer.push(item)
                return True
        return False

    def ensure_fresh(self, stale_generation: Optional[int] = None) -> None:
        """Make sure the token is usable, refreshing at most once across callers.

        Args:
            stale_generation: Generation of a token the server rejected. When
                omitted only clock expiry is checked.

        Raises:
            TokenRefreshError: The exchange failed (now or in an earlier call)
        """
        if self.fatal_error is not None:
            raise self.fatal_error
        if stale_generation is None and not self.tokens.is_expired():
            return

        with self.tokens.refresh_lock:
            if self.fatal_error is not None:
                raise self.fatal_error
            if self.tokens.is_expired() or self.tokens.generation == stale_generation:
                self._refresh()

        self.drain()

    def defer(self, item: Any, stale_generation: Optional[int]) -> None:
        """Buffer ``item`` rejected with token ``stale_generation`` and trigger a refresh."""
        self.buffer.push(item, stale_generation)
        self.ensure_fresh(stale_generation)

    def drain(self) -> int:
        """Resubmit buffered items whose token has been replaced.

        Processes only the entries present when the drain starts. Entries
        still waiting on the current token go back into the buffer; the
        caller that parked them drains again after its own refresh.

        Returns:
            Number of items resubmitted
        """
        ready = []
        # Drains run under the state lock: they never overlap a refresh in
        # flight or each other, so an entry put back here is always seen by
        # the drain that follows the refresh it is waiting for.
        with self._state_lock:
            if self._is_refreshing:
                return 0
            current = self.tokens.generation
            for entry in self.buffer.drain_all():
                if entry.generation is None or entry.generation < current:
                    ready.append(entry)
                else:
                    self.buffer.push(entry.item, entry.generation)
        for entry in ready:
            self._resubmit(entry.item)
        if ready:
            logger.debug(f"Resubmitted {len(ready)} deferred item(s)")
        return len(ready)

    def _refresh(self) -> None:
        with self._state_lock:
            self._is_refreshing = True
        try:
            self.tokens.refresh()
            self.refresh_count += 1
        except TokenRefreshError as exc:
            logger.critical(f"{exc}")
            self.fatal_error = exc
            raise
        finally:
            with self._state_lock:
                self._is_refreshing = False
