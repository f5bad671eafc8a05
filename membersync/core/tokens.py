"""Access token holders shared by every call made against one remote system.

A holder owns the current bearer token for its system and the wall-clock
instant it expires. Refreshing replaces both atomically and bumps
``generation`` so callers can tell whether the token they were rejected
with has already been replaced.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional, Tuple

if TYPE_CHECKING:
    from .orchestration.gate import ConcurrencyGate

logger = logging.getLogger(__name__)


class TokenRefreshError(Exception):
    """The authentication exchange itself failed. Fatal for the current run."""

    def __init__(self, system: str, detail: str):
        self.system = system
        self.detail = detail
        super().__init__(f"Failed refreshing {system} access token: {detail}")


@dataclass(frozen=True)
class AccessToken:
    """Bearer token plus its expiry instant (UTC)."""
    value: str
    expires_at: datetime
    refresh_token: str = ""

    @classmethod
    def from_lifetime(cls, value: str, expires_in: int, refresh_token: str = "") -> "AccessToken":
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
        return cls(value=value, expires_at=expires_at, refresh_token=refresh_token)


class TokenHolder:
    """Holds the current access token for one external system.

    Subclasses implement :meth:`_fetch` (one authenticated HTTP exchange).
    The holder never retries a failed exchange; any failure surfaces as
    :class:`TokenRefreshError`.

    Args:
        system: Human readable system name used in logs and errors
        gate: Optional concurrency gate; a refresh takes one slot like any
            other outbound call
        leeway: Seconds before ``expires_at`` at which the token already
            counts as expired
    """

    def __init__(self, system: str, gate: Optional[ConcurrencyGate] = None, leeway: int = 10):
        self.system = system
        self.gate = gate
        self.leeway = leeway
        self.generation = 0
        self._token: Optional[AccessToken] = None
        self._lock = threading.Lock()
        self.refresh_lock = threading.Lock()

    @property
    def token(self) -> Optional[AccessToken]:
        return self._token

    def snapshot(self) -> Tuple[str, int]:
        """Return ``(value, generation)`` read together under the holder lock."""
        with self._lock:
            if self._token is None:
                raise TokenRefreshError(self.system, "not authenticated")
            return self._token.value, self.generation

    def is_expired(self) -> bool:
        """Compare UTC now against the token expiry (minus leeway)."""
        token = self._token
        if token is None:
            return True
        return datetime.now(timezone.utc) >= token.expires_at - timedelta(seconds=self.leeway)

    def refresh(self) -> AccessToken:
        """Perform one authentication exchange and swap in the new token."""
        current = self._token
        try:
            if self.gate is not None:
                with self.gate.slot():
                    token = self._fetch(current)
            else:
                token = self._fetch(current)
        except TokenRefreshError:
            raise
        except Exception as exc:
            raise TokenRefreshError(self.system, str(exc)) from exc

        with self._lock:
            self._token = token
            self.generation += 1
        logger.info(f"Refreshed {self.system} access token (generation={self.generation})")
        return token

    def ensure_valid(self) -> None:
        """Refresh when expired; concurrent callers share a single exchange.

        Used by call sites outside the orchestrated pipelines (bulk reads,
        single access events) that have no work to requeue.
        """
        if not self.is_expired():
            return
        with self.refresh_lock:
            if self.is_expired():
                self.refresh()

    def _fetch(self, current: Optional[AccessToken]) -> AccessToken:
        raise NotImplementedError
