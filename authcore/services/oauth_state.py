"""
OAuth state registry - one-time nonces binding a consent round trip to a user.

Flow:
1. connect: issue() stores nonce -> (user_id, redirect_after, issued_at)
2. the nonce travels through Google inside a signed state token
3. callback: consume() pops the nonce; it is gone whether or not the
   exchange then succeeds, so a replayed callback always fails

Nonces are valid for a bounded window (OAUTH_STATE_TTL_SECONDS, 10 minutes
by default). Expired entries are purged on every issue().

In-memory storage: a callback must reach the worker that issued its nonce.
"""

import secrets
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional


@dataclass(frozen=True)
class PendingState:
    """What the callback learns from a valid nonce."""
    user_id: uuid.UUID
    redirect_after: Optional[str]
    issued_at: datetime


class OAuthStateStore:
    """
    Thread-safe registry of outstanding OAuth nonces.

    Example:
        store = OAuthStateStore(ttl=timedelta(minutes=10))
        nonce = store.issue(user.id, redirect_after="/planner")
        pending = store.consume(nonce)   # PendingState, or None if unknown/expired
        store.consume(nonce)             # None: one-time use
    """

    NONCE_BYTES = 32

    def __init__(self, ttl: timedelta):
        self.ttl = ttl
        self._pending: dict[str, PendingState] = {}
        self._lock = threading.Lock()

    def issue(
        self,
        user_id: uuid.UUID,
        redirect_after: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """Register a fresh nonce for user_id and return it."""
        now = now or datetime.now(timezone.utc)
        nonce = secrets.token_urlsafe(self.NONCE_BYTES)

        with self._lock:
            self._purge_expired(now)
            self._pending[nonce] = PendingState(
                user_id=user_id,
                redirect_after=redirect_after,
                issued_at=now,
            )

        return nonce

    def consume(self, nonce: str, now: Optional[datetime] = None) -> Optional[PendingState]:
        """
        Remove and return the state for nonce.

        Returns:
            PendingState if the nonce was issued within the window, None otherwise
        """
        now = now or datetime.now(timezone.utc)

        with self._lock:
            pending = self._pending.pop(nonce, None)

        if pending is None:
            return None

        if now - pending.issued_at > self.ttl:
            return None

        return pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def _purge_expired(self, now: datetime) -> int:
        expired = [
            nonce for nonce, pending in self._pending.items()
            if now - pending.issued_at > self.ttl
        ]
        for nonce in expired:
            del self._pending[nonce]
        return len(expired)
