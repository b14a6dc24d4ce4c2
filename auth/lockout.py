"""
auth/lockout.py -- Per-identity failure counter with a time-boxed lockout.

State machine per email, persisted on the identity record:

    Unlocked(failed_attempts 0..threshold-1)
        -- record_failure() reaching threshold --> Locked(locked_until)
    Locked(locked_until)
        -- is_locked() at or after locked_until --> Unlocked(0)
    any state
        -- record_success() --> Unlocked(0)

Expiry is lazy: nothing sweeps expired locks, is_locked() clears them when it
sees one. The counter read-modify-write in record_failure() is not wrapped in
a transaction; two concurrent failures can lose one increment. The
(failed_attempts, locked_until) pair is always written in one UPDATE.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from auth.store import UserStore

logger = logging.getLogger("sessionguard.auth.lockout")

MAX_FAILED_ATTEMPTS = 5
LOCKOUT_WINDOW = timedelta(minutes=15)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LockoutTracker:
    """Brute-force lockout backed by the identity store.

    The clock is injectable so tests can step time across the window.
    """

    def __init__(
        self,
        store: UserStore,
        threshold: int = MAX_FAILED_ATTEMPTS,
        window: timedelta = LOCKOUT_WINDOW,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.threshold = threshold
        self.window = window
        self.clock = clock

    def is_locked(self, email: str) -> bool:
        """Return True while the lockout window for email is active.

        An elapsed window is cleared here (counter back to 0) before returning
        False. Unknown emails are never locked.
        """
        user = self.store.find_by_email(email)
        if user is None or user.locked_until is None:
            return False
        if self.clock() < user.locked_until:
            return True
        self.store.update(email, failed_attempts=0, locked_until=None)
        logger.info("Lockout expired for %s", email)
        return False

    def record_failure(self, email: str) -> None:
        """Count one failed credential check. No-op for unknown emails."""
        user = self.store.find_by_email(email)
        if user is None:
            return
        attempts = user.failed_attempts + 1
        locked_until = None
        if attempts >= self.threshold:
            locked_until = self.clock() + self.window
            logger.warning("Locking %s until %s after %d failed attempts", email, locked_until.isoformat(), attempts)
        self.store.update(email, failed_attempts=attempts, locked_until=locked_until)

    def record_success(self, email: str) -> None:
        self.store.update(email, failed_attempts=0, locked_until=None)
