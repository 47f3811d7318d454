# SiteLock: Unlock State
#
# Per browsing context (tab), the set of destinations the user already
# unlocked. Memory only: a fresh process, or a closed tab, starts locked
# again.
#
# State per (context, destination):
#   Locked --mark_unlocked--> Unlocked --clear(context)--> Locked
# Nothing else re-locks: no timers, no navigation-based expiry.

import logging
import threading
from typing import Dict, FrozenSet, Hashable, Set

logger = logging.getLogger(__name__)


class UnlockStateStore:
    """In-memory table of unlocked destinations per browsing context.

    The lock is never held across an await.
    """

    def __init__(self):
        self._unlocked: Dict[Hashable, Set[str]] = {}
        self._lock = threading.Lock()

    def is_unlocked(self, ctx: Hashable, destination: str) -> bool:
        with self._lock:
            destinations = self._unlocked.get(ctx)
            return bool(destinations) and destination in destinations

    def mark_unlocked(self, ctx: Hashable, destination: str) -> None:
        """Unlock ``destination`` for ``ctx``. Idempotent."""
        if not destination:
            return
        with self._lock:
            self._unlocked.setdefault(ctx, set()).add(destination)
        logger.debug("Unlocked %s for context %r", destination, ctx)

    def clear(self, ctx: Hashable) -> int:
        """Forget every unlock for ``ctx``. Returns how many were dropped."""
        with self._lock:
            dropped = self._unlocked.pop(ctx, None)
        return len(dropped) if dropped else 0

    def unlocked_destinations(self, ctx: Hashable) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._unlocked.get(ctx, ()))

    def context_count(self) -> int:
        with self._lock:
            return len(self._unlocked)
