"""Time-bounded cache of group membership.

Entries are fetched lazily from a GroupLookup and expire after a fixed time.
Expiry is only checked when an entry is read; there is no background task.
The cache lock is never held while the lookup runs, so two threads asking
for the same uncached user may both fetch it and the last result wins.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Optional

from permcheck.common import retry
from permcheck.common.exception import LookupFailure, UserNotFound
from permcheck.lookup import GroupLookup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    username: str
    groups: FrozenSet[str]
    fetched_at: float


class GroupCache:
    """Cache of the groups each user belongs to.

    Args:
        lookup: The source of group membership
        cache_time: Seconds an entry stays valid; zero or less disables caching
        max_retries: Times a failing lookup is retried before giving up
        retry_interval: Base of the wait between retries, in seconds
        exponential_backoff: Whether the wait grows as retry_interval ** n
        clock: Source of the current time, in seconds
    """

    def __init__(
        self,
        lookup: GroupLookup,
        cache_time: float,
        max_retries: int = 0,
        retry_interval: float = 1.0,
        exponential_backoff: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lookup = lookup
        self._cache_time = cache_time
        self._max_retries = max_retries
        self._retry_interval = retry_interval
        self._exponential_backoff = exponential_backoff
        self._clock = clock

        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry] = {}

    @property
    def cache_time(self) -> float:
        return self._cache_time

    def _valid_entry(self, username: str) -> Optional[CacheEntry]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(username)
            if entry is None:
                return None
            if now - entry.fetched_at < self._cache_time:
                return entry
            # Expired entries are dropped so that a failed refetch leaves nothing behind.
            del self._entries[username]
            return None

    def group_set(self, username: str) -> FrozenSet[str]:
        """Return the groups of username, fetching them if not cached.

        A user unknown to the lookup has no groups; that result is cached
        like any other.

        Raises:
            LookupFailure: If the lookup failed; nothing is cached
        """
        entry = self._valid_entry(username)
        if entry is not None:
            return entry.groups

        groups = self._fetch(username)
        entry = CacheEntry(username=username, groups=groups, fetched_at=self._clock())
        with self._lock:
            self._entries[username] = entry
        return groups

    def groups(self, username: str) -> List[str]:
        """Return the sorted groups of username; see :meth:`group_set`."""
        return sorted(self.group_set(username))

    def _fetch(self, username: str) -> FrozenSet[str]:
        delays = retry.retry_delays(self._max_retries, self._retry_interval, self._exponential_backoff, logger)
        ntries = 0
        while True:
            ntries += 1
            try:
                return frozenset(self._lookup.get_groups(username))
            except UserNotFound:
                logger.debug("User %s not found, caching empty group set", username)
                return frozenset()
            except Exception as e:
                next_retry = next(delays, None)
                if next_retry is None:
                    logger.warning("Cannot fetch groups for %s after %d attempt(s): %s", username, ntries, e)
                    raise LookupFailure(cause=e) from e
                logger.info(
                    "Cannot fetch groups for %s (%s), trying again in %f seconds (%d/%d)",
                    username,
                    e,
                    next_retry,
                    ntries,
                    self._max_retries,
                )
                time.sleep(next_retry)

    def cache_evict(self, username: str) -> None:
        """Forget the cached groups of username, if any."""
        with self._lock:
            self._entries.pop(username, None)

    def cache_evict_all(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
