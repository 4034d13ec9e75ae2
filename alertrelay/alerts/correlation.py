"""Correlation store mapping alert fingerprints to chat thread keys.

Alertmanager gives no unique ID per alert, only a fingerprint of its label
set, and every future alert with the same labels shares that fingerprint.
Threading on the raw fingerprint would keep appending to one thread forever,
even across unrelated resolve/re-fire cycles. Instead each fingerprint gets
a random token that lives for a TTL, after which the sweep forgets it and
the next alert with those labels starts a fresh thread.
"""

import threading
import uuid
from collections.abc import Callable
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterator

import structlog

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReadWriteLock:
    """Reader-writer lock: many concurrent readers or one writer.

    Writers are preferred once waiting so a steady stream of lookups
    cannot starve a prune.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class CorrelationEntry:
    """Thread identity for one active alert.

    Attributes:
        token: Random UUID4 string, sent as the chat ``threadKey``.
        created_at: Start time of the alert that created the entry.
    """

    token: str
    created_at: datetime


class CorrelationStore:
    """Fingerprint → correlation token map with TTL-based pruning.

    All access goes through the store's reader-writer lock: ``lookup``
    takes the shared side, ``get_or_create``, ``remove`` and ``prune``
    the exclusive side.

    Usage:
        store = CorrelationStore()
        token = store.get_or_create(alert.fingerprint, alert.starts_at)
        ...
        removed = store.prune(timedelta(hours=12))
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        """
        Initialize an empty store.

        Args:
            clock: Returns the current aware datetime (injectable for tests).
        """
        self._clock = clock or _utcnow
        self._entries: dict[str, CorrelationEntry] = {}
        self._lock = ReadWriteLock()

    def get_or_create(self, fingerprint: str, start_time: datetime) -> str:
        """
        Return the live token for a fingerprint, creating one if absent.

        The existence check and the insert share one exclusive critical
        section, so two concurrent callers for an unseen fingerprint always
        end up with the same token.

        Args:
            fingerprint: Alert fingerprint.
            start_time: Alert start time, recorded as the entry's creation time.

        Returns:
            Correlation token.
        """
        with self._lock.write():
            entry = self._entries.get(fingerprint)
            if entry is not None:
                return entry.token

            if start_time.tzinfo is None:
                start_time = start_time.replace(tzinfo=timezone.utc)
            entry = CorrelationEntry(token=str(uuid.uuid4()), created_at=start_time)
            self._entries[fingerprint] = entry

        logger.debug(
            "Added alert to active alerts",
            fingerprint=fingerprint,
            token=entry.token,
        )
        return entry.token

    def lookup(self, fingerprint: str) -> str | None:
        """Return the token for a fingerprint, or None if not active."""
        with self._lock.read():
            entry = self._entries.get(fingerprint)
        return entry.token if entry else None

    def remove(self, fingerprint: str) -> bool:
        """Forget a fingerprint. Returns True if an entry was removed."""
        with self._lock.write():
            return self._entries.pop(fingerprint, None) is not None

    def prune(self, ttl: timedelta) -> int:
        """
        Remove every entry created more than ``ttl`` ago.

        Args:
            ttl: Entry lifetime.

        Returns:
            Number of entries removed.
        """
        expired_before = self._clock() - ttl
        removed = 0

        with self._lock.write():
            for fingerprint, entry in list(self._entries.items()):
                if entry.created_at < expired_before:
                    logger.debug(
                        "Removing alert from active alerts",
                        fingerprint=fingerprint,
                        created=entry.created_at.isoformat(),
                        expired=expired_before.isoformat(),
                    )
                    del self._entries[fingerprint]
                    removed += 1

        return removed

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock.read():
            return fingerprint in self._entries
