"""Thread-safe in-memory session storage with LRU and idle-time eviction.

Design decisions
────────────────
• **OrderedDict** keyed by session id for O(1) LRU eviction and promotion.
• **Create-on-miss** ``get``: an unknown or expired id yields a fresh empty
  fact record.
• **Copies in, copies out** so a turn only changes stored state through
  ``put``.
• **Per-session locks** serialise turns of one conversation while different
  conversations proceed in parallel.
• Purely ephemeral: sessions are lost on process restart.

>>> store = SessionStore(max_sessions=1000, ttl_seconds=3600)
>>> with store.lock("abc"):
...     record = store.get("abc")
...     store.put("abc", record)
"""

from __future__ import annotations

import copy
import logging
import threading
import time
import weakref
from collections import OrderedDict
from collections.abc import Callable
from typing import Protocol

from parts_assistant.config import SESSION_MAX_COUNT, SESSION_TTL_SECONDS
from parts_assistant.memory import FactRecord, new_fact_record

logger = logging.getLogger(__name__)


class SessionStorage(Protocol):
    """Key-value capability the turn controller depends on."""

    def get(self, session_id: str) -> FactRecord: ...

    def put(self, session_id: str, record: FactRecord) -> None: ...

    def lock(self, session_id: str) -> threading.Lock: ...


class SessionStore:
    """Bounded in-memory store of fact records."""

    def __init__(
        self,
        max_sessions: int = SESSION_MAX_COUNT,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_sessions = max_sessions
        self._ttl = ttl_seconds
        self._clock = clock
        # session_id → (record, last_access)
        self._store: OrderedDict[str, tuple[FactRecord, float]] = OrderedDict()
        # A lock lives while any turn references it, independent of eviction.
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
        self._lock = threading.Lock()

    def _expired(self, last_access: float) -> bool:
        return self._ttl > 0 and self._clock() - last_access > self._ttl

    def _drop(self, session_id: str) -> None:
        self._store.pop(session_id, None)

    # ── Core operations ──────────────────────────────────────────────

    def get(self, session_id: str) -> FactRecord:
        """Return a copy of the session's record, creating it if needed."""
        with self._lock:
            entry = self._store.get(session_id)
            if entry is not None and self._expired(entry[1]):
                logger.debug("Session %s expired", session_id)
                self._drop(session_id)
                entry = None
            if entry is None:
                record = new_fact_record()
                logger.info("Created session %s", session_id)
            else:
                record = entry[0]
                self._store.move_to_end(session_id)
            self._store[session_id] = (record, self._clock())
            self._evict_locked()
            return copy.deepcopy(record)

    def put(self, session_id: str, record: FactRecord) -> None:
        """Store *record* for *session_id*, evicting old sessions if needed."""
        with self._lock:
            self._store.pop(session_id, None)
            self._store[session_id] = (copy.deepcopy(record), self._clock())
            self._evict_locked()

    def discard(self, session_id: str) -> bool:
        """End a session.  Returns ``True`` if it existed."""
        with self._lock:
            existed = session_id in self._store
            self._drop(session_id)
            return existed

    def lock(self, session_id: str) -> threading.Lock:
        """Return the lock that serialises turns for *session_id*."""
        with self._lock:
            session_lock = self._locks.get(session_id)
            if session_lock is None:
                session_lock = threading.Lock()
                self._locks[session_id] = session_lock
            return session_lock

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    # ── Introspection ────────────────────────────────────────────────

    @property
    def session_count(self) -> int:
        return len(self._store)

    def has(self, session_id: str) -> bool:
        """Check if a live session exists *without* promoting it."""
        with self._lock:
            entry = self._store.get(session_id)
            return entry is not None and not self._expired(entry[1])

    # ── Eviction ─────────────────────────────────────────────────────

    def _evict_locked(self) -> None:
        """Drop expired sessions, then least-recently-used ones over the cap."""
        if self._ttl > 0:
            for session_id in [k for k, (_, seen) in self._store.items() if self._expired(seen)]:
                self._drop(session_id)
                logger.debug("Session %s expired", session_id)
        while len(self._store) > self._max_sessions:
            session_id = next(iter(self._store))
            self._drop(session_id)
            logger.debug("Session %s evicted (cap %d)", session_id, self._max_sessions)
