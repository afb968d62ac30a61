"""One-time verification codes and the in-memory store that holds them.

Each username has at most one pending code. Issuing a new code replaces the
previous one, and a code is consumed by the first successful check. The store
lives for the lifetime of the process; restarting the service discards all
pending codes.
"""

import secrets
import threading
import zlib
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from enum import Enum

DIGITS = "0123456789"
DEFAULT_CODE_LENGTH = 6
DEFAULT_TTL = timedelta(minutes=5)
DEFAULT_LOCK_STRIPES = 64


def utcnow() -> datetime:
    return datetime.now(UTC)


def generate_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    """Generate a numeric code from the system's secure random source."""
    if length < 1:
        raise ValueError("Code length must be positive")
    return "".join(secrets.choice(DIGITS) for _ in range(length))


@dataclass(frozen=True)
class VerificationEntry:
    """A pending code for one username."""

    code: str
    issued_at: datetime
    attempts: int = 0


class VerificationStatus(str, Enum):
    """Outcome of checking a supplied code."""

    OK = "ok"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    MISMATCH = "mismatch"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class VerificationResult:
    """Result of VerificationStore.take_if_valid."""

    status: VerificationStatus
    remaining_attempts: int | None = None

    @property
    def ok(self) -> bool:
        return self.status is VerificationStatus.OK


class VerificationStore:
    """Thread-safe, TTL-aware holder of pending verification codes.

    Every read-then-write on a key runs under that key's lock. Keys are hashed
    onto a fixed set of lock stripes, so unrelated usernames rarely contend
    and no per-key lock bookkeeping is needed.

    Usage:
        store = VerificationStore(ttl=timedelta(minutes=5), max_attempts=5)
        store.put("alice", generate_code())
        result = store.take_if_valid("alice", supplied_code)
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        max_attempts: int = 0,
        clock: Callable[[], datetime] = utcnow,
        stripes: int = DEFAULT_LOCK_STRIPES,
    ) -> None:
        if stripes < 1:
            raise ValueError("At least one lock stripe is required")
        self.ttl = ttl
        self.max_attempts = max_attempts
        self._clock = clock
        self._entries: dict[str, VerificationEntry] = {}
        self._locks = [threading.Lock() for _ in range(stripes)]

    def _lock_for(self, username: str) -> threading.Lock:
        # crc32 is stable across processes, unlike hash() on str
        return self._locks[zlib.crc32(username.encode("utf-8")) % len(self._locks)]

    def _is_expired(self, entry: VerificationEntry, now: datetime, ttl: timedelta) -> bool:
        return now - entry.issued_at > ttl

    def put(self, username: str, code: str) -> VerificationEntry:
        """Store a code for username, replacing any pending one."""
        entry = VerificationEntry(code=code, issued_at=self._clock())
        with self._lock_for(username):
            self._entries[username] = entry
        return entry

    def take_if_valid(
        self,
        username: str,
        code: str,
        ttl: timedelta | None = None,
    ) -> VerificationResult:
        """Check a supplied code and consume the entry when appropriate.

        - NOT_FOUND: nothing pending, nothing changes.
        - EXPIRED: older than the TTL; removed whatever code was supplied.
        - OK: code matches; removed so it can't be used twice.
        - MISMATCH: wrong code; kept for another try within the TTL.
        - EXHAUSTED: wrong code and max_attempts reached; removed.
        """
        ttl = self.ttl if ttl is None else ttl

        with self._lock_for(username):
            entry = self._entries.get(username)
            if entry is None:
                return VerificationResult(VerificationStatus.NOT_FOUND)

            if self._is_expired(entry, self._clock(), ttl):
                del self._entries[username]
                return VerificationResult(VerificationStatus.EXPIRED)

            if secrets.compare_digest(entry.code.encode("utf-8"), code.encode("utf-8")):
                del self._entries[username]
                return VerificationResult(VerificationStatus.OK)

            attempts = entry.attempts + 1
            if self.max_attempts and attempts >= self.max_attempts:
                del self._entries[username]
                return VerificationResult(VerificationStatus.EXHAUSTED, remaining_attempts=0)

            self._entries[username] = replace(entry, attempts=attempts)
            remaining = self.max_attempts - attempts if self.max_attempts else None
            return VerificationResult(VerificationStatus.MISMATCH, remaining_attempts=remaining)

    def peek(self, username: str) -> VerificationEntry | None:
        """Return the pending entry for username without consuming it."""
        with self._lock_for(username):
            return self._entries.get(username)

    def discard(self, username: str) -> bool:
        """Drop any pending entry. Returns True if one existed."""
        with self._lock_for(username):
            return self._entries.pop(username, None) is not None

    def purge_expired(self, ttl: timedelta | None = None) -> int:
        """Remove expired entries.

        Returns:
            Number of entries removed
        """
        ttl = self.ttl if ttl is None else ttl
        removed = 0
        for username in list(self._entries):
            with self._lock_for(username):
                entry = self._entries.get(username)
                if entry is not None and self._is_expired(entry, self._clock(), ttl):
                    del self._entries[username]
                    removed += 1
        return removed

    def clear(self) -> None:
        """Remove all entries. Useful for testing."""
        for lock in self._locks:
            lock.acquire()
        try:
            self._entries.clear()
        finally:
            for lock in self._locks:
                lock.release()

    def __len__(self) -> int:
        return len(self._entries)
