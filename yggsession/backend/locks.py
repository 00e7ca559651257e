"""Mutual exclusion scoped to a cache key.

Only some cache drivers can provide locks shared by every instance of the
service. With any other driver the coordinator runs critical sections
directly, which is safe for a single process only.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
import time
from typing import Any, Callable, Protocol, TypeVar

from yggsession.backend.config import BackendSettings
from yggsession.backend.errors import LockTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOCK_DRIVERS = frozenset({"redis", "database", "array", "memcached", "dynamodb"})


class NamedLock(Protocol):
    def acquire(self, timeout_seconds: float) -> bool:
        """Try once when ``timeout_seconds`` is 0, otherwise wait up to that long."""

    def release(self) -> None:
        """Release a lock acquired by this handle."""


class LockBackend(Protocol):
    def lock(self, name: str) -> NamedLock:
        """Return a handle for the named lock."""


@dataclass
class _LockEntry:
    lock: threading.Lock
    handles: int = 0


class _ThreadLock:
    def __init__(self, backend: ThreadLockBackend, name: str, lock: threading.Lock) -> None:
        self._backend = backend
        self._name = name
        self._lock = lock

    def acquire(self, timeout_seconds: float) -> bool:
        try:
            if timeout_seconds == 0:
                acquired = self._lock.acquire(blocking=False)
            else:
                acquired = self._lock.acquire(timeout=timeout_seconds)
        except BaseException:
            self._backend._forget(self._name)
            raise
        if not acquired:
            self._backend._forget(self._name)
        return acquired

    def release(self) -> None:
        self._lock.release()
        self._backend._forget(self._name)


class ThreadLockBackend:
    """Process-local locks for the ``array`` driver.

    An entry lives only while some handle holds or waits for it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, _LockEntry] = {}

    def lock(self, name: str) -> NamedLock:
        with self._guard:
            entry = self._locks.get(name)
            if entry is None:
                entry = self._locks[name] = _LockEntry(lock=threading.Lock())
            entry.handles += 1
        return _ThreadLock(self, name, entry.lock)

    def _forget(self, name: str) -> None:
        with self._guard:
            entry = self._locks[name]
            entry.handles -= 1
            if entry.handles == 0:
                del self._locks[name]


class _RedisLock:
    def __init__(self, lock: Any) -> None:
        self._lock = lock

    def acquire(self, timeout_seconds: float) -> bool:
        if timeout_seconds == 0:
            return bool(self._lock.acquire(blocking=False))
        return bool(self._lock.acquire(blocking=True, blocking_timeout=timeout_seconds))

    def release(self) -> None:
        self._lock.release()


@dataclass
class RedisLockBackend:
    client: Any

    def lock(self, name: str) -> NamedLock:
        return _RedisLock(self.client.lock(name))


class _AdvisoryLock:
    def __init__(self, connect: Callable[[], Any], name: str, poll_interval: float) -> None:
        self._connect = connect
        self._name = name
        self._poll_interval = poll_interval
        self._conn: Any = None

    def _try_lock(self, conn: Any) -> bool:
        with conn.cursor() as cur:
            cur.execute("SELECT pg_try_advisory_lock(hashtext(%s))", (self._name,))
            row = cur.fetchone()
        return bool(row and row[0])

    def acquire(self, timeout_seconds: float) -> bool:
        conn = self._connect()
        deadline = time.monotonic() + timeout_seconds
        try:
            while not self._try_lock(conn):
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    conn.close()
                    return False
                time.sleep(min(self._poll_interval, remaining))
        except Exception:
            conn.close()
            raise
        self._conn = conn
        return True

    def release(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT pg_advisory_unlock(hashtext(%s))", (self._name,))
        finally:
            conn.close()


@dataclass
class PostgresLockBackend:
    """Session-level advisory locks for the ``database`` driver."""

    database_url: str
    poll_interval: float = 0.25

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url, autocommit=True)

    def lock(self, name: str) -> NamedLock:
        return _AdvisoryLock(self._connect, name, self.poll_interval)


class LockCoordinator:
    def __init__(self, driver: str, backend: LockBackend | None = None) -> None:
        self._driver = driver
        if self.supports_locks and backend is None:
            raise ValueError(f"No lock backend configured for cache driver {driver}")
        if not self.supports_locks:
            logger.warning(
                "Cache driver %s does not support locks; join/hasJoined run without exclusion",
                driver,
            )
            backend = None
        self._backend = backend

    @property
    def supports_locks(self) -> bool:
        return self._driver in LOCK_DRIVERS

    def with_lock(self, key: str, timeout_seconds: float, body: Callable[[], T]) -> T | None:
        """Run ``body`` while holding ``<key>-lock``.

        A zero timeout probes once and skips ``body`` when the lock is held
        elsewhere. A positive timeout waits and raises LockTimeout when it
        runs out.
        """
        if self._backend is None:
            return body()

        name = f"{key}-lock"
        lock = self._backend.lock(name)
        if not lock.acquire(timeout_seconds):
            if timeout_seconds == 0:
                logger.debug("Lock %s is busy, skipping", name)
                return None
            raise LockTimeout(name, timeout_seconds)
        try:
            return body()
        finally:
            lock.release()


def create_lock_coordinator(settings: BackendSettings, redis_client: Any = None) -> LockCoordinator:
    driver = settings.cache_driver
    backend: LockBackend | None = None
    if driver == "array":
        backend = ThreadLockBackend()
    elif driver == "redis":
        if redis_client is None:
            import redis

            redis_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        backend = RedisLockBackend(client=redis_client)
    elif driver == "database":
        if not settings.database_url:
            raise ValueError("YGGSESSION_DATABASE_URL is required for the database cache driver")
        backend = PostgresLockBackend(database_url=settings.database_url)
    return LockCoordinator(driver=driver, backend=backend)
