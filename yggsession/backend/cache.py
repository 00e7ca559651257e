"""Pending join records keyed by server id."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from yggsession.backend.config import BackendSettings
from yggsession.backend.models import Profile

ProfileResolver = Callable[[str], Optional[Profile]]


def cache_key(server_id: str) -> str:
    return f"SERVER_{server_id}"


class SessionCache(Protocol):
    def put(self, server_id: str, profile_id: str) -> None:
        """Store the joining profile, replacing any unconsumed record."""

    def take_if_matches(self, server_id: str, expected_name: str, resolver: ProfileResolver) -> Profile | None:
        """Consume and return the record when its profile is named ``expected_name``."""


def _match(profile_id: str | None, expected_name: str, resolver: ProfileResolver) -> Profile | None:
    if not profile_id:
        return None
    profile = resolver(profile_id)
    if profile is None or profile.name != expected_name:
        return None
    return profile


@dataclass
class InMemorySessionCache:
    def __post_init__(self) -> None:
        self._entries: dict[str, str] = {}

    def put(self, server_id: str, profile_id: str) -> None:
        self._entries[cache_key(server_id)] = profile_id

    def take_if_matches(self, server_id: str, expected_name: str, resolver: ProfileResolver) -> Profile | None:
        key = cache_key(server_id)
        profile = _match(self._entries.get(key), expected_name, resolver)
        if profile is not None:
            self._entries.pop(key, None)
        return profile


@dataclass
class RedisSessionCache:
    client: Any

    def put(self, server_id: str, profile_id: str) -> None:
        self.client.set(cache_key(server_id), profile_id)

    def take_if_matches(self, server_id: str, expected_name: str, resolver: ProfileResolver) -> Profile | None:
        key = cache_key(server_id)
        stored = self.client.get(key)
        if isinstance(stored, bytes):
            stored = stored.decode("utf-8")
        profile = _match(stored, expected_name, resolver)
        if profile is not None:
            self.client.delete(key)
        return profile


@dataclass
class PostgresSessionCache:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def put(self, server_id: str, profile_id: str) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO cache (key, value)
                    VALUES (%s, %s)
                    ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
                    """,
                    (cache_key(server_id), profile_id),
                )
            conn.commit()

    def take_if_matches(self, server_id: str, expected_name: str, resolver: ProfileResolver) -> Profile | None:
        key = cache_key(server_id)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT value FROM cache WHERE key = %s", (key,))
                row = cur.fetchone()
                profile = _match(None if row is None else row[0], expected_name, resolver)
                if profile is None:
                    return None
                cur.execute("DELETE FROM cache WHERE key = %s", (key,))
            conn.commit()
        return profile


@dataclass
class FileSessionCache:
    directory: Path

    def _path(self, server_id: str) -> Path:
        digest = hashlib.sha1(cache_key(server_id).encode("utf-8")).hexdigest()
        return self.directory / digest[:2] / digest

    def put(self, server_id: str, profile_id: str) -> None:
        path = self._path(server_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(profile_id, encoding="utf-8")

    def take_if_matches(self, server_id: str, expected_name: str, resolver: ProfileResolver) -> Profile | None:
        path = self._path(server_id)
        if not path.exists():
            return None
        profile = _match(path.read_text(encoding="utf-8"), expected_name, resolver)
        if profile is not None:
            path.unlink(missing_ok=True)
        return profile


def create_session_cache(settings: BackendSettings, redis_client: Any = None) -> SessionCache:
    driver = settings.cache_driver
    if driver == "array":
        return InMemorySessionCache()
    if driver == "redis":
        if redis_client is None:
            import redis

            redis_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        return RedisSessionCache(client=redis_client)
    if driver == "database":
        if not settings.database_url:
            raise ValueError("YGGSESSION_DATABASE_URL is required for the database cache driver")
        return PostgresSessionCache(database_url=settings.database_url)
    if driver == "file":
        return FileSessionCache(directory=Path(settings.cache_path))
    raise ValueError(f"Unsupported cache driver: {driver}")
