"""Configuration helpers for backend runtime."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass


DEFAULT_VALIDATE_URL = "https://authserver.mojang.com/validate"


@dataclass(frozen=True)
class BackendSettings:
    cache_driver: str
    redis_url: str
    database_url: str | None
    cache_path: str
    validate_url: str
    validate_timeout: float
    has_joined_timeout: int
    signing_key: str
    log_level: str
    host: str
    port: int


def load_settings() -> BackendSettings:
    port_raw = os.getenv("YGGSESSION_PORT", "8000")
    return BackendSettings(
        cache_driver=os.getenv("YGGSESSION_CACHE_DRIVER", "array").lower(),
        redis_url=os.getenv("YGGSESSION_REDIS_URL", "redis://127.0.0.1:6379/0"),
        database_url=os.getenv("YGGSESSION_DATABASE_URL"),
        cache_path=os.getenv("YGGSESSION_CACHE_PATH", "storage/cache"),
        validate_url=os.getenv("YGGSESSION_VALIDATE_URL", DEFAULT_VALIDATE_URL),
        validate_timeout=float(os.getenv("YGGSESSION_VALIDATE_TIMEOUT", "5.0")),
        has_joined_timeout=int(os.getenv("YGGSESSION_HAS_JOINED_TIMEOUT", "4")),
        signing_key=os.getenv("YGGSESSION_SIGNING_KEY", "dev-signing-key"),
        log_level=os.getenv("YGGSESSION_LOG_LEVEL", "INFO").upper(),
        host=os.getenv("YGGSESSION_HOST", "127.0.0.1"),
        port=int(port_raw),
    )


def configure_logging(level: str) -> None:
    """Attach a stream handler to the package logger at the given level."""
    logger = logging.getLogger("yggsession")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
        logger.addHandler(handler)
