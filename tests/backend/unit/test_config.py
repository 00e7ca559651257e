import logging

from yggsession.backend.config import configure_logging, load_settings


def test_load_settings_reads_expected_env(monkeypatch) -> None:
    monkeypatch.setenv("YGGSESSION_CACHE_DRIVER", "Redis")
    monkeypatch.setenv("YGGSESSION_REDIS_URL", "redis://cache:6379/1")
    monkeypatch.setenv("YGGSESSION_DATABASE_URL", "postgresql://local")
    monkeypatch.setenv("YGGSESSION_VALIDATE_URL", "http://auth.local/validate")
    monkeypatch.setenv("YGGSESSION_VALIDATE_TIMEOUT", "2.5")
    monkeypatch.setenv("YGGSESSION_HAS_JOINED_TIMEOUT", "7")
    monkeypatch.setenv("YGGSESSION_SIGNING_KEY", "key-1")
    monkeypatch.setenv("YGGSESSION_LOG_LEVEL", "debug")
    monkeypatch.setenv("YGGSESSION_HOST", "localhost")
    monkeypatch.setenv("YGGSESSION_PORT", "9000")

    settings = load_settings()

    assert settings.cache_driver == "redis"
    assert settings.redis_url == "redis://cache:6379/1"
    assert settings.database_url == "postgresql://local"
    assert settings.validate_url == "http://auth.local/validate"
    assert settings.validate_timeout == 2.5
    assert settings.has_joined_timeout == 7
    assert settings.signing_key == "key-1"
    assert settings.log_level == "DEBUG"
    assert settings.host == "localhost"
    assert settings.port == 9000


def test_load_settings_applies_defaults(monkeypatch) -> None:
    for name in (
        "YGGSESSION_CACHE_DRIVER",
        "YGGSESSION_REDIS_URL",
        "YGGSESSION_DATABASE_URL",
        "YGGSESSION_CACHE_PATH",
        "YGGSESSION_VALIDATE_URL",
        "YGGSESSION_VALIDATE_TIMEOUT",
        "YGGSESSION_HAS_JOINED_TIMEOUT",
        "YGGSESSION_SIGNING_KEY",
        "YGGSESSION_LOG_LEVEL",
        "YGGSESSION_HOST",
        "YGGSESSION_PORT",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.cache_driver == "array"
    assert settings.database_url is None
    assert settings.cache_path == "storage/cache"
    assert settings.validate_url == "https://authserver.mojang.com/validate"
    assert settings.validate_timeout == 5.0
    assert settings.has_joined_timeout == 4
    assert settings.host == "127.0.0.1"
    assert settings.port == 8000


def test_configure_logging_attaches_single_handler() -> None:
    configure_logging("WARNING")
    configure_logging("DEBUG")

    logger = logging.getLogger("yggsession")

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
