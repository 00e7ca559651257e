"""Backend package for the Yggdrasil session handshake."""

from .config import BackendSettings, load_settings
from .errors import ForbiddenOperation, ForbiddenReason, LockTimeout
from .locks import LockCoordinator, create_lock_coordinator
from .cache import InMemorySessionCache, SessionCache, create_session_cache
from .service import SessionService
from .store import AccountDirectory, InMemoryAccountDirectory, PostgresAccountDirectory, create_directory

__all__ = [
    "AccountDirectory",
    "BackendSettings",
    "create_directory",
    "create_lock_coordinator",
    "create_session_cache",
    "ForbiddenOperation",
    "ForbiddenReason",
    "InMemoryAccountDirectory",
    "InMemorySessionCache",
    "load_settings",
    "LockCoordinator",
    "LockTimeout",
    "PostgresAccountDirectory",
    "SessionCache",
    "SessionService",
]
