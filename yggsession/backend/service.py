"""The join / hasJoined handshake between clients, game servers and the authority."""

from __future__ import annotations

import logging
from typing import Any, Callable

from yggsession.backend.audit import AuditSink
from yggsession.backend.cache import SessionCache, cache_key
from yggsession.backend.errors import ForbiddenOperation, ForbiddenReason, LockTimeout
from yggsession.backend.locks import LockCoordinator
from yggsession.backend.models import Profile
from yggsession.backend.security import TokenValidationChain, mask_token
from yggsession.backend.store import AccountDirectory

logger = logging.getLogger(__name__)

HAS_JOINED_LOCK_TIMEOUT = 4


class SessionService:
    """Bridge a client's join call to the game server's hasJoined call.

    A successful join leaves one pending record per server id. The first
    hasJoined naming the same player consumes it. Both sides touch the
    record only while holding the server's lock.
    """

    def __init__(
        self,
        directory: AccountDirectory,
        validation: TokenValidationChain,
        cache: SessionCache,
        locks: LockCoordinator,
        audit: AuditSink,
        signer: Callable[[str], str],
        has_joined_timeout: float = HAS_JOINED_LOCK_TIMEOUT,
    ) -> None:
        self._directory = directory
        self._validation = validation
        self._cache = cache
        self._locks = locks
        self._audit = audit
        self._signer = signer
        self._has_joined_timeout = has_joined_timeout

    def join_server(
        self,
        access_token: str,
        selected_profile: str,
        server_id: str,
        parameters: dict[str, Any] | None = None,
    ) -> None:
        logger.info(
            "Player [%s] is trying to join server [%s] with access token [%s]",
            selected_profile,
            server_id,
            mask_token(access_token),
        )

        name = self._directory.find_profile_name(selected_profile)
        if name is None:
            raise ForbiddenOperation(ForbiddenReason.UNKNOWN_PROFILE, selected_profile)

        player = self._directory.find_player(name)
        if player is None:
            # the player behind this mapping was deleted
            self._directory.delete_profile_mapping(selected_profile)
            raise ForbiddenOperation(ForbiddenReason.UNKNOWN_PROFILE, selected_profile)

        user = self._directory.find_user(player.uid)
        identification = user.identification if user is not None else f"uid:{player.uid}"
        logger.info("Player [%s]'s name is [%s], belongs to user [%s]", selected_profile, player.name, identification)

        path = self._validation.check(access_token, player, selected_profile)

        def write() -> bool:
            self._cache.put(server_id, selected_profile)
            return True

        if self._locks.with_lock(cache_key(server_id), 0, write) is None:
            logger.info("Server [%s] is busy, join record for [%s] was not written", server_id, selected_profile)

        logger.info("Player [%s] successfully joined the server [%s] via %s token", selected_profile, server_id, path)

        request = {"selectedProfile": selected_profile, "serverId": server_id}
        request.update(parameters or {})
        request.pop("accessToken", None)
        self._record("join", player.uid, player.pid, request)

    def has_joined_server(self, username: str, server_id: str, ip: str | None = None) -> dict[str, Any] | None:
        logger.info("Checking if player [%s] has joined the server [%s] with IP [%s]", username, server_id, ip)
        if not username or not server_id:
            logger.info("hasJoined without username or server id, nothing to confirm")
            return None

        def take() -> Profile | None:
            return self._cache.take_if_matches(server_id, username, self._directory.find_profile)

        try:
            profile = self._locks.with_lock(cache_key(server_id), self._has_joined_timeout, take)
        except LockTimeout:
            logger.warning("Gave up waiting for server [%s] lock", server_id)
            profile = None

        if profile is None:
            logger.info("Player [%s] was not in the server [%s]", username, server_id)
            return None

        logger.info("Player [%s] was in the server [%s]", username, server_id)
        response = profile.serialize(signer=self._signer)

        # ip is recorded for auditing only
        request = {"serverId": server_id}
        if ip:
            request["ip"] = ip
        self._record("has_joined", profile.player.uid, profile.player.pid, request, ip=ip or None)
        return response

    def _record(
        self,
        action: str,
        user_id: int,
        player_id: int,
        parameters: dict[str, Any],
        ip: str | None = None,
    ) -> None:
        try:
            self._audit.record(action, user_id, player_id, parameters, ip=ip)
        except Exception:
            logger.exception("Failed to write %s audit record", action)
