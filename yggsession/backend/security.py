"""Security helpers: access token checks and texture payload signing."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from typing import Protocol

from yggsession.backend.errors import ForbiddenOperation, ForbiddenReason
from yggsession.backend.models import Permission, Player
from yggsession.backend.store import AccountDirectory

logger = logging.getLogger(__name__)


class TokenOracle(Protocol):
    def validate(self, access_token: str) -> bool:
        """Return True when the external authority accepts the token."""


def mask_token(access_token: str) -> str:
    """Shorten a token for log output."""
    return f"{access_token[:8]}..." if len(access_token) > 8 else "***"


def sign_payload(value: str, signing_key: str) -> str:
    """Create a base64 HMAC-SHA256 signature for a textures property value."""
    digest = hmac.new(signing_key.encode("utf-8"), value.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(value: str, signature: str, signing_key: str) -> bool:
    return hmac.compare_digest(sign_payload(value, signing_key), signature)


class TokenValidationChain:
    def __init__(self, directory: AccountDirectory, external: TokenOracle) -> None:
        self._directory = directory
        self._external = external

    def check(self, access_token: str, player: Player, selected_profile: str) -> str:
        """Raise ForbiddenOperation unless the token authorizes the player.

        Returns ``"local"`` or ``"external"`` for the path that accepted it.
        """
        token = self._directory.lookup_token(access_token)
        if token is not None and token.is_valid():
            if token.access_token != access_token:
                raise ForbiddenOperation(ForbiddenReason.TOKEN_INVALID)
            if token.profile_id != selected_profile:
                raise ForbiddenOperation(ForbiddenReason.PROFILE_NOT_MATCHED)
            path = "local"
        elif self._directory.is_externally_verified(player.uid) and self._external.validate(access_token):
            logger.info("Player [%s] is joining with an externally verified account", player.name)
            path = "external"
        else:
            raise ForbiddenOperation(ForbiddenReason.TOKEN_MISSING)

        user = self._directory.find_user(player.uid)
        if user is not None and user.permission == Permission.BANNED:
            raise ForbiddenOperation(ForbiddenReason.USER_BANNED)
        return path
