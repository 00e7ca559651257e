"""Errors raised by the session handshake."""

from __future__ import annotations

from enum import Enum


class ForbiddenReason(str, Enum):
    UNKNOWN_PROFILE = "unknown-profile"
    TOKEN_INVALID = "invalid-token"
    PROFILE_NOT_MATCHED = "profile-not-matched"
    USER_BANNED = "user-banned"
    TOKEN_MISSING = "token-missing"


MESSAGES = {
    ForbiddenReason.UNKNOWN_PROFILE: "Invalid profile.",
    ForbiddenReason.TOKEN_INVALID: "Invalid token.",
    ForbiddenReason.PROFILE_NOT_MATCHED: "The selected profile does not match the token.",
    ForbiddenReason.USER_BANNED: "You have been banned.",
    ForbiddenReason.TOKEN_MISSING: "No valid token was issued for this profile.",
}


class ForbiddenOperation(Exception):
    """The client is not allowed to perform the requested handshake step."""

    def __init__(self, reason: ForbiddenReason, detail: str | None = None) -> None:
        self.reason = reason
        self.message = MESSAGES[reason] if detail is None else f"{MESSAGES[reason]} ({detail})"
        super().__init__(self.message)


class LockTimeout(Exception):
    """A blocking lock could not be acquired in time."""

    def __init__(self, name: str, seconds: float) -> None:
        self.name = name
        self.seconds = seconds
        super().__init__(f"Timed out after {seconds}s waiting for lock {name}")
