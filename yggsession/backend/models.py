"""Domain models for accounts, tokens and the profiles returned by hasJoined."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
import json
import time
from typing import Any, Callable


class Permission(IntEnum):
    BANNED = -1
    NORMAL = 0
    ADMIN = 1
    SUPER_ADMIN = 2


@dataclass(frozen=True)
class User:
    uid: int
    email: str
    permission: Permission = Permission.NORMAL

    @property
    def identification(self) -> str:
        return self.email.lower()


@dataclass(frozen=True)
class Player:
    pid: int
    name: str
    uid: int


@dataclass(frozen=True)
class Token:
    access_token: str
    profile_id: str
    owner_uid: int
    client_token: str = ""
    expires_at: datetime | None = None
    revoked: bool = False

    def is_valid(self) -> bool:
        if self.revoked:
            return False
        if self.expires_at is None:
            return True
        return datetime.now(timezone.utc) < self.expires_at


@dataclass(frozen=True)
class Profile:
    uuid: str
    name: str
    player: Player
    textures: dict[str, Any] = field(default_factory=dict)

    def serialize(self, signer: Callable[[str], str] | None = None) -> dict[str, Any]:
        """Render the profile; a signer attaches a signature to the textures property."""
        payload = {
            "timestamp": int(time.time() * 1000),
            "profileId": self.uuid.replace("-", ""),
            "profileName": self.name,
            "textures": self.textures,
        }
        value = base64.b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8")).decode("ascii")
        prop: dict[str, str] = {"name": "textures", "value": value}
        if signer is not None:
            prop["signature"] = signer(value)
        return {
            "id": self.uuid.replace("-", ""),
            "name": self.name,
            "properties": [prop],
        }
