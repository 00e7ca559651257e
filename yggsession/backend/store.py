"""Account directory interfaces and implementations backing the handshake."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from typing import Any, Protocol

from yggsession.backend.models import Permission, Player, Profile, Token, User

logger = logging.getLogger(__name__)


class AccountDirectory(Protocol):
    def find_profile_name(self, uuid: str) -> str | None:
        """Return the player name mapped to a profile UUID."""

    def find_player(self, name: str) -> Player | None:
        """Return the player with the given name."""

    def delete_profile_mapping(self, uuid: str) -> None:
        """Drop a UUID mapping whose player no longer exists."""

    def find_user(self, uid: int) -> User | None:
        """Return the account owning a player."""

    def lookup_token(self, access_token: str) -> Token | None:
        """Resolve a presented access token string."""

    def is_externally_verified(self, uid: int) -> bool:
        """Return whether the account is linked to the external authority."""

    def find_profile(self, uuid: str) -> Profile | None:
        """Build the profile view for a UUID."""


@dataclass
class InMemoryAccountDirectory:
    def __post_init__(self) -> None:
        self._uuids: dict[str, str] = {}
        self._players: dict[str, Player] = {}
        self._users: dict[int, User] = {}
        self._tokens: dict[str, Token] = {}
        self._verified: set[int] = set()
        self._textures: dict[str, dict[str, Any]] = {}

    def add_user(self, user: User) -> User:
        self._users[user.uid] = user
        return user

    def add_player(self, player: Player, uuid: str, textures: dict[str, Any] | None = None) -> Player:
        self._players[player.name] = player
        self._uuids[uuid] = player.name
        self._textures[player.name] = dict(textures or {})
        return player

    def remove_player(self, name: str) -> None:
        self._players.pop(name, None)

    def add_token(self, token: Token) -> Token:
        self._tokens[token.access_token] = token
        return token

    def mark_verified(self, uid: int) -> None:
        self._verified.add(uid)

    def set_permission(self, uid: int, permission: Permission) -> None:
        user = self._users[uid]
        self._users[uid] = User(uid=user.uid, email=user.email, permission=permission)

    def find_profile_name(self, uuid: str) -> str | None:
        return self._uuids.get(uuid)

    def find_player(self, name: str) -> Player | None:
        return self._players.get(name)

    def delete_profile_mapping(self, uuid: str) -> None:
        self._uuids.pop(uuid, None)

    def find_user(self, uid: int) -> User | None:
        return self._users.get(uid)

    def lookup_token(self, access_token: str) -> Token | None:
        return self._tokens.get(access_token)

    def is_externally_verified(self, uid: int) -> bool:
        return uid in self._verified

    def find_profile(self, uuid: str) -> Profile | None:
        name = self._uuids.get(uuid)
        if name is None:
            return None
        player = self._players.get(name)
        if player is None:
            return None
        return Profile(uuid=uuid, name=player.name, player=player, textures=self._textures.get(name, {}))


@dataclass
class PostgresAccountDirectory:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def _fetchone(self, sql: str, params: tuple) -> Any:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return cur.fetchone()

    def find_profile_name(self, uuid: str) -> str | None:
        row = self._fetchone("SELECT name FROM uuid WHERE uuid = %s", (uuid,))
        return None if row is None else row[0]

    def find_player(self, name: str) -> Player | None:
        row = self._fetchone("SELECT pid, name, uid FROM players WHERE name = %s", (name,))
        if row is None:
            return None
        pid, player_name, uid = row
        return Player(pid=pid, name=player_name, uid=uid)

    def delete_profile_mapping(self, uuid: str) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM uuid WHERE uuid = %s", (uuid,))
            conn.commit()

    def find_user(self, uid: int) -> User | None:
        row = self._fetchone("SELECT uid, email, permission FROM users WHERE uid = %s", (uid,))
        if row is None:
            return None
        user_id, email, permission = row
        return User(uid=user_id, email=email, permission=Permission(permission))

    def lookup_token(self, access_token: str) -> Token | None:
        row = self._fetchone(
            """
            SELECT access_token, client_token, profile_id, owner_uid, expires_at, revoked
            FROM ygg_tokens
            WHERE access_token = %s
            """,
            (access_token,),
        )
        if row is None:
            return None
        token, client_token, profile_id, owner_uid, expires_at, revoked = row
        return Token(
            access_token=token,
            client_token=client_token or "",
            profile_id=profile_id,
            owner_uid=owner_uid,
            expires_at=expires_at,
            revoked=bool(revoked),
        )

    def is_externally_verified(self, uid: int) -> bool:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT to_regclass('mojang_verifications')", ())
                table = cur.fetchone()
                if table is None or table[0] is None:
                    logger.debug("Table mojang_verifications is absent, external verification disabled")
                    return False
                cur.execute("SELECT EXISTS (SELECT 1 FROM mojang_verifications WHERE user_id = %s)", (uid,))
                row = cur.fetchone()
        return bool(row and row[0])

    def find_profile(self, uuid: str) -> Profile | None:
        row = self._fetchone(
            """
            SELECT p.pid, p.name, p.uid, p.textures
            FROM uuid u
            JOIN players p ON p.name = u.name
            WHERE u.uuid = %s
            """,
            (uuid,),
        )
        if row is None:
            return None
        pid, name, uid, textures = row
        if textures is None:
            textures = {}
        elif not isinstance(textures, dict):
            textures = json.loads(textures)
        player = Player(pid=pid, name=name, uid=uid)
        return Profile(uuid=uuid, name=name, player=player, textures=textures)


def create_directory(database_url: str | None) -> AccountDirectory:
    if database_url:
        return PostgresAccountDirectory(database_url=database_url)
    return InMemoryAccountDirectory()
