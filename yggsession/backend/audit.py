"""Audit trail for join and hasJoined events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    action: str
    user_id: int
    player_id: int
    parameters: dict[str, Any]
    ip: str | None = None


class AuditSink(Protocol):
    def record(
        self,
        action: str,
        user_id: int,
        player_id: int,
        parameters: dict[str, Any],
        ip: str | None = None,
    ) -> None:
        """Persist one audit entry."""


@dataclass
class InMemoryAuditSink:
    records: list[AuditRecord] = field(default_factory=list)

    def record(
        self,
        action: str,
        user_id: int,
        player_id: int,
        parameters: dict[str, Any],
        ip: str | None = None,
    ) -> None:
        self.records.append(
            AuditRecord(action=action, user_id=user_id, player_id=player_id, parameters=dict(parameters), ip=ip)
        )


class LoggingAuditSink:
    def record(
        self,
        action: str,
        user_id: int,
        player_id: int,
        parameters: dict[str, Any],
        ip: str | None = None,
    ) -> None:
        logger.info(
            "audit action=%s user_id=%s player_id=%s ip=%s parameters=%s",
            action,
            user_id,
            player_id,
            ip,
            json.dumps(parameters, sort_keys=True),
        )


@dataclass
class PostgresAuditSink:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def record(
        self,
        action: str,
        user_id: int,
        player_id: int,
        parameters: dict[str, Any],
        ip: str | None = None,
    ) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO ygg_log (action, user_id, player_id, parameters, ip, time)
                    VALUES (%s, %s, %s, %s::jsonb, %s, %s)
                    """,
                    (action, user_id, player_id, json.dumps(parameters), ip or "", datetime.now(timezone.utc)),
                )
            conn.commit()


def create_audit_sink(database_url: str | None) -> AuditSink:
    if database_url:
        return PostgresAuditSink(database_url=database_url)
    return LoggingAuditSink()
