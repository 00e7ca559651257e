"""Create the handshake tables in PostgreSQL and report what changed."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from yggsession.backend.config import configure_logging, load_settings

logger = logging.getLogger(__name__)

HANDSHAKE_TABLES = ("users", "players", "uuid", "ygg_tokens", "mojang_verifications", "cache", "ygg_log")


def present_tables(cur: Any) -> set[str]:
    found: set[str] = set()
    for table in HANDSHAKE_TABLES:
        cur.execute("SELECT to_regclass(%s)", (table,))
        row = cur.fetchone()
        if row is not None and row[0] is not None:
            found.add(table)
    return found


def apply_schema(conn: Any, schema_sql: str) -> list[str]:
    """Run the schema and return the tables it created.

    Nothing is committed when a handshake table is still missing afterwards.
    """
    with conn.cursor() as cur:
        before = present_tables(cur)
        cur.execute(schema_sql)
        after = present_tables(cur)

    missing = [table for table in HANDSHAKE_TABLES if table not in after]
    if missing:
        raise RuntimeError(f"Schema did not create handshake tables: {', '.join(missing)}")
    conn.commit()
    return [table for table in HANDSHAKE_TABLES if table not in before]


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    if not settings.database_url:
        raise RuntimeError("YGGSESSION_DATABASE_URL is required for migration")

    import psycopg

    schema_sql = Path(__file__).with_name("db_schema.sql").read_text(encoding="utf-8")
    with psycopg.connect(settings.database_url) as conn:
        created = apply_schema(conn, schema_sql)

    if created:
        logger.info("Created tables: %s", ", ".join(created))
    else:
        logger.info("All handshake tables were already present")


if __name__ == "__main__":
    main()
