from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import mysql.connector
from werkzeug.security import generate_password_hash

DEFAULT_TEMPLATES = {
    "CHECK_IN": "{student.firstName} has checked in at {centre.name} at {time} on {date}.",
    "CHECK_OUT": "{student.firstName} has checked out of {centre.name} at {time} on {date}.",
}


@dataclass(frozen=True)
class DBTarget:
    host: str
    port: int
    user: str
    password: str
    database: str


def _as_target(db_config: dict) -> DBTarget:
    return DBTarget(
        host=str(db_config.get("host", "localhost")),
        port=int(db_config.get("port", 3306)),
        user=str(db_config.get("user", "root")),
        password=str(db_config.get("password", "")),
        database=str(db_config.get("database", "tutor_checkin")),
    )


def _connect(target: DBTarget, *, with_database: bool = True):
    kwargs = dict(
        host=target.host,
        port=target.port,
        user=target.user,
        password=target.password,
        use_pure=True,
    )
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql compatible regardless of DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _strip_line_comments(sql: str) -> str:
    return re.sub(r"(?m)^\s*--.*$", "", sql)


def _iter_sql_statements(sql: str) -> Iterable[str]:
    # Minimal SQL splitter for schema files (handles ';' inside quotes).
    buf: list[str] = []
    in_single = False
    in_double = False
    escape = False

    for ch in sql:
        if escape:
            buf.append(ch)
            escape = False
            continue

        if ch == "\\":
            buf.append(ch)
            escape = True
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue

        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def ensure_database_exists(db_config: dict) -> None:
    target = _as_target(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    """Create the database (if needed) and run every statement of schema.sql.

    The schema only uses CREATE TABLE IF NOT EXISTS so this is safe on every start.
    """
    ensure_database_exists(db_config)

    sql = Path(schema_path).read_text(encoding="utf-8")
    sql = _strip_line_comments(_strip_create_db_and_use(sql))

    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor()
        for stmt in _iter_sql_statements(sql):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


def ensure_default_templates(db_config: dict) -> None:
    """Insert CHECK_IN / CHECK_OUT templates unless an admin already edited them."""
    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor()
        for key, text in DEFAULT_TEMPLATES.items():
            cur.execute(
                """
                INSERT INTO message_template(template_key, text)
                VALUES(%s, %s)
                ON DUPLICATE KEY UPDATE template_key=template_key
                """,
                (key, text),
            )
        conn.commit()
    finally:
        conn.close()


def ensure_admin_user(db_config: dict, *, email: str, password: str) -> None:
    """Upsert an active ADMIN account (used by the seed script)."""
    email = email.strip().lower()
    password_hash = generate_password_hash(password)

    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor(dictionary=True)
        cur.execute("SELECT id FROM app_user WHERE LOWER(email)=%s", (email,))
        existing = cur.fetchone()
        if existing:
            cur.execute(
                """
                UPDATE app_user
                SET password_hash=%s, role='ADMIN', active=1
                WHERE id=%s
                """,
                (password_hash, existing["id"]),
            )
        else:
            cur.execute(
                """
                INSERT INTO app_user (email, password_hash, role, active)
                VALUES (%s, %s, 'ADMIN', 1)
                """,
                (email, password_hash),
            )
        conn.commit()
    finally:
        conn.close()


def list_tables(db_config: dict) -> list[str]:
    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
