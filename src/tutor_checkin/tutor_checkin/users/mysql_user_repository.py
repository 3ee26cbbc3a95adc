from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

from ..common.datetime_utils import to_db
from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import User
from .repository import UserRepository

_USER_COLUMNS = "id, email, password_hash, role, active, last_login_at, created_at, updated_at"

# Columns a PATCH may touch; keys come from the service, never from the request.
_UPDATABLE = {"email", "password_hash", "role", "active"}


def _row_to_user(row: dict) -> User:
    return User(
        id=int(row["id"]),
        email=row["email"],
        password_hash=row["password_hash"],
        role=Role(row["role"]),
        active=bool(row.get("active", True)),
        last_login_at=row.get("last_login_at"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM app_user WHERE id=%s", (user_id,))
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        # utf8mb4_unicode_ci makes this comparison case-insensitive.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM app_user WHERE email=%s LIMIT 1", (email,))
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def email_taken(self, email: str, *, exclude_id: Optional[int] = None) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT 1 AS hit FROM app_user WHERE LOWER(email)=LOWER(%s) AND id<>%s LIMIT 1",
                (email, exclude_id or 0),
            )
            return fetchone(cur) is not None

    def list_users(
        self,
        *,
        limit: int,
        offset: int,
        search: str = "",
        role: Optional[Role] = None,
        active: Optional[bool] = None,
    ) -> Sequence[User]:
        clauses: list[str] = []
        params: list[Any] = []
        if search:
            clauses.append("email LIKE %s")
            params.append(f"%{search}%")
        if role is not None:
            clauses.append("role=%s")
            params.append(role.value)
        if active is not None:
            clauses.append("active=%s")
            params.append(1 if active else 0)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_USER_COLUMNS}
                FROM app_user
                {where}
                ORDER BY created_at DESC, id DESC
                LIMIT %s OFFSET %s
                """,
                (*params, int(limit), int(offset)),
            )
            return [_row_to_user(r) for r in fetchall(cur)]

    def create_user(self, *, email: str, password_hash: str, role: Role, active: bool) -> User:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO app_user(email, password_hash, role, active)
                VALUES(%s,%s,%s,%s)
                """,
                (email, password_hash, role.value, 1 if active else 0),
            )
            new_id = int(cur.lastrowid)
            cur.execute(f"SELECT {_USER_COLUMNS} FROM app_user WHERE id=%s", (new_id,))
            return _row_to_user(fetchone(cur))

    def update_user(self, user_id: int, *, fields: dict[str, Any], now: datetime) -> Optional[User]:
        sets: list[str] = []
        params: list[Any] = []
        for column, value in fields.items():
            if column not in _UPDATABLE:
                raise ValueError(f"Unsupported column: {column}")
            if isinstance(value, Role):
                value = value.value
            elif isinstance(value, bool):
                value = 1 if value else 0
            sets.append(f"{column}=%s")
            params.append(value)
        sets.append("updated_at=%s")
        params.append(to_db(now))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE app_user SET {', '.join(sets)} WHERE id=%s", (*params, user_id))
            cur.execute(f"SELECT {_USER_COLUMNS} FROM app_user WHERE id=%s", (user_id,))
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def delete_by_id(self, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM app_user WHERE id=%s", (user_id,))
            return cur.rowcount > 0

    def touch_last_login(self, user_id: int, *, at: datetime) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE app_user SET last_login_at=%s WHERE id=%s", (to_db(at), user_id))
