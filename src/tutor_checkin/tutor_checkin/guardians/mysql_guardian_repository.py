from __future__ import annotations

from typing import Any, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_placeholders
from ..students.model import Student
from ..students.mysql_student_repository import row_to_student
from .model import Guardian
from .repository import GuardianRepository

_GUARDIAN_COLUMNS = (
    "g.id, g.first_name, g.last_name, g.relationship, g.email, g.phone_e164, g.phone_raw, "
    "g.phone_valid, g.active, g.created_at"
)

# One representative relationship_type from the link table.
_RELATIONSHIP_TYPE = """
    (
        SELECT sg2.relationship_type
        FROM student_guardian sg2
        WHERE sg2.guardian_id = g.id AND sg2.relationship_type IS NOT NULL
        ORDER BY sg2.relationship_type
        LIMIT 1
    ) AS relationship_type
"""

_UPDATABLE = {"first_name", "last_name", "relationship", "email", "phone_raw", "phone_e164", "phone_valid", "active"}


def _row_to_guardian(row: dict) -> Guardian:
    return Guardian(
        id=int(row["id"]),
        first_name=row["first_name"],
        last_name=row.get("last_name") or "",
        phone_e164=row.get("phone_e164"),
        relationship=row.get("relationship") or "GUARDIAN",
        email=row.get("email"),
        phone_raw=row.get("phone_raw"),
        phone_valid=bool(row.get("phone_valid", True)),
        active=bool(row.get("active", True)),
        created_at=row.get("created_at"),
        relationship_type=row.get("relationship_type"),
    )


class MySQLGuardianRepository(GuardianRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _select_one(self, cur, guardian_id: int) -> Optional[Guardian]:
        cur.execute(
            f"SELECT {_GUARDIAN_COLUMNS}, {_RELATIONSHIP_TYPE} FROM guardian g WHERE g.id=%s",
            (guardian_id,),
        )
        row = fetchone(cur)
        return _row_to_guardian(row) if row else None

    def get_by_id(self, guardian_id: int) -> Optional[Guardian]:
        with db_cursor(self._conn_factory) as (_, cur):
            return self._select_one(cur, guardian_id)

    def list_for_student(self, student_id: int) -> Sequence[Guardian]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_GUARDIAN_COLUMNS}, sg.relationship_type
                FROM guardian g
                JOIN student_guardian sg ON sg.guardian_id = g.id
                WHERE sg.student_id=%s
                ORDER BY g.name
                """,
                (student_id,),
            )
            return [_row_to_guardian(r) for r in fetchall(cur)]

    def list_notifiable_for_student(self, student_id: int) -> Sequence[Guardian]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_GUARDIAN_COLUMNS}, sg.relationship_type
                FROM student_guardian sg
                JOIN guardian g ON g.id = sg.guardian_id
                WHERE sg.student_id=%s
                  AND g.active=1
                  AND g.phone_valid=1
                  AND g.phone_e164 IS NOT NULL
                ORDER BY sg.is_primary DESC, g.id
                """,
                (student_id,),
            )
            return [_row_to_guardian(r) for r in fetchall(cur)]

    def list_guardians(
        self,
        *,
        search: str = "",
        relationship: str = "",
        active: Optional[bool] = None,
        phone_valid: Optional[bool] = None,
        ids: Sequence[int] = (),
        limit: int = 200,
        offset: int = 0,
    ) -> Sequence[Guardian]:
        where: list[str] = []
        params: list[Any] = []

        if ids:
            where.append(f"g.id IN ({in_placeholders(ids)})")
            params.extend(ids)
        if relationship:
            where.append(
                """
                EXISTS (
                    SELECT 1 FROM student_guardian sg
                    WHERE sg.guardian_id = g.id AND sg.relationship_type LIKE %s
                )
                """
            )
            params.append(f"%{relationship}%")
        if active is not None:
            where.append("g.active=%s")
            params.append(1 if active else 0)
        if phone_valid is not None:
            where.append("g.phone_valid=%s")
            params.append(1 if phone_valid else 0)
        if search:
            where.append(
                """
                (
                    g.name LIKE %s OR
                    CONCAT(g.first_name, ' ', g.last_name) LIKE %s OR
                    g.email LIKE %s OR
                    g.phone_e164 LIKE %s OR
                    g.phone_raw LIKE %s
                )
                """
            )
            params.extend([f"%{search}%"] * 5)

        where_sql = f"WHERE {' AND '.join(where)}" if where else ""
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_GUARDIAN_COLUMNS}, {_RELATIONSHIP_TYPE}
                FROM guardian g
                {where_sql}
                ORDER BY g.name
                LIMIT %s OFFSET %s
                """,
                (*params, int(limit), int(offset)),
            )
            return [_row_to_guardian(r) for r in fetchall(cur)]

    def create_guardian(
        self,
        *,
        first_name: str,
        last_name: str,
        phone_e164: str,
        phone_raw: Optional[str] = None,
        relationship: str = "GUARDIAN",
        email: Optional[str] = None,
    ) -> Guardian:
        # "name" is a generated column; never insert into it.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO guardian(first_name, last_name, relationship, email, phone_raw, phone_e164, phone_valid, active)
                VALUES(%s,%s,%s,%s,%s,%s,1,1)
                """,
                (first_name, last_name, relationship, email, phone_raw, phone_e164),
            )
            return self._select_one(cur, int(cur.lastrowid))

    def update_guardian(
        self,
        guardian_id: int,
        *,
        fields: dict[str, Any],
        link_relationship: Optional[str] = None,
        update_links: bool = False,
    ) -> Optional[Guardian]:
        sets: list[str] = []
        params: list[Any] = []
        for column, value in fields.items():
            if column not in _UPDATABLE:
                raise ValueError(f"Unsupported column: {column}")
            if isinstance(value, bool):
                value = 1 if value else 0
            sets.append(f"{column}=%s")
            params.append(value)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT id FROM guardian WHERE id=%s FOR UPDATE", (guardian_id,))
            if not fetchone(cur):
                return None
            if sets:
                cur.execute(f"UPDATE guardian SET {', '.join(sets)} WHERE id=%s", (*params, guardian_id))
            if update_links:
                cur.execute(
                    "UPDATE student_guardian SET relationship_type=%s WHERE guardian_id=%s",
                    (link_relationship, guardian_id),
                )
            return self._select_one(cur, guardian_id)

    def delete_guardian(self, guardian_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM student_guardian WHERE guardian_id=%s", (guardian_id,))
            cur.execute("DELETE FROM guardian WHERE id=%s", (guardian_id,))
            return cur.rowcount > 0

    def students_for_guardian(self, guardian_id: int) -> Sequence[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT s.id, s.external_id, s.first_name, s.last_name, s.dob, s.status,
                       s.can_leave_alone, s.notes, s.created_at, s.updated_at
                FROM student_guardian sg
                JOIN student s ON s.id = sg.student_id
                WHERE sg.guardian_id=%s
                ORDER BY s.last_name, s.first_name
                """,
                (guardian_id,),
            )
            return [row_to_student(r) for r in fetchall(cur)]

    def students_by_guardian_ids(self, guardian_ids: Sequence[int]) -> dict[int, list[Student]]:
        out: dict[int, list[Student]] = {int(gid): [] for gid in guardian_ids}
        if not guardian_ids:
            return out
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT sg.guardian_id,
                       s.id, s.external_id, s.first_name, s.last_name, s.dob, s.status,
                       s.can_leave_alone, s.notes, s.created_at, s.updated_at
                FROM student_guardian sg
                JOIN student s ON s.id = sg.student_id
                WHERE sg.guardian_id IN ({in_placeholders(guardian_ids)})
                ORDER BY s.last_name, s.first_name
                """,
                tuple(guardian_ids),
            )
            for r in fetchall(cur):
                out.setdefault(int(r["guardian_id"]), []).append(row_to_student(r))
        return out
