from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional, Sequence

from ..common.datetime_utils import to_db
from ..core.enums import StudentStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_placeholders
from .model import Student
from .repository import StudentRepository

STUDENT_COLUMNS = "id, external_id, first_name, last_name, dob, status, can_leave_alone, notes, created_at, updated_at"

_UPDATABLE = {"external_id", "first_name", "last_name", "dob", "status", "can_leave_alone", "notes"}


def row_to_student(row: dict) -> Student:
    return Student(
        id=int(row["id"]),
        first_name=row["first_name"],
        last_name=row["last_name"],
        status=StudentStatus(row.get("status") or StudentStatus.ACTIVE.value),
        external_id=row.get("external_id"),
        dob=row.get("dob"),
        can_leave_alone=bool(row.get("can_leave_alone", False)),
        notes=row.get("notes"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class MySQLStudentRepository(StudentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, student_id: int) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {STUDENT_COLUMNS} FROM student WHERE id=%s", (student_id,))
            row = fetchone(cur)
            return row_to_student(row) if row else None

    def list_students(
        self,
        *,
        search: str = "",
        status: Optional[StudentStatus] = None,
        ids: Sequence[int] = (),
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Student]:
        clauses: list[str] = []
        params: list[Any] = []
        if ids:
            clauses.append(f"id IN ({in_placeholders(ids)})")
            params.extend(ids)
        if search:
            clauses.append("(first_name LIKE %s OR last_name LIKE %s OR external_id LIKE %s)")
            params.extend([f"%{search}%"] * 3)
        if status is not None:
            clauses.append("status=%s")
            params.append(status.value)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {STUDENT_COLUMNS}
                FROM student
                {where}
                ORDER BY last_name, first_name
                LIMIT %s OFFSET %s
                """,
                (*params, int(limit), int(offset)),
            )
            return [row_to_student(r) for r in fetchall(cur)]

    def create_student(
        self,
        *,
        first_name: str,
        last_name: str,
        external_id: Optional[str] = None,
        dob: Optional[date] = None,
        status: StudentStatus = StudentStatus.ACTIVE,
        can_leave_alone: bool = False,
        notes: Optional[str] = None,
    ) -> Student:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO student(external_id, first_name, last_name, dob, status, can_leave_alone, notes)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (external_id, first_name, last_name, dob, status.value, 1 if can_leave_alone else 0, notes),
            )
            new_id = int(cur.lastrowid)
            cur.execute(f"SELECT {STUDENT_COLUMNS} FROM student WHERE id=%s", (new_id,))
            return row_to_student(fetchone(cur))

    def update_student(self, student_id: int, *, fields: dict[str, Any], now: datetime) -> Optional[Student]:
        sets: list[str] = []
        params: list[Any] = []
        for column, value in fields.items():
            if column not in _UPDATABLE:
                raise ValueError(f"Unsupported column: {column}")
            if isinstance(value, StudentStatus):
                value = value.value
            elif isinstance(value, bool):
                value = 1 if value else 0
            sets.append(f"{column}=%s")
            params.append(value)
        sets.append("updated_at=%s")
        params.append(to_db(now))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE student SET {', '.join(sets)} WHERE id=%s", (*params, student_id))
            cur.execute(f"SELECT {STUDENT_COLUMNS} FROM student WHERE id=%s", (student_id,))
            row = fetchone(cur)
            return row_to_student(row) if row else None

    def link_guardian(
        self,
        *,
        student_id: int,
        guardian_id: int,
        is_primary: bool,
        relationship_type: Optional[str] = None,
    ) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO student_guardian(student_id, guardian_id, relationship_type, is_primary)
                VALUES(%s,%s,COALESCE(%s,'GUARDIAN'),%s)
                ON DUPLICATE KEY UPDATE
                    is_primary=VALUES(is_primary),
                    relationship_type=COALESCE(%s, relationship_type)
                """,
                (student_id, guardian_id, relationship_type, 1 if is_primary else 0, relationship_type),
            )

    def unlink_guardian(self, *, student_id: int, guardian_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM student_guardian WHERE student_id=%s AND guardian_id=%s",
                (student_id, guardian_id),
            )
            return cur.rowcount > 0

    def delete_student(self, student_id: int) -> Optional[list[int]]:
        # One connection, one transaction: db_cursor rolls everything back on error.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT id FROM student WHERE id=%s FOR UPDATE", (student_id,))
            if not fetchone(cur):
                return None

            cur.execute("SELECT DISTINCT guardian_id FROM student_guardian WHERE student_id=%s", (student_id,))
            guardian_ids = [int(r["guardian_id"]) for r in fetchall(cur)]

            cur.execute("DELETE FROM student_guardian WHERE student_id=%s", (student_id,))
            cur.execute("DELETE FROM student WHERE id=%s", (student_id,))

            deleted: list[int] = []
            for gid in guardian_ids:
                cur.execute("SELECT COUNT(*) AS c FROM student_guardian WHERE guardian_id=%s", (gid,))
                row = fetchone(cur)
                if int(row["c"] if row else 0) == 0:
                    cur.execute("DELETE FROM guardian WHERE id=%s", (gid,))
                    deleted.append(gid)
            return deleted
