from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from ..students.model import Student
from ..students.mysql_student_repository import row_to_student
from .model import QrCode
from .repository import QrCodeRepository

_QR_COLUMNS = "id, student_id, token, active, created_by, created_at"


def _row_to_qr(row: dict) -> QrCode:
    return QrCode(
        id=int(row["id"]),
        student_id=int(row["student_id"]),
        token=row["token"],
        active=bool(row.get("active", True)),
        created_by=row.get("created_by"),
        created_at=row.get("created_at"),
    )


class MySQLQrCodeRepository(QrCodeRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_active_for_student(self, student_id: int) -> Optional[QrCode]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_QR_COLUMNS} FROM qr_code WHERE student_id=%s AND active=1 ORDER BY id LIMIT 1",
                (student_id,),
            )
            row = fetchone(cur)
            return _row_to_qr(row) if row else None

    def find_active_by_token(self, token: str) -> Optional[QrCode]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_QR_COLUMNS} FROM qr_code WHERE token=%s AND active=1 LIMIT 1",
                (token,),
            )
            row = fetchone(cur)
            return _row_to_qr(row) if row else None

    def create(self, *, student_id: int, token: str, created_by: Optional[int]) -> QrCode:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO qr_code(student_id, token, active, created_by) VALUES(%s,%s,1,%s)",
                (student_id, token, created_by),
            )
            cur.execute(f"SELECT {_QR_COLUMNS} FROM qr_code WHERE id=%s", (int(cur.lastrowid),))
            return _row_to_qr(fetchone(cur))

    def students_without_active_token(self) -> Sequence[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT s.id, s.external_id, s.first_name, s.last_name, s.dob, s.status,
                       s.can_leave_alone, s.notes, s.created_at, s.updated_at
                FROM student s
                LEFT JOIN qr_code q ON q.student_id = s.id AND q.active = 1
                WHERE q.id IS NULL AND s.status = 'ACTIVE'
                ORDER BY s.id
                """
            )
            return [row_to_student(r) for r in fetchall(cur)]

    def list_active(self) -> Sequence[QrCode]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_QR_COLUMNS} FROM qr_code WHERE active=1 ORDER BY student_id")
            return [_row_to_qr(r) for r in fetchall(cur)]
