from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

from ..common.datetime_utils import as_utc, to_db
from ..core.enums import ScanType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json
from .model import DayScan, RecentScan, ScanEvent
from .repository import ScanRepository

_SCAN_COLUMNS = "se.id, se.student_id, se.qr_code_id, se.type, se.scanned_by, se.scanned_at, se.was_duplicate, se.meta"

# A scan "has a message" when a message_log row points at it.
_HAS_MESSAGE = "EXISTS(SELECT 1 FROM message_log ml WHERE ml.scan_event_id = se.id)"


def _row_to_scan(row: dict) -> ScanEvent:
    meta = load_json(row.get("meta"))
    return ScanEvent(
        id=int(row["id"]),
        student_id=int(row["student_id"]),
        type=ScanType(row["type"]),
        scanned_at=as_utc(row["scanned_at"]),
        qr_code_id=row.get("qr_code_id"),
        scanned_by=row.get("scanned_by"),
        was_duplicate=bool(row.get("was_duplicate")),
        meta=meta if isinstance(meta, dict) else {},
    )


class MySQLScanRepository(ScanRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def insert(
        self,
        *,
        student_id: int,
        qr_code_id: Optional[int],
        type: ScanType,
        scanned_by: Optional[int],
        scanned_at: datetime,
        was_duplicate: bool,
        meta: dict[str, Any],
    ) -> ScanEvent:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO scan_event (student_id, qr_code_id, type, scanned_by, scanned_at, was_duplicate, meta)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    student_id,
                    qr_code_id,
                    type.value,
                    scanned_by,
                    to_db(scanned_at),
                    1 if was_duplicate else 0,
                    dump_json(meta or {}),
                ),
            )
            scan_id = int(cur.lastrowid)

        return ScanEvent(
            id=scan_id,
            student_id=student_id,
            type=type,
            scanned_at=as_utc(scanned_at),
            qr_code_id=qr_code_id,
            scanned_by=scanned_by,
            was_duplicate=was_duplicate,
            meta=dict(meta or {}),
        )

    def latest_of_type(
        self,
        student_id: int,
        type: ScanType,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Optional[ScanEvent]:
        where = ["se.student_id=%s", "se.type=%s"]
        params: list[Any] = [student_id, type.value]
        if start is not None:
            where.append("se.scanned_at >= %s")
            params.append(to_db(start))
        if end is not None:
            where.append("se.scanned_at < %s")
            params.append(to_db(end))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_SCAN_COLUMNS}
                FROM scan_event se
                WHERE {" AND ".join(where)}
                ORDER BY se.scanned_at DESC, se.id DESC
                LIMIT 1
                """,
                tuple(params),
            )
            row = fetchone(cur)
            return _row_to_scan(row) if row else None

    def scans_between(self, start: datetime, end: datetime) -> Sequence[DayScan]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT se.student_id, se.type, se.scanned_at, {_HAS_MESSAGE} AS has_message
                FROM scan_event se
                WHERE se.was_duplicate = 0
                  AND se.scanned_at >= %s AND se.scanned_at < %s
                ORDER BY se.scanned_at ASC, se.id ASC
                """,
                (to_db(start), to_db(end)),
            )
            return [
                DayScan(
                    student_id=int(r["student_id"]),
                    type=ScanType(r["type"]),
                    scanned_at=as_utc(r["scanned_at"]),
                    has_message=bool(r["has_message"]),
                )
                for r in fetchall(cur)
            ]

    def recent(self, limit: int) -> Sequence[RecentScan]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_SCAN_COLUMNS}, {_HAS_MESSAGE} AS has_message,
                       s.first_name AS student_first, s.last_name AS student_last, s.dob AS student_dob
                FROM scan_event se
                JOIN student s ON s.id = se.student_id
                ORDER BY se.scanned_at DESC, se.id DESC
                LIMIT %s
                """,
                (int(limit),),
            )
            return [
                RecentScan(
                    event=_row_to_scan(r),
                    has_message=bool(r["has_message"]),
                    student_first=r.get("student_first"),
                    student_last=r.get("student_last"),
                    student_dob=r.get("student_dob"),
                )
                for r in fetchall(cur)
            ]
