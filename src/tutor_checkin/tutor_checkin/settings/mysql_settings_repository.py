from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

from ..common.datetime_utils import as_utc, to_db
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json
from .model import PurgeResult
from .repository import DataMaintenanceRepository, SettingsRepository


def _range_where(column: str, start: Optional[datetime], end: Optional[datetime]) -> tuple[str, list[Any]]:
    where: list[str] = []
    params: list[Any] = []
    if start is not None:
        where.append(f"{column} >= %s")
        params.append(to_db(start))
    if end is not None:
        where.append(f"{column} <= %s")
        params.append(to_db(end))
    return ("WHERE " + " AND ".join(where)) if where else "", params


class MySQLSettingsRepository(SettingsRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, key: str) -> Optional[Any]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT value FROM app_setting WHERE setting_key=%s LIMIT 1", (key,))
            row = fetchone(cur)
            return load_json(row["value"]) if row else None

    def set(self, key: str, value: Any) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO app_setting(setting_key, value)
                VALUES(%s,%s)
                ON DUPLICATE KEY UPDATE value=VALUES(value)
                """,
                (key, dump_json(value)),
            )

    def server_time(self) -> datetime:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT UTC_TIMESTAMP(6) AS now")
            return as_utc(fetchone(cur)["now"])


class MySQLDataMaintenanceRepository(DataMaintenanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def export_scans(self, *, start: Optional[datetime], end: Optional[datetime]) -> Sequence[dict[str, Any]]:
        where, params = _range_where("se.scanned_at", start, end)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT se.id, se.student_id, s.first_name, s.last_name, se.type,
                       se.scanned_by, se.scanned_at, se.was_duplicate
                FROM scan_event se
                JOIN student s ON s.id = se.student_id
                {where}
                ORDER BY se.scanned_at DESC
                """,
                tuple(params),
            )
            rows = fetchall(cur)
        for r in rows:
            r["was_duplicate"] = bool(r["was_duplicate"])
        return rows

    def export_messages(self, *, start: Optional[datetime], end: Optional[datetime]) -> Sequence[dict[str, Any]]:
        where, params = _range_where("ml.created_at", start, end)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT ml.id AS message_id, ml.student_id, s.first_name, s.last_name,
                       ml.template_key, ml.body_rendered, ml.created_at,
                       mr.phone_e164 AS recipient, mr.status AS recipient_status,
                       mr.gateway_message_id, mr.gateway_status,
                       mr.updated_at AS recipient_updated_at
                FROM message_log ml
                LEFT JOIN message_recipient mr ON mr.message_log_id = ml.id
                LEFT JOIN student s ON s.id = ml.student_id
                {where}
                ORDER BY ml.created_at DESC, ml.id DESC
                """,
                tuple(params),
            )
            return fetchall(cur)

    def purge_older_than(self, cutoff: datetime) -> PurgeResult:
        at = to_db(cutoff)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM message_recipient WHERE updated_at < %s", (at,))
            recipients = cur.rowcount
            cur.execute("DELETE FROM message_log WHERE created_at < %s", (at,))
            messages = cur.rowcount
            cur.execute("DELETE FROM scan_event WHERE scanned_at < %s", (at,))
            scans = cur.rowcount
        return PurgeResult(recipients=max(recipients, 0), messages=max(messages, 0), scans=max(scans, 0))
