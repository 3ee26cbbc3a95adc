from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

from ..common.datetime_utils import to_db
from ..core.enums import RecipientStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_placeholders
from .model import MessageLog, MessageRecipient, MessageStudent, MessageTemplate
from .repository import MessageRepository, TemplateRepository


class MySQLTemplateRepository(TemplateRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_all(self) -> Sequence[MessageTemplate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT template_key, text, updated_at FROM message_template ORDER BY template_key")
            return [
                MessageTemplate(key=r["template_key"], text=r["text"], updated_at=r.get("updated_at"))
                for r in fetchall(cur)
            ]

    def get_text(self, key: str) -> Optional[str]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT text FROM message_template WHERE template_key=%s", (key,))
            row = fetchone(cur)
            return row["text"] if row else None

    def upsert_text(self, key: str, text: str) -> MessageTemplate:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO message_template(template_key, text)
                VALUES(%s,%s)
                ON DUPLICATE KEY UPDATE text=VALUES(text)
                """,
                (key, text),
            )
            cur.execute("SELECT template_key, text, updated_at FROM message_template WHERE template_key=%s", (key,))
            row = fetchone(cur)
            return MessageTemplate(key=row["template_key"], text=row["text"], updated_at=row.get("updated_at"))


class MySQLMessageRepository(MessageRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create_log(
        self,
        *,
        student_id: int,
        scan_event_id: Optional[int],
        template_key: Optional[str],
        body_rendered: str,
        created_by: Optional[int],
        created_at: datetime,
        trigger_type: str = "SCAN",
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO message_log
                    (student_id, trigger_type, scan_event_id, template_key, body_rendered, created_by, created_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (student_id, trigger_type, scan_event_id, template_key, body_rendered, created_by, to_db(created_at)),
            )
            return int(cur.lastrowid)

    def add_recipients(self, message_log_id: int, recipients: Sequence[MessageRecipient]) -> None:
        if not recipients:
            return
        with db_cursor(self._conn_factory) as (_, cur):
            cur.executemany(
                """
                INSERT INTO message_recipient
                    (message_log_id, guardian_id, phone_e164, status, gateway_message_id, gateway_status)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                [
                    (
                        message_log_id,
                        r.guardian_id,
                        r.phone_e164,
                        r.status.value,
                        r.gateway_message_id,
                        r.gateway_status,
                    )
                    for r in recipients
                ],
            )

    def list_messages(
        self,
        *,
        student_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
        include_student: bool = False,
    ) -> Sequence[MessageLog]:
        where = ""
        params: list[Any] = []
        if student_id:
            where = "WHERE ml.student_id=%s"
            params.append(student_id)

        student_cols = ""
        student_join = ""
        if include_student:
            student_cols = ", s.id AS s_id, s.first_name AS s_first_name, s.last_name AS s_last_name, s.dob AS s_dob"
            student_join = "LEFT JOIN student s ON s.id = ml.student_id"

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT ml.id, ml.student_id, ml.trigger_type, ml.scan_event_id, ml.template_key,
                       ml.body_rendered, ml.created_by, ml.created_at
                       {student_cols}
                FROM message_log ml
                {student_join}
                {where}
                ORDER BY ml.created_at DESC, ml.id DESC
                LIMIT %s OFFSET %s
                """,
                (*params, int(limit), int(offset)),
            )
            rows = fetchall(cur)

            recipients: dict[int, list[MessageRecipient]] = {}
            log_ids = [int(r["id"]) for r in rows]
            if log_ids:
                cur.execute(
                    f"""
                    SELECT id, message_log_id, guardian_id, phone_e164, status,
                           gateway_status, gateway_message_id, updated_at
                    FROM message_recipient
                    WHERE message_log_id IN ({in_placeholders(log_ids)})
                    ORDER BY id
                    """,
                    tuple(log_ids),
                )
                for r in fetchall(cur):
                    recipients.setdefault(int(r["message_log_id"]), []).append(
                        MessageRecipient(
                            id=int(r["id"]),
                            guardian_id=r.get("guardian_id"),
                            phone_e164=r["phone_e164"],
                            status=RecipientStatus(r["status"]),
                            gateway_status=r.get("gateway_status"),
                            gateway_message_id=r.get("gateway_message_id"),
                            updated_at=r.get("updated_at"),
                        )
                    )

        out: list[MessageLog] = []
        for r in rows:
            student = None
            if include_student and r.get("s_id"):
                student = MessageStudent(
                    id=int(r["s_id"]),
                    first_name=r.get("s_first_name"),
                    last_name=r.get("s_last_name"),
                    dob=r.get("s_dob"),
                )
            out.append(
                MessageLog(
                    id=int(r["id"]),
                    student_id=int(r["student_id"]),
                    body_rendered=r["body_rendered"],
                    template_key=r.get("template_key"),
                    trigger_type=r.get("trigger_type") or "SCAN",
                    scan_event_id=r.get("scan_event_id"),
                    created_by=r.get("created_by"),
                    created_at=r.get("created_at"),
                    recipients=tuple(recipients.get(int(r["id"]), [])),
                    student=student,
                )
            )
        return out
