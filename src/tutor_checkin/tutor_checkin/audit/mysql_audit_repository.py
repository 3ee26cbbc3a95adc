from __future__ import annotations

from typing import Any, Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json
from .repository import AuditRepository


class MySQLAuditRepository(AuditRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def add(
        self,
        *,
        actor_id: Optional[int],
        action: str,
        entity: str,
        entity_id: Optional[int],
        details: Optional[dict[str, Any]],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO admin_action_log(actor_user_id, action, entity, entity_id, details)
                VALUES(%s,%s,%s,%s,%s)
                """,
                (actor_id, action, entity, entity_id, dump_json(details)),
            )
            return int(cur.lastrowid)
