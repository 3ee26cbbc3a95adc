from __future__ import annotations

import csv
import io
import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence

from ..audit.service import AuditService
from ..common.datetime_utils import (
    format_short_datetime,
    is_valid_timezone,
    months_ago,
    now_utc,
    parse_iso_date,
    to_iso,
    utc_day_range,
)
from ..core.constants import (
    DEFAULT_CENTRE_NAME,
    DEFAULT_TIMEZONE,
    PURGE_CUTOFF_MONTHS,
    SETTING_CENTRE_PROFILE,
    SETTING_SMS_POLICY,
)
from ..core.exceptions import ValidationError
from ..messaging.sms_client import ClickSendClient
from .model import OrgSettings, PurgeResult
from .repository import DataMaintenanceRepository, SettingsRepository

logger = logging.getLogger(__name__)

_TEST_PHONE_RE = re.compile(r"^\+?\d{6,15}$")

SCAN_EXPORT_COLUMNS = [
    "id",
    "student_id",
    "first_name",
    "last_name",
    "type",
    "scanned_by",
    "scanned_at",
    "was_duplicate",
]

MESSAGE_EXPORT_COLUMNS = [
    "message_id",
    "student_id",
    "first_name",
    "last_name",
    "template_key",
    "body_rendered",
    "created_at",
    "recipient",
    "recipient_status",
    "gateway_message_id",
    "gateway_status",
    "recipient_updated_at",
]


@dataclass(frozen=True)
class ExportFile:
    content: bytes
    mimetype: str
    filename: str


def _export_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else value


def _json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso(value)
    return value


def _parse_range(start: Any, end: Any) -> tuple[Optional[datetime], Optional[datetime]]:
    try:
        lo = parse_iso_date(str(start).strip()) if start else None
        hi = parse_iso_date(str(end).strip()) if end else None
    except ValueError:
        raise ValidationError("from and to must be YYYY-MM-DD")
    return utc_day_range(lo, hi)


def _render_export(rows: Sequence[dict[str, Any]], columns: list[str], *, fmt: Any, name: str) -> ExportFile:
    if str(fmt or "csv").lower() == "json":
        items = [{k: _json_value(v) for k, v in r.items()} for r in rows]
        return ExportFile(
            content=json.dumps({"items": items}, indent=2, default=str).encode("utf-8"),
            mimetype="application/json",
            filename=f"{name}.json",
        )

    out = io.StringIO()
    writer = csv.DictWriter(out, fieldnames=columns, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for r in rows:
        writer.writerow({c: _export_value(r.get(c)) for c in columns})
    return ExportFile(content=out.getvalue().encode("utf-8"), mimetype="text/csv", filename=f"{name}.csv")


class SettingsService:
    def __init__(
        self,
        settings: SettingsRepository,
        maintenance: DataMaintenanceRepository,
        sms: ClickSendClient,
        audit: AuditService,
        *,
        default_centre_name: str = DEFAULT_CENTRE_NAME,
    ):
        self._settings = settings
        self._maintenance = maintenance
        self._sms = sms
        self._audit = audit
        self._default_centre_name = default_centre_name or DEFAULT_CENTRE_NAME

    def get(self) -> OrgSettings:
        """Stored org settings with defaults for anything unset."""
        profile = self._settings.get(SETTING_CENTRE_PROFILE)
        if not isinstance(profile, dict):
            profile = {}
        policy = self._settings.get(SETTING_SMS_POLICY)
        if not isinstance(policy, dict):
            policy = {"sendOnCheckIn": True, "sendOnCheckOut": True}

        return OrgSettings(
            centre_name=str(profile.get("centreName") or self._default_centre_name),
            timezone=str(profile.get("timezone") or DEFAULT_TIMEZONE),
            send_on_check_in=bool(policy.get("sendOnCheckIn")),
            send_on_check_out=bool(policy.get("sendOnCheckOut")),
        )

    def update(self, *, actor_id: Optional[int], body: dict[str, Any]) -> OrgSettings:
        if not body:
            raise ValidationError("No fields to update")

        centre_name = str(body["centreName"]).strip() if body.get("centreName") is not None else None
        timezone = str(body["timezone"]).strip() if body.get("timezone") is not None else None
        if centre_name is not None and not centre_name:
            raise ValidationError("centreName cannot be empty")
        if timezone is not None and not timezone:
            raise ValidationError("timezone cannot be empty")
        if timezone is not None and not is_valid_timezone(timezone):
            raise ValidationError("timezone must be a valid IANA timezone, e.g., Australia/Hobart")

        policy_in = body.get("smsPolicy") if isinstance(body.get("smsPolicy"), dict) else {}
        current = self.get()
        updated = OrgSettings(
            centre_name=centre_name if centre_name is not None else current.centre_name,
            timezone=timezone if timezone is not None else current.timezone,
            send_on_check_in=bool(policy_in.get("sendOnCheckIn", current.send_on_check_in)),
            send_on_check_out=bool(policy_in.get("sendOnCheckOut", current.send_on_check_out)),
        )

        payload = updated.to_json()
        self._settings.set(SETTING_CENTRE_PROFILE, {"centreName": payload["centreName"], "timezone": payload["timezone"]})
        self._settings.set(SETTING_SMS_POLICY, payload["smsPolicy"])
        self._audit.log(actor_id, "SETTINGS_UPDATE", "app_setting", details={"fields": sorted(body.keys())})
        return updated

    def send_test_sms(self, *, actor_id: Optional[int], to: Any, now: Optional[datetime] = None) -> dict[str, Any]:
        phone = str(to or "").strip()
        if not _TEST_PHONE_RE.match(phone):
            raise ValidationError("Enter a valid E.164 phone number (e.g., +61…)")

        org = self.get()
        stamp = format_short_datetime(now or now_utc(), org.timezone)
        body = f"Test SMS from {org.centre_name} - settings verification ({stamp})"
        results = self._sms.send_many([{"to": phone, "body": body}])

        self._audit.log(actor_id, "SETTINGS_TEST_SMS", "app_setting", details={"to": phone, "sent": len(results)})
        return {
            "ok": True,
            "result": {"messages": [{"to": r.to, "message_id": r.message_id, "status": r.status} for r in results]},
        }

    def health(self) -> dict[str, Any]:
        try:
            server_time = self._settings.server_time()
        except Exception as e:
            logger.warning("Health check: database unreachable: %s", e)
            return {"dbOk": False, "smsOk": False, "serverTime": None}
        return {"dbOk": True, "smsOk": self._sms.configured, "serverTime": to_iso(server_time)}

    def export_scans(self, *, start: Any = None, end: Any = None, fmt: Any = "csv") -> ExportFile:
        lo, hi = _parse_range(start, end)
        rows = self._maintenance.export_scans(start=lo, end=hi)
        return _render_export(rows, SCAN_EXPORT_COLUMNS, fmt=fmt, name="scans_export")

    def export_messages(self, *, start: Any = None, end: Any = None, fmt: Any = "csv") -> ExportFile:
        lo, hi = _parse_range(start, end)
        rows = self._maintenance.export_messages(start=lo, end=hi)
        return _render_export(rows, MESSAGE_EXPORT_COLUMNS, fmt=fmt, name="messages_export")

    def purge_old(self, *, actor_id: Optional[int], now: Optional[datetime] = None) -> dict[str, Any]:
        cutoff = months_ago(now or now_utc(), PURGE_CUTOFF_MONTHS)
        result: PurgeResult = self._maintenance.purge_older_than(cutoff)
        deleted = {"recipients": result.recipients, "messages": result.messages, "scans": result.scans}
        logger.info("Purged data older than %s: %s", to_iso(cutoff), deleted)
        self._audit.log(
            actor_id,
            "PURGE_OLD",
            "settings",
            details={"cutoffMonths": PURGE_CUTOFF_MONTHS, "deleted": deleted},
        )
        return {"cutoffMonths": PURGE_CUTOFF_MONTHS, "deleted": deleted}
