"""Check-in / check-out flow.

A scan is resolved from its QR token to an ACTIVE student, guarded against a
second scan of the same type on the same local day (unless rechecking),
de-duplicated within a short window, stored, and finally turned into an SMS
to the student's guardians when the org policy allows it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from ..common.datetime_utils import format_short_datetime, local_day_bounds, now_utc, to_iso
from ..common.serializers import scan_json
from ..common.validators import clamp_int
from ..core.constants import (
    DEFAULT_RECENT_SCANS,
    DUPLICATE_SCAN_WINDOW_MINUTES,
    MAX_RECENT_SCANS,
    PREVIEW_FALLBACK_TEMPLATE,
    SEND_FALLBACK_TEMPLATE,
)
from ..core.enums import ScanType
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..guardians.repository import GuardianRepository
from ..messaging.notifier import Notifier
from ..messaging.renderer import render_template
from ..messaging.service import TemplateService
from ..qr.payload import extract_token
from ..qr.repository import QrCodeRepository
from ..settings.model import OrgSettings
from ..settings.service import SettingsService
from ..students.model import Student
from ..students.repository import StudentRepository
from .repository import ScanRepository

logger = logging.getLogger(__name__)

# (conflict error code, payload key) per scan type
_SAME_DAY = {
    ScanType.CHECK_IN: ("already_checked_in_today", "lastCheckInAt"),
    ScanType.CHECK_OUT: ("already_checked_out_today", "lastCheckOutAt"),
}


def parse_scan_type(qr_code: Any, type: Any) -> ScanType:
    if not qr_code or not type:
        raise ValidationError("qrCode and type are required")
    try:
        return ScanType(str(type).strip().upper())
    except ValueError:
        raise ValidationError("type must be CHECK_IN or CHECK_OUT")


@dataclass(frozen=True)
class _Resolved:
    qr_code_id: int
    student: Student


class ScanService:
    def __init__(
        self,
        qr_codes: QrCodeRepository,
        students: StudentRepository,
        guardians: GuardianRepository,
        scans: ScanRepository,
        templates: TemplateService,
        notifier: Notifier,
        settings: SettingsService,
    ):
        self._qr_codes = qr_codes
        self._students = students
        self._guardians = guardians
        self._scans = scans
        self._templates = templates
        self._notifier = notifier
        self._settings = settings

    def _resolve(self, qr_code: Any) -> _Resolved:
        qr = self._qr_codes.find_active_by_token(extract_token(qr_code))
        student = self._students.get_by_id(qr.student_id) if qr else None
        if not qr or not student:
            raise NotFoundError("QR code not found or inactive")
        if not student.is_active:
            raise ValidationError("Student is inactive")
        return _Resolved(qr_code_id=qr.id, student=student)

    def _last_today(self, student_id: int, scan_type: ScanType, org: OrgSettings, now: datetime) -> Optional[str]:
        start, end = local_day_bounds(now, org.timezone)
        last = self._scans.latest_of_type(student_id, scan_type, start=start, end=end)
        return format_short_datetime(last.scanned_at, org.timezone) if last else None

    def _render(self, scan_type: ScanType, fallback: str, student: Student, org: OrgSettings, now: datetime) -> str:
        text = self._templates.get_text(scan_type.value) or fallback
        return render_template(
            text,
            student=student,
            type=scan_type.value,
            now=now,
            centre_name=org.centre_name,
            timezone=org.timezone,
        )

    def preview(self, *, qr_code: Any, type: Any, headcount_only: Any = None, now: Optional[datetime] = None) -> dict[str, Any]:
        """Resolve and render the message a scan would send, without recording anything."""
        scan_type = parse_scan_type(qr_code, type)
        now = now or now_utc()
        org = self._settings.get()
        headcount = headcount_only is True
        resolved = self._resolve(qr_code)
        student = resolved.student

        last = self._last_today(student.id, scan_type, org, now)
        is_in = scan_type == ScanType.CHECK_IN
        return {
            "student": {"id": student.id, "firstName": student.first_name, "lastName": student.last_name},
            "body": self._render(scan_type, PREVIEW_FALLBACK_TEMPLATE, student, org, now),
            "smsAllowed": org.sms_enabled_for(scan_type) and not headcount,
            "headcountOnly": headcount,
            "alreadyCheckedInToday": bool(is_in and last),
            "lastCheckInAt": last if is_in else None,
            "alreadyCheckedOutToday": bool(not is_in and last),
            "lastCheckOutAt": None if is_in else last,
            "alreadyDoneToday": last is not None,
            "lastActionAt": last,
        }

    def handle_scan(
        self,
        *,
        qr_code: Any,
        type: Any,
        message_override: Any = None,
        recheck: Any = None,
        headcount_only: Any = None,
        scanned_by: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        scan_type = parse_scan_type(qr_code, type)
        now = now or now_utc()
        want_recheck = recheck is True
        headcount = headcount_only is True

        org = self._settings.get()
        sms_allowed = org.sms_enabled_for(scan_type) and not headcount
        resolved = self._resolve(qr_code)
        student = resolved.student

        is_duplicate = False
        if not want_recheck:
            last_today = self._last_today(student.id, scan_type, org, now)
            if last_today:
                code, key = _SAME_DAY[scan_type]
                raise ConflictError(code, payload={key: last_today})

            latest = self._scans.latest_of_type(student.id, scan_type)
            window = timedelta(minutes=DUPLICATE_SCAN_WINDOW_MINUTES)
            if latest and abs(now - latest.scanned_at) <= window:
                is_duplicate = True

        meta: dict[str, Any] = {}
        if want_recheck:
            meta["recheck"] = True
        if headcount:
            meta["headcountOnly"] = True

        scan = self._scans.insert(
            student_id=student.id,
            qr_code_id=resolved.qr_code_id,
            type=scan_type,
            scanned_by=scanned_by,
            scanned_at=now,
            was_duplicate=is_duplicate,
            meta=meta,
        )
        logger.info(
            "Scan %s %s student=%s duplicate=%s recheck=%s headcountOnly=%s",
            scan.id,
            scan_type.value,
            student.id,
            is_duplicate,
            want_recheck,
            headcount,
        )

        if is_duplicate:
            return {"duplicate": True, "scan": scan_json(scan), "sent": 0, "recipients": [], "headcountOnly": headcount}

        guardians = list(self._guardians.list_notifiable_for_student(student.id))
        if not sms_allowed or not guardians:
            return {
                "scan": scan_json(scan),
                "messageLogId": None,
                "recipients": [],
                "sent": 0,
                "smsAllowed": sms_allowed,
                "headcountOnly": headcount,
            }

        override = message_override.strip() if isinstance(message_override, str) else ""
        if override:
            body, template_key = override, None
        else:
            body = self._render(scan_type, SEND_FALLBACK_TEMPLATE, student, org, now)
            template_key = scan_type.value

        outcome = self._notifier.notify(
            student_id=student.id,
            scan_event_id=scan.id,
            template_key=template_key,
            body=body,
            guardians=guardians,
            created_by=scanned_by,
            now=now,
        )

        return {
            "scan": scan_json(scan),
            "messageLogId": outcome.message_log_id,
            "recipients": [g.phone_e164 for g in guardians],
            "recipientsDetailed": [
                {
                    "phone": r.phone_e164,
                    "status": r.status.value,
                    "gateway_status": r.gateway_status,
                    "gateway_message_id": r.gateway_message_id,
                }
                for r in outcome.recipients
            ],
            "sent": outcome.sent,
            "smsAllowed": sms_allowed,
            "headcountOnly": headcount,
            "overallGatewayStatus": outcome.overall_gateway_status,
            "gatewayFailure": outcome.gateway_failure,
            "gatewayFailureReason": outcome.gateway_failure_reason,
            "gatewayFailureMessage": outcome.gateway_failure_message,
        }

    def today_stats(self, *, now: Optional[datetime] = None) -> dict[str, int]:
        org = self._settings.get()
        start, end = local_day_bounds(now or now_utc(), org.timezone)

        today_in = today_out = non_sms_in = non_sms_out = 0
        latest: dict[int, tuple[datetime, ScanType]] = {}
        for row in self._scans.scans_between(start, end):
            if row.type == ScanType.CHECK_IN:
                today_in += 1
                non_sms_in += 0 if row.has_message else 1
            else:
                today_out += 1
                non_sms_out += 0 if row.has_message else 1

            prev = latest.get(row.student_id)
            if prev is None or row.scanned_at >= prev[0]:
                latest[row.student_id] = (row.scanned_at, row.type)

        return {
            "todayIn": today_in,
            "todayOut": today_out,
            "onCampusToday": sum(1 for _, t in latest.values() if t == ScanType.CHECK_IN),
            "nonSmsIn": non_sms_in,
            "nonSmsOut": non_sms_out,
            "nonSmsTotal": non_sms_in + non_sms_out,
        }

    def recent(self, limit: Any = None) -> list[dict[str, Any]]:
        n = clamp_int(limit, default=DEFAULT_RECENT_SCANS, lo=1, hi=MAX_RECENT_SCANS)
        items = []
        for r in self._scans.recent(n):
            e = r.event
            items.append(
                {
                    "id": e.id,
                    "scan_event_id": e.id,
                    "student_id": e.student_id,
                    "type": e.type.value,
                    "scanned_at": to_iso(e.scanned_at) or None,
                    "was_duplicate": e.was_duplicate,
                    "headcountOnly": e.headcount_only,
                    "headcount_only": e.headcount_only,
                    "has_message": r.has_message,
                    "student_first": r.student_first,
                    "student_last": r.student_last,
                    "student_dob": r.student_dob.isoformat() if r.student_dob else None,
                }
            )
        return items
