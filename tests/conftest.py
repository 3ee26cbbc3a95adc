from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from src.tutor_checkin.tutor_checkin.audit.service import AuditService
from src.tutor_checkin.tutor_checkin.core.enums import Role, ScanType, StudentStatus
from src.tutor_checkin.tutor_checkin.core.exceptions import ExternalServiceError
from src.tutor_checkin.tutor_checkin.guardians.model import Guardian
from src.tutor_checkin.tutor_checkin.guardians.service import GuardianService
from src.tutor_checkin.tutor_checkin.importer.service import ImportService
from src.tutor_checkin.tutor_checkin.messaging.model import MessageLog, MessageStudent, MessageTemplate, SmsResult
from src.tutor_checkin.tutor_checkin.messaging.notifier import Notifier
from src.tutor_checkin.tutor_checkin.messaging.service import MessageService, TemplateService
from src.tutor_checkin.tutor_checkin.qr.model import QrCode
from src.tutor_checkin.tutor_checkin.qr.service import QrService
from src.tutor_checkin.tutor_checkin.scans.model import DayScan, RecentScan, ScanEvent
from src.tutor_checkin.tutor_checkin.scans.service import ScanService
from src.tutor_checkin.tutor_checkin.settings.model import PurgeResult
from src.tutor_checkin.tutor_checkin.settings.service import SettingsService
from src.tutor_checkin.tutor_checkin.students.model import Student
from src.tutor_checkin.tutor_checkin.students.service import StudentService
from src.tutor_checkin.tutor_checkin.users.model import User
from src.tutor_checkin.tutor_checkin.users.service import AuthService, UserService
from src.tutor_checkin.tutor_checkin.users.tokens import TokenService

# Friday 15 Aug 2025, 7:04 pm in Hobart (AEST, UTC+10)
FIXED_NOW = datetime(2025, 8, 15, 9, 4, tzinfo=timezone.utc)


class FakeUsers:
    def __init__(self):
        self.items: dict[int, User] = {}
        self.last_login: dict[int, datetime] = {}
        self._next_id = 1

    def add(self, *, email, password_hash, role=Role.STAFF, active=True) -> User:
        return self.create_user(email=email, password_hash=password_hash, role=role, active=active)

    def get_by_id(self, user_id):
        return self.items.get(int(user_id))

    def get_by_email(self, email):
        for u in self.items.values():
            if u.email.lower() == str(email).lower():
                return u
        return None

    def email_taken(self, email, *, exclude_id=None):
        u = self.get_by_email(email)
        return bool(u and u.id != exclude_id)

    def list_users(self, *, limit=100, offset=0, search="", role=None, active=None):
        out = [u for u in self.items.values() if search.lower() in u.email.lower()]
        if role is not None:
            out = [u for u in out if u.role == role]
        if active is not None:
            out = [u for u in out if u.active == active]
        return out[offset : offset + limit]

    def create_user(self, *, email, password_hash, role, active=True):
        user = User(id=self._next_id, email=email, password_hash=password_hash, role=role, active=active)
        self.items[user.id] = user
        self._next_id += 1
        return user

    def update_user(self, user_id, *, fields, now):
        user = self.items.get(user_id)
        if not user:
            return None
        user = replace(user, updated_at=now, **fields)
        self.items[user_id] = user
        return user

    def delete_by_id(self, user_id):
        return self.items.pop(user_id, None) is not None

    def touch_last_login(self, user_id, *, at):
        self.last_login[user_id] = at


class FakeStudents:
    def __init__(self):
        self.items: dict[int, Student] = {}
        self.links: dict[tuple[int, int], dict] = {}
        self.guardians: FakeGuardians | None = None
        self._next_id = 1

    def add(self, first_name="Ava", last_name="Nguyen", **kwargs) -> Student:
        return self.create_student(first_name=first_name, last_name=last_name, **kwargs)

    def get_by_id(self, student_id):
        return self.items.get(int(student_id))

    def list_students(self, *, search="", status=None, ids=(), limit=50, offset=0):
        out = list(self.items.values())
        if ids:
            out = [s for s in out if s.id in ids]
        if status is not None:
            out = [s for s in out if s.status == status]
        if search:
            out = [s for s in out if search.lower() in s.full_name.lower()]
        return out[offset : offset + limit]

    def create_student(
        self,
        *,
        first_name,
        last_name,
        external_id=None,
        dob=None,
        status=StudentStatus.ACTIVE,
        can_leave_alone=False,
        notes=None,
    ):
        s = Student(
            id=self._next_id,
            first_name=first_name,
            last_name=last_name,
            status=status,
            external_id=external_id,
            dob=dob,
            can_leave_alone=can_leave_alone,
            notes=notes,
            created_at=FIXED_NOW,
        )
        self.items[s.id] = s
        self._next_id += 1
        return s

    def update_student(self, student_id, *, fields, now):
        s = self.items.get(student_id)
        if not s:
            return None
        s = replace(s, updated_at=now, **fields)
        self.items[student_id] = s
        return s

    def link_guardian(self, *, student_id, guardian_id, is_primary, relationship_type=None):
        link = self.links.setdefault((student_id, guardian_id), {"relationship_type": relationship_type or "GUARDIAN"})
        link["is_primary"] = bool(is_primary)

    def unlink_guardian(self, *, student_id, guardian_id):
        return self.links.pop((student_id, guardian_id), None) is not None

    def delete_student(self, student_id):
        if student_id not in self.items:
            return None
        del self.items[student_id]
        linked = [gid for (sid, gid) in list(self.links) if sid == student_id]
        for gid in linked:
            del self.links[(student_id, gid)]
        orphans = [gid for gid in linked if not any(g == gid for (_, g) in self.links)]
        if self.guardians is not None:
            for gid in orphans:
                self.guardians.items.pop(gid, None)
        return orphans


class FakeGuardians:
    def __init__(self, students: FakeStudents):
        self.items: dict[int, Guardian] = {}
        self._students = students
        students.guardians = self
        self._next_id = 1

    def add(self, first_name="Mai", last_name="Nguyen", phone_e164="+61412345678", **kwargs) -> Guardian:
        g = self.create_guardian(first_name=first_name, last_name=last_name, phone_e164=phone_e164)
        if kwargs:
            g = replace(g, **kwargs)
            self.items[g.id] = g
        return g

    def _linked(self, student_id):
        return [
            replace(self.items[gid], relationship_type=link["relationship_type"])
            for (sid, gid), link in self._students.links.items()
            if sid == student_id and gid in self.items
        ]

    def get_by_id(self, guardian_id):
        return self.items.get(int(guardian_id))

    def list_for_student(self, student_id):
        return self._linked(student_id)

    def list_notifiable_for_student(self, student_id):
        return [g for g in self._linked(student_id) if g.active and g.phone_valid and g.phone_e164]

    def list_guardians(self, *, search="", relationship="", active=None, phone_valid=None, ids=(), limit=200, offset=0):
        out = list(self.items.values())
        if ids:
            out = [g for g in out if g.id in ids]
        if active is not None:
            out = [g for g in out if g.active == active]
        if phone_valid is not None:
            out = [g for g in out if g.phone_valid == phone_valid]
        if search:
            out = [g for g in out if search.lower() in g.name.lower() or search in (g.phone_e164 or "")]
        return out[offset : offset + limit]

    def create_guardian(self, *, first_name, last_name, phone_e164, phone_raw=None, relationship="GUARDIAN", email=None):
        g = Guardian(
            id=self._next_id,
            first_name=first_name,
            last_name=last_name,
            phone_e164=phone_e164,
            phone_raw=phone_raw,
            relationship=relationship,
            email=email,
        )
        self.items[g.id] = g
        self._next_id += 1
        return g

    def update_guardian(self, guardian_id, *, fields, link_relationship=None, update_links=False):
        g = self.items.get(guardian_id)
        if not g:
            return None
        g = replace(g, **fields)
        self.items[guardian_id] = g
        if update_links:
            for (sid, gid), link in self._students.links.items():
                if gid == guardian_id:
                    link["relationship_type"] = link_relationship
        return g

    def delete_guardian(self, guardian_id):
        for key in [k for k in self._students.links if k[1] == guardian_id]:
            del self._students.links[key]
        return self.items.pop(guardian_id, None) is not None

    def students_for_guardian(self, guardian_id):
        return [self._students.items[sid] for (sid, gid) in self._students.links if gid == guardian_id]

    def students_by_guardian_ids(self, guardian_ids):
        out: dict[int, list[Student]] = {}
        for (sid, gid) in self._students.links:
            if gid in guardian_ids:
                out.setdefault(gid, []).append(self._students.items[sid])
        return out


class FakeQrCodes:
    def __init__(self, students: FakeStudents):
        self.items: dict[int, QrCode] = {}
        self._students = students
        self._next_id = 1

    def get_active_for_student(self, student_id):
        for qr in self.items.values():
            if qr.student_id == student_id and qr.active:
                return qr
        return None

    def find_active_by_token(self, token):
        for qr in self.items.values():
            if qr.token == token and qr.active:
                return qr
        return None

    def create(self, *, student_id, token, created_by=None):
        qr = QrCode(id=self._next_id, student_id=student_id, token=token, created_by=created_by)
        self.items[qr.id] = qr
        self._next_id += 1
        return qr

    def students_without_active_token(self):
        return [
            s
            for s in self._students.items.values()
            if s.status == StudentStatus.ACTIVE and not self.get_active_for_student(s.id)
        ]

    def list_active(self):
        return [qr for qr in self.items.values() if qr.active]


class FakeTemplates:
    def __init__(self):
        self.items: dict[str, str] = {}

    def list_all(self):
        return [MessageTemplate(key=k, text=v) for k, v in sorted(self.items.items())]

    def get_text(self, key):
        return self.items.get(key)

    def upsert_text(self, key, text):
        self.items[key] = text
        return MessageTemplate(key=key, text=text, updated_at=FIXED_NOW)


class FakeMessages:
    def __init__(self, students: FakeStudents):
        self.logs: dict[int, MessageLog] = {}
        self._students = students
        self._next_id = 1
        self._next_recipient_id = 1

    def create_log(self, *, student_id, scan_event_id, template_key, body_rendered, created_by, created_at, trigger_type="SCAN"):
        log = MessageLog(
            id=self._next_id,
            student_id=student_id,
            body_rendered=body_rendered,
            template_key=template_key,
            trigger_type=trigger_type,
            scan_event_id=scan_event_id,
            created_by=created_by,
            created_at=created_at,
        )
        self.logs[log.id] = log
        self._next_id += 1
        return log.id

    def add_recipients(self, message_log_id, recipients):
        stored = []
        for r in recipients:
            stored.append(replace(r, id=self._next_recipient_id, updated_at=FIXED_NOW))
            self._next_recipient_id += 1
        log = self.logs[message_log_id]
        self.logs[message_log_id] = replace(log, recipients=log.recipients + tuple(stored))

    def list_messages(self, *, student_id=None, limit=50, offset=0, include_student=False):
        logs = sorted(self.logs.values(), key=lambda m: m.id, reverse=True)
        if student_id:
            logs = [m for m in logs if m.student_id == student_id]
        out = []
        for m in logs[offset : offset + limit]:
            s = self._students.get_by_id(m.student_id) if include_student else None
            if s:
                m = replace(m, student=MessageStudent(id=s.id, first_name=s.first_name, last_name=s.last_name, dob=s.dob))
            out.append(m)
        return out

    def has_message_for_scan(self, scan_id):
        return any(m.scan_event_id == scan_id for m in self.logs.values())


class FakeScans:
    def __init__(self, students: FakeStudents, messages: FakeMessages):
        self.items: dict[int, ScanEvent] = {}
        self._students = students
        self._messages = messages
        self._next_id = 1

    def insert(self, *, student_id, qr_code_id, type, scanned_by, scanned_at, was_duplicate, meta):
        e = ScanEvent(
            id=self._next_id,
            student_id=student_id,
            type=type,
            scanned_at=scanned_at,
            qr_code_id=qr_code_id,
            scanned_by=scanned_by,
            was_duplicate=was_duplicate,
            meta=dict(meta),
        )
        self.items[e.id] = e
        self._next_id += 1
        return e

    def latest_of_type(self, student_id, type, *, start=None, end=None):
        rows = [
            e
            for e in self.items.values()
            if e.student_id == student_id
            and e.type == type
            and (start is None or e.scanned_at >= start)
            and (end is None or e.scanned_at < end)
        ]
        return max(rows, key=lambda e: (e.scanned_at, e.id)) if rows else None

    def scans_between(self, start, end):
        rows = sorted(
            (e for e in self.items.values() if not e.was_duplicate and start <= e.scanned_at < end),
            key=lambda e: (e.scanned_at, e.id),
        )
        return [
            DayScan(
                student_id=e.student_id,
                type=e.type,
                scanned_at=e.scanned_at,
                has_message=self._messages.has_message_for_scan(e.id),
            )
            for e in rows
        ]

    def recent(self, limit):
        rows = sorted(self.items.values(), key=lambda e: (e.scanned_at, e.id), reverse=True)[:limit]
        out = []
        for e in rows:
            s = self._students.get_by_id(e.student_id)
            out.append(
                RecentScan(
                    event=e,
                    has_message=self._messages.has_message_for_scan(e.id),
                    student_first=s.first_name if s else None,
                    student_last=s.last_name if s else None,
                    student_dob=s.dob if s else None,
                )
            )
        return out


class FakeSettingsRepo:
    def __init__(self):
        self.values: dict = {}
        self.down = False

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value):
        self.values[key] = value

    def server_time(self):
        if self.down:
            raise ConnectionError("db down")
        return FIXED_NOW


class FakeMaintenance:
    def __init__(self):
        self.scan_rows: list[dict] = []
        self.message_rows: list[dict] = []
        self.export_calls: list[tuple] = []
        self.purged_before = None

    def export_scans(self, *, start, end):
        self.export_calls.append(("scans", start, end))
        return list(self.scan_rows)

    def export_messages(self, *, start, end):
        self.export_calls.append(("messages", start, end))
        return list(self.message_rows)

    def purge_older_than(self, cutoff):
        self.purged_before = cutoff
        return PurgeResult(recipients=3, messages=2, scans=5)


class FakeAuditRepo:
    def __init__(self):
        self.entries: list[dict] = []

    def add(self, *, actor_id, action, entity, entity_id, details):
        self.entries.append(
            {"actor_id": actor_id, "action": action, "entity": entity, "entity_id": entity_id, "details": details}
        )
        return len(self.entries)

    def actions(self):
        return [e["action"] for e in self.entries]


class FakeSms:
    """Stands in for ClickSendClient: every phone gets ``statuses.get(phone, 'SUCCESS')``."""

    def __init__(self, *, configured=True):
        self.configured = configured
        self.statuses: dict[str, str] = {}
        self.omit: set[str] = set()
        self.error: Exception | None = None
        self.sent: list[dict] = []

    def send_many(self, items):
        items = list(items)
        if self.error is not None:
            raise self.error
        self.sent.extend(items)
        return [
            SmsResult(to=i["to"], message_id=f"msg-{n}", status=self.statuses.get(i["to"], "SUCCESS"))
            for n, i in enumerate(items, start=1)
            if i["to"] not in self.omit
        ]

    def fail_with(self, message="ClickSend error: Unauthorized"):
        self.error = ExternalServiceError(message, status_code=401)


class FakeStore:
    def __init__(self):
        self.files: dict[str, bytes] = {}

    def get(self, path):
        return self.files.get(path)

    def put(self, path, data, *, message):
        self.files[path] = data

    def delete(self, path, *, message):
        return self.files.pop(path, None) is not None


class World:
    """Every fake repository plus the real services wired on top of them."""

    def __init__(self):
        self.users = FakeUsers()
        self.students = FakeStudents()
        self.guardians = FakeGuardians(self.students)
        self.qr_codes = FakeQrCodes(self.students)
        self.templates = FakeTemplates()
        self.messages = FakeMessages(self.students)
        self.scans = FakeScans(self.students, self.messages)
        self.settings_repo = FakeSettingsRepo()
        self.maintenance = FakeMaintenance()
        self.audit_repo = FakeAuditRepo()
        self.sms = FakeSms()
        self.store = FakeStore()

        self.tokens = TokenService("test-jwt-secret")
        audit = AuditService(self.audit_repo)
        self.auth_service = AuthService(self.users, self.tokens)
        self.user_service = UserService(self.users, audit)
        self.student_service = StudentService(self.students, self.guardians, audit)
        self.guardian_service = GuardianService(self.guardians, audit)
        self.qr_service = QrService(self.qr_codes, self.students, self.store, repo_dir="qr")
        self.template_service = TemplateService(self.templates)
        self.message_service = MessageService(self.messages)
        self.settings_service = SettingsService(
            self.settings_repo, self.maintenance, self.sms, audit, default_centre_name="Kumon North Hobart"
        )
        self.scan_service = ScanService(
            self.qr_codes,
            self.students,
            self.guardians,
            self.scans,
            self.template_service,
            Notifier(self.messages, self.sms),
            self.settings_service,
        )
        self.import_service = ImportService(self.students, self.guardians, self.qr_service)

    def enrolled_student(self, *, phones=("+61412345678",), status=StudentStatus.ACTIVE, token="tok-1"):
        """Student with an active QR token and one linked guardian per phone."""
        student = self.students.add(status=status)
        self.qr_codes.create(student_id=student.id, token=token)
        for n, phone in enumerate(phones):
            g = self.guardians.add(first_name="Mai", last_name=f"Guardian{chr(65 + n)}", phone_e164=phone)
            self.students.link_guardian(student_id=student.id, guardian_id=g.id, is_primary=n == 0)
        return student

    def add_scan(self, student_id, type=ScanType.CHECK_IN, *, at=FIXED_NOW, duplicate=False, meta=None):
        return self.scans.insert(
            student_id=student_id,
            qr_code_id=None,
            type=type,
            scanned_by=None,
            scanned_at=at,
            was_duplicate=duplicate,
            meta=meta or {},
        )


@pytest.fixture()
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture()
def world() -> World:
    return World()
