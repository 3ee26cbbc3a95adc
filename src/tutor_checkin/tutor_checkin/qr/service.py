from __future__ import annotations

import io
import logging
import uuid
from pathlib import Path
from typing import Any, Optional, Sequence

import qrcode

from ..core.exceptions import NotFoundError, ValidationError
from ..students.repository import StudentRepository
from .payload import encode_payload
from .repository import QrCodeRepository
from .storage import QrImageStore

logger = logging.getLogger(__name__)

QR_TARGET_WIDTH = 512
QR_BORDER = 1


def render_png(token: str, *, width: int = QR_TARGET_WIDTH) -> bytes:
    """PNG (error correction M, border 1, ~``width`` px) for a student's token."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=QR_BORDER,
    )
    qr.add_data(encode_payload(token))
    qr.make(fit=True)
    qr.box_size = max(1, width // (qr.modules_count + 2 * QR_BORDER))

    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def parse_student_ids(value: Any) -> list[int]:
    """Positive ints from a JSON list; raises when none are usable."""
    ids: list[int] = []
    if isinstance(value, list):
        for v in value:
            if isinstance(v, bool):
                continue
            try:
                n = int(v)
            except (TypeError, ValueError):
                continue
            if n > 0 and n == float(v):
                ids.append(n)
    if not ids:
        raise ValidationError("studentIds must be a non-empty array of integers")
    return ids


class QrService:
    def __init__(
        self,
        qr_codes: QrCodeRepository,
        students: StudentRepository,
        store: QrImageStore,
        *,
        repo_dir: str = "qr",
    ):
        self._qr_codes = qr_codes
        self._students = students
        self._store = store
        self._repo_dir = repo_dir.strip("/") or "qr"

    @property
    def repo_dir(self) -> str:
        return self._repo_dir

    def png_path(self, student_id: int) -> str:
        return f"{self._repo_dir}/qr_{student_id}.png"

    def ensure_active_token(self, student_id: int, *, created_by: Optional[int] = None) -> str:
        existing = self._qr_codes.get_active_for_student(student_id)
        if existing:
            return existing.token
        qr = self._qr_codes.create(student_id=student_id, token=str(uuid.uuid4()), created_by=created_by)
        return qr.token

    def generate(self, student_ids: Any, *, created_by: Optional[int] = None) -> list[dict[str, Any]]:
        """Render and store one PNG per student. A failing id never aborts the batch."""
        items: list[dict[str, Any]] = []
        for sid in parse_student_ids(student_ids):
            try:
                if not self._students.get_by_id(sid):
                    items.append({"studentId": sid, "ok": False, "error": "Student not found"})
                    continue
                token = self.ensure_active_token(sid, created_by=created_by)
                self._store.put(self.png_path(sid), render_png(token), message=f"Add/Update QR for student {sid}")
                items.append({"studentId": sid, "ok": True})
            except Exception as e:
                logger.exception("QR generation failed for student %s", sid)
                items.append({"studentId": sid, "ok": False, "error": str(e)})
        return items

    def download(self, student_id: int, *, created_by: Optional[int] = None) -> bytes:
        """Stored PNG for the student, created and stored on first request."""
        data = self._store.get(self.png_path(student_id))
        if data is not None:
            return data

        if not self._students.get_by_id(student_id):
            raise NotFoundError("Student not found")
        token = self.ensure_active_token(student_id, created_by=created_by)
        data = render_png(token)
        self._store.put(self.png_path(student_id), data, message=f"Add QR for student {student_id}")
        return data

    def cleanup(self, student_ids: Any) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for sid in parse_student_ids(student_ids):
            try:
                deleted = self._store.delete(self.png_path(sid), message=f"Delete QR for student {sid}")
                items.append({"studentId": sid, "deleted": deleted})
            except Exception as e:
                logger.warning("QR cleanup failed for student %s: %s", sid, e)
                items.append({"studentId": sid, "deleted": False, "error": str(e)})
        return items

    def issue_missing_tokens(self) -> Sequence[int]:
        """Create tokens for every ACTIVE student that has none. Returns their ids."""
        created: list[int] = []
        for student in self._qr_codes.students_without_active_token():
            self.ensure_active_token(student.id)
            created.append(student.id)
        return created

    def export_pngs(self, out_dir: str | Path) -> int:
        """Write ``student_{id}.png`` for every active token into ``out_dir``."""
        target = Path(out_dir)
        target.mkdir(parents=True, exist_ok=True)
        count = 0
        for qr in self._qr_codes.list_active():
            (target / f"student_{qr.student_id}.png").write_bytes(render_png(qr.token))
            count += 1
        return count
