from __future__ import annotations

from datetime import date

import pytest

from src.tutor_checkin.tutor_checkin.core.enums import StudentStatus
from src.tutor_checkin.tutor_checkin.core.exceptions import ValidationError
from src.tutor_checkin.tutor_checkin.importer.service import MAX_IMPORT_BYTES

CSV = """firstName,lastName,dob,status,canLeaveAlone,g1_firstName,g1_lastName,g1_phone,g2_first_name,g2_last_name,g2_phone,g2_primary
Ava,Nguyen,2014-03-02,,yes,Mai,Nguyen,0412 345 678,Lan,Tran,61498765432,
Ben,Tran,02/03/2015,inactive,,Lan,Tran,not-a-phone,,,,
,,,,,,,,,,,
Cat,,,,,,,,,,,
R2D2,Droid,,,,,,,,,,
"""


def test_import_creates_students_guardians_and_tokens(world):
    result = world.import_service.import_csv(CSV.encode("utf-8-sig"), created_by=4)

    assert result.to_json() == {
        "total": 4,
        "created": 2,
        "errors": [
            {"row": 3, "message": "Missing student first/last name"},
            {
                "row": 4,
                "message": "Invalid student firstName: must contain only letters (plus spaces, hyphens, apostrophes) "
                "and start/end with a letter",
            },
        ],
        "createdIds": [1, 2],
    }

    ava, ben = world.students.items[1], world.students.items[2]
    assert ava.dob == date(2014, 3, 2)
    assert ava.can_leave_alone is True
    assert ava.status == StudentStatus.ACTIVE
    assert ben.dob is None
    assert ben.status == StudentStatus.INACTIVE

    phones = {g.phone_e164 for g in world.guardians.list_for_student(ava.id)}
    assert phones == {"+61412345678", "+61498765432"}
    assert world.students.links[(ava.id, 1)]["is_primary"] is True
    assert world.students.links[(ava.id, 2)]["is_primary"] is False
    assert world.guardians.list_for_student(ben.id) == []

    assert world.qr_codes.get_active_for_student(ava.id).created_by == 4
    assert world.qr_codes.get_active_for_student(ben.id) is not None


def test_row_failure_does_not_stop_the_import(world):
    calls = []
    create = world.students.create_student

    def flaky_create(**kwargs):
        calls.append(kwargs["first_name"])
        if kwargs["first_name"] == "Ava":
            raise RuntimeError("Duplicate entry")
        return create(**kwargs)

    world.students.create_student = flaky_create
    data = b"first_name,last_name\nAva,Nguyen\nBen,Tran\n"

    result = world.import_service.import_csv(data)

    assert calls == ["Ava", "Ben"]
    assert result.created == 1
    assert result.errors == [{"row": 1, "message": "Duplicate entry"}]


def test_import_requires_a_file(world):
    with pytest.raises(ValidationError, match="CSV file is required"):
        world.import_service.import_csv(b"")


def test_import_rejects_large_files(world):
    with pytest.raises(ValidationError, match="CSV file must be 10 MB or smaller"):
        world.import_service.import_csv(b"x" * (MAX_IMPORT_BYTES + 1))


def test_import_rejects_non_utf8(world):
    with pytest.raises(ValidationError, match="Invalid CSV: file must be UTF-8 encoded"):
        world.import_service.import_csv("firstName,lastName\nZoë,Nguyen\n".encode("latin-1"))
