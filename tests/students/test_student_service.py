from __future__ import annotations

from datetime import date

import pytest

from src.tutor_checkin.tutor_checkin.common.serializers import student_json
from src.tutor_checkin.tutor_checkin.core.enums import StudentStatus
from src.tutor_checkin.tutor_checkin.core.exceptions import NotFoundError, ValidationError


def test_create_student_trims_and_audits(world):
    student = world.student_service.create_student(
        actor_id=1,
        first_name=" Ava ",
        last_name="Nguyen",
        external_id=" K-001 ",
        dob="2014-03-02",
        can_leave_alone=True,
        notes="   ",
    )

    assert student.first_name == "Ava"
    assert student.external_id == "K-001"
    assert student.dob == date(2014, 3, 2)
    assert student.status == StudentStatus.ACTIVE
    assert student.can_leave_alone is True
    assert student.notes is None
    assert world.audit_repo.entries[0]["action"] == "STUDENT_CREATE"
    assert world.audit_repo.entries[0]["details"] == {"firstName": "Ava", "lastName": "Nguyen"}


@pytest.mark.parametrize(
    "kwargs,message",
    [
        ({"first_name": "", "last_name": "Nguyen"}, "firstName and lastName are required"),
        ({"first_name": "Ava3", "last_name": "Nguyen"}, "firstName must contain only letters"),
        ({"first_name": "Ava", "last_name": "Nguyen", "dob": "02/03/2014"}, "dob must be YYYY-MM-DD"),
        ({"first_name": "Ava", "last_name": "Nguyen", "status": "GRADUATED"}, "status must be ACTIVE or INACTIVE"),
    ],
)
def test_create_student_validation(world, kwargs, message):
    with pytest.raises(ValidationError, match=message):
        world.student_service.create_student(actor_id=1, **kwargs)


def test_list_students_filters(world):
    ava = world.students.add()
    world.students.add("Ben", "Tran", status=StudentStatus.INACTIVE)
    cat = world.students.add("Cat", "Le")

    assert [s.id for s in world.student_service.list_students(status="active")] == [ava.id, cat.id]
    assert [s.first_name for s in world.student_service.list_students(search="tran")] == ["Ben"]
    assert [s.id for s in world.student_service.list_students(id=str(cat.id), ids="x")] == [cat.id]
    assert len(world.student_service.list_students(limit="2")) == 2


def test_get_student_not_found(world):
    with pytest.raises(NotFoundError, match="Student not found"):
        world.student_service.get_student(7)


def test_update_student_accepts_camel_and_snake_keys(world, fixed_now):
    student = world.students.add()

    updated = world.student_service.update_student(
        actor_id=1,
        student_id=student.id,
        body={"firstName": "Eva", "can_leave_alone": 1, "status": "inactive", "dob": "", "unknown": "ignored"},
        now=fixed_now,
    )

    assert updated.first_name == "Eva"
    assert updated.can_leave_alone is True
    assert updated.status == StudentStatus.INACTIVE
    assert updated.dob is None
    assert updated.updated_at == fixed_now
    assert world.audit_repo.actions() == ["STUDENT_UPDATE"]


def test_update_student_errors(world):
    student = world.students.add()

    with pytest.raises(ValidationError, match="No fields to update"):
        world.student_service.update_student(actor_id=1, student_id=student.id, body={"nickname": "A"})
    with pytest.raises(NotFoundError, match="Not found"):
        world.student_service.update_student(actor_id=1, student_id=99, body={"notes": "x"})


def test_link_and_unlink_guardian(world):
    student = world.students.add()
    guardian = world.guardians.add()

    world.student_service.link_guardian(actor_id=1, student_id=student.id, guardian_id=guardian.id, is_primary=True)
    assert world.students.links[(student.id, guardian.id)]["is_primary"] is True

    world.student_service.unlink_guardian(actor_id=1, student_id=student.id, guardian_id=guardian.id)
    assert world.students.links == {}
    assert world.audit_repo.actions() == ["STUDENT_LINK_GUARDIAN", "STUDENT_UNLINK_GUARDIAN"]

    with pytest.raises(NotFoundError, match="Link not found"):
        world.student_service.unlink_guardian(actor_id=1, student_id=student.id, guardian_id=guardian.id)


def test_link_requires_existing_student_and_guardian(world):
    student = world.students.add()
    guardian = world.guardians.add()

    with pytest.raises(NotFoundError, match="Student not found"):
        world.student_service.link_guardian(actor_id=1, student_id=99, guardian_id=guardian.id)
    with pytest.raises(NotFoundError, match="Guardian not found"):
        world.student_service.link_guardian(actor_id=1, student_id=student.id, guardian_id=99)


def test_delete_student_removes_orphaned_guardians_only(world):
    ava = world.students.add()
    ben = world.students.add("Ben", "Tran")
    own = world.guardians.add("Mai", "Nguyen")
    shared = world.guardians.add("Lan", "Tran", phone_e164="+61498765432")
    world.students.link_guardian(student_id=ava.id, guardian_id=own.id, is_primary=True)
    world.students.link_guardian(student_id=ava.id, guardian_id=shared.id, is_primary=False)
    world.students.link_guardian(student_id=ben.id, guardian_id=shared.id, is_primary=True)

    deleted = world.student_service.delete_student(actor_id=1, student_id=ava.id)

    assert deleted == [own.id]
    assert set(world.guardians.items) == {shared.id}
    assert world.audit_repo.entries[-1]["details"] == {"deletedGuardianIds": [own.id]}
    with pytest.raises(NotFoundError):
        world.student_service.delete_student(actor_id=1, student_id=ava.id)


def test_student_json_shape(world):
    student = world.students.add(dob=date(2014, 3, 2), external_id="K-001")

    data = student_json(student)

    assert data["first_name"] == "Ava"
    assert data["dob"] == "2014-03-02"
    assert data["status"] == "ACTIVE"
    assert data["external_id"] == "K-001"
