from __future__ import annotations

import pytest

from src.tutor_checkin.tutor_checkin.common.serializers import guardian_json
from src.tutor_checkin.tutor_checkin.core.exceptions import NotFoundError, ValidationError


def test_create_guardian_from_full_name(world):
    guardian = world.guardian_service.create_guardian(actor_id=1, name="Mai Thi Nguyen", phone="+61412345678")

    assert (guardian.first_name, guardian.last_name) == ("Mai", "Thi Nguyen")
    assert guardian.phone_e164 == "+61412345678"
    assert guardian.relationship == "GUARDIAN"
    assert world.audit_repo.entries[0]["details"] == {
        "first_name": "Mai",
        "last_name": "Thi Nguyen",
        "phone_e164": "+61412345678",
    }


def test_create_guardian_from_parts_with_relationship(world):
    guardian = world.guardian_service.create_guardian(
        actor_id=1, first_name="Lan", last_name="Tran", relationship=" MOTHER ", phone="+61498765432"
    )

    assert guardian.name == "Lan Tran"
    assert guardian.relationship == "MOTHER"


def test_single_word_name_has_empty_last_name(world):
    guardian = world.guardian_service.create_guardian(actor_id=1, name="Grandma", phone="+61412345678")
    assert guardian.last_name == ""


@pytest.mark.parametrize(
    "kwargs,message",
    [
        ({"name": "Mai Nguyen"}, "Provide name or firstName\\+lastName, and phone"),
        ({"first_name": "Mai", "phone": "+61412345678"}, "Provide name or firstName\\+lastName, and phone"),
        ({"name": "Mai Nguyen", "phone": "0412345678"}, "phone must be E.164 format"),
        ({"name": "M4i Nguyen", "phone": "+61412345678"}, "firstName must contain only letters"),
    ],
)
def test_create_guardian_validation(world, kwargs, message):
    with pytest.raises(ValidationError, match=message):
        world.guardian_service.create_guardian(actor_id=1, **kwargs)


def test_list_guardians_for_student_uses_link_relationship(world):
    student = world.students.add()
    guardian = world.guardians.add()
    world.students.link_guardian(student_id=student.id, guardian_id=guardian.id, is_primary=True, relationship_type="FATHER")
    world.guardians.add("Other", "Person", phone_e164="+61498765432")

    items = world.guardian_service.list_guardians(student_id=str(student.id))

    assert [g.id for g in items] == [guardian.id]
    assert guardian_json(items[0])["relationship_type"] == "FATHER"


def test_list_guardians_rejects_bad_student_id(world):
    with pytest.raises(ValidationError, match="studentId must be a positive integer"):
        world.guardian_service.list_guardians(student_id="abc")


def test_list_guardians_filters(world):
    world.guardians.add("Mai", "Nguyen")
    world.guardians.add("Lan", "Tran", phone_e164="+61498765432", phone_valid=False)

    assert [g.first_name for g in world.guardian_service.list_guardians(phone_valid="no")] == ["Lan"]
    assert [g.first_name for g in world.guardian_service.list_guardians(search="nguyen")] == ["Mai"]
    assert len(world.guardian_service.list_guardians(phone_valid="whatever")) == 2


def test_students_by_guardian_ids_includes_every_requested_id(world):
    ava = world.students.add()
    mai = world.guardians.add()
    world.students.link_guardian(student_id=ava.id, guardian_id=mai.id, is_primary=True)

    grouped = world.guardian_service.students_by_guardian_ids(f"{mai.id},42")

    assert {gid: [s.id for s in students] for gid, students in grouped.items()} == {mai.id: [ava.id], 42: []}
    assert world.guardian_service.students_by_guardian_ids("") == {}


def test_update_guardian_phone_raw_derives_e164(world):
    guardian = world.guardians.add()

    updated = world.guardian_service.update_guardian(
        actor_id=1, guardian_id=guardian.id, body={"phoneRaw": "0436 536 668", "phoneE164": "ignored"}
    )

    assert updated.phone_raw == "0436 536 668"
    assert updated.phone_e164 == "+61436536668"


def test_update_guardian_null_keys_fall_back_to_the_other_spelling(world):
    guardian = world.guardians.add()

    updated = world.guardian_service.update_guardian(
        actor_id=1,
        guardian_id=guardian.id,
        body={"phoneRaw": None, "phoneE164": "+61498765432", "firstName": None, "first_name": "Lan", "relationship": None},
    )

    assert updated.phone_e164 == "+61498765432"
    assert updated.phone_raw == guardian.phone_raw
    assert updated.first_name == "Lan"
    assert updated.relationship == guardian.relationship


def test_update_guardian_rejects_bad_numbers(world):
    guardian = world.guardians.add()

    with pytest.raises(ValidationError, match="Invalid AU phone number in phoneRaw"):
        world.guardian_service.update_guardian(actor_id=1, guardian_id=guardian.id, body={"phoneRaw": "12345"})
    with pytest.raises(ValidationError, match="phoneE164 must be E.164 format"):
        world.guardian_service.update_guardian(actor_id=1, guardian_id=guardian.id, body={"phone_e164": "0412"})


def test_update_guardian_relationship_also_updates_links(world):
    student = world.students.add()
    guardian = world.guardians.add()
    world.students.link_guardian(student_id=student.id, guardian_id=guardian.id, is_primary=True)

    updated = world.guardian_service.update_guardian(
        actor_id=1, guardian_id=guardian.id, body={"relationship": "AUNT", "active": False, "email": " "}
    )

    assert updated.relationship == "AUNT"
    assert updated.active is False
    assert updated.email is None
    assert world.students.links[(student.id, guardian.id)]["relationship_type"] == "AUNT"


def test_update_missing_guardian(world):
    with pytest.raises(NotFoundError, match="Guardian not found"):
        world.guardian_service.update_guardian(actor_id=1, guardian_id=5, body={"active": True})


def test_delete_guardian_removes_links(world):
    student = world.students.add()
    guardian = world.guardians.add()
    world.students.link_guardian(student_id=student.id, guardian_id=guardian.id, is_primary=True)

    world.guardian_service.delete_guardian(actor_id=1, guardian_id=guardian.id)

    assert world.guardians.items == {}
    assert world.students.links == {}
    assert world.audit_repo.actions() == ["GUARDIAN_DELETE"]
    with pytest.raises(NotFoundError):
        world.guardian_service.delete_guardian(actor_id=1, guardian_id=guardian.id)
