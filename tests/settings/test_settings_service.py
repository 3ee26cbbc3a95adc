from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from src.tutor_checkin.tutor_checkin.core.enums import ScanType
from src.tutor_checkin.tutor_checkin.core.exceptions import ExternalServiceError, ValidationError


def test_defaults_when_nothing_is_stored(world):
    org = world.settings_service.get()

    assert org.to_json() == {
        "centreName": "Kumon North Hobart",
        "timezone": "Australia/Hobart",
        "smsPolicy": {"sendOnCheckIn": True, "sendOnCheckOut": True},
    }
    assert org.sms_enabled_for(ScanType.CHECK_OUT)


def test_stored_policy_missing_a_flag_means_off(world):
    world.settings_repo.values["sms.policy"] = {"sendOnCheckIn": True}

    org = world.settings_service.get()

    assert org.send_on_check_in is True
    assert org.send_on_check_out is False


def test_update_merges_and_persists_both_keys(world):
    updated = world.settings_service.update(
        actor_id=1, body={"centreName": "  Kumon Sandy Bay ", "smsPolicy": {"sendOnCheckOut": False}}
    )

    assert updated.centre_name == "Kumon Sandy Bay"
    assert updated.timezone == "Australia/Hobart"
    assert world.settings_repo.values == {
        "center.profile": {"centreName": "Kumon Sandy Bay", "timezone": "Australia/Hobart"},
        "sms.policy": {"sendOnCheckIn": True, "sendOnCheckOut": False},
    }
    assert world.audit_repo.entries[-1]["action"] == "SETTINGS_UPDATE"
    assert world.audit_repo.entries[-1]["details"] == {"fields": ["centreName", "smsPolicy"]}


def test_update_timezone(world):
    world.settings_service.update(actor_id=1, body={"timezone": "Australia/Perth"})
    assert world.settings_service.get().timezone == "Australia/Perth"


@pytest.mark.parametrize(
    "body,message",
    [
        ({}, "No fields to update"),
        ({"centreName": "   "}, "centreName cannot be empty"),
        ({"timezone": ""}, "timezone cannot be empty"),
        ({"timezone": "Hobart"}, "timezone must be a valid IANA timezone"),
    ],
)
def test_update_validation(world, body, message):
    with pytest.raises(ValidationError, match=message):
        world.settings_service.update(actor_id=1, body=body)
    assert world.settings_repo.values == {}


def test_send_test_sms(world, fixed_now):
    result = world.settings_service.send_test_sms(actor_id=1, to=" +61412345678 ", now=fixed_now)

    assert world.sms.sent == [
        {
            "to": "+61412345678",
            "body": "Test SMS from Kumon North Hobart - settings verification (15 Aug 2025, 07:04 pm)",
        }
    ]
    assert result == {
        "ok": True,
        "result": {"messages": [{"to": "+61412345678", "message_id": "msg-1", "status": "SUCCESS"}]},
    }
    assert world.audit_repo.entries[-1]["details"] == {"to": "+61412345678", "sent": 1}


def test_send_test_sms_rejects_bad_number(world):
    for bad in ("", "12345", "+61 412 345 678", "phone"):
        with pytest.raises(ValidationError, match="Enter a valid E.164 phone number"):
            world.settings_service.send_test_sms(actor_id=1, to=bad)
    assert world.sms.sent == []


def test_send_test_sms_propagates_gateway_errors(world, fixed_now):
    world.sms.fail_with()

    with pytest.raises(ExternalServiceError, match="ClickSend error: Unauthorized"):
        world.settings_service.send_test_sms(actor_id=1, to="+61412345678", now=fixed_now)
    assert world.audit_repo.entries == []


def test_health(world):
    assert world.settings_service.health() == {
        "dbOk": True,
        "smsOk": True,
        "serverTime": "2025-08-15T09:04:00Z",
    }

    world.sms.configured = False
    assert world.settings_service.health()["smsOk"] is False


def test_health_when_database_is_down(world):
    world.settings_repo.down = True
    assert world.settings_service.health() == {"dbOk": False, "smsOk": False, "serverTime": None}


def test_export_scans_csv(world):
    world.maintenance.scan_rows = [
        {
            "id": 1,
            "student_id": 3,
            "first_name": "Ava",
            "last_name": "Nguyen",
            "type": "CHECK_IN",
            "scanned_by": None,
            "scanned_at": datetime(2025, 8, 15, 9, 4, tzinfo=timezone.utc),
            "was_duplicate": False,
        }
    ]

    export = world.settings_service.export_scans(start="2025-08-01", end="2025-08-31")

    assert export.filename == "scans_export.csv"
    assert export.mimetype == "text/csv"
    assert export.content.decode("utf-8") == (
        "id,student_id,first_name,last_name,type,scanned_by,scanned_at,was_duplicate\n"
        "1,3,Ava,Nguyen,CHECK_IN,,2025-08-15T09:04:00Z,false\n"
    )
    _, lo, hi = world.maintenance.export_calls[0]
    assert lo == datetime(2025, 8, 1, tzinfo=timezone.utc)
    assert hi.date().isoformat() == "2025-08-31"


def test_export_messages_json(world):
    world.maintenance.message_rows = [
        {
            "message_id": 7,
            "body_rendered": "Ava, has checked in",
            "created_at": datetime(2025, 8, 15, 9, 4, tzinfo=timezone.utc),
            "recipient": "+61412345678",
        }
    ]

    export = world.settings_service.export_messages(fmt="JSON")

    assert export.filename == "messages_export.json"
    assert export.mimetype == "application/json"
    assert json.loads(export.content) == {
        "items": [
            {
                "message_id": 7,
                "body_rendered": "Ava, has checked in",
                "created_at": "2025-08-15T09:04:00Z",
                "recipient": "+61412345678",
            }
        ]
    }
    assert world.maintenance.export_calls == [("messages", None, None)]


def test_export_quotes_commas_and_keeps_header_when_empty(world):
    assert world.settings_service.export_messages().content.decode("utf-8").count("\n") == 1

    world.maintenance.message_rows = [{"message_id": 1, "body_rendered": "Hi, Ava"}]
    body = world.settings_service.export_messages().content.decode("utf-8")
    assert '"Hi, Ava"' in body


def test_export_rejects_bad_dates(world):
    with pytest.raises(ValidationError, match="from and to must be YYYY-MM-DD"):
        world.settings_service.export_scans(start="15/08/2025")


def test_purge_old_uses_twelve_month_cutoff(world, fixed_now):
    result = world.settings_service.purge_old(actor_id=1, now=fixed_now)

    assert result == {"cutoffMonths": 12, "deleted": {"recipients": 3, "messages": 2, "scans": 5}}
    assert world.maintenance.purged_before == datetime(2024, 8, 15, 9, 4, tzinfo=timezone.utc)
    assert world.audit_repo.entries[-1]["action"] == "PURGE_OLD"
    assert world.audit_repo.entries[-1]["entity"] == "settings"
