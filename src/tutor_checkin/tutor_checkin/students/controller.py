from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.http import json_body, pick
from ..common.serializers import student_json
from ..container import Container
from ..users.guards import build_guards, current_user_id


def register(app: Flask, container: Container) -> None:
    login_required, admin_required = build_guards(container.token_service)

    @app.get("/students", endpoint="students_list")
    @login_required
    def list_students():
        items = container.student_service.list_students(
            search=request.args.get("search", ""),
            status=request.args.get("status", ""),
            id=request.args.get("id"),
            ids=request.args.get("ids"),
            limit=request.args.get("limit"),
            offset=request.args.get("offset"),
        )
        return jsonify({"items": [student_json(s) for s in items]})

    @app.post("/students", endpoint="students_create")
    @admin_required
    def create_student():
        body = json_body()
        student = container.student_service.create_student(
            actor_id=current_user_id(),
            first_name=pick(body, "firstName", "first_name"),
            last_name=pick(body, "lastName", "last_name"),
            external_id=pick(body, "externalId", "external_id"),
            dob=body.get("dob"),
            status=body.get("status") or "ACTIVE",
            can_leave_alone=pick(body, "canLeaveAlone", "can_leave_alone", default=False),
            notes=body.get("notes"),
        )
        return jsonify(student_json(student)), 201

    @app.patch("/students/<int:student_id>", endpoint="students_update")
    @admin_required
    def update_student(student_id: int):
        student = container.student_service.update_student(
            actor_id=current_user_id(),
            student_id=student_id,
            body=json_body(),
        )
        return jsonify(student_json(student))

    @app.post("/students/<int:student_id>/guardians/<int:guardian_id>", endpoint="students_link_guardian")
    @admin_required
    def link_guardian(student_id: int, guardian_id: int):
        container.student_service.link_guardian(
            actor_id=current_user_id(),
            student_id=student_id,
            guardian_id=guardian_id,
            is_primary=pick(json_body(), "isPrimary", "is_primary", default=False),
        )
        return jsonify({"ok": True})

    @app.delete("/students/<int:student_id>/guardians/<int:guardian_id>", endpoint="students_unlink_guardian")
    @admin_required
    def unlink_guardian(student_id: int, guardian_id: int):
        container.student_service.unlink_guardian(
            actor_id=current_user_id(),
            student_id=student_id,
            guardian_id=guardian_id,
        )
        return jsonify({"ok": True})

    @app.delete("/students/<int:student_id>", endpoint="students_delete")
    @admin_required
    def delete_student(student_id: int):
        deleted = container.student_service.delete_student(actor_id=current_user_id(), student_id=student_id)
        return jsonify({"ok": True, "deletedStudentId": student_id, "deletedGuardianIds": deleted})
