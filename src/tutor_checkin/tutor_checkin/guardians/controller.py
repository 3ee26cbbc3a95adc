from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.http import json_body, pick
from ..common.serializers import guardian_json, student_json
from ..container import Container
from ..users.guards import build_guards, current_user_id


def register(app: Flask, container: Container) -> None:
    login_required, admin_required = build_guards(container.token_service)

    @app.get("/guardians/students", endpoint="guardians_students_bulk")
    @login_required
    def students_by_guardian_ids():
        grouped = container.guardian_service.students_by_guardian_ids(request.args.get("ids", ""))
        return jsonify({"items": {str(gid): [student_json(s) for s in items] for gid, items in grouped.items()}})

    @app.get("/guardians/<int:guardian_id>/students", endpoint="guardians_students")
    @login_required
    def students_for_guardian(guardian_id: int):
        items = container.guardian_service.students_for_guardian(guardian_id)
        return jsonify({"items": [student_json(s) for s in items]})

    @app.get("/guardians", endpoint="guardians_list")
    @login_required
    def list_guardians():
        items = container.guardian_service.list_guardians(
            student_id=request.args.get("studentId"),
            search=request.args.get("search", ""),
            relationship=request.args.get("relationship", ""),
            active=request.args.get("active", ""),
            phone_valid=request.args.get("phoneValid", ""),
            id=request.args.get("id"),
            ids=request.args.get("ids"),
            limit=request.args.get("limit"),
            offset=request.args.get("offset"),
        )
        return jsonify({"items": [guardian_json(g) for g in items]})

    @app.post("/guardians", endpoint="guardians_create")
    @admin_required
    def create_guardian():
        body = json_body()
        guardian = container.guardian_service.create_guardian(
            actor_id=current_user_id(),
            name=body.get("name"),
            first_name=pick(body, "firstName", "first_name"),
            last_name=pick(body, "lastName", "last_name"),
            relationship=body.get("relationship") or "GUARDIAN",
            phone=body.get("phone"),
        )
        return jsonify(guardian_json(guardian)), 201

    @app.patch("/guardians/<int:guardian_id>", endpoint="guardians_update")
    @admin_required
    def update_guardian(guardian_id: int):
        guardian = container.guardian_service.update_guardian(
            actor_id=current_user_id(),
            guardian_id=guardian_id,
            body=json_body(),
        )
        return jsonify(guardian_json(guardian))

    @app.delete("/guardians/<int:guardian_id>", endpoint="guardians_delete")
    @admin_required
    def delete_guardian(guardian_id: int):
        container.guardian_service.delete_guardian(actor_id=current_user_id(), guardian_id=guardian_id)
        return "", 204
