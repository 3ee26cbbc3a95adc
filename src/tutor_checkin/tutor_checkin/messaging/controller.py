from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.http import json_body
from ..common.serializers import message_json, template_json
from ..container import Container
from ..users.guards import build_guards


def register(app: Flask, container: Container) -> None:
    login_required, admin_required = build_guards(container.token_service)

    @app.get("/templates", endpoint="templates_list")
    @login_required
    def list_templates():
        return jsonify({"items": [template_json(t) for t in container.template_service.list_templates()]})

    @app.patch("/templates/<key>", endpoint="templates_update")
    @admin_required
    def update_template(key: str):
        t = container.template_service.update_template(key, json_body().get("text"))
        return jsonify(template_json(t))

    @app.get("/messages", endpoint="messages_list")
    @login_required
    def list_messages():
        items = container.message_service.list_messages(
            student_id=request.args.get("studentId"),
            limit=request.args.get("limit"),
            offset=request.args.get("offset"),
            include=request.args.get("include"),
        )
        return jsonify({"items": [message_json(m) for m in items]})
