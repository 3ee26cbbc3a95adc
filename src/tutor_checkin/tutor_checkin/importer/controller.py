from __future__ import annotations

from flask import Flask, jsonify, request

from ..container import Container
from ..users.guards import build_guards, current_user_id


def register(app: Flask, container: Container) -> None:
    _, admin_required = build_guards(container.token_service)

    @app.post("/import/csv", endpoint="import_csv")
    @admin_required
    def import_csv():
        upload = request.files.get("file")
        data = upload.read() if upload else None
        result = container.import_service.import_csv(data, created_by=current_user_id())
        return jsonify(result.to_json())
