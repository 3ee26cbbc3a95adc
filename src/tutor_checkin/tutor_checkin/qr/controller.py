from __future__ import annotations

from flask import Flask, Response, jsonify

from ..common.http import json_body
from ..container import Container
from ..users.guards import build_guards, current_user_id


def register(app: Flask, container: Container) -> None:
    login_required, admin_required = build_guards(container.token_service)

    @app.post("/qr/generate", endpoint="qr_generate")
    @admin_required
    def generate():
        items = container.qr_service.generate(json_body().get("studentIds"), created_by=current_user_id())
        return jsonify({"items": items})

    @app.get("/qr/<int:student_id>.png", endpoint="qr_download")
    @login_required
    def download(student_id: int):
        data = container.qr_service.download(student_id, created_by=current_user_id())
        return Response(
            data,
            mimetype="image/png",
            headers={"Content-Disposition": f'attachment; filename="qr_{student_id}.png"'},
        )

    @app.post("/qr/cleanup", endpoint="qr_cleanup")
    @admin_required
    def cleanup():
        items = container.qr_service.cleanup(json_body().get("studentIds"))
        return jsonify({"items": items, "repoDir": container.qr_service.repo_dir})
