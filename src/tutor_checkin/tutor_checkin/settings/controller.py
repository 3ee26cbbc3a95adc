from __future__ import annotations

from flask import Flask, Response, jsonify, request

from ..common.http import json_body
from ..container import Container
from ..users.guards import build_guards, current_user_id
from .service import ExportFile


def _download(export: ExportFile) -> Response:
    return Response(
        export.content,
        mimetype=export.mimetype,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


def register(app: Flask, container: Container) -> None:
    login_required, admin_required = build_guards(container.token_service)

    @app.get("/settings", endpoint="settings_get")
    @login_required
    def get_settings():
        return jsonify(container.settings_service.get().to_json())

    @app.patch("/settings", endpoint="settings_update")
    @admin_required
    def update_settings():
        updated = container.settings_service.update(actor_id=current_user_id(), body=json_body())
        return jsonify(updated.to_json())

    @app.post("/settings/test-sms", endpoint="settings_test_sms")
    @admin_required
    def test_sms():
        return jsonify(container.settings_service.send_test_sms(actor_id=current_user_id(), to=json_body().get("to")))

    @app.get("/settings/health", endpoint="settings_health")
    @login_required
    def health():
        return jsonify(container.settings_service.health())

    @app.get("/settings/export/scans", endpoint="settings_export_scans")
    @admin_required
    def export_scans():
        return _download(
            container.settings_service.export_scans(
                start=request.args.get("from"),
                end=request.args.get("to"),
                fmt=request.args.get("format", "csv"),
            )
        )

    @app.get("/settings/export/messages", endpoint="settings_export_messages")
    @admin_required
    def export_messages():
        return _download(
            container.settings_service.export_messages(
                start=request.args.get("from"),
                end=request.args.get("to"),
                fmt=request.args.get("format", "csv"),
            )
        )

    @app.post("/settings/purge-old", endpoint="settings_purge_old")
    @admin_required
    def purge_old():
        return jsonify(container.settings_service.purge_old(actor_id=current_user_id()))
