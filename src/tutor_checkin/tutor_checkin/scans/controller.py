from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.http import json_body
from ..container import Container
from ..users.guards import build_guards, current_user_id


def register(app: Flask, container: Container) -> None:
    login_required, _ = build_guards(container.token_service)

    @app.post("/scan/preview", endpoint="scan_preview")
    @login_required
    def preview():
        body = json_body()
        return jsonify(
            container.scan_service.preview(
                qr_code=body.get("qrCode"),
                type=body.get("type"),
                headcount_only=body.get("headcountOnly"),
            )
        )

    @app.post("/scan", endpoint="scan_create")
    @login_required
    def scan():
        body = json_body()
        return jsonify(
            container.scan_service.handle_scan(
                qr_code=body.get("qrCode"),
                type=body.get("type"),
                message_override=body.get("messageOverride"),
                recheck=body.get("recheck"),
                headcount_only=body.get("headcountOnly"),
                scanned_by=current_user_id(),
            )
        )

    @app.get("/scan/stats/today", endpoint="scan_stats_today")
    @login_required
    def stats_today():
        return jsonify(container.scan_service.today_stats())

    @app.get("/scan/recent", endpoint="scan_recent")
    @login_required
    def recent():
        return jsonify({"items": container.scan_service.recent(request.args.get("limit"))})
