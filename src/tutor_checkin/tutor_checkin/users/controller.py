from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import to_iso
from ..common.http import json_body
from ..container import Container
from .guards import build_guards, current_user, current_user_id
from .model import User


def _user_summary(u: User) -> dict:
    return {"id": u.id, "email": u.email, "role": u.role.value}


def _user_json(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "role": u.role.value,
        "active": u.active,
        "last_login_at": to_iso(u.last_login_at) or None,
        "created_at": to_iso(u.created_at) or None,
        "updated_at": to_iso(u.updated_at) or None,
    }


def register(app: Flask, container: Container) -> None:
    login_required, admin_required = build_guards(container.token_service)

    @app.post("/auth/login", endpoint="auth_login")
    def login():
        body = json_body()
        result = container.auth_service.login(
            body.get("email"),
            body.get("password"),
            remember=bool(body.get("remember")),
        )
        return jsonify({"token": result.token, "user": _user_summary(result.user)})

    @app.get("/auth/me", endpoint="auth_me")
    @login_required
    def me():
        return jsonify({"user": _user_summary(container.auth_service.me(current_user()))})

    @app.patch("/auth/me", endpoint="auth_update_me")
    @login_required
    def update_me():
        body = json_body()
        result = container.auth_service.update_me(
            current_user(),
            email=body.get("email"),
            password=body.get("password"),
        )
        return jsonify({"user": _user_summary(result.user), "token": result.token})

    @app.post("/auth/refresh", endpoint="auth_refresh")
    @login_required
    def refresh():
        result = container.auth_service.refresh(current_user())
        return jsonify({"token": result.token, "user": _user_summary(result.user)})

    @app.get("/users", endpoint="users_list")
    @admin_required
    def list_users():
        items = container.user_service.list_users(
            limit=request.args.get("limit"),
            offset=request.args.get("offset"),
            search=request.args.get("search", ""),
            role=request.args.get("role", ""),
            active=request.args.get("active", ""),
        )
        return jsonify({"items": [_user_json(u) for u in items]})

    @app.post("/users", endpoint="users_create")
    @admin_required
    def create_user():
        body = json_body()
        user = container.user_service.create_user(
            actor_id=current_user_id(),
            email=body.get("email"),
            password=body.get("password"),
            role=body.get("role"),
            active=body.get("active", True),
        )
        return jsonify(_user_json(user)), 201

    @app.patch("/users/<int:user_id>", endpoint="users_update")
    @admin_required
    def update_user(user_id: int):
        body = json_body()
        changes = {k: body[k] for k in ("email", "role", "active", "password") if k in body}
        user = container.user_service.update_user(actor_id=current_user_id(), user_id=user_id, changes=changes)
        return jsonify(_user_json(user))

    @app.delete("/users/<int:user_id>", endpoint="users_delete")
    @admin_required
    def delete_user(user_id: int):
        container.user_service.delete_user(actor_id=current_user_id(), user_id=user_id)
        return "", 204
