# songstudio/routes/auth.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request, session

from songstudio.database import db
from songstudio.models import Profile
from songstudio.services import accounts
from songstudio.utils_auth import get_request_user_id

bp = Blueprint("auth", __name__, url_prefix="/auth")


@bp.post("/signup")
def signup():
    data = request.get_json(silent=True) or request.form or {}
    p = accounts.signup(
        username=data.get("username") or "",
        password=data.get("password") or "",
        email=data.get("email"),
        full_name=data.get("full_name") or data.get("fullName"),
        initial_credits=current_app.config.get("DEFAULT_SIGNUP_CREDITS", 0),
    )
    # la cuenta nace sin aprobar: no se abre sesión
    return jsonify(ok=True, user=p.to_dict(), message="Account created; a teacher must approve it"), 201


@bp.post("/login")
def login():
    data = request.get_json(silent=True) or request.form or {}
    login_name = data.get("username") or data.get("email") or ""
    p = accounts.authenticate(login_name, data.get("password") or "")

    session.clear()
    session["user_id"] = p.id
    return jsonify(ok=True, user=p.to_dict(), redirect="/admin" if p.is_teacher else "/student")


@bp.get("/me")
def me():
    uid = get_request_user_id()
    if not uid:
        return jsonify(authenticated=False)
    p = db.session.get(Profile, uid)
    if not p or not p.approved:
        return jsonify(authenticated=False)
    return jsonify(authenticated=True, user=p.to_dict())


@bp.route("/logout", methods=["POST", "GET"])
def logout():
    session.clear()
    return jsonify(ok=True)
