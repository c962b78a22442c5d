# songstudio/routes/admin.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from songstudio.database import db
from songstudio.models import CreditTransaction, Profile
from songstudio.services import accounts, credits
from songstudio.services.settings import (
    SECRET_KEYS,
    SETTING_DEFAULTS,
    SettingsResolver,
    mask_secret,
    upsert_settings,
)
from songstudio.utils_auth import current_profile, login_required, teacher_required

bp = Blueprint("admin", __name__)


# ---------------------------------------------------------
# Usuarios
# ---------------------------------------------------------
@bp.get("/api/admin/users")
@teacher_required
def list_users():
    rows = db.session.query(Profile).order_by(Profile.created_at.desc()).all()
    return jsonify({"ok": True, "users": [p.to_dict() for p in rows]})


@bp.post("/api/admin/users/create")
@teacher_required
def create_user():
    data = request.get_json(silent=True) or {}
    p, password = accounts.create_student(
        current_profile(),
        username=data.get("username") or "",
        full_name=data.get("full_name"),
        initial_credits=data.get("initial_credits", current_app.config["TEACHER_CREATED_CREDITS"]),
        password=data.get("password"),
    )
    user = p.to_dict()
    # el profesor se la entrega al alumno
    user["password"] = password
    return jsonify({"ok": True, "user": user}), 201


@bp.post("/api/admin/users/approve")
@teacher_required
def approve_user():
    data = request.get_json(silent=True) or {}
    p = accounts.set_approval(current_profile(), data.get("user_id"), data.get("approved"))
    msg = "User approved" if p.approved else "User approval revoked"
    return jsonify({"ok": True, "message": msg, "user": p.to_dict()})


# ---------------------------------------------------------
# Créditos
# ---------------------------------------------------------
@bp.post("/api/credits/add")
@login_required
def add_credits():
    data = request.get_json(silent=True) or {}
    new_balance = credits.add_credits(
        data.get("studentId") or data.get("student_id"),
        data.get("amount"),
        data.get("reason"),
        current_profile(),
    )
    return jsonify({"ok": True, "newBalance": new_balance})


@bp.get("/api/credits/history")
@login_required
def credit_history():
    me = current_profile()
    rows = (
        db.session.query(CreditTransaction)
        .filter(CreditTransaction.user_id == me.id)
        .order_by(CreditTransaction.id.desc())
        .limit(200)
        .all()
    )
    return jsonify({
        "ok": True,
        "credits": int(me.credits or 0),
        "transactions": [t.to_dict() for t in rows],
    })


# ---------------------------------------------------------
# Settings del portal
# ---------------------------------------------------------
@bp.get("/api/admin/settings")
@teacher_required
def get_settings():
    # mismo orden que usa la generación: tabla y, si no hay fila, entorno
    resolved = SettingsResolver(current_app.config).resolve(SETTING_DEFAULTS.keys())
    out, sources = {}, {}
    for key, (value, source) in resolved.items():
        out[key] = mask_secret(value) if key in SECRET_KEYS else (value or "")
        sources[key] = source
    return jsonify({"ok": True, "settings": out, "sources": sources})


@bp.put("/api/admin/settings")
@teacher_required
def put_settings():
    data = request.get_json(silent=True) or {}
    if "credits_per_song" in data:
        try:
            price = int(data["credits_per_song"])
        except (TypeError, ValueError):
            price = -1
        if price < 0:
            return jsonify({"ok": False, "error": "VALIDATION_FAILED",
                            "message": "credits_per_song must be an integer >= 0"}), 400
        data["credits_per_song"] = price
    upsert_settings(data, current_profile().id)
    return jsonify({"ok": True})
