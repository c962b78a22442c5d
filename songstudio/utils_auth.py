# songstudio/utils_auth.py
from __future__ import annotations

from functools import wraps

from flask import session

from songstudio.database import db
from songstudio.errors import Forbidden, Unauthorized
from songstudio.models import Profile


def get_request_user_id() -> str | None:
    """user_id guardado en la sesión por /auth/login (o None)."""
    uid = session.get("user_id")
    return str(uid) if uid else None


def current_profile() -> Profile:
    """
    Perfil del usuario logueado. Lanza Unauthorized si no hay sesión
    o si la cuenta ya no existe / dejó de estar aprobada.
    """
    uid = get_request_user_id()
    if not uid:
        raise Unauthorized("Unauthorized")

    p = db.session.get(Profile, uid)
    if not p or not p.approved:
        session.clear()
        raise Unauthorized("Unauthorized")
    return p


def login_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        current_profile()
        return f(*args, **kwargs)

    return decorated


def teacher_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        if not current_profile().is_teacher:
            raise Forbidden("Only teachers can do this")
        return f(*args, **kwargs)

    return decorated
