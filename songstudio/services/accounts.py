from __future__ import annotations

import datetime as dt
import logging
import re
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from songstudio.database import db
from songstudio.errors import Forbidden, NotFound, Unauthorized, ValidationFailed
from songstudio.models import Profile, UserRole
from songstudio.services import credits

log = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[A-Za-z0-9_.\-]{3,64}$")


def _check_username(username: str) -> str:
    username = (username or "").strip()
    if not username:
        raise ValidationFailed("Username is required")
    if not USERNAME_RE.match(username):
        raise ValidationFailed("Username must be 3-64 letters, digits, '.', '_' or '-'")
    exists = db.session.query(Profile.id).filter(Profile.username == username).first()
    if exists:
        raise ValidationFailed("Username already exists")
    return username


def _check_email(email: Optional[str]) -> Optional[str]:
    email = (email or "").strip().lower() or None
    if email and db.session.query(Profile.id).filter(Profile.email == email).first():
        raise ValidationFailed("Email already registered")
    return email


def signup(username: str, password: str, email: Optional[str] = None,
           full_name: Optional[str] = None, initial_credits: int = 0) -> Profile:
    """Alta pública: alumno, SIN aprobar, saldo por defecto."""
    username = _check_username(username)
    if not password or len(password) < 6:
        raise ValidationFailed("Password must have at least 6 characters")

    p = Profile(
        username=username,
        email=_check_email(email),
        full_name=(full_name or "").strip() or username,
        password_hash=generate_password_hash(password),
        role=UserRole.student.value,
        credits=max(0, int(initial_credits or 0)),
        approved=False,
    )
    db.session.add(p)
    db.session.flush()
    credits.grant_initial(p, p.credits, actor_id=None)
    db.session.commit()
    log.info("Signup %s (pendiente de aprobación)", username)
    return p


def create_student(actor: Profile, username: str, full_name: Optional[str] = None,
                   initial_credits=10, password: Optional[str] = None) -> tuple[Profile, str]:
    """
    Alta hecha por un profesor: queda aprobada de inmediato.
    La contraseña por defecto es el propio username; se devuelve para
    que el profesor se la pase al alumno.
    """
    if not actor.is_teacher:
        raise Forbidden("Only teachers can create users")

    username = _check_username(username)
    try:
        initial = int(initial_credits)
    except (TypeError, ValueError):
        raise ValidationFailed("initial_credits must be an integer")
    if initial < 0:
        raise ValidationFailed("initial_credits must be >= 0")

    password = password or username
    p = Profile(
        username=username,
        email=_check_email(f"{username}@student.local"),
        full_name=(full_name or "").strip() or username,
        password_hash=generate_password_hash(password),
        role=UserRole.student.value,
        credits=initial,
        approved=True,
    )
    db.session.add(p)
    db.session.flush()
    credits.grant_initial(p, initial, actor_id=actor.id)
    db.session.commit()
    log.info("Profesor %s creó alumno %s con %s créditos", actor.username, username, initial)
    return p, password


def create_teacher(username: str, password: str, email: Optional[str] = None) -> Profile:
    username = _check_username(username)
    p = Profile(
        username=username,
        email=_check_email(email),
        full_name=username,
        password_hash=generate_password_hash(password),
        role=UserRole.teacher.value,
        credits=0,
        approved=True,
    )
    db.session.add(p)
    db.session.commit()
    return p


def set_approval(actor: Profile, user_id: str, approved) -> Profile:
    if not actor.is_teacher:
        raise Forbidden("Only teachers can approve users")
    if not user_id or not isinstance(approved, bool):
        raise ValidationFailed("user_id and approved (boolean) are required")

    p = db.session.get(Profile, user_id)
    if not p:
        raise NotFound("User not found")
    p.approved = approved
    db.session.commit()
    log.info("Profesor %s %s a %s", actor.username, "aprobó" if approved else "desaprobó", p.username)
    return p


def authenticate(login: str, password: str) -> Profile:
    """login puede ser username o email."""
    login = (login or "").strip()
    if not login or not password:
        raise ValidationFailed("username and password are required")

    q = db.session.query(Profile)
    if "@" in login:
        p = q.filter(Profile.email == login.lower()).first()
    else:
        p = q.filter(Profile.username == login).first()

    if not p or not check_password_hash(p.password_hash, password):
        raise Unauthorized("Invalid credentials")
    if not p.approved:
        raise Forbidden("Your account has not been approved yet")

    p.last_login_at = dt.datetime.utcnow()
    db.session.commit()
    return p
