# songstudio/models.py
from __future__ import annotations

import datetime as dt
import uuid
from enum import Enum

from songstudio.database import db


def utcnow():
    return dt.datetime.utcnow()


def gen_id() -> str:
    """Genera un ID único de 32 caracteres hex."""
    return uuid.uuid4().hex


# ---------- Enums ----------
class UserRole(str, Enum):
    teacher = "teacher"
    student = "student"


class SongStatus(str, Enum):
    pending = "pending"
    generating = "generating"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SongStatus.completed, SongStatus.failed)


class SongType(str, Enum):
    original = "original"
    cover = "cover"


class TransactionType(str, Enum):
    add = "add"
    deduct = "deduct"


# ---------------------------------------------------------
# CUENTAS (profesores y alumnos)
# ---------------------------------------------------------
class Profile(db.Model):
    __tablename__ = "profiles"
    __table_args__ = (
        db.CheckConstraint("credits >= 0", name="credits_non_negative"),
    )

    id = db.Column(db.String(32), primary_key=True, default=gen_id)

    email = db.Column(db.String(255), unique=True, nullable=True, index=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(255), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default=UserRole.student.value)
    credits = db.Column(db.Integer, nullable=False, default=0)
    approved = db.Column(db.Boolean, nullable=False, default=False)

    last_login_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    songs = db.relationship("Song", back_populates="owner", lazy="dynamic")

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.teacher.value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "full_name": self.full_name,
            "role": self.role,
            "credits": int(self.credits or 0),
            "approved": bool(self.approved),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Profile id={self.id} username={self.username} role={self.role} credits={self.credits}>"


# ---------------------------------------------------------
# JOBS DE GENERACIÓN (canciones originales y covers)
# ---------------------------------------------------------
class Song(db.Model):
    __tablename__ = "songs"

    id = db.Column(db.String(32), primary_key=True, default=gen_id)
    user_id = db.Column(db.String(32), db.ForeignKey("profiles.id"), nullable=False, index=True)
    owner = db.relationship("Profile", back_populates="songs")

    title = db.Column(db.String(255), nullable=False, default="")
    lyrics = db.Column(db.Text, nullable=False, default="")
    style = db.Column(db.String(512), nullable=False, default="")
    type = db.Column(db.String(16), nullable=False, default=SongType.original.value)

    # opciones con las que se envió
    model = db.Column(db.String(32), nullable=True)
    instrumental = db.Column(db.Boolean, nullable=False, default=False)
    source_audio_url = db.Column(db.String(1024), nullable=True)
    source_youtube_url = db.Column(db.String(1024), nullable=True)

    # id de tarea del proveedor: sólo existe si el envío fue aceptado
    task_id = db.Column(db.String(128), nullable=True, unique=True, index=True)

    status = db.Column(db.String(32), nullable=False, default=SongStatus.pending.value, index=True)
    error_message = db.Column(db.Text, nullable=True)

    # resultado: hasta dos variantes
    audio_url = db.Column(db.String(1024), nullable=True)
    audio_url_2 = db.Column(db.String(1024), nullable=True)
    duration = db.Column(db.Integer, nullable=True)

    credits_used = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self, full: bool = True) -> dict:
        """
        full=True => incluye letra
        """
        base = {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "style": self.style,
            "type": self.type,
            "model": self.model,
            "instrumental": bool(self.instrumental),
            "task_id": self.task_id,
            "status": self.status,
            "error_message": self.error_message,
            "audio_url": self.audio_url,
            "audio_url_2": self.audio_url_2,
            "duration": self.duration,
            "credits_used": int(self.credits_used or 0),
            "source_youtube_url": self.source_youtube_url,
            "created_at": (self.created_at.isoformat() if self.created_at else None),
            "updated_at": (self.updated_at.isoformat() if self.updated_at else None),
        }
        if full:
            base["lyrics"] = self.lyrics
        return base

    def __repr__(self) -> str:
        return f"<Song id={self.id} user={self.user_id} task={self.task_id} status={self.status}>"


# ---------------------------------------------------------
# LEDGER DE CRÉDITOS (append-only)
# ---------------------------------------------------------
class CreditTransaction(db.Model):
    __tablename__ = "credit_transactions"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.String(32), db.ForeignKey("profiles.id"), nullable=False, index=True)

    amount = db.Column(db.Integer, nullable=False)  # con signo
    type = db.Column(db.String(16), nullable=False)  # 'add' | 'deduct'
    reason = db.Column(db.String(255), nullable=False, default="")

    # sin FK: el historial sobrevive al borrado de la canción
    related_song_id = db.Column(db.String(32), nullable=True, index=True)
    created_by = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount": self.amount,
            "type": self.type,
            "reason": self.reason,
            "related_song_id": self.related_song_id,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() + "Z" if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<CreditTransaction id={self.id} user={self.user_id} amount={self.amount} song={self.related_song_id}>"


# ---------------------------------------------------------
# SETTINGS editables por el profesor
# ---------------------------------------------------------
class Setting(db.Model):
    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    key = db.Column(db.String(64), unique=True, nullable=False, index=True)
    value = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Setting key={self.key}>"
