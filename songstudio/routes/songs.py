# songstudio/routes/songs.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from songstudio.database import db
from songstudio.models import Song
from songstudio.services.settings import SettingsResolver
from songstudio.services.songs import SongLifecycle, SongRequest, delete_song
from songstudio.suno_client import SunoClient
from songstudio.utils_auth import current_profile, login_required

bp = Blueprint("songs", __name__)


def build_lifecycle() -> SongLifecycle:
    """Settings resueltos (DB > entorno) + cliente Suno con esa API key."""
    cfg = SettingsResolver(current_app.config).generation_config()
    client = SunoClient(
        cfg.suno_api_key,
        base_url=current_app.config.get("SUNO_BASE_URL", "https://api.kie.ai"),
        timeout=current_app.config.get("SUNO_TIMEOUT", 60),
    )
    return SongLifecycle(client, cfg)


# ---------------------------------------------------------
# POST /api/suno/generate   (canción original)
# ---------------------------------------------------------
@bp.post("/api/suno/generate")
@login_required
def generate_song():
    data = request.get_json(silent=True) or {}
    req = SongRequest.original_from_json(data)
    req.validate()

    result = build_lifecycle().submit(current_profile().id, req)
    return jsonify({"ok": True, **result})


# ---------------------------------------------------------
# POST /api/cover/generate
# ---------------------------------------------------------
@bp.post("/api/cover/generate")
@login_required
def generate_cover():
    data = request.get_json(silent=True) or {}
    req = SongRequest.cover_from_json(data)
    req.validate()

    current_app.logger.info("[Cover Generate] user=%s upload=%s", current_profile().id, req.upload_url)
    result = build_lifecycle().submit(current_profile().id, req)
    return jsonify({"ok": True, **result})


# ---------------------------------------------------------
# GET /api/suno/status/<task_id>   (poll del frontend)
# ---------------------------------------------------------
@bp.get("/api/suno/status/<task_id>")
@login_required
def song_status(task_id: str):
    result = build_lifecycle().poll(task_id, current_profile().id)
    return jsonify({"ok": True, **result})


# ---------------------------------------------------------
# Callbacks del proveedor (sin sesión). Sólo disparan un poll del task.
# ---------------------------------------------------------
@bp.post("/api/suno/callback")
@bp.post("/api/cover/callback")
def provider_callback():
    payload = request.get_json(silent=True) or {}
    result = build_lifecycle().apply_callback(payload)
    return jsonify({"ok": True, "applied": result is not None})


# ---------------------------------------------------------
# Canciones del usuario
# ---------------------------------------------------------
@bp.get("/api/songs")
@login_required
def list_songs():
    rows = (
        db.session.query(Song)
        .filter(Song.user_id == current_profile().id)
        .order_by(Song.created_at.desc())
        .limit(200)
        .all()
    )
    return jsonify({"ok": True, "songs": [s.to_dict(full=False) for s in rows]})


@bp.get("/api/songs/<song_id>")
@login_required
def get_song(song_id: str):
    song = (
        db.session.query(Song)
        .filter(Song.id == song_id, Song.user_id == current_profile().id)
        .first()
    )
    if not song:
        return jsonify({"ok": False, "error": "NOT_FOUND", "message": "Song not found"}), 404
    return jsonify({"ok": True, "song": song.to_dict()})


@bp.delete("/api/songs/<song_id>")
@login_required
def remove_song(song_id: str):
    delete_song(song_id, current_profile().id)
    return jsonify({"ok": True})
