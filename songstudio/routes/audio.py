# songstudio/routes/audio.py
from __future__ import annotations

import os
import time

from flask import Blueprint, current_app, jsonify, request, send_from_directory

from songstudio import storage
from songstudio.errors import ValidationFailed
from songstudio.services import audio
from songstudio.utils_auth import current_profile, login_required

bp = Blueprint("audio", __name__)


def _uploaded_audio():
    """Lee y valida el archivo multipart 'file'. Devuelve (bytes, ext, nombre, mimetype)."""
    up = request.files.get("file")
    if not up:
        raise ValidationFailed("No file provided")

    data = up.read()
    filename = (up.filename or "").strip() or "audio.mp3"
    audio.validate_audio_upload(filename, up.mimetype, len(data), current_app.config["MAX_UPLOAD_MB"])
    ext = os.path.splitext(filename)[1].lstrip(".").lower() or "mp3"
    return data, ext, filename, up.mimetype


# ---------------------------------------------------------
# POST /api/cover/upload  -> URL pública para upload-cover
# ---------------------------------------------------------
@bp.post("/api/cover/upload")
@login_required
def cover_upload():
    data, ext, original_name, mimetype = _uploaded_audio()
    uid = current_profile().id

    filename = f"cover-{uid}-{int(time.time() * 1000)}.{ext}"
    url = storage.save_bytes(data, filename, mimetype or "audio/mpeg")
    current_app.logger.info("[Upload] %s (%s bytes) -> %s", original_name, len(data), url)
    return jsonify({"ok": True, "audioUrl": url, "filename": filename, "originalName": original_name})


# ---------------------------------------------------------
# POST /api/audio/process  (pitch / speed con ffmpeg)
# ---------------------------------------------------------
@bp.post("/api/audio/process")
@login_required
def process_audio():
    data, ext, original_name, _ = _uploaded_audio()
    try:
        speed = float(request.form.get("speed") or 1.0)
        pitch = int(request.form.get("pitch") or 0)
    except ValueError:
        raise ValidationFailed("speed must be a number and pitch an integer")

    current_app.logger.info("[AudioProcess] %s speed=%s pitch=%s", original_name, speed, pitch)
    out = audio.process_audio(data, ext, current_app.config["FFMPEG_BIN"], pitch=pitch, speed=speed)

    filename = f"processed-{current_profile().id}-{int(time.time() * 1000)}.mp3"
    url = storage.save_bytes(out, filename, "audio/mpeg")
    return jsonify({"ok": True, "audioUrl": url})


# ---------------------------------------------------------
# POST /api/youtube/download  (fuente para covers)
# ---------------------------------------------------------
@bp.post("/api/youtube/download")
@login_required
def youtube_download():
    payload = request.get_json(silent=True) or {}
    url = (payload.get("youtubeUrl") or "").strip()
    if not url:
        raise ValidationFailed("YouTube URL is required")
    try:
        pitch_shift = int(payload.get("pitchShift", 3))
    except (TypeError, ValueError):
        raise ValidationFailed("pitchShift must be an integer")

    cfg = current_app.config
    data, info = audio.youtube_to_cover_source(
        url, cfg["FFMPEG_BIN"], cfg["YOUTUBE_MAX_SECONDS"], pitch_shift=pitch_shift
    )
    filename = f"cover-{current_profile().id}-{int(time.time() * 1000)}.mp3"
    audio_url = storage.save_bytes(data, filename, "audio/mpeg")
    return jsonify({
        "ok": True,
        "audioUrl": audio_url,
        "filename": filename,
        "duration": int(info.get("duration") or 0),
        "title": info.get("title") or "",
    })


# ---------------------------------------------------------
# GET /media/<filename>  (sólo almacenamiento local)
# ---------------------------------------------------------
@bp.get("/media/<path:filename>")
def media(filename: str):
    return send_from_directory(storage.upload_folder(), filename)
