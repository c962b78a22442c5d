# songstudio/routes/ai.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from songstudio.services.lyrics import generate_lyrics
from songstudio.services.settings import SettingsResolver
from songstudio.services.whisper import transcribe_url
from songstudio.utils_auth import login_required

bp = Blueprint("ai", __name__, url_prefix="/api/ai")


@bp.post("/generate-lyrics")
@login_required
def generate_lyrics_route():
    data = request.get_json(silent=True) or {}
    s = SettingsResolver(current_app.config).get_many(["ai_api_key", "ai_provider", "ai_model"])

    result = generate_lyrics(
        data.get("theme") or "",
        provider=s.get("ai_provider") or "openai",
        api_key=s.get("ai_api_key"),
        model=s.get("ai_model") or "gpt-4o-mini",
    )
    return jsonify({"ok": True, **result})


@bp.post("/transcribe")
@login_required
def transcribe_route():
    data = request.get_json(silent=True) or {}
    cfg = current_app.config
    lyrics = transcribe_url(
        data.get("audioUrl") or "",
        api_key=cfg.get("OPENAI_API_KEY"),
        model=cfg.get("OPENAI_TRANSCRIBE_MODEL", "whisper-1"),
    )
    return jsonify({"ok": True, "lyrics": lyrics})
