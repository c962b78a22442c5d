# songstudio/services/whisper.py
# -*- coding: utf-8 -*-
"""
Wrapper de transcripción de letras.

Función pública:
    transcribe_url(audio_url, api_key, model) -> str

Descarga el audio con httpx y lo manda a Whisper (OpenAI).
"""

from __future__ import annotations

import io
import logging
from typing import Optional

import httpx
from openai import OpenAI, OpenAIError

from songstudio.errors import ConfigurationMissing, ToolFailed, ValidationFailed

log = logging.getLogger(__name__)


def _filename_for(url: str) -> str:
    # el SDK usa el nombre para detectar el formato
    lowered = url.lower()
    for ext in (".wav", ".m4a", ".mp4"):
        if ext in lowered:
            return "audio" + ext
    return "audio.mp3"


def download_audio(audio_url: str, transport: Optional[httpx.BaseTransport] = None) -> bytes:
    try:
        with httpx.Client(timeout=120, follow_redirects=True, transport=transport) as client:
            resp = client.get(audio_url)
    except httpx.HTTPError as e:
        raise ToolFailed(f"Failed to download audio file: {e}")
    if resp.status_code >= 400:
        raise ToolFailed("Failed to download audio file")
    return resp.content


def transcribe_url(audio_url: str, api_key: Optional[str], model: str = "whisper-1") -> str:
    if not audio_url:
        raise ValidationFailed("audioUrl is required")
    if not api_key:
        raise ConfigurationMissing("OpenAI API key not configured")

    data = download_audio(audio_url)
    memfile = io.BytesIO(data)
    memfile.name = _filename_for(audio_url)

    client = OpenAI(api_key=api_key)
    try:
        resp = client.audio.transcriptions.create(model=model, file=memfile)
    except OpenAIError as e:
        log.error("[Transcribe] Whisper falló: %s", e)
        raise ToolFailed(f"Failed to transcribe audio: {e}")

    lyrics = (getattr(resp, "text", "") or "").strip()
    if not lyrics:
        raise ToolFailed("Failed to transcribe audio")
    log.info("[Transcribe] OK, %s caracteres", len(lyrics))
    return lyrics
