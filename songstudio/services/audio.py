# songstudio/services/audio.py
"""
Procesamiento de audio con ffmpeg (subproceso) y descarga de YouTube con yt-dlp.
"""
from __future__ import annotations

import logging
import os
import re
import subprocess
import tempfile
import uuid
from typing import Any, Dict, Optional, Tuple

import yt_dlp

from songstudio.errors import ToolFailed, ValidationFailed

log = logging.getLogger(__name__)

ALLOWED_MIME = {
    "audio/mpeg", "audio/mp3", "audio/wav", "audio/x-wav",
    "audio/m4a", "audio/mp4", "audio/x-m4a",
}
ALLOWED_EXT_RE = re.compile(r"\.(mp3|wav|m4a)$", re.IGNORECASE)

SAMPLE_RATE = 44100

YOUTUBE_RE = re.compile(
    r"^(https?://)?(www\.|m\.|music\.)?(youtube\.com/(watch\?v=|shorts/|embed/)|youtu\.be/)[\w\-]{6,}",
    re.IGNORECASE,
)


def validate_audio_upload(filename: str, mimetype: Optional[str], size: int, max_mb: int) -> None:
    if (mimetype or "") not in ALLOWED_MIME and not ALLOWED_EXT_RE.search(filename or ""):
        raise ValidationFailed("Invalid file: only MP3, WAV and M4A are supported")
    if size > max_mb * 1024 * 1024:
        raise ValidationFailed(f"File too large: max {max_mb}MB")


def pitch_speed_filter(pitch: int = 0, speed: float = 1.0) -> str:
    """
    asetrate sube/baja el tono (y la velocidad); el primer atempo corrige
    la velocidad y el segundo aplica la que pidió el usuario.
    """
    factor = 2 ** (pitch / 12.0)
    new_rate = int(round(SAMPLE_RATE * factor))
    tempo_correction = 1 / factor
    return f"asetrate={new_rate},atempo={tempo_correction:.4f},atempo={speed:.2f}"


def pitch_shift_filter(semitones: int) -> str:
    """Sólo asetrate + aresample: cambia tono y velocidad juntos (fuente de covers)."""
    ratio = 2 ** (semitones / 12.0)
    return f"asetrate={int(round(SAMPLE_RATE * ratio))},aresample={SAMPLE_RATE}"


def run_ffmpeg(ffmpeg_bin: str, input_path: str, output_path: str, audio_filter: str) -> None:
    cmd = [ffmpeg_bin, "-i", input_path, "-filter:a", audio_filter, "-y", output_path]
    try:
        subprocess.run(cmd, check=True, capture_output=True, text=True)
    except FileNotFoundError:
        raise ToolFailed("FFmpeg not found")
    except subprocess.CalledProcessError as e:
        log.error("[FFmpeg] %s", (e.stderr or "")[-2000:])
        raise ToolFailed(f"FFmpeg exited with code {e.returncode}")


def process_audio(data: bytes, ext: str, ffmpeg_bin: str, pitch: int = 0, speed: float = 1.0) -> bytes:
    """Aplica pitch (semitonos) y speed; devuelve el mp3 resultante."""
    if not 0.5 <= speed <= 2.0:
        raise ValidationFailed("speed must be between 0.5 and 2.0")
    if not -12 <= pitch <= 12:
        raise ValidationFailed("pitch must be between -12 and 12 semitones")

    tmp = tempfile.gettempdir()
    input_path = os.path.join(tmp, f"input-{uuid.uuid4().hex}.{ext or 'mp3'}")
    output_path = os.path.join(tmp, f"output-{uuid.uuid4().hex}.mp3")
    try:
        with open(input_path, "wb") as f:
            f.write(data)
        run_ffmpeg(ffmpeg_bin, input_path, output_path, pitch_speed_filter(pitch, speed))
        with open(output_path, "rb") as f:
            return f.read()
    finally:
        for p in (input_path, output_path):
            if os.path.exists(p):
                try:
                    os.remove(p)
                except OSError:
                    pass


# ---------------------------------------------------------
# YouTube
# ---------------------------------------------------------
def is_youtube_url(url: str) -> bool:
    return bool(YOUTUBE_RE.match((url or "").strip()))


def youtube_info(url: str) -> Dict[str, Any]:
    opts = {"quiet": True, "no_warnings": True, "noplaylist": True}
    try:
        with yt_dlp.YoutubeDL(opts) as ydl:
            return ydl.extract_info(url, download=False) or {}
    except yt_dlp.utils.DownloadError as e:
        raise ToolFailed(f"Could not read YouTube video: {e}")


def download_youtube_audio(url: str, max_seconds: int) -> Tuple[str, Dict[str, Any]]:
    """
    Descarga el mejor audio disponible a un archivo temporal.
    Devuelve (ruta, info). Quien llama borra el archivo.
    """
    if not is_youtube_url(url):
        raise ValidationFailed("Invalid YouTube URL")

    info = youtube_info(url)
    duration = int(info.get("duration") or 0)
    if duration > max_seconds:
        raise ValidationFailed(
            f"Song too long ({round(duration / 60)} min), max {max_seconds // 60} min",
            duration=duration,
        )

    outtmpl = os.path.join(tempfile.gettempdir(), f"yt-{uuid.uuid4().hex}.%(ext)s")
    opts = {
        "format": "bestaudio/best",
        "outtmpl": outtmpl,
        "quiet": True,
        "no_warnings": True,
        "noplaylist": True,
    }
    try:
        with yt_dlp.YoutubeDL(opts) as ydl:
            result = ydl.extract_info(url, download=True)
            path = ydl.prepare_filename(result)
    except yt_dlp.utils.DownloadError as e:
        raise ToolFailed(f"YouTube download failed: {e}")

    if not os.path.exists(path):
        raise ToolFailed("YouTube download produced no file")
    return path, info


def youtube_to_cover_source(url: str, ffmpeg_bin: str, max_seconds: int, pitch_shift: int = 3) -> Tuple[bytes, Dict[str, Any]]:
    """Audio de YouTube con el tono corrido `pitch_shift` semitonos, en mp3."""
    path, info = download_youtube_audio(url, max_seconds)
    out = path + ".mp3"
    try:
        run_ffmpeg(ffmpeg_bin, path, out, pitch_shift_filter(pitch_shift))
        with open(out, "rb") as f:
            return f.read(), info
    finally:
        for p in (path, out):
            if os.path.exists(p):
                try:
                    os.remove(p)
                except OSError:
                    pass
