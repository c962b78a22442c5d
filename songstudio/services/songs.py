# songstudio/services/songs.py
"""
Ciclo de vida de un job de generación (canción original o cover).

Estados:
    pending -> generating -> completed | failed

Reglas de créditos:
  - Sólo se descuenta cuando el proveedor ACEPTA el envío (pasa a generating).
  - Si un job que descontó termina en failed, se devuelve el precio UNA vez.
  - Borrar un job no toca el ledger.

El poll es la fuente de verdad. El callback del proveedor no trae estado
confiable: sólo dispara un poll del task_id que menciona.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from songstudio.database import db
from songstudio.errors import (
    Forbidden,
    InsufficientCredits,
    NotFound,
    ProviderPollFailed,
    ProviderRejected,
    SongStudioError,
    ValidationFailed,
)
from songstudio.models import Song, SongStatus, SongType
from songstudio.services import credits
from songstudio.services.settings import GenerationConfig
from songstudio.suno_client import (
    STATUS_FIRST_SUCCESS,
    STATUS_SUCCESS,
    SunoClient,
    SunoTaskStatus,
    callback_task_id,
    normalize_duration,
)

log = logging.getLogger(__name__)

TERMINAL = tuple(s.value for s in SongStatus if s.is_terminal)

DEFAULT_MODEL = {
    SongType.original: "V5",
    SongType.cover: "V4_5ALL",
}


def _as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _as_float(value: Any, default: Optional[float]) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"Invalid number: {value!r}")


@dataclass
class SongRequest:
    kind: SongType
    title: str = ""
    lyrics: str = ""
    style: str = ""
    instrumental: bool = False
    model: Optional[str] = None
    vocal_gender: str = "f"
    # sólo covers
    upload_url: Optional[str] = None
    custom_mode: bool = True
    negative_tags: str = ""
    style_weight: Optional[float] = 0.5
    weirdness_constraint: Optional[float] = 0.5
    audio_weight: Optional[float] = 0.5
    source_youtube_url: str = ""

    @classmethod
    def original_from_json(cls, data: Mapping[str, Any]) -> "SongRequest":
        return cls(
            kind=SongType.original,
            title=(data.get("title") or "").strip(),
            lyrics=(data.get("lyrics") or "").strip(),
            style=(data.get("style") or "").strip(),
            instrumental=_as_bool(data.get("instrumental")),
            model=data.get("model") or None,
            vocal_gender=data.get("vocalGender") or "f",
        )

    @classmethod
    def cover_from_json(cls, data: Mapping[str, Any]) -> "SongRequest":
        return cls(
            kind=SongType.cover,
            title=(data.get("title") or "").strip(),
            lyrics=(data.get("prompt") or "").strip(),
            style=(data.get("style") or "").strip(),
            instrumental=_as_bool(data.get("instrumental")),
            model=data.get("model") or None,
            vocal_gender=data.get("vocalGender") or "f",
            upload_url=(data.get("uploadUrl") or "").strip() or None,
            custom_mode=_as_bool(data.get("customMode"), default=True),
            negative_tags=data.get("negativeTags") or "",
            style_weight=_as_float(data.get("styleWeight"), 0.5),
            weirdness_constraint=_as_float(data.get("weirdnessConstraint"), 0.5),
            audio_weight=_as_float(data.get("audioWeight"), 0.5),
            source_youtube_url=data.get("sourceYoutubeUrl") or "",
        )

    def validate(self) -> None:
        if self.kind == SongType.cover:
            if not self.upload_url:
                raise ValidationFailed("uploadUrl is required")
            if self.custom_mode:
                if not self.title or not self.style:
                    raise ValidationFailed("title and style are required in custom mode")
                if not self.instrumental and not self.lyrics:
                    raise ValidationFailed("prompt (lyrics) is required when not instrumental")
            elif not self.lyrics:
                raise ValidationFailed("prompt is required in non-custom mode")
        elif not self.instrumental and not self.lyrics:
            raise ValidationFailed("lyrics are required when not instrumental")

    def provider_params(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "lyrics": self.lyrics,
            "style": self.style,
            "instrumental": self.instrumental,
            "model": self.model or DEFAULT_MODEL[self.kind],
            "vocal_gender": self.vocal_gender,
            "upload_url": self.upload_url,
            "custom_mode": self.custom_mode,
            "negative_tags": self.negative_tags,
            "style_weight": self.style_weight,
            "weirdness_constraint": self.weirdness_constraint,
            "audio_weight": self.audio_weight,
        }


def _owned_song(song: Optional[Song], account_id: str, action: str) -> Song:
    if not song:
        raise NotFound("Song not found")
    if song.user_id != account_id:
        raise Forbidden(f"You can only {action} your own songs")
    return song


def _result(song: Song, message: Optional[str] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {"status": song.status}
    if song.status == SongStatus.completed.value:
        out.update(audio_url=song.audio_url, audio_url_2=song.audio_url_2, duration=song.duration)
    elif song.status == SongStatus.failed.value:
        out["error"] = song.error_message or "Generation failed"
    if message:
        out["message"] = message
    return out


# ---------------------------------------------------------
# Aplicar estado del proveedor (poll y callback)
# ---------------------------------------------------------
def apply_status(song: Song, status: SunoTaskStatus) -> Dict[str, Any]:
    """
    Lleva el job al estado local que corresponde al estado del proveedor.
    Los UPDATE son condicionales para que dos polls simultáneos (o poll +
    callback) no dupliquen el reembolso ni saquen un job de un estado final.
    """
    message = None

    try:
        ready = status.ready_variants
        if status.status == STATUS_SUCCESS and ready:
            first = ready[0]
            second = ready[1] if len(ready) > 1 else None
            db.session.execute(
                update(Song)
                .where(Song.id == song.id, Song.status != SongStatus.failed.value)
                .values(
                    status=SongStatus.completed.value,
                    audio_url=first.audio_url,
                    audio_url_2=second.audio_url if second else None,
                    duration=normalize_duration(first.duration),
                    error_message=None,
                )
                .execution_options(synchronize_session=False)
            )
            log.info(
                "Song completed %s task=%s v1=%s v2=%s",
                song.id, song.task_id, first.audio_url, second.audio_url if second else None,
            )

        elif status.is_failure:
            error = status.error_message or "Generation failed"
            res = db.session.execute(
                update(Song)
                .where(Song.id == song.id, Song.status.notin_(TERMINAL))
                .values(status=SongStatus.failed.value, error_message=error)
                .execution_options(synchronize_session=False)
            )
            # sólo quien hizo la transición reembolsa
            if res.rowcount == 1 and song.task_id:
                credits.refund_song(song)
                log.info("Reembolso %s créditos a %s (song %s): %s",
                         song.credits_used, song.user_id, song.id, error)

        else:
            if status.status == STATUS_SUCCESS:
                log.warning("Task %s SUCCESS sin audioUrl; sigue generating", song.task_id)
            if status.status == STATUS_FIRST_SUCCESS:
                message = "First track generated, waiting for second..."
            db.session.execute(
                update(Song)
                .where(Song.id == song.id, Song.status.notin_(TERMINAL))
                .values(status=SongStatus.generating.value)
                .execution_options(synchronize_session=False)
            )

        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise

    db.session.refresh(song)
    return _result(song, message)


def delete_song(song_id: str, account_id: str) -> None:
    """
    Borra la fila. No devuelve créditos aunque el job estuviera
    generating: así se comporta el portal hoy (ver DESIGN.md).
    """
    song = _owned_song(db.session.get(Song, song_id), account_id, "delete")
    prev_status = song.status
    db.session.delete(song)
    db.session.commit()
    log.info("Song %s borrada por %s (estado %s)", song_id, account_id, prev_status)


class SongLifecycle:
    def __init__(self, client: SunoClient, config: GenerationConfig) -> None:
        self.client = client
        self.config = config

    # -----------------------------------------------------
    # SUBMIT
    # -----------------------------------------------------
    def submit(self, account_id: str, req: SongRequest) -> Dict[str, Any]:
        req.validate()
        price = self.config.credits_per_song

        balance = credits.get_balance(account_id)
        if balance < price:
            raise InsufficientCredits("Insufficient credits", balance=balance, cost=price)

        is_cover = req.kind == SongType.cover
        song = Song(
            user_id=account_id,
            title=req.title or ("Cover Song" if is_cover else ""),
            lyrics=req.lyrics,
            style=req.style,
            type=req.kind.value,
            model=req.model or DEFAULT_MODEL[req.kind],
            instrumental=req.instrumental,
            source_audio_url=req.upload_url,
            source_youtube_url=req.source_youtube_url or None,
            status=SongStatus.pending.value,
            credits_used=price,
        )
        db.session.add(song)
        db.session.commit()

        try:
            if is_cover:
                task_id = self.client.upload_cover(
                    req.provider_params(), self.config.callback_url("/api/cover/callback")
                )
            else:
                task_id = self.client.generate(
                    req.provider_params(), self.config.callback_url("/api/suno/callback")
                )
        except ProviderRejected as e:
            song.status = SongStatus.failed.value
            song.error_message = e.message
            db.session.commit()
            log.warning("Suno rechazó song %s: %s", song.id, e.message)
            raise

        self._accept(song, task_id, credits.REASON_COVER if is_cover else credits.REASON_SONG)
        log.info("Song %s aceptada task=%s (-%s créditos a %s)", song.id, task_id, price, account_id)
        return {"song_id": song.id, "task_id": task_id}

    def _accept(self, song: Song, task_id: str, reason: str) -> None:
        """task_id + generating + débito + ledger en UNA transacción."""
        song_id = song.id
        try:
            song.task_id = task_id
            song.status = SongStatus.generating.value
            if credits.debit_for_song(song, reason):
                db.session.commit()
                return
            db.session.rollback()
            error: SongStudioError = InsufficientCredits("Insufficient credits", cost=song.credits_used)
        except SQLAlchemyError as e:
            db.session.rollback()
            log.exception("No se pudo registrar el débito de song %s", song_id)
            error = SongStudioError(f"Failed to record song: {e}")

        # nada quedó descontado: el job termina failed sin tocar el saldo
        song = db.session.get(Song, song_id)
        song.task_id = task_id
        song.status = SongStatus.failed.value
        song.error_message = error.message
        db.session.commit()
        raise error

    # -----------------------------------------------------
    # POLL
    # -----------------------------------------------------
    def poll(self, task_id: str, account_id: str) -> Dict[str, Any]:
        song = db.session.query(Song).filter(Song.task_id == task_id).first()
        song = _owned_song(song, account_id, "check")
        return self._refresh(song)

    def _refresh(self, song: Song) -> Dict[str, Any]:
        task_id = song.task_id
        try:
            status = self.client.fetch_status(task_id)
        except ProviderPollFailed as e:
            # sólo se anota en jobs vivos; un estado final no se ensucia
            db.session.execute(
                update(Song)
                .where(Song.id == song.id, Song.status.notin_(TERMINAL))
                .values(error_message=e.message)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
            log.warning("Poll falló task=%s: %s", task_id, e.message)
            raise

        log.info("[Status Check] taskId: %s, status: %s", task_id, status.status)
        return apply_status(song, status)

    # -----------------------------------------------------
    # CALLBACK
    # -----------------------------------------------------
    def apply_callback(self, payload: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Push del proveedor (sin autenticación). Del payload sólo se usa el
        task_id: el estado se vuelve a pedir al proveedor, como en un poll.
        """
        task_id = callback_task_id(dict(payload))
        if not task_id:
            log.warning("Callback sin task_id")
            return None

        song = db.session.query(Song).filter(Song.task_id == task_id).first()
        if not song:
            log.warning("Callback para task desconocido %s", task_id)
            return None

        reported = SunoTaskStatus.from_callback(dict(payload))
        log.info("[Callback] taskId: %s, reportado: %s; consultando estado", task_id, reported.status)
        return self._refresh(song)

    def delete(self, song_id: str, account_id: str) -> None:
        delete_song(song_id, account_id)
