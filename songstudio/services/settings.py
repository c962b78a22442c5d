# songstudio/services/settings.py
"""
Lectura de settings del portal.

Orden de búsqueda para cada clave:
  1) fila en la tabla `settings` (editable por el profesor)
  2) default del proceso (app.config, que viene del entorno)

El controlador de canciones NO lee settings por su cuenta: recibe un
GenerationConfig ya resuelto.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Tuple

from songstudio.database import db
from songstudio.errors import ConfigurationMissing
from songstudio.models import Setting

log = logging.getLogger(__name__)

# clave en tabla -> clave en app.config
SETTING_DEFAULTS: Dict[str, str] = {
    "credits_per_song": "CREDITS_PER_SONG",
    "suno_api_key": "SUNO_API_KEY",
    "ai_api_key": "AI_API_KEY",
    "ai_provider": "AI_PROVIDER",
    "ai_model": "AI_MODEL",
}

SECRET_KEYS = ("suno_api_key", "ai_api_key")


@dataclass(frozen=True)
class GenerationConfig:
    credits_per_song: int
    suno_api_key: str
    callback_base_url: str

    def callback_url(self, path: str) -> str:
        return self.callback_base_url.rstrip("/") + path


class SettingsResolver:
    def __init__(self, defaults: Mapping[str, object]) -> None:
        self.defaults = defaults

    def _stored(self, keys: Iterable[str]) -> Dict[str, str]:
        rows = db.session.query(Setting).filter(Setting.key.in_(list(keys))).all()
        return {r.key: r.value for r in rows if r.value not in (None, "")}

    def get_setting(self, key: str) -> Optional[str]:
        return self.get_many([key]).get(key)

    def get_many(self, keys: Iterable[str]) -> Dict[str, Optional[str]]:
        return {key: value for key, (value, _src) in self.resolve(keys).items()}

    def resolve(self, keys: Iterable[str]) -> Dict[str, Tuple[Optional[str], Optional[str]]]:
        """key -> (valor, origen) con origen 'db', 'env' o None si no hay valor."""
        keys = list(keys)
        stored = self._stored(keys)
        out: Dict[str, Tuple[Optional[str], Optional[str]]] = {}
        for key in keys:
            if key in stored:
                out[key] = (stored[key], "db")
                continue
            default = self.defaults.get(SETTING_DEFAULTS.get(key, key.upper()))
            out[key] = (None, None) if default in (None, "") else (str(default), "env")
        return out

    def generation_config(self) -> GenerationConfig:
        values = self.get_many(["credits_per_song", "suno_api_key"])

        try:
            price = int(values.get("credits_per_song") or 1)
        except ValueError:
            log.warning("credits_per_song inválido (%r); uso 1", values.get("credits_per_song"))
            price = 1

        api_key = values.get("suno_api_key")
        if not api_key:
            raise ConfigurationMissing("Suno API key not configured")

        return GenerationConfig(
            credits_per_song=price,
            suno_api_key=api_key,
            callback_base_url=str(self.defaults.get("APP_BASE_URL") or "http://localhost:8000"),
        )


def upsert_settings(values: Mapping[str, object], actor_id: Optional[str]) -> None:
    """Guarda (o actualiza) claves conocidas. Las desconocidas se ignoran."""
    for key, value in values.items():
        if key not in SETTING_DEFAULTS:
            continue
        row = db.session.query(Setting).filter(Setting.key == key).first()
        if row is None:
            row = Setting(key=key, created_by=actor_id)
            db.session.add(row)
        row.value = None if value is None else str(value)
    db.session.commit()


def mask_secret(value: Optional[str]) -> str:
    if not value:
        return ""
    if len(value) <= 8:
        return "*" * len(value)
    return value[:4] + "*" * (len(value) - 8) + value[-4:]
