# songstudio/services/lyrics.py
# -*- coding: utf-8 -*-
"""
Generador de letras a partir de un tema.

Función pública:
    generate_lyrics(theme, provider, api_key, model) -> dict(title, lyrics, style)

Proveedores:
  - openai    -> SDK oficial, response_format JSON
  - anthropic -> REST /v1/messages (httpx)
  - gemini    -> REST generateContent (httpx)
Si el modelo no devuelve JSON parseable se usa el texto como letra.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Dict, Optional

import httpx
from openai import OpenAI, OpenAIError

from songstudio.errors import ConfigurationMissing, ToolFailed, ValidationFailed

log = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a creative music producer. Always respond with valid JSON only."

_JSON_RX = re.compile(r"\{[\s\S]*\}")

FALLBACK_STYLE = "pop, melodic"


def build_prompt(theme: str) -> str:
    return (
        "You are a professional songwriter writing a song for Suno AI v5.\n\n"
        f"INPUT:\n- Theme: {theme}\n\n"
        "REQUIREMENTS:\n"
        "1. TITLE: creative, catchy, easy to remember; same language as the lyrics.\n"
        "2. LYRICS:\n"
        "   - Structure: [INTRO], [VERSE 1], [PRE-CHORUS], [CHORUS], [VERSE 2], "
        "[PRE-CHORUS], [CHORUS], [BRIDGE], [CHORUS], [OUTRO]\n"
        "   - Musical directions in English inside [ ], e.g. [INTRO, gentle piano melody]\n"
        "   - Rhymes, vivid words, real meaning\n"
        "   - Long enough for a 2-3 minute song: each VERSE and CHORUS 4-6 lines, "
        "repeated CHORUS, 4-line BRIDGE, 30-40 lines total\n"
        "3. STYLE: English only, comma separated genre, mood and instruments, "
        'e.g. "indie pop, dreamy, acoustic guitar"\n\n'
        "Reply with ONE JSON object:\n"
        '{"title": "...", "lyrics": "... with structure tags ...", "style": "genre, mood, instruments"}\n\n'
        "Generate now:"
    )


def _parse_song_json(content: str) -> Dict[str, str]:
    m = _JSON_RX.search(content or "")
    if m:
        try:
            data = json.loads(m.group(0))
            if isinstance(data, dict):
                return {
                    "title": str(data.get("title") or "Generated Song"),
                    "lyrics": str(data.get("lyrics") or ""),
                    "style": str(data.get("style") or FALLBACK_STYLE),
                }
        except ValueError:
            log.warning("La respuesta del LLM no es JSON válido; uso el texto como letra")
    return {"title": "Generated Song", "lyrics": (content or "").strip(), "style": FALLBACK_STYLE}


def _openai(prompt: str, api_key: str, model: str) -> str:
    client = OpenAI(api_key=api_key)
    resp = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
        temperature=0.8,
        response_format={"type": "json_object"},
    )
    return (resp.choices[0].message.content or "").strip()


def _anthropic(prompt: str, api_key: str, model: str, transport: Optional[httpx.BaseTransport] = None) -> str:
    with httpx.Client(timeout=120, transport=transport) as client:
        resp = client.post(
            "https://api.anthropic.com/v1/messages",
            json={
                "model": model,
                "max_tokens": 4096,
                "system": SYSTEM_PROMPT,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers={
                "x-api-key": api_key,
                "anthropic-version": "2023-06-01",
                "Content-Type": "application/json",
            },
        )
    resp.raise_for_status()
    return resp.json()["content"][0]["text"]


def _gemini(prompt: str, api_key: str, model: str, transport: Optional[httpx.BaseTransport] = None) -> str:
    with httpx.Client(timeout=120, transport=transport) as client:
        resp = client.post(
            f"https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
            params={"key": api_key},
            json={"contents": [{"parts": [{"text": prompt}]}]},
        )
    resp.raise_for_status()
    return resp.json()["candidates"][0]["content"]["parts"][0]["text"]


def generate_lyrics(
    theme: str,
    provider: str,
    api_key: Optional[str],
    model: str,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> Dict[str, str]:
    theme = (theme or "").strip()
    if not theme:
        raise ValidationFailed("Theme is required")
    if not api_key:
        raise ConfigurationMissing("AI API key not configured")

    provider = (provider or "openai").strip().lower()
    prompt = build_prompt(theme)

    try:
        if provider == "openai":
            content = _openai(prompt, api_key, model)
        elif provider == "anthropic":
            content = _anthropic(prompt, api_key, model, transport)
        elif provider == "gemini":
            content = _gemini(prompt, api_key, model, transport)
        else:
            raise ValidationFailed(f"Unknown AI provider: {provider}")
    except (httpx.HTTPError, OpenAIError, KeyError, IndexError) as e:
        log.exception("Fallo generando letra con %s: %s", provider, e)
        raise ToolFailed(f"Failed to generate lyrics: {e}")

    return _parse_song_json(content)
