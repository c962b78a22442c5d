import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import pytest

from songstudio.errors import ConfigurationMissing, ToolFailed, ValidationFailed
from songstudio.services import lyrics, whisper

SONG_JSON = {"title": "Luz de Abril", "lyrics": "[VERSE 1]\nCamino al sol", "style": "indie pop, dreamy"}


def test_parse_song_json_extracts_first_object():
    content = "Claro, aquí va:\n" + json.dumps(SONG_JSON) + "\n¡Suerte!"
    assert lyrics._parse_song_json(content) == SONG_JSON


def test_parse_song_json_fallbacks():
    assert lyrics._parse_song_json("solo texto, sin json") == {
        "title": "Generated Song",
        "lyrics": "solo texto, sin json",
        "style": "pop, melodic",
    }
    assert lyrics._parse_song_json('{"lyrics": "x"}')["style"] == "pop, melodic"


def test_build_prompt_mentions_theme():
    prompt = lyrics.build_prompt("la amistad")
    assert "Theme: la amistad" in prompt
    assert '"title"' in prompt


def test_generate_lyrics_with_anthropic_transport():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["key"] = request.headers["x-api-key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"content": [{"type": "text", "text": json.dumps(SONG_JSON)}]})

    result = lyrics.generate_lyrics(
        "primavera", "Anthropic", "ak", "claude-model", transport=httpx.MockTransport(handler)
    )

    assert result == SONG_JSON
    assert seen["url"] == "https://api.anthropic.com/v1/messages"
    assert seen["key"] == "ak"
    assert seen["body"]["model"] == "claude-model"


def test_generate_lyrics_with_gemini_transport():
    def handler(request):
        assert request.url.params["key"] == "gk"
        assert request.url.path.endswith("/models/gemini-pro:generateContent")
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "texto libre"}]}}]})

    result = lyrics.generate_lyrics("mar", "gemini", "gk", "gemini-pro", transport=httpx.MockTransport(handler))

    assert result["lyrics"] == "texto libre"
    assert result["title"] == "Generated Song"


def test_generate_lyrics_provider_error_is_tool_failure():
    transport = httpx.MockTransport(lambda r: httpx.Response(529, json={"error": "overloaded"}))
    with pytest.raises(ToolFailed):
        lyrics.generate_lyrics("x", "anthropic", "ak", "m", transport=transport)


def test_generate_lyrics_with_openai_sdk():
    fake = MagicMock()
    fake.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=json.dumps(SONG_JSON)))]
    )

    with patch("songstudio.services.lyrics.OpenAI", return_value=fake) as ctor:
        result = lyrics.generate_lyrics("lluvia", "openai", "sk", "gpt-4o-mini")

    assert result == SONG_JSON
    ctor.assert_called_once_with(api_key="sk")
    kwargs = fake.chat.completions.create.call_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["model"] == "gpt-4o-mini"


def test_generate_lyrics_input_checks():
    with pytest.raises(ValidationFailed):
        lyrics.generate_lyrics("  ", "openai", "sk", "m")
    with pytest.raises(ConfigurationMissing):
        lyrics.generate_lyrics("tema", "openai", None, "m")
    with pytest.raises(ValidationFailed, match="Unknown AI provider"):
        lyrics.generate_lyrics("tema", "cohere", "k", "m")


def test_lyrics_route_uses_settings(app, student, login):
    app.config.update(AI_API_KEY="env-key", AI_PROVIDER="anthropic", AI_MODEL="claude-x")

    with patch("songstudio.routes.ai.generate_lyrics", return_value=SONG_JSON) as gen:
        resp = login(student).post("/api/ai/generate-lyrics", json={"theme": "el mar"})

    assert resp.get_json() == {"ok": True, **SONG_JSON}
    gen.assert_called_once_with("el mar", provider="anthropic", api_key="env-key", model="claude-x")


# ---------------------------------------------------------
# Whisper
# ---------------------------------------------------------
def test_download_audio():
    transport = httpx.MockTransport(lambda r: httpx.Response(200, content=b"RIFF...."))
    assert whisper.download_audio("https://cdn/x.wav", transport=transport) == b"RIFF...."

    transport = httpx.MockTransport(lambda r: httpx.Response(404))
    with pytest.raises(ToolFailed):
        whisper.download_audio("https://cdn/x.wav", transport=transport)


def test_transcribe_url(monkeypatch):
    monkeypatch.setattr(whisper, "download_audio", lambda url: b"audio-bytes")
    fake = MagicMock()
    fake.audio.transcriptions.create.return_value = SimpleNamespace(text="  hola mundo  ")

    with patch("songstudio.services.whisper.OpenAI", return_value=fake):
        assert whisper.transcribe_url("https://cdn/a.m4a?x=1", api_key="sk") == "hola mundo"

    sent = fake.audio.transcriptions.create.call_args.kwargs
    assert sent["model"] == "whisper-1"
    assert sent["file"].name == "audio.m4a"


def test_transcribe_empty_text_fails(monkeypatch):
    monkeypatch.setattr(whisper, "download_audio", lambda url: b"x")
    fake = MagicMock()
    fake.audio.transcriptions.create.return_value = SimpleNamespace(text="")

    with patch("songstudio.services.whisper.OpenAI", return_value=fake):
        with pytest.raises(ToolFailed):
            whisper.transcribe_url("https://cdn/a.mp3", api_key="sk")


def test_transcribe_route_requires_key(app, student, login):
    app.config["OPENAI_API_KEY"] = None
    resp = login(student).post("/api/ai/transcribe", json={"audioUrl": "https://cdn/a.mp3"})
    assert resp.status_code == 500
    assert resp.get_json()["error"] == "CONFIGURATION_MISSING"
