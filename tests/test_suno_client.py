import json

import httpx
import pytest

from songstudio.errors import ProviderPollFailed, ProviderRejected
from songstudio.suno_client import (
    SunoClient,
    SunoTaskStatus,
    callback_task_id,
    normalize_duration,
)


def _client(handler):
    return SunoClient("secret-key", base_url="https://suno.test/", transport=httpx.MockTransport(handler))


def test_generate_sends_custom_mode_payload():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"code": 200, "msg": "success", "data": {"taskId": "abc123"}})

    task_id = _client(handler).generate(
        {"title": "T", "lyrics": "verso", "style": "pop", "instrumental": False},
        "http://app/api/suno/callback",
    )

    assert task_id == "abc123"
    assert seen["path"] == "/api/v1/generate"
    assert seen["auth"] == "Bearer secret-key"
    assert seen["body"] == {
        "prompt": "verso",
        "style": "pop",
        "title": "T",
        "customMode": True,
        "instrumental": False,
        "model": "V5",
        "vocalGender": "f",
        "callBackUrl": "http://app/api/suno/callback",
    }


def test_upload_cover_non_custom_mode_only_sends_prompt():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"code": 200, "data": {"taskId": "cov-1"}})

    _client(handler).upload_cover(
        {
            "upload_url": "http://app/media/x.mp3",
            "custom_mode": False,
            "lyrics": "una idea",
            "title": "ignored",
            "negative_tags": "metal",
            "style_weight": 0.65,
            "weirdness_constraint": None,
        },
        "http://app/api/cover/callback",
    )

    body = seen["body"]
    assert seen["path"] == "/api/v1/generate/upload-cover"
    assert body["prompt"] == "una idea"
    assert body["model"] == "V4_5ALL"
    assert body["negativeTags"] == "metal"
    assert body["styleWeight"] == 0.65
    assert "title" not in body and "vocalGender" not in body
    assert "weirdnessConstraint" not in body


def test_upload_cover_instrumental_omits_prompt():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"code": 200, "data": {"taskId": "cov-2"}})

    _client(handler).upload_cover(
        {"upload_url": "u", "custom_mode": True, "instrumental": True, "title": "T", "style": "lofi", "lyrics": "x"},
        "cb",
    )

    assert "prompt" not in seen["body"]
    assert seen["body"]["title"] == "T"
    assert seen["body"]["vocalGender"] == "f"


@pytest.mark.parametrize("response", [
    httpx.Response(200, json={"code": 430, "msg": "Your call frequency is too high"}),
    httpx.Response(200, json={"code": 200, "data": {}}),
    httpx.Response(500, text="upstream exploded"),
    httpx.Response(200, text="<html>not json</html>"),
])
def test_submit_rejections(response):
    with pytest.raises(ProviderRejected):
        _client(lambda request: response).generate({"lyrics": "x"}, "cb")


def test_submit_network_error_is_rejection():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(ProviderRejected) as exc:
        _client(handler).generate({"lyrics": "x"}, "cb")
    assert "connection refused" in exc.value.message


def test_rejection_message_comes_from_provider():
    client = _client(lambda r: httpx.Response(200, json={"code": 413, "msg": "Prompt too long"}))
    with pytest.raises(ProviderRejected, match="Prompt too long"):
        client.generate({"lyrics": "x"}, "cb")


def test_fetch_status_parses_record_info():
    def handler(request):
        assert request.url.path == "/api/v1/generate/record-info"
        assert request.url.params["taskId"] == "abc123"
        return httpx.Response(200, json={
            "code": 200,
            "data": {
                "taskId": "abc123",
                "status": "SUCCESS",
                "response": {
                    "sunoData": [
                        {"audioUrl": "https://cdn/a.mp3", "duration": 125.7, "title": "A"},
                        {"audioUrl": "https://cdn/b.mp3", "duration": 128.0},
                    ]
                },
            },
        })

    status = _client(handler).fetch_status("abc123")

    assert status.status == "SUCCESS"
    assert [v.audio_url for v in status.ready_variants] == ["https://cdn/a.mp3", "https://cdn/b.mp3"]
    assert status.variants[0].title == "A"
    assert not status.is_failure


def test_fetch_status_failure_is_terminal_not_exception():
    client = _client(lambda r: httpx.Response(200, json={
        "code": 200,
        "data": {"status": "SENSITIVE_WORD_ERROR", "errorMessage": "Lyrics contain blocked words"},
    }))

    status = client.fetch_status("t")

    assert status.is_failure
    assert status.error_message == "Lyrics contain blocked words"


@pytest.mark.parametrize("response", [
    httpx.Response(200, json={"code": 500, "msg": "Failed to check status"}),
    httpx.Response(502, text="bad gateway"),
])
def test_fetch_status_poll_failures(response):
    with pytest.raises(ProviderPollFailed):
        _client(lambda r: response).fetch_status("t")


def test_fetch_status_timeout_is_poll_failure():
    def handler(request):
        raise httpx.ReadTimeout("timed out")

    with pytest.raises(ProviderPollFailed):
        _client(handler).fetch_status("t")


def test_pending_without_data_defaults():
    status = SunoTaskStatus.from_record_info({})
    assert status.status == "PENDING"
    assert status.ready_variants == []


# ---------------------------------------------------------
# Callback
# ---------------------------------------------------------
def test_callback_complete():
    payload = {
        "code": 200,
        "data": {
            "callbackType": "complete",
            "task_id": "t-9",
            "data": [{"audio_url": "https://cdn/x.mp3", "duration": 10.4}],
        },
    }

    status = SunoTaskStatus.from_callback(payload)

    assert callback_task_id(payload) == "t-9"
    assert status.status == "SUCCESS"
    assert status.ready_variants[0].audio_url == "https://cdn/x.mp3"


@pytest.mark.parametrize("payload,expected", [
    ({"code": 200, "data": {"callbackType": "first"}}, "FIRST_SUCCESS"),
    ({"code": 200, "data": {"callbackType": "text"}}, "PENDING"),
    ({"code": 200, "data": {"callbackType": "error"}, "msg": "boom"}, "GENERATE_AUDIO_FAILED"),
    ({"code": "531", "data": {"callbackType": "complete"}, "msg": "boom"}, "GENERATE_AUDIO_FAILED"),
])
def test_callback_status_mapping(payload, expected):
    assert SunoTaskStatus.from_callback(payload).status == expected


def test_callback_task_id_accepts_camel_case():
    assert callback_task_id({"data": {"taskId": "T"}}) == "T"
    assert callback_task_id({}) is None


@pytest.mark.parametrize("raw,expected", [
    (125.7, 126),
    (125.5, 126),
    (125.4, 125),
    ("60.2", 60),
    (None, None),
    ("n/a", None),
])
def test_normalize_duration(raw, expected):
    assert normalize_duration(raw) == expected
