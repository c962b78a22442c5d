from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from songstudio.errors import ProviderPollFailed, ProviderRejected

log = logging.getLogger(__name__)

SUCCESS_CODE = 200

# Estados que reporta el proveedor
STATUS_PENDING = "PENDING"
STATUS_FIRST_SUCCESS = "FIRST_SUCCESS"
STATUS_SUCCESS = "SUCCESS"
FAILURE_STATUSES = frozenset(
    {
        "CREATE_TASK_FAILED",
        "GENERATE_AUDIO_FAILED",
        "CALLBACK_EXCEPTION",
        "SENSITIVE_WORD_ERROR",
    }
)

# callbackType del push -> status equivalente del record-info
_CALLBACK_STATUS = {
    "complete": STATUS_SUCCESS,
    "first": STATUS_FIRST_SUCCESS,
    "text": STATUS_PENDING,
    "error": "GENERATE_AUDIO_FAILED",
}


def normalize_duration(raw: Any) -> Optional[int]:
    """Segundos enteros (redondeo half-up). None si no viene o no es número."""
    if raw is None or raw == "":
        return None
    try:
        return int(math.floor(float(raw) + 0.5))
    except (TypeError, ValueError):
        return None


@dataclass
class SunoVariant:
    audio_url: Optional[str]
    duration: Optional[float] = None
    title: Optional[str] = None

    @classmethod
    def from_payload(cls, item: Dict[str, Any]) -> "SunoVariant":
        # record-info usa camelCase, el callback snake_case
        return cls(
            audio_url=item.get("audioUrl") or item.get("audio_url") or None,
            duration=item.get("duration"),
            title=item.get("title"),
        )


@dataclass
class SunoTaskStatus:
    status: str
    variants: List[SunoVariant] = field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def ready_variants(self) -> List[SunoVariant]:
        return [v for v in self.variants if v.audio_url]

    @property
    def is_failure(self) -> bool:
        return self.status in FAILURE_STATUSES

    @classmethod
    def from_record_info(cls, data: Dict[str, Any]) -> "SunoTaskStatus":
        response = data.get("response") or {}
        items = response.get("sunoData") or []
        return cls(
            status=str(data.get("status") or STATUS_PENDING),
            variants=[SunoVariant.from_payload(i) for i in items if isinstance(i, dict)],
            error_message=data.get("errorMessage") or None,
        )

    @classmethod
    def from_callback(cls, payload: Dict[str, Any]) -> "SunoTaskStatus":
        body = payload.get("data") or {}
        code = payload.get("code")
        items = body.get("data") or []
        variants = [SunoVariant.from_payload(i) for i in items if isinstance(i, dict)]

        if code is not None and str(code) != str(SUCCESS_CODE):
            return cls(status="GENERATE_AUDIO_FAILED", variants=variants, error_message=payload.get("msg"))

        status = _CALLBACK_STATUS.get(str(body.get("callbackType") or "").lower(), STATUS_PENDING)
        error = payload.get("msg") if status in FAILURE_STATUSES else None
        return cls(status=status, variants=variants, error_message=error)


def callback_task_id(payload: Dict[str, Any]) -> Optional[str]:
    body = payload.get("data") or {}
    return body.get("task_id") or body.get("taskId") or None


class SunoClient:
    """
    Cliente para la API de Suno en kie.ai.
      - POST /api/v1/generate               (canción original)
      - POST /api/v1/generate/upload-cover  (cover sobre un audio subido)
      - GET  /api/v1/generate/record-info   (estado de la tarea)
    Autenticación: Bearer <api_key>.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.kie.ai",
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

    # ───────────────────────────────
    # ENVÍO
    # ───────────────────────────────
    def _submit(self, path: str, payload: Dict[str, Any]) -> str:
        try:
            with self._client() as client:
                resp = client.post(path, json=payload)
            body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderRejected(f"Error contacting Suno: {e}")

        if resp.status_code >= 400 or not isinstance(body, dict):
            raise ProviderRejected(f"Suno HTTP {resp.status_code}: {resp.text[:300]}")

        if body.get("code") != SUCCESS_CODE:
            raise ProviderRejected(body.get("msg") or f"Suno code {body.get('code')}")

        task_id = (body.get("data") or {}).get("taskId")
        if not task_id:
            raise ProviderRejected("Suno no devolvió taskId")
        return str(task_id)

    def generate(self, params: Dict[str, Any], callback_url: str) -> str:
        payload = {
            "prompt": params.get("lyrics") or "",
            "style": params.get("style") or "",
            "title": params.get("title") or "",
            "customMode": True,
            "instrumental": bool(params.get("instrumental")),
            "model": params.get("model") or "V5",
            "vocalGender": params.get("vocal_gender") or "f",
            "callBackUrl": callback_url,
        }
        return self._submit("/api/v1/generate", payload)

    def upload_cover(self, params: Dict[str, Any], callback_url: str) -> str:
        custom_mode = bool(params.get("custom_mode", True))
        instrumental = bool(params.get("instrumental"))

        payload: Dict[str, Any] = {
            "uploadUrl": params["upload_url"],
            "customMode": custom_mode,
            "instrumental": instrumental,
            "model": params.get("model") or "V4_5ALL",
            "callBackUrl": callback_url,
        }
        if custom_mode:
            payload["title"] = params.get("title")
            payload["style"] = params.get("style")
            if not instrumental:
                payload["prompt"] = params.get("lyrics")
            payload["vocalGender"] = params.get("vocal_gender") or "f"
        else:
            payload["prompt"] = params.get("lyrics")

        if params.get("negative_tags"):
            payload["negativeTags"] = params["negative_tags"]
        for src, dst in (
            ("style_weight", "styleWeight"),
            ("weirdness_constraint", "weirdnessConstraint"),
            ("audio_weight", "audioWeight"),
        ):
            if params.get(src) is not None:
                payload[dst] = params[src]

        return self._submit("/api/v1/generate/upload-cover", payload)

    # ───────────────────────────────
    # ESTADO
    # ───────────────────────────────
    def fetch_status(self, task_id: str) -> SunoTaskStatus:
        try:
            with self._client() as client:
                resp = client.get("/api/v1/generate/record-info", params={"taskId": task_id})
            body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderPollFailed(f"Error consultando estado en Suno: {e}")

        if resp.status_code >= 400 or not isinstance(body, dict):
            raise ProviderPollFailed(f"Suno HTTP {resp.status_code}: {resp.text[:300]}")

        if body.get("code") != SUCCESS_CODE:
            raise ProviderPollFailed(body.get("msg") or "Failed to check status")

        return SunoTaskStatus.from_record_info(body.get("data") or {})
