# songstudio/errors.py
"""
Errores de dominio. Cada uno lleva su código (el que ve el frontend)
y el status HTTP con el que se responde.
"""
from __future__ import annotations

from typing import Any, Dict


class SongStudioError(RuntimeError):
    code = "SERVER_ERROR"
    http_status = 500

    def __init__(self, message: str = "", **details: Any) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"ok": False, "error": self.code, "message": self.message}
        if self.details:
            body.update(self.details)
        return body


class ValidationFailed(SongStudioError):
    code = "VALIDATION_FAILED"
    http_status = 400


class Unauthorized(SongStudioError):
    code = "UNAUTHORIZED"
    http_status = 401


class Forbidden(SongStudioError):
    code = "FORBIDDEN"
    http_status = 403


class InsufficientCredits(SongStudioError):
    code = "INSUFFICIENT_CREDITS"
    http_status = 402


class NotFound(SongStudioError):
    code = "NOT_FOUND"
    http_status = 404


class ProviderRejected(SongStudioError):
    """El proveedor rechazó el envío (o no se pudo hablar con él)."""

    code = "PROVIDER_REJECTED"
    http_status = 502


class ProviderPollFailed(SongStudioError):
    """
    Falla de transporte/parseo al consultar estado.
    NO es lo mismo que un job fallido reportado por el proveedor.
    """

    code = "PROVIDER_POLL_FAILED"
    http_status = 502


class ConfigurationMissing(SongStudioError):
    code = "CONFIGURATION_MISSING"
    http_status = 500


class ToolFailed(SongStudioError):
    """ffmpeg / yt-dlp / LLM devolvieron algo inutilizable."""

    code = "TOOL_FAILED"
    http_status = 500
