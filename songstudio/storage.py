# songstudio/storage.py
"""
Dónde quedan los audios subidos / procesados.

  - Si hay AWS_S3_BUCKET => S3 (boto3), URL pública del objeto.
  - Si no => carpeta local UPLOAD_FOLDER, servida en /media/<filename>.

El proveedor de covers descarga el audio desde la URL devuelta, así que
en local APP_BASE_URL tiene que ser alcanzable desde fuera.
"""
from __future__ import annotations

import logging
import os

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app
from werkzeug.utils import secure_filename

from songstudio.errors import ToolFailed

log = logging.getLogger(__name__)


def _s3_client():
    return boto3.client("s3", region_name=current_app.config.get("AWS_REGION") or "us-east-1")


def upload_folder() -> str:
    folder = current_app.config["UPLOAD_FOLDER"]
    if not os.path.isabs(folder):
        folder = os.path.join(current_app.root_path, "..", folder)
    folder = os.path.abspath(folder)
    os.makedirs(folder, exist_ok=True)
    return folder


def save_bytes(data: bytes, filename: str, content_type: str = "audio/mpeg") -> str:
    """Guarda y devuelve la URL pública."""
    filename = secure_filename(filename) or "audio.mp3"
    cfg = current_app.config
    bucket = cfg.get("AWS_S3_BUCKET")

    if bucket:
        try:
            _s3_client().put_object(Bucket=bucket, Key=filename, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            log.error("S3 upload falló (%s): %s", filename, e)
            raise ToolFailed(f"Failed to upload audio: {e}")
        region = cfg.get("AWS_REGION") or "us-east-1"
        return f"https://{bucket}.s3.{region}.amazonaws.com/{filename}"

    path = os.path.join(upload_folder(), filename)
    with open(path, "wb") as f:
        f.write(data)
    return cfg["APP_BASE_URL"].rstrip("/") + "/media/" + filename
