import os

from dotenv import load_dotenv
from sqlalchemy.engine.url import make_url

# .env en desarrollo; en producción manda el entorno
load_dotenv(override=False)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        return int(raw) if raw not in (None, "") else default
    except ValueError:
        return default


class Config:
    # ==========================
    #  SECRET / SECURITY
    # ==========================
    SECRET_KEY = os.getenv("SECRET_KEY") or os.getenv("FLASK_SECRET_KEY", "change-me")

    # ==========================
    #  DATABASE
    # ==========================
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///songstudio.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # URL pública de la app (para los callbacks del proveedor)
    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:8000")

    # ==========================
    #  SUNO (kie.ai)
    # ==========================
    SUNO_API_KEY = os.getenv("SUNO_API_KEY")
    SUNO_BASE_URL = os.getenv("SUNO_BASE_URL", "https://api.kie.ai")
    SUNO_TIMEOUT = _int_env("SUNO_TIMEOUT", 60)

    # ==========================
    #  CRÉDITOS
    # ==========================
    CREDITS_PER_SONG = _int_env("CREDITS_PER_SONG", 1)
    DEFAULT_SIGNUP_CREDITS = _int_env("DEFAULT_SIGNUP_CREDITS", 0)
    TEACHER_CREATED_CREDITS = _int_env("TEACHER_CREATED_CREDITS", 10)

    # ==========================
    #  IA (letras / transcripción)
    # ==========================
    AI_API_KEY = os.getenv("AI_API_KEY")
    AI_PROVIDER = os.getenv("AI_PROVIDER", "openai")
    AI_MODEL = os.getenv("AI_MODEL", "gpt-4o-mini")

    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_TRANSCRIBE_MODEL = os.getenv("OPENAI_TRANSCRIBE_MODEL", "whisper-1")

    # ==========================
    #  ARCHIVOS / AUDIO
    # ==========================
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", os.path.join("instance", "uploads"))
    MAX_UPLOAD_MB = _int_env("MAX_UPLOAD_MB", 50)
    FFMPEG_BIN = os.getenv("FFMPEG_BIN", "ffmpeg")
    YOUTUBE_MAX_SECONDS = _int_env("YOUTUBE_MAX_SECONDS", 480)

    # S3 (opcional): si no hay bucket se guarda en UPLOAD_FOLDER
    AWS_REGION = os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION")
    AWS_S3_BUCKET = os.getenv("AWS_S3_BUCKET") or os.getenv("S3_BUCKET")


# --- asegurar carpeta del archivo SQLite (evita "unable to open database file")
def ensure_sqlite_dir(uri: str):
    try:
        url = make_url(uri)
    except Exception:
        return
    if url.get_backend_name() == "sqlite":
        db_path = url.database
        if db_path and db_path not in (":memory:",):
            directory = os.path.dirname(db_path)
            if directory and not os.path.exists(directory):
                os.makedirs(directory, exist_ok=True)
