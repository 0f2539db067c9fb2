"""Whisper Transcripts - Configuration constants and settings.

Fixed values live as module constants. Values that vary per deployment are
read from the environment into a frozen Settings object, built once at
startup and passed explicitly to the application. No external config
libraries.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

# Repository root (parent of transcripts/)
REPO_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = REPO_ROOT / "data"
UPLOADS_DIR = REPO_ROOT / "uploads"

# Default database path (SQLite)
DB_PATH = DATA_DIR / "transcripts.db"

# HTTP server
DEFAULT_PORT = 5000

# Upload limits (Whisper API rejects files above 25MB)
MAX_UPLOAD_BYTES = 25 * 1024 * 1024
UPLOAD_FIELD_NAME = "audio"
UPLOAD_CHUNK_SIZE = 65536
UPLOAD_TEMP_SUFFIX = ".upload"

# OpenAI Whisper API
OPENAI_BASE_URL = "https://api.openai.com/v1"
OPENAI_KEY_PREFIX = "sk-"
WHISPER_MODEL = "whisper-1"
WHISPER_RESPONSE_FORMAT = "verbose_json"
WHISPER_TEMPERATURE = "0"
TRANSCRIPTION_TIMEOUT_SECONDS = 60.0

# Transcript origin tags
METHOD_CLIENT_DEFAULT = "webkit"
METHOD_WHISPER = "whisper"

# Language stored when Whisper does not report one
UNKNOWN_LANGUAGE = "unknown"


def is_valid_api_key(api_key: str | None) -> bool:
    """Check that an OpenAI API key is present and has the expected prefix.

    Only a syntactic check; the key may still be rejected upstream.
    """
    return bool(api_key) and api_key.startswith(OPENAI_KEY_PREFIX)


def _get_port() -> int:
    """Get listening port from environment or use default.

    Environment variable PORT allows override. Invalid or non-positive
    values fall back to DEFAULT_PORT.
    """
    env_val = os.environ.get("PORT")
    if env_val:
        try:
            port = int(env_val)
            if port > 0:
                return port
        except ValueError:
            pass
    return DEFAULT_PORT


def get_database_url(db_path: str | Path | None = None) -> str:
    """Get SQLite database URL.

    Args:
        db_path: Optional path override. Defaults to DB_PATH.

    Returns:
        SQLite connection URL string.
    """
    path = db_path if db_path is not None else DB_PATH
    return f"sqlite:///{path}"


@dataclass(frozen=True)
class Settings:
    """Deployment settings, read once at startup."""

    openai_api_key: str | None = None
    port: int = DEFAULT_PORT
    database_url: str = get_database_url()
    uploads_dir: Path = UPLOADS_DIR
    openai_base_url: str = OPENAI_BASE_URL
    log_level: str = "INFO"
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    transcription_timeout: float = TRANSCRIPTION_TIMEOUT_SECONDS

    @property
    def api_key_configured(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def api_key_valid(self) -> bool:
        return is_valid_api_key(self.openai_api_key)

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables.

        Recognized variables: OPENAI_API_KEY, PORT, DATABASE_URL, UPLOADS_DIR,
        OPENAI_BASE_URL, LOG_LEVEL. Unset or empty values use the defaults.
        """
        uploads_dir = os.environ.get("UPLOADS_DIR") or None
        return cls(
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            port=_get_port(),
            database_url=os.environ.get("DATABASE_URL") or get_database_url(),
            uploads_dir=Path(uploads_dir) if uploads_dir else UPLOADS_DIR,
            openai_base_url=os.environ.get("OPENAI_BASE_URL") or OPENAI_BASE_URL,
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
