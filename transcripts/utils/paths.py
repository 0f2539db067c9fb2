"""Whisper Transcripts - Upload path utilities.

Returns temp upload Paths. Does NOT create directories.
Directory creation is the responsibility of the calling code.
"""

import uuid
from pathlib import Path

from transcripts.config import UPLOAD_TEMP_SUFFIX


def upload_temp_path(uploads_dir: str | Path, token: str | None = None) -> Path:
    """Get a server-generated temp path for an incoming upload.

    The client filename is never used on disk.

    Args:
        uploads_dir: Directory holding in-flight uploads.
        token: Optional name token (defaults to a fresh uuid4 hex).

    Returns:
        Path: {uploads_dir}/{token}.upload
    """
    token = token or uuid.uuid4().hex
    return Path(uploads_dir) / f"{token}{UPLOAD_TEMP_SUFFIX}"
