"""Whisper Transcripts - File extension resolution for uploaded audio.

Whisper infers the container format from the uploaded filename, so the
name sent upstream must carry an extension matching the content.
"""

from pathlib import Path

# Canonical extension per accepted MIME type
MIME_TO_EXTENSION: dict[str, str] = {
    "audio/webm": ".webm",
    "audio/wav": ".wav",
    "audio/mp3": ".mp3",
    "audio/mpeg": ".mp3",
    "audio/mp4": ".mp4",
    "audio/m4a": ".m4a",
    "audio/ogg": ".ogg",
    "video/webm": ".webm",
}

# Browser MediaRecorder output is webm
DEFAULT_EXTENSION = ".webm"

AUDIO_MIME_PREFIX = "audio/"
VIDEO_WEBM_MIME = "video/webm"


def resolve_extension(mime_type: str | None, original_filename: str | None = None) -> str:
    """Resolve the extension (with leading dot) for an upload.

    Order: exact MIME table match, then the original filename's extension
    (case preserved), then DEFAULT_EXTENSION. Never raises.

    Args:
        mime_type: Declared MIME type of the upload.
        original_filename: Client-supplied filename, if any.

    Returns:
        Extension string such as ".webm".
    """
    if mime_type and mime_type in MIME_TO_EXTENSION:
        return MIME_TO_EXTENSION[mime_type]

    if original_filename:
        ext = Path(original_filename).suffix
        if ext:
            return ext

    return DEFAULT_EXTENSION


def is_accepted_mime_type(mime_type: str | None) -> bool:
    """Check whether an upload's MIME type is allowed.

    Any audio/* type is accepted, plus video/webm (Chrome tags
    MediaRecorder audio-only recordings this way).
    """
    if not mime_type:
        return False
    return mime_type.startswith(AUDIO_MIME_PREFIX) or mime_type == VIDEO_WEBM_MIME


__all__ = [
    "MIME_TO_EXTENSION",
    "DEFAULT_EXTENSION",
    "resolve_extension",
    "is_accepted_mime_type",
]
