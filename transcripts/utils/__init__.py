"""Whisper Transcripts - Utility modules."""

from transcripts.utils.extensions import is_accepted_mime_type, resolve_extension
from transcripts.utils.paths import upload_temp_path
from transcripts.utils.upload_io import (
    UploadTooLargeError,
    cleanup_orphan_uploads,
    remove_file_quietly,
    stream_to_file_limited,
)

__all__ = [
    # extensions
    "resolve_extension",
    "is_accepted_mime_type",
    # paths
    "upload_temp_path",
    # upload_io
    "UploadTooLargeError",
    "stream_to_file_limited",
    "remove_file_quietly",
    "cleanup_orphan_uploads",
]
