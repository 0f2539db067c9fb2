"""Whisper Transcripts - Upload I/O utilities.

Writes incoming upload streams to disk in chunks while enforcing a byte
ceiling, and removes temp uploads afterwards.

The size check runs as bytes arrive, so an oversized upload never lands
on disk in full: the partial file is removed and UploadTooLargeError is
raised as soon as the running total passes the limit.
"""

import logging
import os
from pathlib import Path

from transcripts.config import UPLOAD_CHUNK_SIZE, UPLOAD_TEMP_SUFFIX

logger = logging.getLogger(__name__)


class UploadTooLargeError(Exception):
    """Raised when an upload stream exceeds the configured byte limit."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Upload exceeds {limit} bytes")


def _write_all(fd: int, data: bytes) -> None:
    """Write all bytes to a file descriptor, handling partial writes.

    Args:
        fd: File descriptor to write to.
        data: Bytes to write.

    Raises:
        OSError: If write fails or returns 0 bytes unexpectedly.
    """
    total_written = 0
    data_len = len(data)

    while total_written < data_len:
        try:
            written = os.write(fd, data[total_written:])
            if written == 0:
                raise OSError("os.write() returned 0 bytes unexpectedly")
            total_written += written
        except InterruptedError:
            continue


def stream_to_file_limited(
    stream,
    dest_path: str | Path,
    max_bytes: int,
    chunk_size: int = UPLOAD_CHUNK_SIZE,
) -> int:
    """Write a stream to a file, refusing to go past max_bytes.

    Args:
        stream: File-like object with read() method.
        dest_path: Target path. Parent directory is created if missing.
        max_bytes: Largest accepted size in bytes.
        chunk_size: Buffer size for reading (default: 64KB).

    Returns:
        Total bytes written.

    Raises:
        UploadTooLargeError: If the stream is longer than max_bytes.
            The partial file is removed first.
        OSError: If the write fails. The partial file is removed first.
    """
    dest_path = Path(dest_path)
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    total_bytes = 0
    fd = os.open(dest_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    try:
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            total_bytes += len(chunk)
            if total_bytes > max_bytes:
                raise UploadTooLargeError(max_bytes)
            _write_all(fd, chunk)
    except (OSError, UploadTooLargeError):
        os.close(fd)
        remove_file_quietly(dest_path)
        raise
    else:
        os.close(fd)

    return total_bytes


def remove_file_quietly(path: str | Path | None) -> bool:
    """Delete a file if it still exists.

    Failures are logged, never raised.

    Args:
        path: File to delete. None is a no-op.

    Returns:
        True if a file was deleted.
    """
    if path is None:
        return False
    try:
        Path(path).unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError:
        logger.warning("Failed to remove temp file %s", path, exc_info=True)
        return False


def cleanup_orphan_uploads(directory: str | Path, temp_suffix: str = UPLOAD_TEMP_SUFFIX) -> int:
    """Clean up temp uploads left behind by a previous process.

    Called during startup. Best-effort.

    Args:
        directory: Uploads directory to scan.
        temp_suffix: Suffix pattern to match (default: ".upload").

    Returns:
        Number of files removed.
    """
    directory = Path(directory)
    removed = 0

    if not directory.exists():
        return 0

    for temp_file in directory.glob(f"*{temp_suffix}"):
        try:
            temp_file.unlink()
            removed += 1
        except OSError:
            pass

    return removed
