"""Whisper Transcripts - Audio transcription pipeline.

Turns one uploaded audio file into a persisted transcription:

    receiving_upload -> validating -> transcribing -> persisting -> cleaning_up -> done

Any stage may fail; a failure skips straight to cleaning_up. The temp upload
is owned by a TemporaryUpload context manager and deleted exactly once on
every exit path, including cancellation. The pipeline never raises: every
outcome, including unexpected errors, comes back as an IngestOutcome.

NO retries, NO queueing. One request, one attempt.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from transcripts import store
from transcripts.config import MAX_UPLOAD_BYTES, METHOD_WHISPER, UNKNOWN_LANGUAGE
from transcripts.utils.extensions import is_accepted_mime_type
from transcripts.utils.paths import upload_temp_path
from transcripts.utils.upload_io import (
    UploadTooLargeError,
    remove_file_quietly,
    stream_to_file_limited,
)
from transcripts.whisper import (
    MSG_INVALID_API_KEY,
    OutcomeKind,
    TranscriptionOutcome,
    WhisperClient,
)

if TYPE_CHECKING:
    from typing import BinaryIO

logger = logging.getLogger(__name__)


# --- Error Codes ---


class TranscribeErrorCode(StrEnum):
    """Failure reasons for the transcription pipeline."""

    NO_FILE = "NO_FILE"
    UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"
    EMPTY_FILE = "EMPTY_FILE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    INVALID_API_KEY = "INVALID_API_KEY"
    TIMEOUT = "TIMEOUT"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    NO_SPEECH = "NO_SPEECH"
    STORE_FAILED = "STORE_FAILED"
    INTERNAL = "INTERNAL"


MSG_NO_FILE = "No audio file provided"
MSG_UNSUPPORTED_TYPE = "Only audio files are allowed"
MSG_EMPTY_FILE = "Audio file is empty"
MSG_FILE_TOO_LARGE = "File too large. Maximum size is 25MB."

# Whisper outcome kind -> pipeline failure code
_OUTCOME_ERROR_CODES = {
    OutcomeKind.NO_SPEECH: TranscribeErrorCode.NO_SPEECH,
    OutcomeKind.HTTP_ERROR: TranscribeErrorCode.UPSTREAM_ERROR,
    OutcomeKind.TIMEOUT: TranscribeErrorCode.TIMEOUT,
    OutcomeKind.NETWORK_ERROR: TranscribeErrorCode.NETWORK_ERROR,
    OutcomeKind.CONFIG_ERROR: TranscribeErrorCode.INVALID_API_KEY,
}


class PipelineState(StrEnum):
    """States visited by the transcription pipeline."""

    RECEIVING_UPLOAD = "receiving_upload"
    VALIDATING = "validating"
    TRANSCRIBING = "transcribing"
    PERSISTING = "persisting"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"


# --- Result Types ---


@dataclass
class IngestOutcome:
    """Terminal result of one pipeline run.

    On success, `transcription` holds the Whisper result and `record_id` the
    persisted transcription ID. On failure, `error_code` and `message` are set.
    `trace` lists the states visited, in order.
    """

    success: bool
    message: str | None = None
    error_code: TranscribeErrorCode | None = None
    transcription: TranscriptionOutcome | None = None
    record_id: str | None = None
    trace: list[PipelineState] = field(default_factory=list)


# --- Temp Upload Lifecycle ---


class TemporaryUpload:
    """Temp file holding one upload for the duration of a request.

    Used as a context manager; the file is removed on exit whatever the
    outcome. release() is idempotent, so removal happens at most once.
    """

    def __init__(self, path: Path):
        self.path = path
        self.size = 0
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        """Delete the temp file if present. Returns True if a file was removed."""
        if self._released:
            return False
        self._released = True
        removed = remove_file_quietly(self.path)
        if removed:
            logger.debug("Removed temp upload %s", self.path)
        return removed

    def write_finished(self, future: asyncio.Future) -> None:
        """Done callback for the background write of this upload.

        The writer thread outlives a cancelled request, so it can create the
        file after release() already ran; remove that late file here.
        """
        if not future.cancelled():
            future.exception()
        if self._released and remove_file_quietly(self.path):
            logger.debug("Removed temp upload %s written after release", self.path)

    def __enter__(self) -> TemporaryUpload:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


# --- Pipeline ---


async def run_transcription(
    session: Session,
    client: WhisperClient,
    stream: BinaryIO | None,
    filename: str | None,
    content_type: str | None,
    uploads_dir: str | Path,
    max_bytes: int = MAX_UPLOAD_BYTES,
    declared_size: int | None = None,
) -> IngestOutcome:
    """Run the transcription pipeline for one upload.

    Args:
        session: Active database session.
        client: Whisper API client.
        stream: Upload body, or None when the request carried no file.
        filename: Client-supplied filename (used only for extension fallback).
        content_type: Declared MIME type of the upload.
        uploads_dir: Directory for the temp upload.
        max_bytes: Upload size ceiling.
        declared_size: Size reported by the HTTP layer, if already known.

    Returns:
        IngestOutcome. Never raises, except for task cancellation.
    """
    trace = [PipelineState.RECEIVING_UPLOAD]

    with TemporaryUpload(upload_temp_path(uploads_dir)) as upload:
        try:
            outcome = await _run_stages(
                upload,
                trace,
                session=session,
                client=client,
                stream=stream,
                filename=filename,
                content_type=content_type,
                max_bytes=max_bytes,
                declared_size=declared_size,
            )
        except Exception as e:
            # Log full exception server-side, return a short message to the client
            logger.exception("Unexpected error during transcription")
            outcome = _failed(trace, TranscribeErrorCode.INTERNAL, f"Transcription error: {e}")

    trace.append(PipelineState.CLEANING_UP)
    if outcome.success:
        trace.append(PipelineState.DONE)
    outcome.trace = trace
    return outcome


async def _run_stages(
    upload: TemporaryUpload,
    trace: list[PipelineState],
    *,
    session: Session,
    client: WhisperClient,
    stream: BinaryIO | None,
    filename: str | None,
    content_type: str | None,
    max_bytes: int,
    declared_size: int | None,
) -> IngestOutcome:
    # 1. Receive: file present, allowed type, within size while writing
    if stream is None:
        return _failed(trace, TranscribeErrorCode.NO_FILE, MSG_NO_FILE)

    if not is_accepted_mime_type(content_type):
        logger.info("Rejected upload with MIME type %r", content_type)
        return _failed(trace, TranscribeErrorCode.UNSUPPORTED_TYPE, MSG_UNSUPPORTED_TYPE)

    if declared_size is not None and declared_size > max_bytes:
        return _too_large(trace, declared_size)

    # Shielded so a cancelled request still sees the write finish (see write_finished)
    write = asyncio.ensure_future(
        asyncio.to_thread(stream_to_file_limited, stream, upload.path, max_bytes)
    )
    write.add_done_callback(upload.write_finished)
    try:
        upload.size = await asyncio.shield(write)
    except UploadTooLargeError:
        return _too_large(trace, None)

    logger.info(
        "Received upload (original=%s, size=%d bytes, type=%s, path=%s)",
        filename,
        upload.size,
        content_type,
        upload.path,
    )

    # 2. Validate
    trace.append(PipelineState.VALIDATING)
    if upload.size == 0:
        return _failed(trace, TranscribeErrorCode.EMPTY_FILE, MSG_EMPTY_FILE)
    if upload.size > max_bytes:
        return _too_large(trace, upload.size)
    if not client.api_key_valid:
        logger.error("Invalid or missing OpenAI API key")
        return _failed(trace, TranscribeErrorCode.INVALID_API_KEY, MSG_INVALID_API_KEY)

    # 3. Transcribe
    trace.append(PipelineState.TRANSCRIBING)
    result = await client.transcribe(upload.path, content_type, filename)
    if not result.ok:
        return _failed(trace, _OUTCOME_ERROR_CODES[result.kind], result.message)

    # 4. Persist
    trace.append(PipelineState.PERSISTING)
    try:
        record = await asyncio.to_thread(
            store.create,
            session,
            text=result.text,
            confidence=None,
            method=METHOD_WHISPER,
            language=result.language or UNKNOWN_LANGUAGE,
            duration=result.duration,
        )
    except SQLAlchemyError as e:
        logger.exception("Failed to save transcription")
        return _failed(trace, TranscribeErrorCode.STORE_FAILED, f"Failed to save transcription: {e}")

    logger.info(
        "Saved whisper transcription id=%s (language=%s, chars=%d)",
        record.transcription_id,
        record.language,
        len(record.text),
    )
    return IngestOutcome(
        success=True,
        transcription=result,
        record_id=record.transcription_id,
    )


# --- Internal Helpers ---


def _failed(
    trace: list[PipelineState],
    error_code: TranscribeErrorCode,
    message: str | None,
) -> IngestOutcome:
    trace.append(PipelineState.FAILED)
    logger.info("Transcription failed: %s (%s)", error_code, message)
    return IngestOutcome(success=False, message=message, error_code=error_code)


def _too_large(trace: list[PipelineState], size: int | None) -> IngestOutcome:
    if size is not None:
        logger.info("File too large: %d bytes", size)
    return _failed(trace, TranscribeErrorCode.FILE_TOO_LARGE, MSG_FILE_TOO_LARGE)
