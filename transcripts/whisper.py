"""Whisper Transcripts - OpenAI Whisper API client.

Sends a temp upload to the Whisper transcription endpoint and maps every
result, including failures, onto a single TranscriptionOutcome tagged by
OutcomeKind. Callers branch on the tag; nothing here raises for upstream,
timeout, or configuration problems.

Request shape:
- multipart file streamed from disk, named audio_<ms>_<token><ext>
- model=whisper-1, response_format=verbose_json, temperature=0
- no language field, so Whisper auto-detects it

The whole call is bounded by the configured timeout (60s by default).
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx

from transcripts.config import (
    OPENAI_BASE_URL,
    TRANSCRIPTION_TIMEOUT_SECONDS,
    WHISPER_MODEL,
    WHISPER_RESPONSE_FORMAT,
    WHISPER_TEMPERATURE,
    is_valid_api_key,
)
from transcripts.utils.extensions import resolve_extension

if TYPE_CHECKING:
    from transcripts.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "audio/webm"

MSG_INVALID_API_KEY = "Invalid or missing OpenAI API key. Please check your .env file."
MSG_PROBE_NOT_CONFIGURED = "OpenAI API key not configured properly"
MSG_PROBE_OK = "OpenAI API connection successful"
MSG_TIMEOUT = "Transcription request timed out. Please try with a shorter audio file."
MSG_NO_SPEECH = (
    "No transcription found in audio. "
    "The audio might be too quiet, corrupted, or contain no speech."
)
HINT_AUDIO = " - Please ensure the audio file is valid and not corrupted."
HINT_RATE_LIMIT = " - Please wait a moment before trying again."


class OutcomeKind(StrEnum):
    """Discriminant for TranscriptionOutcome."""

    SUCCESS = "success"
    NO_SPEECH = "no_speech"
    HTTP_ERROR = "http_error"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    CONFIG_ERROR = "config_error"


@dataclass
class TranscriptionOutcome:
    """Result of a Whisper call.

    For SUCCESS, text/language/duration/segments are filled in. Every other
    kind carries a user-facing message.
    """

    kind: OutcomeKind
    text: str | None = None
    language: str | None = None
    duration: float | None = None
    segments: list[dict[str, Any]] = field(default_factory=list)
    message: str | None = None
    status_code: int | None = None

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS


@dataclass
class ProbeResult:
    """Result of a Whisper API connectivity check."""

    success: bool
    message: str
    whisper_available: bool | None = None
    details: str | None = None


def build_upload_filename(mime_type: str | None, original_filename: str | None = None) -> str:
    """Build the filename sent to Whisper.

    A millisecond timestamp plus a short random token keeps names unique
    across concurrent requests.
    """
    ext = resolve_extension(mime_type, original_filename)
    return f"audio_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}{ext}"


def _status_message(response: httpx.Response) -> str:
    return f"OpenAI API error: {response.status_code} {response.reason_phrase}"


def normalize_error_response(response: httpx.Response) -> str:
    """Turn a non-2xx Whisper response into a user-facing message.

    Prefers the structured error.message from the body, with guidance
    appended for audio and rate-limit problems. Falls back to the status
    line when the body is not JSON or has no message.
    """
    try:
        payload = response.json()
    except ValueError:
        return _status_message(response)

    error = payload.get("error") if isinstance(payload, dict) else None
    message = error.get("message") if isinstance(error, dict) else None
    if not isinstance(message, str) or not message:
        return _status_message(response)

    lowered = message.lower()
    if "audio" in lowered:
        message += HINT_AUDIO
    if "rate limit" in lowered:
        message += HINT_RATE_LIMIT
    return message


def normalize_success_response(response: httpx.Response) -> TranscriptionOutcome:
    """Map a 2xx Whisper response onto SUCCESS or NO_SPEECH."""
    try:
        payload = response.json()
    except ValueError:
        logger.warning("Whisper returned a non-JSON success body")
        return TranscriptionOutcome(
            kind=OutcomeKind.HTTP_ERROR,
            message=_status_message(response),
            status_code=response.status_code,
        )

    if not isinstance(payload, dict):
        payload = {}

    raw_text = payload.get("text")
    text = raw_text.strip() if isinstance(raw_text, str) else ""
    if not text:
        return TranscriptionOutcome(kind=OutcomeKind.NO_SPEECH, message=MSG_NO_SPEECH)

    segments = payload.get("segments")
    return TranscriptionOutcome(
        kind=OutcomeKind.SUCCESS,
        text=text,
        language=payload.get("language") or None,
        duration=payload.get("duration"),
        segments=segments if isinstance(segments, list) else [],
        status_code=response.status_code,
    )


class WhisperClient:
    """Async client for the OpenAI Whisper transcription API.

    A fresh httpx.AsyncClient is opened per call; the instance itself only
    holds read-only configuration and is safe to share between requests.
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = OPENAI_BASE_URL,
        timeout_seconds: float = TRANSCRIPTION_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> WhisperClient:
        return cls(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.transcription_timeout,
            transport=transport,
        )

    @property
    def api_key_valid(self) -> bool:
        return is_valid_api_key(self._api_key)

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )

    async def transcribe(
        self,
        file_path: str | Path,
        mime_type: str | None,
        original_filename: str | None = None,
    ) -> TranscriptionOutcome:
        """Transcribe an audio file on disk.

        Args:
            file_path: Path of the temp upload.
            mime_type: Declared MIME type of the upload.
            original_filename: Client filename, used for extension fallback.

        Returns:
            TranscriptionOutcome tagged with the outcome kind.
        """
        if not self.api_key_valid:
            return TranscriptionOutcome(kind=OutcomeKind.CONFIG_ERROR, message=MSG_INVALID_API_KEY)

        filename = build_upload_filename(mime_type, original_filename)
        content_type = mime_type or DEFAULT_CONTENT_TYPE
        form = {
            "model": WHISPER_MODEL,
            "response_format": WHISPER_RESPONSE_FORMAT,
            "temperature": WHISPER_TEMPERATURE,
        }
        logger.info("Calling Whisper API (filename=%s, content_type=%s)", filename, content_type)

        try:
            with open(file_path, "rb") as audio_file:
                async with asyncio.timeout(self._timeout):
                    async with self._http_client() as client:
                        response = await client.post(
                            "/audio/transcriptions",
                            files={"file": (filename, audio_file, content_type)},
                            data=form,
                        )
        except (TimeoutError, httpx.TimeoutException):
            logger.warning("Whisper request timed out after %.0fs", self._timeout)
            return TranscriptionOutcome(kind=OutcomeKind.TIMEOUT, message=MSG_TIMEOUT)
        except httpx.HTTPError as e:
            logger.warning("Whisper request failed: %s", e)
            return TranscriptionOutcome(
                kind=OutcomeKind.NETWORK_ERROR,
                message=f"Transcription error: {e}",
            )

        logger.info("Whisper API responded %d %s", response.status_code, response.reason_phrase)

        if not response.is_success:
            logger.warning("Whisper API error body: %s", response.text)
            return TranscriptionOutcome(
                kind=OutcomeKind.HTTP_ERROR,
                message=normalize_error_response(response),
                status_code=response.status_code,
            )

        return normalize_success_response(response)

    async def probe(self) -> ProbeResult:
        """Check that the API is reachable with the configured key.

        Lists models, which costs nothing and exercises authentication.
        """
        if not self.api_key_valid:
            return ProbeResult(success=False, message=MSG_PROBE_NOT_CONFIGURED)

        try:
            async with asyncio.timeout(self._timeout):
                async with self._http_client() as client:
                    response = await client.get("/models")
        except (TimeoutError, httpx.HTTPError) as e:
            reason = str(e) or "request timed out"
            return ProbeResult(success=False, message=f"Connection test failed: {reason}")

        if response.is_success:
            return ProbeResult(success=True, message=MSG_PROBE_OK, whisper_available=True)

        return ProbeResult(
            success=False,
            message=f"API connection failed: {response.status_code} {response.reason_phrase}",
            details=response.text,
        )
