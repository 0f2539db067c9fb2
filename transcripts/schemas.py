"""Whisper Transcripts - Pydantic models for API validation.

Request/response models for the transcription API. Every response is an
envelope carrying a `success` flag; failures use MessageResponse.
"""

from datetime import UTC, datetime  # noqa: I001
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from transcripts.config import METHOD_CLIENT_DEFAULT
from transcripts.models import Transcription


# --- Request Models ---


class TranscriptionCreateRequest(BaseModel):
    """Request payload for a client-submitted transcript.

    Unknown keys are ignored so browser clients may send extra fields.
    """

    model_config = ConfigDict(extra="ignore")

    text: str = Field(..., min_length=1, description="Transcript body")
    confidence: float | None = Field(default=None, description="Optional recognition confidence")
    method: str = Field(
        default=METHOD_CLIENT_DEFAULT,
        description="Transcript origin tag (e.g. 'webkit', 'whisper')",
    )
    language: str | None = Field(default=None, description="Optional language code")
    duration: float | None = Field(default=None, ge=0, description="Audio duration in seconds")

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text must not be blank")
        return value


# --- Record Models ---


class TranscriptionRecord(BaseModel):
    """Transcription as returned by the API."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: str = Field(..., description="Unique transcription identifier")
    text: str = Field(..., description="Transcript body")
    confidence: float | None = Field(default=None, description="Recognition confidence")
    method: str = Field(..., description="Transcript origin tag")
    language: str | None = Field(default=None, description="Language code")
    duration: float | None = Field(default=None, description="Audio duration in seconds")
    created_at: datetime = Field(
        ...,
        alias="createdAt",
        description="When this record was created",
    )

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands timestamps back without tzinfo; they are stored as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @classmethod
    def from_model(cls, record: Transcription) -> "TranscriptionRecord":
        return cls(
            id=record.transcription_id,
            text=record.text,
            confidence=record.confidence,
            method=record.method,
            language=record.language,
            duration=record.duration,
            created_at=record.created_at,
        )


# --- Response Models ---


class MessageResponse(BaseModel):
    """Envelope carrying only an outcome flag and a human-readable message.

    Used for every failure and for delete confirmations.
    """

    model_config = ConfigDict(extra="forbid")

    success: bool = Field(..., description="Whether the operation succeeded")
    message: str = Field(..., description="Human-readable outcome description")


class HealthResponse(BaseModel):
    """Response for the health check."""

    model_config = ConfigDict(extra="forbid")

    message: str = Field(default="Server is running!")
    openai_key_configured: bool = Field(..., description="True if an OpenAI API key is set")
    mongodb_connected: bool = Field(..., description="True if the record store answers")


class WhisperProbeResponse(BaseModel):
    """Response for the Whisper API connectivity probe."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    message: str
    whisper_available: bool | None = Field(default=None)
    details: str | None = Field(default=None, description="Raw upstream error body")


class TranscriptionListResponse(BaseModel):
    """Response listing all transcriptions, newest first."""

    model_config = ConfigDict(extra="forbid")

    success: bool = True
    data: list[TranscriptionRecord]


class TranscriptionDataResponse(BaseModel):
    """Response carrying a single created transcription."""

    model_config = ConfigDict(extra="forbid")

    success: bool = True
    data: TranscriptionRecord


class TranscribeAudioResponse(BaseModel):
    """Response for a successful audio transcription."""

    model_config = ConfigDict(extra="forbid")

    success: bool = True
    transcript: str = Field(..., description="Trimmed transcript text")
    language: str | None = Field(default=None, description="Language detected by Whisper")
    duration: float | None = Field(default=None, description="Audio duration in seconds")
    segments: list[dict[str, Any]] = Field(
        default_factory=list, description="Time-aligned segments from Whisper"
    )
    id: str = Field(..., description="ID of the persisted transcription")
