"""Whisper Transcripts - SQLAlchemy ORM models.

Database tables:
1. transcriptions
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


class Transcription(Base):
    """A persisted transcript, submitted by a client or produced by Whisper.

    Rows are immutable after creation; the only lifecycle change is deletion.
    """

    __tablename__ = "transcriptions"

    # Surrogate primary key (also gives a stable insertion order)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Public identifier exposed over the API as "id"
    transcription_id: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, index=True
    )

    text: Mapped[str] = mapped_column(Text, nullable=False)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Origin tag: "webkit" (client-side default), "whisper" (API-derived), or any string
    method: Mapped[str] = mapped_column(String(64), nullable=False)

    language: Mapped[str | None] = mapped_column(String(32), nullable=True)
    duration: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (Index("ix_transcriptions_created_at", "created_at"),)
