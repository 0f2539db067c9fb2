"""Whisper Transcripts - Record store operations.

Three independent single-record operations over the transcriptions table:
list, create, delete. No update primitive exists; records are immutable.
"""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from transcripts.config import METHOD_CLIENT_DEFAULT
from transcripts.models import Transcription, utc_now


def generate_transcription_id() -> str:
    """Generate a unique transcription ID.

    Uses UUID4 for uniqueness. Format: uuid4 hex (32 chars).
    """
    return uuid.uuid4().hex


def list_all(session: Session) -> list[Transcription]:
    """Return all transcriptions, most recent first.

    Records sharing a timestamp fall back to reverse insertion order,
    so the listing is stable.
    """
    stmt = select(Transcription).order_by(
        Transcription.created_at.desc(),
        Transcription.id.desc(),
    )
    return list(session.execute(stmt).scalars())


def create(
    session: Session,
    text: str,
    confidence: float | None = None,
    method: str = METHOD_CLIENT_DEFAULT,
    language: str | None = None,
    duration: float | None = None,
) -> Transcription:
    """Persist a new transcription.

    Assigns transcription_id and created_at, then commits.

    Args:
        session: Active database session.
        text: Transcript body. Must be non-empty.
        confidence: Optional recognition confidence.
        method: Origin tag.
        language: Optional language code.
        duration: Optional audio duration in seconds.

    Returns:
        The committed Transcription.

    Raises:
        ValueError: If text is empty.
        SQLAlchemyError: If the commit fails (session is rolled back first).
    """
    if not text:
        raise ValueError("Transcription text must not be empty")

    record = Transcription(
        transcription_id=generate_transcription_id(),
        text=text,
        confidence=confidence,
        method=method,
        language=language,
        duration=duration,
        created_at=utc_now(),
    )
    session.add(record)
    try:
        session.commit()
    except Exception:
        session.rollback()
        raise
    return record


def delete_by_id(session: Session, transcription_id: str) -> bool:
    """Delete a transcription by its public ID.

    Returns:
        True if a record was found and deleted, False otherwise.
    """
    stmt = select(Transcription).where(Transcription.transcription_id == transcription_id)
    record = session.execute(stmt).scalar_one_or_none()
    if record is None:
        return False

    session.delete(record)
    try:
        session.commit()
    except Exception:
        session.rollback()
        raise
    return True
