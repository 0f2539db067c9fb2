"""Whisper Transcripts - Transcription API FastAPI application.

Endpoints:
- GET    /health               service, API key and record store status
- GET    /test-whisper         Whisper API reachability probe
- GET    /transcriptions       list transcriptions, newest first
- POST   /transcriptions       save a client-submitted transcript
- POST   /transcribe-audio     upload audio, transcribe with Whisper, save
- DELETE /transcriptions?id=   delete one transcription

Every response is a JSON envelope with HTTP 200; the `success` flag carries
the real outcome and failures carry a `message`.

Run with:
    uvicorn services.transcribe_api.main:app --port 5000
    python -m services.transcribe_api.main
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import Annotated

from fastapi import APIRouter, Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from services.transcribe_api.service import run_transcription
from transcripts import __version__, store
from transcripts.config import Settings
from transcripts.db import init_db, ping
from transcripts.schemas import (
    HealthResponse,
    MessageResponse,
    TranscribeAudioResponse,
    TranscriptionCreateRequest,
    TranscriptionDataResponse,
    TranscriptionListResponse,
    TranscriptionRecord,
    WhisperProbeResponse,
)
from transcripts.utils.upload_io import cleanup_orphan_uploads
from transcripts.whisper import WhisperClient

logger = logging.getLogger(__name__)

MSG_UNEXPECTED = "An unexpected error occurred"


# --- Application Context ---


@dataclass
class AppContext:
    """Per-application dependencies, built once in the lifespan.

    Shared across requests: settings and the Whisper client are read-only,
    the engine is safe for concurrent use, sessions are per request.
    """

    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    whisper: WhisperClient


def get_context(request: Request) -> AppContext:
    """Dependency that provides the application context.

    Raises:
        RuntimeError: If the context is missing (app lifespan not invoked).
    """
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise RuntimeError("Application context not initialized. App lifespan not invoked?")
    return context


def get_db_session(context: Annotated[AppContext, Depends(get_context)]):
    """Dependency that provides a database session."""
    session = context.session_factory()
    try:
        yield session
    finally:
        session.close()


# --- Lifespan ---


def _log_api_key_status(settings: Settings) -> None:
    if not settings.api_key_configured:
        logger.error("OPENAI_API_KEY environment variable is not set; Whisper transcription will not work")
    elif not settings.api_key_valid:
        logger.error("OPENAI_API_KEY appears to be invalid (should start with sk-)")
    else:
        logger.info("OpenAI API key is set and appears valid")


def _cleanup_orphan_uploads_safe(settings: Settings) -> None:
    """Remove temp uploads left by a previous process (best-effort, never fails)."""
    try:
        removed = cleanup_orphan_uploads(settings.uploads_dir)
        if removed > 0:
            logger.info("Startup cleanup: removed %d orphan uploads", removed)
    except OSError:
        logger.warning("Startup cleanup failed (non-fatal)", exc_info=True)


def create_app(
    settings: Settings | None = None,
    whisper_client: WhisperClient | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Deployment settings. Defaults to Settings.from_env().
        whisper_client: Optional Whisper client override (tests inject one
            backed by a mock transport).

    Returns:
        Configured FastAPI app. Database and uploads directory are set up
        when the app starts.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _log_api_key_status(settings)

        settings.uploads_dir.mkdir(parents=True, exist_ok=True)
        _cleanup_orphan_uploads_safe(settings)

        engine, SessionFactory = init_db(settings.database_url)
        if ping(engine):
            logger.info("Record store connected")
        else:
            logger.error("Record store is not reachable at startup")

        app.state.context = AppContext(
            settings=settings,
            engine=engine,
            session_factory=SessionFactory,
            whisper=whisper_client or WhisperClient.from_settings(settings),
        )
        yield
        engine.dispose()

    app = FastAPI(
        title="Whisper Transcripts API",
        description="Audio transcription via OpenAI Whisper with transcript storage.",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
    app.include_router(router)
    return app


# --- Error Handling ---


def make_error_response(message: str) -> JSONResponse:
    """Create a JSON failure envelope (always HTTP 200)."""
    return JSONResponse(
        status_code=200,
        content=MessageResponse(success=False, message=message).model_dump(),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reduce request validation errors to the failure envelope."""
    errors = exc.errors()
    if not errors:
        return make_error_response("Invalid request")
    first = errors[0]
    field_path = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query"))
    message = first.get("msg", "Invalid request")
    return make_error_response(f"Invalid {field_path}: {message}" if field_path else message)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log the error and return a generic envelope."""
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return make_error_response(MSG_UNEXPECTED)


# --- Endpoints ---


router = APIRouter()


@router.get("/health", response_model=HealthResponse, summary="Health check")
def health_check(context: Annotated[AppContext, Depends(get_context)]):
    """Report API key presence and record store reachability."""
    return HealthResponse(
        openai_key_configured=context.settings.api_key_configured,
        mongodb_connected=ping(context.engine),
    )


@router.get(
    "/test-whisper",
    response_model=WhisperProbeResponse,
    response_model_exclude_none=True,
    summary="Probe Whisper API connectivity",
)
async def test_whisper(context: Annotated[AppContext, Depends(get_context)]):
    """Check that the OpenAI API answers with the configured key."""
    result = await context.whisper.probe()
    return WhisperProbeResponse(**asdict(result))


@router.get(
    "/transcriptions",
    response_model=TranscriptionListResponse | MessageResponse,
    summary="List transcriptions",
)
def list_transcriptions(session: Annotated[Session, Depends(get_db_session)]):
    """List all transcriptions, most recent first."""
    try:
        records = store.list_all(session)
        return TranscriptionListResponse(
            data=[TranscriptionRecord.from_model(record) for record in records],
        )
    except SQLAlchemyError as e:
        logger.exception("Error fetching transcriptions")
        return MessageResponse(success=False, message=str(e))
    except Exception:
        logger.exception("Unexpected error fetching transcriptions")
        return MessageResponse(success=False, message=MSG_UNEXPECTED)


@router.post(
    "/transcriptions",
    response_model=TranscriptionDataResponse | MessageResponse,
    summary="Save a client-submitted transcript",
)
def create_transcription(
    request: TranscriptionCreateRequest,
    session: Annotated[Session, Depends(get_db_session)],
):
    """Save a transcript produced on the client (e.g. Web Speech API)."""
    try:
        record = store.create(
            session,
            text=request.text,
            confidence=request.confidence,
            method=request.method,
            language=request.language,
            duration=request.duration,
        )
    except SQLAlchemyError as e:
        logger.exception("Error saving transcription")
        return MessageResponse(success=False, message=str(e))
    except Exception:
        logger.exception("Unexpected error saving transcription")
        return MessageResponse(success=False, message=MSG_UNEXPECTED)

    logger.info("Saved %s transcription: %.50s", record.method, record.text)
    return TranscriptionDataResponse(data=TranscriptionRecord.from_model(record))


@router.post(
    "/transcribe-audio",
    response_model=TranscribeAudioResponse | MessageResponse,
    summary="Transcribe uploaded audio with Whisper",
)
async def transcribe_audio(
    context: Annotated[AppContext, Depends(get_context)],
    session: Annotated[Session, Depends(get_db_session)],
    audio: Annotated[UploadFile | None, File(description="Audio file to transcribe")] = None,
):
    """Transcribe an uploaded recording and save the transcript.

    Accepts multipart form data with a single `audio` file field
    (audio/* or video/webm, at most 25MB).
    """
    settings = context.settings
    outcome = await run_transcription(
        session=session,
        client=context.whisper,
        stream=audio.file if audio is not None else None,
        filename=audio.filename if audio is not None else None,
        content_type=audio.content_type if audio is not None else None,
        uploads_dir=settings.uploads_dir,
        max_bytes=settings.max_upload_bytes,
        declared_size=audio.size if audio is not None else None,
    )

    if not outcome.success:
        return MessageResponse(success=False, message=outcome.message or MSG_UNEXPECTED)

    result = outcome.transcription
    return TranscribeAudioResponse(
        transcript=result.text,
        language=result.language,
        duration=result.duration,
        segments=result.segments,
        id=outcome.record_id,
    )


@router.delete(
    "/transcriptions",
    response_model=MessageResponse,
    summary="Delete a transcription",
)
def delete_transcription(
    session: Annotated[Session, Depends(get_db_session)],
    transcription_id: Annotated[str | None, Query(alias="id")] = None,
):
    """Delete a transcription by ID."""
    if not transcription_id:
        return MessageResponse(success=False, message="ID is required")

    try:
        deleted = store.delete_by_id(session, transcription_id)
    except SQLAlchemyError as e:
        logger.exception("Error deleting transcription %s", transcription_id)
        return MessageResponse(success=False, message=str(e))

    if not deleted:
        return MessageResponse(success=False, message="Transcription not found")
    return MessageResponse(success=True, message="Deleted successfully")


app = create_app()


def main() -> None:
    """Run the API with uvicorn on the configured port."""
    import uvicorn

    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
