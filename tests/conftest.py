"""Shared pytest fixtures for Whisper Transcripts tests.

This module contains common fixtures used across multiple test files:
isolated settings, a temporary database, a fake Whisper API served through
httpx.MockTransport, and a FastAPI test client wired to both.
"""

import io
import wave
from dataclasses import replace

import httpx
import pytest
from fastapi.testclient import TestClient

from services.transcribe_api.main import create_app
from transcripts.config import Settings, get_database_url
from transcripts.db import init_db
from transcripts.whisper import WhisperClient

TEST_API_KEY = "sk-test-0123456789"


class FakeWhisperAPI:
    """Scriptable stand-in for the OpenAI API.

    Records every request. By default answers transcription requests with a
    verbose_json payload and model listings with 200.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.payload: dict | None = {
            "text": " hello world ",
            "language": "english",
            "duration": 1.5,
            "segments": [{"id": 0, "start": 0.0, "end": 1.5, "text": " hello world "}],
        }
        self.raw_body: bytes | None = None
        self.error: Exception | None = None
        self.on_request = None

    @property
    def transcription_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/audio/transcriptions")]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.on_request is not None:
            await self.on_request(request)
        if self.error is not None:
            raise self.error
        if self.raw_body is not None:
            return httpx.Response(self.status_code, content=self.raw_body)
        if request.url.path.endswith("/models"):
            return httpx.Response(self.status_code, json={"data": [{"id": "whisper-1"}]})
        return httpx.Response(self.status_code, json=self.payload)


@pytest.fixture
def whisper_api():
    """Fake Whisper API; tweak its attributes inside a test to script responses."""
    return FakeWhisperAPI()


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a temp database and uploads directory."""
    return Settings(
        openai_api_key=TEST_API_KEY,
        database_url=get_database_url(tmp_path / "test.db"),
        uploads_dir=tmp_path / "uploads",
    )


@pytest.fixture
def whisper_client(settings, whisper_api):
    """Whisper client that talks to the fake API."""
    return WhisperClient.from_settings(settings, transport=httpx.MockTransport(whisper_api.handler))


@pytest.fixture
def temp_db(settings):
    """Create a temporary database for testing.

    Yields:
        tuple: (engine, SessionFactory)
    """
    engine, SessionFactory = init_db(settings.database_url)
    yield engine, SessionFactory
    engine.dispose()


@pytest.fixture
def session(temp_db):
    """A session on the temporary database."""
    _, SessionFactory = temp_db
    session = SessionFactory()
    try:
        yield session
    finally:
        session.close()


def _test_client(settings, whisper_api):
    client = WhisperClient.from_settings(settings, transport=httpx.MockTransport(whisper_api.handler))
    return TestClient(create_app(settings, whisper_client=client))


@pytest.fixture
def client(settings, whisper_api):
    """Create a FastAPI test client with temp database and fake Whisper API.

    Yields:
        tuple: (test_client, settings)
    """
    with _test_client(settings, whisper_api) as test_client:
        yield test_client, settings


@pytest.fixture
def client_without_key(settings, whisper_api):
    """Test client whose settings carry no OpenAI API key."""
    settings = replace(settings, openai_api_key=None)
    with _test_client(settings, whisper_api) as test_client:
        yield test_client, settings


@pytest.fixture
def wav_bytes():
    """A minimal valid WAV file (0.5 second of silence, mono, 16 kHz)."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(16000)
        wf.writeframes(b"\x00" * 16000)
    return buffer.getvalue()
