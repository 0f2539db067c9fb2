"""Tests for transcripts.whisper module (Whisper API client)."""

import asyncio

import httpx
import pytest

from transcripts.whisper import (
    MSG_INVALID_API_KEY,
    MSG_NO_SPEECH,
    MSG_TIMEOUT,
    OutcomeKind,
    WhisperClient,
    build_upload_filename,
)


@pytest.fixture
def audio_path(tmp_path, wav_bytes):
    path = tmp_path / "clip.upload"
    path.write_bytes(wav_bytes)
    return path


def _transcribe(client, path, mime_type="audio/wav", filename="clip.wav"):
    return asyncio.run(client.transcribe(path, mime_type, filename))


class TestBuildUploadFilename:
    def test_uses_resolved_extension(self):
        name = build_upload_filename("audio/mpeg")
        assert name.startswith("audio_")
        assert name.endswith(".mp3")

    def test_filename_fallback(self):
        assert build_upload_filename("audio/x-flac", "song.flac").endswith(".flac")

    def test_names_are_unique(self):
        assert build_upload_filename("audio/webm") != build_upload_filename("audio/webm")


class TestTranscribeRequest:
    """Tests for the outgoing request shape."""

    def test_sends_expected_form(self, whisper_client, whisper_api, audio_path, wav_bytes):
        outcome = _transcribe(whisper_client, audio_path)

        assert outcome.ok
        assert len(whisper_api.transcription_requests) == 1
        request = whisper_api.transcription_requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.openai.com/v1/audio/transcriptions"
        assert request.headers["Authorization"] == "Bearer sk-test-0123456789"
        assert request.headers["Content-Type"].startswith("multipart/form-data")

        body = request.content
        assert b'name="model"\r\n\r\nwhisper-1' in body
        assert b'name="response_format"\r\n\r\nverbose_json' in body
        assert b'name="temperature"\r\n\r\n0' in body
        assert b'name="language"' not in body
        assert b"Content-Type: audio/wav" in body
        assert b'.wav"' in body
        assert b'filename="audio_' in body
        assert wav_bytes in body

    def test_default_content_type(self, whisper_client, whisper_api, audio_path):
        _transcribe(whisper_client, audio_path, mime_type=None, filename=None)

        body = whisper_api.transcription_requests[0].content
        assert b"Content-Type: audio/webm" in body
        assert b'.webm"' in body


class TestTranscribeSuccess:
    def test_trims_text_and_returns_metadata(self, whisper_client, audio_path):
        outcome = _transcribe(whisper_client, audio_path)

        assert outcome.kind == OutcomeKind.SUCCESS
        assert outcome.text == "hello world"
        assert outcome.language == "english"
        assert outcome.duration == 1.5
        assert outcome.segments[0]["end"] == 1.5
        assert outcome.message is None

    def test_missing_optional_fields(self, whisper_client, whisper_api, audio_path):
        whisper_api.payload = {"text": "just text"}

        outcome = _transcribe(whisper_client, audio_path)

        assert outcome.ok
        assert outcome.language is None
        assert outcome.duration is None
        assert outcome.segments == []

    @pytest.mark.parametrize("payload", [{"text": "   "}, {"text": ""}, {"language": "en"}, {"text": None}])
    def test_blank_text_is_no_speech(self, whisper_client, whisper_api, audio_path, payload):
        whisper_api.payload = payload

        outcome = _transcribe(whisper_client, audio_path)

        assert outcome.kind == OutcomeKind.NO_SPEECH
        assert outcome.message == MSG_NO_SPEECH
        assert outcome.text is None

    def test_unparseable_success_body(self, whisper_client, whisper_api, audio_path):
        whisper_api.raw_body = b"<html>oops</html>"

        outcome = _transcribe(whisper_client, audio_path)

        assert outcome.kind == OutcomeKind.HTTP_ERROR
        assert outcome.message == "OpenAI API error: 200 OK"


class TestTranscribeErrors:
    def test_structured_error_message(self, whisper_client, whisper_api, audio_path):
        whisper_api.status_code = 401
        whisper_api.payload = {"error": {"message": "Incorrect API key provided"}}

        outcome = _transcribe(whisper_client, audio_path)

        assert outcome.kind == OutcomeKind.HTTP_ERROR
        assert outcome.status_code == 401
        assert outcome.message == "Incorrect API key provided"

    def test_audio_error_gets_guidance(self, whisper_client, whisper_api, audio_path):
        whisper_api.status_code = 400
        whisper_api.payload = {"error": {"message": "Invalid file format. Audio could not be decoded"}}

        outcome = _transcribe(whisper_client, audio_path)

        assert outcome.message == (
            "Invalid file format. Audio could not be decoded"
            " - Please ensure the audio file is valid and not corrupted."
        )

    def test_rate_limit_gets_guidance(self, whisper_client, whisper_api, audio_path):
        whisper_api.status_code = 429
        whisper_api.payload = {"error": {"message": "Rate limit reached for requests"}}

        outcome = _transcribe(whisper_client, audio_path)

        assert outcome.message.endswith(" - Please wait a moment before trying again.")

    def test_non_json_error_body(self, whisper_client, whisper_api, audio_path):
        whisper_api.status_code = 502
        whisper_api.raw_body = b"Bad gateway"

        outcome = _transcribe(whisper_client, audio_path)

        assert outcome.kind == OutcomeKind.HTTP_ERROR
        assert outcome.message == "OpenAI API error: 502 Bad Gateway"

    def test_json_error_without_message(self, whisper_client, whisper_api, audio_path):
        whisper_api.status_code = 500
        whisper_api.payload = {"detail": "nope"}

        outcome = _transcribe(whisper_client, audio_path)

        assert outcome.message == "OpenAI API error: 500 Internal Server Error"

    def test_network_error(self, whisper_client, whisper_api, audio_path):
        whisper_api.error = httpx.ConnectError("connection refused")

        outcome = _transcribe(whisper_client, audio_path)

        assert outcome.kind == OutcomeKind.NETWORK_ERROR
        assert outcome.message == "Transcription error: connection refused"

    def test_httpx_timeout(self, whisper_client, whisper_api, audio_path):
        whisper_api.error = httpx.ReadTimeout("read timed out")

        outcome = _transcribe(whisper_client, audio_path)

        assert outcome.kind == OutcomeKind.TIMEOUT
        assert outcome.message == MSG_TIMEOUT

    def test_deadline_cancels_slow_call(self, whisper_api, audio_path):
        async def stall(request):
            await asyncio.sleep(5)

        whisper_api.on_request = stall
        client = WhisperClient(
            api_key="sk-test",
            timeout_seconds=0.05,
            transport=httpx.MockTransport(whisper_api.handler),
        )

        outcome = _transcribe(client, audio_path)

        assert outcome.kind == OutcomeKind.TIMEOUT
        assert outcome.message == MSG_TIMEOUT


class TestConfigErrors:
    @pytest.mark.parametrize("api_key", [None, "", "bad-key"])
    def test_invalid_key_short_circuits(self, whisper_api, audio_path, api_key):
        client = WhisperClient(api_key=api_key, transport=httpx.MockTransport(whisper_api.handler))

        outcome = _transcribe(client, audio_path)

        assert outcome.kind == OutcomeKind.CONFIG_ERROR
        assert outcome.message == MSG_INVALID_API_KEY
        assert whisper_api.requests == []


class TestProbe:
    def test_success(self, whisper_client, whisper_api):
        result = asyncio.run(whisper_client.probe())

        assert result.success is True
        assert result.whisper_available is True
        assert result.message == "OpenAI API connection successful"
        assert str(whisper_api.requests[0].url) == "https://api.openai.com/v1/models"

    def test_upstream_failure(self, whisper_client, whisper_api):
        whisper_api.status_code = 401
        whisper_api.raw_body = b'{"error": "bad key"}'

        result = asyncio.run(whisper_client.probe())

        assert result.success is False
        assert result.message == "API connection failed: 401 Unauthorized"
        assert result.details == '{"error": "bad key"}'

    def test_connection_failure(self, whisper_client, whisper_api):
        whisper_api.error = httpx.ConnectError("no route to host")

        result = asyncio.run(whisper_client.probe())

        assert result.success is False
        assert result.message == "Connection test failed: no route to host"

    def test_not_configured(self, whisper_api):
        client = WhisperClient(api_key=None, transport=httpx.MockTransport(whisper_api.handler))

        result = asyncio.run(client.probe())

        assert result.success is False
        assert result.message == "OpenAI API key not configured properly"
        assert whisper_api.requests == []
