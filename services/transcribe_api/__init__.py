"""Whisper Transcripts - Transcription API service.

FastAPI service for audio transcription via OpenAI Whisper and transcript
storage (list, create, delete).
"""

__all__: list[str] = []
