"""Whisper Transcripts - Core application modules.

Provides:
- Configuration constants and environment-backed Settings
- SQLAlchemy model and record store primitives for transcriptions
- Whisper API client with tagged outcomes
- Upload utilities: extension resolution, size-limited temp file writes
"""

__version__ = "0.1.0"
