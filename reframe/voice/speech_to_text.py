"""
Speech-to-Text for voice input.

Two backends turn recorded audio into text:
- OpenAI Whisper API (whisper-1), the default
- faster-whisper, running locally (install the local-whisper extra)

Browsers send recordings as base64 strings; decode_audio turns them back
into bytes.
"""

from __future__ import annotations

import base64
import binascii
import os
import tempfile
from dataclasses import dataclass
from typing import Optional

from ..config import Settings, get_settings
from ..errors import ServiceNotConfigured, TransportError


@dataclass
class TranscriptionResult:
    """Result from speech-to-text transcription."""
    text: str
    language: str = "en"
    duration: float = 0.0


def decode_audio(data: str) -> bytes:
    """
    Decode a base64 audio payload.

    Raises:
        ValueError: If data is empty or not valid base64
    """
    if not data or not isinstance(data, str):
        raise ValueError("Audio data is required")
    # Data URLs carry a "data:audio/webm;base64," prefix
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        audio = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Audio data is not valid base64")
    if not audio:
        raise ValueError("Audio data is required")
    return audio


class OpenAITranscriber:
    """Transcription through the OpenAI Whisper API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "whisper-1",
        language: str = "en",
        base_url: Optional[str] = None,
    ):
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model
        self.language = language
        self.base_url = base_url
        self._client = None

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                raise ServiceNotConfigured("OPENAI_API_KEY is not configured")
            from openai import OpenAI

            self._client = OpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    def transcribe_bytes(self, audio: bytes, filename: str = "audio.webm") -> TranscriptionResult:
        try:
            transcription = self.client.audio.transcriptions.create(
                file=(filename, audio, "audio/webm"),
                model=self.model,
                language=self.language,
            )
        except ServiceNotConfigured:
            raise
        except Exception as e:
            print(f"  [Voice] Whisper API error: {e}")
            raise TransportError(f"Failed to transcribe audio: {e}")
        return TranscriptionResult(text=transcription.text, language=self.language)


class LocalTranscriber:
    """
    Transcription with faster-whisper on this machine.

    Models (smallest to largest): tiny, base, small, medium, large-v3.
    The model is loaded on first use.
    """

    AVAILABLE_MODELS = ["tiny", "base", "small", "medium", "large-v3"]

    def __init__(
        self,
        model_size: str = "base",
        device: str = "cpu",
        compute_type: str = "int8",
        language: str = "en",
    ):
        self.model_size = model_size
        self.device = device
        self.compute_type = compute_type
        self.language = language
        self._model = None

    def _load_model(self):
        """Lazy load the Whisper model."""
        if self._model is None:
            print(f"  [Voice] Loading Whisper model '{self.model_size}'...")
            try:
                from faster_whisper import WhisperModel
            except ImportError:
                raise ServiceNotConfigured(
                    "faster-whisper is not installed; pip install reframe[local-whisper]"
                )
            self._model = WhisperModel(
                self.model_size,
                device=self.device,
                compute_type=self.compute_type,
            )
            print(f"  [Voice] Whisper model loaded on {self.device}")

    def transcribe_file(self, audio_path: str) -> TranscriptionResult:
        self._load_model()

        segments, info = self._model.transcribe(
            audio_path,
            language=self.language,
            beam_size=5,
            vad_filter=True,
        )
        text = " ".join(segment.text.strip() for segment in segments)
        return TranscriptionResult(text=text, language=info.language, duration=info.duration)

    def transcribe_bytes(self, audio: bytes, filename: str = "audio.webm") -> TranscriptionResult:
        suffix = os.path.splitext(filename)[1] or ".webm"
        with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as f:
            f.write(audio)
            path = f.name
        try:
            return self.transcribe_file(path)
        finally:
            os.unlink(path)


def get_transcriber(settings: Optional[Settings] = None):
    """Transcriber for the configured backend ("openai" or "local")."""
    settings = settings or get_settings()
    if settings.whisper_backend == "local":
        return LocalTranscriber(language=settings.whisper_language)
    return OpenAITranscriber(
        api_key=settings.openai_api_key,
        model=settings.whisper_model,
        language=settings.whisper_language,
        base_url=settings.openai_base_url,
    )
