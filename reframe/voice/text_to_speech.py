"""
Text-to-Speech with ElevenLabs.

Generates MP3 audio for assistant replies. Playback happens in the client;
this module only produces the bytes.
"""

from __future__ import annotations

import os
from typing import Optional

import requests

from ..config import DEFAULT_TTS_MODEL, DEFAULT_VOICE_ID, Settings, get_settings
from ..errors import ServiceNotConfigured, TransportError

ELEVENLABS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"


class TextToSpeech:
    """
    ElevenLabs speech synthesis.

    Usage:
        tts = TextToSpeech()
        mp3 = tts.generate_audio("Tell me more about that.")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        voice_id: str = DEFAULT_VOICE_ID,
        model_id: str = DEFAULT_TTS_MODEL,
        stability: float = 0.5,
        similarity_boost: float = 0.75,
        timeout: int = 30,
    ):
        """
        Args:
            api_key: ElevenLabs API key (or set ELEVEN_LABS_API_KEY)
            voice_id: ElevenLabs voice ID (default: Rachel)
            model_id: ElevenLabs model ID
            stability: Voice stability 0.0-1.0 (lower = more expressive)
            similarity_boost: How closely to match the original voice 0.0-1.0
        """
        self.api_key = api_key or os.environ.get("ELEVEN_LABS_API_KEY")
        self.voice_id = voice_id
        self.model_id = model_id
        self.stability = stability
        self.similarity_boost = similarity_boost
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "TextToSpeech":
        settings = settings or get_settings()
        return cls(
            api_key=settings.eleven_labs_api_key,
            voice_id=settings.eleven_labs_voice_id,
            model_id=settings.eleven_labs_model_id,
        )

    def generate_audio(self, text: str) -> bytes:
        """
        Synthesize text to MP3 bytes.

        Raises:
            ValueError: If text is blank
            ServiceNotConfigured: If no API key is set
            TransportError: If ElevenLabs rejects the request
        """
        if not text or not text.strip():
            raise ValueError("Text is required")
        if not self.api_key:
            raise ServiceNotConfigured("ELEVEN_LABS_API_KEY is not configured")

        headers = {
            "xi-api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
        }
        payload = {
            "text": text.strip(),
            "model_id": self.model_id,
            "voice_settings": {
                "stability": self.stability,
                "similarity_boost": self.similarity_boost,
            },
        }

        try:
            response = requests.post(
                ELEVENLABS_URL.format(voice_id=self.voice_id),
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"Failed to generate speech: {e}")

        if not response.ok:
            message = "Unknown error"
            try:
                data = response.json()
            except ValueError:
                data = None
            detail = data.get("detail") if isinstance(data, dict) else None
            if isinstance(detail, dict):
                message = detail.get("message", message)
            elif detail:
                message = str(detail)
            print(f"  [Voice] ElevenLabs API error {response.status_code}: {message}")
            raise TransportError(message, status_code=response.status_code)

        return response.content
