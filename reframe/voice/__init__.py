"""
Voice services: speech-to-text for spoken answers, text-to-speech for
assistant replies.
"""

from .speech_to_text import (
    LocalTranscriber,
    OpenAITranscriber,
    TranscriptionResult,
    decode_audio,
    get_transcriber,
)
from .text_to_speech import TextToSpeech

__all__ = [
    "LocalTranscriber",
    "OpenAITranscriber",
    "TranscriptionResult",
    "decode_audio",
    "get_transcriber",
    "TextToSpeech",
]
