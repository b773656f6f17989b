"""
Runtime settings, read from the environment.

A .env file at the project root is loaded first; variables already set in
the environment win over it.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


def _load_dotenv(env_path: Optional[Path] = None):
    """Load .env file from project root if present."""
    env_path = env_path or Path(__file__).resolve().parent.parent / ".env"
    if env_path.exists():
        for line in env_path.read_text().splitlines():
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, _, value = line.partition("=")
                os.environ.setdefault(key.strip(), value.strip())


_load_dotenv()


# ElevenLabs "Rachel"
DEFAULT_VOICE_ID = "21m00Tcm4TlvDq8ikWAM"
DEFAULT_TTS_MODEL = "eleven_turbo_v2_5"
DEFAULT_CHAT_MODEL = "gpt-4o-mini"
DEFAULT_OLLAMA_MODEL = "mistral:latest"

# Experience descriptions longer than this are rejected by the chat endpoint
MAX_EXPERIENCE_CHARS = 500
# Shortest reply accepted as a fallback summary
SUMMARY_MIN_CHARS = 20


@dataclass
class Settings:
    """Settings for the chat, transcription and speech services."""
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    chat_model: str = DEFAULT_CHAT_MODEL
    ollama_host: Optional[str] = None
    ollama_model: str = DEFAULT_OLLAMA_MODEL
    provider_priority: List[str] = field(default_factory=lambda: ["openai", "ollama"])

    eleven_labs_api_key: Optional[str] = None
    eleven_labs_voice_id: str = DEFAULT_VOICE_ID
    eleven_labs_model_id: str = DEFAULT_TTS_MODEL

    whisper_backend: str = "openai"  # "openai" or "local"
    whisper_model: str = "whisper-1"
    whisper_language: str = "en"

    chat_url: str = "http://localhost:5001/api/chat"
    summary_min_chars: int = SUMMARY_MIN_CHARS
    max_experience_chars: int = MAX_EXPERIENCE_CHARS

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        env = os.environ
        providers = env.get("REFRAME_PROVIDERS", "openai,ollama")
        return cls(
            openai_api_key=env.get("OPENAI_API_KEY"),
            openai_base_url=env.get("OPENAI_BASE_URL"),
            chat_model=env.get("REFRAME_CHAT_MODEL", DEFAULT_CHAT_MODEL),
            ollama_host=env.get("OLLAMA_HOST"),
            ollama_model=env.get("REFRAME_OLLAMA_MODEL", DEFAULT_OLLAMA_MODEL),
            provider_priority=[p.strip() for p in providers.split(",") if p.strip()],
            eleven_labs_api_key=env.get("ELEVEN_LABS_API_KEY"),
            eleven_labs_voice_id=env.get("ELEVEN_LABS_VOICE_ID", DEFAULT_VOICE_ID),
            eleven_labs_model_id=env.get("ELEVEN_LABS_MODEL_ID", DEFAULT_TTS_MODEL),
            whisper_backend=env.get("REFRAME_WHISPER_BACKEND", "openai"),
            chat_url=env.get("REFRAME_CHAT_URL", "http://localhost:5001/api/chat"),
            summary_min_chars=int(env.get("REFRAME_SUMMARY_MIN_CHARS", SUMMARY_MIN_CHARS)),
        )


def get_settings() -> Settings:
    return Settings.from_env()
