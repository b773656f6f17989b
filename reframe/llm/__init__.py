"""
Chat model providers for reflection sessions.

- OpenAI (primary, cloud)
- Ollama (fallback, local)
"""

from .base import LLMProvider, LLMResponse, LLMConfig, Message, ProviderStatus
from .openai_provider import OpenAIProvider
from .ollama_provider import OllamaProvider
from .manager import LLMManager

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "LLMConfig",
    "Message",
    "ProviderStatus",
    "OpenAIProvider",
    "OllamaProvider",
    "LLMManager",
]
