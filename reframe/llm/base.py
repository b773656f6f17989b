"""
Base classes for chat model providers.

Every backend (OpenAI, Ollama) answers the same chat() call so the session
workflows never depend on which model produced a reply.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from enum import Enum


class ProviderStatus(str, Enum):
    """Status of a chat model provider."""
    AVAILABLE = "available"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"
    NOT_CONFIGURED = "not_configured"


@dataclass
class LLMConfig:
    """Configuration for a provider."""
    provider_name: str
    model: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 1500
    timeout: int = 60


@dataclass
class Message:
    """A single message in a conversation."""
    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class LLMResponse:
    """Response from a provider."""
    content: str
    model: str
    provider: str
    usage: Dict[str, int] = field(default_factory=dict)
    finish_reason: str = "stop"
    raw_response: Optional[Any] = None

    @property
    def tokens_used(self) -> int:
        return self.usage.get("total_tokens", 0)


class LLMProvider(ABC):
    """Abstract base class for chat model providers."""

    # Local providers have no request quota
    is_local = False

    def __init__(self, config: LLMConfig):
        self.config = config
        self._status = ProviderStatus.NOT_CONFIGURED

    @property
    def name(self) -> str:
        return self.config.provider_name

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def status(self) -> ProviderStatus:
        return self._status

    def mark(self, status: ProviderStatus):
        self._status = status

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is configured and reachable."""
        pass

    @abstractmethod
    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: Conversation so far, system prompt first
            temperature: Override default temperature
            max_tokens: Override default max tokens

        Returns:
            LLMResponse with the model's reply
        """
        pass
