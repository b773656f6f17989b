"""
LLM Manager - one chat interface over the configured providers.

Handles provider selection, retries and failover.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

from ..config import Settings, get_settings
from .base import LLMProvider, LLMResponse, Message, ProviderStatus
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider


@dataclass
class ProviderUsage:
    """Per-provider request bookkeeping."""
    requests: int = 0
    tokens: int = 0
    errors: int = 0
    last_error: Optional[str] = None
    rate_limit_reset: Optional[datetime] = None


def build_providers(settings: Settings) -> Dict[str, LLMProvider]:
    """Create every provider named in settings.provider_priority that is usable."""
    providers: Dict[str, LLMProvider] = {}
    for name in settings.provider_priority:
        if name == "openai":
            provider = OpenAIProvider(
                api_key=settings.openai_api_key,
                model=settings.chat_model,
                base_url=settings.openai_base_url,
            )
        elif name == "ollama":
            provider = OllamaProvider(model=settings.ollama_model, host=settings.ollama_host)
        else:
            print(f"  [LLM] Unknown provider '{name}' ignored")
            continue

        if provider.is_available():
            providers[name] = provider
            print(f"✓ {name} provider initialized ({provider.model})")
    return providers


class LLMManager:
    """
    Sends chat requests to the first healthy provider.

    Usage:
        manager = LLMManager()
        response = manager.chat([Message(role="user", content="Hello")])

    The manager will:
    1. Try providers in priority order
    2. Retry transient errors with a short backoff
    3. Fall back to the next provider when one fails or is rate limited
    """

    max_retries = 1
    rate_limit_cooldown = timedelta(minutes=10)

    def __init__(
        self,
        providers: Optional[Dict[str, LLMProvider]] = None,
        settings: Optional[Settings] = None,
    ):
        if providers is None:
            providers = build_providers(settings or get_settings())
        self._providers = dict(providers)
        self._usage: Dict[str, ProviderUsage] = {name: ProviderUsage() for name in self._providers}

    @property
    def available_providers(self) -> List[str]:
        return list(self._providers.keys())

    @property
    def is_available(self) -> bool:
        return self._select_provider() is not None

    def _select_provider(self, exclude: tuple = ()) -> Optional[str]:
        for name, provider in self._providers.items():
            if name in exclude:
                continue
            if provider.status == ProviderStatus.RATE_LIMITED:
                reset = self._usage[name].rate_limit_reset
                if reset and datetime.now() < reset:
                    continue
                provider.mark(ProviderStatus.AVAILABLE)
            return name
        return None

    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """
        Send a chat request with retry and fallback.

        Raises:
            RuntimeError: If no provider is configured
            Exception: The last provider error once every provider failed
        """
        tried: tuple = ()
        last_error: Optional[Exception] = None

        while True:
            name = self._select_provider(exclude=tried)
            if name is None:
                break
            try:
                return self._chat_with_retry(name, messages, temperature, max_tokens)
            except Exception as e:
                last_error = e
                tried += (name,)
                if self._select_provider(exclude=tried):
                    print(f"  [LLM] {name} failed, falling back to the next provider")

        if last_error is not None:
            raise last_error
        raise RuntimeError(
            "No chat model provider available.\n"
            "Set OPENAI_API_KEY, or install and run Ollama (ollama serve)."
        )

    def _chat_with_retry(
        self,
        name: str,
        messages: List[Message],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> LLMResponse:
        provider = self._providers[name]
        usage = self._usage[name]

        attempt = 0
        while True:
            try:
                response = provider.chat(messages, temperature=temperature, max_tokens=max_tokens)
            except Exception as e:
                usage.errors += 1
                usage.last_error = str(e)[:200]
                if provider.status == ProviderStatus.RATE_LIMITED:
                    usage.rate_limit_reset = datetime.now() + self.rate_limit_cooldown
                    raise
                if attempt >= self.max_retries:
                    raise
                wait = 2 ** attempt
                attempt += 1
                print(f"  [LLM] Error on {name}, retrying in {wait}s ({attempt}/{self.max_retries})")
                time.sleep(wait)
                continue

            usage.requests += 1
            usage.tokens += response.tokens_used
            return response

    def get_status(self) -> Dict[str, Any]:
        return {
            name: {
                "status": provider.status.value,
                "model": provider.model,
                "is_local": provider.is_local,
                "requests": self._usage[name].requests,
                "errors": self._usage[name].errors,
            }
            for name, provider in self._providers.items()
        }
