"""
OpenAI chat provider.

Also serves OpenAI-compatible endpoints through OPENAI_BASE_URL.
"""

import os
from typing import Optional, List

from .base import LLMProvider, LLMConfig, LLMResponse, Message, ProviderStatus

OPENAI_DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIProvider(LLMProvider):
    """Chat completions through the official OpenAI SDK."""

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        **kwargs
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key (or set OPENAI_API_KEY env var)
            model: Chat model to use
            base_url: Custom base URL for compatible endpoints
        """
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.base_url = base_url or os.getenv("OPENAI_BASE_URL", OPENAI_DEFAULT_BASE_URL)

        config = LLMConfig(
            provider_name="openai",
            model=model,
            api_key=self.api_key,
            base_url=self.base_url,
            **kwargs
        )
        super().__init__(config)

        self._client = None
        self._init_client()

    def _init_client(self):
        """Initialize the OpenAI client."""
        if not self.api_key:
            self._status = ProviderStatus.NOT_CONFIGURED
            return

        from openai import OpenAI

        client_kwargs = {"api_key": self.api_key, "timeout": self.config.timeout}
        if self.base_url and self.base_url != OPENAI_DEFAULT_BASE_URL:
            client_kwargs["base_url"] = self.base_url

        try:
            self._client = OpenAI(**client_kwargs)
            self._status = ProviderStatus.AVAILABLE
        except Exception as e:
            print(f"  [LLM] Failed to initialize OpenAI client: {e}")
            self._status = ProviderStatus.ERROR

    def is_available(self) -> bool:
        return self._client is not None and self._status != ProviderStatus.ERROR

    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """Send a chat completion request to OpenAI."""
        if self._client is None:
            raise RuntimeError("OpenAI provider is not available. Check OPENAI_API_KEY.")

        try:
            response = self._client.chat.completions.create(
                model=self.config.model,
                messages=[{"role": m.role, "content": m.content} for m in messages],
                temperature=self.config.temperature if temperature is None else temperature,
                max_tokens=max_tokens or self.config.max_tokens,
            )
        except Exception as e:
            error_str = str(e).lower()
            if "rate_limit" in error_str or "429" in error_str or "quota" in error_str:
                self._status = ProviderStatus.RATE_LIMITED
            else:
                self._status = ProviderStatus.ERROR
            raise

        self._status = ProviderStatus.AVAILABLE
        usage = {
            "prompt_tokens": response.usage.prompt_tokens if response.usage else 0,
            "completion_tokens": response.usage.completion_tokens if response.usage else 0,
            "total_tokens": response.usage.total_tokens if response.usage else 0,
        }
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model,
            provider="openai",
            usage=usage,
            finish_reason=response.choices[0].finish_reason or "stop",
            raw_response=response,
        )
