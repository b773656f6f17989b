"""
Ollama chat provider.

Runs open models locally (https://ollama.ai); used as the fallback when no
cloud provider is configured or the cloud provider is rate limited.
"""

import os
from typing import Optional, List

import requests

from .base import LLMProvider, LLMConfig, LLMResponse, Message, ProviderStatus


class OllamaProvider(LLMProvider):
    """Chat completions against a local Ollama server."""

    DEFAULT_MODEL = "mistral:latest"
    DEFAULT_HOST = "http://localhost:11434"

    is_local = True

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        host: Optional[str] = None,
        timeout: int = 120,
        check: bool = True,
    ):
        """
        Initialize Ollama provider.

        Args:
            model: Model to use
            host: Ollama server URL (default: OLLAMA_HOST or localhost:11434)
            timeout: Request timeout; local inference can be slow
            check: Probe the server now to set the provider status
        """
        self.host = host or os.environ.get("OLLAMA_HOST", self.DEFAULT_HOST)

        config = LLMConfig(
            provider_name="ollama",
            model=model,
            base_url=self.host,
            timeout=timeout,
        )
        super().__init__(config)

        if check:
            self._check_availability()

    def _check_availability(self):
        """Check if Ollama is running and the model is pulled."""
        try:
            response = requests.get(f"{self.host}/api/tags", timeout=5)
        except requests.RequestException:
            self._status = ProviderStatus.NOT_CONFIGURED
            return

        if response.status_code != 200:
            self._status = ProviderStatus.ERROR
            return

        self._status = ProviderStatus.AVAILABLE
        model_names = [m.get("name", "") for m in response.json().get("models", [])]
        if not any(self.config.model in name for name in model_names):
            print(f"  [LLM] Model '{self.config.model}' not found in Ollama; "
                  f"pull it with: ollama pull {self.config.model}")

    def is_available(self) -> bool:
        return self._status == ProviderStatus.AVAILABLE

    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """Send a chat request to Ollama."""
        payload = {
            "model": self.config.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "stream": False,
            "options": {
                "temperature": self.config.temperature if temperature is None else temperature,
                "num_predict": max_tokens or self.config.max_tokens,
            },
        }

        try:
            response = requests.post(
                f"{self.host}/api/chat",
                json=payload,
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            raise RuntimeError(
                f"Ollama request timed out after {self.config.timeout}s. "
                "Try a smaller model."
            )
        except requests.RequestException as e:
            self._status = ProviderStatus.ERROR
            raise RuntimeError(f"Ollama request failed: {e}")

        prompt_tokens = data.get("prompt_eval_count", 0)
        completion_tokens = data.get("eval_count", 0)
        return LLMResponse(
            content=data["message"]["content"],
            model=data.get("model", self.config.model),
            provider="ollama",
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
            finish_reason=data.get("done_reason", "stop"),
            raw_response=data,
        )
