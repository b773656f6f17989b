"""
Tests for the LLM manager: provider selection, retries and failover.

Uses in-memory fake providers; the OpenAI and Ollama providers are tested
with their SDK / HTTP calls mocked.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from reframe.config import Settings
from reframe.llm import LLMManager, Message, OllamaProvider, OpenAIProvider, ProviderStatus
from reframe.llm.base import LLMConfig, LLMProvider, LLMResponse
from reframe.llm.manager import build_providers


class FakeProvider(LLMProvider):
    def __init__(self, name, outcomes):
        super().__init__(LLMConfig(provider_name=name, model=f"{name}-model"))
        self._status = ProviderStatus.AVAILABLE
        self.outcomes = list(outcomes)
        self.calls = 0

    def is_available(self):
        return True

    def chat(self, messages, temperature=None, max_tokens=None):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, ProviderStatus):
            self._status = outcome
            raise RuntimeError(f"{self.name} failed with {outcome.value}")
        return LLMResponse(content=outcome, model=self.model, provider=self.name,
                           usage={"total_tokens": 10})


MESSAGES = [Message(role="user", content="hi")]


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("reframe.llm.manager.time.sleep"):
        yield


class TestLLMManager:
    def test_uses_first_provider(self):
        primary = FakeProvider("openai", ["from openai"])
        fallback = FakeProvider("ollama", ["from ollama"])
        manager = LLMManager({"openai": primary, "ollama": fallback})
        assert manager.chat(MESSAGES).content == "from openai"
        assert fallback.calls == 0

    def test_retries_transient_error(self):
        primary = FakeProvider("openai", [ProviderStatus.ERROR, "second try"])
        manager = LLMManager({"openai": primary})
        assert manager.chat(MESSAGES).content == "second try"
        assert primary.calls == 2
        assert manager.get_status()["openai"]["errors"] == 1

    def test_falls_back_after_retries(self):
        primary = FakeProvider("openai", [ProviderStatus.ERROR, ProviderStatus.ERROR])
        fallback = FakeProvider("ollama", ["local answer"])
        manager = LLMManager({"openai": primary, "ollama": fallback})
        assert manager.chat(MESSAGES).content == "local answer"
        assert primary.calls == 2

    def test_rate_limit_skips_retry_and_cools_down(self):
        primary = FakeProvider("openai", [ProviderStatus.RATE_LIMITED])
        fallback = FakeProvider("ollama", ["one", "two"])
        manager = LLMManager({"openai": primary, "ollama": fallback})
        assert manager.chat(MESSAGES).content == "one"
        assert primary.calls == 1
        # Still cooling down on the next request
        assert manager.chat(MESSAGES).content == "two"
        assert primary.calls == 1

    def test_raises_last_error_when_all_fail(self):
        primary = FakeProvider("openai", [ProviderStatus.RATE_LIMITED])
        manager = LLMManager({"openai": primary})
        with pytest.raises(RuntimeError, match="rate_limited"):
            manager.chat(MESSAGES)

    def test_no_providers(self):
        manager = LLMManager({})
        assert not manager.is_available
        with pytest.raises(RuntimeError, match="No chat model provider"):
            manager.chat(MESSAGES)

    def test_status_tracks_usage(self):
        manager = LLMManager({"openai": FakeProvider("openai", ["a"])})
        manager.chat(MESSAGES)
        status = manager.get_status()["openai"]
        assert status["requests"] == 1
        assert status["model"] == "openai-model"
        assert status["is_local"] is False


class TestBuildProviders:
    def test_skips_unconfigured(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        settings = Settings(openai_api_key=None, provider_priority=["openai", "nope"])
        assert build_providers(settings) == {}

    def test_ollama_probe(self):
        tags = MagicMock(status_code=200)
        tags.json.return_value = {"models": [{"name": "mistral:latest"}]}
        settings = Settings(provider_priority=["ollama"], ollama_host="http://ollama.test")
        with patch("reframe.llm.ollama_provider.requests.get", return_value=tags):
            providers = build_providers(settings)
        assert list(providers) == ["ollama"]
        assert providers["ollama"].is_local


class TestOpenAIProvider:
    def test_not_configured_without_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        provider = OpenAIProvider(api_key=None)
        assert not provider.is_available()
        with pytest.raises(RuntimeError):
            provider.chat(MESSAGES)

    def test_chat(self):
        provider = OpenAIProvider(api_key="sk-test")
        completion = MagicMock()
        completion.choices[0].message.content = "Hello"
        completion.choices[0].finish_reason = "stop"
        completion.model = "gpt-4o-mini"
        completion.usage.prompt_tokens = 3
        completion.usage.completion_tokens = 2
        completion.usage.total_tokens = 5
        provider._client = MagicMock()
        provider._client.chat.completions.create.return_value = completion

        response = provider.chat(MESSAGES)
        assert response.content == "Hello"
        assert response.tokens_used == 5
        sent = provider._client.chat.completions.create.call_args.kwargs["messages"]
        assert sent == [{"role": "user", "content": "hi"}]

    def test_rate_limit_marks_status(self):
        provider = OpenAIProvider(api_key="sk-test")
        provider._client = MagicMock()
        provider._client.chat.completions.create.side_effect = Exception("Error code: 429")
        with pytest.raises(Exception):
            provider.chat(MESSAGES)
        assert provider.status == ProviderStatus.RATE_LIMITED


class TestOllamaProvider:
    def test_chat(self):
        provider = OllamaProvider(host="http://ollama.test", check=False)
        reply = MagicMock()
        reply.json.return_value = {
            "message": {"content": "Local hello"},
            "model": "mistral:latest",
            "prompt_eval_count": 4,
            "eval_count": 6,
        }
        with patch("reframe.llm.ollama_provider.requests.post", return_value=reply) as mock_post:
            response = provider.chat(MESSAGES)
        assert response.content == "Local hello"
        assert response.tokens_used == 10
        assert mock_post.call_args.kwargs["json"]["stream"] is False

    def test_unreachable_server(self):
        import requests

        with patch("reframe.llm.ollama_provider.requests.get", side_effect=requests.ConnectionError()):
            provider = OllamaProvider(host="http://ollama.test")
        assert provider.status == ProviderStatus.NOT_CONFIGURED
        assert not provider.is_available()
