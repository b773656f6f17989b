"""
Chat backends - where stage workflows send their requests.

Two interchangeable backends answer a ChatRequest with the model's raw
text:

- HttpChatClient: POSTs the request to a chat endpoint (ours or another
  deployment) with requests
- LocalChatBackend: answers in-process through the LLMManager

Both raise TransportError for a failed call and ResponseShapeError when the
answer carries no usable text.
"""

from abc import ABC, abstractmethod
from typing import Optional

import requests

from ..config import get_settings
from ..errors import ResponseShapeError, TransportError
from ..llm.manager import LLMManager
from ..prompts.stage_prompts import build_messages
from ..schemas.chat import ChatRequest


class ChatBackend(ABC):
    """Turns a ChatRequest into the model's raw text."""

    @abstractmethod
    def complete(self, request: ChatRequest) -> str:
        """Send one request and return the model's raw text."""
        pass


def extract_raw_text(data) -> str:
    """
    Pull the model text out of a chat response body.

    Raises:
        ResponseShapeError: If neither rawText nor assistantMessage holds text
    """
    if not isinstance(data, dict):
        raise ResponseShapeError("Invalid response format from server")
    raw_text = data.get("rawText") or data.get("assistantMessage")
    if not raw_text or not isinstance(raw_text, str):
        raise ResponseShapeError("Received empty response from API")
    return raw_text


def _error_message(response: requests.Response) -> str:
    """Best error text from a failed response: message, error, details, then reason."""
    fallback = f"Server error: {response.status_code}"
    try:
        data = response.json()
    except ValueError:
        return response.reason or fallback
    if isinstance(data, dict):
        for key in ("message", "error", "details"):
            if data.get(key):
                return str(data[key])
    return fallback


class HttpChatClient(ChatBackend):
    """
    Client for a chat endpoint.

    Usage:
        client = HttpChatClient("http://localhost:5001/api/chat")
        raw = client.complete(request)
    """

    def __init__(self, url: Optional[str] = None, timeout: int = 120):
        self.url = url or get_settings().chat_url
        self.timeout = timeout

    def complete(self, request: ChatRequest) -> str:
        try:
            response = requests.post(
                self.url,
                json=request.to_payload(),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"Chat request failed: {e}")

        if not response.ok:
            raise TransportError(_error_message(response), status_code=response.status_code)

        try:
            data = response.json()
        except ValueError:
            raise ResponseShapeError("Invalid response format from server")
        return extract_raw_text(data)


class LocalChatBackend(ChatBackend):
    """Answers chat requests in-process with the configured LLM providers."""

    def __init__(self, llm_manager: Optional[LLMManager] = None):
        self._llm = llm_manager

    @property
    def llm(self) -> LLMManager:
        # Providers are probed on first use, not at import
        if self._llm is None:
            self._llm = LLMManager()
        return self._llm

    def complete(self, request: ChatRequest) -> str:
        messages = build_messages(request)
        try:
            response = self.llm.chat(messages)
        except Exception as e:
            print(f"  [Chat] {request.mode.value} request failed: {e}")
            raise TransportError(str(e), status_code=502)

        if not response.content or not response.content.strip():
            raise ResponseShapeError("Received empty response from model")
        return response.content
