"""
Tests for the chat request schema, prompt assembly and chat backends.

requests.post and the LLM manager are mocked.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

sys.path.insert(0, str(Path(__file__).parent.parent))

from reframe.agents.chat_backend import ChatBackend, HttpChatClient, LocalChatBackend, extract_raw_text
from reframe.errors import ResponseShapeError, TransportError
from reframe.llm.base import LLMResponse
from reframe.prompts import FORCE_SUMMARY_INSTRUCTION, build_messages
from reframe.schemas.chat import ChatMode, ChatRequest


def _request(mode=ChatMode.DEFINE_EXPERIENCE, **kwargs):
    kwargs.setdefault("history", [])
    return ChatRequest(mode=mode, experience="Starting a new job", **kwargs)


def _response(status=200, json_data=None, reason="OK"):
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.reason = reason
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


class TestChatRequest:
    def test_payload_omits_absent_fields(self):
        payload = _request(mode=ChatMode.GENERATE_IDEAS, summary="S", my_ideas=["A"]).to_payload()
        assert payload == {
            "mode": "generate-ideas",
            "experience": "Starting a new job",
            "history": [],
            "summary": "S",
            "myIdeas": ["A"],
        }

    def test_force_summary_only_for_stage_one(self):
        assert _request(force_summary=True).to_payload()["forceSummary"] is True
        assert "forceSummary" not in _request(mode=ChatMode.CHALLENGE_BIASES).to_payload()

    def test_from_payload(self):
        request = ChatRequest.from_payload({
            "mode": "challenge-biases",
            "experience": "  Job  ",
            "history": [{"role": "user", "content": "hi", "id": "msg-1"}],
            "previousBiases": [{"id": "analysis_0_a", "title": "A"}],
        })
        assert request.mode == ChatMode.CHALLENGE_BIASES
        assert request.experience == "Job"
        assert request.history == [{"role": "user", "content": "hi"}]
        assert request.previous_biases[0]["id"] == "analysis_0_a"

    @pytest.mark.parametrize("body, message", [
        (None, "JSON object"),
        ({"mode": "chit-chat", "experience": "x"}, "Unknown mode"),
        ({"mode": "generate-ideas", "experience": " "}, "Experience is required"),
        ({"mode": "generate-ideas", "experience": "x", "history": "no"}, "history"),
        ({"mode": "generate-ideas", "experience": "x", "history": [{"role": "system", "content": "x"}]}, "history"),
        ({"mode": "generate-ideas", "experience": "x", "myIdeas": "A"}, "myIdeas"),
        ({"mode": "generate-ideas", "experience": "x", "ideaComments": []}, "ideaComments"),
    ])
    def test_from_payload_rejects(self, body, message):
        with pytest.raises(ValueError, match=message):
            ChatRequest.from_payload(body)


class TestBuildMessages:
    def test_define_experience_conversation(self):
        request = _request(history=[
            {"role": "assistant", "content": "What happened?"},
            {"role": "user", "content": "It was awkward."},
        ])
        messages = build_messages(request)
        assert messages[0].role == "system"
        assert "<summary>" in messages[0].content
        assert "Starting a new job" in messages[1].content
        assert [m.content for m in messages[2:]] == ["What happened?", "It was awkward."]

    def test_force_summary_appends_instruction(self):
        messages = build_messages(_request(force_summary=True))
        assert messages[-1].role == "user"
        assert messages[-1].content == FORCE_SUMMARY_INSTRUCTION.strip()

    def test_generate_ideas_context(self):
        request = _request(
            mode=ChatMode.GENERATE_IDEAS,
            summary="Felt left out.",
            my_ideas=["Eat with the team"],
            all_suggested_ideas=["Join a club"],
            idea_comments={"Eat with the team": "Fridays"},
        )
        messages = build_messages(request)
        assert len(messages) == 2
        assert "<ideas>" in messages[0].content
        context = messages[1].content
        assert "Felt left out." in context
        assert "- Eat with the team" in context
        assert "- Join a club" in context
        assert "Fridays" in context

    def test_challenge_biases_context(self):
        request = _request(
            mode=ChatMode.CHALLENGE_BIASES,
            summary="Felt left out.",
            previous_biases=[{"id": "analysis_0_a", "title": "Spotlight effect", "explanation": "E"}],
            bias_comments={"analysis_0_a": "Partly true"},
            bias_idea_comments={"analysis_0_a": {"Others are busy": "Noticed"}},
        )
        context = build_messages(request)[1].content
        assert "Spotlight effect" in context
        assert "Partly true" in context
        assert 'On "Others are busy": Noticed' in context

    def test_first_analysis(self):
        request = _request(mode=ChatMode.CHALLENGE_BIASES, summary="S")
        assert "This is the first analysis." in build_messages(request)[1].content


class TestExtractRawText:
    def test_raw_text(self):
        assert extract_raw_text({"rawText": "hello"}) == "hello"

    def test_assistant_message_fallback(self):
        assert extract_raw_text({"assistantMessage": "hello"}) == "hello"

    @pytest.mark.parametrize("data", [None, [], {}, {"rawText": ""}, {"rawText": 42}])
    def test_shape_errors(self, data):
        with pytest.raises(ResponseShapeError):
            extract_raw_text(data)


class TestHttpChatClient:
    def test_posts_payload(self):
        client = HttpChatClient("http://chat.test/api/chat", timeout=5)
        with patch("reframe.agents.chat_backend.requests.post") as mock_post:
            mock_post.return_value = _response(json_data={"rawText": "Hi there"})
            assert client.complete(_request()) == "Hi there"

        args, kwargs = mock_post.call_args
        assert args[0] == "http://chat.test/api/chat"
        assert kwargs["json"]["mode"] == "define-experience"
        assert kwargs["timeout"] == 5

    def test_error_status_uses_server_message(self):
        client = HttpChatClient("http://chat.test/api/chat")
        with patch("reframe.agents.chat_backend.requests.post") as mock_post:
            mock_post.return_value = _response(400, {"error": "Invalid request", "message": "Too long"})
            with pytest.raises(TransportError, match="Too long") as exc:
                client.complete(_request())
        assert exc.value.status_code == 400

    def test_error_status_without_json(self):
        client = HttpChatClient("http://chat.test/api/chat")
        with patch("reframe.agents.chat_backend.requests.post") as mock_post:
            mock_post.return_value = _response(502, ValueError("no json"), reason="Bad Gateway")
            with pytest.raises(TransportError, match="Bad Gateway"):
                client.complete(_request())

    def test_connection_error(self):
        client = HttpChatClient("http://chat.test/api/chat")
        with patch("reframe.agents.chat_backend.requests.post") as mock_post:
            mock_post.side_effect = requests.ConnectionError("refused")
            with pytest.raises(TransportError, match="refused"):
                client.complete(_request())

    def test_missing_text_field(self):
        client = HttpChatClient("http://chat.test/api/chat")
        with patch("reframe.agents.chat_backend.requests.post") as mock_post:
            mock_post.return_value = _response(json_data={"text": "wrong key"})
            with pytest.raises(ResponseShapeError):
                client.complete(_request())


class TestLocalChatBackend:
    def test_completes_through_manager(self):
        manager = MagicMock()
        manager.chat.return_value = LLMResponse(content="Hello!", model="m", provider="openai")
        backend = LocalChatBackend(manager)
        assert backend.complete(_request()) == "Hello!"
        messages = manager.chat.call_args[0][0]
        assert messages[0].role == "system"

    def test_provider_failure_is_transport_error(self):
        manager = MagicMock()
        manager.chat.side_effect = RuntimeError("No chat model provider available.")
        with pytest.raises(TransportError) as exc:
            LocalChatBackend(manager).complete(_request())
        assert exc.value.status_code == 502

    def test_empty_model_reply(self):
        manager = MagicMock()
        manager.chat.return_value = LLMResponse(content="  ", model="m", provider="openai")
        with pytest.raises(ResponseShapeError):
            LocalChatBackend(manager).complete(_request())


class TestChatBackendInterface:
    def test_cannot_instantiate_without_complete(self):
        with pytest.raises(TypeError):
            ChatBackend()

        class Incomplete(ChatBackend):
            pass

        with pytest.raises(TypeError):
            Incomplete()
