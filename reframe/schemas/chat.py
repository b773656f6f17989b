"""
Chat endpoint request schema.

One request shape serves all three stages; the mode decides which optional
fields matter. Payload keys are camelCase to match browser clients.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ChatMode(str, Enum):
    DEFINE_EXPERIENCE = "define-experience"
    GENERATE_IDEAS = "generate-ideas"
    CHALLENGE_BIASES = "challenge-biases"


@dataclass
class ChatRequest:
    """Body of a chat request."""
    mode: ChatMode
    experience: str
    history: list[dict]
    force_summary: bool = False
    summary: Optional[str] = None
    my_ideas: Optional[list[str]] = None
    all_suggested_ideas: Optional[list[str]] = None
    idea_comments: Optional[dict[str, str]] = None
    bias_comments: Optional[dict[str, str]] = None
    bias_idea_comments: Optional[dict[str, dict[str, str]]] = None
    previous_biases: Optional[list[dict]] = None

    def to_payload(self) -> dict:
        payload: dict[str, Any] = {
            "mode": self.mode.value,
            "experience": self.experience,
            "history": self.history,
        }
        if self.mode == ChatMode.DEFINE_EXPERIENCE:
            payload["forceSummary"] = self.force_summary
        optional = {
            "summary": self.summary,
            "myIdeas": self.my_ideas,
            "allSuggestedIdeas": self.all_suggested_ideas,
            "ideaComments": self.idea_comments,
            "biasComments": self.bias_comments,
            "biasIdeaComments": self.bias_idea_comments,
            "previousBiases": self.previous_biases,
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        return payload

    @classmethod
    def from_payload(cls, data: Any) -> "ChatRequest":
        """
        Validate a request body.

        Raises:
            ValueError: with a message fit for the client
        """
        if not isinstance(data, dict):
            raise ValueError("Request body must be a JSON object")

        try:
            mode = ChatMode(data.get("mode"))
        except ValueError:
            raise ValueError(f"Unknown mode: {data.get('mode')!r}")

        experience = data.get("experience")
        if not isinstance(experience, str) or not experience.strip():
            raise ValueError("Experience is required")

        history = data.get("history", [])
        if not isinstance(history, list):
            raise ValueError("history must be a list")
        for i, message in enumerate(history):
            if (
                not isinstance(message, dict)
                or message.get("role") not in ("user", "assistant")
                or not isinstance(message.get("content"), str)
            ):
                raise ValueError(f"history[{i}] must have a user/assistant role and string content")

        summary = data.get("summary")
        if summary is not None and not isinstance(summary, str):
            raise ValueError("summary must be a string")

        return cls(
            mode=mode,
            experience=experience.strip(),
            history=[{"role": m["role"], "content": m["content"]} for m in history],
            force_summary=bool(data.get("forceSummary", False)),
            summary=summary,
            my_ideas=_optional_list(data, "myIdeas"),
            all_suggested_ideas=_optional_list(data, "allSuggestedIdeas"),
            idea_comments=_optional_map(data, "ideaComments"),
            bias_comments=_optional_map(data, "biasComments"),
            bias_idea_comments=_optional_map(data, "biasIdeaComments"),
            previous_biases=_optional_list(data, "previousBiases"),
        )


def _optional_list(data: dict, key: str) -> Optional[list]:
    value = data.get(key)
    if value is not None and not isinstance(value, list):
        raise ValueError(f"{key} must be a list")
    return value


def _optional_map(data: dict, key: str) -> Optional[dict]:
    value = data.get(key)
    if value is not None and not isinstance(value, dict):
        raise ValueError(f"{key} must be an object")
    return value
