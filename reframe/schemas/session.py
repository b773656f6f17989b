"""
Session schema for guided reflection sessions.

Defines the entities a session is made of and the snapshot format used to
save and restore a whole session. The snapshot keys are the JSON exchange
format shared with browser clients, so they stay camelCase.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..errors import SessionImportError


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class BiasDecision(str, Enum):
    """User verdict on a bias. Undecided biases have no decision at all."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ChatMessage:
    """A single transcript entry. Immutable once created."""
    id: str
    role: MessageRole
    content: str

    @classmethod
    def create(cls, role: MessageRole | str, content: str) -> "ChatMessage":
        return cls(id=f"msg-{uuid.uuid4().hex}", role=MessageRole(role), content=content)

    def to_dict(self) -> dict:
        return {"id": self.id, "role": self.role.value, "content": self.content}

    def to_api_dict(self) -> dict:
        """Message as sent to the chat endpoint (ids stay local)."""
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict) -> "ChatMessage":
        return cls(id=data["id"], role=MessageRole(data["role"]), content=data["content"])


@dataclass(frozen=True)
class Bias:
    """A bias from one analysis set. The id is unique across all sets."""
    id: str
    title: str
    explanation: str = ""
    challenging_ideas: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "explanation": self.explanation,
            "challengingIdeas": list(self.challenging_ideas),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Bias":
        return cls(
            id=data["id"],
            title=data["title"],
            explanation=data.get("explanation", ""),
            challenging_ideas=tuple(data.get("challengingIdeas", [])),
        )


# Keys every importable snapshot must carry; the comment maps may be missing
REQUIRED_SNAPSHOT_KEYS = (
    "experience",
    "tab1History",
    "tab1Summary",
    "myIdeas",
    "allSuggestedIdeas",
    "tab3ChallengingIdeas",
    "biases",
    "biasDecisions",
    "biasUserIdeas",
)


@dataclass
class SessionSnapshot:
    """Complete, validated copy of a session's data."""
    experience: str = ""
    history: list[ChatMessage] = field(default_factory=list)
    summary: Optional[str] = None
    my_ideas: list[str] = field(default_factory=list)
    suggested_ideas: list[str] = field(default_factory=list)
    idea_comments: dict[str, str] = field(default_factory=dict)
    challenge_ideas: list[str] = field(default_factory=list)
    bias_sets: list[list[Bias]] = field(default_factory=list)
    active_bias_set: Optional[int] = None
    bias_decisions: dict[str, BiasDecision] = field(default_factory=dict)
    bias_user_ideas: dict[str, list[str]] = field(default_factory=dict)
    bias_comments: dict[str, str] = field(default_factory=dict)
    bias_idea_comments: dict[str, dict[str, str]] = field(default_factory=dict)

    @property
    def biases(self) -> Optional[list[Bias]]:
        """The active analysis set, if any."""
        if self.active_bias_set is None:
            return None
        return self.bias_sets[self.active_bias_set]

    def to_dict(self) -> dict:
        """Convert to the JSON exchange format."""
        biases = self.biases
        return {
            "experience": self.experience,
            "tab1History": [m.to_dict() for m in self.history],
            "tab1Summary": self.summary,
            "myIdeas": list(self.my_ideas),
            "allSuggestedIdeas": list(self.suggested_ideas),
            "ideaComments": dict(self.idea_comments),
            "tab3ChallengingIdeas": list(self.challenge_ideas),
            "biases": [b.to_dict() for b in biases] if biases is not None else None,
            "biasDecisions": {k: v.value for k, v in self.bias_decisions.items()},
            "biasUserIdeas": {k: list(v) for k, v in self.bias_user_ideas.items()},
            "biasComments": dict(self.bias_comments),
            "biasIdeaComments": {k: dict(v) for k, v in self.bias_idea_comments.items()},
            "biasSets": [[b.to_dict() for b in s] for s in self.bias_sets],
            "activeBiasSet": self.active_bias_set,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SessionSnapshot":
        """
        Validate and convert a snapshot dict.

        Raises:
            SessionImportError: if a required key is missing or any value has
                the wrong structure
        """
        if not isinstance(data, dict):
            raise SessionImportError("Session snapshot must be a JSON object")

        missing = [key for key in REQUIRED_SNAPSHOT_KEYS if key not in data]
        if missing:
            raise SessionImportError(f"Session snapshot is missing: {', '.join(missing)}")

        experience = data["experience"]
        if not isinstance(experience, str):
            raise SessionImportError("experience must be a string")

        summary = data["tab1Summary"]
        if summary is not None and not isinstance(summary, str):
            raise SessionImportError("tab1Summary must be a string or null")

        bias_sets, active = _read_bias_sets(data)
        my_ideas = _read_ideas(data["myIdeas"], "myIdeas")

        return cls(
            experience=experience,
            history=_read_history(data["tab1History"]),
            summary=summary,
            my_ideas=my_ideas,
            suggested_ideas=_read_ideas(data["allSuggestedIdeas"], "allSuggestedIdeas"),
            idea_comments=_read_comments(data.get("ideaComments"), "ideaComments"),
            challenge_ideas=_read_ideas(data["tab3ChallengingIdeas"], "tab3ChallengingIdeas"),
            bias_sets=bias_sets,
            active_bias_set=active,
            bias_decisions=_read_decisions(data["biasDecisions"]),
            bias_user_ideas=_read_bias_user_ideas(data["biasUserIdeas"], my_ideas),
            bias_comments=_read_comments(data.get("biasComments"), "biasComments"),
            bias_idea_comments=_read_bias_idea_comments(data.get("biasIdeaComments")),
        )


# ── Field readers ────────────────────────────────────────────────────────────

def _read_history(value: Any) -> list[ChatMessage]:
    if not isinstance(value, list):
        raise SessionImportError("tab1History must be a list")

    messages = []
    seen: set[str] = set()
    for i, item in enumerate(value):
        if not isinstance(item, dict):
            raise SessionImportError(f"tab1History[{i}] must be an object")
        if not isinstance(item.get("id"), str) or not isinstance(item.get("content"), str):
            raise SessionImportError(f"tab1History[{i}] needs string id and content")
        try:
            message = ChatMessage.from_dict(item)
        except ValueError:
            raise SessionImportError(f"tab1History[{i}] has unknown role {item.get('role')!r}")
        if message.id in seen:
            raise SessionImportError(f"tab1History has duplicate message id {message.id!r}")
        seen.add(message.id)
        messages.append(message)
    return messages


def _read_ideas(value: Any, key: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(i, str) for i in value):
        raise SessionImportError(f"{key} must be a list of strings")
    ideas: list[str] = []
    for idea in value:
        if idea not in ideas:
            ideas.append(idea)
    return ideas


def _read_comments(value: Any, key: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict) or not all(isinstance(v, str) for v in value.values()):
        raise SessionImportError(f"{key} must map strings to strings")
    # Blank comments are the same as no comment
    return {k: v.strip() for k, v in value.items() if v.strip()}


def _read_bias(item: Any, where: str) -> Bias:
    if not isinstance(item, dict):
        raise SessionImportError(f"{where} must be an object")
    if not isinstance(item.get("id"), str) or not isinstance(item.get("title"), str):
        raise SessionImportError(f"{where} needs string id and title")
    if not isinstance(item.get("explanation", ""), str):
        raise SessionImportError(f"{where}.explanation must be a string")
    ideas = item.get("challengingIdeas", [])
    if not isinstance(ideas, list) or not all(isinstance(i, str) for i in ideas):
        raise SessionImportError(f"{where}.challengingIdeas must be a list of strings")
    return Bias.from_dict(item)


def _read_bias_list(value: Any, where: str) -> list[Bias]:
    if not isinstance(value, list):
        raise SessionImportError(f"{where} must be a list")
    return [_read_bias(item, f"{where}[{i}]") for i, item in enumerate(value)]


def _read_bias_sets(data: dict) -> tuple[list[list[Bias]], Optional[int]]:
    biases = None
    if data["biases"] is not None:
        biases = _read_bias_list(data["biases"], "biases")

    if data.get("biasSets") is None:
        # Older snapshots only carry the active set
        sets = [biases] if biases else []
        active = 0 if sets else None
    else:
        raw_sets = data["biasSets"]
        if not isinstance(raw_sets, list):
            raise SessionImportError("biasSets must be a list")
        sets = [_read_bias_list(s, f"biasSets[{i}]") for i, s in enumerate(raw_sets)]
        active = data.get("activeBiasSet")
        if active is None:
            active = len(sets) - 1 if sets else None
        elif isinstance(active, bool) or not isinstance(active, int) or not 0 <= active < len(sets):
            raise SessionImportError("activeBiasSet must index into biasSets")

    ids = [b.id for s in sets for b in s]
    if len(ids) != len(set(ids)):
        raise SessionImportError("Bias ids must be unique across all analysis sets")
    return sets, active


def _read_decisions(value: Any) -> dict[str, BiasDecision]:
    if not isinstance(value, dict):
        raise SessionImportError("biasDecisions must be an object")
    decisions = {}
    for bias_id, decision in value.items():
        if decision is None:
            continue
        try:
            decisions[bias_id] = BiasDecision(decision)
        except ValueError:
            raise SessionImportError(f"biasDecisions[{bias_id!r}] must be 'accepted' or 'rejected'")
    return decisions


def _read_bias_user_ideas(value: Any, my_ideas: list[str]) -> dict[str, list[str]]:
    """Bias-scoped ideas sit under one bias only and are always in myIdeas."""
    if not isinstance(value, dict):
        raise SessionImportError("biasUserIdeas must be an object")
    result = {}
    owner: dict[str, str] = {}
    for bias_id, ideas in value.items():
        ideas = _read_ideas(ideas, f"biasUserIdeas[{bias_id!r}]")
        for idea in ideas:
            if idea in owner:
                raise SessionImportError(
                    f"biasUserIdeas lists {idea!r} under both {owner[idea]!r} and {bias_id!r}"
                )
            if idea not in my_ideas:
                raise SessionImportError(f"biasUserIdeas[{bias_id!r}] has {idea!r}, which is not in myIdeas")
            owner[idea] = bias_id
        if ideas:
            result[bias_id] = ideas
    return result


def _read_bias_idea_comments(value: Any) -> dict[str, dict[str, str]]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SessionImportError("biasIdeaComments must be an object")
    result = {}
    for bias_id, comments in value.items():
        comments = _read_comments(comments, f"biasIdeaComments[{bias_id!r}]")
        if comments:
            result[bias_id] = comments
    return result
